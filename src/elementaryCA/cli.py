"""Command-line entry points."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np

from .engine import AutomatonSnapshot
from .eca import BOUNDARIES
from .scheduling import AsyncioScheduler, ManualScheduler, Scheduler
from .session import AutomatonSession, Location
from .starred import StarredConfigStore
from .storage import JsonFileStorage

DEFAULT_STORE = Path.home() / ".elementaryCA" / "starred.json"
LIVE_CELL = "█"
DEAD_CELL = "·"


def format_row(row: np.ndarray) -> str:
    return "".join(LIVE_CELL if c else DEAD_CELL for c in np.asarray(row).tolist())


def format_snapshot(snap: AutomatonSnapshot, counts: bool = False) -> List[str]:
    lines = [
        f"Rule {snap.rule_decimal} ({snap.rule_binary}) | {snap.total_items} cells | "
        f"generation {snap.generation}/{snap.generations}"
    ]
    for gen, row in enumerate(snap.history):
        line = format_row(row)
        if counts:
            line = f"{line} {snap.ones_history[gen]:>4}"
        lines.append(line)
    return lines


def _parse_seeds(text: str) -> List[int]:
    return [int(tok) for tok in text.replace(" ", "").split(",") if tok]


def location_from_arg(text: str) -> Location:
    """Accept a full URL, a "?query" or a bare "r=..&w=.." query."""
    if text and "?" not in text and "=" in text:
        text = f"?{text}"
    return Location.from_url(text)


def _build_run_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run an elementary cellular automaton")
    parser.add_argument("share", nargs="?", default="", help="Share URL or query string (?r=..&w=..)")
    parser.add_argument("--rule", type=int, default=None)
    parser.add_argument("--width", type=int, default=None, help="Number of cells")
    parser.add_argument("--generations", type=int, default=None)
    parser.add_argument("--delay", type=int, default=None, help="Tick interval in ms")
    parser.add_argument("--seeds", type=str, default=None, help="Comma separated seed cells")
    parser.add_argument("--ones", type=int, default=None, help="Number of random seed cells")
    parser.add_argument("--boundary", choices=BOUNDARIES, default="periodic")
    parser.add_argument("--boundary-value", type=int, choices=(0, 1), default=0)
    parser.add_argument("--seed", type=int, default=None, help="Random generator seed")
    parser.add_argument("--realtime", action="store_true", help="Tick on the wall clock")
    parser.add_argument("--counts", action="store_true", help="Print ones per generation")
    parser.add_argument("--star", action="store_true", help="Toggle the configuration's star")
    parser.add_argument("--store", type=str, default=str(DEFAULT_STORE))
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def _configure_session(session: AutomatonSession, args: argparse.Namespace) -> None:
    patch: dict = {}
    if args.rule is not None:
        patch["rule_decimal"] = args.rule
    if args.width is not None:
        patch["total_items"] = args.width
    if args.generations is not None:
        patch["generations"] = args.generations
    if args.delay is not None:
        patch["delay"] = args.delay
    if args.seeds is not None:
        seeds = _parse_seeds(args.seeds)
        patch["seed_indices"] = seeds
        patch["initial_ones"] = len(seeds)
    if patch:
        session.apply_controls_patch(**patch)
    if args.ones is not None:
        session.set_initial_ones(args.ones)
    if args.boundary != "periodic" or args.boundary_value:
        session.engine.configure(boundary=args.boundary, boundary_value=args.boundary_value)


def _make_session(args: argparse.Namespace, scheduler: Scheduler) -> AutomatonSession:
    storage = JsonFileStorage(args.store) if args.star else None
    session = AutomatonSession(
        location_from_arg(args.share),
        storage=storage,
        scheduler=scheduler,
        rng=np.random.default_rng(args.seed),
    )
    _configure_session(session, args)
    return session


def _finish(session: AutomatonSession, args: argparse.Namespace) -> None:
    for line in format_snapshot(session.snapshot(), counts=args.counts):
        print(line)
    print(f"\nShare: {session.location.href}")
    if args.star:
        session.toggle_star()
        print("Starred" if session.is_starred else "Unstarred")
    session.close()


async def _run_realtime(args: argparse.Namespace) -> None:
    session = _make_session(args, AsyncioScheduler())
    session.stop()
    await session.engine.play()
    _finish(session, args)


def main_run(argv: Optional[Sequence[str]] = None) -> None:
    args = _build_run_parser().parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if args.realtime:
        asyncio.run(_run_realtime(args))
        return

    scheduler = ManualScheduler()
    session = _make_session(args, scheduler)
    session.start()
    scheduler.run_until_idle()
    _finish(session, args)


def main_starred(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Manage starred automaton configurations")
    parser.add_argument("--store", type=str, default=str(DEFAULT_STORE))
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--remove", type=str, default=None, help="Share query to unstar")
    group.add_argument("--clear", action="store_true")
    args = parser.parse_args(argv)

    store = StarredConfigStore(JsonFileStorage(args.store))
    if args.remove is not None:
        store.remove(location_from_arg(args.remove).search)
    elif args.clear:
        store.clear()

    items = store.items
    if not items:
        print("No starred configurations.")
    for item in items:
        print(f"Rule {int(item.rule_decimal):>3}  {item.search}")
    store.close()


__all__ = ["format_row", "format_snapshot", "location_from_arg", "main_run", "main_starred"]
