from __future__ import annotations

from pathlib import Path

import pytest

from elementaryCA.cli import format_row, location_from_arg, main_run, main_starred


def test_format_row() -> None:
    assert format_row([1, 0, 1]) == "█·█"


def test_location_from_bare_query() -> None:
    assert location_from_arg("r=30&w=8").search == "?r=30&w=8"
    assert location_from_arg("https://x.org/p?r=1").search == "?r=1"
    assert location_from_arg("").search == ""


def test_run_prints_history_and_share_link(capsys: pytest.CaptureFixture[str]) -> None:
    main_run(["?r=90&w=9&g=3&s=CAA", "--counts"])
    out = capsys.readouterr().out.splitlines()
    assert out[0].startswith("Rule 90 (01011010) | 9 cells | generation 3/3")
    assert out[1] == "····█···· " + "   1"
    assert out[4] == "·█·█·█·█· " + "   4"
    assert out[-1] == "Share: /?r=90&w=9&g=3&d=10&s=CAA"


def test_run_with_flags_and_star(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    store = tmp_path / "starred.json"
    main_run(["--rule", "30", "--width", "8", "--generations", "2", "--seeds", "0", "--star", "--store", str(store)])
    out = capsys.readouterr().out
    assert "Starred" in out
    main_starred(["--store", str(store)])
    listing = capsys.readouterr().out
    assert "Rule  30  ?r=30&w=8&g=2&d=10&s=gA" in listing
    main_starred(["--store", str(store), "--remove", "r=30&w=8&g=2&d=10&s=gA"])
    assert "No starred configurations." in capsys.readouterr().out
