"""Tests for the expected-cost command-line example."""

import importlib.util
from pathlib import Path

import pytest

_SCRIPT = Path(__file__).resolve().parents[1] / "examples" / "solve_expected_cost.py"
_spec = importlib.util.spec_from_file_location("solve_expected_cost", _SCRIPT)
_module = importlib.util.module_from_spec(_spec)
_spec.loader.exec_module(_module)
main = _module.main


def test_solves_file(tmp_path, capsys) -> None:
    """Test the two-decimal answer for a file input."""
    path = tmp_path / "network.txt"
    path.write_text("2 1\n0 1 5 0.5\n0 1\n")

    assert main([str(path)]) == 0
    assert capsys.readouterr().out.strip() == "5.00"


def test_charge_on_failure_flag(tmp_path, capsys) -> None:
    """Test that charged retries change the answer."""
    path = tmp_path / "network.txt"
    path.write_text("2 1\n0 1 5 0.5\n0 1\n")

    assert main([str(path), "--charge-on-failure"]) == 0
    assert capsys.readouterr().out.strip() == "10.00"


def test_unreachable_marker(tmp_path, capsys) -> None:
    """Test that unreachable inputs print a marker, not a number."""
    path = tmp_path / "network.txt"
    path.write_text("3 1\n0 1 1 0\n0 2\n")

    assert main([str(path)]) == 0
    assert capsys.readouterr().out.strip() == "unreachable"


def test_malformed_input(tmp_path, capsys) -> None:
    """Test that malformed input is reported on stderr."""
    path = tmp_path / "network.txt"
    path.write_text("2 1\n0 3 1 0\n0 1\n")

    assert main([str(path)]) == 2
    assert "error:" in capsys.readouterr().err


def test_sample(capsys) -> None:
    """Test the demonstration network report."""
    assert main(["--sample"]) == 0

    out = capsys.readouterr().out
    assert "Route: Earth -> Mars -> Saturn -> Zenith" in out
    assert "Expected cost: 30.00" in out


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
