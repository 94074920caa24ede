"""Tests for the ground-truth label CSV module."""

from pathlib import Path

import pytest

from hexgrid_scanner.labels import load_labels, save_labels

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_HEADER = "slot_id,selected"

_ROWS = [
    ("core:weapon", 1),
    ("core:body", 0),
    ("regular:2,-1", 1),
]


def _write_csv(path: Path, rows: list[tuple[str, int]] | None = None) -> None:
    """Write a well-formed labels CSV to *path*."""
    rows = rows if rows is not None else _ROWS
    lines = [_HEADER] + [f'"{slot_id}",{value}' for slot_id, value in rows]
    path.write_text("\n".join(lines) + "\n")


# ---------------------------------------------------------------------------
# load_labels
# ---------------------------------------------------------------------------


class TestLoadLabels:
    def test_returns_all_slots(self, tmp_path: Path):
        csv_path = tmp_path / "labels.csv"
        _write_csv(csv_path)
        labels = load_labels(csv_path)
        assert labels == {"core:weapon": True, "core:body": False, "regular:2,-1": True}

    def test_values_are_bools(self, tmp_path: Path):
        csv_path = tmp_path / "labels.csv"
        _write_csv(csv_path)
        assert all(isinstance(v, bool) for v in load_labels(csv_path).values())

    def test_header_only(self, tmp_path: Path):
        csv_path = tmp_path / "labels.csv"
        csv_path.write_text(_HEADER + "\n")
        assert load_labels(csv_path) == {}

    def test_missing_file_raises(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_labels(tmp_path / "nonexistent.csv")

    def test_bad_value_names_line(self, tmp_path: Path):
        csv_path = tmp_path / "labels.csv"
        _write_csv(csv_path, [("core:weapon", 1), ("core:body", 2)])
        with pytest.raises(ValueError, match=":3:"):
            load_labels(csv_path)


# ---------------------------------------------------------------------------
# save_labels
# ---------------------------------------------------------------------------


class TestSaveLabels:
    def test_round_trip(self, tmp_path: Path):
        labels = {"regular:0,0": False, "core:shield": True}
        csv_path = tmp_path / "nested" / "labels.csv"
        save_labels(csv_path, labels)
        assert load_labels(csv_path) == labels

    def test_sorted_by_slot_id(self, tmp_path: Path):
        csv_path = tmp_path / "labels.csv"
        save_labels(csv_path, {"regular:1,0": True, "core:body": False})
        lines = csv_path.read_text().splitlines()
        assert lines == [_HEADER, "core:body,0", '"regular:1,0",1']

    def test_no_temp_file_left(self, tmp_path: Path):
        csv_path = tmp_path / "labels.csv"
        save_labels(csv_path, {"core:weapon": True})
        assert [p.name for p in tmp_path.iterdir()] == ["labels.csv"]
