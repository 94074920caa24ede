"""Ground-truth selection labels stored as CSV.

Columns: ``slot_id, selected`` where ``selected`` is ``0`` or ``1``. Used by
the ``accuracy`` and ``calibrate`` CLI commands.
"""

from __future__ import annotations

import csv
from pathlib import Path

_HEADER = ["slot_id", "selected"]


def load_labels(labels_path: Path) -> dict[str, bool]:
    """Read ``{slot_id: selected}`` from *labels_path*.

    Raises:
        FileNotFoundError: If *labels_path* does not exist.
        ValueError: If a ``selected`` cell is not ``0`` or ``1``.
    """
    if not labels_path.exists():
        raise FileNotFoundError(f"Labels file not found: {labels_path}")

    labels: dict[str, bool] = {}
    with open(labels_path, newline="") as f:
        for line, row in enumerate(csv.DictReader(f), start=2):
            value = row["selected"].strip()
            if value not in ("0", "1"):
                raise ValueError(f"{labels_path}:{line}: selected must be 0 or 1, got {value!r}")
            labels[row["slot_id"].strip()] = value == "1"
    return labels


def save_labels(labels_path: Path, labels: dict[str, bool]) -> None:
    """Atomically write *labels* to *labels_path*, sorted by slot id."""
    labels_path.parent.mkdir(parents=True, exist_ok=True)
    tmp = labels_path.with_suffix(".tmp")
    with open(tmp, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(_HEADER)
        for slot_id in sorted(labels):
            writer.writerow([slot_id, int(labels[slot_id])])
    tmp.replace(labels_path)
