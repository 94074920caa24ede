"""Unified CLI for hexgrid-scanner.

All commands are registered on a single ``typer.Typer`` app and exposed
via the ``hexgrid-scanner`` console entry-point.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Optional

import typer

from .config import RecognitionConfig, load_config

if TYPE_CHECKING:
    from .calibration import CalibrationSample
    from .pipeline import SelectionReport

app = typer.Typer(
    name="hexgrid-scanner",
    help="Detect selected upgrade icons in hex-grid game screenshots.",
    add_completion=False,
    no_args_is_help=True,
)

# ---------------------------------------------------------------------------
# Shared option types
# ---------------------------------------------------------------------------

ImageArg = Annotated[Path, typer.Argument(help="Path to the screenshot image.")]
LabelsArg = Annotated[Path, typer.Argument(help="Ground-truth labels CSV (slot_id,selected).")]
ConfigOpt = Annotated[
    Optional[Path], typer.Option(help="JSON configuration written by `calibrate`.")
]
StructuralOpt = Annotated[
    bool, typer.Option(help="Also infer scale from the visible grid pitch.")
]


def _require_path(path: Path, label: str, hint: str = "") -> None:
    """Abort with a clear message when *path* is missing."""
    if not path.exists():
        msg = f"{label} not found at {path}."
        if hint:
            msg += f" {hint}"
        raise typer.BadParameter(msg)


def _config(path: Path | None) -> RecognitionConfig:
    if path is None:
        return RecognitionConfig()
    _require_path(path, "Configuration")
    return load_config(path)


@app.callback()
def main(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log debug diagnostics.")
    ] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# ── Layout ────────────────────────────────────────────────────────────────


@app.command()
def layout(
    width: Annotated[Optional[int], typer.Argument(help="Screenshot width.")] = None,
    height: Annotated[Optional[int], typer.Argument(help="Screenshot height.")] = None,
    image: Annotated[
        Optional[Path], typer.Option(help="Take dimensions (and pixels) from an image.")
    ] = None,
    config: ConfigOpt = None,
    structural: StructuralOpt = False,
) -> None:
    """Print the slot coordinate map for a screenshot size."""
    from .layout import ZoneLayoutMapper
    from .pipeline import load_screenshot
    from .scale import ScaleEstimator

    cfg = _config(config)
    pixels = None
    if image is not None:
        _require_path(image, "Image")
        pixels = load_screenshot(image)
        height, width = pixels.shape[:2]
    if width is None or height is None:
        raise typer.BadParameter("Pass WIDTH HEIGHT or --image.")

    estimate = ScaleEstimator(cfg.layout).estimate(
        width, height, pixels if structural else None
    )
    coordinate_map = ZoneLayoutMapper(cfg.layout).map(estimate, width, height)

    print(
        f"Scale {estimate.scale_factor:.3f} ({estimate.method}, conf {estimate.confidence:.2f}) "
        f"| origin ({estimate.grid_origin.x:.1f}, {estimate.grid_origin.y:.1f})\n"
    )
    print(f"{'Slot':<16} {'Zone':<8} {'Center':>16} {'Bounds':>26}")
    print("-" * 70)
    for slot in coordinate_map:
        b = slot.bounds
        print(
            f"{slot.id:<16} {slot.zone.value:<8} "
            f"{f'({slot.center.x:.1f}, {slot.center.y:.1f})':>16} "
            f"{f'[{b.left:.0f},{b.top:.0f} {b.width:.0f}x{b.height:.0f}]':>26}"
        )
    print(
        f"\n{len(coordinate_map.core_slots)} core + "
        f"{len(coordinate_map.regular_slots)} regular slots"
    )


# ── Recognition ───────────────────────────────────────────────────────────


@app.command()
def scan(
    image: ImageArg,
    config: ConfigOpt = None,
    structural: StructuralOpt = False,
    only_selected: Annotated[
        bool, typer.Option(help="Only list slots detected as selected.")
    ] = False,
) -> None:
    """Detect selected icons in a screenshot and print per-slot results."""
    from .pipeline import load_screenshot, recognize_screenshot

    _require_path(image, "Image")
    report = recognize_screenshot(load_screenshot(image), _config(config), structural=structural)

    for slot_id, result in report.results.items():
        if only_selected and not result.selected:
            continue
        flags = "review" if result.needs_review else "ok"
        print(
            f"  {slot_id:<16} | {'selected' if result.selected else '-':<8} "
            f"| Conf {result.confidence:.2f} | Agree {result.agreement:.2f} "
            f"| {result.rule.value:<16} | {flags}"
        )

    stats = report.stats
    print(
        f"\n{stats.selected} selected / {stats.unselected} unselected "
        f"| high {stats.high_confidence}  medium {stats.medium_confidence}  "
        f"low {stats.low_confidence} | avg conf {stats.average_confidence:.2f}"
    )
    if report.review_ids:
        print(f"Needs review: {', '.join(report.review_ids)}")


@app.command()
def accuracy(
    image: ImageArg,
    labels: LabelsArg,
    config: ConfigOpt = None,
    structural: StructuralOpt = False,
) -> None:
    """Compare detector and consensus decisions against ground-truth labels."""
    from .calibration import detector_accuracy
    from .labels import load_labels
    from .pipeline import load_screenshot, recognize_screenshot

    _require_path(image, "Image")
    _require_path(labels, "Labels", "Run `hexgrid-scanner synth` for an example file.")
    truth = load_labels(labels)
    report = recognize_screenshot(load_screenshot(image), _config(config), structural=structural)
    samples = _samples(report, truth)
    if not samples:
        raise typer.BadParameter("No labeled slot matches the screenshot's coordinate map.")

    print(f"{'Algorithm':<12} {'Accuracy':>9}")
    print("-" * 22)
    for algorithm, acc in detector_accuracy(samples).items():
        print(f"{algorithm.value:<12} {acc:>9.1%}")

    correct = sum(1 for s in samples if report.results[s.slot_id].selected == s.actual_selected)
    print("-" * 22)
    print(f"{'consensus':<12} {correct / len(samples):>9.1%}  ({correct}/{len(samples)})")

    wrong = [s.slot_id for s in samples if report.results[s.slot_id].selected != s.actual_selected]
    if wrong:
        print(f"\nMisclassified: {', '.join(wrong)}")


@app.command()
def calibrate(
    image: ImageArg,
    labels: LabelsArg,
    output: Annotated[Path, typer.Option(help="Where to write the calibrated JSON.")] = Path(
        "hexgrid_config.json"
    ),
    config: ConfigOpt = None,
    structural: StructuralOpt = False,
) -> None:
    """Nudge weights and thresholds toward labeled ground truth."""
    from .calibration import calibrate as run_calibration
    from .config import save_config
    from .labels import load_labels
    from .pipeline import load_screenshot, recognize_screenshot

    _require_path(image, "Image")
    _require_path(labels, "Labels")
    cfg = _config(config)
    truth = load_labels(labels)
    report = recognize_screenshot(
        load_screenshot(image), cfg, keep_regions=True, structural=structural
    )
    samples = _samples(report, truth)
    calibrated = run_calibration(cfg, samples)
    if calibrated is cfg:
        print(f"Only {len(samples)} labeled slots; calibration needs more. Nothing written.")
        raise typer.Exit(code=1)

    save_config(calibrated, output)
    print(f"{'Algorithm':<12} {'Before':>8} {'After':>8}")
    print("-" * 30)
    for algorithm, after in calibrated.weights.as_dict().items():
        print(f"{algorithm.value:<12} {cfg.weights.weight(algorithm):>8.3f} {after:>8.3f}")
    print(f"\nSaved to {output.resolve()}")


# ── Synthetic data ────────────────────────────────────────────────────────


@app.command()
def synth(
    output: Annotated[Path, typer.Option(help="Screenshot PNG to write.")] = Path(
        "synthetic/screenshot.png"
    ),
    labels: Annotated[Path, typer.Option(help="Labels CSV to write.")] = Path(
        "synthetic/labels.csv"
    ),
    width: Annotated[int, typer.Option(help="Screenshot width.")] = 1920,
    height: Annotated[int, typer.Option(help="Screenshot height.")] = 1080,
    selected_fraction: Annotated[
        float, typer.Option(help="Share of slots drawn as selected.")
    ] = 0.3,
    seed: Annotated[int, typer.Option(help="Random seed.")] = 42,
) -> None:
    """Render a labeled synthetic screenshot for trying out the pipeline."""
    import cv2
    import numpy as np

    from .labels import save_labels
    from .layout import ZoneLayoutMapper
    from .scale import ScaleEstimator
    from .synthetic import synthetic_screenshot

    cfg = RecognitionConfig()
    rng = np.random.default_rng(seed)
    estimate = ScaleEstimator(cfg.layout).estimate(width, height)
    coordinate_map = ZoneLayoutMapper(cfg.layout).map(estimate, width, height)
    truth = {slot_id: bool(rng.random() < selected_fraction) for slot_id in coordinate_map.ids}
    image = synthetic_screenshot(
        coordinate_map, width, height, [k for k, v in truth.items() if v], rng
    )

    output.parent.mkdir(parents=True, exist_ok=True)
    cv2.imwrite(str(output), image)
    save_labels(labels, truth)
    print(f"Wrote {output} ({len(truth)} slots, {sum(truth.values())} selected)")
    print(f"Wrote {labels}")


def _samples(report: SelectionReport, truth: dict[str, bool]) -> list[CalibrationSample]:
    from .calibration import CalibrationSample

    return [
        CalibrationSample(slot_id, truth[slot_id], analysis.outcomes, analysis.region)
        for slot_id, analysis in report.analyses.items()
        if slot_id in truth
    ]
