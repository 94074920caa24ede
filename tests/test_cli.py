"""Tests for the command-line interface."""

from pathlib import Path

from typer.testing import CliRunner

from hexgrid_scanner.cli import app
from hexgrid_scanner.labels import load_labels

runner = CliRunner()


class TestLayoutCommand:
    def test_prints_slot_table(self):
        result = runner.invoke(app, ["layout", "1920", "1080"])
        assert result.exit_code == 0
        assert "core:weapon" in result.output
        assert "3 core + 40 regular slots" in result.output

    def test_requires_dimensions(self):
        result = runner.invoke(app, ["layout"])
        assert result.exit_code != 0


class TestSyntheticRoundTrip:
    def test_synth_then_scan_and_accuracy(self, tmp_path: Path):
        image = tmp_path / "shot.png"
        labels = tmp_path / "labels.csv"
        result = runner.invoke(
            app, ["synth", "--output", str(image), "--labels", str(labels), "--seed", "7"]
        )
        assert result.exit_code == 0, result.output
        assert image.exists()
        assert len(load_labels(labels)) == 43

        result = runner.invoke(app, ["scan", str(image)])
        assert result.exit_code == 0, result.output
        assert "core:weapon" in result.output

        result = runner.invoke(app, ["accuracy", str(image), str(labels)])
        assert result.exit_code == 0, result.output
        assert "consensus" in result.output

    def test_calibrate_writes_config(self, tmp_path: Path):
        image = tmp_path / "shot.png"
        labels = tmp_path / "labels.csv"
        config = tmp_path / "calibrated.json"
        runner.invoke(app, ["synth", "--output", str(image), "--labels", str(labels)])
        result = runner.invoke(
            app, ["calibrate", str(image), str(labels), "--output", str(config)]
        )
        assert result.exit_code == 0, result.output
        assert config.exists()

        result = runner.invoke(app, ["scan", str(image), "--config", str(config)])
        assert result.exit_code == 0, result.output

    def test_missing_image(self, tmp_path: Path):
        result = runner.invoke(app, ["scan", str(tmp_path / "nope.png")])
        assert result.exit_code != 0
