from hexgrid_scanner.calibration import CalibrationSample, calibrate
from hexgrid_scanner.config import RecognitionConfig, load_config, save_config
from hexgrid_scanner.consensus import (
    ConsensusEngine,
    ConsensusResult,
    DetectorOutcomes,
)
from hexgrid_scanner.constants import Algorithm, CoreUpgrade, Zone
from hexgrid_scanner.detection import DetectorResult
from hexgrid_scanner.errors import ConfigurationError, HexGridError, LayoutError
from hexgrid_scanner.hexmath import (
    AxialCoordinate,
    PixelPoint,
    axial_to_pixel,
    is_in_hex_shape,
    pixel_to_axial,
)
from hexgrid_scanner.layout import CoordinateMap, UpgradeSlot, ZoneLayoutMapper
from hexgrid_scanner.pipeline import (
    RecognitionOrchestrator,
    SelectionReport,
    recognize_screenshot,
)
from hexgrid_scanner.regions import NormalizedRegion, ScreenshotRegionProvider
from hexgrid_scanner.scale import ScaleEstimate, ScaleEstimator

__all__ = [
    "Algorithm",
    "AxialCoordinate",
    "CalibrationSample",
    "ConfigurationError",
    "ConsensusEngine",
    "ConsensusResult",
    "CoordinateMap",
    "CoreUpgrade",
    "DetectorOutcomes",
    "DetectorResult",
    "HexGridError",
    "LayoutError",
    "NormalizedRegion",
    "PixelPoint",
    "RecognitionConfig",
    "RecognitionOrchestrator",
    "ScaleEstimate",
    "ScaleEstimator",
    "ScreenshotRegionProvider",
    "SelectionReport",
    "UpgradeSlot",
    "Zone",
    "ZoneLayoutMapper",
    "axial_to_pixel",
    "calibrate",
    "is_in_hex_shape",
    "load_config",
    "pixel_to_axial",
    "recognize_screenshot",
    "save_config",
]
