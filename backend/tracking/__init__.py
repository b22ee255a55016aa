"""Bridge crossing detection package."""

from .detector import BridgeDetector
from .types import CrossingEvent, DetectorConfig, EvictionResult, TrackedVessel

__all__ = [
    "BridgeDetector",
    "CrossingEvent",
    "DetectorConfig",
    "EvictionResult",
    "TrackedVessel",
]
