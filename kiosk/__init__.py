from __future__ import annotations

from .capture import CameraAdapter, FileAdapter, ImagePayload
from .controller import SubmissionController
from .coordinator import AppState, AppStateCoordinator, Mode
from .ranking import ConfidenceTier, MaterialClass, Prediction, confidence_tier, top_prediction
from .validation import validate

__all__ = [
    "AppState",
    "AppStateCoordinator",
    "CameraAdapter",
    "ConfidenceTier",
    "FileAdapter",
    "ImagePayload",
    "MaterialClass",
    "Mode",
    "Prediction",
    "SubmissionController",
    "confidence_tier",
    "top_prediction",
    "validate",
]
