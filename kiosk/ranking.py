from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Sequence

from .errors import EmptyPredictionSet

# Tier boundaries are exclusive: exactly 0.85 is medium, exactly 0.70 is low.
HIGH_CONFIDENCE_THRESHOLD: float = 0.85
MEDIUM_CONFIDENCE_THRESHOLD: float = 0.70

# Recycling guidance is only shown when the top prediction reaches this score.
TIP_THRESHOLD: float = 0.70


class MaterialClass(StrEnum):
    PLASTIC = "plastic"
    PAPER = "paper"
    METAL = "metal"
    GLASS = "glass"


class ConfidenceTier(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


RECYCLING_TIPS: dict[MaterialClass, str] = {
    MaterialClass.PLASTIC: "Rinse plastic containers before recycling. Check local guidelines for accepted types.",
    MaterialClass.PAPER: "Keep paper dry and clean. Remove any non-paper components like plastic windows.",
    MaterialClass.METAL: "Rinse cans and containers. Separate aluminum and steel if required.",
    MaterialClass.GLASS: "Rinse glass containers. Sort by color if required. Do not include broken glass.",
}


@dataclass(frozen=True)
class Prediction:
    material: MaterialClass
    confidence: float


def top_prediction(predictions: Sequence[Prediction]) -> Prediction:
    """Return the most confident prediction.

    This is a left-to-right scan rather than a sort: on an exact tie the
    earliest entry in service rank order is kept.
    """
    if not predictions:
        raise EmptyPredictionSet("prediction set is empty")
    best = predictions[0]
    for candidate in predictions[1:]:
        if candidate.confidence > best.confidence:
            best = candidate
    return best


def confidence_tier(prediction: Prediction) -> ConfidenceTier:
    if prediction.confidence > HIGH_CONFIDENCE_THRESHOLD:
        return ConfidenceTier.HIGH
    if prediction.confidence > MEDIUM_CONFIDENCE_THRESHOLD:
        return ConfidenceTier.MEDIUM
    return ConfidenceTier.LOW


def max_confidence(predictions: Sequence[Prediction]) -> float:
    return top_prediction(predictions).confidence


def recycling_tip(prediction: Prediction) -> str | None:
    if prediction.confidence < TIP_THRESHOLD:
        return None
    return RECYCLING_TIPS[prediction.material]


def format_percent(confidence: float) -> str:
    return f"{round(confidence * 100)}%"


__all__ = [
    "MaterialClass",
    "ConfidenceTier",
    "Prediction",
    "HIGH_CONFIDENCE_THRESHOLD",
    "MEDIUM_CONFIDENCE_THRESHOLD",
    "TIP_THRESHOLD",
    "RECYCLING_TIPS",
    "top_prediction",
    "confidence_tier",
    "max_confidence",
    "recycling_tip",
    "format_percent",
]
