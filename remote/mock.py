from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import List, Sequence

from kiosk.capture import ImagePayload
from kiosk.errors import KioskError
from kiosk.ranking import MaterialClass, Prediction

DEFAULT_PREDICTIONS: tuple[Prediction, ...] = (
    Prediction(MaterialClass.PLASTIC, 0.92),
    Prediction(MaterialClass.GLASS, 0.05),
    Prediction(MaterialClass.PAPER, 0.02),
    Prediction(MaterialClass.METAL, 0.01),
)


def forced_predictions(material: MaterialClass, confidence: float = 0.91) -> tuple[Prediction, ...]:
    others = [m for m in MaterialClass if m != material]
    remainder = round((1.0 - confidence) / len(others), 4)
    return (Prediction(material, confidence),) + tuple(Prediction(m, remainder) for m in others)


@dataclass
class MockClassifierApi:
    """In-process classification service that returns canned predictions."""

    predictions: Sequence[Prediction] = DEFAULT_PREDICTIONS
    force_material: MaterialClass | None = None
    error: KioskError | None = None
    delay: float = 0.0
    records: List[ImagePayload] = field(default_factory=list)

    async def classify(self, payload: ImagePayload) -> list[Prediction]:
        self.records.append(payload)
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.force_material is not None:
            return list(forced_predictions(self.force_material))
        return list(self.predictions)

    async def health(self) -> bool:
        return self.error is None


__all__ = ["MockClassifierApi", "DEFAULT_PREDICTIONS", "forced_predictions"]
