from __future__ import annotations

from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, ValidationError

from kiosk.errors import ProtocolViolation
from kiosk.ranking import MaterialClass, Prediction


class PredictionModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    material: MaterialClass = Field(..., alias="class", description="Predicted material")
    confidence: StrictFloat = Field(..., ge=0.0, le=1.0, description="Score between 0 and 1")

    def to_prediction(self) -> Prediction:
        return Prediction(material=self.material, confidence=self.confidence)

    @classmethod
    def from_prediction(cls, prediction: Prediction) -> "PredictionModel":
        return cls(material=prediction.material, confidence=prediction.confidence)


class ClassifyResponse(BaseModel):
    predictions: List[PredictionModel] = Field(..., min_length=1)


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str = "ok"


def parse_predictions(data: Any) -> list[Prediction]:
    """Validate a classify response body, raising ProtocolViolation if malformed."""
    try:
        response = ClassifyResponse.model_validate(data)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'body'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ProtocolViolation(problems) from exc
    return [item.to_prediction() for item in response.predictions]


__all__ = [
    "PredictionModel",
    "ClassifyResponse",
    "ErrorResponse",
    "HealthResponse",
    "parse_predictions",
]
