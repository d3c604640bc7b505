# Prioritization scores for ideas
# ICE: impact x confidence x ease, scaled to 0..10
# RICE: reach x impact x confidence / effort

from typing import Optional

from idealauncher.errors import APIError, ErrorType
from idealauncher.models import ScoreRequest


def ice_score(impact: float, confidence: float, ease: float) -> float:
    return round(impact * confidence * ease / 100, 2)


def rice_score(reach: float, impact: float, confidence: float, effort: float) -> float:
    if effort <= 0:
        raise ValueError("Effort must be positive")
    return round(reach * impact * confidence / effort, 2)


def validate_framework_fields(request: ScoreRequest) -> Optional[str]:
    """Return an error message when fields don't fit the framework."""
    if request.framework == "ICE":
        if request.ease is None:
            return "Ease is required for ICE framework"
        if request.reach is not None or request.effort is not None:
            return "Reach and effort are not valid for ICE framework"
    else:
        if request.reach is None or request.effort is None:
            return "Reach and effort are required for RICE framework"
        if request.ease is not None:
            return "Ease is not valid for RICE framework"
    return None


def compute_total(request: ScoreRequest) -> float:
    error = validate_framework_fields(request)
    if error:
        raise APIError(error, 400, ErrorType.VALIDATION)
    if request.framework == "ICE":
        return ice_score(request.impact, request.confidence, request.ease)
    return rice_score(request.reach, request.impact, request.confidence, request.effort)


def score_field(framework: str) -> str:
    """Denormalized column on the idea that holds the best score."""
    return "iceScore" if framework == "ICE" else "riceScore"
