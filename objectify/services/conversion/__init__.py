"""Движок преобразования позиционных параметров в деструктурированный объект."""

from .config import ConversionConfig
from .models import (
    Abort,
    AbortReason,
    CallCandidate,
    Classification,
    ConversionPlan,
    ConversionResult,
    ReasonCode,
    ReviewDecision,
    ReviewRequest,
    TextEdit,
)
from .service import ConversionService, DecisionProvider, EditSink

__all__ = [
    "Abort",
    "AbortReason",
    "CallCandidate",
    "Classification",
    "ConversionConfig",
    "ConversionPlan",
    "ConversionResult",
    "ConversionService",
    "DecisionProvider",
    "EditSink",
    "ReasonCode",
    "ReviewDecision",
    "ReviewRequest",
    "TextEdit",
]
