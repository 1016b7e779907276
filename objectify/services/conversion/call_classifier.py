"""Классификация кандидатов: SKIP, SAFE, REVIEW."""

import logging

from .models import (
    CallCandidate,
    Classification,
    ClassificationResult,
    LocationKind,
    ParameterSpec,
    ReasonCode,
)

logger = logging.getLogger(__name__)


def review_order_key(candidate: CallCandidate) -> tuple[int, str, int]:
    """Порядок показа REVIEW: приоритет по убыванию, затем путь и позиция."""
    return (-candidate.score, candidate.file, candidate.start)


class CallClassifier:
    """
    Детерминированная классификация без побочных эффектов.

    Правила применяются по порядку, первое сработавшее определяет состояние:
    1. единственный аргумент - объектный литерал -> SKIP (уже преобразован)
    2. имя не резолвится и вызов через свойство -> REVIEW
    3. аргументов больше, чем параметров -> REVIEW
    4. вызов найден текстом в разметке -> REVIEW
    5. импорт из модуля вне проекта -> REVIEW
    6. иначе -> SAFE
    """

    def __init__(self, specs: list[ParameterSpec]):
        self.specs = specs

    def classify(self, candidate: CallCandidate) -> CallCandidate:
        """Присвоить кандидату состояние и код причины."""
        state, reason = self._decide(candidate)
        candidate.classification = state
        candidate.reason = reason
        return candidate

    def _decide(self, candidate: CallCandidate) -> tuple[Classification, ReasonCode]:
        if candidate.single_object_argument:
            return Classification.SKIP, ReasonCode.ALREADY_CONVERTED

        declaration = candidate.declaration
        unresolved = declaration is None

        if unresolved and candidate.is_property_access:
            return Classification.REVIEW, ReasonCode.UNRESOLVED_PROPERTY_ACCESS

        if len(candidate.argument_texts) > len(self.specs):
            return Classification.REVIEW, ReasonCode.TOO_MANY_ARGS

        if candidate.location_kind == LocationKind.TEXT:
            return Classification.REVIEW, ReasonCode.TEMPLATE_MARKUP

        if declaration is not None and declaration.heuristic:
            return Classification.REVIEW, ReasonCode.UNRESOLVED_IMPORT

        if unresolved:
            return Classification.SAFE, ReasonCode.UNRESOLVED_IDENTIFIER
        return Classification.SAFE, ReasonCode.RESOLVED

    def classify_all(self, candidates: list[CallCandidate]) -> ClassificationResult:
        """
        Классифицировать всех кандидатов.

        Returns:
            ClassificationResult; REVIEW отсортированы в порядке показа
        """
        result = ClassificationResult()

        for candidate in candidates:
            self.classify(candidate)
            if candidate.classification == Classification.SKIP:
                result.skipped.append(candidate)
            elif candidate.classification == Classification.REVIEW:
                result.review.append(candidate)
            else:
                result.safe.append(candidate)

        result.review.sort(key=review_order_key)

        logger.info(
            f"[Classifier] {len(result.safe)} safe, {len(result.review)} to review, "
            f"{result.already_converted} already converted"
        )
        return result
