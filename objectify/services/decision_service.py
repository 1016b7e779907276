"""Источники решений по REVIEW-кандидатам."""

import asyncio
import logging

from objectify.services.conversion.models import ReviewDecision, ReviewRequest

logger = logging.getLogger(__name__)

ANSWERS = {
    "y": ReviewDecision.ACCEPT,
    "yes": ReviewDecision.ACCEPT,
    "c": ReviewDecision.ACCEPT,
    "convert": ReviewDecision.ACCEPT,
    "n": ReviewDecision.REJECT,
    "no": ReviewDecision.REJECT,
    "s": ReviewDecision.REJECT,
    "skip": ReviewDecision.REJECT,
    "a": ReviewDecision.ABORT_ALL,
    "abort": ReviewDecision.ABORT_ALL,
}


class ConsoleDecisionProvider:
    """Вопрос в терминале: Convert / Skip / Abort."""

    def __init__(self, input_func=input, output_func=print):
        self._input = input_func
        self._output = output_func

    async def review_candidate(self, request: ReviewRequest) -> ReviewDecision:
        candidate = request.candidate
        self._output(
            f"\n[{request.index}/{request.total}] {candidate.describe()} "
            f"({candidate.reason.value})"
        )
        self._output(f"  - {request.original_text}")
        self._output(f"  + {request.preview_text}")

        while True:
            # input() блокирует, поэтому уходит в поток
            answer = await asyncio.to_thread(
                self._input, f"Convert this call to '{request.function_name}'? [c]onvert/[s]kip/[a]bort: "
            )
            decision = ANSWERS.get(answer.strip().lower())
            if decision is not None:
                return decision
            self._output("  Please answer c, s or a.")


class StaticDecisionProvider:
    """Один и тот же ответ на все вопросы (review_mode accept/reject/abort)."""

    def __init__(self, decision: ReviewDecision):
        self.decision = decision

    async def review_candidate(self, request: ReviewRequest) -> ReviewDecision:
        logger.debug(f"[Review] Auto-{self.decision.value} {request.candidate.describe()}")
        return self.decision


class ScriptedDecisionProvider:
    """Заранее заданные ответы по порядку; запоминает заданные вопросы."""

    def __init__(self, answers: list[ReviewDecision], default: ReviewDecision = ReviewDecision.REJECT):
        self._answers = list(answers)
        self.default = default
        self.requests: list[ReviewRequest] = []

    async def review_candidate(self, request: ReviewRequest) -> ReviewDecision:
        self.requests.append(request)
        if self._answers:
            return self._answers.pop(0)
        return self.default


def provider_for_mode(review_mode: str) -> ConsoleDecisionProvider | StaticDecisionProvider:
    """Источник решений по значению review_mode из конфигурации."""
    mode = review_mode.strip().lower()
    if mode == "accept":
        return StaticDecisionProvider(ReviewDecision.ACCEPT)
    if mode == "reject":
        return StaticDecisionProvider(ReviewDecision.REJECT)
    if mode == "abort":
        return StaticDecisionProvider(ReviewDecision.ABORT_ALL)
    return ConsoleDecisionProvider()
