"""Главный сервис преобразования (фасад и драйвер одной попытки)."""

import asyncio
import logging
from typing import Protocol

from .ast_parser import ASTParser
from .call_classifier import CallClassifier
from .call_scanner import CallScanner
from .config import ConversionConfig
from .conversion_planner import ConversionPlanner
from .declaration_resolver import SyntacticResolver
from .models import (
    Abort,
    AbortReason,
    CallCandidate,
    ClassificationResult,
    ConversionResult,
    ParameterSpec,
    ReviewDecision,
    ReviewRequest,
    TextEdit,
)
from .parameter_analyzer import ParameterAnalyzer
from .snapshot import ProjectSnapshot, normalize_path
from .target_locator import TargetLocator, offset_from_line_column

logger = logging.getLogger(__name__)


class DecisionProvider(Protocol):
    """Ответ человека по одному REVIEW-кандидату."""

    async def review_candidate(self, request: ReviewRequest) -> ReviewDecision: ...


class EditSink(Protocol):
    """Атомарное применение правок: всё или ничего."""

    def apply_atomic(
        self,
        edits_by_file: dict[str, list[TextEdit]],
        originals: dict[str, bytes] | None = None,
    ) -> bool: ...


class ConversionService:
    """Преобразование параметров функции под курсором и всех её вызовов."""

    def __init__(
        self,
        repo_path: str,
        decisions: DecisionProvider,
        edit_sink: EditSink | None = None,
        config: ConversionConfig | None = None,
        preview_delay: float = 0.0,
        dry_run: bool = False,
    ):
        self.repo_path = repo_path
        self.config = config if config is not None else ConversionConfig()
        self.decisions = decisions
        self.edit_sink = edit_sink
        self.preview_delay = preview_delay
        self.dry_run = dry_run or edit_sink is None

        self.parser = ASTParser(self.config)
        self.locator = TargetLocator()
        self.analyzer = ParameterAnalyzer()

    async def convert_at(self, target_file: str, line: int, column: int) -> ConversionResult:
        """Преобразовать функцию по строке и колонке (обе с 1)."""
        snapshot = ProjectSnapshot.load(self.repo_path, self.config, target_file, self.parser)
        if isinstance(snapshot, Abort):
            return self._aborted(snapshot)
        source = snapshot.value[normalize_path(target_file)].source
        offset = offset_from_line_column(source, line, column)
        return await self._run(snapshot.value, target_file, offset)

    async def convert(self, target_file: str, offset: int) -> ConversionResult:
        """
        Преобразовать функцию, содержащую offset.

        Args:
            target_file: путь относительно корня проекта
            offset: байтовое смещение курсора

        Returns:
            ConversionResult; при прерывании ни один файл не изменён
        """
        snapshot = ProjectSnapshot.load(self.repo_path, self.config, target_file, self.parser)
        if isinstance(snapshot, Abort):
            return self._aborted(snapshot)
        return await self._run(snapshot.value, target_file, offset)

    async def _run(self, snapshot: ProjectSnapshot, target_file: str, offset: int) -> ConversionResult:
        logger.info("[Convert] Starting conversion...")

        located = self.locator.locate(snapshot[normalize_path(target_file)], offset)
        if isinstance(located, Abort):
            return self._aborted(located)
        target = located.value

        analyzed = self.analyzer.analyze(target, snapshot[target.file].source)
        if isinstance(analyzed, Abort):
            return self._aborted(analyzed)
        specs = analyzed.value

        # Кэши резолвера живут только в этой попытке
        resolver = SyntacticResolver(snapshot, self.config)
        scanned = CallScanner(snapshot, resolver, self.config).scan(target)
        if isinstance(scanned, Abort):
            return self._aborted(scanned)

        classified = CallClassifier(specs).classify_all(scanned.value)
        planner = ConversionPlanner(snapshot, self.config)

        reviewed = await self._review(target.name, classified, specs, planner)
        if isinstance(reviewed, Abort):
            return self._aborted(reviewed, classified)
        accepted, rejected = reviewed

        planned = planner.plan(target, specs, classified.safe + accepted)
        if isinstance(planned, Abort):
            return self._aborted(planned, classified, len(accepted), len(rejected))
        plan = planned.plan

        result = ConversionResult(
            status="dry-run" if self.dry_run else "converted",
            plan=plan,
            safe_count=len(classified.safe),
            accepted_count=len(accepted),
            rejected_count=len(rejected),
            already_converted_count=classified.already_converted,
        )

        if self.dry_run:
            logger.info(f"[Convert] Dry run: {len(plan.files)} files would be modified")
            return result

        if not self.edit_sink.apply_atomic(plan.edits_by_file, snapshot.sources()):
            failure = Abort(AbortReason.EDIT_FAILED, "edits could not be applied atomically")
            return self._aborted(failure, classified, len(accepted), len(rejected))

        logger.info(f"[Convert] Converted '{target.name}': {len(plan.files)} files modified")
        return result

    async def _review(
        self,
        function_name: str,
        classified: ClassificationResult,
        specs: list[ParameterSpec],
        planner: ConversionPlanner,
    ) -> tuple[list[CallCandidate], list[CallCandidate]] | Abort:
        """
        Спросить решение по каждому REVIEW-кандидату в детерминированном порядке.

        Returns:
            (принятые, отклонённые) или Abort(user-cancellation)
        """
        accepted = []
        rejected = []
        total = len(classified.review)

        for index, candidate in enumerate(classified.review, 1):
            source = planner.snapshot[candidate.file].source
            request = ReviewRequest(
                candidate=candidate,
                index=index,
                total=total,
                original_text=source[candidate.start : candidate.end].decode("utf-8", errors="replace"),
                preview_text=planner.preview(candidate, specs),
                function_name=function_name,
            )

            if self.preview_delay > 0:
                await asyncio.sleep(self.preview_delay)

            decision = await self.decisions.review_candidate(request)
            logger.info(
                f"[Review] {index}/{total} {candidate.describe()} "
                f"({candidate.reason.value}): {decision.value}"
            )

            if decision == ReviewDecision.ABORT_ALL:
                return Abort(
                    AbortReason.USER_CANCELLATION,
                    f"conversion cancelled at {candidate.describe()}",
                )
            if decision == ReviewDecision.ACCEPT:
                accepted.append(candidate)
            else:
                rejected.append(candidate)

        return accepted, rejected

    def _aborted(
        self,
        abort: Abort,
        classified: ClassificationResult | None = None,
        accepted: int = 0,
        rejected: int = 0,
    ) -> ConversionResult:
        logger.warning(f"[Convert] Aborted: {abort.describe()}")
        return ConversionResult(
            status="aborted",
            abort=abort,
            safe_count=len(classified.safe) if classified else 0,
            accepted_count=accepted,
            rejected_count=rejected,
            already_converted_count=classified.already_converted if classified else 0,
        )
