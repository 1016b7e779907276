"""Сборка согласованного набора правок из сигнатуры и принятых вызовов."""

import logging

from .config import ConversionConfig
from .models import (
    Abort,
    AbortReason,
    CallCandidate,
    ConversionPlan,
    FunctionTarget,
    Location,
    ParameterSpec,
    Planned,
    PlannedCall,
    TextEdit,
)
from .rewrite_generator import (
    apply_byte_edits,
    build_call_replacement,
    build_function_text,
    build_signature_text,
)
from .snapshot import ProjectSnapshot

logger = logging.getLogger(__name__)


class PlanConflict(Exception):
    """Диапазоны правок пересекаются."""

    def __init__(self, message: str, locations: tuple[Location, ...]):
        super().__init__(message)
        self.message = message
        self.locations = locations


class _CallNode:
    """Принятый вызов и вложенные в него принятые вызовы."""

    def __init__(self, candidate: CallCandidate):
        self.candidate = candidate
        self.children: list["_CallNode"] = []


class ConversionPlanner:
    """Планирование правок: вложенные вызовы, внутренние вызовы, проверка пересечений."""

    def __init__(self, snapshot: ProjectSnapshot, config: ConversionConfig):
        self.snapshot = snapshot
        self.config = config

    def plan(
        self,
        target: FunctionTarget,
        specs: list[ParameterSpec],
        accepted: list[CallCandidate],
    ) -> Planned | Abort:
        """
        Построить план.

        Args:
            target: целевая функция
            specs: параметры цели
            accepted: SAFE и принятые REVIEW кандидаты

        Returns:
            Planned с ConversionPlan или Abort(plan-conflict)
        """
        try:
            return Planned(self._build(target, specs, accepted))
        except PlanConflict as e:
            logger.warning(f"[Planner] {e.message}")
            return Abort(AbortReason.PLAN_CONFLICT, e.message, e.locations)

    def preview(self, candidate: CallCandidate, specs: list[ParameterSpec]) -> str:
        """Текст замены одного вызова без учёта вложенных."""
        source = self.snapshot[candidate.file].source
        prefix = source[candidate.start : candidate.args_start].decode("utf-8", errors="replace")
        return build_call_replacement(prefix, candidate.argument_texts, specs)

    def _build(
        self,
        target: FunctionTarget,
        specs: list[ParameterSpec],
        accepted: list[CallCandidate],
    ) -> ConversionPlan:
        function = target.function
        target_source = self.snapshot[target.file].source

        by_file: dict[str, list[CallCandidate]] = {}
        for candidate in accepted:
            by_file.setdefault(candidate.file, []).append(candidate)

        internal: list[PlannedCall] = []
        external: list[PlannedCall] = []
        edits_by_file: dict[str, list[TextEdit]] = {}

        for path, candidates in by_file.items():
            source = self.snapshot[path].source
            for root in self._nest(path, candidates):
                planned = PlannedCall(root.candidate, self._render(source, root, specs))
                candidate = root.candidate
                inside = (
                    path == target.file
                    and function.start <= candidate.start
                    and candidate.end <= function.end
                )
                if not inside:
                    external.append(planned)
                    continue
                if not (function.body_start <= candidate.start and candidate.end <= function.body_end):
                    raise PlanConflict(
                        f"call at {candidate.describe()} is inside the parameter list of '{target.name}'",
                        (self._location(candidate.file, candidate.start),),
                    )
                internal.append(planned)

        body_edits = [
            TextEdit(p.candidate.start, p.candidate.end, p.replacement) for p in internal
        ]
        function_text = build_function_text(
            target_source, function, specs, self.config, target.is_typescript, body_edits
        )
        signature_text = build_signature_text(function, specs, self.config, target.is_typescript)

        edits_by_file[target.file] = [TextEdit(function.start, function.end, function_text)]
        for planned in external:
            edits_by_file.setdefault(planned.candidate.file, []).append(
                TextEdit(planned.candidate.start, planned.candidate.end, planned.replacement)
            )

        for path, edits in edits_by_file.items():
            edits.sort(key=lambda e: e.start)
            self._check_disjoint(path, edits)

        logger.info(
            f"[Planner] {len(internal)} internal and {len(external)} external call edits "
            f"in {len(edits_by_file)} files"
        )
        return ConversionPlan(
            target=target,
            signature_text=signature_text,
            function_text=function_text,
            internal=internal,
            external=external,
            edits_by_file=edits_by_file,
        )

    def _nest(self, path: str, candidates: list[CallCandidate]) -> list[_CallNode]:
        """Вложить вызовы друг в друга по диапазонам; частичное пересечение - конфликт."""
        ordered = sorted(candidates, key=lambda c: (c.start, -c.end))
        roots: list[_CallNode] = []
        stack: list[_CallNode] = []

        for candidate in ordered:
            node = _CallNode(candidate)
            while stack and stack[-1].candidate.end <= candidate.start:
                stack.pop()
            if stack:
                parent = stack[-1].candidate
                if candidate.end > parent.end:
                    raise PlanConflict(
                        f"calls at {parent.describe()} and {candidate.describe()} overlap",
                        (
                            self._location(path, parent.start),
                            self._location(path, candidate.start),
                        ),
                    )
                stack[-1].children.append(node)
            else:
                roots.append(node)
            stack.append(node)

        return roots

    def _render(self, source: bytes, node: _CallNode, specs: list[ParameterSpec]) -> str:
        """Текст замены вызова; вложенные принятые вызовы подставляются в его части."""
        candidate = node.candidate
        if not node.children:
            prefix = source[candidate.start : candidate.args_start].decode("utf-8", errors="replace")
            return build_call_replacement(prefix, candidate.argument_texts, specs)

        spans = [(candidate.start, candidate.args_start)] + list(candidate.argument_ranges)
        patched = {span: [] for span in spans}

        for child in node.children:
            edit = TextEdit(child.candidate.start, child.candidate.end, self._render(source, child, specs))
            span = next(
                (s for s in spans if s[0] <= edit.start and edit.end <= s[1]), None
            )
            if span is None:
                raise PlanConflict(
                    f"call at {child.candidate.describe()} cannot be folded into "
                    f"{candidate.describe()}",
                    (self._location(candidate.file, child.candidate.start),),
                )
            patched[span].append(edit)

        texts = [apply_byte_edits(source, lo, hi, patched[(lo, hi)]) for lo, hi in spans]
        return build_call_replacement(texts[0], texts[1:], specs)

    def _check_disjoint(self, path: str, edits: list[TextEdit]) -> None:
        for before, after in zip(edits, edits[1:]):
            if after.start < before.end:
                raise PlanConflict(
                    f"edits in {path} overlap at offsets {before.start}-{before.end} "
                    f"and {after.start}-{after.end}",
                    (self._location(path, before.start), self._location(path, after.start)),
                )

    def _location(self, path: str, offset: int) -> Location:
        return Location(path, offset, self.snapshot[path].line_of(offset))
