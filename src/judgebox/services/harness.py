from __future__ import annotations

from typing import List, Optional

import structlog

from ..core.models import (
    ExecutionResult,
    ExitReason,
    FailureReason,
    Fixture,
    FixtureResult,
    JudgeReport,
    Problem,
)
from ..core.utils import last_line
from ..errors import UnsupportedLanguageError
from .compare import normalized_text, outputs_match
from .host import SandboxHost

log = structlog.get_logger(__name__)

INPUT_EXHAUSTED_DETAIL = "InputExhausted: program read more lines than the input provides"


def _detail(result: ExecutionResult) -> Optional[str]:
    if result.input_exhausted:
        return INPUT_EXHAUSTED_DETAIL
    if result.exit_reason is ExitReason.COMPILE_ERROR:
        return (result.stderr or "").strip() or None
    return last_line(result.stderr) or None


def grade(index: int, fixture: Fixture, result: ExecutionResult) -> FixtureResult:
    """Turn one execution into a verdict for one fixture."""
    actual = normalized_text(result.stdout)
    expected = normalized_text(fixture.expected_output)

    if result.exit_reason is ExitReason.COMPILE_ERROR:
        reason: Optional[FailureReason] = FailureReason.COMPILE_ERROR
    elif result.exit_reason is ExitReason.TIMEOUT:
        reason = FailureReason.TIMEOUT
    elif result.exit_reason is ExitReason.RUNTIME_ERROR:
        reason = FailureReason.RUNTIME_ERROR
    elif result.truncated or not outputs_match(result.stdout, fixture.expected_output):
        reason = FailureReason.WRONG_OUTPUT
    else:
        reason = None

    if reason is None:
        return FixtureResult(fixture_index=index, passed=True, actual=actual, expected=expected)
    if reason is FailureReason.WRONG_OUTPUT:
        detail = "output exceeded the capture limit" if result.truncated else None
    else:
        detail = _detail(result)
    return FixtureResult(
        fixture_index=index,
        passed=False,
        actual=actual,
        expected=expected,
        reason=reason,
        detail=detail,
    )


class TestHarness:
    """Judges a submission against every fixture of a problem, in order."""

    __test__ = False  # not a pytest class

    def __init__(self, host: SandboxHost):
        self.host = host

    async def judge(
        self,
        problem: Problem,
        language_id: str,
        source: str,
        timeout_ms: Optional[int] = None,
    ) -> JudgeReport:
        if language_id not in problem.starters:
            raise UnsupportedLanguageError(problem.id, language_id)

        results: List[FixtureResult] = []
        # compile once, then a fresh process per fixture
        async with self.host.prepared(source, language_id) as program:
            for index, fixture in enumerate(problem.fixtures):
                execution = await self.host.run(program, fixture.input, timeout_ms)
                results.append(grade(index, fixture, execution))

        report = JudgeReport(problem_id=problem.id, language_id=language_id, results=tuple(results))
        log.info(
            "judge.finished",
            problem=problem.id,
            language=language_id,
            passed=report.passed_count,
            total=len(report.results),
        )
        return report
