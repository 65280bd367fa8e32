from __future__ import annotations

from typing import Any, Dict, Optional

from ..core.models import (
    ExecutionResult,
    ExitReason,
    FailureReason,
    FixtureResult,
    JudgeReport,
    LessonCapture,
    LessonOutcome,
    LessonUnit,
    PredicateOutcome,
)

TIME_LIMIT_MESSAGE = "exceeded time limit"
DEFAULT_SUCCESS_MESSAGE = "Correct!"
DEFAULT_FAILURE_MESSAGE = "Not quite. Try again."


class ResultReporter:
    """Shape adaptation only: engine values in, presentation payloads out."""

    def fixture_message(self, result: FixtureResult) -> Optional[str]:
        if result.reason is FailureReason.TIMEOUT:
            return TIME_LIMIT_MESSAGE
        return result.detail

    def fixture_payload(self, result: FixtureResult) -> Dict[str, Any]:
        return {
            "fixtureIndex": result.fixture_index,
            "pass": result.passed,
            "actual": result.actual,
            "expected": result.expected,
            "reason": result.reason.value if result.reason else None,
            "message": self.fixture_message(result),
        }

    def judge_payload(self, report: JudgeReport) -> Dict[str, Any]:
        return {
            "problemId": report.problem_id,
            "languageId": report.language_id,
            "results": [self.fixture_payload(r) for r in report.results],
            "allPassed": report.all_passed,
            "passed": report.passed_count,
            "total": len(report.results),
        }

    def lesson_outcome(self, lesson: LessonUnit, capture: LessonCapture, outcome: PredicateOutcome) -> LessonOutcome:
        default = DEFAULT_SUCCESS_MESSAGE if outcome.success else DEFAULT_FAILURE_MESSAGE
        return LessonOutcome(
            lesson_id=lesson.id,
            success=outcome.success,
            message=outcome.message or default,
            logs=capture.logs,
            rendered_snapshot=capture.rendered_snapshot,
            next_step=lesson.next_step,
            prev_step=lesson.prev_step,
            error=capture.error,
        )

    def lesson_payload(self, outcome: LessonOutcome) -> Dict[str, Any]:
        return {
            "lessonId": outcome.lesson_id,
            "success": outcome.success,
            "message": outcome.message,
            "logs": list(outcome.logs),
            "renderedSnapshot": outcome.rendered_snapshot,
            "nextStep": outcome.next_step,
            "prevStep": outcome.prev_step,
            "error": outcome.error,
        }

    def execution_payload(self, result: ExecutionResult) -> Dict[str, Any]:
        return {
            "stdout": result.stdout,
            "stderr": result.stderr,
            "exitReason": result.exit_reason.value,
            "elapsedMs": result.elapsed_ms,
            "inputExhausted": result.input_exhausted,
            "truncated": result.truncated,
            "message": TIME_LIMIT_MESSAGE if result.exit_reason is ExitReason.TIMEOUT else None,
        }
