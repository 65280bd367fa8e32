from judgebox.core.models import (
    ExecutionResult,
    ExitReason,
    FailureReason,
    FixtureResult,
    JudgeReport,
    LessonCapture,
    LessonKind,
    LessonUnit,
    PredicateOutcome,
)
from judgebox.services.reporter import (
    DEFAULT_FAILURE_MESSAGE,
    DEFAULT_SUCCESS_MESSAGE,
    TIME_LIMIT_MESSAGE,
    ResultReporter,
)


def test_judge_payload_shape():
    report = JudgeReport(
        problem_id="p",
        language_id="typescript",
        results=(
            FixtureResult(0, True, "5", "5"),
            FixtureResult(1, False, "", "50", FailureReason.TIMEOUT, "[timeout] exceeded 5000ms"),
            FixtureResult(2, False, "", "1", FailureReason.RUNTIME_ERROR, "TypeError: x is undefined"),
        ),
    )
    payload = ResultReporter().judge_payload(report)

    assert payload["allPassed"] is False
    assert payload["passed"] == 1
    assert payload["total"] == 3
    first, timeout, crash = payload["results"]
    assert first == {"fixtureIndex": 0, "pass": True, "actual": "5", "expected": "5", "reason": None, "message": None}
    assert timeout["reason"] == "TIMEOUT"
    assert timeout["message"] == TIME_LIMIT_MESSAGE
    assert crash["message"] == "TypeError: x is undefined"


def test_lesson_outcome_threads_steps_and_defaults_message():
    lesson = LessonUnit(
        id="ts-2",
        kind=LessonKind.SCRIPT,
        default_source="",
        validate=lambda s, l, r: True,
        next_step="ts-3",
        prev_step="ts-1",
    )
    capture = LessonCapture(rendered_snapshot="", logs=("a", "⚠️ b"))
    reporter = ResultReporter()

    ok = reporter.lesson_outcome(lesson, capture, PredicateOutcome(True))
    assert ok.message == DEFAULT_SUCCESS_MESSAGE
    assert (ok.next_step, ok.prev_step) == ("ts-3", "ts-1")

    bad = reporter.lesson_outcome(lesson, capture, PredicateOutcome(False))
    assert bad.message == DEFAULT_FAILURE_MESSAGE

    payload = reporter.lesson_payload(reporter.lesson_outcome(lesson, capture, PredicateOutcome(True, "🎯 done")))
    assert payload == {
        "lessonId": "ts-2",
        "success": True,
        "message": "🎯 done",
        "logs": ["a", "⚠️ b"],
        "renderedSnapshot": "",
        "nextStep": "ts-3",
        "prevStep": "ts-1",
        "error": None,
    }


def test_execution_payload_timeout_message():
    result = ExecutionResult("partial\n", "[timeout] exceeded 100ms", ExitReason.TIMEOUT, 103)
    payload = ResultReporter().execution_payload(result)
    assert payload["exitReason"] == "timeout"
    assert payload["stdout"] == "partial\n"
    assert payload["message"] == TIME_LIMIT_MESSAGE

    done = ResultReporter().execution_payload(ExecutionResult("5\n", "", ExitReason.COMPLETED, 20))
    assert done["message"] is None
