from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple


class ExitReason(str, Enum):
    COMPLETED = "completed"
    TIMEOUT = "timeout"
    RUNTIME_ERROR = "runtimeError"
    COMPILE_ERROR = "compileError"


class FailureReason(str, Enum):
    WRONG_OUTPUT = "WRONG_OUTPUT"
    TIMEOUT = "TIMEOUT"
    RUNTIME_ERROR = "RUNTIME_ERROR"
    COMPILE_ERROR = "COMPILE_ERROR"


class RunMode(str, Enum):
    STDIO = "stdio"          # judged problems: stdin in, stdout out
    SCRIPT = "script"        # console lessons: logs captured
    COMPONENT = "component"  # component lessons: logs + rendered markup


class LessonKind(str, Enum):
    COMPONENT = "component"
    STYLE = "style"
    SCRIPT = "script"


@dataclass
class Limits:
    cpu_seconds: int
    memory_bytes: int  # 0 = unlimited
    nofile: int
    fsize_bytes: int


@dataclass(frozen=True)
class Fixture:
    input: str
    expected_output: str


@dataclass(frozen=True)
class Problem:
    id: str
    starters: Mapping[str, str]   # language id -> starter source
    fixtures: Tuple[Fixture, ...]
    sample: Fixture
    title: str = ""

    def __post_init__(self) -> None:
        if not self.fixtures:
            raise ValueError(f"problem {self.id!r} needs at least one fixture")

    @property
    def languages(self) -> Tuple[str, ...]:
        return tuple(self.starters)


@dataclass(frozen=True)
class Scaffold:
    html: str
    css: str = ""


@dataclass(frozen=True)
class PredicateOutcome:
    success: bool
    message: str = ""


# (source_text, captured_logs, rendered_snapshot) -> outcome
Predicate = Callable[[str, Sequence[str], str], Any]


@dataclass(frozen=True)
class LessonUnit:
    id: str
    kind: LessonKind
    default_source: str
    validate: Predicate
    scaffold: Optional[Scaffold] = None
    language_id: str = "javascript"
    title: str = ""
    step: int = 0
    next_step: Optional[str] = None
    prev_step: Optional[str] = None


@dataclass(frozen=True)
class Submission:
    target_id: str
    source_text: str
    language_id: Optional[str] = None
    run_id: str = ""


@dataclass(frozen=True)
class ExecutionResult:
    stdout: str
    stderr: str
    exit_reason: ExitReason
    elapsed_ms: int
    input_exhausted: bool = False
    truncated: bool = False

    @property
    def completed(self) -> bool:
        return self.exit_reason is ExitReason.COMPLETED


@dataclass(frozen=True)
class FixtureResult:
    fixture_index: int
    passed: bool
    actual: str
    expected: str
    reason: Optional[FailureReason] = None
    detail: Optional[str] = None


@dataclass(frozen=True)
class JudgeReport:
    problem_id: str
    language_id: str
    results: Tuple[FixtureResult, ...]

    @property
    def all_passed(self) -> bool:
        return all(r.passed for r in self.results)

    @property
    def passed_count(self) -> int:
        return sum(1 for r in self.results if r.passed)


@dataclass(frozen=True)
class LessonCapture:
    rendered_snapshot: str
    logs: Tuple[str, ...] = ()
    error: Optional[str] = None


@dataclass(frozen=True)
class LessonOutcome:
    lesson_id: str
    success: bool
    message: str
    logs: Tuple[str, ...] = ()
    rendered_snapshot: str = ""
    next_step: Optional[str] = None
    prev_step: Optional[str] = None
    error: Optional[str] = None
