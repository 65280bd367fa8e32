from __future__ import annotations

from typing import Dict, Optional

import structlog

from ..adapters.registry import AdapterRegistry
from ..content.catalog import ContentStore, load_catalog
from ..core.models import ExecutionResult, JudgeReport, LessonOutcome, Submission
from ..core.utils import new_run_id
from ..errors import UnsupportedLanguageError
from ..settings import Settings
from .bridge import LessonRuntimeBridge
from .harness import TestHarness
from .host import SandboxHost
from .predicates import PredicateRunner
from .reporter import ResultReporter

log = structlog.get_logger(__name__)


class Engine:
    """
    In-process entry point used by the hosting application: wires the content
    store to the host, harness, bridge, predicate runner and reporter.

    Each call builds its own Submission; nothing about it outlives the call.
    """

    def __init__(
        self,
        settings: Settings,
        content: ContentStore,
        adapters: Optional[AdapterRegistry] = None,
        host: Optional[SandboxHost] = None,
    ):
        self.settings = settings
        self.content = content
        self.adapters = adapters or AdapterRegistry.from_settings(settings)
        self.host = host or SandboxHost(self.adapters, settings)
        self.harness = TestHarness(self.host)
        self.bridge = LessonRuntimeBridge(self.host)
        self.predicates = PredicateRunner()
        self.reporter = ResultReporter()

    @classmethod
    def from_settings(cls, settings: Settings) -> "Engine":
        return cls(settings, load_catalog(settings.catalog_file))

    def _submission(self, target_id: str, source: str, language_id: Optional[str] = None) -> Submission:
        sub = Submission(target_id=target_id, source_text=source, language_id=language_id, run_id=new_run_id())
        # size only, never the text
        log.debug("submission.created", run_id=sub.run_id, target=target_id, language=language_id, size=len(source))
        return sub

    async def judge_problem(self, problem_id: str, language_id: str, source: str) -> JudgeReport:
        problem = self.content.problem(problem_id)
        sub = self._submission(problem.id, source, language_id)
        with structlog.contextvars.bound_contextvars(run_id=sub.run_id):
            return await self.harness.judge(problem, language_id, sub.source_text)

    async def run_lesson(self, lesson_id: str, source: str) -> LessonOutcome:
        lesson = self.content.lesson(lesson_id)
        sub = self._submission(lesson.id, source)
        with structlog.contextvars.bound_contextvars(run_id=sub.run_id):
            capture = await self.bridge.capture(lesson, sub.source_text)
            outcome = self.predicates.run(lesson, sub.source_text, capture.logs, capture.rendered_snapshot)
            result = self.reporter.lesson_outcome(lesson, capture, outcome)
            log.info("lesson.finished", lesson=lesson.id, success=result.success, logs=len(result.logs))
        return result

    async def run_sample(self, problem_id: str, language_id: str, source: str) -> ExecutionResult:
        """The "Run" button: the problem's sample input, no judging."""
        problem = self.content.problem(problem_id)
        if language_id not in problem.starters:
            raise UnsupportedLanguageError(problem.id, language_id)
        sub = self._submission(problem.id, source, language_id)
        with structlog.contextvars.bound_contextvars(run_id=sub.run_id):
            return await self.host.execute(sub.source_text, language_id, problem.sample.input)

    async def execute(
        self,
        source: str,
        language_id: str,
        stdin: str = "",
        timeout_ms: Optional[int] = None,
    ) -> ExecutionResult:
        sub = self._submission("playground", source, language_id)
        with structlog.contextvars.bound_contextvars(run_id=sub.run_id):
            return await self.host.execute(sub.source_text, language_id, stdin, timeout_ms)

    async def verify_starters(self, problem_id: str) -> Dict[str, JudgeReport]:
        """Judge every starter of a problem against its own fixtures."""
        problem = self.content.problem(problem_id)
        reports = {}
        for language_id, starter in problem.starters.items():
            reports[language_id] = await self.judge_problem(problem.id, language_id, starter)
        return reports
