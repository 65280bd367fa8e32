from __future__ import annotations

import asyncio
import os
import shutil
import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Dict, Mapping, Optional, Tuple

import structlog

from ..adapters.base import LanguageAdapter
from ..adapters.registry import AdapterRegistry
from ..core.models import ExecutionResult, RunMode
from ..errors import UnsupportedModeError
from ..isolation.isolation import IsolationPipeline
from ..runner.process import run_process
from ..runner.rlimits import make_preexec
from ..settings import Settings

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PreparedProgram:
    """A built submission. Each run of it still gets a fresh process and directory."""

    language_id: str
    adapter: LanguageAdapter
    build_dir: Path
    run_argv: Tuple[str, ...]
    extra_env: Mapping[str, str] = field(default_factory=dict)
    failure: Optional[ExecutionResult] = None


class SandboxHost:
    """
    Runs untrusted source to completion or forced termination.

    Every run is a separate OS process in its own process group and temporary
    working directory, with rlimits applied before exec and the configured
    isolation wrapper around the command.
    """

    def __init__(
        self,
        adapters: AdapterRegistry,
        settings: Settings,
        isolation: Optional[IsolationPipeline] = None,
    ):
        self.adapters = adapters
        self.settings = settings
        self.limits = settings.run_limits()
        self.isolation = isolation or IsolationPipeline(settings.iso_strategy, settings.allow_network)
        self._wrap = self.isolation.build(self.limits)

    # ------------ helpers ------------

    def _tempdir(self, prefix: str) -> Path:
        root = self.settings.work_root
        if root is not None:
            root.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix=prefix, dir=str(root) if root else None))

    def _env(self, home: Path, extra: Mapping[str, str]) -> Dict[str, str]:
        env = {k: os.environ[k] for k in self.settings.passthrough_env if k in os.environ}
        env.setdefault("LANG", "C.UTF-8")
        env["HOME"] = str(home)
        env["TMPDIR"] = str(home)
        env.update(extra)
        return env

    # ------------ lifecycle ------------

    @asynccontextmanager
    async def prepared(
        self,
        source: str,
        language_id: str,
        mode: RunMode = RunMode.STDIO,
        options: Optional[Mapping[str, str]] = None,
    ) -> AsyncIterator[PreparedProgram]:
        adapter = self.adapters.get(language_id)
        if mode not in adapter.modes:
            raise UnsupportedModeError(f"{language_id} does not support {mode.value} runs")
        # first call resolves the toolchain; keep that off the event loop
        await asyncio.to_thread(adapter.toolchain)

        build_dir = self._tempdir("jb-build-")
        try:
            yield await self._build(adapter, language_id, source, build_dir, mode, options or {})
        finally:
            shutil.rmtree(build_dir, ignore_errors=True)

    async def _build(
        self,
        adapter: LanguageAdapter,
        language_id: str,
        source: str,
        build_dir: Path,
        mode: RunMode,
        options: Mapping[str, str],
    ) -> PreparedProgram:
        plan = adapter.plan(language_id, source, build_dir, mode, options)
        failure = None
        if plan.compile_argv:
            outcome = await run_process(
                plan.compile_argv,
                cwd=build_dir,
                env=self._env(build_dir, plan.extra_env),
                timeout_ms=self.settings.compile_timeout_ms,
                max_output_bytes=self.settings.max_output_bytes,
            )
            failure = adapter.compile_failure(outcome)
            log.info(
                "sandbox.build",
                language=language_id,
                ok=failure is None,
                elapsed_ms=outcome.elapsed_ms,
            )
        return PreparedProgram(
            language_id=language_id,
            adapter=adapter,
            build_dir=build_dir,
            run_argv=tuple(plan.run_argv),
            extra_env=plan.extra_env,
            failure=failure,
        )

    async def run(self, program: PreparedProgram, stdin: str = "", timeout_ms: Optional[int] = None) -> ExecutionResult:
        if program.failure is not None:
            return program.failure

        timeout_ms = timeout_ms or self.settings.default_timeout_ms
        run_dir = self._tempdir("jb-run-")
        try:
            outcome = await run_process(
                self._wrap(list(program.run_argv)),
                cwd=run_dir,
                env=self._env(run_dir, program.extra_env),
                stdin=stdin,
                timeout_ms=timeout_ms,
                max_output_bytes=self.settings.max_output_bytes,
                preexec=make_preexec(self.limits),
            )
        finally:
            shutil.rmtree(run_dir, ignore_errors=True)

        result = program.adapter.result(outcome, timeout_ms)
        log.info(
            "sandbox.run",
            language=program.language_id,
            exit_reason=result.exit_reason.value,
            elapsed_ms=result.elapsed_ms,
            input_exhausted=result.input_exhausted,
            truncated=result.truncated,
        )
        return result

    async def execute(
        self,
        source: str,
        language_id: str,
        stdin: str = "",
        timeout_ms: Optional[int] = None,
        mode: RunMode = RunMode.STDIO,
        options: Optional[Mapping[str, str]] = None,
    ) -> ExecutionResult:
        async with self.prepared(source, language_id, mode, options) as program:
            return await self.run(program, stdin, timeout_ms)
