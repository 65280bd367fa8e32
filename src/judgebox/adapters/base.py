from __future__ import annotations

import shutil
import signal
import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

import structlog

from ..core.models import ExecutionResult, ExitReason, RunMode
from ..errors import ToolchainUnavailableError
from ..runner.process import ProcessOutcome

log = structlog.get_logger(__name__)

TIME_LIMIT_NOTE = "[timeout] exceeded {ms}ms"


@dataclass(frozen=True)
class Toolchain:
    """Resolved runtime executables. Immutable once built."""

    executables: Mapping[str, str]
    version: str = ""

    def __getitem__(self, name: str) -> str:
        return self.executables[name]


class ToolchainCache:
    """
    Lazily resolves a runtime's toolchain once and hands out the same
    immutable value afterwards. Holds nothing submission specific.
    """

    def __init__(self, resolver: Callable[[], Toolchain]):
        self._resolver = resolver
        self._lock = threading.Lock()
        self._value: Optional[Toolchain] = None

    def get(self) -> Toolchain:
        value = self._value
        if value is None:
            with self._lock:
                if self._value is None:
                    self._value = self._resolver()
                value = self._value
        return value


def resolve_executables(names: Mapping[str, str], version_cmd: Optional[Sequence[str]] = None) -> Toolchain:
    found: Dict[str, str] = {}
    for key, binary in names.items():
        path = shutil.which(binary)
        if not path:
            raise ToolchainUnavailableError(f"{binary!r} not found on PATH")
        found[key] = path

    version = ""
    if version_cmd:
        argv = [found.get(version_cmd[0], version_cmd[0]), *version_cmd[1:]]
        try:
            proc = subprocess.run(argv, capture_output=True, text=True, timeout=30)
            version = (proc.stdout or proc.stderr).strip()
        except (OSError, subprocess.TimeoutExpired) as e:
            log.warning("toolchain.version_failed", argv=argv, error=str(e))
    log.info("toolchain.resolved", executables=found, version=version)
    return Toolchain(executables=MappingProxyType(found), version=version)


@dataclass(frozen=True)
class BuildPlan:
    """What the host has to run to turn a written source into a runnable program."""

    compile_argv: Optional[List[str]]
    run_argv: List[str]
    extra_env: Mapping[str, str] = field(default_factory=dict)


class LanguageAdapter:
    """
    Per-runtime shim. The host writes nothing itself: the adapter lays out the
    build directory, says how to compile and run, and maps raw process
    outcomes to ``ExecutionResult``.
    """

    language_ids: Tuple[str, ...] = ()
    modes: FrozenSet[RunMode] = frozenset({RunMode.STDIO})

    def toolchain(self) -> Toolchain:
        raise NotImplementedError

    def plan(
        self,
        language_id: str,
        source: str,
        build_dir: Path,
        mode: RunMode,
        options: Mapping[str, str],
    ) -> BuildPlan:
        raise NotImplementedError

    # ---------- outcome mapping ----------

    def compile_failure(self, outcome: ProcessOutcome) -> Optional[ExecutionResult]:
        """None when the compile step succeeded."""
        if outcome.timed_out:
            return ExecutionResult(
                stdout="",
                stderr=(outcome.stderr or "") + "\n[timeout] compilation exceeded time limit",
                exit_reason=ExitReason.TIMEOUT,
                elapsed_ms=outcome.elapsed_ms,
            )
        if outcome.returncode != 0:
            return ExecutionResult(
                stdout="",
                stderr=(outcome.stderr or outcome.stdout or "Compilation failed").strip(),
                exit_reason=ExitReason.COMPILE_ERROR,
                elapsed_ms=outcome.elapsed_ms,
            )
        return None

    def classify(self, outcome: ProcessOutcome) -> Tuple[ExitReason, bool]:
        """(exit reason, input exhausted) for a run that finished on its own."""
        raise NotImplementedError

    def result(self, outcome: ProcessOutcome, timeout_ms: int) -> ExecutionResult:
        stderr = outcome.stderr
        exhausted = False
        if outcome.timed_out or outcome.returncode == -signal.SIGXCPU:
            reason = ExitReason.TIMEOUT
            stderr = (stderr or "") + "\n" + TIME_LIMIT_NOTE.format(ms=timeout_ms)
        else:
            reason, exhausted = self.classify(outcome)
        return ExecutionResult(
            stdout=outcome.stdout,
            stderr=stderr,
            exit_reason=reason,
            elapsed_ms=outcome.elapsed_ms,
            input_exhausted=exhausted,
            truncated=outcome.truncated,
        )
