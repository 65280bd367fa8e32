from __future__ import annotations

import shutil
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Sequence, Tuple

import structlog

from ..core.models import ExitReason, RunMode
from ..runner.process import ProcessOutcome
from .base import BuildPlan, LanguageAdapter, Toolchain, ToolchainCache, resolve_executables

log = structlog.get_logger(__name__)

HARNESS = Path(__file__).with_name("js") / "harness.js"
TRANSPILER = Path(__file__).with_name("js") / "transpile.js"

# harness.js exit codes
EXIT_COMPLETED = 0
EXIT_RUNTIME = 1
EXIT_COMPILE = 2
EXIT_INPUT_EXHAUSTED = 3


class NodeAdapter(LanguageAdapter):
    """JavaScript / TypeScript on Node, driven through ``js/harness.js``."""

    language_ids = ("javascript", "typescript")
    modes = frozenset(RunMode)

    def __init__(
        self,
        node_bin: str = "node",
        jsx_transpiler: Sequence[str] = (),
        memory_bytes: int = 0,
        node_modules: Path = Path("node_modules"),
        capture_bytes: int = 0,
    ):
        self.node_bin = node_bin
        self.jsx_transpiler = list(jsx_transpiler)
        self.memory_bytes = memory_bytes
        self.node_modules = Path(node_modules)
        # capture line must fit in the host's output cap
        self.capture_bytes = capture_bytes
        self._cache = ToolchainCache(self._resolve)

    def _resolve(self) -> Toolchain:
        tc = resolve_executables({"node": self.node_bin}, version_cmd=["node", "--version"])
        extra = {}
        if self.jsx_transpiler:
            jsx = shutil.which(self.jsx_transpiler[0])
            if jsx:
                extra["jsx"] = jsx
            else:
                log.warning("toolchain.jsx_missing", binary=self.jsx_transpiler[0])
        elif (self.node_modules / "@babel" / "standalone").is_dir():
            extra["babel"] = str(self.node_modules.resolve())
        else:
            log.warning("toolchain.jsx_missing", package="@babel/standalone", node_modules=str(self.node_modules))
        if not extra:
            return tc
        return Toolchain(executables=MappingProxyType({**tc.executables, **extra}), version=tc.version)

    def toolchain(self) -> Toolchain:
        return self._cache.get()

    def plan(
        self,
        language_id: str,
        source: str,
        build_dir: Path,
        mode: RunMode,
        options: Mapping[str, str],
    ) -> BuildPlan:
        tc = self.toolchain()
        src = build_dir / ("main.ts" if language_id == "typescript" else "main.js")
        src.write_text(source, encoding="utf-8")

        entry, lang, compile_argv = src, language_id, None
        extra_env: Dict[str, str] = {}
        if mode is RunMode.COMPONENT:
            out = build_dir / "main.bundle.js"
            if "jsx" in tc.executables:
                compile_argv = [tc["jsx"]] + [a.format(src=src, out=out) for a in self.jsx_transpiler[1:]]
            elif "babel" in tc.executables:
                compile_argv = [tc["node"], str(TRANSPILER), str(src), str(out)]
                extra_env["NODE_PATH"] = tc["babel"]
            if compile_argv:
                entry, lang = out, "javascript"

        run_argv: List[str] = [tc["node"], "--no-warnings", "--disallow-code-generation-from-strings"]
        if self.memory_bytes > 0:
            run_argv.append(f"--max-old-space-size={max(16, self.memory_bytes // (1024 * 1024))}")
        run_argv += [str(HARNESS), "--mode", mode.value, "--lang", lang, "--entry", str(entry)]
        if options.get("component"):
            run_argv += ["--component", options["component"]]
        if mode is not RunMode.STDIO and self.capture_bytes > 0:
            run_argv += ["--capture-limit", str(self.capture_bytes)]
        return BuildPlan(compile_argv=compile_argv, run_argv=run_argv, extra_env=MappingProxyType(extra_env))

    def classify(self, outcome: ProcessOutcome) -> Tuple[ExitReason, bool]:
        rc = outcome.returncode
        if rc == EXIT_COMPLETED:
            return ExitReason.COMPLETED, False
        if rc == EXIT_COMPILE:
            return ExitReason.COMPILE_ERROR, False
        if rc == EXIT_INPUT_EXHAUSTED:
            return ExitReason.RUNTIME_ERROR, True
        return ExitReason.RUNTIME_ERROR, False
