from __future__ import annotations

import re
from pathlib import Path
from typing import List, Mapping, Tuple

from ..core.models import ExitReason, RunMode
from ..runner.process import ProcessOutcome
from .base import BuildPlan, LanguageAdapter, Toolchain, ToolchainCache, resolve_executables

MAIN_FN = re.compile(r"\bfun\s+main\s*\(")
EXHAUSTED_MARKER = "InputExhausted"

# Appended after the submission so its line numbers stay intact. Same-package
# declarations win over the kotlin.io default imports.
PRELUDE = """

class InputExhausted : RuntimeException("InputExhausted: readln() called after input was exhausted")

fun readln(): String = readlnOrNull() ?: throw InputExhausted()

fun readLine(): String = readln()
"""


def wrap_main(source: str) -> str:
    """Scripts without ``fun main(`` get wrapped in one, as the playground does."""
    if MAIN_FN.search(source):
        return source
    return "fun main() {\n" + source + "\n}"


class KotlinAdapter(LanguageAdapter):
    """Kotlin on the JVM: kotlinc builds a self-contained jar, java runs it."""

    language_ids = ("kotlin",)

    def __init__(
        self,
        kotlinc_bin: str = "kotlinc",
        java_bin: str = "java",
        memory_bytes: int = 0,
    ):
        self.kotlinc_bin = kotlinc_bin
        self.java_bin = java_bin
        self.memory_bytes = memory_bytes
        self._cache = ToolchainCache(self._resolve)

    def _resolve(self) -> Toolchain:
        return resolve_executables(
            {"kotlinc": self.kotlinc_bin, "java": self.java_bin},
            version_cmd=["java", "-version"],
        )

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
        src = build_dir / "Main.kt"
        src.write_text(wrap_main(source) + PRELUDE, encoding="utf-8")
        jar = build_dir / "main.jar"

        compile_argv = [tc["kotlinc"], str(src), "-include-runtime", "-nowarn", "-d", str(jar)]
        run_argv: List[str] = [tc["java"], "-XX:+UseSerialGC", "-XX:TieredStopAtLevel=1", "-Xss16m"]
        if self.memory_bytes > 0:
            run_argv.append(f"-Xmx{max(32, self.memory_bytes // (2 * 1024 * 1024))}m")
        run_argv += ["-jar", str(jar)]
        return BuildPlan(compile_argv=compile_argv, run_argv=run_argv)

    def classify(self, outcome: ProcessOutcome) -> Tuple[ExitReason, bool]:
        if outcome.returncode == 0:
            return ExitReason.COMPLETED, False
        return ExitReason.RUNTIME_ERROR, EXHAUSTED_MARKER in (outcome.stderr or "")
