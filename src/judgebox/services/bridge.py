from __future__ import annotations

import json
import re
from typing import Dict, Optional

import structlog

from ..core.models import ExecutionResult, ExitReason, LessonCapture, LessonKind, LessonUnit, RunMode, Scaffold
from ..core.utils import last_line
from .host import SandboxHost

log = structlog.get_logger(__name__)

CAPTURE_MARKER = "<<<__JUDGEBOX_CAPTURE__>>>"
EMPTY_ROOT = '<div id="root"></div>'
ERROR_PREFIX = "❌ "
TIME_LIMIT_MESSAGE = "exceeded time limit"

STYLE_DOCUMENT = """<!DOCTYPE html>
<html>
<head>
  <style>{css}</style>
</head>
<body>
  {html}
</body>
</html>"""

_CLOSE_STYLE = re.compile(r"</(style)", re.IGNORECASE)
_DEFAULT_EXPORT = re.compile(r"\bexport\s+default\s+(?:async\s+)?(?:function\s+|class\s+)?([A-Z][\w$]*)")
_APP_DECL = re.compile(r"\b(?:function|class|const|let|var)\s+App\b")
_COMPONENT_DECL = re.compile(
    r"^[ \t]*(?:export\s+)?(?:function\s+([A-Z][\w$]*)\s*\(|(?:const|let|var)\s+([A-Z][\w$]*)\s*=)",
    re.MULTILINE,
)


def find_component_name(source: str) -> Optional[str]:
    """Root component: the default export, else ``App``, else the last capitalised declaration."""
    m = _DEFAULT_EXPORT.search(source)
    if m:
        return m.group(1)
    if _APP_DECL.search(source):
        return "App"
    names = [fn or var for fn, var in _COMPONENT_DECL.findall(source)]
    return names[-1] if names else None


def render_style(scaffold: Optional[Scaffold], user_css: str) -> str:
    """Scaffold markup plus base and submitted CSS, as one HTML document."""
    base_css = scaffold.css if scaffold else ""
    html = scaffold.html if scaffold else ""
    css = _CLOSE_STYLE.sub(r"<\\/\1", f"{base_css}\n{user_css}")
    return STYLE_DOCUMENT.format(css=css, html=html)


def _synthesize(result: ExecutionResult, snapshot: str) -> LessonCapture:
    if result.exit_reason is ExitReason.TIMEOUT:
        error = TIME_LIMIT_MESSAGE
    else:
        error = last_line(result.stderr) or f"run ended without output ({result.exit_reason.value})"
    return LessonCapture(rendered_snapshot=snapshot, logs=(ERROR_PREFIX + error,), error=error)


def parse_capture(result: ExecutionResult, mode: RunMode) -> LessonCapture:
    """Read the harness' capture line back; without one, build the capture from the result."""
    empty = EMPTY_ROOT if mode is RunMode.COMPONENT else ""
    payload = None
    for line in reversed(result.stdout.split("\n")):
        if line.startswith(CAPTURE_MARKER):
            try:
                payload = json.loads(line[len(CAPTURE_MARKER):])
            except ValueError:
                log.warning("lesson.capture_unreadable", exit_reason=result.exit_reason.value)
            break

    if not isinstance(payload, dict) or result.exit_reason is ExitReason.TIMEOUT:
        return _synthesize(result, empty)

    error = payload.get("error")
    return LessonCapture(
        rendered_snapshot=str(payload.get("snapshot") or empty),
        logs=tuple(str(entry) for entry in payload.get("logs") or ()),
        error=str(error) if error else None,
    )


class LessonRuntimeBridge:
    """
    Runs a lesson submission and captures what the predicate needs: ordered
    console logs and, for component lessons, the rendered markup.

    Every capture comes from a fresh host execution, so nothing from an earlier
    edit can leak into the next one. Style lessons never execute anything.
    """

    def __init__(self, host: SandboxHost, timeout_ms: Optional[int] = None):
        self.host = host
        self.timeout_ms = timeout_ms

    async def capture(self, lesson: LessonUnit, source: str) -> LessonCapture:
        if lesson.kind is LessonKind.STYLE:
            return LessonCapture(rendered_snapshot=render_style(lesson.scaffold, source))

        mode = RunMode.COMPONENT if lesson.kind is LessonKind.COMPONENT else RunMode.SCRIPT
        options: Dict[str, str] = {}
        if mode is RunMode.COMPONENT:
            name = find_component_name(source)
            if name:
                options["component"] = name

        result = await self.host.execute(
            source,
            lesson.language_id,
            stdin="",
            timeout_ms=self.timeout_ms,
            mode=mode,
            options=options,
        )
        return parse_capture(result, mode)
