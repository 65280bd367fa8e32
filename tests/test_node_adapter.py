import asyncio
import shutil
import time

import pytest
from conftest import CATALOG, run

from judgebox.adapters.registry import AdapterRegistry
from judgebox.content.catalog import load_catalog
from judgebox.core.models import ExitReason, LessonKind, LessonUnit, RunMode
from judgebox.services.bridge import LessonRuntimeBridge
from judgebox.services.compare import normalized_text
from judgebox.services.host import SandboxHost

SUM = """
const a = parseInt(readline(), 10);
const b = parseInt(readline(), 10);
console.log(a + b);
"""


def test_sum_of_two_lines(node_host):
    result = run(node_host.execute(SUM, "javascript", "2\n3"))
    assert result.exit_reason is ExitReason.COMPLETED
    assert normalized_text(result.stdout) == "5"


def test_same_input_same_output(node_host):
    first = run(node_host.execute(SUM, "javascript", "40\n2\n"))
    second = run(node_host.execute(SUM, "javascript", "40\n2\n"))
    assert normalized_text(first.stdout) == normalized_text(second.stdout) == "42"


def test_infinite_loop_times_out(node_host):
    start = time.monotonic()
    result = run(node_host.execute("console.log('tick');\nwhile (true) {}", "javascript", timeout_ms=1000))
    assert result.exit_reason is ExitReason.TIMEOUT
    assert result.stdout == "tick\n"
    assert time.monotonic() - start < 5


def test_concurrent_runs_are_isolated(node_host):
    src = "var shared = readline();\nglobalThis.counter = (globalThis.counter || 0) + 1;\nconsole.log(shared, counter);"

    async def both():
        return await asyncio.gather(
            node_host.execute(src, "javascript", "left"),
            node_host.execute(src, "javascript", "right"),
        )

    left, right = run(both())
    assert normalized_text(left.stdout) == "left 1"
    assert normalized_text(right.stdout) == "right 1"


def test_reading_past_input_is_input_exhausted(node_host):
    result = run(node_host.execute("readline(); readline();", "javascript", "only one\n"))
    assert result.exit_reason is ExitReason.RUNTIME_ERROR
    assert result.input_exhausted
    assert "InputExhausted" in result.stderr


def test_syntax_error_is_compile_error(node_host):
    result = run(node_host.execute("console.log('x'", "javascript"))
    assert result.exit_reason is ExitReason.COMPILE_ERROR
    assert result.stdout == ""
    assert "SyntaxError" in result.stderr


def test_uncaught_exception_is_runtime_error(node_host):
    result = run(node_host.execute("console.log('before');\nnull.x;", "javascript"))
    assert result.exit_reason is ExitReason.RUNTIME_ERROR
    assert result.stdout == "before\n"
    assert "TypeError" in result.stderr
    assert not result.input_exhausted


def test_printing_nan_is_a_runtime_error(node_host):
    result = run(node_host.execute("console.log(parseInt(readline(), 10) + 1);", "javascript", "abc"))
    assert result.exit_reason is ExitReason.RUNTIME_ERROR
    assert "NaN" in result.stderr


def test_console_formatting(node_host):
    src = "console.log(1, 'a', null, undefined, [1, 2], {k: true});\nconsole.error('oops');"
    result = run(node_host.execute(src, "javascript"))
    assert result.stdout == '1 a null undefined [1,2] {"k":true}\n'
    assert result.stderr.strip() == "oops"


def test_no_code_generation_from_strings(node_host):
    result = run(node_host.execute("console.log(eval('1 + 1'));", "javascript"))
    assert result.exit_reason is ExitReason.RUNTIME_ERROR


def test_typescript_is_type_stripped(ts_host):
    src = "const n: number = parseInt(readline(), 10);\nconst m: number[][] = [[n]];\nconsole.log(m[0][0] * 2);"
    result = run(ts_host.execute(src, "typescript", "21"))
    assert result.exit_reason is ExitReason.COMPLETED
    assert normalized_text(result.stdout) == "42"


def test_script_lesson_captures_logs(node_host):
    lesson = LessonUnit("s", LessonKind.SCRIPT, "", lambda s, l, r: True, language_id="javascript")
    src = "console.log('uno');\nconsole.warn('dos');\nconsole.error('tres');"
    capture = run(LessonRuntimeBridge(node_host).capture(lesson, src))
    assert capture.logs == ("uno", "⚠️ dos", "❌ tres")
    assert capture.rendered_snapshot == ""
    assert capture.error is None


def test_script_lesson_error_is_logged_not_raised(node_host):
    lesson = LessonUnit("s", LessonKind.SCRIPT, "", lambda s, l, r: True, language_id="javascript")
    capture = run(LessonRuntimeBridge(node_host).capture(lesson, "console.log('a');\nthrow new Error('boom');"))
    assert capture.logs == ("a", "❌ Error: boom")
    assert capture.error == "Error: boom"


def test_component_lesson_renders_markup(node_host):
    lesson = LessonUnit("c", LessonKind.COMPONENT, "", lambda s, l, r: True)
    src = """
import { useState } from 'react';
function Gatito({ nombre }) {
  const [n] = useState(3);
  return React.createElement("h1", { className: "cat", style: { fontSize: "20px" } }, "Miau ", nombre, " x", n);
}
function App() {
  return React.createElement(React.Fragment, null,
    React.createElement(Gatito, { nombre: "Tom" }),
    React.createElement("ul", null, ["a", "b"].map((x) => React.createElement("li", { key: x }, x))));
}
export default App;
"""
    capture = run(LessonRuntimeBridge(node_host).capture(lesson, src))
    assert capture.error is None
    assert capture.rendered_snapshot == (
        '<div id="root"><h1 class="cat" style="font-size: 20px">Miau Tom x3</h1>'
        "<ul><li>a</li><li>b</li></ul></div>"
    )


def test_component_render_error_is_captured(node_host):
    lesson = LessonUnit("c", LessonKind.COMPONENT, "", lambda s, l, r: True)
    src = "function App() { return undefinedThing.render(); }"
    capture = run(LessonRuntimeBridge(node_host).capture(lesson, src))
    assert capture.rendered_snapshot == '<div id="root"></div>'
    assert capture.error and "ReferenceError" in capture.error
    assert capture.logs[-1].startswith("❌ ")


def test_component_mode_needs_a_component(node_host):
    result = run(node_host.execute("console.log('no component');", "javascript", mode=RunMode.COMPONENT))
    assert result.exit_reason is ExitReason.COMPLETED
    assert "No component found" in result.stdout


def test_line_separators_in_logs_are_kept(node_host):
    lesson = LessonUnit("s", LessonKind.SCRIPT, "", lambda s, l, r: True, language_id="javascript")
    src = "console.log('uno');\nconsole.log('a\\u2028b');\nconsole.log('x\\u0085y', 'p\\u2029q');"
    capture = run(LessonRuntimeBridge(node_host).capture(lesson, src))
    assert capture.error is None
    assert capture.logs == ("uno", "a\u2028b", "x\u0085y p\u2029q")


def test_logs_over_the_output_cap_keep_the_newest(settings):
    settings = settings.model_copy(update={"max_output_bytes": 4096})
    host = SandboxHost(AdapterRegistry.from_settings(settings), settings)
    if not shutil.which("node"):
        pytest.skip("node not installed")
    lesson = LessonUnit("s", LessonKind.SCRIPT, "", lambda s, l, r: True, language_id="javascript")
    src = "for (let i = 0; i < 2000; i++) console.log('line ' + i);"
    capture = run(LessonRuntimeBridge(host).capture(lesson, src))
    assert capture.error is None
    assert capture.logs[0].startswith("⚠️ ") and "dropped" in capture.logs[0]
    kept = capture.logs[1:]
    assert 10 < len(kept) < 2000
    assert kept[-1] == "line 1999"
    assert kept == tuple(f"line {i}" for i in range(2000 - len(kept), 2000))


REACT_LESSONS = [l.id for l in load_catalog(CATALOG).lessons() if l.kind is LessonKind.COMPONENT]


def test_jsx_first_react_lesson_renders(jsx_host, catalog):
    lesson = catalog.lesson("react-1")
    capture = run(LessonRuntimeBridge(jsx_host).capture(lesson, lesson.default_source))
    assert capture.error is None
    assert capture.rendered_snapshot == '<div id="root"><h1>¡Miau! Soy un gatito feliz 🐱</h1></div>'


@pytest.mark.parametrize("lesson_id", REACT_LESSONS)
def test_jsx_react_lessons_render_their_default_source(jsx_host, catalog, lesson_id):
    lesson = catalog.lesson(lesson_id)
    capture = run(LessonRuntimeBridge(jsx_host).capture(lesson, lesson.default_source))
    assert capture.error is None, capture.logs
    assert capture.rendered_snapshot.startswith('<div id="root"><')


def test_jsx_syntax_error_is_reported_in_logs(jsx_host):
    lesson = LessonUnit("c", LessonKind.COMPONENT, "", lambda s, l, r: True)
    capture = run(LessonRuntimeBridge(jsx_host).capture(lesson, "function App() { return <h1>hola</h2>; }"))
    assert capture.rendered_snapshot == '<div id="root"></div>'
    assert capture.error and "SyntaxError" in capture.error
    assert capture.logs == ("❌ " + capture.error,)
