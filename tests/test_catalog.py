import textwrap

import pytest

from judgebox.content.catalog import load_catalog
from judgebox.core.models import LessonKind
from judgebox.errors import CatalogError, ContentNotFoundError


def test_shipped_catalog_loads(catalog):
    problem = catalog.problem("solve-me-first")
    assert set(problem.languages) == {"typescript", "kotlin"}
    assert problem.sample.input == "2\n3"
    assert len(problem.fixtures) == 2

    css = catalog.lesson("css-1")
    assert css.kind is LessonKind.STYLE
    assert css.scaffold is not None and 'class="container"' in css.scaffold.html
    assert (css.step, css.prev_step, css.next_step) == (1, None, "css-2")

    last_ts = [l for l in catalog.lessons() if l.id.startswith("ts-")][-1]
    assert last_ts.next_step is None
    assert last_ts.language_id == "typescript"


def test_shipped_lessons_accept_their_default_source_where_checks_are_source_only(catalog):
    lesson = catalog.lesson("react-1")
    assert lesson.validate(lesson.default_source, (), "").success


def test_flexbox_lesson_checks_declaration(catalog):
    lesson = catalog.lesson("css-1")
    assert lesson.validate(".container { display: flex; }", (), "").success
    assert not lesson.validate(".container { display: block; }", (), "").success


def test_gap_lesson_is_a_plain_substring_check(catalog):
    lesson = catalog.lesson("css-8")
    assert lesson.validate(".container {\n  display: flex;\n  gap: 16px;\n}", (), "").success
    assert not lesson.validate(".container {\n  display: flex;\n}", (), "").success
    # the hint comment already contains "gap:"; the check stays that weak
    assert lesson.validate(lesson.default_source, (), "").success


def test_unknown_ids(catalog):
    with pytest.raises(ContentNotFoundError) as exc:
        catalog.problem("nope")
    assert str(exc.value) == "problem_not_found: nope"
    with pytest.raises(ContentNotFoundError):
        catalog.lesson("nope")


def _write(tmp_path, text):
    p = tmp_path / "catalog.yaml"
    p.write_text(textwrap.dedent(text), encoding="utf-8")
    return p


def test_explicit_ids_and_links(tmp_path):
    p = _write(tmp_path, """
        problems:
          - id: add
            starters: {typescript: "console.log(1)"}
            fixtures: [{input: "", output: "1"}]
        courses:
          - id: intro
            kind: script
            language: javascript
            lessons:
              - id: hello
                validate: {min_logs: 1}
              - validate: {contains: x}
                next_step: outro
    """)
    store = load_catalog(p)
    assert store.problem("add").sample.expected_output == "1"
    hello, second = store.lessons()
    assert hello.id == "hello" and hello.next_step == "intro-2"
    assert second.prev_step == "hello" and second.next_step == "outro"
    assert second.language_id == "javascript"


@pytest.mark.parametrize("body", [
    "problems: [{id: x, starters: {typescript: a}, fixtures: []}]",
    "problems: [{id: x, fixtures: [{input: '', output: ''}]}]",
    "courses: [{id: c, kind: nope, lessons: [{validate: {contains: a}}]}]",
    "courses: [{id: c, kind: style, lessons: [{validate: {contains: a}}]}]",
    "courses: [{id: c, kind: script, lessons: [{validate: {bogus: 1}}]}]",
    "problems: [{id: x, starters: {a: b}, fixtures: [{input: ''}]}]",
    "- just a list",
    "problems: [oops",
])
def test_malformed_catalogs(tmp_path, body):
    with pytest.raises(CatalogError):
        load_catalog(_write(tmp_path, body))


def test_missing_file(tmp_path):
    with pytest.raises(CatalogError):
        load_catalog(tmp_path / "absent.yaml")
