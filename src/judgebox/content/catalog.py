from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import structlog
import yaml

from ..core.models import Fixture, LessonKind, LessonUnit, Problem, Scaffold
from ..errors import CatalogError, ContentNotFoundError
from ..services.predicates import build_predicate

log = structlog.get_logger(__name__)

DEFAULT_LANGUAGE = {
    LessonKind.COMPONENT: "javascript",
    LessonKind.SCRIPT: "typescript",
    LessonKind.STYLE: "css",
}


class ContentStore:
    """Read-only Problems and LessonUnits keyed by id."""

    def __init__(self, problems: Iterable[Problem] = (), lessons: Iterable[LessonUnit] = ()):
        self._problems: Dict[str, Problem] = {}
        self._lessons: Dict[str, LessonUnit] = {}
        for p in problems:
            if p.id in self._problems:
                raise CatalogError(f"duplicate problem id {p.id!r}")
            self._problems[p.id] = p
        for lesson in lessons:
            if lesson.id in self._lessons:
                raise CatalogError(f"duplicate lesson id {lesson.id!r}")
            self._lessons[lesson.id] = lesson

    def problem(self, problem_id: str) -> Problem:
        try:
            return self._problems[problem_id]
        except KeyError:
            raise ContentNotFoundError("problem", problem_id) from None

    def lesson(self, lesson_id: str) -> LessonUnit:
        try:
            return self._lessons[lesson_id]
        except KeyError:
            raise ContentNotFoundError("lesson", lesson_id) from None

    def problems(self) -> List[Problem]:
        return list(self._problems.values())

    def lessons(self) -> List[LessonUnit]:
        return list(self._lessons.values())


# ---------- YAML loading ----------

def _require(entry: Mapping[str, Any], key: str, where: str) -> Any:
    if key not in entry or entry[key] is None:
        raise CatalogError(f"{where}: missing {key!r}")
    return entry[key]


def _fixture(raw: Any, where: str) -> Fixture:
    if not isinstance(raw, Mapping):
        raise CatalogError(f"{where}: fixture must be a mapping")
    return Fixture(input=str(raw.get("input", "")), expected_output=str(_require(raw, "output", where)))


def _problem(raw: Any) -> Problem:
    if not isinstance(raw, Mapping):
        raise CatalogError("problem entries must be mappings")
    pid = str(_require(raw, "id", "problem"))
    where = f"problem {pid}"
    starters = _require(raw, "starters", where)
    if not isinstance(starters, Mapping) or not starters:
        raise CatalogError(f"{where}: starters must be a non-empty mapping")
    fixtures = tuple(_fixture(f, where) for f in _require(raw, "fixtures", where))
    if not fixtures:
        raise CatalogError(f"{where}: needs at least one fixture")
    sample = _fixture(raw["sample"], where) if raw.get("sample") else fixtures[0]
    return Problem(
        id=pid,
        title=str(raw.get("title", "")),
        starters={str(k): str(v) for k, v in starters.items()},
        fixtures=fixtures,
        sample=sample,
    )


def _course(raw: Any) -> List[LessonUnit]:
    if not isinstance(raw, Mapping):
        raise CatalogError("course entries must be mappings")
    cid = str(_require(raw, "id", "course"))
    try:
        kind = LessonKind(_require(raw, "kind", f"course {cid}"))
    except ValueError:
        raise CatalogError(f"course {cid}: unknown kind {raw['kind']!r}") from None
    language = str(raw.get("language") or DEFAULT_LANGUAGE[kind])
    entries = _require(raw, "lessons", f"course {cid}")
    if not isinstance(entries, list) or not entries:
        raise CatalogError(f"course {cid}: lessons must be a non-empty list")

    ids = [str(e.get("id") or f"{cid}-{i + 1}") if isinstance(e, Mapping) else "" for i, e in enumerate(entries)]
    lessons = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise CatalogError(f"course {cid}: lesson entries must be mappings")
        where = f"lesson {ids[i]}"
        scaffold: Optional[Scaffold] = None
        if entry.get("scaffold"):
            sc = entry["scaffold"]
            scaffold = Scaffold(html=str(_require(sc, "html", where)), css=str(sc.get("css") or ""))
        elif kind is LessonKind.STYLE:
            raise CatalogError(f"{where}: style lessons need a scaffold")
        lessons.append(LessonUnit(
            id=ids[i],
            kind=kind,
            title=str(entry.get("title", "")),
            default_source=str(entry.get("default_source", "")),
            validate=build_predicate(_require(entry, "validate", where)),
            scaffold=scaffold,
            language_id=language,
            step=int(entry.get("step", i + 1)),
            next_step=entry.get("next_step", ids[i + 1] if i + 1 < len(ids) else None),
            prev_step=entry.get("prev_step", ids[i - 1] if i > 0 else None),
        ))
    return lessons


def load_catalog(path: Union[str, Path]) -> ContentStore:
    """
    Load problems and lesson courses from a YAML file.

    Lessons are numbered by their position in the course and linked to their
    neighbours unless ``step`` / ``next_step`` / ``prev_step`` are given.
    """
    p = Path(path)
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except OSError as e:
        raise CatalogError(f"cannot read catalog {p}: {e}") from e
    except yaml.YAMLError as e:
        raise CatalogError(f"invalid YAML in {p}: {e}") from e
    if not isinstance(data, Mapping):
        raise CatalogError(f"{p}: top level must be a mapping")

    try:
        problems = [_problem(raw) for raw in data.get("problems") or ()]
        lessons = [lesson for raw in data.get("courses") or () for lesson in _course(raw)]
    except CatalogError:
        raise
    except (TypeError, ValueError) as e:
        raise CatalogError(f"{p}: {e}") from e

    log.info("catalog.loaded", path=str(p), problems=len(problems), lessons=len(lessons))
    return ContentStore(problems, lessons)
