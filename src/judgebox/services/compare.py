from __future__ import annotations

from typing import List


def normalize_output(text: str) -> List[str]:
    """
    Lines as the judge compares them: CRLF folded to LF, trailing newlines
    dropped, trailing spaces stripped from every line. Leading whitespace and
    blank lines in the middle are significant.
    """
    text = (text or "").replace("\r\n", "\n").rstrip("\n")
    if not text:
        return []
    return [line.rstrip() for line in text.split("\n")]


def normalized_text(text: str) -> str:
    return "\n".join(normalize_output(text))


def outputs_match(actual: str, expected: str) -> bool:
    return normalize_output(actual) == normalize_output(expected)
