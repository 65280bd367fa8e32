from __future__ import annotations

import random
import string
import time


def new_run_id() -> str:
    suf = "".join(random.choice(string.hexdigits.lower()) for _ in range(6))
    return f"{int(time.time())}-{suf}"


def last_line(text: str) -> str:
    """Last non-blank line of ``text`` (used for short error summaries)."""
    for line in reversed((text or "").split("\n")):
        if line.strip():
            return line.strip()
    return ""
