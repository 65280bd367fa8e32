from __future__ import annotations

import resource
from typing import Callable

from ..core.models import Limits


def _set(which: int, value: int) -> None:
    if value <= 0:
        return
    try:
        resource.setrlimit(which, (value, value))
    except (ValueError, OSError):
        # limit not supported here, or the hard limit is already lower
        pass


def apply_rlimits(limits: Limits) -> None:
    """
    Process-level limits: CPU time, address space, open files, file size.
    Runs in the child between fork and exec; 0 leaves a limit untouched.
    """
    _set(resource.RLIMIT_CPU, limits.cpu_seconds)
    _set(resource.RLIMIT_AS, limits.memory_bytes)
    _set(resource.RLIMIT_NOFILE, limits.nofile)
    _set(resource.RLIMIT_FSIZE, limits.fsize_bytes)


def make_preexec(limits: Limits) -> Callable[[], None]:
    def _preexec() -> None:
        apply_rlimits(limits)

    return _preexec
