from __future__ import annotations

import shutil
from typing import List

from ..core.models import Limits


def wrap_with_cgroups(cmd: List[str], limits: Limits) -> List[str]:
    """
    systemd-run --scope puts the run in its own cgroup with MemoryMax/CPUQuota.
    Without systemd-run (minimal containers, WSL...) the command runs as is.
    """
    sdrun = shutil.which("systemd-run")
    if not sdrun:
        return cmd

    props = ["-p", "CPUQuota=100%", "-p", "TasksMax=256"]
    if limits.memory_bytes > 0:
        props += ["-p", f"MemoryMax={limits.memory_bytes}"]
    return [sdrun, "--user", "--scope", "--quiet"] + props + ["--"] + cmd
