from __future__ import annotations

import shutil
from typing import List


def wrap_with_unshare(cmd: List[str], allow_network: bool) -> List[str]:
    """
    Best-effort: fresh user, pid and mount namespaces (no chroot, the
    runtimes live on the host). Without unshare the command runs as is.
    """
    unshare = shutil.which("unshare")
    if not unshare:
        return cmd

    flags = ["--user", "--map-root-user", "--mount", "--pid", "--fork", "--kill-child"]
    if not allow_network:
        flags.append("--net")
    return [unshare] + flags + ["--"] + cmd
