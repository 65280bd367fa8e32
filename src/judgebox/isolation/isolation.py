from __future__ import annotations

import os
import shutil
from typing import Callable, List

from ..core.models import Limits
from .cgroups import wrap_with_cgroups
from .namespaces import wrap_with_unshare

STRATEGIES = ("none", "unshare", "cgroups", "unshare+cgroups")


class IsolationPipeline:
    def __init__(self, strategy: str, allow_network: bool):
        self.strategy = (strategy or "none").lower()
        if self.strategy not in STRATEGIES:
            raise ValueError(f"unknown isolation strategy: {strategy}")
        self.allow_network = allow_network

    def build(self, limits: Limits) -> Callable[[List[str]], List[str]]:
        def composer(cmd: List[str]) -> List[str]:
            out = cmd
            if "unshare" in self.strategy:
                out = wrap_with_unshare(out, self.allow_network)
            if "cgroups" in self.strategy:
                out = wrap_with_cgroups(out, limits)
            return out

        return composer


def probe_capabilities(strategy: str, allow_network: bool) -> dict:
    """Environment facts for debugging isolation (served on /health)."""
    return {
        "strategy": strategy,
        "allow_network": allow_network,
        "euid": os.geteuid() if hasattr(os, "geteuid") else None,
        "has_unshare": bool(shutil.which("unshare")),
        "has_systemd_run": bool(shutil.which("systemd-run")),
    }
