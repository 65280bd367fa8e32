from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.models import Limits


class Settings(BaseSettings):
    # ---- execution limits ----
    default_timeout_ms: int = 5000
    compile_timeout_ms: int = 60000
    max_output_bytes: int = 1024 * 1024
    work_root: Optional[Path] = None

    # ---- runtimes ----
    node_bin: str = "node"
    kotlinc_bin: str = "kotlinc"
    java_bin: str = "java"
    # where npm installed @babel/standalone (package.json at the repo root)
    node_modules: Path = Path("node_modules")
    # argv template overriding the Babel JSX step, placeholders {src} and {out}
    jsx_transpiler: List[str] = []

    # ---- isolation ----
    iso_strategy: str = "none"
    allow_network: bool = False
    passthrough_env: List[str] = ["PATH", "LANG", "JAVA_HOME"]

    # ---- content ----
    catalog_file: Path = Path("conf/catalog.yaml")

    # ---- logging ----
    log_level: str = "INFO"
    log_json: bool = True

    # ---- rlimits (read from YAML) ----
    limits: Dict[str, Any] = {}

    # env prefix JUDGEBOX_*
    model_config = SettingsConfigDict(env_prefix="JUDGEBOX_", extra="ignore")

    def run_limits(self) -> Limits:
        lim = self.limits or {}
        return Limits(
            cpu_seconds=int(lim.get("cpu_seconds", 10)),
            memory_bytes=int(lim.get("memory_bytes", 0)),
            nofile=int(lim.get("nofile", 256)),
            fsize_bytes=int(lim.get("fsize_bytes", 8 * 1024 * 1024)),
        )


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    block = data.get(key) or {}
    return block if isinstance(block, dict) else {}


def load_settings(path: Optional[Path] = None, **overrides: Any) -> Settings:
    # 0) base from env JUDGEBOX_*
    s = Settings()

    # 1) conf/judgebox.yaml (or JUDGEBOX_CONF)
    conf = Path(path or os.environ.get("JUDGEBOX_CONF", "conf/judgebox.yaml"))
    try:
        data = yaml.safe_load(conf.read_text(encoding="utf-8")) or {}
    except FileNotFoundError:
        data = {}
    if not isinstance(data, dict):
        data = {}

    defaults = _section(data, "defaults")
    runtimes = _section(data, "runtimes")
    iso = _section(data, "isolation")
    logging_cfg = _section(data, "logging")

    work_root = defaults.get("work_root", s.work_root)

    # 2) merge into Settings, keeping the field types
    s = s.model_copy(
        update={
            "default_timeout_ms": int(defaults.get("timeout_ms", s.default_timeout_ms)),
            "compile_timeout_ms": int(defaults.get("compile_timeout_ms", s.compile_timeout_ms)),
            "max_output_bytes": int(defaults.get("max_output_bytes", s.max_output_bytes)),
            "work_root": Path(str(work_root)) if work_root else None,
            "node_bin": str(runtimes.get("node", s.node_bin)),
            "kotlinc_bin": str(runtimes.get("kotlinc", s.kotlinc_bin)),
            "java_bin": str(runtimes.get("java", s.java_bin)),
            "node_modules": Path(str(runtimes.get("node_modules", s.node_modules))),
            "jsx_transpiler": [str(a) for a in runtimes.get("jsx_transpiler") or s.jsx_transpiler],
            "iso_strategy": str(iso.get("strategy", s.iso_strategy)),
            "allow_network": bool(iso.get("allow_network", s.allow_network)),
            "passthrough_env": list(data.get("passthrough_env") or s.passthrough_env),
            "catalog_file": Path(str(data.get("catalog", s.catalog_file))),
            "log_level": str(logging_cfg.get("level", s.log_level)),
            "log_json": bool(logging_cfg.get("json", s.log_json)),
        }
    )

    # 3) limits block is optional; a malformed one keeps the defaults
    limits = data.get("limits")
    s = s.model_copy(update={"limits": limits if isinstance(limits, dict) else {}})

    if overrides:
        s = s.model_copy(update=overrides)
    return s
