import asyncio
import shutil
import subprocess
from functools import lru_cache
from pathlib import Path

import pytest

from judgebox.adapters.registry import AdapterRegistry
from judgebox.content.catalog import load_catalog
from judgebox.services.host import SandboxHost
from judgebox.settings import Settings

ROOT = Path(__file__).resolve().parents[1]
CATALOG = ROOT / "conf" / "catalog.yaml"


def run(coro):
    return asyncio.run(coro)


@lru_cache(maxsize=None)
def node_strips_types() -> bool:
    node = shutil.which("node")
    if not node:
        return False
    probe = "process.stdout.write(typeof require('node:module').stripTypeScriptTypes)"
    try:
        out = subprocess.run([node, "-e", probe], capture_output=True, text=True, timeout=30)
    except (OSError, subprocess.TimeoutExpired):
        return False
    return out.stdout.strip() == "function"


def babel_installed() -> bool:
    return (ROOT / "node_modules" / "@babel" / "standalone").is_dir()


def has_kotlin() -> bool:
    return bool(shutil.which("kotlinc") and shutil.which("java"))


@pytest.fixture
def settings(tmp_path):
    return Settings(
        work_root=tmp_path / "work",
        default_timeout_ms=5000,
        node_modules=ROOT / "node_modules",
        log_json=False,
    )


@pytest.fixture
def host(settings):
    return SandboxHost(AdapterRegistry.from_settings(settings), settings)


@pytest.fixture
def node_host(host):
    if not shutil.which("node"):
        pytest.skip("node not installed")
    return host


@pytest.fixture
def ts_host(node_host):
    if not node_strips_types():
        pytest.skip("node without TypeScript type stripping (needs >= 22.13)")
    return node_host


@pytest.fixture
def jsx_host(node_host):
    if not babel_installed():
        pytest.skip("@babel/standalone not installed (npm install)")
    return node_host


@pytest.fixture
def kotlin_host(host):
    if not has_kotlin():
        pytest.skip("kotlinc/java not installed")
    return host


@pytest.fixture(scope="session")
def catalog():
    return load_catalog(CATALOG)
