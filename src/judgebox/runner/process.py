from __future__ import annotations

import asyncio
import os
import signal
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

import structlog

log = structlog.get_logger(__name__)

CHUNK = 64 * 1024
# how long to keep draining pipes once the process itself is gone
SETTLE_S = 1.0


@dataclass
class ProcessOutcome:
    stdout: str
    stderr: str
    returncode: Optional[int]
    timed_out: bool
    elapsed_ms: int
    truncated: bool = False


class _CappedBuffer:
    def __init__(self, limit: int):
        self.limit = limit
        self.data = bytearray()
        self.truncated = False

    def feed(self, chunk: bytes) -> None:
        room = self.limit - len(self.data)
        if room <= 0:
            self.truncated = True
            return
        if len(chunk) > room:
            self.truncated = True
            chunk = chunk[:room]
        self.data.extend(chunk)

    def text(self) -> str:
        return self.data.decode("utf-8", errors="replace")


async def _pump(stream: asyncio.StreamReader, buf: _CappedBuffer) -> None:
    # keep reading past the cap so the child never blocks on a full pipe
    while True:
        chunk = await stream.read(CHUNK)
        if not chunk:
            return
        buf.feed(chunk)


async def _feed(stream: asyncio.StreamWriter, data: str) -> None:
    try:
        if data:
            stream.write(data.encode("utf-8"))
            await stream.drain()
    except (BrokenPipeError, ConnectionResetError):
        # child exited without reading all of its input
        pass
    finally:
        stream.close()


def _kill_group(pid: int) -> None:
    try:
        os.killpg(pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        pass


async def _settle(tasks: List["asyncio.Task[None]"]) -> None:
    _, pending = await asyncio.wait(tasks, timeout=SETTLE_S)
    for task in pending:
        task.cancel()
    results = await asyncio.gather(*tasks, return_exceptions=True)
    for res in results:
        if isinstance(res, Exception) and not isinstance(res, asyncio.CancelledError):
            log.warning("process.pipe_error", error=repr(res))


async def run_process(
    argv: List[str],
    *,
    cwd: Path,
    env: Dict[str, str],
    stdin: str = "",
    timeout_ms: int,
    max_output_bytes: int,
    preexec: Optional[Callable[[], None]] = None,
) -> ProcessOutcome:
    """
    Run ``argv`` in its own session and process group with a hard wall clock.

    On expiry the whole group is SIGKILLed; whatever reached the pipes before
    that is returned. The group is killed after a normal exit as well so no
    stray children outlive the run.
    """
    out_buf = _CappedBuffer(max_output_bytes)
    err_buf = _CappedBuffer(max_output_bytes)

    start = time.monotonic()
    proc = await asyncio.create_subprocess_exec(
        *argv,
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=str(cwd),
        env=env,
        start_new_session=True,
        preexec_fn=preexec,
    )
    tasks = [
        asyncio.create_task(_pump(proc.stdout, out_buf)),
        asyncio.create_task(_pump(proc.stderr, err_buf)),
        asyncio.create_task(_feed(proc.stdin, stdin)),
    ]

    timed_out = False
    try:
        await asyncio.wait_for(proc.wait(), timeout=timeout_ms / 1000)
    except asyncio.TimeoutError:
        timed_out = True
        _kill_group(proc.pid)
        await proc.wait()
    except asyncio.CancelledError:
        _kill_group(proc.pid)
        for task in tasks:
            task.cancel()
        raise
    finally:
        elapsed_ms = int((time.monotonic() - start) * 1000)

    _kill_group(proc.pid)
    await _settle(tasks)

    return ProcessOutcome(
        stdout=out_buf.text(),
        stderr=err_buf.text(),
        returncode=proc.returncode,
        timed_out=timed_out,
        elapsed_ms=elapsed_ms,
        truncated=out_buf.truncated or err_buf.truncated,
    )
