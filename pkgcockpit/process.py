#===============================================================================
#  Package Cockpit | process.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-02-10
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  Child process supervision. Runs external tools (git, dotnet, pip, package
#  entry points), streams their output line by line, and shuts them down with
#  a bounded wait followed by a forced kill of the whole process tree.
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Callable, Dict, List, Mapping, Optional, Sequence, Union

import psutil

from .constants import shutdown_timeout
from .exceptions import ProcessError

logger = logging.getLogger(__name__)

OutputCallback = Callable[[str], None]
PathLike = Union[str, Path]

# longest line delivered in one piece; longer runs without "\n" are split
_STREAM_LIMIT = 1024 * 1024
_READ_CHUNK = 64 * 1024


@dataclass(frozen=True)
class ProcessResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def is_success(self) -> bool:
        return self.exit_code == 0

    def check(self, description: str = "Process") -> "ProcessResult":
        """Raise ProcessError (with captured output) on nonzero exit."""
        if self.exit_code != 0:
            raise ProcessError(
                f"{description} failed (rc={self.exit_code})",
                exit_code=self.exit_code,
                stdout=self.stdout,
                stderr=self.stderr,
            )
        return self


def build_env(overlay: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Inherit the parent environment and apply overlay on top."""
    env = dict(os.environ)
    if overlay:
        env.update({k: str(v) for k, v in overlay.items()})
    return env


def _decode(line: bytes) -> str:
    return line.decode("utf-8", errors="replace").rstrip("\r\n")


async def _iter_lines(stream: asyncio.StreamReader) -> AsyncIterator[str]:
    """Decoded lines from stream, read in chunks.

    A line longer than _STREAM_LIMIT (e.g. a long run of "\\r" progress
    updates) is yielded in _STREAM_LIMIT pieces instead of failing the read.
    """
    buffer = bytearray()
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            break
        buffer += chunk
        while True:
            end = buffer.find(b"\n")
            if end < 0:
                break
            yield _decode(bytes(buffer[:end + 1]))
            del buffer[:end + 1]
        while len(buffer) >= _STREAM_LIMIT:
            yield _decode(bytes(buffer[:_STREAM_LIMIT]))
            del buffer[:_STREAM_LIMIT]
    if buffer:
        yield _decode(bytes(buffer))


def _format_cmd(executable: PathLike, args: Sequence[PathLike]) -> str:
    return " ".join([str(executable)] + [str(a) for a in args])


async def run_process(
    executable: PathLike,
    args: Sequence[PathLike] = (),
    cwd: Optional[PathLike] = None,
    env: Optional[Mapping[str, str]] = None,
    on_output: Optional[OutputCallback] = None,
) -> ProcessResult:
    """Run to completion, capturing stdout/stderr separately.

    on_output (if given) still sees every line as it arrives.
    """
    logger.debug(f"$ {_format_cmd(executable, args)}")
    try:
        proc = await asyncio.create_subprocess_exec(
            str(executable),
            *[str(a) for a in args],
            cwd=str(cwd) if cwd else None,
            env=build_env(env),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=_STREAM_LIMIT,
        )
    except OSError as e:
        raise ProcessError(f"Failed to launch {executable}: {e}") from e

    out_lines: List[str] = []
    err_lines: List[str] = []

    async def pump(stream: asyncio.StreamReader, sink: List[str]) -> None:
        async for text in _iter_lines(stream):
            sink.append(text)
            if on_output:
                on_output(text)

    await asyncio.gather(pump(proc.stdout, out_lines), pump(proc.stderr, err_lines))
    rc = await proc.wait()
    return ProcessResult(exit_code=rc, stdout="\n".join(out_lines), stderr="\n".join(err_lines))


class ProcessHandle:
    """A single supervised child process with merged, line-streamed output.

    Lifecycle: start() -> [wait_for_exit()] -> shutdown(). Once shut down the
    handle is retired and cannot be started again.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self.process: Optional[asyncio.subprocess.Process] = None
        self.killed = False
        self._reader_task: Optional[asyncio.Task] = None
        self._retired = False

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode if self.process else None

    @property
    def is_running(self) -> bool:
        return self.process is not None and self.process.returncode is None

    @property
    def is_retired(self) -> bool:
        return self._retired

    async def start(
        self,
        executable: PathLike,
        args: Sequence[PathLike] = (),
        cwd: Optional[PathLike] = None,
        env: Optional[Mapping[str, str]] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> "ProcessHandle":
        if self._retired:
            raise ProcessError(f"Process handle '{self.name}' was shut down and cannot be reused")
        if self.process is not None:
            raise ProcessError(f"Process '{self.name}' already started")

        self.name = self.name or Path(str(executable)).name
        logger.info(f"Starting {self.name}: {_format_cmd(executable, args)}")
        try:
            self.process = await asyncio.create_subprocess_exec(
                str(executable),
                *[str(a) for a in args],
                cwd=str(cwd) if cwd else None,
                env=build_env(env),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                limit=_STREAM_LIMIT,
            )
        except OSError as e:
            raise ProcessError(f"Failed to launch {executable}: {e}") from e

        self._reader_task = asyncio.create_task(self._read_loop(on_output))
        return self

    async def _read_loop(self, on_output: Optional[OutputCallback]) -> None:
        async for text in _iter_lines(self.process.stdout):
            if on_output is None:
                continue
            try:
                on_output(text)
            except Exception:
                logger.exception(f"Output handler for {self.name} raised")

    async def _drain_output(self, timeout: Optional[float] = None) -> None:
        if self._reader_task is None:
            return
        try:
            await asyncio.wait_for(self._reader_task, timeout)
        except (asyncio.TimeoutError, asyncio.CancelledError):
            logger.debug(f"Output reader for {self.name} did not finish cleanly")
        except Exception:
            logger.exception(f"Output reader for {self.name} failed")

    async def wait_for_exit(self, timeout: Optional[float] = None) -> int:
        """Wait for exit; raises asyncio.TimeoutError on deadline. Never kills."""
        if self.process is None:
            raise ProcessError(f"Process '{self.name}' was never started")
        rc = await asyncio.wait_for(asyncio.shield(self.process.wait()), timeout)
        await self._drain_output()
        return rc

    def _signal_tree(self, kill: bool) -> None:
        try:
            parent = psutil.Process(self.process.pid)
            procs = parent.children(recursive=True) + [parent]
        except psutil.NoSuchProcess:
            return
        for p in procs:
            try:
                if kill:
                    p.kill()
                else:
                    p.terminate()
            except psutil.NoSuchProcess:
                pass
            except psutil.AccessDenied:
                logger.warning(f"Access denied signalling pid {p.pid} ({self.name})")

    def kill(self) -> None:
        """Force-kill the process and every descendant."""
        if not self.is_running:
            return
        logger.warning(f"Killing {self.name} (pid {self.pid})")
        self.killed = True
        self._signal_tree(kill=True)

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        """Terminate, wait up to timeout, then kill. Never raises."""
        timeout = shutdown_timeout() if timeout is None else timeout
        self._retired = True
        if not self.is_running:
            await self._drain_output()
            return

        logger.info(f"Stopping {self.name} (pid {self.pid})")
        self._signal_tree(kill=False)
        try:
            await asyncio.wait_for(asyncio.shield(self.process.wait()), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{self.name} did not exit within {timeout:.1f}s")
            self._force_kill_quietly()
        except asyncio.CancelledError:
            logger.info(f"Shutdown wait for {self.name} was cancelled")
            self._force_kill_quietly()

        try:
            await asyncio.wait_for(asyncio.shield(self.process.wait()), timeout)
        except (asyncio.TimeoutError, asyncio.CancelledError):
            logger.error(f"{self.name} (pid {self.pid}) still alive after kill")
        await self._drain_output(timeout)

    def _force_kill_quietly(self) -> None:
        try:
            self.kill()
        except psutil.Error as e:
            logger.error(f"Failed to kill {self.name}: {e}")
