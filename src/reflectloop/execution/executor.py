"""Executor — run an artifact in an isolated subprocess with a timeout.

The artifact is written into a private temporary directory which is removed
on every exit path. The command runs in its own process group so that a
timeout or cancellation can kill it together with anything it spawned.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import signal
import sys
import tempfile
import time
from collections.abc import Sequence

from reflectloop.errors import ExecutionEnvironmentError
from reflectloop.execution.truncation import MAX_BYTES, cap_output, clean_output
from reflectloop.model.artifact import Artifact, ExecutionResult

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "execution timed out"
PATH_PLACEHOLDER = "{path}"

DEFAULT_COMMAND: tuple[str, ...] = (sys.executable, PATH_PLACEHOLDER)


class Executor:
    """Runs artifacts as subprocesses.

    Args:
        command: argv template. ``{path}`` is replaced with the artifact file;
            when absent, the path is appended as the last argument.
        suffix: File suffix for the written artifact (e.g. ".py").
        max_output_bytes: Cap per captured stream.
        gate: Optional semaphore shared between runs to bound the number of
            simultaneous subprocesses.
        env: Extra environment variables for the subprocess.
    """

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_COMMAND,
        suffix: str = ".py",
        max_output_bytes: int = MAX_BYTES,
        gate: asyncio.Semaphore | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        if not command:
            raise ValueError("command must not be empty")
        self._command = list(command)
        self._suffix = suffix
        self._max_output_bytes = max_output_bytes
        self._gate = gate
        self._env = env or {}

    async def execute(self, artifact: Artifact, timeout_seconds: float) -> ExecutionResult:
        """Run ``artifact`` and capture its outcome.

        Raises:
            ValueError: non-positive timeout or empty artifact content.
            ExecutionEnvironmentError: the command cannot be launched at all.
        """
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {timeout_seconds}")
        if not artifact.content:
            raise ValueError("artifact content must not be empty")

        if self._gate is None:
            return await self._run(artifact, timeout_seconds)
        async with self._gate:
            return await self._run(artifact, timeout_seconds)

    async def _run(self, artifact: Artifact, timeout_seconds: float) -> ExecutionResult:
        with tempfile.TemporaryDirectory(prefix="reflectloop-") as workdir:
            path = os.path.join(workdir, f"artifact_v{artifact.version}{self._suffix}")
            with open(path, "w", encoding="utf-8") as f:
                f.write(artifact.content)

            argv = self._build_argv(path)
            logger.debug("Run %s v%d: %s", artifact.run_id, artifact.version, argv)

            start = time.monotonic()
            process = await self._spawn(argv, workdir)
            try:
                stdout, stderr = await asyncio.wait_for(
                    process.communicate(), timeout=timeout_seconds
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "Run %s v%d timed out after %.1fs",
                    artifact.run_id,
                    artifact.version,
                    timeout_seconds,
                )
                return ExecutionResult(
                    success=False,
                    stderr=TIMEOUT_MESSAGE,
                    duration=time.monotonic() - start,
                    timed_out=True,
                )
            finally:
                await _terminate(process)

            duration = time.monotonic() - start

        out, out_truncated = cap_output(clean_output(stdout), self._max_output_bytes)
        err, err_truncated = cap_output(clean_output(stderr), self._max_output_bytes)
        exit_code = process.returncode

        return ExecutionResult(
            success=exit_code == 0,
            stdout=out,
            stderr=err,
            duration=duration,
            truncated=out_truncated or err_truncated,
            exit_code=exit_code,
        )

    def _build_argv(self, path: str) -> list[str]:
        if any(PATH_PLACEHOLDER in part for part in self._command):
            return [part.replace(PATH_PLACEHOLDER, path) for part in self._command]
        return [*self._command, path]

    async def _spawn(self, argv: list[str], workdir: str) -> asyncio.subprocess.Process:
        program = argv[0]
        if shutil.which(program) is None:
            raise ExecutionEnvironmentError(f"Interpreter not found: {program}")

        try:
            return await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=workdir,
                preexec_fn=os.setpgrp,  # New process group
                env={**os.environ, "TERM": "dumb", **self._env},
            )
        except OSError as e:
            raise ExecutionEnvironmentError(f"Failed to launch {program}: {e}") from e


async def _terminate(process: asyncio.subprocess.Process) -> None:
    """Kill the whole process group and reap the child.

    The group is killed even when the leader has already exited: anything it
    spawned in the background is still in the group.
    """
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        pass
    await process.wait()
