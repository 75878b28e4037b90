"""External process execution for Bourbaki."""

import os
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

from logging_config import get_logger
from metrics import record_command

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 5.0


@dataclass
class ShellResult:
    """Captured outcome of an external command."""

    args: list[str]
    returncode: int | None  # None when the process could not be started or timed out
    stdout: str = ""
    stderr: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.returncode == 0


def run_command(
    args: Sequence[str],
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> ShellResult:
    """Run an executable and capture its output.

    Failures (missing executable, bad cwd, timeout, non-zero exit) are
    reported through the returned ``ShellResult`` and never raised.
    """
    cmd = [str(a) for a in args]
    program = os.path.basename(cmd[0]) if cmd else ""
    start = time.monotonic()
    try:
        cp = subprocess.run(
            cmd,
            cwd=str(cwd) if cwd else None,
            env=dict(env) if env is not None else None,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            timeout=timeout,
        )
        result = ShellResult(args=cmd, returncode=cp.returncode, stdout=cp.stdout, stderr=cp.stderr)
    except subprocess.TimeoutExpired:
        result = ShellResult(args=cmd, returncode=None, error=f"timed out after {timeout}s")
    except (OSError, ValueError) as e:
        # OSError covers a missing executable and an unusable cwd
        result = ShellResult(args=cmd, returncode=None, error=str(e))

    duration_ms = (time.monotonic() - start) * 1000
    record_command(program, result.ok, duration_ms)
    if not result.ok:
        detail = result.error or result.stderr.strip() or f"exit status {result.returncode}"
        logger.debug(f"Command failed: {' '.join(cmd)} (cwd={cwd}): {detail}")
    return result
