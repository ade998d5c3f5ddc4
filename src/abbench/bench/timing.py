"""Process invocation and timing for benchmark runs.

Runs a variant executable to completion, capturing stdout, stderr, the
exit status, wall-clock time, and the child's user/system CPU time
(via ``resource.getrusage``).

There is no timeout; a workload that hangs hangs the
harness.  Each call blocks until the child exits and both output
streams are fully read.
"""

from __future__ import annotations

import logging
import os
import resource
import signal
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

log = logging.getLogger("abbench")


# ---------------------------------------------------------------------------
# CapturedRun
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CapturedRun:
    """Raw outcome of one process invocation."""

    wall_time_s: float
    user_time_s: float
    sys_time_s: float
    exit_code: int  # negative for termination by signal
    stdout: str
    stderr: str

    @property
    def cpu_time_s(self) -> float:
        """Total CPU time (user + system)."""
        return self.user_time_s + self.sys_time_s

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def status_description(self) -> str:
        """Human-readable exit status, e.g. ``status 1`` or ``signal SIGSEGV``."""
        if self.exit_code < 0:
            signum = -self.exit_code
            try:
                return f"signal {signal.Signals(signum).name}"
            except ValueError:
                return f"signal {signum}"
        return f"status {self.exit_code}"


# ---------------------------------------------------------------------------
# Core implementation
# ---------------------------------------------------------------------------


def run_captured(
    command: list[str],
    *,
    cwd: str | Path | None = None,
    env: dict[str, str] | None = None,
) -> CapturedRun:
    """Execute *command* and capture its output and resource usage.

    Args:
        command: Argument list; the first element is the executable.
        cwd: Working directory for the subprocess.
        env: Extra environment variables layered over ``os.environ``.

    Returns:
        CapturedRun with timing data and process output.

    Raises:
        OSError: If the executable cannot be started.
    """
    run_env = dict(os.environ)
    if env:
        run_env.update(env)

    log.debug("Running: %s", " ".join(command[:3]) + (" ..." if len(command) > 3 else ""))

    # Snapshot children's resource usage before.
    pre_rusage = resource.getrusage(resource.RUSAGE_CHILDREN)
    wall_start = time.monotonic()

    proc = subprocess.Popen(
        command,
        cwd=str(cwd) if cwd else None,
        env=run_env,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        errors="replace",
    )
    stdout, stderr = proc.communicate()

    wall_time = time.monotonic() - wall_start
    post_rusage = resource.getrusage(resource.RUSAGE_CHILDREN)

    user_time = post_rusage.ru_utime - pre_rusage.ru_utime
    sys_time = post_rusage.ru_stime - pre_rusage.ru_stime

    return CapturedRun(
        wall_time_s=wall_time,
        user_time_s=max(user_time, 0.0),
        sys_time_s=max(sys_time, 0.0),
        exit_code=proc.returncode,
        stdout=stdout,
        stderr=stderr,
    )


def variant_version(executable: str | Path) -> str:
    """Return the first line of ``<executable> -v``, for report headers.

    Returns ``"(unknown)"`` if the executable cannot be run.
    """
    try:
        proc = subprocess.run(
            [str(executable), "-v"],
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            errors="replace",
            check=False,
        )
    except OSError as exc:
        log.debug("Could not query version of %s: %s", executable, exc)
        return "(unknown)"
    text = (proc.stdout or proc.stderr).strip()
    return text.splitlines()[0] if text else "(unknown)"
