"""Sandbox workspaces and helper command execution."""

import logging
import os
import subprocess
import tempfile
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path

from .classify import redact_urls
from .errors import ContractViolation, SolverSubprocessFailed, SolverTimedOut
from .models import ManagedFile

logger = logging.getLogger(__name__)

NON_INTERACTIVE_ENV = {
    "GIT_TERMINAL_PROMPT": "0",
    "POETRY_NO_INTERACTION": "1",
    "PIP_NO_INPUT": "1",
}


@contextmanager
def temporary_workspace(prefix: str = "reqpatch-") -> Iterator[Path]:
    """Yield a fresh directory that is removed on every exit path."""
    with tempfile.TemporaryDirectory(prefix=prefix) as directory:
        yield Path(directory)


def write_files(root: Path, files: list[ManagedFile]) -> None:
    """Materialize files under root, refusing paths that escape it."""
    root = root.resolve()
    for file in files:
        path = (root / file.name).resolve()
        if not path.is_relative_to(root):
            raise ContractViolation(f"Dependency file path escapes the workspace: {file.name}")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(file.content)


def run_command(
    command: str,
    cwd: Path | str | None = None,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
) -> str:
    """Run a shell command non-interactively and return its combined output.

    Args:
        command: Shell command string; interpolated values must be quoted
        cwd: Working directory
        timeout: Seconds before the command is killed
        env: Extra environment variables

    Returns:
        Combined stdout and stderr

    Raises:
        SolverSubprocessFailed: on a non-zero exit status
        SolverTimedOut: if the timeout expires
    """
    logger.debug("Running %s in %s", redact_urls(command), cwd or ".")
    start = time.monotonic()
    try:
        process = subprocess.run(
            command,
            shell=True,
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=timeout,
            env={**os.environ, **NON_INTERACTIVE_ENV, **(env or {})},
            check=False,
        )
    except subprocess.TimeoutExpired:
        raise SolverTimedOut(redact_urls(command), timeout) from None
    time_taken = time.monotonic() - start

    if process.returncode == 0:
        return process.stdout

    raise SolverSubprocessFailed(
        message=process.stdout,
        command=command,
        time_taken=time_taken,
        exit_status=process.returncode,
    )
