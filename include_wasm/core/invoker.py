"""
Build invoker — run a BuildCommand and capture what happened.

Blocks until the build tool exits.  There is no timeout and no retry: a
build with fixed inputs fails the same way every time.
"""
from __future__ import annotations

import logging
import subprocess
import time

from include_wasm.core.errors import ToolchainUnavailable
from include_wasm.core.model import BuildCommand, BuildFailed, BuildOutcome, BuildSucceeded
from include_wasm.policy.profile import Profile
from include_wasm.policy.toolchain import install_hint

logger = logging.getLogger(__name__)


def run_build(command: BuildCommand, profile: Profile) -> BuildOutcome:
    """
    Execute *command* in its working directory with its environment.

    A nonzero exit is returned as BuildFailed, not raised.

    Raises
    ------
    ToolchainUnavailable
        If the build tool cannot be started at all.
    """
    logger.info("Building %s", command.working_dir)
    logger.debug("Command: %s", command.display())

    t0 = time.monotonic()
    try:
        result = subprocess.run(
            command.argv(),
            cwd=str(command.working_dir),
            env=command.env_dict(),
            capture_output=True,
            check=False,
        )
    except OSError as exc:
        raise ToolchainUnavailable(
            f"could not run `{command.executable}`: {exc.strerror or exc}",
            remediation=install_hint(profile),
        ) from exc
    duration = int((time.monotonic() - t0) * 1000)

    if result.returncode != 0:
        logger.info(
            "Build of %s failed with exit code %d after %d ms",
            command.working_dir, result.returncode, duration,
        )
        return BuildFailed(
            exit_code=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
            duration_ms=duration,
        )

    logger.info("Built %s in %d ms", command.working_dir, duration)
    return BuildSucceeded(
        target_dir=command.target_dir,
        stdout=result.stdout,
        stderr=result.stderr,
        duration_ms=duration,
    )
