#!/usr/bin/env python3
"""
Lifecycle step execution.

Every bundle script (stop, init, start) goes through run_step(); the
step's policy decides whether a missing or failing script aborts the
deployment or only produces a warning.
"""

import logging
import os
import stat
from enum import Enum
from pathlib import Path

from .errors import DeploymentError

logger = logging.getLogger(__name__)


class StepPolicy(Enum):
    FATAL_ON_FAILURE = 'fatal'
    WARN_ON_FAILURE = 'warn'


class LifecycleStep:
    """A bundle script plus what to do when it is absent or fails."""

    def __init__(self, name, script, policy, missing_code=None, failure_code=None,
                 start_message=None, failure_message=None, optional=False):
        self.name = name
        self.script = Path(script)
        self.policy = policy
        # optional scripts may be absent whatever the failure policy
        self.optional = optional or policy is StepPolicy.WARN_ON_FAILURE
        self.missing_code = missing_code
        self.failure_code = failure_code
        self.start_message = start_message or f"Running {self.script.name}..."
        self.failure_message = failure_message or f"{self.script.name} failed"

    def __repr__(self):
        return f"LifecycleStep({self.name!r}, {str(self.script)!r}, {self.policy.value})"


def make_executable(path):
    mode = os.stat(path).st_mode
    os.chmod(path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def log_output(text, level=logging.INFO):
    for line in text.splitlines():
        if line.strip():
            logger.log(level, f"  {line}")


def _fail(step, reason):
    if step.policy is StepPolicy.FATAL_ON_FAILURE:
        raise DeploymentError(step.failure_code, f"{step.failure_message} ({reason})")
    logger.warning(f"Warning: {step.failure_message} ({reason}), proceeding anyway")
    return False


def run_step(executor, step, cwd, env):
    """
    Run a lifecycle step.

    Returns:
        True if the script ran and exited 0, False if a WARN step was
        skipped or failed.

    Raises:
        DeploymentError: FATAL step missing, not executable or exiting non-zero
    """
    if not step.script.is_file():
        if not step.optional:
            raise DeploymentError(step.missing_code, f"Missing {step.script.name} file")
        logger.warning(f"Warning: {step.script.name} not found, proceeding anyway")
        return False

    logger.info(step.start_message)
    try:
        make_executable(step.script)
        returncode, stdout, stderr = executor.run_script(step.script, cwd, env)
    except OSError as e:
        # no shebang, bad interpreter line or sudo not installed
        return _fail(step, f"could not execute {step.script.name}: {e}")

    log_output(stdout)
    log_output(stderr)

    if returncode != 0:
        return _fail(step, f"script exit {returncode}")

    return True
