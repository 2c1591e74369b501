#!/usr/bin/env python3
"""
Exit codes and the error type raised by deployment steps.
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """Stable process exit codes, one per failure reason."""

    OK = 0
    BUNDLE_NOT_FOUND = 1
    BUNDLE_INVALID = 2
    BUNDLE_MISSING_START = 3
    APP_DIR_UNAVAILABLE = 4
    FIRST_UNPACK_FAILED = 5
    FIRST_ENV_FAILED = 6
    FIRST_SECRETS_FAILED = 7
    FIRST_SECRETS_MISSING = 8
    INIT_FAILED = 9
    INIT_MISSING = 10
    STOP_FAILED = 11
    BACKUP_FAILED = 12
    CLEAR_FAILED = 13
    UNPACK_FAILED = 14
    UNPACKED_START_MISSING = 15
    ENV_FAILED = 16
    SECRETS_FAILED = 17
    SECRETS_MISSING = 18
    START_FAILED = 19
    START_MISSING = 20
    ROLLBACK_FAILED = 21
    NO_BACKUP = 22
    CONFIG_INVALID = 23
    TRANSFER_FAILED = 24


# Failures that happen after the app directory has been touched.
RECOVERABLE_CODES = frozenset({
    ExitCode.CLEAR_FAILED,
    ExitCode.UNPACK_FAILED,
    ExitCode.UNPACKED_START_MISSING,
    ExitCode.ENV_FAILED,
    ExitCode.SECRETS_FAILED,
    ExitCode.SECRETS_MISSING,
    ExitCode.START_FAILED,
    ExitCode.START_MISSING,
})


class DeploymentError(Exception):
    """
    Fatal deployment condition.

    Args:
        code: ExitCode the process should exit with
        message: Human readable reason, written to the log
        recoverable: Whether restoring the backup can undo the damage.
            Defaults to membership in RECOVERABLE_CODES.
    """

    def __init__(self, code, message, recoverable=None):
        super().__init__(message)
        self.code = ExitCode(code)
        self.message = message
        if recoverable is None:
            recoverable = self.code in RECOVERABLE_CODES
        self.recoverable = recoverable

    def __str__(self):
        return f"{self.message} (Exit code: {int(self.code)})"
