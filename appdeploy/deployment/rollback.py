#!/usr/bin/env python3
"""
Backup and Rollback Module
Snapshots the app directory before a redeploy and restores it when the
redeploy fails (or on demand via the `rollback` command).
"""

import logging
import shutil
from pathlib import Path

from .environment import base_environment, load_env_file, load_secrets
from .errors import DeploymentError, ExitCode
from .lifecycle import LifecycleStep, StepPolicy, run_step
from .state import DeploymentState, read_state
from .utils import resolve_env_file

logger = logging.getLogger(__name__)


def _remove(path):
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def create_backup(app_dir, backup_dir):
    """Replace backup_dir with a full copy of app_dir (dotfiles included)."""
    logger.info("Creating backup of existing app...")
    backup_path = Path(backup_dir)
    try:
        if backup_path.exists():
            shutil.rmtree(backup_path)
        shutil.copytree(app_dir, backup_path, symlinks=True)
    except OSError as e:
        raise DeploymentError(ExitCode.BACKUP_FAILED, f"Failed to create backup: {e}")
    logger.info(f"Backup created: {backup_path}")
    return backup_path


def clear_directory(app_dir, preserve=()):
    """Delete everything in app_dir except the top-level names in preserve."""
    logger.info("Deleting old app contents...")
    kept = []
    try:
        for entry in Path(app_dir).iterdir():
            if entry.name in preserve:
                kept.append(entry.name)
                continue
            _remove(entry)
    except OSError as e:
        raise DeploymentError(ExitCode.CLEAR_FAILED, f"Failed to delete old app contents: {e}")
    if kept:
        logger.info(f"Kept: {', '.join(sorted(kept))}")


def restore_backup(app_dir, backup_dir):
    """Make app_dir an exact copy of backup_dir."""
    app_path = Path(app_dir)
    app_path.mkdir(parents=True, exist_ok=True)
    for entry in app_path.iterdir():
        _remove(entry)
    shutil.copytree(backup_dir, app_path, symlinks=True, dirs_exist_ok=True)


def _restart(executor, app_dir, start_script, env):
    start = Path(app_dir) / start_script
    if not start.is_file():
        logger.warning(f"Warning: {start_script} not found in backup, app not restarted")
        return
    step = LifecycleStep(
        'restart', start, StepPolicy.FATAL_ON_FAILURE,
        missing_code=ExitCode.ROLLBACK_FAILED, failure_code=ExitCode.ROLLBACK_FAILED,
        start_message="Restarting the app from backup...",
        failure_message="Failed to restart the app from backup"
    )
    run_step(executor, step, app_dir, env)


def recover(executor, app_dir, backup_dir, start_script, env, error):
    """
    Restore the backup after a failed redeploy and bring it back online.

    Returns:
        error.code when the previous version was restored,
        ExitCode.ROLLBACK_FAILED when restoring or restarting it failed
    """
    logger.info("Restoring from backup...")
    try:
        restore_backup(app_dir, backup_dir)
        _restart(executor, app_dir, start_script, env)
    except (OSError, DeploymentError) as e:
        logger.error(f"ERROR: Rollback failed: {e} (original exit code: {int(error.code)})")
        return ExitCode.ROLLBACK_FAILED

    logger.info("Previous version restored")
    return error.code


def rollback(config, executor):
    """Manual rollback: restore the last backup and restart it."""
    deployment = config['deployment']
    scripts = config['scripts']
    app_dir = Path(deployment['app_dir'])
    backup_dir = Path(deployment['backup_dir'])

    logger.info("=== ROLLBACK ===")
    if read_state(deployment['marker_file']) is not DeploymentState.DEPLOYED:
        raise DeploymentError(ExitCode.NO_BACKUP, "Nothing to roll back: no deployment recorded", recoverable=False)
    if not backup_dir.is_dir():
        raise DeploymentError(ExitCode.NO_BACKUP, f"Backup directory not found: {backup_dir}", recoverable=False)

    stop = LifecycleStep('stop', app_dir / scripts['stop'], StepPolicy.WARN_ON_FAILURE,
                         start_message="Stopping the app...", failure_message="Failed to stop the app")
    run_step(executor, stop, app_dir, base_environment())

    logger.info("Restoring from backup...")
    try:
        restore_backup(app_dir, backup_dir)
        env = load_env_file(resolve_env_file(deployment), base_environment(), ExitCode.ROLLBACK_FAILED)
        secrets = app_dir / scripts['secrets']
        if secrets.is_file():
            env = load_secrets(executor, secrets, app_dir, env, ExitCode.ROLLBACK_FAILED, ExitCode.ROLLBACK_FAILED)
        _restart(executor, app_dir, scripts['start'], env)
    except OSError as e:
        raise DeploymentError(ExitCode.ROLLBACK_FAILED, f"Rollback failed: {e}", recoverable=False)

    logger.info("=== ROLLBACK COMPLETE ===")
    return ExitCode.OK
