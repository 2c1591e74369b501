#!/usr/bin/env python3
"""
Environment loading for lifecycle scripts.

Each step returns a new read-only mapping instead of touching os.environ,
so the environment a script sees is exactly what was loaded for this run.
"""

import logging
import os
from pathlib import Path
from types import MappingProxyType

from dotenv import dotenv_values

from .errors import DeploymentError
from .lifecycle import log_output, make_executable

logger = logging.getLogger(__name__)


def base_environment():
    """Snapshot of the invoking process environment."""
    return MappingProxyType(dict(os.environ))


def load_env_file(env_file, env, error_code):
    """
    Layer KEY=VALUE pairs from env_file over env.
    A missing file is not an error; the previous mapping is returned as is.
    """
    env_path = Path(env_file)
    if not env_path.is_file():
        return env

    logger.info("Sourcing environment variables")
    try:
        values = dotenv_values(env_path)
    except (OSError, UnicodeDecodeError) as e:
        raise DeploymentError(error_code, f"Failed to source environment variables: {e}")

    # keys without '=' parse as None
    loaded = {key: value for key, value in values.items() if value is not None}
    merged = dict(env)
    merged.update(loaded)
    logger.info(f"Loaded {len(loaded)} variables from {env_path}")
    return MappingProxyType(merged)


def load_secrets(executor, script_path, app_dir, env, failure_code, missing_code):
    """
    Source the bundle's secret loader in a child shell seeded with env and
    return the environment it leaves behind. Values are never logged; the
    loader's output is logged only when it fails.
    """
    script = Path(script_path)
    if not script.is_file():
        raise DeploymentError(missing_code, f"Missing {script.name} file")

    logger.info("Loading secrets")
    try:
        make_executable(script)
        returncode, loaded, stderr = executor.source_script(script, app_dir, env)
    except OSError as e:
        raise DeploymentError(failure_code, f"Failed to load secrets: {e}")

    if returncode != 0:
        log_output(stderr, logging.ERROR)
        raise DeploymentError(failure_code, f"Failed to load secrets (exit {returncode})")
    if loaded is None:
        log_output(stderr, logging.ERROR)
        raise DeploymentError(failure_code,
                              f"Failed to load secrets ({script.name} exited before its environment was read)")

    changed = [key for key, value in loaded.items() if env.get(key) != value]
    logger.info(f"Secrets loaded ({len(changed)} variables set)")
    return MappingProxyType(loaded)
