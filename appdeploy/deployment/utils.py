#!/usr/bin/env python3
"""
Deployment utilities - shared helper functions.
"""

import copy
import logging
import os
import sys
from pathlib import Path

import yaml

from .errors import DeploymentError, ExitCode
from ..config.validation import validate_config

ROOT = Path(__file__).parent.parent.parent
DEFAULT_CONFIG_PATH = ROOT / "config" / "deploy-config.yaml"

LOG_FORMAT = '[%(asctime)s] %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

DEFAULT_CONFIG = {
    'deployment': {
        'app_dir': '/home/goldstack/app',
        'bundle_file': '/home/goldstack/server.zip',
        'backup_dir': '/home/goldstack/app_backup',
        'marker_file': '/home/goldstack/.first_deploy',
        'env_file': '.env',
        'log_file': '/home/goldstack/deploy.log',
        'use_sudo': True,
        'preserve': ['.env'],
    },
    'scripts': {
        'start': 'start.sh',
        'stop': 'stop.sh',
        'init': 'init.sh',
        'secrets': 'load-secrets.sh',
    },
    'policies': {
        'stop': 'warn',
    },
    'storage': {
        'backend': 'local',
        'drop_dir': '/home/goldstack/releases',
    },
    'servers': {},
}


def load_yaml(file_path):
    with open(file_path, 'r') as f:
        return yaml.safe_load(f)


def deep_merge(base, override):
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def _read_config_file(path):
    try:
        return load_yaml(path) or {}
    except (OSError, yaml.YAMLError) as e:
        raise DeploymentError(ExitCode.CONFIG_INVALID, f"Failed to read configuration {path}: {e}")


def load_config(config_path=None):
    """
    Load configuration with optional local overrides.
    - Default: config/deploy-config.yaml, or $APPDEPLOY_CONFIG
    - DEPLOYMENT_ENV=local: merges deploy-config.local.yaml overrides
    - Keys missing from the file fall back to DEFAULT_CONFIG
    """
    explicit = config_path or os.environ.get('APPDEPLOY_CONFIG')
    path = Path(explicit) if explicit else DEFAULT_CONFIG_PATH

    if path.exists():
        file_config = _read_config_file(path)
    elif explicit:
        raise DeploymentError(ExitCode.CONFIG_INVALID, f"Configuration file not found: {path}")
    else:
        file_config = {}

    env = os.environ.get('DEPLOYMENT_ENV', '').strip()
    if env == 'local':
        override_path = path.with_name(f"{path.stem}.local{path.suffix}")
        if override_path.exists():
            file_config = deep_merge(file_config, _read_config_file(override_path))

    config = deep_merge(copy.deepcopy(DEFAULT_CONFIG), file_config)

    is_valid, errors = validate_config(config)
    if not is_valid:
        raise DeploymentError(ExitCode.CONFIG_INVALID, "Invalid configuration: " + "; ".join(errors))

    return config


def resolve_env_file(deployment_config):
    """Relative env_file paths live inside the app directory."""
    env_file = Path(deployment_config['env_file'])
    if not env_file.is_absolute():
        env_file = Path(deployment_config['app_dir']) / env_file
    return env_file


def setup_logging(log_file=None):
    """
    Send 'appdeploy' log records to stdout and append them to log_file.
    Safe to call more than once; previous handlers are replaced.
    """
    logger = logging.getLogger('appdeploy')
    logger.setLevel(logging.INFO)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def apply_default_credentials(server_config, config):
    """Fill missing ssh_env_vars entries from default_credentials."""
    default_creds = config.get('default_credentials', {})

    if 'ssh_env_vars' not in server_config:
        server_config['ssh_env_vars'] = {}

    ssh_vars = server_config['ssh_env_vars']

    if 'username' not in ssh_vars and 'ssh_username' in default_creds:
        ssh_vars['username'] = default_creds['ssh_username']

    if 'password' not in ssh_vars and 'ssh_password' in default_creds:
        ssh_vars['password'] = default_creds['ssh_password']

    return server_config
