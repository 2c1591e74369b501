#!/usr/bin/env python3
"""
Executor factory and package exports.
"""

from .base import BaseExecutor
from .local import LocalExecutor
from .ssh import RemoteExecutor


def get_executor(config):
    """
    Factory function to create the lifecycle script executor.

    Args:
        config: Deployment configuration dict

    Returns:
        LocalExecutor instance
    """
    return LocalExecutor(use_sudo=config['deployment'].get('use_sudo', False))


# Package exports
__all__ = ['BaseExecutor', 'LocalExecutor', 'RemoteExecutor', 'get_executor']
