"""
Deployment and orchestration package.

This package contains modules for validating bundles, driving the
deployment state machine, and restoring the previous application copy.
"""

__all__ = ['orchestrator', 'bundle', 'state', 'errors', 'environment', 'lifecycle', 'rollback', 'utils']
