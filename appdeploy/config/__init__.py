"""
Configuration validation package.

This package validates deploy-config.yaml against its JSON schema.
"""

__all__ = ['validation']
