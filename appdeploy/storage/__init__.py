"""
Storage backend abstraction package.

This package provides the release sources `fetch` can pull a bundle from
(a local drop directory or an S3 bucket).
"""

from .local import LocalStorage
from .s3 import S3Storage


def get_storage_backend(config):
    """Factory function to get appropriate storage backend."""
    storage_mode = config['storage'].get('backend', 'local')

    if storage_mode == 'local':
        return LocalStorage(config['storage'])
    elif storage_mode == 's3':
        return S3Storage(config.get('s3', {}))
    else:
        raise ValueError(f"Unknown storage backend: {storage_mode}")


__all__ = ['LocalStorage', 'S3Storage', 'get_storage_backend']
