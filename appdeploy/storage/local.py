#!/usr/bin/env python3
"""
Local storage backend: releases dropped into a directory on the host.
"""

import shutil
from pathlib import Path

from .base import StorageBackend


class LocalStorage(StorageBackend):
    """Releases live as files under drop_dir."""

    def __init__(self, config):
        self.drop_dir = Path(config.get('drop_dir', './releases'))

    def _source(self, storage_key):
        return self.drop_dir / storage_key

    def fetch_bundle(self, storage_key, local_path):
        source = self._source(storage_key)
        if not source.is_file():
            raise FileNotFoundError(f"Release not found: {source}")
        Path(local_path).parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, local_path)
        return str(local_path)

    def get_metadata(self, storage_key):
        source = self._source(storage_key)
        if source.is_file():
            return {
                'storage_mode': 'local',
                'local_path': str(source),
                'exists': True,
                'size': source.stat().st_size
            }
        return {'exists': False}
