#!/usr/bin/env python3
"""
Base storage backend interface for release bundles.
"""


class StorageBackend:
    """Base interface for storage backends."""

    def fetch_bundle(self, storage_key, local_path):
        """Copy the release stored under storage_key to local_path."""
        raise NotImplementedError

    def get_metadata(self, storage_key):
        """Get metadata about a stored release."""
        raise NotImplementedError
