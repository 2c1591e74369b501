#!/usr/bin/env python3
"""
Bundle operations for application deployments.
Validates the uploaded ZIP archive and unpacks it into the app directory.
"""

import logging
import zipfile
import zlib
from pathlib import Path

from .errors import DeploymentError, ExitCode

logger = logging.getLogger(__name__)

ARCHIVE_ERRORS = (zipfile.BadZipFile, zlib.error, OSError, RuntimeError, EOFError)


def _has_root_entry(names, script_name):
    return any(name in (script_name, f"./{script_name}") for name in names)


def validate_bundle(bundle_file, start_script='start.sh'):
    """
    Check the bundle before anything on disk is touched:
    the file exists, every member passes its CRC check, and the start
    script sits at the archive root.
    """
    bundle_path = Path(bundle_file)

    if not bundle_path.is_file():
        raise DeploymentError(ExitCode.BUNDLE_NOT_FOUND, f"ZIP file not found: {bundle_path}")

    if not zipfile.is_zipfile(bundle_path):
        raise DeploymentError(ExitCode.BUNDLE_INVALID, f"Invalid ZIP file: {bundle_path}")

    try:
        with zipfile.ZipFile(bundle_path, 'r') as zipf:
            bad_member = zipf.testzip()
            names = zipf.namelist()
    except ARCHIVE_ERRORS as e:
        raise DeploymentError(ExitCode.BUNDLE_INVALID, f"Invalid ZIP file: {bundle_path} ({e})")

    if bad_member is not None:
        raise DeploymentError(ExitCode.BUNDLE_INVALID, f"Invalid ZIP file: {bundle_path} (corrupt member {bad_member})")

    if not _has_root_entry(names, start_script):
        logger.info("Bundle contents:")
        for name in names:
            logger.info(f"  {name}")
        raise DeploymentError(ExitCode.BUNDLE_MISSING_START, f"ZIP file missing required file: {start_script}")

    return names


def extract_bundle(bundle_file, app_dir, error_code):
    """Unpack the bundle into app_dir, overwriting existing files."""
    logger.info("Unzipping the file...")
    try:
        with zipfile.ZipFile(bundle_file, 'r') as zipf:
            zipf.extractall(app_dir)
            count = len(zipf.namelist())
    except ARCHIVE_ERRORS as e:
        raise DeploymentError(error_code, f"Failed to unzip file: {e}")

    logger.info(f"Unpacked {count} entries into {app_dir}")
    return count
