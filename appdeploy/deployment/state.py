#!/usr/bin/env python3
"""
Deployment state, persisted as the presence of a marker file.
"""

from enum import Enum
from pathlib import Path


class DeploymentState(Enum):
    FRESH = 'fresh'
    DEPLOYED = 'deployed'


def read_state(marker_file):
    """FRESH until the first deployment has touched the marker file."""
    if Path(marker_file).is_file():
        return DeploymentState.DEPLOYED
    return DeploymentState.FRESH


def mark_deployed(marker_file):
    marker = Path(marker_file)
    marker.parent.mkdir(parents=True, exist_ok=True)
    marker.touch()
    return DeploymentState.DEPLOYED
