#!/usr/bin/env python3
"""
Base executor interface for lifecycle script operations.
"""


class BaseExecutor:
    """Interface for lifecycle script executors."""

    def run_script(self, script_path, cwd, env=None):
        """
        Run a lifecycle script to completion.

        Args:
            script_path: Path to the executable script
            cwd: Working directory for the script (the app directory)
            env: Mapping used as the script's entire environment

        Returns:
            (returncode, stdout, stderr)
        """
        raise NotImplementedError("Subclasses must implement run_script()")

    def source_script(self, script_path, cwd, env=None):
        """
        Source a shell script and capture the environment it leaves behind.

        Returns:
            (returncode, environment dict or None when the script
            exited before its environment was dumped, stderr)
        """
        raise NotImplementedError("Subclasses must implement source_script()")
