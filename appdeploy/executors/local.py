#!/usr/bin/env python3
"""
Local executor for lifecycle scripts (runs on the deployment host).
"""

import subprocess

from .base import BaseExecutor

ENV_DUMP_END = '__APPDEPLOY_ENV_END__'

# Sources the script with auto-export on, sends its own output to stderr,
# then dumps the resulting environment NUL-separated on stdout. The end
# marker is missing when the script exits the shell before the dump.
SOURCE_SNIPPET = f'set -a; . "$0" 1>&2 && env -0 && printf {ENV_DUMP_END}'


def parse_env_dump(output):
    """Parse `env -0` output into a dict."""
    env = {}
    for entry in output.split('\0'):
        if not entry or '=' not in entry:
            continue
        key, value = entry.split('=', 1)
        env[key] = value
    env.pop('_', None)
    return env


class LocalExecutor(BaseExecutor):
    """Runs lifecycle scripts with subprocess, optionally through sudo."""

    def __init__(self, use_sudo=False):
        self.use_sudo = use_sudo

    def build_command(self, script_path):
        cmd = [str(script_path)]
        if self.use_sudo:
            # -E keeps the loaded environment across the privilege switch
            cmd = ['sudo', '-E'] + cmd
        return cmd

    def run_script(self, script_path, cwd, env=None):
        cmd = self.build_command(script_path)
        result = subprocess.run(
            cmd, cwd=str(cwd), env=dict(env) if env is not None else None,
            capture_output=True, text=True
        )
        return result.returncode, result.stdout, result.stderr

    def source_script(self, script_path, cwd, env=None):
        """
        Returns (returncode, env, stderr). env is None when the script
        exited before its environment could be read.
        """
        cmd = ['bash', '-c', SOURCE_SNIPPET, str(script_path)]
        result = subprocess.run(
            cmd, cwd=str(cwd), env=dict(env) if env is not None else None,
            capture_output=True, text=True
        )
        if result.returncode != 0:
            return result.returncode, {}, result.stderr
        if not result.stdout.endswith(ENV_DUMP_END):
            return result.returncode, None, result.stderr
        return 0, parse_env_dump(result.stdout[:-len(ENV_DUMP_END)]), result.stderr
