#!/usr/bin/env python3
"""
Remote execution helpers for SSH operations.
Provides simple wrappers around ssh/scp, using sshpass when a password is configured.
"""

import os
import subprocess

# ssh reserves 255 for its own errors
SSH_TRANSPORT_ERROR = 255


class RemoteExecutor:
    """SSH remote executor (key file or sshpass)."""

    def _get_credentials(self, ssh_config):
        """Returns (username, password). Password is None for key-based access."""
        ssh_vars = ssh_config.get('ssh_env_vars', {})
        username_env = ssh_vars.get('username')
        password_env = ssh_vars.get('password')

        username = (os.environ.get(username_env) if username_env else None) or ssh_config.get('ssh_user')
        password = os.environ.get(password_env) if password_env else None

        if not username:
            raise ValueError(
                f"SSH user not found: set {username_env or 'ssh_env_vars.username'} "
                f"or ssh_user in the server config"
            )
        if not password and not ssh_config.get('ssh_key_file'):
            raise ValueError(
                f"SSH credentials not found: {password_env or 'ssh_env_vars.password'} "
                f"or ssh_key_file required"
            )

        return username, password

    def _build_cmd(self, tool, ssh_config, password):
        port_flag = '-P' if tool == 'scp' else '-p'
        cmd = ['sshpass', '-e'] if password else []
        cmd += [
            tool,
            '-o', 'StrictHostKeyChecking=no',
            '-o', 'UserKnownHostsFile=/dev/null',
            port_flag, str(ssh_config.get('ssh_port', 22)),
        ]
        if ssh_config.get('ssh_key_file'):
            cmd += ['-i', os.path.expanduser(ssh_config['ssh_key_file'])]
        return cmd

    def _build_env(self, password):
        env = os.environ.copy()
        if password:
            env['SSHPASS'] = password
        return env

    def build_ssh_cmd(self, ssh_config, remote_command):
        """Build the ssh command list (sshpass-prefixed when using a password)."""
        username, password = self._get_credentials(ssh_config)
        cmd = self._build_cmd('ssh', ssh_config, password)
        return cmd + [f"{username}@{ssh_config['ssh_host']}", remote_command]

    def ssh_exec(self, ssh_config, command):
        """Execute command on remote server via SSH."""
        _, password = self._get_credentials(ssh_config)
        ssh_cmd = self.build_ssh_cmd(ssh_config, command)

        result = subprocess.run(ssh_cmd, env=self._build_env(password), capture_output=True, text=True)
        return result.stdout, result.stderr, result.returncode

    def ssh_exec_check(self, ssh_config, command):
        """Execute command and raise error if it fails."""
        stdout, stderr, returncode = self.ssh_exec(ssh_config, command)

        if returncode != 0:
            raise RuntimeError(f"SSH command failed (exit {returncode}): {stderr}")

        return stdout

    def scp_upload(self, ssh_config, local_path, remote_path):
        """Upload file to remote server via SCP."""
        username, password = self._get_credentials(ssh_config)
        scp_cmd = self._build_cmd('scp', ssh_config, password) + [
            str(local_path),
            f"{username}@{ssh_config['ssh_host']}:{remote_path}"
        ]

        result = subprocess.run(scp_cmd, env=self._build_env(password), capture_output=True, text=True)
        if result.returncode != 0:
            raise RuntimeError(f"SCP upload failed (exit {result.returncode}): {result.stderr}")

        return result.stdout
