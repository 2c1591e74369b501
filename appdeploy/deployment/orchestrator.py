#!/usr/bin/env python3
"""
Application Deployment Orchestrator
Validates an uploaded bundle and deploys it into the app directory,
rolling back to the previous copy when a redeploy fails
"""

import argparse
import logging
import posixpath
import shlex
import sys
from pathlib import Path

from .bundle import extract_bundle, validate_bundle
from .environment import base_environment, load_env_file, load_secrets
from .errors import DeploymentError, ExitCode
from .lifecycle import LifecycleStep, StepPolicy, run_step
from .state import DeploymentState, mark_deployed, read_state
from .utils import (
    load_config, resolve_env_file, setup_logging,
    apply_default_credentials
)
from . import rollback
from ..executors import RemoteExecutor, get_executor
from ..executors.ssh import SSH_TRANSPORT_ERROR
from ..storage import get_storage_backend

logger = logging.getLogger(__name__)


class DeploymentOrchestrator:
    """
    Two-state deployment state machine.

    FRESH (no marker file): unpack, load env and secrets, run init, touch marker.
    DEPLOYED: stop, back up, wipe, unpack, load env and secrets.
    Both paths then run the start script. Every fatal condition ends in
    _handle_error(), which restores the backup when the failure happened
    after it was taken.
    """

    def __init__(self, config, executor=None):
        deployment = config['deployment']
        self.config = config
        self.scripts = config['scripts']
        self.app_dir = Path(deployment['app_dir'])
        self.bundle_file = Path(deployment['bundle_file'])
        self.backup_dir = Path(deployment['backup_dir'])
        self.marker_file = Path(deployment['marker_file'])
        self.env_file = resolve_env_file(deployment)
        self.preserve = tuple(deployment.get('preserve', []))
        self.stop_policy = StepPolicy(config['policies'].get('stop', 'warn'))
        self.executor = executor or get_executor(config)

        self.state = read_state(self.marker_file)
        self.env = base_environment()
        self.backup_taken = False

    def _script(self, key):
        return self.app_dir / self.scripts[key]

    def run(self):
        """Run one deployment. Returns ExitCode.OK or the failure code."""
        logger.info("Starting deployment process")
        self.state = read_state(self.marker_file)
        self.env = base_environment()
        self.backup_taken = False

        try:
            validate_bundle(self.bundle_file, self.scripts['start'])
            self._prepare_app_dir()

            if self.state is DeploymentState.FRESH:
                self._first_deploy()
            else:
                self._redeploy()

            self._start()
        except DeploymentError as error:
            return self._handle_error(error)

        logger.info("Deployment completed successfully")
        return ExitCode.OK

    def _prepare_app_dir(self):
        if not self.app_dir.is_dir():
            logger.info(f"Creating app directory: {self.app_dir}")
        try:
            self.app_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DeploymentError(ExitCode.APP_DIR_UNAVAILABLE,
                                  f"Failed to prepare app directory {self.app_dir}: {e}")

    def _load_environment(self, env_code, secrets_failed_code, secrets_missing_code):
        self.env = load_env_file(self.env_file, self.env, env_code)
        self.env = load_secrets(
            self.executor, self._script('secrets'), self.app_dir, self.env,
            secrets_failed_code, secrets_missing_code
        )

    def _first_deploy(self):
        logger.info("First deployment detected")
        extract_bundle(self.bundle_file, self.app_dir, ExitCode.FIRST_UNPACK_FAILED)
        self._load_environment(ExitCode.FIRST_ENV_FAILED, ExitCode.FIRST_SECRETS_FAILED,
                               ExitCode.FIRST_SECRETS_MISSING)

        logger.info("Running initialization script")
        init = LifecycleStep(
            'init', self._script('init'), StepPolicy.FATAL_ON_FAILURE,
            missing_code=ExitCode.INIT_MISSING, failure_code=ExitCode.INIT_FAILED,
            failure_message="Initialization failed"
        )
        run_step(self.executor, init, self.app_dir, self.env)

        mark_deployed(self.marker_file)
        logger.info("First deployment completed successfully")

    def _redeploy(self):
        logger.info("Subsequent deployment detected")

        stop = LifecycleStep(
            'stop', self._script('stop'), self.stop_policy,
            failure_code=ExitCode.STOP_FAILED, optional=True,
            start_message="Stopping the app...", failure_message="Failed to stop the app"
        )
        run_step(self.executor, stop, self.app_dir, self.env)

        rollback.create_backup(self.app_dir, self.backup_dir)
        self.backup_taken = True

        rollback.clear_directory(self.app_dir, self.preserve)
        extract_bundle(self.bundle_file, self.app_dir, ExitCode.UNPACK_FAILED)

        if not self._script('start').is_file():
            raise DeploymentError(ExitCode.UNPACKED_START_MISSING,
                                  f"Missing {self.scripts['start']} in unzipped content")

        self._load_environment(ExitCode.ENV_FAILED, ExitCode.SECRETS_FAILED, ExitCode.SECRETS_MISSING)

    def _start(self):
        start = LifecycleStep(
            'start', self._script('start'), StepPolicy.FATAL_ON_FAILURE,
            missing_code=ExitCode.START_MISSING, failure_code=ExitCode.START_FAILED,
            start_message="Starting the app...", failure_message="Failed to start the app"
        )
        run_step(self.executor, start, self.app_dir, self.env)

    def _handle_error(self, error):
        logger.error(f"ERROR: {error}")

        if error.recoverable and self.state is DeploymentState.DEPLOYED and self.backup_taken:
            return rollback.recover(
                self.executor, self.app_dir, self.backup_dir,
                self.scripts['start'], self.env, error
            )

        return error.code


def deploy_command(config):
    """Validate the uploaded bundle and deploy it."""
    setup_logging(config['deployment']['log_file'])
    return DeploymentOrchestrator(config).run()


def validate_command(config):
    """Validate the uploaded bundle without touching the app directory."""
    bundle_file = config['deployment']['bundle_file']
    print(f"\n=== VALIDATING BUNDLE ===")
    print(f"Bundle: {bundle_file}\n")

    try:
        names = validate_bundle(bundle_file, config['scripts']['start'])
    except DeploymentError as e:
        print(f"[FAILED] {e}")
        return e.code

    scripts = config['scripts']
    for key in ('start', 'stop', 'init', 'secrets'):
        present = scripts[key] in names or f"./{scripts[key]}" in names
        print(f"  {'[OK]' if present else '[--]'} {scripts[key]}")
    print(f"\n[OK] Bundle is valid ({len(names)} entries)")
    return ExitCode.OK


def status_command(config):
    """Print the deployment state of this host."""
    deployment = config['deployment']
    state = read_state(deployment['marker_file'])
    backup_dir = Path(deployment['backup_dir'])
    bundle_file = Path(deployment['bundle_file'])

    print(f"\n{'='*60}")
    print("DEPLOYMENT STATUS")
    print(f"{'='*60}")
    print(f"State:      {state.value.upper()}")
    print(f"App dir:    {deployment['app_dir']}")
    print(f"Bundle:     {bundle_file} ({'present' if bundle_file.is_file() else 'missing'})")
    print(f"Backup:     {backup_dir} ({'present' if backup_dir.is_dir() else 'none'})")
    print(f"Log file:   {deployment['log_file']}")
    print(f"{'='*60}")
    return ExitCode.OK


def rollback_command(config):
    """Restore the last backup on demand."""
    setup_logging(config['deployment']['log_file'])
    try:
        return rollback.rollback(config, get_executor(config))
    except DeploymentError as e:
        logger.error(f"ERROR: {e}")
        return e.code


def fetch_command(config, storage_key):
    """Pull a release from the storage backend into the bundle path."""
    setup_logging(config['deployment']['log_file'])
    bundle_file = config['deployment']['bundle_file']
    storage = get_storage_backend(config)

    logger.info(f"Fetching release {storage_key} ({config['storage']['backend']})")
    try:
        metadata = storage.get_metadata(storage_key)
        if not metadata['exists']:
            logger.error(f"ERROR: Release {storage_key} not found (Exit code: {int(ExitCode.TRANSFER_FAILED)})")
            return ExitCode.TRANSFER_FAILED
        if metadata.get('size') is not None:
            logger.info(f"Release size: {metadata['size']} bytes")
        storage.fetch_bundle(storage_key, bundle_file)
    except (OSError, RuntimeError) as e:
        logger.error(f"ERROR: Failed to fetch release: {e} (Exit code: {int(ExitCode.TRANSFER_FAILED)})")
        return ExitCode.TRANSFER_FAILED

    logger.info(f"Release saved to {bundle_file}")
    return ExitCode.OK


def push_command(config, server_name, executor=None):
    """
    Upload the bundle to a server and run the deployment there.
    The remote exit code becomes ours.
    """
    setup_logging(config['deployment']['log_file'])
    servers = config.get('servers', {})
    if server_name not in servers:
        logger.error(f"ERROR: Server '{server_name}' not found in configuration")
        return ExitCode.CONFIG_INVALID

    server_config = apply_default_credentials(dict(servers[server_name]), config)
    bundle_file = config['deployment']['bundle_file']
    remote_bundle = server_config.get('remote_bundle_file', bundle_file)
    remote_command = server_config.get('remote_command', 'appdeploy deploy')
    ssh = executor or RemoteExecutor()

    try:
        validate_bundle(bundle_file, config['scripts']['start'])
    except DeploymentError as e:
        logger.error(f"ERROR: {e}")
        return e.code

    logger.info(f"Uploading {bundle_file} to {server_config['ssh_host']}:{remote_bundle}")
    try:
        remote_dir = posixpath.dirname(remote_bundle)
        if remote_dir:
            ssh.ssh_exec_check(server_config, f"mkdir -p {shlex.quote(remote_dir)}")
        ssh.scp_upload(server_config, bundle_file, remote_bundle)
        logger.info(f"Running '{remote_command}' on {server_config['ssh_host']}")
        stdout, stderr, returncode = ssh.ssh_exec(server_config, remote_command)
    except (ValueError, RuntimeError, OSError) as e:
        logger.error(f"ERROR: Push failed: {e} (Exit code: {int(ExitCode.TRANSFER_FAILED)})")
        return ExitCode.TRANSFER_FAILED

    for line in stdout.splitlines():
        logger.info(f"  remote: {line}")

    if returncode == SSH_TRANSPORT_ERROR:
        logger.error(f"ERROR: SSH connection failed: {stderr.strip()}")
        return ExitCode.TRANSFER_FAILED
    if returncode != 0:
        logger.error(f"ERROR: Remote deployment failed (Exit code: {returncode})")
        return returncode

    logger.info("Remote deployment completed successfully")
    return ExitCode.OK


def main(argv=None):
    """Main entry point - parse command line and run the command."""
    parser = argparse.ArgumentParser(
        prog='appdeploy',
        description='Application Deployment Orchestrator',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # On the host: deploy the uploaded bundle
  appdeploy deploy

  # Check a bundle without deploying it
  appdeploy validate

  # Pull a release into the bundle path, then deploy
  appdeploy fetch --key server-1.4.2.zip
  appdeploy deploy

  # From CI: upload the bundle and deploy remotely
  appdeploy push --server hetzner-vps-1

  # Restore the previous version
  appdeploy rollback
        """
    )
    parser.add_argument('command', choices=['deploy', 'validate', 'status', 'rollback', 'fetch', 'push'],
                        help='Deployment command')
    parser.add_argument('--config', help='Configuration file (default: config/deploy-config.yaml or $APPDEPLOY_CONFIG)')
    parser.add_argument('--key', help='Release key in the storage backend (fetch)')
    parser.add_argument('--server', help='Server name from the configuration (push)')
    parser.add_argument('--bundle', help='Override deployment.bundle_file')
    args = parser.parse_args(argv)

    if args.command == 'fetch' and not args.key:
        parser.error("fetch requires --key argument")
    if args.command == 'push' and not args.server:
        parser.error("push requires --server argument")

    try:
        config = load_config(args.config)
    except DeploymentError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(int(e.code))

    if args.bundle:
        config['deployment']['bundle_file'] = args.bundle

    if args.command == 'deploy':
        code = deploy_command(config)
    elif args.command == 'validate':
        code = validate_command(config)
    elif args.command == 'status':
        code = status_command(config)
    elif args.command == 'rollback':
        code = rollback_command(config)
    elif args.command == 'fetch':
        code = fetch_command(config, args.key)
    elif args.command == 'push':
        code = push_command(config, args.server)

    sys.exit(int(code))


if __name__ == '__main__':
    main()
