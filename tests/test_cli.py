# tests/test_cli.py
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import yaml

from appdeploy.deployment.errors import ExitCode
from appdeploy.deployment.orchestrator import main, push_command


@pytest.fixture
def config_file(config, tmp_path):
    path = tmp_path / "deploy-config.yaml"
    path.write_text(yaml.safe_dump(config))
    return path


def _run(*argv):
    with pytest.raises(SystemExit) as exc:
        main(list(argv))
    return exc.value.code


def test_cli_deploy_then_status(config_file, config, bundle_factory, capsys):
    bundle_factory('v1')

    assert _run('deploy', '--config', str(config_file)) == 0
    assert _run('status', '--config', str(config_file)) == 0

    out = capsys.readouterr().out
    assert "Deployment completed successfully" in out
    assert "State:      DEPLOYED" in out
    assert Path(config['deployment']['log_file']).exists()


def test_cli_deploy_exit_code_for_missing_bundle(config_file):
    assert _run('deploy', '--config', str(config_file)) == ExitCode.BUNDLE_NOT_FOUND


def test_cli_validate(config_file, bundle_factory, capsys):
    bundle_factory('v1', drop=['stop.sh'])
    assert _run('validate', '--config', str(config_file)) == 0
    out = capsys.readouterr().out
    assert "[OK] start.sh" in out
    assert "[--] stop.sh" in out

    bundle_factory('v1', drop=['start.sh'])
    assert _run('validate', '--config', str(config_file)) == ExitCode.BUNDLE_MISSING_START


def test_cli_bundle_override(config_file, tmp_path, config, bundle_factory):
    bundle_factory('v1')
    Path(config['deployment']['bundle_file']).rename(tmp_path / "other.zip")
    assert _run('validate', '--config', str(config_file), '--bundle', str(tmp_path / "other.zip")) == 0


def test_cli_rollback_without_backup(config_file):
    assert _run('rollback', '--config', str(config_file)) == ExitCode.NO_BACKUP


def test_cli_invalid_config(tmp_path, capsys):
    path = tmp_path / "deploy-config.yaml"
    path.write_text(yaml.safe_dump({'policies': {'stop': 'sometimes'}}))
    assert _run('status', '--config', str(path)) == ExitCode.CONFIG_INVALID
    assert "Invalid configuration" in capsys.readouterr().err


def test_cli_requires_arguments(config_file):
    assert _run('fetch', '--config', str(config_file)) == 2
    assert _run('push', '--config', str(config_file)) == 2
    assert _run('explode') == 2


# --- push ---


@pytest.fixture
def push_config(config):
    config['servers'] = {
        'vps': {
            'ssh_host': 'vps.example.com',
            'ssh_user': 'goldstack',
            'ssh_key_file': '~/.ssh/id_ed25519',
            'remote_bundle_file': '/home/goldstack/server.zip',
            'remote_command': 'appdeploy deploy',
        }
    }
    return config


def test_push_uploads_and_runs_remote_deploy(push_config, bundle_factory):
    bundle_factory('v1')
    ssh = MagicMock()
    ssh.ssh_exec.return_value = ("[2024-01-01 00:00:00] Deployment completed successfully\n", "", 0)

    assert push_command(push_config, 'vps', executor=ssh) == ExitCode.OK

    server_config = ssh.scp_upload.call_args.args[0]
    assert server_config['ssh_host'] == 'vps.example.com'
    ssh.scp_upload.assert_called_once_with(server_config, push_config['deployment']['bundle_file'],
                                           '/home/goldstack/server.zip')
    ssh.ssh_exec.assert_called_once_with(server_config, 'appdeploy deploy')
    ssh.ssh_exec_check.assert_called_once_with(server_config, 'mkdir -p /home/goldstack')


def test_push_returns_remote_exit_code(push_config, bundle_factory):
    bundle_factory('v1')
    ssh = MagicMock()
    ssh.ssh_exec.return_value = ("", "", int(ExitCode.START_FAILED))

    assert push_command(push_config, 'vps', executor=ssh) == ExitCode.START_FAILED


def test_push_transport_failures(push_config, bundle_factory):
    bundle_factory('v1')
    ssh = MagicMock()
    ssh.ssh_exec.return_value = ("", "Connection refused", 255)
    assert push_command(push_config, 'vps', executor=ssh) == ExitCode.TRANSFER_FAILED

    ssh.scp_upload.side_effect = RuntimeError("SCP upload failed (exit 1)")
    assert push_command(push_config, 'vps', executor=ssh) == ExitCode.TRANSFER_FAILED


def test_push_validates_bundle_before_upload(push_config):
    ssh = MagicMock()
    assert push_command(push_config, 'vps', executor=ssh) == ExitCode.BUNDLE_NOT_FOUND
    ssh.scp_upload.assert_not_called()


def test_push_unknown_server(push_config):
    assert push_command(push_config, 'nowhere', executor=MagicMock()) == ExitCode.CONFIG_INVALID


def test_push_fails_when_remote_directory_cannot_be_created(push_config, bundle_factory):
    bundle_factory('v1')
    ssh = MagicMock()
    ssh.ssh_exec_check.side_effect = RuntimeError("SSH command failed (exit 1): Permission denied")

    assert push_command(push_config, 'vps', executor=ssh) == ExitCode.TRANSFER_FAILED
    ssh.scp_upload.assert_not_called()
