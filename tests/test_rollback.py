# tests/test_rollback.py
from pathlib import Path

import pytest

from appdeploy.deployment.errors import DeploymentError, ExitCode
from appdeploy.deployment.orchestrator import DeploymentOrchestrator
from appdeploy.deployment.rollback import clear_directory, create_backup, restore_backup, rollback
from appdeploy.executors import LocalExecutor
from conftest import read_events, read_tree


@pytest.fixture
def app_dir(tmp_path):
    app = tmp_path / "app"
    (app / "lib").mkdir(parents=True)
    (app / "start.sh").write_text("#!/bin/bash\n")
    (app / "lib" / "app.py").write_text("print(1)\n")
    (app / ".env").write_text("A=1\n")
    return app


def test_create_backup_copies_dotfiles(app_dir, tmp_path):
    backup = create_backup(app_dir, tmp_path / "backup")
    assert read_tree(backup) == read_tree(app_dir)
    assert (backup / ".env").exists()


def test_create_backup_discards_previous_backup(app_dir, tmp_path):
    backup_dir = tmp_path / "backup"
    backup_dir.mkdir()
    (backup_dir / "old.txt").write_text("old")

    create_backup(app_dir, backup_dir)
    assert not (backup_dir / "old.txt").exists()


def test_create_backup_missing_source(tmp_path):
    with pytest.raises(DeploymentError) as exc:
        create_backup(tmp_path / "missing", tmp_path / "backup")
    assert exc.value.code == ExitCode.BACKUP_FAILED


def test_clear_directory_keeps_preserved_entries(app_dir):
    clear_directory(app_dir, preserve=('.env',))
    assert sorted(p.name for p in app_dir.iterdir()) == ['.env']


def test_clear_directory_removes_symlinks_not_targets(app_dir, tmp_path):
    target = tmp_path / "shared"
    target.mkdir()
    (target / "keep.txt").write_text("keep")
    (app_dir / "shared").symlink_to(target)

    clear_directory(app_dir)
    assert list(app_dir.iterdir()) == []
    assert (target / "keep.txt").exists()


def test_restore_backup_matches_backup_exactly(app_dir, tmp_path):
    backup = create_backup(app_dir, tmp_path / "backup")
    (app_dir / "lib" / "app.py").write_text("half written")
    (app_dir / "new.txt").write_text("from the failed bundle")

    restore_backup(app_dir, backup)
    assert read_tree(app_dir) == read_tree(backup)


def test_manual_rollback_requires_deployment(config):
    with pytest.raises(DeploymentError) as exc:
        rollback(config, LocalExecutor())
    assert exc.value.code == ExitCode.NO_BACKUP


def test_manual_rollback_requires_backup(config, bundle_factory):
    bundle_factory('v1')
    assert DeploymentOrchestrator(config).run() == ExitCode.OK

    with pytest.raises(DeploymentError) as exc:
        rollback(config, LocalExecutor())
    assert exc.value.code == ExitCode.NO_BACKUP


def test_manual_rollback_restores_previous_version(config, bundle_factory, events):
    bundle_factory('v1')
    assert DeploymentOrchestrator(config).run() == ExitCode.OK
    bundle_factory('v2')
    assert DeploymentOrchestrator(config).run() == ExitCode.OK
    app = Path(config['deployment']['app_dir'])
    assert (app / 'VERSION').read_text() == 'v2\n'

    assert rollback(config, LocalExecutor()) == ExitCode.OK

    assert (app / 'VERSION').read_text() == 'v1\n'
    lines = read_events(events)
    assert lines[-2] == "stop"
    assert lines[-1].split() == ["start", "v1", "token-v1"]
