# tests/conftest.py
import copy
import logging
import zipfile
from pathlib import Path

import pytest

from appdeploy.deployment.utils import DEFAULT_CONFIG


def script(body):
    """Wrap shell lines in a bash script."""
    return "#!/bin/bash\n" + body + "\n"


def read_tree(root):
    """Map relative path -> bytes for every file under root."""
    root = Path(root)
    if not root.exists():
        return None
    return {
        str(path.relative_to(root)): path.read_bytes()
        for path in sorted(root.rglob('*')) if path.is_file()
    }


def read_events(events_file):
    path = Path(events_file)
    if not path.exists():
        return []
    return path.read_text().splitlines()


@pytest.fixture(autouse=True)
def reset_appdeploy_logger():
    """Close file handlers left by setup_logging()."""
    yield
    logger = logging.getLogger('appdeploy')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def home(tmp_path):
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def events(home):
    """File the bundle scripts append to, one line per lifecycle event."""
    return home / "events.log"


@pytest.fixture
def config(home):
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg['deployment'].update({
        'app_dir': str(home / 'app'),
        'bundle_file': str(home / 'server.zip'),
        'backup_dir': str(home / 'app_backup'),
        'marker_file': str(home / '.first_deploy'),
        'log_file': str(home / 'deploy.log'),
        'use_sudo': False,
    })
    cfg['storage']['drop_dir'] = str(home / 'releases')
    return cfg


def app_files(events, version="v1", drop=(), replace=None):
    """Files of a well-formed bundle, minus `drop`, with `replace` applied."""
    files = {
        'start.sh': script(f'echo "start {version} ${{API_TOKEN:-}} ${{APP_MODE:-}}" >> "{events}"'),
        'stop.sh': script(f'echo "stop" >> "{events}"'),
        'init.sh': script(f'echo "init {version}" >> "{events}"'),
        'load-secrets.sh': f'export API_TOKEN=token-{version}\n',
        'VERSION': f'{version}\n',
        'lib/app.py': f'print("hello from {version}")\n',
    }
    for name in drop:
        files.pop(name, None)
    files.update(replace or {})
    return files


def make_bundle(path, files):
    with zipfile.ZipFile(path, 'w', zipfile.ZIP_DEFLATED) as zipf:
        for name, content in files.items():
            zipf.writestr(name, content)
    return Path(path)


@pytest.fixture
def bundle_factory(config, events):
    """Write a bundle to the configured bundle path and return its files."""
    def _factory(version="v1", drop=(), replace=None):
        files = app_files(events, version, drop, replace)
        make_bundle(config['deployment']['bundle_file'], files)
        return files
    return _factory
