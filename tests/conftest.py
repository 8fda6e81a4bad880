"""
servermigrate test configuration and fixtures
"""

import pytest
from pathlib import Path
from unittest.mock import Mock

from servermigrate.config import MigrateConfig, ServiceConfig
from servermigrate.core.interfaces.logger_interface import IOperationLogger
from servermigrate.services.reconciliation.bindings import build_default_bindings
from tests.fixtures.fake_storage import InMemoryStorageAdapter, RecordingServiceController


@pytest.fixture
def mock_logger():
    """Logger mock that accepts every ILogger / IOperationLogger call."""
    return Mock(spec=IOperationLogger)


@pytest.fixture
def host_root(tmp_path):
    """Filesystem root of a simulated host"""
    root = tmp_path / "host"
    root.mkdir()
    return root


def make_service_config(root: Path) -> ServiceConfig:
    return ServiceConfig(
        docker_config=str(root / "etc/docker/daemon.json"),
        rsyslog_config=str(root / "etc/rsyslog.d/99-zfs-logs.conf"),
        logrotate_config=str(root / "etc/logrotate.d/zfs-logs"),
        npm_config=str(root / "root/.npmrc"),
    )


def make_config(root: Path, **overrides) -> MigrateConfig:
    """MigrateConfig whose every path lives under ``root``"""
    environ = {
        "POOL_MOUNT": str(root / "server-data"),
        "SERVICE_ROOT": str(root / "srv"),
        "PACKAGE_DIR": str(root / "packages"),
        "DOCKER_CONFIG": str(root / "etc/docker/daemon.json"),
        "RSYSLOG_CONFIG": str(root / "etc/rsyslog.d/99-zfs-logs.conf"),
        "LOGROTATE_CONFIG": str(root / "etc/logrotate.d/zfs-logs"),
        "NPM_CONFIG": str(root / "root/.npmrc"),
        "LOG_LEVEL": "WARNING",
    }
    environ.update(overrides)
    return MigrateConfig(environ=environ)


@pytest.fixture
def service_config(host_root):
    return make_service_config(host_root)


@pytest.fixture
def bindings(service_config):
    return build_default_bindings(service_config)


@pytest.fixture
def controller():
    return RecordingServiceController(active={"docker": True, "rsyslog": True})


@pytest.fixture
def storage(tmp_path):
    return InMemoryStorageAdapter(tmp_path / "zfs", pools=["server-data"])


def write_config(path: str, content: str) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content)
    return target
