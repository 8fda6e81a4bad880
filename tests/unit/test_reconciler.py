"""
Unit tests for service reconciliation
"""

import json
import os
import stat
from pathlib import Path

import pytest

from servermigrate.models import ReconcileStatus
from servermigrate.services.reconciliation.bindings import (
    docker_daemon_template,
    logrotate_template,
    npm_template,
    rsyslog_template,
)
from servermigrate.services.reconciliation.reconciler import ServiceReconciler
from tests.conftest import write_config
from tests.fixtures.fake_storage import RecordingServiceController


@pytest.fixture
def old_configs(service_config):
    write_config(service_config.docker_config, docker_daemon_template("/data"))
    write_config(service_config.rsyslog_config, rsyslog_template("/data"))
    write_config(service_config.logrotate_config, logrotate_template("/data"))
    write_config(service_config.npm_config, npm_template("/data"))
    return service_config


@pytest.fixture
def reconciler(bindings, controller, mock_logger):
    return ServiceReconciler(bindings, controller, mock_logger)


def snapshot_files(service_config):
    paths = [service_config.docker_config, service_config.rsyslog_config,
             service_config.logrotate_config, service_config.npm_config]
    return {p: Path(p).read_bytes() for p in paths if Path(p).exists()}


@pytest.mark.asyncio
async def test_repoints_every_service(reconciler, old_configs, controller, tmp_path):
    target = tmp_path / "srv"

    outcomes = await reconciler.reconcile(target, previous_bases=["/data"])

    assert [o.status for o in outcomes] == [ReconcileStatus.OK] * 4
    assert json.loads(Path(old_configs.docker_config).read_text())["data-root"] == f"{target}/docker"
    assert Path(old_configs.rsyslog_config).read_text() == rsyslog_template(str(target))
    assert Path(old_configs.logrotate_config).read_text() == logrotate_template(str(target))
    assert Path(old_configs.npm_config).read_text() == npm_template(str(target))
    assert (target / "docker").is_dir()
    assert (target / "logs/security").is_dir()
    assert (target / "data/cache/npm").is_dir()


@pytest.mark.asyncio
async def test_only_active_services_are_restarted(reconciler, old_configs, controller, tmp_path):
    outcomes = await reconciler.reconcile(tmp_path / "srv", previous_bases=["/data"])

    assert controller.reloads == ["docker", "rsyslog"]
    by_service = {o.service: o for o in outcomes}
    assert by_service["docker"].reloaded and by_service["docker"].service_active
    assert not by_service["npm"].reloaded and not by_service["npm"].service_active


@pytest.mark.asyncio
async def test_reconcile_twice_is_idempotent(reconciler, old_configs, controller, tmp_path):
    target = tmp_path / "srv"
    await reconciler.reconcile(target, previous_bases=["/data"])
    first = snapshot_files(old_configs)
    reloads = list(controller.reloads)

    outcomes = await reconciler.reconcile(target, previous_bases=["/data"])

    assert snapshot_files(old_configs) == first
    assert [o.status for o in outcomes] == [ReconcileStatus.UNCHANGED] * 4
    assert controller.reloads == reloads


@pytest.mark.asyncio
async def test_missing_file_is_isolated(reconciler, old_configs, tmp_path):
    os.remove(old_configs.rsyslog_config)

    outcomes = await reconciler.reconcile(tmp_path / "srv", previous_bases=["/data"])

    statuses = {o.service: o.status for o in outcomes}
    assert statuses == {
        "docker": ReconcileStatus.OK,
        "rsyslog": ReconcileStatus.FAILED,
        "logrotate": ReconcileStatus.OK,
        "npm": ReconcileStatus.OK,
    }
    rsyslog = next(o for o in outcomes if o.service == "rsyslog")
    assert rsyslog.reason == "missing file"


@pytest.mark.asyncio
async def test_reload_failure_marks_only_that_service(bindings, old_configs, mock_logger, tmp_path):
    controller = RecordingServiceController(active={"docker": True, "rsyslog": True}, fail_reload={"docker"})
    reconciler = ServiceReconciler(bindings, controller, mock_logger)

    outcomes = await reconciler.reconcile(tmp_path / "srv", previous_bases=["/data"])

    docker = outcomes[0]
    assert docker.status == ReconcileStatus.FAILED
    assert "restart" in docker.reason
    assert docker.changed_fields == ["data-root"]
    assert controller.reloads == ["rsyslog"]


@pytest.mark.asyncio
async def test_unparseable_file_fails_without_touching_it(reconciler, old_configs, tmp_path):
    Path(old_configs.docker_config).write_text("{broken")

    outcomes = await reconciler.reconcile(tmp_path / "srv", previous_bases=["/data"])

    assert outcomes[0].status == ReconcileStatus.FAILED
    assert Path(old_configs.docker_config).read_text() == "{broken"


@pytest.mark.asyncio
async def test_file_mode_is_preserved(reconciler, old_configs, tmp_path):
    os.chmod(old_configs.npm_config, 0o600)

    await reconciler.reconcile(tmp_path / "srv", previous_bases=["/data"])

    assert stat.S_IMODE(os.stat(old_configs.npm_config).st_mode) == 0o600


@pytest.mark.asyncio
async def test_default_previous_bases_are_used(bindings, controller, mock_logger, service_config, tmp_path):
    write_config(service_config.rsyslog_config, "cron.*  /legacy/logs/cron.log\n")
    reconciler = ServiceReconciler(bindings, controller, mock_logger, default_previous_bases=["/legacy/"])

    await reconciler.reconcile(tmp_path / "srv")

    assert Path(service_config.rsyslog_config).read_text() == f"cron.*  {tmp_path}/srv/logs/cron.log\n"


@pytest.mark.asyncio
async def test_target_nested_under_previous_base_is_stable(bindings, controller, service_config, mock_logger, tmp_path):
    old_base = tmp_path / "srv"
    target = old_base / "migrated"
    write_config(service_config.rsyslog_config, rsyslog_template(str(old_base)))
    write_config(service_config.logrotate_config, logrotate_template(str(old_base)))
    reconciler = ServiceReconciler(bindings, controller, mock_logger, default_previous_bases=[str(old_base)])

    await reconciler.reconcile(target)
    first = snapshot_files(service_config)
    outcomes = await reconciler.reconcile(target)

    assert snapshot_files(service_config) == first
    assert Path(service_config.rsyslog_config).read_text() == rsyslog_template(str(target))
    assert Path(service_config.logrotate_config).read_text() == logrotate_template(str(target))
    by_service = {o.service: o.status for o in outcomes}
    assert by_service["rsyslog"] == ReconcileStatus.UNCHANGED
    assert by_service["logrotate"] == ReconcileStatus.UNCHANGED
