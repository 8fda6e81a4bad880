"""
Unit tests for the server-migrate command line
"""

import pytest

from servermigrate import cli
from servermigrate.core.exceptions.migration_exceptions import (
    PackageExistsError,
    PackageIntegrityError,
    ResolutionError,
    RestoreError,
    SnapshotError,
    StorageError,
)
from servermigrate.factories.service_factory import ServiceFactory
from tests.conftest import make_config, write_config
from tests.fixtures.fake_storage import InMemoryStorageAdapter, RecordingServiceController


@pytest.fixture
def fake_storage(host_root):
    storage = InMemoryStorageAdapter(host_root / "zfs", pools=["server-data"])
    storage.write_file("server-data", "cfg/x.json", b'{"a": 1}\n')
    storage.add_dataset("server-data/apps")
    return storage


@pytest.fixture
def factory(host_root, fake_storage, bindings):
    return ServiceFactory(
        make_config(host_root),
        storage=fake_storage,
        controller=RecordingServiceController(),
        bindings=bindings
    )


def run(argv, factory, capsys):
    code = cli.main(argv, factory=factory)
    return code, capsys.readouterr().out


def test_exit_code_mapping():
    assert cli.exit_code_for(PackageIntegrityError("p", "bad")) == cli.EXIT_PACKAGE_INTEGRITY
    assert cli.exit_code_for(PackageExistsError("p")) == cli.EXIT_PACKAGE_EXISTS
    assert cli.exit_code_for(ResolutionError("/srv")) == cli.EXIT_RESOLUTION
    assert cli.exit_code_for(RestoreError("boom")) == cli.EXIT_RESTORE
    assert cli.exit_code_for(SnapshotError("boom")) == cli.EXIT_SNAPSHOT
    assert cli.exit_code_for(StorageError("boom")) == cli.EXIT_STORAGE


def test_export_writes_package(factory, host_root, capsys):
    code, out = run(["export", "a"], factory, capsys)

    assert code == cli.EXIT_OK
    assert (host_root / "packages" / "migrate-a.pkg").is_file()
    assert "Snapshot: server-data@migrate-a" in out
    assert out.strip().endswith("SUCCESS")


def test_export_same_label_twice_keeps_first_package(factory, host_root, capsys):
    run(["export", "a"], factory, capsys)
    before = (host_root / "packages" / "migrate-a.pkg").read_bytes()

    code, out = run(["export", "a"], factory, capsys)

    assert code == cli.EXIT_PACKAGE_EXISTS
    assert "ABORTED" in out
    assert (host_root / "packages" / "migrate-a.pkg").read_bytes() == before


def test_export_with_failed_child_is_partial(factory, fake_storage, capsys):
    fake_storage.fail_snapshot_for.add("server-data/apps")

    code, out = run(["export", "a"], factory, capsys)

    assert code == cli.EXIT_PARTIAL_SNAPSHOTS
    assert "failed server-data/apps" in out
    assert "PARTIAL SUCCESS" in out


def test_invalid_label_is_usage_error(factory, capsys):
    code, out = run(["export", "bad label"], factory, capsys)

    assert code == cli.EXIT_USAGE
    assert "ABORTED" in out


def test_verify_package(factory, host_root, capsys):
    run(["export", "a"], factory, capsys)
    package = host_root / "packages" / "migrate-a.pkg"

    code, out = run(["verify-package", str(package)], factory, capsys)
    assert code == cli.EXIT_OK
    assert "package is intact" in out

    package.write_bytes(b"not a package")

    code, out = run(["verify-package", str(package)], factory, capsys)
    assert code == cli.EXIT_PACKAGE_INTEGRITY


def test_reconcile_reports_missing_configs(factory, host_root, capsys):
    code, out = run(["reconcile", str(host_root / "srv")], factory, capsys)

    assert code == cli.EXIT_PARTIAL_RECONCILE
    assert "missing file" in out
    assert "PARTIAL SUCCESS: failed services: docker, rsyslog, logrotate, npm" in out


def test_organize_then_reconcile_succeeds(factory, host_root, capsys):
    base = host_root / "srv"

    code, out = run(["organize", str(base)], factory, capsys)
    assert code == cli.EXIT_OK
    assert (base / "logs" / "security").is_dir()

    code, out = run(["reconcile", str(base)], factory, capsys)
    assert code == cli.EXIT_OK


def test_snapshots_and_prune(factory, capsys):
    run(["export", "a"], factory, capsys)
    run(["export", "b"], factory, capsys)

    code, out = run(["snapshots"], factory, capsys)
    assert code == cli.EXIT_OK
    assert "server-data@migrate-a" in out
    assert "4 migration snapshot(s)" in out

    code, out = run(["prune", "--keep", "1"], factory, capsys)
    assert code == cli.EXIT_OK
    assert "destroyed server-data@migrate-a" in out
    assert "destroyed server-data/apps@migrate-a" in out


def test_prune_rejects_negative_keep(factory):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["prune", "--keep", "-1"], factory=factory)
    assert exc_info.value.code == cli.EXIT_USAGE


def test_missing_pool_is_storage_error(host_root, bindings, capsys):
    factory = ServiceFactory(
        make_config(host_root, ZFS_POOLS="tank"),
        storage=InMemoryStorageAdapter(host_root / "zfs", pools=["server-data"]),
        controller=RecordingServiceController(),
        bindings=bindings
    )

    code, out = run(["snapshots"], factory, capsys)

    assert code == cli.EXIT_STORAGE
    assert "ABORTED" in out


def test_export_into_unwritable_location_aborts_with_summary(factory, host_root, capsys):
    blocker = host_root / "not-a-dir"
    blocker.write_text("")

    code, out = run(["export", "a", "--output-dir", str(blocker)], factory, capsys)

    assert code == cli.EXIT_FAILURE
    assert "ABORTED: Cannot write package" in out


def test_verify_package_shows_saved_configs(factory, host_root, service_config, capsys):
    write_config(service_config.npm_config, "prefix=/server-data/apps/node_modules\n")
    run(["export", "a"], factory, capsys)
    package = host_root / "packages" / "migrate-a.pkg"

    code, out = run(["verify-package", "--show-configs", str(package)], factory, capsys)

    assert code == cli.EXIT_OK
    assert f"--- {service_config.npm_config}" in out
    assert "prefix=/server-data/apps/node_modules" in out
