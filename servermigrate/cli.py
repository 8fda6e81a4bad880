"""server-migrate command line.

Maps argparse subcommands onto the migration engine. Structured logs go to
stderr; every command ends with a plain-text summary on stdout.
"""

import argparse
import asyncio
from typing import Callable, Dict, List, Optional, Sequence

from .config import load_config
from .core.exceptions.migration_exceptions import (
    MigrationError,
    PackageIntegrityError,
    PackageExistsError,
    ResolutionError,
    SnapshotError,
    RestoreError,
    StorageError,
)
from .core.exceptions.validation_exceptions import ValidationException
from .core.value_objects.snapshot_label import SnapshotLabel
from .infrastructure.package_archive import PackageReader
from .factories.service_factory import ServiceFactory
from .models import ReconcileOutcome, ReconcileStatus

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_PACKAGE_INTEGRITY = 10
EXIT_PACKAGE_EXISTS = 11
EXIT_RESOLUTION = 20
EXIT_SNAPSHOT = 21
EXIT_RESTORE = 22
EXIT_STORAGE = 23
EXIT_PARTIAL_RECONCILE = 30
EXIT_PARTIAL_SNAPSHOTS = 31

# Most specific first
_ERROR_EXIT_CODES = [
    (PackageIntegrityError, EXIT_PACKAGE_INTEGRITY),
    (PackageExistsError, EXIT_PACKAGE_EXISTS),
    (ResolutionError, EXIT_RESOLUTION),
    (RestoreError, EXIT_RESTORE),
    (SnapshotError, EXIT_SNAPSHOT),
    (StorageError, EXIT_STORAGE),
]


def exit_code_for(error: MigrationError) -> int:
    for error_type, code in _ERROR_EXIT_CODES:
        if isinstance(error, error_type):
            return code
    return EXIT_FAILURE


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="server-migrate",
        description="Capture, move and restore server state between hosts"
    )
    parser.add_argument("--env-file", help="Load settings from this .env file")
    parser.add_argument("--log-level", help="Override MIGRATE_LOG_LEVEL for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)

    export = subparsers.add_parser("export", help="Snapshot datasets and write a migration package")
    export.add_argument("label", nargs="?", help="Snapshot label (default: current timestamp)")
    export.add_argument("--output-dir", help="Directory for the package (default: PACKAGE_DIR)")

    restore = subparsers.add_parser("import", help="Verify, restore and reconcile a migration package")
    restore.add_argument("package", help="Path to migrate-<label>.pkg")
    restore.add_argument("target_base_dir", nargs="?", help="Base directory on this host (default: resolved)")

    verify_package = subparsers.add_parser("verify-package", help="Check a package without restoring it")
    verify_package.add_argument("package", help="Path to migrate-<label>.pkg")
    verify_package.add_argument(
        "--show-configs", action="store_true",
        help="Print the saved copy of every packaged config file"
    )

    reconcile = subparsers.add_parser("reconcile", help="Repoint service configs at a base directory")
    reconcile.add_argument("target_base_dir", nargs="?", help="Base directory (default: resolved)")
    reconcile.add_argument(
        "--previous-base", action="append", default=[],
        help="Old base directory to rebase from (repeatable)"
    )

    organize = subparsers.add_parser("organize", help="Create the organized server layout")
    organize.add_argument("base_dir", nargs="?", help="Base directory (default: resolved)")

    subparsers.add_parser("snapshots", help="List migration snapshots")

    prune = subparsers.add_parser("prune", help="Destroy old migration snapshots")
    prune.add_argument("--keep", type=int, required=True, help="Number of newest labels to keep")

    subparsers.add_parser("verify", help="Report storage layout and service bindings")
    return parser


def main(argv: Optional[Sequence[str]] = None, factory: Optional[ServiceFactory] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "prune" and args.keep < 0:
        parser.error("--keep must be zero or positive")

    if factory is None:
        config = load_config(args.env_file)
        if args.log_level:
            config.logging.level = args.log_level.upper()
        factory = ServiceFactory(config)

    handler = _COMMANDS[args.command]
    try:
        return asyncio.run(handler(factory, args))
    except ValidationException as e:
        print(f"ABORTED: {e}")
        return EXIT_USAGE
    except MigrationError as e:
        print(f"ABORTED: {e}")
        return exit_code_for(e)
    except OSError as e:
        print(f"ABORTED: {e}")
        return EXIT_FAILURE


async def _run_export(factory: ServiceFactory, args: argparse.Namespace) -> int:
    label = SnapshotLabel(args.label) if args.label else None
    result = await factory.create_orchestrator().run_export(label, args.output_dir)

    manifest = result.package.manifest
    print(f"Package: {result.package.path} ({result.package.size_human})")
    print(f"Snapshot: {manifest.root_dataset}@{manifest.snapshot}")
    print(f"Datasets: {len(manifest.datasets)}  Configs: {len(manifest.included_configs)}")
    for name in result.skipped_snapshots:
        print(f"  reused existing snapshot on {name}")

    if result.is_partial:
        _print_failures(result.failed_snapshots)
        print(f"PARTIAL SUCCESS: {len(result.failed_snapshots)} dataset(s) not snapshotted")
        return EXIT_PARTIAL_SNAPSHOTS
    print("SUCCESS")
    return EXIT_OK


async def _run_import(factory: ServiceFactory, args: argparse.Namespace) -> int:
    result = await factory.create_orchestrator().run_import(args.package, args.target_base_dir)

    action = "Restored" if result.received else "Already restored"
    print(f"{action}: {result.target_dataset} (mounted at {result.mountpoint or 'n/a'})")
    return _report_outcomes(result.outcomes)


async def _run_verify_package(factory: ServiceFactory, args: argparse.Namespace) -> int:
    manifest = factory.create_import_engine().verify(args.package)
    print(f"Package: {args.package}")
    print(f"Source: {manifest.source_host} ({manifest.os_version}, {manifest.storage_version})")
    print(f"Snapshot: {manifest.root_dataset}@{manifest.snapshot}  Stream: {manifest.stream_size_human}")
    print(f"Configs: {', '.join(manifest.included_configs) or 'none'}")
    if args.show_configs:
        for path, data in PackageReader(args.package).read_configs(manifest).items():
            print(f"--- {path}")
            print(data.decode("utf-8", errors="replace").rstrip("\n"))
    print("SUCCESS: package is intact")
    return EXIT_OK


async def _run_reconcile(factory: ServiceFactory, args: argparse.Namespace) -> int:
    target = args.target_base_dir or str(factory.create_resolver().resolve())
    outcomes = await factory.create_reconciler().reconcile(target, previous_bases=args.previous_base)
    return _report_outcomes(outcomes)


async def _run_organize(factory: ServiceFactory, args: argparse.Namespace) -> int:
    base = args.base_dir or str(factory.create_resolver().resolve())
    report = await factory.create_organizer().organize(base)
    print(f"Base directory: {report.base_dir}")
    print(f"Created {len(report.created_directories)} directories")
    for path in report.written_templates:
        print(f"  wrote default {path}")
    return _report_outcomes(report.outcomes)


async def _run_snapshots(factory: ServiceFactory, args: argparse.Namespace) -> int:
    manager = factory.create_snapshot_manager()
    root = await manager.find_export_root(factory.config.storage.pools)
    snapshots = await manager.list_migration_snapshots(root)
    for snapshot in snapshots:
        created = snapshot.creation_time.isoformat() if snapshot.creation_time else "-"
        print(f"{snapshot.full_name}\t{created}")
    print(f"SUCCESS: {len(snapshots)} migration snapshot(s) under {root}")
    return EXIT_OK


async def _run_prune(factory: ServiceFactory, args: argparse.Namespace) -> int:
    manager = factory.create_snapshot_manager()
    root = await manager.find_export_root(factory.config.storage.pools)
    report = await manager.prune(root, args.keep)
    for name in report.destroyed:
        print(f"  destroyed {name}")
    if report.is_partial:
        _print_failures(report.failed)
        print(f"PARTIAL SUCCESS: {len(report.failed)} snapshot(s) not destroyed")
        return EXIT_PARTIAL_SNAPSHOTS
    print(f"SUCCESS: kept {len(report.kept)} label(s), destroyed {len(report.destroyed)} snapshot(s)")
    return EXIT_OK


async def _run_verify(factory: ServiceFactory, args: argparse.Namespace) -> int:
    report = await factory.create_verifier().verify_host()
    marks = {True: "ok", False: "FAIL", None: "--"}
    for check in report.checks:
        print(f"[{marks[check.ok]:>4}] {check.name}: {check.detail}")
    if report.failed_checks:
        print(f"PARTIAL SUCCESS: {len(report.failed_checks)} check(s) failed")
        return EXIT_FAILURE
    print("SUCCESS")
    return EXIT_OK


def _report_outcomes(outcomes: List[ReconcileOutcome]) -> int:
    for outcome in outcomes:
        line = f"  {outcome.service:<10} {outcome.status.value:<9} {outcome.config_path}"
        if outcome.status == ReconcileStatus.FAILED:
            line += f" ({outcome.reason})"
        elif outcome.reloaded:
            line += " (restarted)"
        print(line)

    failed = [o.service for o in outcomes if o.is_failure]
    if failed:
        print(f"PARTIAL SUCCESS: failed services: {', '.join(failed)}")
        return EXIT_PARTIAL_RECONCILE
    print("SUCCESS")
    return EXIT_OK


def _print_failures(failures: Dict[str, str]) -> None:
    for name, reason in failures.items():
        print(f"  failed {name}: {reason}")


_COMMANDS: Dict[str, Callable] = {
    "export": _run_export,
    "import": _run_import,
    "verify-package": _run_verify_package,
    "reconcile": _run_reconcile,
    "organize": _run_organize,
    "snapshots": _run_snapshots,
    "prune": _run_prune,
    "verify": _run_verify,
}
