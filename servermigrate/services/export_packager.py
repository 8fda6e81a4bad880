import gzip
import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, List, Union

from ..core.interfaces.storage_adapter import IStorageAdapter
from ..core.interfaces.logger_interface import ILogger
from ..core.entities.snapshot import Snapshot
from ..core.exceptions.migration_exceptions import PackageExistsError, SnapshotError
from ..infrastructure.package_archive import PackageWriter, stream_arcname, config_arcname
from ..models import Manifest, ManifestInfo, MigrationPackage
from ..utils import sha256_bytes, sha256_file


class ExportPackager:
    """Bundles a snapshot stream, config copies and a manifest into one package.

    The package is assembled under ``<name>.partial`` and hard-linked to its
    final name, so a package either exists complete or not at all, and an
    existing package is never replaced.
    """

    def __init__(self, storage: IStorageAdapter, logger: ILogger):
        self._storage = storage
        self._logger = logger

    @staticmethod
    def select_root(snapshots: List[Snapshot]) -> Snapshot:
        """The snapshot whose dataset contains every other one in the batch"""
        if not snapshots:
            raise SnapshotError("No snapshots to package", error_code="SNAPSHOT_BATCH_EMPTY")
        root = min(snapshots, key=lambda s: s.dataset.depth)
        strays = [s for s in snapshots if not root.dataset.contains(s.dataset)]
        if strays:
            raise SnapshotError(
                f"Snapshots outside {root.dataset}: {', '.join(str(s) for s in strays)}",
                dataset=str(root.dataset),
                error_code="SNAPSHOT_OUTSIDE_ROOT"
            )
        return root

    async def export(self, snapshots: List[Snapshot], manifest_info: ManifestInfo,
                     output_dir: Union[str, Path]) -> MigrationPackage:
        root = self.select_root(snapshots)
        label = root.label
        if label is None:
            raise SnapshotError(
                f"{root} is not a migration snapshot",
                dataset=str(root.dataset),
                error_code="SNAPSHOT_NOT_MIGRATION"
            )

        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        final_path = output_dir / label.package_name
        if final_path.exists():
            raise PackageExistsError(str(final_path))

        partial_path = final_path.with_name(final_path.name + ".partial")
        workdir = Path(tempfile.mkdtemp(prefix=".migrate-", dir=str(output_dir)))
        self._logger.info("Building migration package", {"package": str(final_path), "snapshot": root.full_name})

        try:
            stream_path = workdir / "stream.zfs.gz"
            await self._write_stream(root, stream_path)

            configs = self._collect_configs(manifest_info.included_configs)
            manifest = Manifest.build(
                manifest_info.model_copy(update={"included_configs": list(configs)}),
                label=str(label),
                root_dataset=str(root.dataset),
                snapshot=root.name,
                datasets=sorted(str(s.dataset) for s in snapshots),
                stream_file=stream_arcname(str(root.dataset)),
                stream_sha256=sha256_file(stream_path),
                stream_size=stream_path.stat().st_size,
                config_checksums={path: sha256_bytes(data) for path, data in configs.items()},
            )

            with PackageWriter(partial_path) as writer:
                writer.add_file(stream_path, manifest.stream_file)
                for path, data in configs.items():
                    writer.add_bytes(data, config_arcname(path))
                writer.write_manifest(manifest)

            try:
                os.link(partial_path, final_path)
            except FileExistsError:
                raise PackageExistsError(str(final_path))
        finally:
            if partial_path.exists():
                partial_path.unlink()
            shutil.rmtree(workdir, ignore_errors=True)

        package = MigrationPackage(
            path=str(final_path),
            manifest=manifest,
            size_bytes=final_path.stat().st_size
        )
        self._logger.info("Migration package written", {
            "package": package.path,
            "size": package.size_human,
            "configs": len(configs)
        })
        return package

    async def _write_stream(self, snapshot: Snapshot, destination: Path) -> None:
        with gzip.open(destination, 'wb') as gz:
            async for chunk in self._storage.send_stream(snapshot, recursive=True):
                gz.write(chunk)

    def _collect_configs(self, config_paths: List[str]) -> Dict[str, bytes]:
        configs: Dict[str, bytes] = {}
        for config_path in config_paths:
            path = Path(config_path)
            if not path.is_file():
                self._logger.debug("Config not present, not packaged", {"config": config_path})
                continue
            try:
                configs[str(path)] = path.read_bytes()
            except OSError as e:
                self._logger.warning("Config unreadable, not packaged", {"config": config_path, "error": str(e)})
        return configs
