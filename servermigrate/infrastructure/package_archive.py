"""
Migration package container.

A package is an uncompressed tar file with three kinds of members:

    stream/<root dataset>.zfs.gz   gzip-compressed recursive send stream
    configs/<absolute path>        verbatim copies of service config files
    manifest.json                  always the last member

The stream and each config carry a SHA-256 in the manifest, so a package can be
fully checked before anything touches storage.
"""
import gzip
import hashlib
import io
import tarfile
import time
import zlib
from pathlib import Path, PurePosixPath
from typing import AsyncIterator, Dict, Iterator, Optional, Union

from pydantic import ValidationError

from ..core.exceptions.migration_exceptions import PackageIntegrityError
from ..models import Manifest, FORMAT_VERSION
from ..utils import HASH_BLOCK_SIZE

MANIFEST_NAME = "manifest.json"
STREAM_DIR = "stream"
CONFIGS_DIR = "configs"

_DECOMPRESS_ERRORS = (OSError, EOFError, zlib.error)


def stream_arcname(root_dataset: str) -> str:
    return f"{STREAM_DIR}/{root_dataset.replace('/', '_')}.zfs.gz"


def config_arcname(config_path: str) -> str:
    return f"{CONFIGS_DIR}/{PurePosixPath(config_path).relative_to('/')}"


class PackageWriter:
    """Writes the tar container; use as a context manager."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._tar: Optional[tarfile.TarFile] = None

    def __enter__(self) -> 'PackageWriter':
        self._tar = tarfile.open(self.path, "w", format=tarfile.PAX_FORMAT)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._tar is not None:
            self._tar.close()
            self._tar = None

    def add_file(self, source: Union[str, Path], arcname: str) -> None:
        self._tar.add(str(source), arcname=arcname, recursive=False)

    def add_bytes(self, data: bytes, arcname: str, mode: int = 0o644) -> None:
        info = tarfile.TarInfo(arcname)
        info.size = len(data)
        info.mode = mode
        info.mtime = int(time.time())
        self._tar.addfile(info, io.BytesIO(data))

    def write_manifest(self, manifest: Manifest) -> None:
        """Add the manifest; must be the final member"""
        self.add_bytes(manifest.model_dump_json(indent=2).encode('utf-8'), MANIFEST_NAME)


class PackageReader:
    """Read-only access to a package, with full integrity verification."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _fail(self, reason: str) -> PackageIntegrityError:
        return PackageIntegrityError(str(self.path), reason)

    def _open(self) -> tarfile.TarFile:
        if not self.path.is_file():
            raise self._fail("file not found")
        try:
            return tarfile.open(self.path, "r:")
        except (tarfile.TarError, OSError) as e:
            raise self._fail(f"not a package container ({e})") from e

    def read_manifest(self) -> Manifest:
        with self._open() as tar:
            return self._load_manifest(tar)

    def _load_manifest(self, tar: tarfile.TarFile) -> Manifest:
        try:
            member = tar.getmember(MANIFEST_NAME)
            data = tar.extractfile(member).read()
        except KeyError:
            raise self._fail("manifest missing")
        except (tarfile.TarError, OSError) as e:
            raise self._fail(f"manifest unreadable ({e})") from e

        try:
            return Manifest.model_validate_json(data)
        except ValidationError as e:
            raise self._fail(f"manifest invalid ({e.error_count()} errors)") from e

    def verify(self) -> Manifest:
        """Check every member against the manifest; returns the manifest.

        Raises ``PackageIntegrityError`` on the first problem found.
        """
        with self._open() as tar:
            try:
                members = tar.getmembers()
            except (tarfile.TarError, OSError) as e:
                raise self._fail(f"container truncated ({e})") from e

            if not members or members[-1].name != MANIFEST_NAME:
                raise self._fail("manifest is not the final member (incomplete package)")

            manifest = self._load_manifest(tar)
            if manifest.format_version != FORMAT_VERSION:
                raise self._fail(f"unsupported format version {manifest.format_version}")

            self._verify_stream(tar, manifest)
            self._verify_configs(tar, manifest)
            return manifest

    def _verify_stream(self, tar: tarfile.TarFile, manifest: Manifest) -> None:
        try:
            member = tar.getmember(manifest.stream_file)
        except KeyError:
            raise self._fail(f"stream member '{manifest.stream_file}' missing")

        if member.size != manifest.stream_size:
            raise self._fail(
                f"stream size {member.size} does not match manifest {manifest.stream_size}"
            )

        digest = hashlib.sha256()
        for block in self._iter_member(tar, member):
            digest.update(block)
        if digest.hexdigest() != manifest.stream_sha256:
            raise self._fail("stream checksum mismatch")

        # Full decompression pass catches truncation inside the gzip framing
        try:
            with gzip.GzipFile(fileobj=tar.extractfile(member)) as gz:
                while gz.read(HASH_BLOCK_SIZE):
                    pass
        except _DECOMPRESS_ERRORS as e:
            raise self._fail(f"stream does not decompress ({e})") from e

    def _verify_configs(self, tar: tarfile.TarFile, manifest: Manifest) -> None:
        for config_path, expected in manifest.config_checksums.items():
            try:
                data = tar.extractfile(config_arcname(config_path)).read()
            except KeyError:
                raise self._fail(f"config copy of '{config_path}' missing")
            if hashlib.sha256(data).hexdigest() != expected:
                raise self._fail(f"config copy of '{config_path}' checksum mismatch")

    @staticmethod
    def _iter_member(tar: tarfile.TarFile, member: tarfile.TarInfo) -> Iterator[bytes]:
        handle = tar.extractfile(member)
        for block in iter(lambda: handle.read(HASH_BLOCK_SIZE), b''):
            yield block

    async def iter_stream(self, manifest: Manifest, chunk_size: int = HASH_BLOCK_SIZE) -> AsyncIterator[bytes]:
        """Yield the decompressed send stream in chunks"""
        with self._open() as tar:
            try:
                member = tar.getmember(manifest.stream_file)
            except KeyError:
                raise self._fail(f"stream member '{manifest.stream_file}' missing")
            try:
                with gzip.GzipFile(fileobj=tar.extractfile(member)) as gz:
                    while True:
                        chunk = gz.read(chunk_size)
                        if not chunk:
                            break
                        yield chunk
            except _DECOMPRESS_ERRORS as e:
                raise self._fail(f"stream does not decompress ({e})") from e

    def read_configs(self, manifest: Manifest) -> Dict[str, bytes]:
        """Saved config copies keyed by their original absolute path"""
        configs = {}
        with self._open() as tar:
            for config_path in manifest.config_checksums:
                try:
                    configs[config_path] = tar.extractfile(config_arcname(config_path)).read()
                except KeyError:
                    raise self._fail(f"config copy of '{config_path}' missing")
        return configs
