"""
Server-migrate configuration module

Loads every setting once at process start into focused config objects. The
resulting ``MigrateConfig`` is passed explicitly into each component; nothing
below the CLI reads the environment on its own.
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional

from dotenv import load_dotenv


@dataclass
class StorageConfig:
    """ZFS pools and stream settings"""
    # Pools tried in order; the first present one is the export root / import target
    pools: List[str] = field(default_factory=lambda: ["server-data", "rpool"])
    imported_namespace: str = "imported"
    stream_chunk_size: int = 1024 * 1024
    command_timeout: int = 60


@dataclass
class PathsConfig:
    """Base directory candidates and package location"""
    pool_mount: str = "/server-data"
    service_root: str = "/srv"
    package_dir: str = "/var/tmp"


@dataclass
class ServiceConfig:
    """Configuration files and units of the dependent services"""
    docker_config: str = "/etc/docker/daemon.json"
    rsyslog_config: str = "/etc/rsyslog.d/99-zfs-logs.conf"
    logrotate_config: str = "/etc/logrotate.d/zfs-logs"
    npm_config: str = "~/.npmrc"
    docker_unit: str = "docker"
    rsyslog_unit: str = "rsyslog"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    log_file: str = ""


class MigrateConfig:
    """
    Migration engine settings loaded from environment variables.

    Every key is looked up as-is first and then with the ``MIGRATE_`` prefix.
    """

    ENV_PREFIXES = ("", "MIGRATE_")

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = os.environ if environ is None else environ

        self.storage = StorageConfig()
        self.paths = PathsConfig()
        self.services = ServiceConfig()
        self.logging = LoggingConfig()

        self._load_environment_variables()
        self._validate_configuration()

    def _load_environment_variables(self):
        # ==== STORAGE CONFIG ====
        pools = self._get_string("ZFS_POOLS", ",".join(self.storage.pools))
        self.storage.pools = [p.strip() for p in pools.split(",") if p.strip()]
        self.storage.imported_namespace = self._get_string(
            "IMPORTED_NAMESPACE", self.storage.imported_namespace
        )
        self.storage.stream_chunk_size = self._get_int("STREAM_CHUNK_SIZE", self.storage.stream_chunk_size)
        self.storage.command_timeout = self._get_int("COMMAND_TIMEOUT", self.storage.command_timeout)

        # ==== PATHS CONFIG ====
        self.paths.pool_mount = self._get_string("POOL_MOUNT", self.paths.pool_mount)
        self.paths.service_root = self._get_string("SERVICE_ROOT", self.paths.service_root)
        self.paths.package_dir = self._get_string("PACKAGE_DIR", self.paths.package_dir)

        # ==== SERVICE CONFIG ====
        self.services.docker_config = self._get_string("DOCKER_CONFIG", self.services.docker_config)
        self.services.rsyslog_config = self._get_string("RSYSLOG_CONFIG", self.services.rsyslog_config)
        self.services.logrotate_config = self._get_string("LOGROTATE_CONFIG", self.services.logrotate_config)
        self.services.npm_config = os.path.expanduser(
            self._get_string("NPM_CONFIG", self.services.npm_config)
        )
        self.services.docker_unit = self._get_string("DOCKER_UNIT", self.services.docker_unit)
        self.services.rsyslog_unit = self._get_string("RSYSLOG_UNIT", self.services.rsyslog_unit)

        # ==== LOGGING CONFIG ====
        self.logging.level = self._get_string("LOG_LEVEL", self.logging.level).upper()
        self.logging.log_file = self._get_string("LOG_FILE", self.logging.log_file)

    def _get_string(self, key: str, default: str) -> str:
        """Get string value from environment with multiple key attempts"""
        for prefix in self.ENV_PREFIXES:
            value = self._environ.get(f"{prefix}{key}")
            if value is not None:
                return value
        return default

    def _get_int(self, key: str, default: int) -> int:
        value = self._get_string(key, str(default))
        try:
            return int(value)
        except ValueError:
            _warn(f"Invalid integer value for {key}: {value}, using default: {default}")
            return default

    def _validate_configuration(self):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.logging.level not in valid_levels:
            _warn(f"Invalid log level: {self.logging.level}, using INFO")
            self.logging.level = "INFO"

        if not self.storage.pools:
            _warn("ZFS_POOLS is empty, using default: server-data,rpool")
            self.storage.pools = StorageConfig().pools

        if self.storage.stream_chunk_size < 4096:
            _warn(f"STREAM_CHUNK_SIZE too small: {self.storage.stream_chunk_size}, using 1 MiB")
            self.storage.stream_chunk_size = StorageConfig().stream_chunk_size

        for name in ("pool_mount", "service_root"):
            value = getattr(self.paths, name)
            if not os.path.isabs(value):
                default = getattr(PathsConfig(), name)
                _warn(f"{name} must be absolute: {value}, using default: {default}")
                setattr(self.paths, name, default)

    def get_summary(self) -> dict:
        return {
            "storage": {
                "pools": self.storage.pools,
                "imported_namespace": self.storage.imported_namespace,
                "stream_chunk_size": self.storage.stream_chunk_size,
                "command_timeout": self.storage.command_timeout,
            },
            "paths": {
                "pool_mount": self.paths.pool_mount,
                "service_root": self.paths.service_root,
                "package_dir": self.paths.package_dir,
            },
            "services": {
                "docker_config": self.services.docker_config,
                "rsyslog_config": self.services.rsyslog_config,
                "logrotate_config": self.services.logrotate_config,
                "npm_config": self.services.npm_config,
            },
            "logging": {
                "level": self.logging.level,
                "log_file": self.logging.log_file,
            },
        }


def _warn(message: str) -> None:
    print(f"⚠️  {message}", file=sys.stderr)


def load_dotenv_if_exists(env_file: Optional[str] = None) -> bool:
    """Load a .env file if one exists; returns True when a file was loaded"""
    if env_file:
        candidates = [Path(env_file)]
    else:
        candidates = [
            Path(".env"),
            Path("/etc/server-migrate/migrate.env"),
        ]

    for candidate in candidates:
        if candidate.is_file():
            load_dotenv(candidate)
            return True
    return False


def load_config(env_file: Optional[str] = None) -> MigrateConfig:
    """Build the configuration object for one process run"""
    load_dotenv_if_exists(env_file)
    return MigrateConfig()
