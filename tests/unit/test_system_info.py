"""
Unit tests for host facts recorded in manifests
"""

import pytest

from servermigrate.services.system_info_service import SystemInfoService, read_os_version


def test_read_os_version(tmp_path):
    os_release = tmp_path / "os-release"
    os_release.write_text('NAME="Ubuntu"\nPRETTY_NAME="Ubuntu 24.04.1 LTS"\nID=ubuntu\n')

    assert read_os_version(os_release) == "Ubuntu 24.04.1 LTS"


def test_read_os_version_missing(tmp_path):
    assert read_os_version(tmp_path / "absent") == "unknown"


@pytest.mark.asyncio
async def test_collect(storage, tmp_path):
    info = await SystemInfoService(storage, tmp_path / "absent").collect()

    assert info.hostname
    assert info.os_version == "unknown"
    assert info.storage_version == "zfs-2.2.2-fake"
