"""
Static table of the services that store paths below the base directory.
"""
import json
from typing import Dict, List, Optional

from ...config import ServiceConfig
from ...core.entities.service_binding import ConfigFormat, PathField, ServiceBinding


def docker_daemon_template(base_dir: str) -> str:
    config = {
        "data-root": f"{base_dir}/docker",
        "log-driver": "json-file",
        "log-opts": {
            "max-size": "10m",
            "max-file": "3"
        },
        "storage-driver": "overlay2",
        "live-restore": True,
        "userland-proxy": False
    }
    return json.dumps(config, indent=2) + "\n"


def rsyslog_template(base_dir: str) -> str:
    logs_dir = f"{base_dir}/logs"
    return (
        "# Log to organized directory\n"
        f"*.*;auth,authpriv.none          {logs_dir}/system/syslog\n"
        f"auth,authpriv.*                 {logs_dir}/security/auth.log\n"
        f"cron.*                          {logs_dir}/system/cron.log\n"
    )


def logrotate_template(base_dir: str) -> str:
    logs_dir = f"{base_dir}/logs"
    return (
        f"{logs_dir}/system/*.log\n"
        f"{logs_dir}/security/*.log\n"
        f"{logs_dir}/app/*.log {{\n"
        "    daily\n"
        "    missingok\n"
        "    rotate 52\n"
        "    compress\n"
        "    delaycompress\n"
        "    notifempty\n"
        "    create 644 root root\n"
        "    postrotate\n"
        "        /usr/lib/rsyslog/rsyslog-rotate 2>/dev/null || true\n"
        "    endscript\n"
        "}\n"
    )


def npm_template(base_dir: str) -> str:
    return (
        f"prefix={base_dir}/apps/node_modules\n"
        f"cache={base_dir}/data/cache/npm\n"
    )


def build_default_bindings(services: ServiceConfig) -> List[ServiceBinding]:
    return [
        ServiceBinding(
            service_id="docker",
            config_path=services.docker_config,
            config_format=ConfigFormat.JSON,
            fields=(PathField("data-root", "docker", owned=True),),
            directories=("docker",),
            template=docker_daemon_template,
            description="Container engine data root",
        ),
        ServiceBinding(
            service_id="rsyslog",
            config_path=services.rsyslog_config,
            config_format=ConfigFormat.RSYSLOG,
            fields=(PathField("action", "logs"),),
            directories=("logs/system", "logs/security"),
            template=rsyslog_template,
            description="System log destinations",
        ),
        ServiceBinding(
            service_id="logrotate",
            config_path=services.logrotate_config,
            config_format=ConfigFormat.LOGROTATE,
            fields=(PathField("path", "logs"),),
            directories=("logs/system", "logs/security", "logs/app"),
            template=logrotate_template,
            description="Rotation of the organized logs",
        ),
        ServiceBinding(
            service_id="npm",
            config_path=services.npm_config,
            config_format=ConfigFormat.INI,
            fields=(
                PathField("prefix", "apps/node_modules", owned=True),
                PathField("cache", "data/cache/npm", owned=True),
            ),
            directories=("apps/node_modules", "data/cache/npm"),
            template=npm_template,
            description="Global package prefix and cache",
        ),
    ]


def service_units(services: ServiceConfig) -> Dict[str, Optional[str]]:
    """systemd unit per binding; None for services without a daemon"""
    return {
        "docker": services.docker_unit or None,
        "rsyslog": services.rsyslog_unit or None,
        "logrotate": None,
        "npm": None,
    }
