from pathlib import Path
from typing import Dict, List, Union

from ..core.interfaces.logger_interface import ILogger
from ..models import OrganizeReport
from ..utils import atomic_write_text
from .reconciliation.reconciler import ServiceReconciler

LAYOUT: Dict[str, List[str]] = {
    "configs": ["nginx", "apache", "ssl", "ssh", "system", "firewall"],
    "docker": ["containers", "volumes", "compose", "images"],
    "scripts": ["setup", "maintenance", "deployment", "monitoring"],
    "apps": ["web", "api", "services", "static"],
    "data": ["databases", "uploads", "cache", "sessions"],
    "logs": ["nginx", "apache", "app", "system", "security"],
}


def layout_directories(base_dir: Union[str, Path]) -> List[Path]:
    base = Path(base_dir)
    directories = []
    for top, children in LAYOUT.items():
        directories.append(base / top)
        directories.extend(base / top / child for child in children)
    return directories


class ServerOrganizer:
    """Lays out the organized server tree and points services at it."""

    def __init__(self, reconciler: ServiceReconciler, logger: ILogger):
        self._reconciler = reconciler
        self._logger = logger

    async def organize(self, base_dir: Union[str, Path]) -> OrganizeReport:
        base = Path(base_dir)
        report = OrganizeReport(base_dir=str(base))

        for directory in layout_directories(base):
            if not directory.is_dir():
                directory.mkdir(parents=True, exist_ok=True)
                report.created_directories.append(str(directory))
        self._logger.info("Server layout ready", {
            "base_dir": str(base), "created": len(report.created_directories)
        })

        for binding in self._reconciler.bindings:
            config_path = Path(binding.config_path)
            content = binding.render_template(str(base))
            if config_path.exists() or content is None:
                continue
            try:
                config_path.parent.mkdir(parents=True, exist_ok=True)
                atomic_write_text(config_path, content)
            except OSError as e:
                # Left missing; reconciliation reports the binding as failed
                self._logger.error("Could not write default config", {
                    "service": binding.service_id, "config": str(config_path), "error": str(e)
                })
                continue
            report.written_templates.append(str(config_path))
            self._logger.info("Wrote default config", {"service": binding.service_id, "config": str(config_path)})

        report.outcomes = await self._reconciler.reconcile(str(base))
        return report
