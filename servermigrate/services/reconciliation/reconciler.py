from pathlib import Path
from typing import Iterable, List, Optional, Union

from ...core.entities.service_binding import ServiceBinding
from ...core.interfaces.logger_interface import ILogger
from ...core.interfaces.service_controller import IServiceController
from ...core.exceptions.migration_exceptions import ReconcileFailure, ServiceControlError
from ...models import ReconcileOutcome
from ...utils import atomic_write_text
from .rewriters import get_rewriter


class ServiceReconciler:
    """Repoints each bound service at a new base directory.

    Bindings are processed independently: a failure is recorded in that
    binding's outcome and the remaining bindings still run. Running it twice
    with the same target leaves every file as the first run wrote it.
    """

    def __init__(self, bindings: List[ServiceBinding], controller: IServiceController,
                 logger: ILogger, default_previous_bases: Optional[List[str]] = None):
        self._bindings = list(bindings)
        self._controller = controller
        self._logger = logger
        self._default_previous_bases = list(default_previous_bases or [])

    @property
    def bindings(self) -> List[ServiceBinding]:
        return list(self._bindings)

    def _previous_bases(self, extra: Optional[Iterable[str]], target: str) -> List[str]:
        bases = []
        for base in list(extra or []) + self._default_previous_bases:
            base = base.rstrip('/')
            if base and base != target and base not in bases:
                bases.append(base)
        return bases

    async def reconcile(self, target_base_dir: Union[str, Path],
                        previous_bases: Optional[Iterable[str]] = None) -> List[ReconcileOutcome]:
        target = str(target_base_dir).rstrip('/') or '/'
        bases = self._previous_bases(previous_bases, target)
        self._logger.info("Reconciling services", {"target_base_dir": target, "previous_bases": bases})

        outcomes = []
        for binding in self._bindings:
            outcome = await self._reconcile_binding(binding, target, bases)
            log = self._logger.error if outcome.is_failure else self._logger.info
            log("Service reconciled", outcome.model_dump(mode="json"))
            outcomes.append(outcome)
        return outcomes

    async def _probe(self, binding: ServiceBinding) -> bool:
        try:
            return await self._controller.is_active(binding.service_id)
        except ServiceControlError as e:
            self._logger.warning("Service probe failed", {"service": binding.service_id, "error": str(e)})
            return False

    async def _reconcile_binding(self, binding: ServiceBinding, target: str,
                                 previous_bases: List[str]) -> ReconcileOutcome:
        active = await self._probe(binding)
        common = {"service_active": active}
        path = Path(binding.config_path)

        if not path.is_file():
            return ReconcileOutcome.failed(binding.service_id, binding.config_path, "missing file", **common)

        try:
            text = path.read_text(encoding='utf-8')
            new_text, changed = get_rewriter(binding.config_format).rewrite(
                text, binding, target, previous_bases
            )
            for directory in binding.required_directories(target):
                Path(directory).mkdir(parents=True, exist_ok=True)
            if new_text == text:
                return ReconcileOutcome.unchanged(binding.service_id, binding.config_path, **common)
            atomic_write_text(path, new_text)
        except ReconcileFailure as e:
            return ReconcileOutcome.failed(binding.service_id, binding.config_path, e.reason, **common)
        except (OSError, UnicodeDecodeError) as e:
            return ReconcileOutcome.failed(binding.service_id, binding.config_path, str(e), **common)

        if not active:
            return ReconcileOutcome.ok(binding.service_id, binding.config_path,
                                       changed_fields=changed, **common)

        try:
            await self._controller.reload(binding.service_id)
        except ServiceControlError as e:
            return ReconcileOutcome.failed(binding.service_id, binding.config_path, str(e),
                                           changed_fields=changed, **common)
        return ReconcileOutcome.ok(binding.service_id, binding.config_path,
                                   changed_fields=changed, reloaded=True, **common)
