"""
Resolves one compose service into a Quadlet container file.
"""
import logging
from typing import Dict, List, Optional, Union

from ..CONVERTERS.field_mapper import service_to_container
from ..MODELS.quadlet import (
    Container,
    Globals,
    Install,
    OutputFile,
    ServiceRestart,
    ServiceSection,
    Unit,
)
from ..MODELS.service_definition import Dependency, RestartPolicy, RestartPolicyCondition, Service
from ..exceptions import ConversionFailureError
from .dependency_unit_builder import DependencyUnitBuilder
from .volume_linker import VolumeOptionLinker, VolumeOptionsIndex

logger = logging.getLogger(__name__)

# Service fields that become podman global arguments instead of container options.
GLOBAL_FIELDS = ("runtime",)

RESTART_MAP = {
    RestartPolicyCondition.NO: ServiceRestart.NO,
    RestartPolicyCondition.ALWAYS: ServiceRestart.ALWAYS,
    RestartPolicyCondition.UNLESS_STOPPED: ServiceRestart.ALWAYS,
    RestartPolicyCondition.ON_FAILURE: ServiceRestart.ON_FAILURE,
}


class ServiceResolver:
    """
    Takes a service apart in a fixed order.

    Each ``take_*`` step moves its fields out of the service, and
    :meth:`into_container` consumes whatever is left. Steps must run in the
    order of :attr:`STEPS`; running one out of order, twice, or after the
    service was consumed raises ``RuntimeError``.
    """
    STEPS = ("dependencies", "globals", "restart")

    def __init__(self, name: str, service: Service):
        self.name = name
        self._service: Optional[Service] = service
        self._extracted: List[str] = []

    def _advance(self, step: str) -> Service:
        if self._service is None:
            raise RuntimeError(f"service `{self.name}` was already converted")
        expected = self.STEPS[len(self._extracted)] if len(self._extracted) < len(self.STEPS) else None
        if step != expected:
            raise RuntimeError(f"cannot take {step} of service `{self.name}`, expected {expected}")
        self._extracted.append(step)
        return self._service

    def take_dependencies(self) -> Union[List[str], Dict[str, Dependency]]:
        service = self._advance("dependencies")
        self._service = service.model_copy(update={"depends_on": []})
        return service.depends_on

    def take_globals(self) -> Globals:
        service = self._advance("globals")
        global_args = []
        if service.runtime:
            global_args.append(f"--runtime {service.runtime}")
        self._service = service.model_copy(update={field: None for field in GLOBAL_FIELDS})
        return Globals(global_args=global_args)

    def take_restart(self) -> Optional[RestartPolicy]:
        service = self._advance("restart")
        self._service = service.model_copy(update={"restart": None})
        return service.restart

    def into_container(self) -> Container:
        """
        Maps the remaining fields onto a container, consuming the service.

        :raises ConversionFailureError: Wrapping any field mapping failure.
        """
        if self._extracted != list(self.STEPS):
            raise RuntimeError(f"service `{self.name}` still has fields to extract")
        if self._service is None:
            raise RuntimeError(f"service `{self.name}` was already converted")
        service, self._service = self._service, None
        try:
            return service_to_container(service)
        except ConversionFailureError as e:
            raise ConversionFailureError(
                f"error converting service `{self.name}` into a Quadlet container"
            ) from e


def restart_to_service_section(restart: Optional[RestartPolicy]) -> Optional[ServiceSection]:
    if restart is None:
        return None
    return ServiceSection(restart=RESTART_MAP[restart.condition])


def resolve_service(
    name: str,
    service: Service,
    volume_index: VolumeOptionsIndex,
    unit: Optional[Unit] = None,
    install: Optional[Install] = None,
) -> OutputFile:
    """
    Converts one service into a ``.container`` file.

    :param name: The service identifier, used as the file name.
    :param service: The service; it must not be used afterwards.
    :param volume_index: Which top-level volumes have options.
    :param unit: This file's own copy of the shared unit template, if any.
    :param install: This file's own copy of the shared install template, if any.
    :raises ConflictingDependencyError: If a dependency is recorded twice.
    :raises ConversionFailureError: If a field cannot be mapped.
    """
    resolver = ServiceResolver(name, service)
    unit = DependencyUnitBuilder().build(name, resolver.take_dependencies(), unit)
    global_args = resolver.take_globals()
    restart = resolver.take_restart()
    container = VolumeOptionLinker(volume_index).link(resolver.into_container())

    logger.debug("resolved service %s", name)
    return OutputFile(
        name=name,
        unit=unit,
        resource=container,
        globals=global_args,
        service=restart_to_service_section(restart),
        install=install,
    )
