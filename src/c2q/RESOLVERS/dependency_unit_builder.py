"""
Translates a service's ``depends_on`` into ``[Unit]`` ordering and requirement directives.
"""
import logging
from typing import Dict, List, Optional, Tuple, Union

from ..MODELS.quadlet import Unit
from ..MODELS.service_definition import Dependency
from ..exceptions import ConflictingDependencyError

logger = logging.getLogger(__name__)

DependsOn = Union[List[str], Dict[str, Dependency]]


class DependencyUnitBuilder:
    """
    Records service dependencies into a unit section.
    """
    def normalize(self, depends_on: DependsOn) -> List[Tuple[str, Dependency]]:
        """
        Converts the short list form into ``(target, Dependency)`` pairs with
        default semantics; the long form is kept in declaration order.

        Duplicates in the short form are kept so that adding them fails.
        """
        if isinstance(depends_on, dict):
            return list(depends_on.items())
        return [(target, Dependency()) for target in depends_on]

    def build(self, service_name: str, depends_on: DependsOn, unit: Optional[Unit] = None) -> Optional[Unit]:
        """
        Adds every dependency of ``service_name`` to ``unit``.

        The unit is created on first use; with no dependencies the given unit,
        possibly ``None``, is returned untouched.

        :raises ConflictingDependencyError: If a target is recorded twice.
        """
        dependencies = self.normalize(depends_on)
        if not dependencies:
            return unit

        if unit is None:
            unit = Unit()
        for target, dependency in dependencies:
            try:
                unit.add_dependency(target, dependency)
            except ConflictingDependencyError as e:
                raise ConflictingDependencyError(
                    f"error adding dependency on `{target}` to service `{service_name}`"
                ) from e
            logger.debug(
                "service %s depends on %s (%s, required=%s, restart=%s)",
                service_name, target, dependency.condition.value, dependency.required, dependency.restart,
            )
        return unit
