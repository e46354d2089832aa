"""
Converters for top-level compose networks and volumes into standalone Quadlet files.
"""
import logging
from typing import Dict, Iterator, Optional

from ..MODELS import compose_document as compose
from ..MODELS.compose_document import ComposeManaged, ExternallyManaged
from ..MODELS.quadlet import Install, OutputFile, Unit
from ..exceptions import ConversionFailureError, UnsupportedFeatureError
from .field_mapper import network_to_quadlet, volume_to_quadlet

logger = logging.getLogger(__name__)


def _copy(section):
    return None if section is None else section.model_copy(deep=True)


class NetworkConverter:
    """
    Converts top-level networks, one ``.network`` file each.
    """
    def __init__(self, unit: Optional[Unit] = None, install: Optional[Install] = None):
        self.unit = unit
        self.install = install

    def convert(self, networks: Dict[str, Optional[compose.NetworkResource]]) -> Iterator[OutputFile]:
        """
        Yields a file per network, in declaration order.

        :raises UnsupportedFeatureError: For an external network.
        :raises ConversionFailureError: If a network cannot be mapped.
        """
        for name, network in networks.items():
            if network is None:
                network = compose.Network()
            elif isinstance(network, ComposeManaged):
                network = network.value
            elif isinstance(network, ExternallyManaged):
                raise UnsupportedFeatureError(f"external networks (`{name}`) are not supported")
            else:
                raise TypeError(f"unexpected network resource `{type(network).__name__}`")

            try:
                resource = network_to_quadlet(network)
            except ConversionFailureError as e:
                raise ConversionFailureError(
                    f"error converting network `{name}` into a Quadlet network"
                ) from e
            logger.debug("converted network %s", name)
            yield OutputFile(name=name, unit=_copy(self.unit), resource=resource, install=_copy(self.install))


class VolumeConverter:
    """
    Converts top-level volumes that carry options, one ``.volume`` file each.

    Volumes declared without options need no file; Podman creates them on
    first use.
    """
    def __init__(self, unit: Optional[Unit] = None, install: Optional[Install] = None):
        self.unit = unit
        self.install = install

    def convert(self, volumes: Dict[str, Optional[compose.VolumeResource]]) -> Iterator[OutputFile]:
        """
        Yields a file per options-bearing volume, in declaration order.

        :raises UnsupportedFeatureError: For an external volume.
        :raises ConversionFailureError: If a volume cannot be mapped.
        """
        for name, volume in volumes.items():
            if volume is None:
                continue
            if isinstance(volume, ExternallyManaged):
                raise UnsupportedFeatureError(f"external volumes (`{name}`) are not supported")
            if not isinstance(volume, ComposeManaged):
                raise TypeError(f"unexpected volume resource `{type(volume).__name__}`")
            if volume.value.is_empty():
                continue

            try:
                resource = volume_to_quadlet(volume.value)
            except ConversionFailureError as e:
                raise ConversionFailureError(
                    f"error converting volume `{name}` into a Quadlet volume"
                ) from e
            logger.debug("converted volume %s", name)
            yield OutputFile(name=name, unit=_copy(self.unit), resource=resource, install=_copy(self.install))
