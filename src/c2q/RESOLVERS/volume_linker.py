"""
Links containers to the ``.volume`` files of named volumes that carry options.
"""
import logging
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from ..MODELS.compose_document import ComposeManaged, ExternallyManaged, VolumeResource
from ..MODELS.quadlet import Container, NamedVolume

logger = logging.getLogger(__name__)

VOLUME_SUFFIX = ".volume"


class VolumeOptionsIndex:
    """
    Read-only lookup of whether a top-level volume has options set.

    Built once per conversion from the document's volumes. Names that were
    never declared have no options.
    """
    def __init__(self, has_options: Mapping[str, bool]):
        self._has_options = MappingProxyType(dict(has_options))

    @classmethod
    def from_volumes(cls, volumes: Dict[str, Optional[VolumeResource]]) -> "VolumeOptionsIndex":
        """
        Builds the index from the top-level ``volumes`` mapping.
        """
        has_options = {}
        for name, volume in volumes.items():
            if volume is None or isinstance(volume, ExternallyManaged):
                has_options[name] = False
            elif isinstance(volume, ComposeManaged):
                has_options[name] = not volume.value.is_empty()
            else:
                raise TypeError(f"unexpected volume resource `{type(volume).__name__}`")
        return cls(has_options)

    def has_options(self, name: str) -> bool:
        return self._has_options.get(name, False)

    def __len__(self):
        return len(self._has_options)


class VolumeOptionLinker:
    """
    Rewrites named-volume mount sources to point at their ``.volume`` file.
    """
    def __init__(self, index: VolumeOptionsIndex):
        self.index = index

    def link(self, container: Container) -> Container:
        """
        Appends ``.volume`` to every named-volume source whose volume has options.
        Host paths and anonymous volumes are left alone.

        :param container: The container to rewrite, modified in place.
        :return: The same container.
        """
        for volume in container.volume:
            source = volume.source
            if isinstance(source, NamedVolume) and self.index.has_options(source.name):
                logger.debug("linking volume %s to %s%s", source.name, source.name, VOLUME_SUFFIX)
                volume.source = NamedVolume(name=source.name + VOLUME_SUFFIX)
        return container
