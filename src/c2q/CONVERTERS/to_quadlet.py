# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Converters for generating Quadlet unit files from compose documents.
"""
import logging
from typing import List, Optional

from ..MODELS.compose_document import ComposeDocument
from ..MODELS.quadlet import Install, OutputFile, Unit
from ..RESOLVERS.service_resolver import resolve_service
from ..RESOLVERS.volume_linker import VolumeOptionsIndex
from ..exceptions import ComposeConversionError
from .document_validator import DocumentValidator, require_name
from .pod_aggregator import PodAggregator
from .resource_converter import NetworkConverter, VolumeConverter

logger = logging.getLogger(__name__)


class QuadletConverter:
    """
    Converts a compose document into Quadlet files: one ``.container`` per
    service, one ``.network`` per network, one ``.volume`` per volume with
    options and, when wrapping in a pod, a trailing ``.pod``.
    """

    def __init__(
        self,
        document: ComposeDocument,
        pod: bool = False,
        unit: Optional[Unit] = None,
        install: Optional[Install] = None,
    ):
        """
        Initializes the Quadlet converter.

        :param document: The parsed compose document. It is consumed by the conversion.
        :param pod: Wrap every container in a pod named after the document.
        :param unit: Unit section copied into every produced file.
        :param install: Install section copied into every produced file.
        """
        self.document = document
        self.pod = pod
        self.unit = unit
        self.install = install
        self.validator = DocumentValidator()

    def convert(self) -> List[OutputFile]:
        """
        Runs the conversion. Either every file is produced or an error is raised.

        :return: The files, services first in document order, then networks,
            then volumes, then the pod.
        :raises ComposeConversionError: On the first failure, with context.
        """
        document = self.document
        pod_name = require_name(document, "`name` is required when using `--pod`") if self.pod else None
        self.validator.validate_for_quadlet(document)

        try:
            files = self._convert_parts(document)
        except ComposeConversionError as e:
            raise type(e)("error converting compose file into Quadlet files") from e

        if pod_name is not None:
            PodAggregator(pod_name, self._copy(self.unit), self._copy(self.install)).wrap(files)

        logger.info("converted compose file into %d Quadlet files", len(files))
        return files

    def _convert_parts(self, document: ComposeDocument) -> List[OutputFile]:
        volume_index = VolumeOptionsIndex.from_volumes(document.volumes)

        files = [
            resolve_service(name, service, volume_index, self._copy(self.unit), self._copy(self.install))
            for name, service in document.services.items()
        ]
        files.extend(NetworkConverter(self.unit, self.install).convert(document.networks))
        files.extend(VolumeConverter(self.unit, self.install).convert(document.volumes))
        return files

    @staticmethod
    def _copy(section):
        return None if section is None else section.model_copy(deep=True)
