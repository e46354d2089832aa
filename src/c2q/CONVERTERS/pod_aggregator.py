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
Groups converted containers into a single Quadlet pod.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..MODELS.quadlet import Container, Install, OutputFile, Pod, Unit

logger = logging.getLogger(__name__)


@dataclass
class PodContext:
    """
    State gathered while wrapping containers: the pod name and the ports
    taken from each container, in service order.
    """

    name: str
    publish_port: List[str] = field(default_factory=list)


class PodAggregator:
    """
    Second pass over already converted files that puts every container in one pod.

    Each container file is renamed to ``{pod}-{name}``, its published ports are
    moved to the pod, and it is linked to ``{pod}.pod``. The pod file is
    appended after every other file.
    """

    def __init__(self, pod_name: str, unit: Optional[Unit] = None, install: Optional[Install] = None):
        """
        :param pod_name: Name of the pod and prefix of the container files.
        :param unit: Unit section for the pod file.
        :param install: Install section for the pod file.
        """
        self.pod_name = pod_name
        self.unit = unit
        self.install = install

    def wrap(self, files: List[OutputFile]) -> List[OutputFile]:
        """
        Wraps the container files in place and appends the pod file.

        :param files: The files of one conversion run, in output order.
        :return: The same list.
        """
        context = PodContext(name=self.pod_name)
        for file in files:
            if isinstance(file.resource, Container):
                self._wrap_container(file, context)
        files.append(self._pod_file(context))
        logger.debug("wrapped containers in pod %s with %d published ports", context.name, len(context.publish_port))
        return files

    def _wrap_container(self, file: OutputFile, context: PodContext):
        container = file.resource
        file.name = f"{context.name}-{file.name}"
        context.publish_port.extend(container.publish_port)
        container.publish_port = []
        container.pod = f"{context.name}.pod"
        if file.unit is not None:
            # dependencies point at other containers of the pod, renamed the same way
            file.unit.prefix_dependencies(context.name)

    def _pod_file(self, context: PodContext) -> OutputFile:
        return OutputFile(
            name=context.name,
            unit=self.unit,
            resource=Pod(publish_port=context.publish_port),
            install=self.install,
        )
