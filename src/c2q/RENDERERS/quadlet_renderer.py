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
Renders Quadlet files as systemd unit file text.
"""
from jinja2 import Template

from ..MODELS.quadlet import OutputFile

QUADLET_TEMPLATE = """\
{% for section, directives in sections %}
{% if not loop.first %}

{% endif %}
[{{ section }}]
{% for key, value in directives %}
{{ key }}={{ value }}
{% endfor %}
{% endfor %}
"""


class QuadletRenderer:
    """
    Renders an output file as ``[Unit]``, the resource section, ``[Service]``
    and ``[Install]``, omitting empty sections.
    """

    def __init__(self):
        self.template = Template(QUADLET_TEMPLATE, trim_blocks=True, lstrip_blocks=True)

    def sections(self, file: OutputFile) -> list:
        """
        Returns ``(section name, directives)`` pairs in rendering order.
        """
        sections = []
        if file.unit is not None and not file.unit.is_empty():
            sections.append(("Unit", file.unit.directives()))

        resource = file.resource.directives()
        if file.globals.global_args:
            resource.append(("GlobalArgs", " ".join(file.globals.global_args)))
        sections.append((file.extension.capitalize(), resource))

        if file.service is not None and file.service.directives():
            sections.append(("Service", file.service.directives()))
        if file.install is not None and file.install.directives():
            sections.append(("Install", file.install.directives()))
        return sections

    def render(self, file: OutputFile) -> str:
        return self.template.render(sections=self.sections(file))
