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
Parsers for Docker Compose YAML files.
"""
import logging
import os
import re
import sys
from typing import Dict, Optional, TextIO

import yaml
from dotenv import dotenv_values
from pydantic import ValidationError

from ..MODELS.compose_document import ComposeDocument
from ..UTILS.string_interpolation import EnvironmentInterpolator
from ..exceptions import ComposeParseError

logger = logging.getLogger(__name__)

DEFAULT_FILE_NAMES = (
    "compose.yaml",
    "compose.yml",
    "docker-compose.yaml",
    "docker-compose.yml",
)


class ComposeLoader(yaml.SafeLoader):
    """
    Safe loader resolving plain scalars the way YAML 1.2 does.

    Only ``true``/``false`` are booleans and sexagesimal numbers do not exist,
    so ``restart: no`` stays a string and ``22:22`` stays a port mapping.
    """


_YAML_11_TAGS = (
    "tag:yaml.org,2002:bool",
    "tag:yaml.org,2002:int",
    "tag:yaml.org,2002:float",
)

ComposeLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag not in _YAML_11_TAGS]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
ComposeLoader.add_implicit_resolver(
    "tag:yaml.org,2002:bool",
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)
ComposeLoader.add_implicit_resolver(
    "tag:yaml.org,2002:int",
    re.compile(r"^(?:[-+]?(?:0|[1-9][0-9]*)|0o[0-7]+|0x[0-9a-fA-F]+)$"),
    list("-+0123456789"),
)
ComposeLoader.add_implicit_resolver(
    "tag:yaml.org,2002:float",
    re.compile(
        r"^(?:[-+]?(?:\.[0-9]+|[0-9]+(?:\.[0-9]*)?)(?:[eE][-+]?[0-9]+)?"
        r"|[-+]?\.(?:inf|Inf|INF)|\.(?:nan|NaN|NAN))$"
    ),
    list("-+0123456789."),
)


class ComposeParser:
    """
    Parser for compose files.
    """
    def __init__(self, context: Optional[Dict[str, str]] = None):
        """
        Initializes the parser with an optional environment context for interpolation.

        :param context: A dictionary of environment variables for interpolation.
            Defaults to the process environment, overlaid on a ``.env`` file
            next to the parsed compose file.
        """
        self.context = context

    def parse(self, compose_path: str) -> ComposeDocument:
        """
        Parses a compose file from a path.

        :param compose_path: Path to the compose file, or ``-`` for stdin.
        :return: The parsed document.
        :raises ComposeParseError: If the file cannot be read or is invalid.
        """
        if compose_path == "-":
            return self.parse_stdin()
        try:
            with open(compose_path, 'r') as f:
                content = f.read()
        except OSError as e:
            raise ComposeParseError(f"could not open compose file `{compose_path}`") from e

        context = self._context_for(os.path.dirname(os.path.abspath(compose_path)))
        try:
            return self.parse_from_string(content, context)
        except ComposeParseError as e:
            raise ComposeParseError(f"file `{compose_path}` is not a valid compose file") from e

    def parse_stdin(self, stream: Optional[TextIO] = None) -> ComposeDocument:
        """
        Parses a compose file from stdin.

        :raises ComposeParseError: If stdin is a terminal or the data is invalid.
        """
        stream = stream or sys.stdin
        if stream.isatty():
            raise ComposeParseError("cannot read compose file from stdin, stdin is a terminal")
        try:
            return self.parse_from_string(stream.read(), self._context_for(os.getcwd()))
        except ComposeParseError as e:
            raise ComposeParseError("data from stdin is not a valid compose file") from e

    def parse_from_string(self, content: str, context: Optional[Dict[str, str]] = None) -> ComposeDocument:
        """
        Parses a compose file from a string.

        :param content: YAML content of the compose file.
        :param context: Interpolation context, overrides the parser's own.
        :return: The parsed document.
        """
        if context is None:
            context = self.context if self.context is not None else dict(os.environ)
        try:
            content = EnvironmentInterpolator.interpolate(content, context)
        except KeyError as e:
            raise ComposeParseError(f"interpolation failed: {e.args[0]}") from e

        try:
            data = yaml.load(content, Loader=ComposeLoader)
        except yaml.YAMLError as e:
            raise ComposeParseError("invalid YAML") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ComposeParseError("top level of a compose file must be a mapping")

        try:
            document = ComposeDocument.model_validate(data)
        except ValidationError as e:
            raise ComposeParseError(str(e)) from e

        logger.debug(
            "parsed compose document with %d services, %d networks, %d volumes",
            len(document.services), len(document.networks), len(document.volumes),
        )
        return document

    def _context_for(self, directory: str) -> Dict[str, str]:
        """
        Builds the interpolation context for a compose file in ``directory``.
        """
        if self.context is not None:
            return self.context
        context = {}
        env_path = os.path.join(directory, ".env")
        if os.path.isfile(env_path):
            logger.debug("loading interpolation variables from %s", env_path)
            context.update({k: v for k, v in dotenv_values(env_path).items() if v is not None})
        context.update(os.environ)
        return context


def find_compose_file(directory: str = ".") -> str:
    """
    Looks for one of the default compose file names in ``directory``.

    :raises ComposeParseError: If none of them exist.
    """
    for file_name in DEFAULT_FILE_NAMES:
        path = os.path.join(directory, file_name)
        if os.path.isfile(path):
            return path
    raise ComposeParseError(
        "a compose file was not provided and none of "
        + ", ".join(f"`{name}`" for name in DEFAULT_FILE_NAMES)
        + " exist in the current directory"
    )
