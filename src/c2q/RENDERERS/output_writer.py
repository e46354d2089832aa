"""
Writes rendered artifacts to a directory or a single stream.
"""
import logging
import os
from typing import Iterable, List, Tuple

from ..MODELS.kubernetes import KubeFile
from ..MODELS.quadlet import OutputFile
from .kube_renderer import render_kube_file
from .quadlet_renderer import QuadletRenderer

logger = logging.getLogger(__name__)


class OutputWriter:
    """
    Renders Quadlet and Kubernetes artifacts and writes them out.
    """
    def __init__(self, overwrite: bool = False):
        """
        :param overwrite: Replace files that already exist in the output directory.
        """
        self.overwrite = overwrite
        self.renderer = QuadletRenderer()

    def render(self, artifact) -> Tuple[str, str]:
        """
        Returns the file name and text of an artifact.
        """
        if isinstance(artifact, OutputFile):
            return artifact.file_name, self.renderer.render(artifact)
        if isinstance(artifact, KubeFile):
            return artifact.file_name, render_kube_file(artifact)
        raise TypeError(f"cannot render `{type(artifact).__name__}`")

    def to_string(self, artifacts: Iterable) -> str:
        """
        Concatenates every artifact, each preceded by a ``# file name`` header.
        """
        chunks = []
        for artifact in artifacts:
            file_name, content = self.render(artifact)
            chunks.append(f"# {file_name}\n{content}")
        return "\n".join(chunks)

    def write(self, artifacts: Iterable, output_dir: str) -> List[str]:
        """
        Writes each artifact to its own file in ``output_dir``.

        All names are checked before anything is written, so an existing file
        leaves the directory untouched.

        :return: The paths written, in artifact order.
        :raises FileExistsError: If a file exists and overwriting is disabled.
        """
        rendered = [self.render(artifact) for artifact in artifacts]
        os.makedirs(output_dir, exist_ok=True)

        paths = [os.path.join(output_dir, file_name) for file_name, _ in rendered]
        if not self.overwrite:
            for path in paths:
                if os.path.exists(path):
                    raise FileExistsError(f"`{path}` already exists, use --overwrite to replace it")

        for path, (_, content) in zip(paths, rendered):
            with open(path, "w") as f:
                f.write(content)
            logger.debug("wrote %s", path)
        return paths
