"""
Entry point of the conversion: picks the output mode and produces every artifact.
"""
from typing import List, Optional, Union

from ..MODELS.compose_document import ComposeDocument
from ..MODELS.kubernetes import KubeFile
from ..MODELS.quadlet import Install, Kube, OutputFile, Unit
from ..exceptions import ComposeConversionError
from .to_kube import KubeConverter
from .to_quadlet import QuadletConverter

Artifact = Union[OutputFile, KubeFile]


def convert_compose(
    document: ComposeDocument,
    pod: bool = False,
    kube: bool = False,
    unit: Optional[Unit] = None,
    install: Optional[Install] = None,
) -> List[Artifact]:
    """
    Converts a compose document in the requested output mode.

    In Kubernetes mode the result is a ``.kube`` Quadlet file named after the
    document followed by the Kubernetes YAML file ``{name}-kube`` it points at.

    :raises ValueError: If both ``pod`` and ``kube`` are requested.
    :raises ComposeConversionError: If the document cannot be converted.
    """
    if pod and kube:
        raise ValueError("`pod` and `kube` are mutually exclusive")

    if not kube:
        return QuadletConverter(document, pod=pod, unit=unit, install=install).convert()

    try:
        kube_file = KubeConverter(document).convert()
    except ComposeConversionError as e:
        raise type(e)("error converting compose file into Kubernetes YAML") from e

    quadlet_file = OutputFile(
        name=kube_file.name,
        unit=unit,
        resource=Kube(yaml=f"{kube_file.name}-kube.yaml"),
        install=install,
    )
    kube_file.name = f"{kube_file.name}-kube"
    return [quadlet_file, kube_file]
