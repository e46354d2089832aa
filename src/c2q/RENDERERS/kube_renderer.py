"""
Renders Kubernetes files as multi-document YAML.
"""
import yaml

from ..MODELS.kubernetes import KubeFile

DOCUMENT_SEPARATOR = "---\n"


def render_kube_file(kube_file: KubeFile) -> str:
    """
    Renders every persistent volume claim, each followed by a document
    separator, then the pod.
    """
    parts = []
    for claim in kube_file.persistent_volume_claims:
        parts.append(yaml.safe_dump(claim, sort_keys=False))
        parts.append(DOCUMENT_SEPARATOR)
    parts.append(yaml.safe_dump(kube_file.pod, sort_keys=False))
    return "".join(parts)
