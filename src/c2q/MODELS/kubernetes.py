"""
Models for Kubernetes YAML output.
"""
from typing import Any, Dict, List
from pydantic import BaseModel


class KubeFile(BaseModel):
    """
    A Kubernetes YAML file holding one pod and the persistent volume claims
    its options-bearing volumes need.

    Objects are kept as plain mappings in Kubernetes API shape.
    """
    name: str
    pod: Dict[str, Any]
    persistent_volume_claims: List[Dict[str, Any]] = []

    @property
    def file_name(self) -> str:
        return f"{self.name}.yaml"
