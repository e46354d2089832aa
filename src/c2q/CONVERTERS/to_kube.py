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
Converters for generating a Kubernetes pod, and its persistent volume claims,
from a compose document.
"""
import logging
import re
from typing import Any, Dict, List, Optional

from ..MODELS.compose_document import ComposeDocument, ComposeManaged, Volume
from ..MODELS.kubernetes import KubeFile
from ..MODELS.service_definition import (
    HealthCheck,
    RestartPolicyCondition,
    Service,
    ServiceVolume,
    VolumeType,
)
from ..exceptions import ComposeConversionError, ConversionFailureError
from .document_validator import DocumentValidator
from .field_mapper import parse_duration, split_command

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_REQUEST = "1Gi"

# Local driver options understood by `podman kube play` as claim annotations.
VOLUME_ANNOTATIONS = {
    "type": "volume.podman.io/type",
    "device": "volume.podman.io/device",
    "o": "volume.podman.io/options",
    "uid": "volume.podman.io/uid",
    "gid": "volume.podman.io/gid",
}

RESTART_POLICIES = {
    RestartPolicyCondition.NO: "Never",
    RestartPolicyCondition.ALWAYS: "Always",
    RestartPolicyCondition.UNLESS_STOPPED: "Always",
    RestartPolicyCondition.ON_FAILURE: "OnFailure",
}

# Volume names in a pod spec are DNS-1123 labels.
DNS_LABEL = re.compile(r"^[a-z0-9](?:[-a-z0-9]*[a-z0-9])?$")

# Service fields the pod spec has a place for.
SUPPORTED_FIELDS = {
    "image", "container_name", "hostname", "command", "entrypoint", "working_dir",
    "user", "environment", "ports", "expose", "volumes", "tmpfs", "restart",
    "healthcheck", "depends_on", "cap_add", "cap_drop", "privileged", "read_only",
}


class PodSpecBuilder:
    """
    Folds compose services into a single pod spec.
    """

    def __init__(self, claim_names: Optional[Dict[str, str]] = None):
        """
        :param claim_names: Maps options-bearing volume names to the name of
            their persistent volume claim; other named volumes become ``emptyDir``.
        """
        self.claim_names = claim_names or {}
        self.spec: Dict[str, Any] = {"containers": []}

    def add_service(self, name: str, service: Service):
        """
        Adds one service to the pod spec as a container.

        :raises ConversionFailureError: If the service cannot be represented.
        """
        unsupported = sorted((set(service.model_fields_set) | set(service.model_extra or {})) - SUPPORTED_FIELDS)
        unsupported = [field for field in unsupported if not field.startswith("x-")]
        if unsupported:
            raise ConversionFailureError(f"`{unsupported[0]}` is not supported")
        if not service.image:
            raise ConversionFailureError("`image` is required")
        if service.depends_on:
            logger.warning("ignoring `depends_on` of service %s, containers in a pod start together", name)

        container: Dict[str, Any] = {"name": service.container_name or name, "image": service.image}
        if any(existing["name"] == container["name"] for existing in self.spec["containers"]):
            raise ConversionFailureError(f"duplicate container name `{container['name']}`")

        if service.entrypoint is not None:
            container["command"] = split_command(service.entrypoint)
        if service.command is not None:
            container["args"] = split_command(service.command)
        if service.working_dir:
            container["workingDir"] = service.working_dir

        env = self._env(service)
        if env:
            container["env"] = env
        ports = [self._port(port) for port in service.ports]
        ports += [{"containerPort": int(port)} for port in service.expose]
        if ports:
            container["ports"] = ports

        mounts = [self._mount(container["name"], index, volume) for index, volume in enumerate(service.volumes)]
        mounts += [
            self._mount(container["name"], len(mounts) + index, ServiceVolume(type=VolumeType.TMPFS, target=target))
            for index, target in enumerate(service.tmpfs)
        ]
        if mounts:
            container["volumeMounts"] = mounts

        security_context = self._security_context(service)
        if security_context:
            container["securityContext"] = security_context
        if service.healthcheck is not None:
            probe = self._probe(service.healthcheck)
            if probe:
                container["livenessProbe"] = probe

        self._set_restart_policy(service)
        self._set_hostname(service)
        self.spec["containers"].append(container)

    def _env(self, service: Service) -> List[Dict[str, str]]:
        env = []
        for key, value in service.environment_mapping().items():
            if value is None:
                raise ConversionFailureError(f"environment variable `{key}` has no value")
            env.append({"name": key, "value": value})
        return env

    def _port(self, port) -> Dict[str, Any]:
        try:
            result = {"containerPort": int(port.target)}
            if port.published is not None:
                result["hostPort"] = int(port.published)
        except ValueError as e:
            raise ConversionFailureError(f"port ranges (`{port.to_publish()}`) are not supported") from e
        if port.host_ip:
            result["hostIP"] = port.host_ip
        if port.protocol:
            result["protocol"] = port.protocol.upper()
        return result

    def _mount(self, container_name: str, index: int, volume: ServiceVolume) -> Dict[str, Any]:
        if volume.type == VolumeType.VOLUME and volume.source:
            volume_name = kube_name(volume.source, "volume")
            claim_name = self.claim_names.get(volume.source)
            if claim_name:
                source = {"persistentVolumeClaim": {"claimName": kube_name(claim_name, "claim")}}
            else:
                source = {"emptyDir": {}}
        elif volume.type == VolumeType.VOLUME:
            volume_name = kube_name(f"{container_name}-anon-{index}", "volume")
            source = {"emptyDir": {}}
        elif volume.type == VolumeType.BIND:
            volume_name = kube_name(f"{container_name}-bind-{index}", "volume")
            source = {"hostPath": {"path": volume.source}}
        elif volume.type == VolumeType.TMPFS:
            volume_name = kube_name(f"{container_name}-tmpfs-{index}", "volume")
            source = {"emptyDir": {"medium": "Memory"}}
        else:
            raise ConversionFailureError(f"volume type `{volume.type.value}` is not supported")

        volumes = self.spec.setdefault("volumes", [])
        if not any(existing["name"] == volume_name for existing in volumes):
            volumes.append({"name": volume_name, **source})

        mount = {"name": volume_name, "mountPath": volume.target}
        if volume.read_only:
            mount["readOnly"] = True
        return mount

    def _security_context(self, service: Service) -> Dict[str, Any]:
        context: Dict[str, Any] = {}
        if service.user is not None:
            user, _, group = str(service.user).partition(":")
            if not user.isdigit() or (group and not group.isdigit()):
                raise ConversionFailureError(f"`user` must be numeric, got `{service.user}`")
            context["runAsUser"] = int(user)
            if group:
                context["runAsGroup"] = int(group)
        capabilities = {}
        if service.cap_add:
            capabilities["add"] = list(service.cap_add)
        if service.cap_drop:
            capabilities["drop"] = list(service.cap_drop)
        if capabilities:
            context["capabilities"] = capabilities
        if service.privileged:
            context["privileged"] = True
        if service.read_only:
            context["readOnlyRootFilesystem"] = True
        return context

    def _probe(self, healthcheck: HealthCheck) -> Dict[str, Any]:
        test = healthcheck.test
        if healthcheck.disable or test is None or test == ["NONE"]:
            return {}
        if isinstance(test, str):
            command = ["/bin/sh", "-c", test]
        elif test[0] == "CMD":
            command = test[1:]
        elif test[0] == "CMD-SHELL":
            command = ["/bin/sh", "-c", " ".join(test[1:])]
        else:
            raise ConversionFailureError(f"invalid healthcheck test `{test[0]}`")

        probe: Dict[str, Any] = {"exec": {"command": command}}
        try:
            if healthcheck.interval:
                probe["periodSeconds"] = int(parse_duration(healthcheck.interval))
            if healthcheck.timeout:
                probe["timeoutSeconds"] = int(parse_duration(healthcheck.timeout))
            if healthcheck.start_period:
                probe["initialDelaySeconds"] = int(parse_duration(healthcheck.start_period))
        except ValueError as e:
            raise ConversionFailureError("invalid healthcheck duration") from e
        if healthcheck.retries is not None:
            probe["failureThreshold"] = healthcheck.retries
        return probe

    def _set_restart_policy(self, service: Service):
        if service.restart is None:
            return
        policy = RESTART_POLICIES[service.restart.condition]
        existing = self.spec.get("restartPolicy")
        if existing is not None and existing != policy:
            raise ConversionFailureError(
                f"restart policy `{policy}` conflicts with `{existing}` of another service"
            )
        self.spec["restartPolicy"] = policy

    def _set_hostname(self, service: Service):
        if not service.hostname:
            return
        existing = self.spec.get("hostname")
        if existing is not None and existing != service.hostname:
            raise ConversionFailureError(
                f"hostname `{service.hostname}` conflicts with `{existing}` of another service"
            )
        self.spec["hostname"] = service.hostname


def kube_name(name: str, kind: str) -> str:
    """
    Turns a compose name into a Kubernetes object name: lowercased, with
    ``_`` and ``.`` replaced by ``-``.

    :raises ConversionFailureError: If the result is still not a DNS-1123 label.
    """
    converted = name.lower().replace("_", "-").replace(".", "-")
    if len(converted) > 63 or not DNS_LABEL.match(converted):
        raise ConversionFailureError(f"{kind} name `{name}` is not a valid Kubernetes name")
    return converted


def volume_to_persistent_volume_claim(name: str, volume: Volume) -> Dict[str, Any]:
    """
    Converts a compose volume with options into a persistent volume claim.

    :raises ConversionFailureError: If a driver option has no annotation.
    """
    annotations = {}
    if volume.driver:
        annotations["volume.podman.io/driver"] = volume.driver
    storage = DEFAULT_STORAGE_REQUEST
    for key, value in volume.driver_opts.items():
        if key == "size":
            storage = str(value)
        elif key in VOLUME_ANNOTATIONS:
            annotations[VOLUME_ANNOTATIONS[key]] = str(value)
        else:
            raise ConversionFailureError(f"volume driver option `{key}` is not supported")

    metadata: Dict[str, Any] = {"name": kube_name(volume.name or name, "claim")}
    if volume.labels:
        metadata["labels"] = dict(volume.labels)
    if annotations:
        metadata["annotations"] = annotations
    return {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": metadata,
        "spec": {
            "accessModes": ["ReadWriteOnce"],
            "resources": {"requests": {"storage": storage}},
        },
    }


class KubeConverter:
    """
    Converts a whole compose document into one Kubernetes pod plus a
    persistent volume claim per volume with options.
    """

    def __init__(self, document: ComposeDocument):
        self.document = document
        self.validator = DocumentValidator()

    def convert(self) -> KubeFile:
        """
        Runs the conversion. Nothing is produced if any service fails.

        :raises ComposeConversionError: On the first failure, with context.
        """
        document = self.document
        name = self.validator.validate_for_kube(document)

        # external and option-less volumes need no claim
        claim_volumes = {
            volume_name: volume.value
            for volume_name, volume in document.volumes.items()
            if isinstance(volume, ComposeManaged) and not volume.value.is_empty()
        }

        builder = PodSpecBuilder({
            volume_name: volume.name or volume_name for volume_name, volume in claim_volumes.items()
        })
        for service_name, service in document.services.items():
            try:
                builder.add_service(service_name, service)
            except ComposeConversionError as e:
                raise ConversionFailureError(
                    f"error adding service `{service_name}` to Kubernetes pod spec"
                ) from e

        claims = []
        for volume_name, volume in claim_volumes.items():
            try:
                claims.append(volume_to_persistent_volume_claim(volume_name, volume))
            except ConversionFailureError as e:
                raise ConversionFailureError(
                    f"error converting volume `{volume_name}` to a persistent volume claim"
                ) from e

        pod = {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {"name": name},
            "spec": builder.spec,
        }
        logger.info("converted compose file into pod %s with %d volume claims", name, len(claims))
        return KubeFile(name=name, pod=pod, persistent_volume_claims=claims)
