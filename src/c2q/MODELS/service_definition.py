"""
Models for compose services, including dependencies, restart policies, health checks, and mounts.
"""
from typing import List, Dict, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum


class DependencyCondition(str, Enum):
    """
    Readiness predicate under which a dependent service may start.
    """
    STARTED = "service_started"
    HEALTHY = "service_healthy"
    COMPLETED_SUCCESSFULLY = "service_completed_successfully"


class Dependency(BaseModel):
    """
    Long form of a single ``depends_on`` entry.
    """
    model_config = ConfigDict(extra="forbid")

    condition: DependencyCondition = DependencyCondition.STARTED
    restart: bool = False
    required: bool = True


class RestartPolicyCondition(str, Enum):
    """
    Conditions under which a service should be restarted.
    """
    NO = "no"
    ALWAYS = "always"
    ON_FAILURE = "on-failure"
    UNLESS_STOPPED = "unless-stopped"


class RestartPolicy(BaseModel):
    """
    Defines how a service should be restarted on failure or exit.
    """
    condition: RestartPolicyCondition = RestartPolicyCondition.NO
    max_retries: int = 0

    @classmethod
    def parse(cls, value: str) -> "RestartPolicy":
        """
        Parses the compose ``restart`` string, e.g. ``on-failure:3``.
        """
        condition, _, retries = str(value).partition(":")
        return cls(condition=condition, max_retries=int(retries) if retries else 0)


class HealthCheck(BaseModel):
    """
    Defines a command to run to check the health of a service.
    Durations are kept as compose duration strings (``1m30s``).
    """
    model_config = ConfigDict(extra="forbid")

    test: Optional[Union[str, List[str]]] = None
    interval: Optional[Union[int, str]] = None
    timeout: Optional[Union[int, str]] = None
    retries: Optional[int] = None
    start_period: Optional[Union[int, str]] = None
    start_interval: Optional[Union[int, str]] = None
    disable: bool = False


class VolumeType(str, Enum):
    """
    Kinds of mounts a service volume can be.
    """
    VOLUME = "volume"
    BIND = "bind"
    TMPFS = "tmpfs"
    NPIPE = "npipe"
    CLUSTER = "cluster"
    IMAGE = "image"


class ServiceVolume(BaseModel):
    """
    A mount in a service's ``volumes`` list.

    A ``VOLUME`` mount without a source is an anonymous volume.
    """
    type: VolumeType = VolumeType.VOLUME
    source: Optional[str] = None
    target: str
    read_only: bool = False
    selinux: Optional[str] = None
    nocopy: bool = False
    subpath: Optional[str] = None
    tmpfs_size: Optional[Union[int, str]] = None

    @classmethod
    def parse(cls, spec: str) -> "ServiceVolume":
        """
        Parses the short syntax ``[SOURCE:]TARGET[:MODE]``.

        Sources starting with ``/``, ``.`` or ``~`` are bind mounts, anything
        else names a volume.
        """
        parts = spec.split(":")
        if len(parts) == 1:
            return cls(type=VolumeType.VOLUME, target=parts[0])
        if len(parts) > 3:
            raise ValueError(f"invalid volume `{spec}`")

        source, target = parts[0], parts[1]
        modes = parts[2].split(",") if len(parts) == 3 else []
        is_path = source.startswith(("/", ".", "~"))
        selinux = next((mode for mode in modes if mode in ("z", "Z")), None)
        return cls(
            type=VolumeType.BIND if is_path else VolumeType.VOLUME,
            source=source,
            target=target,
            read_only="ro" in modes,
            selinux=selinux,
            nocopy="nocopy" in modes,
        )

    @classmethod
    def from_long(cls, spec: Dict) -> "ServiceVolume":
        """
        Parses the long syntax mapping.
        """
        spec = dict(spec)
        bind = spec.pop("bind", None) or {}
        volume = spec.pop("volume", None) or {}
        tmpfs = spec.pop("tmpfs", None) or {}
        spec.pop("consistency", None)
        if not all(isinstance(options, dict) for options in (bind, volume, tmpfs)):
            raise ValueError("volume `bind`, `volume` and `tmpfs` options must be mappings")
        spec.update(
            selinux=bind.get("selinux"),
            nocopy=bool(volume.get("nocopy", False)),
            subpath=volume.get("subpath"),
            tmpfs_size=tmpfs.get("size"),
        )
        return cls.model_validate(spec)


class ServicePort(BaseModel):
    """
    A published port, ``[HOST_IP:][PUBLISHED:]TARGET[/PROTOCOL]``.
    """
    target: Union[int, str]
    published: Optional[Union[int, str]] = None
    host_ip: Optional[str] = None
    protocol: Optional[str] = None
    name: Optional[str] = None
    mode: Optional[str] = None
    app_protocol: Optional[str] = None

    @classmethod
    def parse(cls, spec: Union[int, str]) -> "ServicePort":
        """
        Parses the short syntax port string.
        """
        spec = str(spec)
        protocol = None
        if "/" in spec:
            spec, protocol = spec.rsplit("/", 1)

        host_ip = None
        if spec.startswith("["):
            # IPv6 host address, e.g. [::1]:8080:80
            end = spec.index("]")
            host_ip = spec[1:end]
            spec = spec[end + 2:]

        parts = spec.split(":")
        if len(parts) == 1:
            return cls(target=parts[0], protocol=protocol, host_ip=host_ip)
        if len(parts) == 2:
            return cls(target=parts[1], published=parts[0] or None, protocol=protocol, host_ip=host_ip)
        if len(parts) == 3:
            return cls(target=parts[2], published=parts[1] or None, host_ip=parts[0], protocol=protocol)
        raise ValueError(f"invalid port `{spec}`")

    def to_publish(self) -> str:
        """
        Formats the port the way ``podman run --publish`` expects it.
        """
        value = str(self.target)
        if self.published is not None:
            value = f"{self.published}:{value}"
        if self.host_ip:
            host_ip = f"[{self.host_ip}]" if ":" in self.host_ip else self.host_ip
            value = f"{host_ip}:{value}" if self.published is not None else f"{host_ip}::{value}"
        if self.protocol:
            value = f"{value}/{self.protocol}"
        return value


class ServiceNetwork(BaseModel):
    """
    Per-service attachment options for a network.
    """
    aliases: List[str] = []
    ipv4_address: Optional[str] = None
    ipv6_address: Optional[str] = None


class ServiceLogging(BaseModel):
    """
    Logging configuration of a service.
    """
    driver: Optional[str] = None
    options: Dict[str, str] = {}


class Service(BaseModel):
    """
    The definition of a single compose service.

    Fields this model does not declare are kept in ``model_extra`` so the
    field mapper can reject them by name.
    """
    model_config = ConfigDict(extra="allow")

    image: Optional[str] = None
    container_name: Optional[str] = None
    hostname: Optional[str] = None

    # Execution
    command: Optional[Union[str, List[str]]] = None
    entrypoint: Optional[Union[str, List[str]]] = None
    working_dir: Optional[str] = None
    user: Optional[Union[int, str]] = None
    init: Optional[bool] = None
    runtime: Optional[str] = None

    # Environment
    environment: Union[List[str], Dict[str, Optional[Union[str, int, float, bool]]]] = {}
    env_file: List[str] = []

    # Networking
    ports: List[ServicePort] = []
    expose: List[Union[int, str]] = []
    networks: Dict[str, Optional[ServiceNetwork]] = {}
    network_mode: Optional[str] = None
    dns: List[str] = []
    extra_hosts: List[str] = []

    # Storage
    volumes: List[ServiceVolume] = []
    tmpfs: List[str] = []
    read_only: Optional[bool] = None
    shm_size: Optional[Union[int, str]] = None

    # Lifecycle
    restart: Optional[RestartPolicy] = None
    healthcheck: Optional[HealthCheck] = None
    depends_on: Union[List[str], Dict[str, Dependency]] = Field(default_factory=list)
    stop_signal: Optional[str] = None
    stop_grace_period: Optional[Union[int, str]] = None
    pull_policy: Optional[str] = None

    # Security
    cap_add: List[str] = []
    cap_drop: List[str] = []
    devices: List[str] = []
    privileged: Optional[bool] = None
    security_opt: List[str] = []

    # Resources
    sysctls: Dict[str, Union[str, int]] = {}
    ulimits: Dict[str, Union[int, Dict[str, int]]] = {}

    # Metadata
    labels: Dict[str, str] = {}
    logging: Optional[ServiceLogging] = None

    @field_validator("env_file", "tmpfs", "dns", mode="before")
    @classmethod
    def _to_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [entry.get("path") if isinstance(entry, dict) else entry for entry in value]

    @field_validator("ports", mode="before")
    @classmethod
    def _parse_ports(cls, value):
        return [
            ServicePort.parse(port) if isinstance(port, (int, str)) else port
            for port in value or []
        ]

    @field_validator("volumes", mode="before")
    @classmethod
    def _parse_volumes(cls, value):
        volumes = []
        for volume in value or []:
            if isinstance(volume, str):
                volume = ServiceVolume.parse(volume)
            elif isinstance(volume, dict):
                volume = ServiceVolume.from_long(volume)
            volumes.append(volume)
        return volumes

    @field_validator("networks", mode="before")
    @classmethod
    def _networks_to_mapping(cls, value):
        if isinstance(value, list):
            return {name: None for name in value}
        return value or {}

    @field_validator("labels", "sysctls", mode="before")
    @classmethod
    def _pairs_to_mapping(cls, value):
        if isinstance(value, list):
            return dict(str(entry).partition("=")[::2] for entry in value)
        if isinstance(value, dict):
            return {key: "" if item is None else str(item) for key, item in value.items()}
        return value or {}

    @field_validator("extra_hosts", mode="before")
    @classmethod
    def _hosts_to_list(cls, value):
        if isinstance(value, dict):
            return [f"{host}:{address}" for host, address in value.items()]
        return value or []

    @field_validator("restart", mode="before")
    @classmethod
    def _parse_restart(cls, value):
        # `restart: no` loaded by a YAML 1.1 reader
        if value is False:
            value = "no"
        if isinstance(value, str):
            return RestartPolicy.parse(value)
        return value

    @field_validator("depends_on", mode="before")
    @classmethod
    def _default_depends_on(cls, value):
        return [] if value is None else value

    def environment_mapping(self) -> Dict[str, Optional[str]]:
        """
        Returns the environment as a mapping, normalising the list form.
        A variable without a value maps to ``None``.
        """
        if isinstance(self.environment, list):
            environment = {}
            for entry in self.environment:
                key, sep, value = entry.partition("=")
                environment[key] = value if sep else None
            return environment
        return {
            key: None if value is None else _stringify(value)
            for key, value in self.environment.items()
        }


def _stringify(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
