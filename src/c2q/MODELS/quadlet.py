"""
Models for Quadlet unit files: the sections shared by every file and
the resource each file describes.
"""
from typing import Dict, List, Optional, Union
from pydantic import BaseModel, Field
from enum import Enum

from .service_definition import Dependency
from ..exceptions import ConflictingDependencyError


class Unit(BaseModel):
    """
    The ``[Unit]`` section.

    Dependencies recorded from compose ``depends_on`` are kept per target
    identifier; the systemd directives are derived from them when rendering,
    so renaming a target only has to touch one place.
    """
    description: Optional[str] = None
    wants: List[str] = []
    requires: List[str] = []
    binds_to: List[str] = []
    part_of: List[str] = []
    after: List[str] = []
    before: List[str] = []
    dependencies: Dict[str, Dependency] = {}

    def add_dependency(self, target: str, dependency: Dependency):
        """
        Records a dependency on the service ``target``.

        :raises ConflictingDependencyError: If ``target`` was already recorded.
        """
        existing = self.dependencies.get(target)
        if existing is not None:
            if existing.condition != dependency.condition:
                raise ConflictingDependencyError(
                    f"dependency on `{target}` already recorded with condition "
                    f"`{existing.condition.value}`, cannot add it with `{dependency.condition.value}`"
                )
            raise ConflictingDependencyError(f"duplicate dependency on `{target}`")
        self.dependencies[target] = dependency

    def prefix_dependencies(self, prefix: str):
        """
        Renames every recorded dependency target to ``{prefix}-{target}``.
        """
        self.dependencies = {
            f"{prefix}-{target}": dependency for target, dependency in self.dependencies.items()
        }

    def directives(self) -> List[tuple]:
        """
        Returns the ``(key, value)`` pairs of the section, in rendering order.
        """
        wants = list(self.wants)
        requires = list(self.requires)
        part_of = list(self.part_of)
        after = list(self.after)
        for target, dependency in self.dependencies.items():
            unit_name = f"{target}.service"
            (requires if dependency.required else wants).append(unit_name)
            if dependency.restart:
                part_of.append(unit_name)
            after.append(unit_name)

        pairs = []
        if self.description:
            pairs.append(("Description", self.description))
        pairs += [("Wants", value) for value in wants]
        pairs += [("Requires", value) for value in requires]
        pairs += [("BindsTo", value) for value in self.binds_to]
        pairs += [("PartOf", value) for value in part_of]
        pairs += [("After", value) for value in after]
        pairs += [("Before", value) for value in self.before]
        return pairs

    def is_empty(self) -> bool:
        return not self.directives()


class Install(BaseModel):
    """
    The ``[Install]`` section.
    """
    wanted_by: List[str] = []
    required_by: List[str] = []

    def directives(self) -> List[tuple]:
        return [("WantedBy", value) for value in self.wanted_by] + [
            ("RequiredBy", value) for value in self.required_by
        ]


class Globals(BaseModel):
    """
    Podman global arguments, rendered as ``GlobalArgs=`` in the resource section.
    """
    global_args: List[str] = []

    def is_empty(self) -> bool:
        return not self.global_args


class ServiceRestart(str, Enum):
    """
    Values of systemd's ``Restart=``.
    """
    NO = "no"
    ON_FAILURE = "on-failure"
    ALWAYS = "always"


class ServiceSection(BaseModel):
    """
    The ``[Service]`` section of a container file.
    """
    restart: Optional[ServiceRestart] = None

    def directives(self) -> List[tuple]:
        return [("Restart", self.restart.value)] if self.restart else []


class NamedVolume(BaseModel):
    """
    Mount source naming a volume (or, with a ``.volume`` suffix, a volume unit).
    """
    name: str


class HostPath(BaseModel):
    """
    Mount source that is a path on the host.
    """
    path: str


class ContainerVolume(BaseModel):
    """
    A ``Volume=`` entry. A missing source is an anonymous volume.
    """
    source: Optional[Union[NamedVolume, HostPath]] = None
    target: str
    options: List[str] = []

    def to_value(self) -> str:
        parts = []
        if isinstance(self.source, NamedVolume):
            parts.append(self.source.name)
        elif isinstance(self.source, HostPath):
            parts.append(self.source.path)
        parts.append(self.target)
        if self.options:
            parts.append(",".join(self.options))
        return ":".join(parts)


class Container(BaseModel):
    """
    The ``[Container]`` section.
    """
    image: str
    container_name: Optional[str] = None
    exec: Optional[str] = None
    entrypoint: Optional[str] = None
    environment: Dict[str, str] = {}
    environment_file: List[str] = []
    publish_port: List[str] = []
    expose_host_port: List[str] = []
    volume: List[ContainerVolume] = []
    tmpfs: List[str] = []
    network: List[str] = []
    network_alias: List[str] = []
    ip: Optional[str] = None
    ip6: Optional[str] = None
    dns: List[str] = []
    add_host: List[str] = []
    host_name: Optional[str] = None
    label: Dict[str, str] = {}
    user: Optional[str] = None
    working_dir: Optional[str] = None
    run_init: Optional[bool] = None
    read_only: Optional[bool] = None
    add_capability: List[str] = []
    drop_capability: List[str] = []
    add_device: List[str] = []
    security_label_disable: Optional[bool] = None
    health_cmd: Optional[str] = None
    health_interval: Optional[str] = None
    health_timeout: Optional[str] = None
    health_retries: Optional[int] = None
    health_start_period: Optional[str] = None
    health_startup_interval: Optional[str] = None
    stop_signal: Optional[str] = None
    stop_timeout: Optional[str] = None
    pull: Optional[str] = None
    shm_size: Optional[str] = None
    sysctl: Dict[str, str] = {}
    ulimit: List[str] = []
    log_driver: Optional[str] = None
    log_opt: List[str] = []
    podman_args: List[str] = []
    pod: Optional[str] = None

    def directives(self) -> List[tuple]:
        pairs = [("Image", self.image)]
        _single(pairs, "ContainerName", self.container_name)
        _single(pairs, "Pod", self.pod)
        _single(pairs, "Entrypoint", self.entrypoint)
        _single(pairs, "Exec", self.exec)
        pairs += [("Environment", _env_pair(k, v)) for k, v in self.environment.items()]
        pairs += [("EnvironmentFile", value) for value in self.environment_file]
        pairs += [("PublishPort", value) for value in self.publish_port]
        pairs += [("ExposeHostPort", value) for value in self.expose_host_port]
        pairs += [("Volume", volume.to_value()) for volume in self.volume]
        pairs += [("Tmpfs", value) for value in self.tmpfs]
        pairs += [("Network", value) for value in self.network]
        pairs += [("NetworkAlias", value) for value in self.network_alias]
        _single(pairs, "IP", self.ip)
        _single(pairs, "IP6", self.ip6)
        pairs += [("DNS", value) for value in self.dns]
        pairs += [("AddHost", value) for value in self.add_host]
        _single(pairs, "HostName", self.host_name)
        pairs += [("Label", _env_pair(k, v)) for k, v in self.label.items()]
        _single(pairs, "User", self.user)
        _single(pairs, "WorkingDir", self.working_dir)
        _single(pairs, "RunInit", self.run_init)
        _single(pairs, "ReadOnly", self.read_only)
        pairs += [("AddCapability", value) for value in self.add_capability]
        pairs += [("DropCapability", value) for value in self.drop_capability]
        pairs += [("AddDevice", value) for value in self.add_device]
        _single(pairs, "SecurityLabelDisable", self.security_label_disable)
        _single(pairs, "HealthCmd", self.health_cmd)
        _single(pairs, "HealthInterval", self.health_interval)
        _single(pairs, "HealthTimeout", self.health_timeout)
        _single(pairs, "HealthRetries", self.health_retries)
        _single(pairs, "HealthStartPeriod", self.health_start_period)
        _single(pairs, "HealthStartupInterval", self.health_startup_interval)
        _single(pairs, "StopSignal", self.stop_signal)
        _single(pairs, "StopTimeout", self.stop_timeout)
        _single(pairs, "Pull", self.pull)
        _single(pairs, "ShmSize", self.shm_size)
        pairs += [("Sysctl", f"{k}={v}") for k, v in self.sysctl.items()]
        pairs += [("Ulimit", value) for value in self.ulimit]
        _single(pairs, "LogDriver", self.log_driver)
        pairs += [("LogOpt", value) for value in self.log_opt]
        if self.podman_args:
            pairs.append(("PodmanArgs", " ".join(self.podman_args)))
        return pairs


class Network(BaseModel):
    """
    The ``[Network]`` section.
    """
    network_name: Optional[str] = None
    driver: Optional[str] = None
    options: Dict[str, str] = {}
    internal: Optional[bool] = None
    ipv6: Optional[bool] = None
    subnet: List[str] = []
    gateway: List[str] = []
    ip_range: List[str] = []
    ipam_driver: Optional[str] = None
    label: Dict[str, str] = {}

    def directives(self) -> List[tuple]:
        pairs = []
        _single(pairs, "NetworkName", self.network_name)
        _single(pairs, "Driver", self.driver)
        pairs += [("Options", f"{k}={v}") for k, v in self.options.items()]
        _single(pairs, "Internal", self.internal)
        _single(pairs, "IPv6", self.ipv6)
        _single(pairs, "IPAMDriver", self.ipam_driver)
        pairs += [("Subnet", value) for value in self.subnet]
        pairs += [("Gateway", value) for value in self.gateway]
        pairs += [("IPRange", value) for value in self.ip_range]
        pairs += [("Label", _env_pair(k, v)) for k, v in self.label.items()]
        return pairs


class Volume(BaseModel):
    """
    The ``[Volume]`` section.
    """
    volume_name: Optional[str] = None
    driver: Optional[str] = None
    options: Dict[str, str] = {}
    label: Dict[str, str] = {}

    def directives(self) -> List[tuple]:
        pairs = []
        _single(pairs, "VolumeName", self.volume_name)
        _single(pairs, "Driver", self.driver)
        for key, value in self.options.items():
            # podman volume create understands type/device/o for the local driver
            if key in ("type", "device"):
                pairs.append((key.capitalize(), value))
            elif key == "o":
                pairs.append(("Options", value))
            else:
                pairs.append(("PodmanArgs", f"--opt {key}={value}"))
        pairs += [("Label", _env_pair(k, v)) for k, v in self.label.items()]
        return pairs


class Pod(BaseModel):
    """
    The ``[Pod]`` section.
    """
    pod_name: Optional[str] = None
    publish_port: List[str] = []

    def directives(self) -> List[tuple]:
        pairs = []
        _single(pairs, "PodName", self.pod_name)
        pairs += [("PublishPort", value) for value in self.publish_port]
        return pairs


class Kube(BaseModel):
    """
    The ``[Kube]`` section, pointing at a Kubernetes YAML file.
    """
    yaml: str

    def directives(self) -> List[tuple]:
        return [("Yaml", self.yaml)]


Resource = Union[Container, Network, Volume, Pod, Kube]

_EXTENSIONS = (
    (Container, "container"),
    (Network, "network"),
    (Volume, "volume"),
    (Pod, "pod"),
    (Kube, "kube"),
)


def resource_extension(resource: Resource) -> str:
    """
    Returns the file extension, and section name, for a resource.
    """
    for kind, extension in _EXTENSIONS:
        if isinstance(resource, kind):
            return extension
    raise TypeError(f"unknown Quadlet resource `{type(resource).__name__}`")


class OutputFile(BaseModel):
    """
    A single Quadlet file: one resource plus its optional unit sections.
    """
    name: str
    unit: Optional[Unit] = None
    resource: Resource
    globals: Globals = Field(default_factory=Globals)
    service: Optional[ServiceSection] = None
    install: Optional[Install] = None

    @property
    def extension(self) -> str:
        return resource_extension(self.resource)

    @property
    def file_name(self) -> str:
        return f"{self.name}.{self.extension}"


def _single(pairs: List[tuple], key: str, value):
    if value is None:
        return
    if isinstance(value, bool):
        value = "true" if value else "false"
    pairs.append((key, str(value)))


def _env_pair(key: str, value: str) -> str:
    pair = f"{key}={value}"
    if any(char.isspace() for char in pair) or '"' in pair:
        escaped = pair.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return pair
