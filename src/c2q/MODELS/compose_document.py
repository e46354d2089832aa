"""
Models for a complete compose document and its top-level resources.
"""
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union
from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from .service_definition import Service

T = TypeVar("T")


class ComposeManaged(BaseModel, Generic[T]):
    """
    A resource defined, and therefore created, by the compose document.
    """
    value: T


class ExternallyManaged(BaseModel):
    """
    A resource declared with ``external: true``; it must already exist.
    """
    name: Optional[str] = None


class IpamConfig(BaseModel):
    """
    A single IPAM pool of a network.
    """
    subnet: Optional[str] = None
    gateway: Optional[str] = None
    ip_range: Optional[str] = None


class Ipam(BaseModel):
    driver: Optional[str] = None
    config: List[IpamConfig] = []
    options: Dict[str, str] = {}


class Network(BaseModel):
    """
    A top-level network definition.
    """
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    driver: Optional[str] = None
    driver_opts: Dict[str, Union[str, int]] = {}
    attachable: bool = False
    enable_ipv6: bool = False
    internal: bool = False
    ipam: Optional[Ipam] = None
    labels: Dict[str, str] = {}

    def is_empty(self) -> bool:
        """True when no option was set."""
        return not self.model_dump(exclude_defaults=True)


class Volume(BaseModel):
    """
    A top-level volume definition.
    """
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    driver: Optional[str] = None
    driver_opts: Dict[str, Union[str, int]] = {}
    labels: Dict[str, str] = {}

    def is_empty(self) -> bool:
        """True when no option was set."""
        return not self.model_dump(exclude_defaults=True)


class Secret(BaseModel):
    """
    A top-level secret definition. Only external secrets are convertible.
    """
    name: Optional[str] = None
    file: Optional[str] = None
    environment: Optional[str] = None


NetworkResource = Union[ComposeManaged[Network], ExternallyManaged]
VolumeResource = Union[ComposeManaged[Volume], ExternallyManaged]
SecretResource = Union[ComposeManaged[Secret], ExternallyManaged]


def _wrap_resource(value: Any, model: type) -> Any:
    """
    Turns a raw top-level entry into the matching resource variant.
    ``None`` (declared with defaults) is kept as is.
    """
    if value is None or isinstance(value, (ComposeManaged, ExternallyManaged)):
        return value
    if not isinstance(value, dict):
        raise ValueError(f"expected a mapping, got `{value!r}`")
    if value.get("external"):
        external = value["external"]
        name = value.get("name")
        if isinstance(external, dict):
            # Legacy form: `external: {name: ...}`
            name = external.get("name", name)
        return ExternallyManaged(name=name)
    value = {key: item for key, item in value.items() if key != "external"}
    return ComposeManaged[model](value=model.model_validate(value))


class ComposeDocument(BaseModel):
    """
    A parsed compose file.

    Service, network and volume mappings keep the order they were declared in;
    that order becomes the order of the produced files.
    """
    model_config = ConfigDict(extra="forbid")

    version: Optional[str] = None
    name: Optional[str] = None
    include: List[Any] = []
    services: Dict[str, Service] = {}
    networks: Dict[str, Optional[NetworkResource]] = {}
    volumes: Dict[str, Optional[VolumeResource]] = {}
    configs: Dict[str, Any] = {}
    secrets: Dict[str, SecretResource] = {}
    extensions: Dict[str, Any] = {}

    @model_validator(mode="before")
    @classmethod
    def _collect_extensions(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        extensions = data.pop("extensions", None) or {}
        if not isinstance(extensions, dict):
            raise ValueError("`extensions` must be a mapping")
        extensions = dict(extensions)
        for key in [key for key in data if isinstance(key, str) and key.startswith("x-")]:
            extensions[key] = data.pop(key)
        data["extensions"] = extensions
        for key in ("include", "services", "networks", "volumes", "configs", "secrets"):
            if data.get(key) is None:
                data.pop(key, None)
        return data

    @field_validator("networks", mode="before")
    @classmethod
    def _wrap_networks(cls, value):
        return {name: _wrap_resource(entry, Network) for name, entry in _items(value)}

    @field_validator("volumes", mode="before")
    @classmethod
    def _wrap_volumes(cls, value):
        return {name: _wrap_resource(entry, Volume) for name, entry in _items(value)}

    @field_validator("secrets", mode="before")
    @classmethod
    def _wrap_secrets(cls, value):
        return {
            name: _wrap_resource(entry if entry is not None else {}, Secret)
            for name, entry in _items(value)
        }

    @field_validator("services", mode="before")
    @classmethod
    def _default_services(cls, value):
        return {name: spec if spec is not None else {} for name, spec in _items(value)}

    @field_validator("version", mode="before")
    @classmethod
    def _version_to_str(cls, value):
        return None if value is None else str(value)


def _items(value):
    if value is None:
        return []
    if not isinstance(value, dict):
        raise ValueError(f"expected a mapping, got `{value!r}`")
    return value.items()
