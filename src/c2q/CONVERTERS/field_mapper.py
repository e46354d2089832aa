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
Per-field mapping of compose services, networks and volumes onto Quadlet resources.
"""
import json
import re
import shlex
from typing import List, Optional, Union

from ..MODELS import compose_document as compose
from ..MODELS import quadlet
from ..MODELS.service_definition import HealthCheck, Service, ServiceVolume, VolumeType
from ..exceptions import ConversionFailureError

DURATION_PATTERN = re.compile(r"(\d+(?:\.\d+)?)(us|ms|s|m|h)")
DURATION_UNITS = {"us": 0.000001, "ms": 0.001, "s": 1, "m": 60, "h": 3600}

PULL_POLICIES = {
    "always": "always",
    "never": "never",
    "missing": "missing",
    "if_not_present": "missing",
    "newer": "newer",
}


def parse_duration(value: Union[int, str]) -> float:
    """
    Parses a compose duration such as ``1m30s`` into seconds.

    :raises ValueError: If the value is not a duration.
    """
    if isinstance(value, (int, float)):
        return float(value)
    value = value.strip()
    if value.isdigit():
        return float(value)
    matches = DURATION_PATTERN.findall(value)
    if not matches or "".join(num + unit for num, unit in matches) != value:
        raise ValueError(f"invalid duration `{value}`")
    return sum(float(num) * DURATION_UNITS[unit] for num, unit in matches)


def split_command(command: Union[str, List[str]]) -> List[str]:
    """
    Splits a string command as a shell would; lists are returned as is.

    :raises ConversionFailureError: If a quote is left open.
    """
    if isinstance(command, list):
        return command
    try:
        return shlex.split(command)
    except ValueError as e:
        raise ConversionFailureError(
            f"invalid command `{command}`, make sure quotes are closed properly "
            "or use an array instead of a string"
        ) from e


class ServiceFieldMapper:
    """
    Maps the runtime fields of one compose service onto a Quadlet container.

    ``depends_on``, ``restart`` and the global fields must be extracted before
    mapping; the mapper does not look at them.
    """
    def __init__(self, service: Service):
        self.service = service
        self.podman_args: List[str] = []

    def map(self) -> quadlet.Container:
        """
        Builds the container.

        :raises ConversionFailureError: If a field is unsupported or invalid.
        """
        service = self.service
        self._reject_unknown_fields()
        if not service.image:
            raise ConversionFailureError("`image` is required")

        container = quadlet.Container(
            image=service.image,
            container_name=service.container_name,
            host_name=service.hostname,
            user=None if service.user is None else str(service.user),
            working_dir=service.working_dir,
            run_init=service.init,
            read_only=service.read_only,
            label=dict(service.labels),
            dns=list(service.dns),
            add_host=list(service.extra_hosts),
            add_capability=list(service.cap_add),
            drop_capability=list(service.cap_drop),
            add_device=list(service.devices),
            environment_file=list(service.env_file),
            publish_port=[port.to_publish() for port in service.ports],
            expose_host_port=[str(port) for port in service.expose],
            tmpfs=list(service.tmpfs),
            stop_signal=service.stop_signal,
            shm_size=None if service.shm_size is None else str(service.shm_size),
            sysctl={key: str(value) for key, value in service.sysctls.items()},
        )

        if service.command is not None:
            container.exec = shlex.join(split_command(service.command))
        if service.entrypoint is not None:
            container.entrypoint = self._entrypoint(service.entrypoint)

        self._map_environment(container)
        self._map_volumes(container)
        self._map_networks(container)
        self._map_healthcheck(container, service.healthcheck)
        self._map_security(container)
        self._map_lifecycle(container)
        self._map_limits(container)

        container.podman_args = self.podman_args
        return container

    def _reject_unknown_fields(self):
        for field in self.service.model_extra or {}:
            if field.startswith("x-"):
                continue
            raise ConversionFailureError(f"`{field}` is not supported")

    def _entrypoint(self, entrypoint: Union[str, List[str]]) -> str:
        parts = split_command(entrypoint)
        if len(parts) == 1:
            return parts[0]
        # Quadlet takes multi-part entrypoints as a JSON array
        return json.dumps(parts)

    def _map_environment(self, container: quadlet.Container):
        for key, value in self.service.environment_mapping().items():
            if value is None:
                # passed through from the host environment
                self.podman_args.append(f"--env {key}")
            else:
                container.environment[key] = value

    def _map_volumes(self, container: quadlet.Container):
        for volume in self.service.volumes:
            if volume.type == VolumeType.TMPFS:
                tmpfs = volume.target
                if volume.tmpfs_size is not None:
                    tmpfs = f"{tmpfs}:size={volume.tmpfs_size}"
                container.tmpfs.append(tmpfs)
                continue
            container.volume.append(self._container_volume(volume))

    def _container_volume(self, volume: ServiceVolume) -> quadlet.ContainerVolume:
        options = []
        if volume.read_only:
            options.append("ro")
        if volume.selinux:
            options.append(volume.selinux)
        if volume.nocopy:
            options.append("nocopy")
        if volume.subpath:
            raise ConversionFailureError(f"volume `subpath` (`{volume.target}`) is not supported")

        if volume.type == VolumeType.BIND:
            if not volume.source:
                raise ConversionFailureError(f"bind mount `{volume.target}` has no source")
            source = quadlet.HostPath(path=volume.source)
        elif volume.type == VolumeType.VOLUME:
            source = quadlet.NamedVolume(name=volume.source) if volume.source else None
        else:
            raise ConversionFailureError(f"volume type `{volume.type.value}` is not supported")
        return quadlet.ContainerVolume(source=source, target=volume.target, options=options)

    def _map_networks(self, container: quadlet.Container):
        service = self.service
        if service.network_mode and service.networks:
            raise ConversionFailureError("`network_mode` and `networks` cannot be combined")

        if service.network_mode:
            mode = service.network_mode
            if mode.startswith(("service:", "container:")):
                raise ConversionFailureError(f"`network_mode: {mode}` is not supported")
            container.network.append(mode)
            return

        for name, options in service.networks.items():
            container.network.append(f"{name}.network")
            if options is None:
                continue
            container.network_alias.extend(options.aliases)
            if options.ipv4_address:
                container.ip = options.ipv4_address
            if options.ipv6_address:
                container.ip6 = options.ipv6_address

    def _map_healthcheck(self, container: quadlet.Container, healthcheck: Optional[HealthCheck]):
        if healthcheck is None:
            return
        if healthcheck.disable:
            container.health_cmd = "none"
            return

        test = healthcheck.test
        if isinstance(test, list):
            kind, args = (test[0], test[1:]) if test else ("NONE", [])
            if kind == "NONE":
                container.health_cmd = "none"
            elif kind == "CMD":
                container.health_cmd = json.dumps(args)
            elif kind == "CMD-SHELL":
                container.health_cmd = " ".join(args)
            else:
                raise ConversionFailureError(f"invalid healthcheck test `{kind}`")
        elif test is not None:
            container.health_cmd = test

        container.health_interval = _duration(healthcheck.interval)
        container.health_timeout = _duration(healthcheck.timeout)
        container.health_retries = healthcheck.retries
        container.health_start_period = _duration(healthcheck.start_period)
        container.health_startup_interval = _duration(healthcheck.start_interval)

    def _map_security(self, container: quadlet.Container):
        service = self.service
        if service.privileged:
            self.podman_args.append("--privileged")
        for option in service.security_opt:
            if option in ("label=disable", "label:disable"):
                container.security_label_disable = True
            else:
                self.podman_args.append(f"--security-opt {option}")

    def _map_lifecycle(self, container: quadlet.Container):
        service = self.service
        if service.stop_grace_period is not None:
            try:
                seconds = parse_duration(service.stop_grace_period)
            except ValueError as e:
                raise ConversionFailureError("invalid `stop_grace_period`") from e
            container.stop_timeout = str(int(seconds))
        if service.pull_policy is not None:
            pull = PULL_POLICIES.get(service.pull_policy)
            if pull is None:
                raise ConversionFailureError(f"`pull_policy: {service.pull_policy}` is not supported")
            container.pull = pull

    def _map_limits(self, container: quadlet.Container):
        service = self.service
        for name, limit in service.ulimits.items():
            if isinstance(limit, dict):
                container.ulimit.append(f"{name}={limit.get('soft')}:{limit.get('hard')}")
            else:
                container.ulimit.append(f"{name}={limit}")
        if service.logging is not None:
            container.log_driver = service.logging.driver
            container.log_opt = [f"{key}={value}" for key, value in service.logging.options.items()]


def _duration(value) -> Optional[str]:
    # bare numbers are seconds in compose
    if isinstance(value, int):
        return f"{value}s"
    return value


def service_to_container(service: Service) -> quadlet.Container:
    """
    Maps a compose service onto a Quadlet container.

    :raises ConversionFailureError: If a field is unsupported or invalid.
    """
    return ServiceFieldMapper(service).map()


def network_to_quadlet(network: compose.Network) -> quadlet.Network:
    """
    Maps a compose network onto a Quadlet network.

    :raises ConversionFailureError: If an option has no Quadlet equivalent.
    """
    if network.attachable:
        raise ConversionFailureError("`attachable` is not supported")

    result = quadlet.Network(
        network_name=network.name,
        driver=network.driver,
        options={key: str(value) for key, value in network.driver_opts.items()},
        internal=True if network.internal else None,
        ipv6=True if network.enable_ipv6 else None,
        label=dict(network.labels),
    )
    if network.ipam is not None:
        if network.ipam.options:
            raise ConversionFailureError("`ipam.options` is not supported")
        result.ipam_driver = network.ipam.driver
        for config in network.ipam.config:
            if config.subnet:
                result.subnet.append(config.subnet)
            if config.gateway:
                result.gateway.append(config.gateway)
            if config.ip_range:
                result.ip_range.append(config.ip_range)
    return result


def volume_to_quadlet(volume: compose.Volume) -> quadlet.Volume:
    """
    Maps a compose volume onto a Quadlet volume.
    """
    return quadlet.Volume(
        volume_name=volume.name,
        driver=volume.driver,
        options={key: str(value) for key, value in volume.driver_opts.items()},
        label=dict(volume.labels),
    )
