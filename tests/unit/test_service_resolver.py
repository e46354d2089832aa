"""
Unit tests for resolving a single service into a container file.
"""
import pytest
from c2q.MODELS.quadlet import Container, NamedVolume, ServiceRestart, Unit
from c2q.MODELS.service_definition import Service
from c2q.RESOLVERS.service_resolver import ServiceResolver, resolve_service
from c2q.RESOLVERS.volume_linker import VolumeOptionsIndex
from c2q.exceptions import ConflictingDependencyError, ConversionFailureError, error_chain


def resolve(name, spec, index=None, unit=None):
    service = Service.model_validate(spec)
    return resolve_service(name, service, index or VolumeOptionsIndex({}), unit)


class TestResolveService:
    """Tests for resolve_service."""

    def test_basic_container(self):
        file = resolve("web", {"image": "nginx:latest", "ports": ["8080:80"]})
        assert file.name == "web"
        assert file.file_name == "web.container"
        assert isinstance(file.resource, Container)
        assert file.resource.image == "nginx:latest"
        assert file.resource.publish_port == ["8080:80"]
        assert file.unit is None
        assert file.service is None

    def test_dependencies_recorded(self):
        file = resolve("db", {"image": "postgres", "depends_on": ["web"]})
        assert list(file.unit.dependencies) == ["web"]

    def test_dependencies_added_to_template(self):
        template = Unit(description="app")
        file = resolve("db", {"image": "postgres", "depends_on": ["web"]}, unit=template)
        assert file.unit is template
        assert file.unit.description == "app"
        assert "web" in file.unit.dependencies

    @pytest.mark.parametrize("restart,expected", [
        ("no", ServiceRestart.NO),
        ("always", ServiceRestart.ALWAYS),
        ("unless-stopped", ServiceRestart.ALWAYS),
        ("on-failure:3", ServiceRestart.ON_FAILURE),
    ])
    def test_restart(self, restart, expected):
        file = resolve("web", {"image": "nginx", "restart": restart})
        assert file.service.restart == expected

    def test_runtime_becomes_global_argument(self):
        file = resolve("web", {"image": "nginx", "runtime": "crun"})
        assert file.globals.global_args == ["--runtime crun"]

    def test_volume_linked(self):
        index = VolumeOptionsIndex({"data": True})
        file = resolve("db", {"image": "postgres", "volumes": ["data:/var/lib/postgresql/data"]}, index)
        assert file.resource.volume[0].source == NamedVolume(name="data.volume")

    def test_unsupported_field(self):
        with pytest.raises(ConversionFailureError) as exc:
            resolve("app", {"image": "app", "build": "."})
        assert error_chain(exc.value) == [
            "error converting service `app` into a Quadlet container",
            "`build` is not supported",
        ]

    def test_duplicate_dependency(self):
        with pytest.raises(ConflictingDependencyError) as exc:
            resolve("db", {"image": "postgres", "depends_on": ["web", "web"]})
        assert "error adding dependency on `web` to service `db`" in str(exc.value)


class TestServiceResolver:
    """Tests for the extraction order of ServiceResolver."""

    def test_steps_in_order(self):
        resolver = ServiceResolver("web", Service(image="nginx", depends_on=["db"], runtime="crun"))
        assert resolver.take_dependencies() == ["db"]
        assert resolver.take_globals().global_args == ["--runtime crun"]
        assert resolver.take_restart() is None
        container = resolver.into_container()
        assert container.image == "nginx"

    def test_out_of_order(self):
        resolver = ServiceResolver("web", Service(image="nginx"))
        with pytest.raises(RuntimeError):
            resolver.take_globals()

    def test_container_before_extraction(self):
        resolver = ServiceResolver("web", Service(image="nginx"))
        resolver.take_dependencies()
        with pytest.raises(RuntimeError):
            resolver.into_container()

    def test_consumed_once(self):
        resolver = ServiceResolver("web", Service(image="nginx"))
        resolver.take_dependencies()
        resolver.take_globals()
        resolver.take_restart()
        resolver.into_container()
        with pytest.raises(RuntimeError):
            resolver.into_container()
