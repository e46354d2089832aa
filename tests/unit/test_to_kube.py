"""
Unit tests for converting compose documents into Kubernetes YAML.
"""
import pytest
import yaml

from c2q.CONVERTERS.convert import convert_compose
from c2q.CONVERTERS.to_kube import KubeConverter, PodSpecBuilder, volume_to_persistent_volume_claim
from c2q.MODELS.compose_document import ComposeDocument, Volume
from c2q.MODELS.kubernetes import KubeFile
from c2q.MODELS.quadlet import Kube, OutputFile
from c2q.MODELS.service_definition import Service
from c2q.RENDERERS.kube_renderer import render_kube_file
from c2q.exceptions import (
    ConversionFailureError,
    MissingRequiredFieldError,
    UnsupportedFeatureError,
    error_chain,
)


def parse(data):
    return ComposeDocument.model_validate(data)


@pytest.fixture
def app():
    return {
        "name": "app",
        "services": {
            "web": {
                "image": "nginx",
                "ports": ["8080:80"],
                "environment": {"MODE": "prod"},
                "volumes": ["data:/data", "cache:/cache"],
                "restart": "always",
            },
        },
        "volumes": {"data": {"driver_opts": {"size": "5Gi"}}, "cache": None},
    }


class TestKubeConverter:

    def test_convert(self, app):
        kube_file = KubeConverter(parse(app)).convert()

        assert kube_file.name == "app"
        assert kube_file.persistent_volume_claims == [{
            "apiVersion": "v1",
            "kind": "PersistentVolumeClaim",
            "metadata": {"name": "data"},
            "spec": {
                "accessModes": ["ReadWriteOnce"],
                "resources": {"requests": {"storage": "5Gi"}},
            },
        }]
        assert kube_file.pod == {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {"name": "app"},
            "spec": {
                "containers": [{
                    "name": "web",
                    "image": "nginx",
                    "env": [{"name": "MODE", "value": "prod"}],
                    "ports": [{"containerPort": 80, "hostPort": 8080}],
                    "volumeMounts": [
                        {"name": "data", "mountPath": "/data"},
                        {"name": "cache", "mountPath": "/cache"},
                    ],
                }],
                "volumes": [
                    {"name": "data", "persistentVolumeClaim": {"claimName": "data"}},
                    {"name": "cache", "emptyDir": {}},
                ],
                "restartPolicy": "Always",
            },
        }

    def test_networks_rejected_before_services(self, app):
        app["networks"] = {"front": None}
        app["services"]["web"]["build"] = "."
        with pytest.raises(UnsupportedFeatureError, match="`networks` is not supported"):
            KubeConverter(parse(app)).convert()

    def test_name_required(self, app):
        del app["name"]
        with pytest.raises(MissingRequiredFieldError):
            KubeConverter(parse(app)).convert()

    def test_service_failure(self, app):
        app["services"]["web"]["network_mode"] = "host"
        with pytest.raises(ConversionFailureError) as exc:
            KubeConverter(parse(app)).convert()
        assert error_chain(exc.value) == [
            "error adding service `web` to Kubernetes pod spec",
            "`network_mode` is not supported",
        ]

    def test_volume_names_made_valid(self, app):
        app["services"]["web"]["volumes"] = ["db_data:/data", "Cache.V1:/cache"]
        app["volumes"] = {"db_data": {"driver_opts": {"size": "5Gi"}}, "Cache.V1": None}

        kube_file = KubeConverter(parse(app)).convert()

        assert kube_file.persistent_volume_claims[0]["metadata"]["name"] == "db-data"
        assert kube_file.pod["spec"]["volumes"] == [
            {"name": "db-data", "persistentVolumeClaim": {"claimName": "db-data"}},
            {"name": "cache-v1", "emptyDir": {}},
        ]
        assert [mount["name"] for mount in kube_file.pod["spec"]["containers"][0]["volumeMounts"]] == [
            "db-data", "cache-v1",
        ]

    def test_invalid_volume_name(self, app):
        app["services"]["web"]["volumes"] = ["data@home:/data"]
        with pytest.raises(ConversionFailureError) as exc:
            KubeConverter(parse(app)).convert()
        assert error_chain(exc.value)[-1] == "volume name `data@home` is not a valid Kubernetes name"

    def test_services_converted_before_claims(self, app):
        app["volumes"]["data"]["driver_opts"]["mystery"] = "1"
        app["services"]["web"]["build"] = "."
        with pytest.raises(ConversionFailureError) as exc:
            KubeConverter(parse(app)).convert()
        assert error_chain(exc.value) == [
            "error adding service `web` to Kubernetes pod spec",
            "`build` is not supported",
        ]

    def test_claim_failure(self, app):
        app["volumes"]["data"]["driver_opts"]["mystery"] = "1"
        with pytest.raises(ConversionFailureError) as exc:
            KubeConverter(parse(app)).convert()
        assert error_chain(exc.value) == [
            "error converting volume `data` to a persistent volume claim",
            "volume driver option `mystery` is not supported",
        ]

    def test_shared_hostname(self, app):
        app["services"]["web"]["hostname"] = "app"
        app["services"]["worker"] = {"image": "worker", "hostname": "app"}
        assert KubeConverter(parse(app)).convert().pod["spec"]["hostname"] == "app"

    def test_conflicting_hostname(self, app):
        app["services"]["web"]["hostname"] = "web"
        app["services"]["worker"] = {"image": "worker", "hostname": "worker"}
        with pytest.raises(ConversionFailureError) as exc:
            KubeConverter(parse(app)).convert()
        assert error_chain(exc.value) == [
            "error adding service `worker` to Kubernetes pod spec",
            "hostname `worker` conflicts with `web` of another service",
        ]

    def test_conflicting_restart_policy(self, app):
        app["services"]["worker"] = {"image": "worker", "restart": "on-failure"}
        with pytest.raises(ConversionFailureError) as exc:
            KubeConverter(parse(app)).convert()
        assert "conflicts with `Always`" in error_chain(exc.value)[-1]


class TestPodSpecBuilder:

    def test_commands_and_security(self):
        builder = PodSpecBuilder()
        builder.add_service("job", Service.model_validate({
            "image": "busybox",
            "entrypoint": "/bin/sh -c",
            "command": ["echo", "done"],
            "user": "1000:1000",
            "cap_drop": ["ALL"],
            "read_only": True,
            "healthcheck": {"test": ["CMD-SHELL", "test -f /ready"], "interval": "30s", "retries": 2},
        }))
        container = builder.spec["containers"][0]
        assert container["command"] == ["/bin/sh", "-c"]
        assert container["args"] == ["echo", "done"]
        assert container["securityContext"] == {
            "runAsUser": 1000,
            "runAsGroup": 1000,
            "capabilities": {"drop": ["ALL"]},
            "readOnlyRootFilesystem": True,
        }
        assert container["livenessProbe"] == {
            "exec": {"command": ["/bin/sh", "-c", "test -f /ready"]},
            "periodSeconds": 30,
            "failureThreshold": 2,
        }

    def test_bind_and_tmpfs_mounts(self):
        builder = PodSpecBuilder()
        builder.add_service("web", Service.model_validate({
            "image": "nginx",
            "volumes": ["./html:/usr/share/nginx/html:ro"],
            "tmpfs": ["/tmp"],
        }))
        assert builder.spec["volumes"] == [
            {"name": "web-bind-0", "hostPath": {"path": "./html"}},
            {"name": "web-tmpfs-1", "emptyDir": {"medium": "Memory"}},
        ]
        assert builder.spec["containers"][0]["volumeMounts"][0]["readOnly"] is True

    def test_duplicate_container_name(self):
        builder = PodSpecBuilder()
        builder.add_service("a", Service(image="nginx", container_name="web"))
        with pytest.raises(ConversionFailureError, match="duplicate container name `web`"):
            builder.add_service("b", Service(image="nginx", container_name="web"))

    def test_environment_without_value(self):
        with pytest.raises(ConversionFailureError, match="environment variable `TOKEN` has no value"):
            PodSpecBuilder().add_service("web", Service(image="nginx", environment=["TOKEN"]))


def test_persistent_volume_claim_annotations():
    claim = volume_to_persistent_volume_claim(
        "data", Volume(name="pgdata", driver="local", driver_opts={"type": "nfs", "o": "addr=10.0.0.1"})
    )
    assert claim["metadata"] == {
        "name": "pgdata",
        "annotations": {
            "volume.podman.io/driver": "local",
            "volume.podman.io/type": "nfs",
            "volume.podman.io/options": "addr=10.0.0.1",
        },
    }
    assert claim["spec"]["resources"]["requests"]["storage"] == "1Gi"


def test_persistent_volume_claim_unknown_option():
    with pytest.raises(ConversionFailureError):
        volume_to_persistent_volume_claim("data", Volume(driver_opts={"mystery": "1"}))


def test_convert_compose_kube(app):
    artifacts = convert_compose(parse(app), kube=True)

    assert len(artifacts) == 2
    quadlet_file, kube_file = artifacts
    assert isinstance(quadlet_file, OutputFile)
    assert quadlet_file.file_name == "app.kube"
    assert quadlet_file.resource == Kube(yaml="app-kube.yaml")
    assert isinstance(kube_file, KubeFile)
    assert kube_file.file_name == "app-kube.yaml"


def test_convert_compose_kube_failure(app):
    app["configs"] = {"site": {"file": "./site.conf"}}
    with pytest.raises(UnsupportedFeatureError) as exc:
        convert_compose(parse(app), kube=True)
    assert error_chain(exc.value) == [
        "error converting compose file into Kubernetes YAML",
        "`configs` is not supported",
    ]


def test_convert_compose_exclusive_modes(app):
    with pytest.raises(ValueError):
        convert_compose(parse(app), pod=True, kube=True)


def test_render_kube_file(app):
    text = render_kube_file(KubeConverter(parse(app)).convert())
    documents = list(yaml.safe_load_all(text))
    assert [document["kind"] for document in documents] == ["PersistentVolumeClaim", "Pod"]
