from __future__ import annotations

import io
import json
import tarfile
from pathlib import Path

import yaml

from oht.core.config import UnbundleConfig
from oht.core.ocm import ResourceInfoSet, parse_resource_list
from oht.core.result import Err, Ok, Result
from oht.output.console import MockConsole
from oht.platform.process import ProcessError
from oht.services.ocm_cli import OcmClient
from oht.services.unbundle import UnbundleService

_EXPORTER = "quay.io/prometheuscommunity/postgres_exporter:0.16.0"
_RELATIONS = json.dumps(
    [
        {"target-path": "db_metrics.image.repository", "attribute": "repository", "image-resource-name": "image-postgres_exporter"},
        {"target-path": "db_metrics.image.tag", "attribute": "tag", "image-resource-name": "image-postgres_exporter"},
        {"target-path": "web.image", "attribute": "reference", "image-resource-name": "image-nginx"},
    ]
)
_GIT_LOCATION = '{"commit-id":"abc123","remote-url":"https://github.com/example/charts.git"}'


def _chart_tar() -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as archive:
        for name, content in {
            "Chart.yaml": b"apiVersion: v2\nname: mychart\nversion: 1.0.0\n",
            "templates/deployment.yaml": b"kind: Deployment\n",
        }.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            archive.addfile(info, io.BytesIO(content))
    return buf.getvalue()


def _chart_element(labels: list[dict[str, object]]) -> dict[str, object]:
    return {
        "name": "helm-chart-mychart",
        "version": "1.0.0",
        "type": "helmChart",
        "labels": labels,
        "access": {"type": "localBlob", "localReference": "sha256:abc"},
    }


def _image_element(name: str, ref: str, *, type_: str = "ociImage") -> dict[str, object]:
    return {
        "name": name,
        "version": "1",
        "type": type_,
        "access": {"type": "ociArtifact", "imageReference": ref},
    }


def _default_elements() -> list[dict[str, object]]:
    return [
        _chart_element(
            [
                {"name": "cloud.sap/git-location", "value": _GIT_LOCATION},
                {"name": "cloud.sap/image-relations", "value": _RELATIONS},
            ]
        ),
        _image_element("image-postgres_exporter", _EXPORTER),
        _image_element("image-nginx", "docker.io/library/nginx:1.25"),
    ]


class FakeOcm:
    def __init__(self, elements: list[dict[str, object]], payload: bytes | None = None) -> None:
        self.listing = json.dumps({"items": [{"element": e} for e in elements]}).encode()
        self.payload = payload if payload is not None else _chart_tar()
        self.calls: list[list[str]] = []

    def __call__(self, cmd: list[str]) -> Result[bytes, ProcessError]:
        self.calls.append(cmd[1:])
        match cmd[1:3]:
            case ["get", "resources"]:
                return Ok(self.listing)
            case ["download", "resource"]:
                return Ok(self.payload)
            case _:
                return Err(ProcessError(command=tuple(cmd), returncode=1, stdout="", stderr=""))


def _service(fake: FakeOcm, config: UnbundleConfig | None = None) -> UnbundleService:
    console = MockConsole()
    return UnbundleService(ocm=OcmClient(console=console, runner=fake), console=console, config=config)


def _resources(elements: list[dict[str, object]]) -> ResourceInfoSet:
    listing = json.dumps({"items": [{"element": e} for e in elements]}).encode()
    result = parse_resource_list(listing)
    assert isinstance(result, Ok)
    return result.value


class TestRun:
    def test_writes_chart_values_and_git_location(self, tmp_path: Path) -> None:
        fake = FakeOcm(_default_elements())

        result = _service(fake).run("./ctf", tmp_path)

        assert isinstance(result, Ok), result
        assert result.value.chart_path == tmp_path / "mychart"
        assert (tmp_path / "mychart" / "Chart.yaml").exists()
        assert (tmp_path / "mychart" / "templates" / "deployment.yaml").read_text() == "kind: Deployment\n"

        values = yaml.safe_load((tmp_path / "localized-values.yaml").read_text(encoding="utf-8"))
        assert values == {
            "db_metrics": {
                "image": {
                    "repository": "quay.io/prometheuscommunity/postgres_exporter",
                    "tag": "0.16.0",
                }
            },
            "web": {"image": "docker.io/library/nginx:1.25"},
        }
        assert (tmp_path / "git-location.json").read_text(encoding="utf-8") == _GIT_LOCATION
        assert fake.calls == [
            ["get", "resources", "-o", "json", "./ctf"],
            ["download", "resource", "-O", "-", "./ctf", "helm-chart-mychart"],
        ]

    def test_empty_relations_give_empty_values(self, tmp_path: Path) -> None:
        fake = FakeOcm([_chart_element([{"name": "cloud.sap/image-relations", "value": "[]"}])])

        result = _service(fake).run("./ctf", tmp_path)

        assert isinstance(result, Ok)
        assert result.value.git_location_path is None
        assert yaml.safe_load((tmp_path / "localized-values.yaml").read_text(encoding="utf-8")) == {}
        assert not (tmp_path / "git-location.json").exists()

    def test_custom_file_names(self, tmp_path: Path) -> None:
        config = UnbundleConfig(values_file="airgap.yaml", git_location_file="source.json")

        result = _service(FakeOcm(_default_elements()), config).run("./ctf", tmp_path)

        assert isinstance(result, Ok)
        assert (tmp_path / "airgap.yaml").exists()
        assert (tmp_path / "source.json").exists()

    def test_missing_relations_label_writes_nothing(self, tmp_path: Path) -> None:
        fake = FakeOcm([_chart_element([])])

        result = _service(fake).run("./ctf", tmp_path)

        assert isinstance(result, Err)
        assert "missing required label 'cloud.sap/image-relations'" in result.error.message
        assert list(tmp_path.iterdir()) == []
        assert len(fake.calls) == 1

    def test_no_chart_resource(self, tmp_path: Path) -> None:
        result = _service(FakeOcm([_image_element("image-nginx", "nginx")])).run("./ctf", tmp_path)

        assert isinstance(result, Err)
        assert result.error.message == "did not find any resource with type: 'helmChart'"

    def test_two_chart_resources(self, tmp_path: Path) -> None:
        chart = _chart_element([{"name": "cloud.sap/image-relations", "value": "[]"}])
        result = _service(FakeOcm([chart, chart])).run("./ctf", tmp_path)

        assert isinstance(result, Err)
        assert result.error.kind == "ambiguous"

    def test_refuses_non_empty_chart_dir(self, tmp_path: Path) -> None:
        (tmp_path / "mychart").mkdir()
        (tmp_path / "mychart" / "old.yaml").write_text("x", encoding="utf-8")
        fake = FakeOcm(_default_elements())

        result = _service(fake).run("./ctf", tmp_path)

        assert isinstance(result, Err)
        assert "already exists and is not empty" in result.error.message
        assert not (tmp_path / "localized-values.yaml").exists()
        assert len(fake.calls) == 1

    def test_refuses_file_in_place_of_chart_dir(self, tmp_path: Path) -> None:
        (tmp_path / "mychart").write_text("x", encoding="utf-8")
        fake = FakeOcm(_default_elements())

        result = _service(fake).run("./ctf", tmp_path)

        assert isinstance(result, Err)
        assert result.error.kind == "io"
        assert "already exists and is not a directory" in result.error.message
        assert (tmp_path / "mychart").read_text(encoding="utf-8") == "x"
        assert not (tmp_path / "localized-values.yaml").exists()
        assert len(fake.calls) == 1

    def test_reuses_empty_chart_dir(self, tmp_path: Path) -> None:
        (tmp_path / "mychart").mkdir()

        result = _service(FakeOcm(_default_elements())).run("./ctf", tmp_path)

        assert isinstance(result, Ok)
        assert (tmp_path / "mychart" / "Chart.yaml").exists()

    def test_bad_archive_leaves_no_chart_dir(self, tmp_path: Path) -> None:
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w") as archive:
            info = tarfile.TarInfo("../escape")
            archive.addfile(info, io.BytesIO(b""))

        result = _service(FakeOcm(_default_elements(), payload=buf.getvalue())).run("./ctf", tmp_path)

        assert isinstance(result, Err)
        assert result.error.message.startswith("could not unpack resource 'helm-chart-mychart': ")
        assert list(tmp_path.iterdir()) == []


class TestLocalizedValues:
    def test_unresolvable_resource_name(self) -> None:
        elements = _default_elements()[:2]
        chart_res = _resources(elements).resources[0]

        result = _service(FakeOcm(elements)).localized_values(chart_res, _resources(elements))

        assert isinstance(result, Err)
        assert "did not find any resource with name: 'image-nginx'" in result.error.message

    def test_resource_is_not_an_image(self) -> None:
        elements = _default_elements()
        elements[2] = _image_element("image-nginx", "docker.io/library/nginx:1.25", type_="file")
        resources = _resources(elements)

        result = _service(FakeOcm(elements)).localized_values(resources.resources[0], resources)

        assert isinstance(result, Err)
        assert "does not contain an OCI image reference" in result.error.message

    def test_label_must_be_string(self) -> None:
        elements = [_chart_element([{"name": "cloud.sap/image-relations", "value": [1, 2]}])]
        resources = _resources(elements)

        result = _service(FakeOcm(elements)).localized_values(resources.resources[0], resources)

        assert isinstance(result, Err)
        assert "expected string value" in result.error.message

    def test_attribute_missing_on_resolved_image(self) -> None:
        relations = json.dumps(
            [{"target-path": "image.digest", "attribute": "digest", "image-resource-name": "image-nginx"}]
        )
        elements = [
            _chart_element([{"name": "cloud.sap/image-relations", "value": relations}]),
            _image_element("image-nginx", "docker.io/library/nginx:1.25"),
        ]
        resources = _resources(elements)

        result = _service(FakeOcm(elements)).localized_values(resources.resources[0], resources)

        assert isinstance(result, Err)
        assert "could not find attribute 'digest'" in result.error.message
