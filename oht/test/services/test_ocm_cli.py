from __future__ import annotations

import json

import pytest

from oht.core.result import Err, Ok, Result
from oht.output.console import MockConsole
from oht.platform.process import ProcessError
from oht.services import ocm_cli as ocm_cli_mod
from oht.services.ocm_cli import OcmClient


def _err(returncode: int = 1) -> Err[ProcessError]:
    return Err(ProcessError(command=("ocm",), returncode=returncode, stdout="", stderr=""))


class Recorder:
    def __init__(self, *responses: Result[bytes, ProcessError]) -> None:
        self.responses = list(responses)
        self.calls: list[list[str]] = []

    def __call__(self, cmd: list[str]) -> Result[bytes, ProcessError]:
        self.calls.append(cmd)
        return self.responses.pop(0)


def test_get_resources_invokes_ocm() -> None:
    listing = {"items": [{"element": {"name": "helm-chart-x", "version": "1", "type": "helmChart"}}]}
    runner = Recorder(Ok(json.dumps(listing).encode()))
    console = MockConsole()
    client = OcmClient(console=console, binary="/opt/ocm", runner=runner)

    result = client.get_resources("./ctf")

    assert isinstance(result, Ok)
    assert [r.name for r in result.value.resources] == ["helm-chart-x"]
    assert runner.calls == [["/opt/ocm", "get", "resources", "-o", "json", "./ctf"]]
    assert console.find("running ocm binary with arguments")


def test_download_resource_writes_to_stdout() -> None:
    runner = Recorder(Ok(b"tarball"))
    client = OcmClient(console=MockConsole(), runner=runner)

    assert client.download_resource("./ctf", "helm-chart-x") == Ok(b"tarball")
    assert runner.calls == [["ocm", "download", "resource", "-O", "-", "./ctf", "helm-chart-x"]]


def test_failure_is_external_error() -> None:
    client = OcmClient(console=MockConsole(), runner=Recorder(_err(1)))

    result = client.download_resource("./ctf", "helm-chart-x")

    assert isinstance(result, Err)
    assert result.error.kind == "ocm_failed"
    assert result.error.message.startswith("could not download resource 'helm-chart-x': ")


def test_not_started_is_missing() -> None:
    client = OcmClient(console=MockConsole(), runner=Recorder(_err(-1)))

    result = client.exec("version")

    assert isinstance(result, Err)
    assert result.error.kind == "ocm_missing"


def test_ensure_available(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(ocm_cli_mod.shutil, "which", lambda name: None)
    result = OcmClient(console=MockConsole(), binary="ocm").ensure_available()
    assert isinstance(result, Err)
    assert result.error.kind == "ocm_missing"
    assert result.error.hint is not None

    monkeypatch.setattr(ocm_cli_mod.shutil, "which", lambda name: f"/usr/bin/{name}")
    assert OcmClient(console=MockConsole()).ensure_available() == Ok(None)
