from __future__ import annotations

import io
import json
import sys
import tarfile
from pathlib import Path

import pytest
import typer

from oht.cli.context import CLIContext
from oht.core.config import Config, OcmConfig
from oht.core.errors import ErrorCode
from oht.core.result import Err, Ok, Result
from oht.output.console import MockConsole
from oht.platform.process import ProcessError
from oht.services.ocm_cli import OcmClient


def _chart_tar() -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as archive:
        content = b"apiVersion: v2\nname: mychart\nversion: 1.0.0\n"
        info = tarfile.TarInfo("Chart.yaml")
        info.size = len(content)
        archive.addfile(info, io.BytesIO(content))
    return buf.getvalue()


def _fake_ocm(listing_ok: bool = True):
    listing = {
        "items": [
            {
                "element": {
                    "name": "helm-chart-mychart",
                    "version": "1.0.0",
                    "type": "helmChart",
                    "labels": [{"name": "cloud.sap/image-relations", "value": "[]"}],
                }
            }
        ]
    }

    def runner(cmd: list[str]) -> Result[bytes, ProcessError]:
        if cmd[1] == "get" and listing_ok:
            return Ok(json.dumps(listing).encode())
        if cmd[1] == "download":
            return Ok(_chart_tar())
        return Err(ProcessError(tuple(cmd), 1, "", ""))

    return runner


def _patch(monkeypatch: pytest.MonkeyPatch, console: MockConsole, *, listing_ok: bool = True) -> None:
    import oht.cli.commands.unbundle as unbundle_cmd

    ctx = CLIContext(config=Config(ocm=OcmConfig(binary=sys.executable)), console=console)
    monkeypatch.setattr(unbundle_cmd, "build_context", lambda: ctx)
    monkeypatch.setattr(
        unbundle_cmd,
        "OcmClient",
        lambda console, binary: OcmClient(console=console, binary=binary, runner=_fake_ocm(listing_ok)),
    )


def test_unbundle_reports_written_files(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import oht.cli.commands.unbundle as unbundle_cmd

    console = MockConsole()
    _patch(monkeypatch, console)
    target = tmp_path / "out"

    unbundle_cmd.unbundle(component_version="./ctf", target_dir=target)

    assert (target / "mychart" / "Chart.yaml").exists()
    assert (target / "localized-values.yaml").exists()
    assert console.find(str(target / "mychart"))
    assert console.find(str(target / "localized-values.yaml"))
    assert not console.has_error()


def test_unbundle_ocm_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import oht.cli.commands.unbundle as unbundle_cmd

    console = MockConsole()
    _patch(monkeypatch, console, listing_ok=False)

    with pytest.raises(typer.Exit) as exc:
        unbundle_cmd.unbundle(component_version="./ctf", target_dir=tmp_path)

    assert exc.value.exit_code == int(ErrorCode.EXTERNAL_ERROR)
    assert console.has_error()


def test_unbundle_requires_component_version(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import oht.cli.commands.unbundle as unbundle_cmd

    console = MockConsole()
    _patch(monkeypatch, console)

    with pytest.raises(typer.Exit) as exc:
        unbundle_cmd.unbundle(component_version="", target_dir=tmp_path)

    assert exc.value.exit_code == int(ErrorCode.USER_ERROR)
    assert console.find("missing component version")


def test_unbundle_ocm_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import oht.cli.commands.unbundle as unbundle_cmd

    console = MockConsole()
    ctx = CLIContext(config=Config(ocm=OcmConfig(binary="nonexistent-ocm-12345")), console=console)
    monkeypatch.setattr(unbundle_cmd, "build_context", lambda: ctx)

    with pytest.raises(typer.Exit) as exc:
        unbundle_cmd.unbundle(component_version="./ctf", target_dir=tmp_path)

    assert exc.value.exit_code == int(ErrorCode.ENV_ERROR)
    assert console.find("hint: Install the OCM CLI")
