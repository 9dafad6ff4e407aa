"""Helm chart metadata and packaging checks.

Only the fields of Chart.yaml and Chart.lock that this tool uses are read.
"""

from __future__ import annotations

import io
import tarfile
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Literal

import yaml

from .ocm import RESOURCE_TYPE_HELM_CHART, Label, LabelName, ResourceDeclaration
from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_list, get_raw_str

__all__ = [
    "ChartDependency",
    "ChartError",
    "HelmChart",
    "add_timestamp_to_version",
    "as_ocm_resource",
    "chart_dir_name",
    "parse_chart_yaml",
    "unpack_chart_tarball",
    "validate_dependencies",
]

CHART_RESOURCE_PREFIX = "helm-chart-"


@dataclass(frozen=True, slots=True)
class ChartError:
    kind: Literal["invalid_chart", "dependencies", "version", "unpack", "io"]
    message: str
    path: Path | None = None
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class ChartDependency:
    """A dependency entry from Chart.yaml or Chart.lock.

    In Chart.yaml, `version` may be a constraint like "^1.1".
    In Chart.lock, it is always a concrete version like "1.1.5".
    """

    name: str
    repository: str
    version: str


@dataclass(frozen=True, slots=True)
class HelmChart:
    chart_path: Path
    api_version: str
    name: str
    version: str
    dependencies: tuple[ChartDependency, ...] = field(default_factory=tuple)


def _read_yaml_table(path: Path) -> Result[StrDict, ChartError]:
    try:
        data: object = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Err(ChartError(kind="io", message=f"file not found: {path}", path=path))
    except OSError as e:
        return Err(ChartError(kind="io", message=f"cannot read {path}: {e}", path=path))
    except yaml.YAMLError as e:
        return Err(ChartError(kind="invalid_chart", message=f"while parsing {path}: {e}", path=path))

    table = as_str_dict(data if data is not None else {})
    if table is None:
        return Err(
            ChartError(kind="invalid_chart", message=f"while parsing {path}: not a YAML mapping", path=path)
        )
    return Ok(table)


def _parse_dependencies(table: StrDict) -> tuple[ChartDependency, ...]:
    deps: list[ChartDependency] = []
    for item in get_list(table, "dependencies") or []:
        entry = as_str_dict(item)
        if entry is None:
            continue
        deps.append(
            ChartDependency(
                name=get_raw_str(entry, "name"),
                repository=get_raw_str(entry, "repository"),
                version=str(entry.get("version", "")),
            )
        )
    return tuple(deps)


def parse_chart_yaml(chart_path: Path) -> Result[HelmChart, ChartError]:
    """Parse the Chart.yaml file below the given chart directory."""
    result = _read_yaml_table(chart_path / "Chart.yaml")
    if isinstance(result, Err):
        return result
    table = result.value
    return Ok(
        HelmChart(
            chart_path=chart_path,
            api_version=get_raw_str(table, "apiVersion"),
            name=get_raw_str(table, "name"),
            # unquoted versions like `version: 1.0` come back as float
            version=str(table.get("version", "")),
            dependencies=_parse_dependencies(table),
        )
    )


def add_timestamp_to_version(chart: HelmChart, now: datetime) -> Result[HelmChart, ChartError]:
    """Append a `+bundle.YYYYMMDD-HHMMSS` build identifier to the chart version.

    Only the line setting the version is edited, so that comments and custom
    fields in Chart.yaml survive.
    """
    if not chart.version:
        return Err(
            ChartError(
                kind="invalid_chart",
                message=f"{chart.chart_path / 'Chart.yaml'} does not declare a version",
                path=chart.chart_path / "Chart.yaml",
            )
        )
    if "+" in chart.version:
        return Err(
            ChartError(
                kind="version",
                message=(
                    f"Chart.yaml already has a build identifier (version = {chart.version!r}), "
                    "cannot add another one"
                ),
            )
        )

    old_version = chart.version
    new_version = f"{old_version}+bundle.{now.strftime('%Y%m%d-%H%M%S')}"
    chart_yaml_path = chart.chart_path / "Chart.yaml"
    try:
        content = chart_yaml_path.read_text(encoding="utf-8")
    except OSError as e:
        return Err(ChartError(kind="io", message=f"cannot read {chart_yaml_path}: {e}", path=chart_yaml_path))

    lines = content.split("\n")
    edited = False
    for idx, line in enumerate(lines):
        if not line.strip().startswith("version"):
            continue
        new_line = line.replace(old_version, new_version)
        if new_line != line:
            lines[idx] = new_line
            edited = True

    if not edited:
        return Err(
            ChartError(
                kind="version",
                message=f"tried to edit Chart.yaml, but could not find a line that looks like `version: {old_version}`",
                path=chart_yaml_path,
            )
        )

    try:
        chart_yaml_path.write_text("\n".join(lines), encoding="utf-8")
    except OSError as e:
        return Err(ChartError(kind="io", message=f"cannot write {chart_yaml_path}: {e}", path=chart_yaml_path))
    return Ok(replace(chart, version=new_version))


def as_ocm_resource(chart: HelmChart, git_location_json: str | None) -> ResourceDeclaration:
    """Return the resource declaration for this chart.

    If the chart lives in a Git checkout, the serialized GitLocation is
    attached as the `cloud.sap/git-location` label.
    """
    decl = ResourceDeclaration(
        name=CHART_RESOURCE_PREFIX + chart.name,
        type=RESOURCE_TYPE_HELM_CHART,
        version=chart.version,
        input={"type": "dir", "path": str(chart.chart_path)},
    )
    if git_location_json is not None:
        decl = decl.with_label(Label(name=LabelName.GIT_LOCATION.value, value=git_location_json))
    return decl


def chart_dir_name(resource_name: str) -> str:
    """Directory name to unpack a chart resource into."""
    return resource_name.removeprefix(CHART_RESOURCE_PREFIX)


def _validate_dependency_coherence(
    declared: tuple[ChartDependency, ...],
    computed: tuple[ChartDependency, ...],
) -> str | None:
    declared_by_name = {dep.name: dep for dep in declared}
    computed_by_name = {dep.name: dep for dep in computed}

    for name, declared_dep in declared_by_name.items():
        computed_dep = computed_by_name.pop(name, None)
        if computed_dep is None:
            return f"Chart.yaml declares a dependency on {name!r}, but Chart.lock does not have this dependency"
        if computed_dep.repository != declared_dep.repository:
            return (
                f"Chart.yaml declares dependency {name!r} as coming from {declared_dep.repository}, "
                f"but Chart.lock has it coming from {computed_dep.repository}"
            )
        # TODO: check that computed_dep.version satisfies the constraint in declared_dep.version

    for name in computed_by_name:
        return f"Chart.lock declares a dependency on {name!r}, but Chart.yaml does not have this dependency"
    return None


def validate_dependencies(chart: HelmChart) -> Result[None, ChartError]:
    """Verify that `helm dep build` has been run.

    Otherwise the bundle might not include all subcharts.
    """
    match chart.api_version:
        case "v1":
            return Err(
                ChartError(
                    kind="dependencies",
                    message=f"cannot validate chart dependencies for {chart.chart_path} with apiVersion: v1",
                    path=chart.chart_path,
                    hint="please upgrade to v2; see <https://helm.sh/docs/topics/charts/#the-apiversion-field>",
                )
            )
        case "v2":
            pass
        case other:
            return Err(
                ChartError(
                    kind="dependencies",
                    message=(
                        f"cannot validate chart dependencies for {chart.chart_path} "
                        f"with apiVersion: {other} (this tool only supports v2)"
                    ),
                    path=chart.chart_path,
                )
            )

    expected_files: set[str] = set()
    if chart.dependencies:
        lock = _read_yaml_table(chart.chart_path / "Chart.lock")
        if isinstance(lock, Err):
            return lock
        locked = _parse_dependencies(lock.value)
        problem = _validate_dependency_coherence(chart.dependencies, locked)
        if problem is not None:
            return Err(
                ChartError(
                    kind="dependencies",
                    message=f"Chart.yaml and Chart.lock in {chart.chart_path} do not agree: {problem}",
                    path=chart.chart_path,
                    hint="run `helm dep update`",
                )
            )
        expected_files = {f"{dep.name}-{dep.version}.tgz" for dep in locked}

    charts_dir = chart.chart_path / "charts"
    try:
        entries = sorted(charts_dir.iterdir()) if charts_dir.exists() else []
    except OSError as e:
        return Err(ChartError(kind="io", message=f"cannot list {charts_dir}: {e}", path=charts_dir))

    for entry in entries:
        rel_path = Path("charts") / entry.name
        if entry.is_symlink() or not entry.is_file():
            return Err(
                ChartError(
                    kind="dependencies",
                    message=f"while validating subcharts of {chart.chart_path}: expected only regular files, but {rel_path} is not",
                    path=entry,
                )
            )
        if entry.name not in expected_files:
            return Err(
                ChartError(
                    kind="dependencies",
                    message=f"while validating subcharts of {chart.chart_path}: found unexpected file {rel_path}",
                    path=entry,
                )
            )
        expected_files.discard(entry.name)

    for file_name in sorted(expected_files):
        return Err(
            ChartError(
                kind="dependencies",
                message=(
                    f"while validating subcharts of {chart.chart_path}: "
                    f"did not find expected file {Path('charts') / file_name}"
                ),
                path=chart.chart_path,
                hint="run `helm dep build`",
            )
        )
    return Ok(None)


def _is_local(name: str) -> bool:
    path = PurePosixPath(name)
    if not name or path.is_absolute() or "\\" in name:
        return False
    return ".." not in path.parts


def unpack_chart_tarball(data: bytes, output_dir: Path) -> Result[None, ChartError]:
    """Unpack the contents of a chart tar archive into `output_dir`.

    File attributes (permissions, ownership, timestamps) are ignored, since
    Helm only looks at names and contents.
    """
    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:*") as archive:
            for member in archive:
                if not _is_local(member.name):
                    return Err(
                        ChartError(
                            kind="unpack",
                            message=(
                                f"refusing to extract file {member.name!r} which looks like "
                                "it wants to exploit a path-traversal vulnerability"
                            ),
                        )
                    )
                target = output_dir / member.name
                target.parent.mkdir(parents=True, exist_ok=True)
                if member.isdir():
                    target.mkdir(exist_ok=True)
                elif member.isfile():
                    source = archive.extractfile(member)
                    assert source is not None
                    with source, target.open("wb") as out:
                        out.write(source.read())
                else:
                    return Err(
                        ChartError(
                            kind="unpack",
                            message=f"do not know how to extract non-regular file {str(target)!r}",
                        )
                    )
    except tarfile.TarError as e:
        return Err(ChartError(kind="unpack", message=f"invalid chart archive: {e}"))
    except OSError as e:
        return Err(ChartError(kind="io", message=f"cannot unpack into {output_dir}: {e}", path=output_dir))
    return Ok(None)
