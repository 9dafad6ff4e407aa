"""Unpack a Helm chart from an OCM component version created by `oht bundle`.

Writes into the target directory:

- the chart, unpacked into a directory named after the chart,
- localized-values.yaml, which overrides the declared value paths to refer
  to the bundled images (pass it to Helm with --values),
- git-location.json, if the chart resource carries a git-location label.

Everything that can fail without touching the filesystem (listing resources,
reading the relations label, resolving images, building the values) happens
before anything is written, and each file is written atomically.
"""

from __future__ import annotations

import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

import yaml

from oht.core.config import UnbundleConfig
from oht.core.helmchart import ChartError, chart_dir_name, unpack_chart_tarball
from oht.core.ocm import (
    ACCESS_TYPE_OCI_ARTIFACT,
    RESOURCE_TYPE_HELM_CHART,
    RESOURCE_TYPE_OCI_IMAGE,
    LabelName,
    OcmError,
    ResourceInfo,
    ResourceInfoSet,
)
from oht.core.reference import parse_normalized_named
from oht.core.relation import ImageRelation, RelationError
from oht.core.relations import build_localized_values, load_relations
from oht.core.result import Err, Ok, Result
from oht.output.console import ConsoleProtocol
from oht.platform.files import atomic_write_text
from oht.services.ocm_cli import OcmClient

__all__ = ["UnbundleError", "UnbundleResult", "UnbundleService"]

type UnbundleError = OcmError | ChartError | RelationError


@dataclass(frozen=True, slots=True)
class UnbundleResult:
    chart_path: Path
    values_path: Path
    git_location_path: Path | None = None


def _read_relations(chart_res: ResourceInfo) -> Result[tuple[ImageRelation, ...], RelationError]:
    label = LabelName.IMAGE_RELATIONS.value
    value = chart_res.label_value(label)
    if value is None:
        return Err(
            RelationError(
                kind="serialization",
                message=f"could not unpack resource {chart_res.name!r}: missing required label {label!r}",
            )
        )
    if not isinstance(value, str):
        return Err(
            RelationError(
                kind="serialization",
                message=(
                    f"could not read label {label!r} on resource {chart_res.name!r}: "
                    f"expected string value, but got {value!r}"
                ),
            )
        )
    return load_relations(value).map_err(
        lambda e: e.with_context(f"could not read label {label!r} on resource {chart_res.name!r}")
    )


def _resolve_relation(
    rel: ImageRelation, resources: ResourceInfoSet
) -> Result[ImageRelation, UnbundleError]:
    """Look up the image reference of `rel` in the resource named by it."""
    res_name = rel.resource_name
    found = resources.find_exactly_one_with(f"name: {res_name!r}", lambda r: r.name == res_name)
    if isinstance(found, Err):
        return Err(
            RelationError(
                kind="resolution",
                message=f"while resolving image relations: {found.error.message}",
            )
        )
    res = found.value

    if (
        res.type != RESOURCE_TYPE_OCI_IMAGE
        or res.access.type != ACCESS_TYPE_OCI_ARTIFACT
        or not res.access.image_reference
    ):
        return Err(
            RelationError(
                kind="resolution",
                message=(
                    f"while resolving image relations: resource {res.name!r} "
                    "does not contain an OCI image reference"
                ),
            )
        )

    match parse_normalized_named(res.access.image_reference):
        case Err(error):
            return Err(
                RelationError(
                    kind="reference",
                    message=f"could not parse image reference in resource {res.name!r}: {error}",
                )
            )
        case Ok(ref):
            return Ok(rel.with_reference(ref))


def _check_chart_dir(res_name: str, chart_path: Path) -> Result[None, ChartError]:
    """The chart may only be unpacked into a missing or empty directory."""
    try:
        if not chart_path.exists():
            return Ok(None)
        if not chart_path.is_dir():
            reason = "already exists and is not a directory"
        elif any(chart_path.iterdir()):
            reason = "already exists and is not empty"
        else:
            return Ok(None)
    except OSError as e:
        reason = f"cannot be inspected: {e}"
    return Err(
        ChartError(
            kind="io",
            message=f"cannot unpack resource {res_name!r}: {chart_path} {reason}",
            path=chart_path,
        )
    )


class UnbundleService:
    def __init__(
        self,
        *,
        ocm: OcmClient,
        console: ConsoleProtocol,
        config: UnbundleConfig | None = None,
    ) -> None:
        self._ocm = ocm
        self._console = console
        self._config = config or UnbundleConfig()

    def localized_values(
        self, chart_res: ResourceInfo, resources: ResourceInfoSet
    ) -> Result[dict[str, object], UnbundleError]:
        """Build the contents of localized-values.yaml for this chart resource."""
        loaded = _read_relations(chart_res)
        if isinstance(loaded, Err):
            return loaded

        resolved: list[ImageRelation] = []
        for rel in loaded.value:
            match _resolve_relation(rel, resources):
                case Err(error):
                    return Err(error)
                case Ok(resolved_rel):
                    resolved.append(resolved_rel)

        return build_localized_values(resolved).map_err(
            lambda e: e.with_context(f"could not build {self._config.values_file}")
        )

    def run(self, component_version_ref: str, output_dir: Path) -> Result[UnbundleResult, UnbundleError]:
        listed = self._ocm.get_resources(component_version_ref)
        if isinstance(listed, Err):
            return listed
        resources = listed.value

        found = resources.find_exactly_one_with(
            f"type: {RESOURCE_TYPE_HELM_CHART!r}", lambda r: r.type == RESOURCE_TYPE_HELM_CHART
        )
        if isinstance(found, Err):
            return found
        chart_res = found.value

        values = self.localized_values(chart_res, resources)
        if isinstance(values, Err):
            return values
        git_location = chart_res.label_value(LabelName.GIT_LOCATION.value)

        chart_path = output_dir / chart_dir_name(chart_res.name)
        usable = _check_chart_dir(chart_res.name, chart_path)
        if isinstance(usable, Err):
            return usable

        payload = self._ocm.download_resource(component_version_ref, chart_res.name)
        if isinstance(payload, Err):
            return payload

        unpacked = self._unpack(payload.value, chart_path)
        if isinstance(unpacked, Err):
            return unpacked.map_err(
                lambda e: ChartError(
                    kind=e.kind,
                    message=f"could not unpack resource {chart_res.name!r}: {e.message}",
                    path=e.path,
                )
            )
        self._console.debug(f"unpacked {chart_res.name!r} into {chart_path}")

        values_path = output_dir / self._config.values_file
        git_location_path: Path | None = None
        try:
            atomic_write_text(
                values_path,
                yaml.safe_dump(values.value, sort_keys=True, default_flow_style=False),
            )
            # written for consumption by concourse-release-resource
            if isinstance(git_location, str):
                git_location_path = output_dir / self._config.git_location_file
                atomic_write_text(git_location_path, git_location)
        except OSError as e:
            return Err(ChartError(kind="io", message=f"cannot write into {output_dir}: {e}", path=output_dir))

        return Ok(
            UnbundleResult(
                chart_path=chart_path,
                values_path=values_path,
                git_location_path=git_location_path,
            )
        )

    def _unpack(self, payload: bytes, chart_path: Path) -> Result[None, ChartError]:
        """Unpack into a scratch directory first, then move it into place."""
        try:
            chart_path.parent.mkdir(parents=True, exist_ok=True)
            scratch = Path(tempfile.mkdtemp(prefix=f".{chart_path.name}.", dir=chart_path.parent))
            scratch.chmod(0o755)
        except OSError as e:
            return Err(ChartError(kind="io", message=str(e), path=chart_path.parent))

        try:
            result = unpack_chart_tarball(payload, scratch)
            if isinstance(result, Err):
                return result
            if chart_path.exists():
                chart_path.rmdir()
            scratch.replace(chart_path)
            return Ok(None)
        except OSError as e:
            return Err(ChartError(kind="io", message=str(e), path=chart_path))
        finally:
            if scratch.exists():
                shutil.rmtree(scratch, ignore_errors=True)
