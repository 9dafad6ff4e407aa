"""Data contracts shared with the `ocm` CLI.

Two directions:

- Declarations, rendered into component-constructor.yaml for consumption by
  `ocm add componentversions`. Heavily abridged: only the fields we set.
- Resource info, as reported by `ocm get resources -o json`. Also abridged to
  the fields we read when unbundling.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Literal

import yaml

from .result import Err, Ok, Result
from .structured import StrDict, as_obj_list, as_str_dict, get_list, get_raw_str, get_table

__all__ = [
    "ACCESS_TYPE_OCI_ARTIFACT",
    "RESOURCE_TYPE_HELM_CHART",
    "RESOURCE_TYPE_OCI_IMAGE",
    "ComponentDeclaration",
    "Label",
    "LabelName",
    "OcmError",
    "ResourceAccess",
    "ResourceDeclaration",
    "ResourceInfo",
    "ResourceInfoSet",
    "parse_resource_list",
    "render_component_constructor",
]

RESOURCE_TYPE_HELM_CHART = "helmChart"
RESOURCE_TYPE_OCI_IMAGE = "ociImage"
ACCESS_TYPE_OCI_ARTIFACT = "ociArtifact"


class LabelName(StrEnum):
    """Resource labels written by `bundle` and read by `unbundle`."""

    GIT_LOCATION = "cloud.sap/git-location"
    IMAGE_RELATIONS = "cloud.sap/image-relations"


@dataclass(frozen=True, slots=True)
class OcmError:
    kind: Literal[
        "ocm_missing",
        "ocm_failed",
        "invalid_output",
        "not_found",
        "ambiguous",
        "invalid_resource",
    ]
    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class Label:
    """A resource label. OCM allows arbitrary YAML as the value."""

    name: str
    value: object

    def to_dict(self) -> StrDict:
        return {"name": self.name, "value": self.value}


@dataclass(frozen=True, slots=True)
class ResourceDeclaration:
    """The `components[].resources[]` section of a component-constructor.yaml."""

    name: str
    type: str
    version: str
    labels: tuple[Label, ...] = ()
    access: StrDict | None = None
    input: StrDict | None = None

    def with_label(self, label: Label) -> ResourceDeclaration:
        return replace(self, labels=(*self.labels, label))

    def to_dict(self) -> StrDict:
        out: StrDict = {"name": self.name, "type": self.type, "version": self.version}
        if self.labels:
            out["labels"] = [label.to_dict() for label in self.labels]
        if self.access:
            out["access"] = dict(self.access)
        if self.input:
            out["input"] = dict(self.input)
        return out


@dataclass(frozen=True, slots=True)
class ComponentDeclaration:
    """The `components[]` section of a component-constructor.yaml."""

    name: str
    version: str
    provider: StrDict
    resources: tuple[ResourceDeclaration, ...]

    def to_dict(self) -> StrDict:
        return {
            "name": self.name,
            "version": self.version,
            "provider": dict(self.provider),
            "resources": [res.to_dict() for res in self.resources],
        }


def render_component_constructor(components: Iterable[ComponentDeclaration]) -> str:
    """Render a complete component-constructor.yaml document."""
    doc = {"components": [c.to_dict() for c in components]}
    return yaml.safe_dump(doc, sort_keys=False, default_flow_style=False)


@dataclass(frozen=True, slots=True)
class ResourceAccess:
    type: str = ""  # e.g. "localBlob" or "ociArtifact"
    image_reference: str = ""  # only for type == "ociArtifact"
    media_type: str = ""  # only for type == "localBlob"
    local_reference: str = ""  # only for type == "localBlob"


@dataclass(frozen=True, slots=True)
class ResourceInfo:
    """An existing resource, as reported by `ocm get resources -o json`."""

    name: str
    version: str
    type: str  # e.g. "file" or "helmChart" or "ociImage"
    labels: tuple[Label, ...] = ()
    access: ResourceAccess = ResourceAccess()

    def label_value(self, name: str) -> object | None:
        """Return the value of the label with this name, or None if absent."""
        for label in self.labels:
            if label.name == name:
                return label.value
        return None

    @classmethod
    def from_dict(cls, data: StrDict) -> ResourceInfo:
        labels: list[Label] = []
        for item in get_list(data, "labels") or []:
            entry = as_str_dict(item)
            if entry is not None:
                labels.append(Label(name=get_raw_str(entry, "name"), value=entry.get("value")))

        access = get_table(data, "access") or {}
        return cls(
            name=get_raw_str(data, "name"),
            version=get_raw_str(data, "version"),
            type=get_raw_str(data, "type"),
            labels=tuple(labels),
            access=ResourceAccess(
                type=get_raw_str(access, "type"),
                image_reference=get_raw_str(access, "imageReference"),
                media_type=get_raw_str(access, "mediaType"),
                local_reference=get_raw_str(access, "localReference"),
            ),
        )


@dataclass(frozen=True, slots=True)
class ResourceInfoSet:
    """All resources of one component version."""

    resources: tuple[ResourceInfo, ...]

    def find_exactly_one_with(
        self,
        description: str,
        predicate: Callable[[ResourceInfo], bool],
    ) -> Result[ResourceInfo, OcmError]:
        """Return the only resource matching the predicate.

        `description` names the criterion in the error if there is not
        exactly one match, e.g. 'type: "helmChart"'.
        """
        matches = [res for res in self.resources if predicate(res)]
        match len(matches):
            case 0:
                return Err(
                    OcmError(kind="not_found", message=f"did not find any resource with {description}")
                )
            case 1:
                return Ok(matches[0])
            case n:
                return Err(
                    OcmError(
                        kind="ambiguous",
                        message=f"expected 1 resource with {description}, but found {n} matching resources",
                    )
                )


def parse_resource_list(stdout: bytes) -> Result[ResourceInfoSet, OcmError]:
    """Parse the output of `ocm get resources -o json`."""
    try:
        data_obj: object = json.loads(stdout)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return Err(
            OcmError(
                kind="invalid_output",
                message=f"could not unpack output from `ocm get resources -o json`: {e}",
            )
        )

    data = as_str_dict(data_obj)
    items = as_obj_list(data.get("items")) if data is not None else None
    if items is None:
        return Err(
            OcmError(
                kind="invalid_output",
                message="could not unpack output from `ocm get resources -o json`: missing items list",
            )
        )

    resources: list[ResourceInfo] = []
    for item in items:
        element = get_table(as_str_dict(item) or {}, "element")
        if element is None:
            return Err(
                OcmError(
                    kind="invalid_output",
                    message="could not unpack output from `ocm get resources -o json`: item without element",
                )
            )
        resources.append(ResourceInfo.from_dict(element))
    return Ok(ResourceInfoSet(tuple(resources)))
