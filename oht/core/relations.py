"""Sets of image relations: batch parsing, resource naming, bundling, localizing.

Bundling direction:
    parse_image_relations -> with_resource_names -> as_ocm_resources
        (one ociImage resource per distinct image, plus the relations JSON
         that goes into the `cloud.sap/image-relations` label)

Unbundling direction:
    load_relations -> (references resolved by name from the resources)
        -> build_localized_values (contents of localized-values.yaml)

Relation sets are tuples in declaration order. Every derived output
(resource names, JSON, resources) depends only on that order, so bundling
the same declarations twice produces identical output.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping, Sequence

from .ocm import ACCESS_TYPE_OCI_ARTIFACT, RESOURCE_TYPE_OCI_IMAGE, ResourceDeclaration
from .overlay import Node, insert, to_plain
from .relation import (
    Attribute,
    CommandRunner,
    ImageRelation,
    RelationError,
    get_value,
    parse_image_relation,
)
from .result import Err, Ok, Result
from .structured import as_obj_list, as_str_dict, get_raw_str

__all__ = [
    "as_ocm_resources",
    "assign_resource_names",
    "build_localized_values",
    "dump_relations",
    "load_relations",
    "parse_image_relations",
    "with_resource_names",
]

_SEPARATOR_RX = re.compile(r",|\n")

_TARGET_PATH_KEY = "target-path"
_ATTRIBUTE_KEY = "attribute"
_RESOURCE_NAME_KEY = "image-resource-name"


def parse_image_relations(
    inputs: Iterable[str],
    *,
    environ: Mapping[str, str],
    run_command: CommandRunner,
) -> Result[tuple[ImageRelation, ...], RelationError]:
    """Parse the values of all --image-relation options.

    Each value may hold several declarations separated by commas or newlines.
    Empty entries (e.g. from a trailing comma) are skipped.
    """
    result: list[ImageRelation] = []
    for value in inputs:
        for segment in _SEPARATOR_RX.split(value):
            segment = segment.strip()
            if not segment:
                continue
            match parse_image_relation(segment, environ=environ, run_command=run_command):
                case Err(error):
                    return Err(error.with_context(f"while parsing --image-relation {segment!r}"))
                case Ok(rel):
                    result.append(rel)
    return Ok(tuple(result))


def _reference_key(rel: ImageRelation) -> Result[str, RelationError]:
    if rel.image_reference is None:
        return Err(
            RelationError(
                kind="naming",
                message=f"cannot name resource for .Values.{rel.target_path} without an image reference",
            )
        )
    return Ok(str(rel.image_reference))


def assign_resource_names(
    relations: Sequence[ImageRelation],
) -> Result[dict[str, str], RelationError]:
    """Choose a resource name for every distinct image reference.

    Returns a mapping from image reference (string form) to resource name such
    that the mapping is one-to-one. Names already set on relations are kept;
    other images get "image-<basename>", or "image-<basename>-1", "-2" etc.
    if that name is already taken by a different image. Images are visited in
    the order of `relations`.
    """
    name_for_ref: dict[str, str] = {}
    ref_for_name: dict[str, str] = {}

    for rel in relations:
        if not rel.resource_name:
            continue
        key = _reference_key(rel)
        if isinstance(key, Err):
            return key
        ref = key.value

        claimed_by = ref_for_name.get(rel.resource_name)
        if claimed_by is not None and claimed_by != ref:
            return Err(
                RelationError(
                    kind="naming",
                    message=(
                        f"resource name {rel.resource_name!r} is assigned to both "
                        f"{claimed_by!r} and {ref!r}"
                    ),
                )
            )
        named_as = name_for_ref.get(ref)
        if named_as is not None and named_as != rel.resource_name:
            return Err(
                RelationError(
                    kind="naming",
                    message=(
                        f"image {ref!r} is assigned to both resource names "
                        f"{named_as!r} and {rel.resource_name!r}"
                    ),
                )
            )
        name_for_ref[ref] = rel.resource_name
        ref_for_name[rel.resource_name] = ref

    for rel in relations:
        key = _reference_key(rel)
        if isinstance(key, Err):
            return key
        ref = key.value
        if ref in name_for_ref:
            continue

        assert rel.image_reference is not None
        base_name = f"image-{rel.image_reference.basename}"
        res_name = base_name
        counter = 0
        while res_name in ref_for_name:
            counter += 1
            res_name = f"{base_name}-{counter}"

        name_for_ref[ref] = res_name
        ref_for_name[res_name] = ref

    return Ok(name_for_ref)


def with_resource_names(
    relations: Sequence[ImageRelation],
) -> Result[tuple[ImageRelation, ...], RelationError]:
    """Return a copy of `relations` with every resource name filled in."""
    match assign_resource_names(relations):
        case Err(error):
            return Err(error)
        case Ok(names):
            return Ok(
                tuple(rel.with_resource_name(names[str(rel.image_reference)]) for rel in relations)
            )


def dump_relations(relations: Sequence[ImageRelation]) -> str:
    """Serialize relations for the `cloud.sap/image-relations` label.

    The image reference is not included; it is recovered from the resource
    named by `image-resource-name` when unbundling.
    """
    payload = [
        {
            _TARGET_PATH_KEY: rel.target_path,
            _ATTRIBUTE_KEY: str(rel.attribute),
            _RESOURCE_NAME_KEY: rel.resource_name,
        }
        for rel in relations
    ]
    return json.dumps(payload, separators=(",", ":"))


def load_relations(text: str) -> Result[tuple[ImageRelation, ...], RelationError]:
    """Parse the contents of a `cloud.sap/image-relations` label.

    The returned relations have no image reference yet.
    """
    try:
        data: object = json.loads(text)
    except json.JSONDecodeError as e:
        return Err(RelationError(kind="serialization", message=f"invalid JSON: {e}"))

    items = as_obj_list(data)
    if items is None:
        return Err(RelationError(kind="serialization", message="expected a JSON array"))

    result: list[ImageRelation] = []
    for idx, item in enumerate(items):
        entry = as_str_dict(item)
        if entry is None:
            return Err(
                RelationError(kind="serialization", message=f"entry {idx} is not a JSON object")
            )

        target_path = get_raw_str(entry, _TARGET_PATH_KEY)
        raw_attribute = get_raw_str(entry, _ATTRIBUTE_KEY)
        resource_name = get_raw_str(entry, _RESOURCE_NAME_KEY)
        if not target_path or "" in target_path.split("."):
            return Err(
                RelationError(
                    kind="serialization",
                    message=f"entry {idx} has invalid {_TARGET_PATH_KEY} {target_path!r}",
                )
            )
        if raw_attribute not in {a.value for a in Attribute}:
            return Err(
                RelationError(
                    kind="serialization",
                    message=f"entry {idx} has invalid {_ATTRIBUTE_KEY} {raw_attribute!r}",
                )
            )
        if not resource_name:
            return Err(
                RelationError(
                    kind="serialization",
                    message=f"entry {idx} has no {_RESOURCE_NAME_KEY}",
                )
            )

        result.append(
            ImageRelation(
                target_path=target_path,
                attribute=Attribute(raw_attribute),
                resource_name=resource_name,
            )
        )
    return Ok(tuple(result))


def as_ocm_resources(
    relations: Sequence[ImageRelation],
    bundle_version: str,
) -> Result[tuple[list[ResourceDeclaration], str], RelationError]:
    """Render one OCM resource declaration per referenced image.

    Also returns the serialized relations, for the label on the chart
    resource. Images without a tag use `bundle_version` as their version.
    """
    if not relations:
        return Ok(([], "[]"))

    named = with_resource_names(relations)
    if isinstance(named, Err):
        return named
    relations = named.value

    ref_for_name = {rel.resource_name: rel.image_reference for rel in relations}
    resources: list[ResourceDeclaration] = []
    for res_name in sorted(ref_for_name):
        ref = ref_for_name[res_name]
        assert ref is not None
        resources.append(
            ResourceDeclaration(
                name=res_name,
                type=RESOURCE_TYPE_OCI_IMAGE,
                version=ref.tag if ref.tag is not None else bundle_version,
                access={"type": ACCESS_TYPE_OCI_ARTIFACT, "imageReference": str(ref)},
            )
        )
    return Ok((resources, dump_relations(relations)))


def build_localized_values(
    relations: Sequence[ImageRelation],
) -> Result[dict[str, object], RelationError]:
    """Build the contents of localized-values.yaml.

    All relations must have their image reference resolved.
    """
    root = Node()
    for rel in relations:
        value = get_value(rel)
        if isinstance(value, Err):
            return value
        match insert(root, rel.target_path, value.value):
            case Err(error):
                return Err(
                    RelationError(
                        kind="overlay",
                        message=f"while inserting .Values.{rel.target_path}: {error.message}",
                        hint="two image relations use the same value path both as a value and as a parent of other values",
                    )
                )
            case Ok(_):
                pass
    return Ok(to_plain(root))
