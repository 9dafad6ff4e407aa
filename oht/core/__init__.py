"""Core domain types and logic."""

from .config import Config, ConfigError, load_config, load_config_or_default
from .errors import ErrorCode
from .reference import ImageReference, ReferenceError, parse_normalized_named
from .relation import Attribute, ImageRelation, RelationError, get_value, parse_image_relation
from .relations import (
    as_ocm_resources,
    assign_resource_names,
    build_localized_values,
    dump_relations,
    load_relations,
    parse_image_relations,
    with_resource_names,
)
from .result import Err, Ok, Result, fold, is_err, is_ok

__all__ = [
    # config
    "Config",
    "ConfigError",
    "load_config",
    "load_config_or_default",
    # errors
    "ErrorCode",
    # reference
    "ImageReference",
    "ReferenceError",
    "parse_normalized_named",
    # relation
    "Attribute",
    "ImageRelation",
    "RelationError",
    "get_value",
    "parse_image_relation",
    # relations
    "as_ocm_resources",
    "assign_resource_names",
    "build_localized_values",
    "dump_relations",
    "load_relations",
    "parse_image_relations",
    "with_resource_names",
    # result
    "Err",
    "Ok",
    "Result",
    "fold",
    "is_err",
    "is_ok",
]
