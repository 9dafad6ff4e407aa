"""Image relation declarations.

An image relation links a Helm value path to an attribute of a container
image. It is declared on the command line like this:

    .Values.db_metrics.image.repository is repository of quay.io/prometheuscommunity/postgres_exporter:0.16.0

Before the declaration is matched against that grammar, two substitutions run
in this order:

1. `${NAME}` is replaced by the (trimmed) value of the environment variable NAME.
2. `$(cmd arg ...)` is replaced by the (trimmed) stdout of running `cmd` with
   the given arguments. Only bare words split on whitespace are supported;
   quoting, nesting and other shell syntax are refused.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Literal

from .reference import ImageReference, parse_normalized_named
from .result import Err, Ok, Result, fold

__all__ = [
    "DECLARATION_GRAMMAR",
    "Attribute",
    "CommandRunner",
    "ImageRelation",
    "RelationError",
    "get_value",
    "parse_image_relation",
    "substitute_commands",
    "substitute_variables",
]

DECLARATION_GRAMMAR = ".Values.<path> is <repository|digest|tag|reference> of <image-ref>"

_VARIABLE_REFERENCE_RX = re.compile(r"\$\{([a-zA-Z_][a-zA-Z0-9_]*)\}")
_COMMAND_SUBSTITUTION_RX = re.compile(r"\$\(([^)]*)\)")
_IMAGE_RELATION_RX = re.compile(
    r"^\.Values\.(\S+)\s+is\s+(repository|tag|digest|reference)\s+of\s+(\S+)$",
    re.ASCII,
)
_SHELL_SYNTAX_CHARS = frozenset("()[]{}`\"'")

RelationErrorKind = Literal[
    "substitution",
    "grammar",
    "reference",
    "attribute",
    "naming",
    "overlay",
    "resolution",
    "serialization",
]


@dataclass(frozen=True, slots=True)
class RelationError:
    """Error while parsing, naming, serializing or localizing image relations.

    Attributes:
        kind: The stage that failed
        message: What went wrong, including the offending input
        hint: Optional suggestion for the user
    """

    kind: RelationErrorKind
    message: str
    hint: str | None = None

    def with_context(self, context: str) -> RelationError:
        return replace(self, message=f"{context}: {self.message}")

    def __str__(self) -> str:
        return self.message


class Attribute(StrEnum):
    """Attributes of an image reference that a Helm value can refer to."""

    REPOSITORY = "repository"
    DIGEST = "digest"
    TAG = "tag"
    REFERENCE = "reference"


@dataclass(frozen=True, slots=True)
class ImageRelation:
    """A parsed --image-relation declaration.

    `image_reference` is set by the declaration parser when bundling and
    re-resolved from the bundled resources when unbundling; it is never
    serialized. `resource_name` is empty until resource names are assigned.
    """

    target_path: str
    attribute: Attribute
    image_reference: ImageReference | None = None
    resource_name: str = ""

    def with_reference(self, ref: ImageReference) -> ImageRelation:
        return replace(self, image_reference=ref)

    def with_resource_name(self, name: str) -> ImageRelation:
        return replace(self, resource_name=name)


# Runs a command given as [executable, *args] and returns its stdout.
# The error is rendered into the message, so any printable value will do.
type CommandRunner = Callable[[list[str]], Result[str, object]]

type _Accumulator = tuple[tuple[str, ...], int]


def _replace_each(
    rx: re.Pattern[str],
    text: str,
    replacement: Callable[[re.Match[str]], Result[str, RelationError]],
) -> Result[str, RelationError]:
    """Like rx.sub(), but stops at the first replacement that fails."""

    def step(acc: _Accumulator, m: re.Match[str]) -> Result[_Accumulator, RelationError]:
        parts, pos = acc
        return replacement(m).map(
            lambda value: ((*parts, text[pos : m.start()], value), m.end())
        )

    return fold(rx.finditer(text), ((), 0), step).map(
        lambda acc: "".join(acc[0]) + text[acc[1] :]
    )


def substitute_variables(text: str, environ: Mapping[str, str]) -> Result[str, RelationError]:
    """Replace each `${NAME}` with the trimmed value of that environment variable."""

    def lookup(m: re.Match[str]) -> Result[str, RelationError]:
        name = m.group(1)
        value = environ.get(name, "")
        if value == "":
            return Err(
                RelationError(
                    kind="substitution",
                    message=f"missing required environment variable: {name}",
                )
            )
        return Ok(value.strip())

    return _replace_each(_VARIABLE_REFERENCE_RX, text, lookup)


def substitute_commands(text: str, run_command: CommandRunner) -> Result[str, RelationError]:
    """Replace each `$(cmd args...)` with the trimmed stdout of that command."""

    def execute(m: re.Match[str]) -> Result[str, RelationError]:
        command = m.group(1)
        if any(c in _SHELL_SYNTAX_CHARS for c in command):
            return Err(
                RelationError(
                    kind="substitution",
                    message=f"refusing to execute command {command!r} which looks like shell syntax",
                    hint="only a list of bare words is supported, like $(cat version.txt)",
                )
            )
        words = command.split()
        if not words:
            return Err(
                RelationError(
                    kind="substitution",
                    message=f"refusing to execute command {command!r} which contains no command",
                )
            )

        match run_command(words):
            case Ok(stdout):
                return Ok(stdout.strip())
            case Err(error):
                return Err(
                    RelationError(
                        kind="substitution",
                        message=f"command substitution $({command}) failed: {error}",
                    )
                )

    return _replace_each(_COMMAND_SUBSTITUTION_RX, text, execute)


def parse_image_relation(
    text: str,
    *,
    environ: Mapping[str, str],
    run_command: CommandRunner,
) -> Result[ImageRelation, RelationError]:
    """Parse a single declaration (already split and trimmed)."""
    substituted = substitute_variables(text, environ).flat_map(
        lambda t: substitute_commands(t, run_command)
    )
    if isinstance(substituted, Err):
        return substituted
    text = substituted.value

    m = _IMAGE_RELATION_RX.fullmatch(text)
    if m is None:
        return Err(
            RelationError(
                kind="grammar",
                message=(
                    f"does not match expected format /{_IMAGE_RELATION_RX.pattern}/ "
                    f"(pre-processed input was {text!r})"
                ),
                hint=f"expected {DECLARATION_GRAMMAR}",
            )
        )
    target_path, attribute, raw_ref = m.group(1), m.group(2), m.group(3)

    if "" in target_path.split("."):
        return Err(
            RelationError(
                kind="grammar",
                message=f"target path .Values.{target_path} contains an empty path element",
            )
        )

    match parse_normalized_named(raw_ref):
        case Err(error):
            return Err(RelationError(kind="reference", message=str(error)))
        case Ok(ref):
            return Ok(
                ImageRelation(
                    target_path=target_path,
                    attribute=Attribute(attribute),
                    image_reference=ref,
                )
            )


def get_value(rel: ImageRelation) -> Result[str, RelationError]:
    """Read the attribute named by `rel.attribute` from `rel.image_reference`."""
    ref = rel.image_reference
    if ref is None:
        return Err(
            RelationError(
                kind="resolution",
                message=(
                    f"image reference for .Values.{rel.target_path} "
                    f"(resource {rel.resource_name!r}) has not been resolved"
                ),
            )
        )

    match rel.attribute:
        case Attribute.REFERENCE:
            return Ok(str(ref))
        case Attribute.REPOSITORY:
            return Ok(ref.name)
        case Attribute.DIGEST if ref.digest is not None:
            return Ok(ref.digest)
        case Attribute.TAG if ref.tag is not None:
            return Ok(ref.tag)
        case _:
            return Err(
                RelationError(
                    kind="attribute",
                    message=f"could not find attribute {str(rel.attribute)!r} in image reference {str(ref)!r}",
                )
            )
