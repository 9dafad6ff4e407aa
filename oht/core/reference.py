"""Container image references.

Parses references of the form `[registry/]repository[:tag][@digest]` using the
same grammar and normalization as the Docker distribution tooling:

- a reference without a registry component is placed on `docker.io`
- single-component Docker Hub names get the `library/` prefix
- `index.docker.io` is folded into `docker.io`
- no implicit `latest` tag is added: "nginx" and "nginx:latest" stay distinct

Usage:
    match parse_normalized_named("nginx:1.25"):
        case Ok(ref):
            str(ref)   # "docker.io/library/nginx:1.25"
            ref.name   # "docker.io/library/nginx"
            ref.tag    # "1.25"
        case Err(e):
            print(e.message)
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .result import Err, Ok, Result

__all__ = [
    "DEFAULT_DOMAIN",
    "ImageReference",
    "ReferenceError",
    "parse_normalized_named",
]

DEFAULT_DOMAIN = "docker.io"
_LEGACY_DEFAULT_DOMAIN = "index.docker.io"
_OFFICIAL_REPO_PREFIX = "library/"
_NAME_TOTAL_LENGTH_MAX = 255

_ALNUM = r"[a-z0-9]+"
_SEPARATOR = r"(?:[._]|__|[-]+)"
_PATH_COMPONENT = rf"{_ALNUM}(?:{_SEPARATOR}{_ALNUM})*"
_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
_IPV6_ADDRESS = r"\[(?:[a-fA-F0-9:]+)\]"
_DOMAIN_NAME = rf"{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*"
_HOST = rf"(?:{_DOMAIN_NAME}|{_IPV6_ADDRESS})"
_DOMAIN = rf"{_HOST}(?::[0-9]+)?"
_TAG = r"[\w][\w.-]{0,127}"
_DIGEST = r"[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}"
_NAME = rf"(?:{_DOMAIN}/)?{_PATH_COMPONENT}(?:/{_PATH_COMPONENT})*"

_REFERENCE_RX = re.compile(rf"^({_NAME})(?::({_TAG}))?(?:@({_DIGEST}))?$", re.ASCII)
_ANCHORED_NAME_RX = re.compile(
    rf"^(?:({_DOMAIN})/)?({_PATH_COMPONENT}(?:/{_PATH_COMPONENT})*)$",
    re.ASCII,
)
_ANCHORED_IDENTIFIER_RX = re.compile(r"^[a-f0-9]{64}$", re.ASCII)


@dataclass(frozen=True, slots=True)
class ReferenceError:
    """Error when an image reference cannot be parsed.

    Attributes:
        message: What is wrong with the reference
        raw: The reference exactly as given, before normalization
    """

    message: str
    raw: str

    def __str__(self) -> str:
        return f"{self.message} (raw reference was {self.raw!r})"


@dataclass(frozen=True, slots=True)
class ImageReference:
    """A normalized, immutable container image reference."""

    domain: str
    path: str
    tag: str | None = None
    digest: str | None = None

    @property
    def name(self) -> str:
        """Repository name without tag or digest, e.g. "quay.io/x/postgres_exporter"."""
        return f"{self.domain}/{self.path}"

    @property
    def basename(self) -> str:
        """Final path segment of the repository, e.g. "postgres_exporter"."""
        return self.path.rsplit("/", 1)[-1]

    def __str__(self) -> str:
        out = self.name
        if self.tag is not None:
            out += f":{self.tag}"
        if self.digest is not None:
            out += f"@{self.digest}"
        return out


def _split_docker_domain(name: str) -> tuple[str, str]:
    i = name.find("/")
    if i == -1:
        domain, remainder = DEFAULT_DOMAIN, name
    else:
        first = name[:i]
        looks_like_host = any(c in first for c in ".:") or first == "localhost"
        if not looks_like_host and first.lower() == first:
            domain, remainder = DEFAULT_DOMAIN, name
        else:
            domain, remainder = first, name[i + 1 :]

    if domain == _LEGACY_DEFAULT_DOMAIN:
        domain = DEFAULT_DOMAIN
    if domain == DEFAULT_DOMAIN and "/" not in remainder:
        remainder = _OFFICIAL_REPO_PREFIX + remainder
    return domain, remainder


def _parse(raw: str, s: str) -> Result[ImageReference, ReferenceError]:
    match = _REFERENCE_RX.fullmatch(s)
    if match is None:
        if not s:
            return Err(ReferenceError("repository name must have at least one component", raw))
        if _REFERENCE_RX.fullmatch(s.lower()) is not None:
            return Err(ReferenceError("repository name must be lowercase", raw))
        return Err(ReferenceError("invalid reference format", raw))

    name, tag, digest = match.group(1), match.group(2), match.group(3)
    if len(name) > _NAME_TOTAL_LENGTH_MAX:
        return Err(
            ReferenceError(
                f"repository name must not be more than {_NAME_TOTAL_LENGTH_MAX} characters",
                raw,
            )
        )

    name_match = _ANCHORED_NAME_RX.fullmatch(name)
    if name_match is None or name_match.group(1) is None:
        return Err(ReferenceError("invalid reference format", raw))
    return Ok(ImageReference(name_match.group(1), name_match.group(2), tag, digest))


def parse_normalized_named(raw: str) -> Result[ImageReference, ReferenceError]:
    """Parse an image reference and normalize it against the default registry."""
    if _ANCHORED_IDENTIFIER_RX.fullmatch(raw):
        return Err(
            ReferenceError(
                "invalid repository name, cannot specify 64-byte hexadecimal strings",
                raw,
            )
        )

    domain, remainder = _split_docker_domain(raw)
    remote_name = remainder.split(":", 1)[0]
    if remote_name.lower() != remote_name:
        return Err(ReferenceError(f"repository name ({remote_name}) must be lowercase", raw))

    return _parse(raw, f"{domain}/{remainder}")
