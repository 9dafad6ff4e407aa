"""Wrapper around the `ocm` binary.

Stdin and stderr of ocm are connected to ours: ocm may prompt for
credentials, and its error output is meant for the user.
"""

from __future__ import annotations

import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from oht.core.config import DEFAULT_OCM_BINARY
from oht.core.ocm import OcmError, ResourceInfoSet, parse_resource_list
from oht.core.result import Err, Ok, Result
from oht.output.console import ConsoleProtocol
from oht.platform.process import ProcessError, run_output

__all__ = ["OcmClient"]

type OcmRunner = Callable[[list[str]], Result[bytes, ProcessError]]


def _run_inheriting_stdin(cmd: list[str]) -> Result[bytes, ProcessError]:
    return run_output(cmd, cwd=Path.cwd(), inherit_stdin=True)


@dataclass(frozen=True, slots=True)
class OcmClient:
    console: ConsoleProtocol
    binary: str = DEFAULT_OCM_BINARY
    runner: OcmRunner = field(default=_run_inheriting_stdin)

    def ensure_available(self) -> Result[None, OcmError]:
        if shutil.which(self.binary) is None:
            return Err(
                OcmError(
                    kind="ocm_missing",
                    message=f"{self.binary}: missing",
                    hint="Install the OCM CLI: https://ocm.software/docs/getting-started/installation/",
                )
            )
        return Ok(None)

    def exec(self, *args: str) -> Result[bytes, OcmError]:
        """Run ocm with the given arguments and return its stdout."""
        self.console.debug(f"running ocm binary with arguments {list(args)!r}")
        match self.runner([self.binary, *args]):
            case Ok(stdout):
                return Ok(stdout)
            case Err(error):
                return Err(
                    OcmError(
                        kind="ocm_missing" if error.not_started else "ocm_failed",
                        message=f"while running ocm binary with arguments {list(args)!r}: {error}",
                    )
                )

    def get_resources(self, component_version_ref: str) -> Result[ResourceInfoSet, OcmError]:
        """List the resources in the given component version."""
        return self.exec("get", "resources", "-o", "json", component_version_ref).flat_map(
            parse_resource_list
        )

    def download_resource(self, component_version_ref: str, name: str) -> Result[bytes, OcmError]:
        """Retrieve a resource's payload from the store holding the component version."""
        return self.exec("download", "resource", "-O", "-", component_version_ref, name).map_err(
            lambda e: OcmError(
                kind=e.kind,
                message=f"could not download resource {name!r}: {e.message}",
                hint=e.hint,
            )
        )
