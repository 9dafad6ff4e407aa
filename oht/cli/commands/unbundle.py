from __future__ import annotations

from pathlib import Path

import typer

from oht.cli.commands._helpers import fail, unwrap_or_exit
from oht.cli.context import build_context
from oht.core.errors import ErrorCode
from oht.services.ocm_cli import OcmClient
from oht.services.unbundle import UnbundleService


def unbundle(
    component_version: str = typer.Argument(
        ...,
        help='Path to a CTF archive, or "$OCI_REGISTRY//$COMPONENT_NAME:$COMPONENT_VERSION"',
        show_default=False,
    ),
    target_dir: Path = typer.Argument(..., help="Output directory", show_default=False),
) -> None:
    """Unpack a Helm chart from an OCM component version created by "bundle".

    If the component version contains image relations, localized-values.yaml
    is rendered into the output directory. Give it to Helm with --values.

    If the chart carries a "cloud.sap/git-location" label, its contents are
    written into the output directory as git-location.json.
    """
    ctx = build_context()
    if not component_version:
        fail(ctx, "missing component version")

    ocm = OcmClient(console=ctx.console, binary=ctx.config.ocm.binary)
    unwrap_or_exit(ocm.ensure_available(), ctx)

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        fail(ctx, f"cannot create {target_dir}: {e}", ErrorCode.IO_ERROR)

    service = UnbundleService(ocm=ocm, console=ctx.console, config=ctx.config.unbundle)
    result = unwrap_or_exit(service.run(component_version, target_dir), ctx)

    ctx.console.success(str(result.chart_path))
    ctx.console.success(str(result.values_path))
    if result.git_location_path is not None:
        ctx.console.success(str(result.git_location_path))
