from __future__ import annotations

from datetime import datetime
from pathlib import Path

import typer

from oht.cli.commands._helpers import unwrap_or_exit
from oht.cli.context import build_context
from oht.core.helmchart import add_timestamp_to_version as add_timestamp
from oht.core.helmchart import parse_chart_yaml


def add_timestamp_to_version(
    chart_dir: Path = typer.Argument(..., help="Helm chart directory", show_default=False),
) -> None:
    """Add a build timestamp to the given chart's version.

    Useful to upload multiple bundles of a Helm chart to an OCM store
    without bumping the chart version for each change.
    """
    ctx = build_context()
    chart = unwrap_or_exit(parse_chart_yaml(chart_dir), ctx)
    updated = unwrap_or_exit(add_timestamp(chart, datetime.now()), ctx)
    ctx.console.info(f"Changed chart version from {chart.version!r} to {updated.version!r}")
