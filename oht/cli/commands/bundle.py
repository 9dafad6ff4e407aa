from __future__ import annotations

from pathlib import Path

import typer

from oht.cli.commands._helpers import fail, unwrap_or_exit
from oht.cli.context import build_context
from oht.services.bundle import BundleRequest, BundleService

IMAGE_RELATION_HELP = (
    'A declaration of the form ".Values.<path> is <repository|digest|tag|reference> of <docker-image-ref>". '
    "May be given multiple times; a single value may also hold several declarations separated by commas. "
    "${ENVIRONMENT_VARIABLES} in exactly this form are replaced with the variable's value. "
    "After that, $(command substitutions) in exactly this form are replaced by the output of the command. "
    'Only a list of bare words is supported, like "$(cat version.txt)"; no quoting or nested shell syntax.'
)


def bundle(
    chart_dir: Path = typer.Argument(..., help="Helm chart directory", show_default=False),
    component_name_prefix: str | None = typer.Option(
        None,
        "--component-name-prefix",
        help='(required) Prefix for the component name, usually like a URL path element, e.g. "example.org/".',
    ),
    provider_name: str | None = typer.Option(
        None,
        "--provider-name",
        help="(required) The provider name value for the component metadata.",
    ),
    image_relation: list[str] | None = typer.Option(
        None,
        "--image-relation",
        help=IMAGE_RELATION_HELP,
    ),
) -> None:
    """Prepare a component constructor for a Helm chart.

    The output is meant for "ocm add componentversions". Declare all images
    referenced by the chart with --image-relation to make the bundle hermetic,
    for example:

        --image-relation ".Values.db_metrics.image.repository is repository of quay.io/prometheuscommunity/postgres_exporter:0.16.0"

        --image-relation ".Values.db_metrics.image.tag is tag of quay.io/prometheuscommunity/postgres_exporter:0.16.0"

    Declared images are bundled into the component version. On unbundle,
    localized-values.yaml overrides the declared value paths to refer to the
    bundled images.
    """
    ctx = build_context()

    prefix = component_name_prefix or ctx.config.bundle.component_name_prefix
    if not prefix:
        fail(ctx, "no value provided for --component-name-prefix")
    provider = provider_name or ctx.config.bundle.provider_name
    if not provider:
        fail(ctx, "no value provided for --provider-name")

    service = BundleService(console=ctx.console)
    rendered = unwrap_or_exit(
        service.render(
            BundleRequest(
                chart_path=chart_dir,
                component_name_prefix=prefix,
                provider_name=provider,
                image_relations=tuple(image_relation or ()),
            )
        ),
        ctx,
    )
    typer.echo(rendered, nl=False)
