"""Prepare a component constructor for a Helm chart.

The rendered component-constructor.yaml is meant for
`ocm add componentversions`. It holds one component with:

- the chart itself, as a `helmChart` resource with a `dir` input,
- one `ociImage` resource per image named in an --image-relation,
- the serialized image relations as a label on the chart resource, so that
  `oht unbundle` can render localized-values.yaml later.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from oht.core.helmchart import (
    ChartError,
    as_ocm_resource,
    parse_chart_yaml,
    validate_dependencies,
)
from oht.core.ocm import ComponentDeclaration, Label, LabelName, render_component_constructor
from oht.core.relation import CommandRunner, RelationError
from oht.core.relations import as_ocm_resources, parse_image_relations
from oht.core.result import Err, Ok, Result
from oht.git.location import GitError, GitRunner, try_get_git_location
from oht.output.console import ConsoleProtocol
from oht.platform.process import ProcessError, run_output

__all__ = ["BundleError", "BundleRequest", "BundleService"]

type BundleError = ChartError | GitError | RelationError


@dataclass(frozen=True, slots=True)
class BundleRequest:
    chart_path: Path
    component_name_prefix: str
    provider_name: str
    image_relations: tuple[str, ...] = ()


class BundleService:
    def __init__(
        self,
        *,
        console: ConsoleProtocol,
        environ: Mapping[str, str] | None = None,
        run_command: CommandRunner | None = None,
        git_runner: GitRunner | None = None,
    ) -> None:
        self._console = console
        self._environ = environ if environ is not None else os.environ
        self._run_command = run_command or self._run_substituted_command
        self._git_runner = git_runner

    def _run_substituted_command(self, words: list[str]) -> Result[str, ProcessError]:
        self._console.debug(f"executing command {words[0]!r} with arguments {words[1:]!r}")
        return run_output(words, cwd=Path.cwd()).map(
            lambda out: out.decode("utf-8", errors="replace")
        )

    def _git_location_json(self, chart_path: Path) -> Result[str | None, GitError]:
        if self._git_runner is None:
            result = try_get_git_location(chart_path)
        else:
            result = try_get_git_location(chart_path, runner=self._git_runner)
        match result:
            case Err(error):
                return Err(error)
            case Ok(None):
                self._console.debug(f"{chart_path} is not in a Git checkout, omitting git location")
                return Ok(None)
            case Ok(location):
                return Ok(location.to_json())

    def build_component(self, request: BundleRequest) -> Result[ComponentDeclaration, BundleError]:
        """Build the component declaration without rendering it."""
        chart_result = parse_chart_yaml(request.chart_path)
        if isinstance(chart_result, Err):
            return chart_result
        chart = chart_result.value

        validated = validate_dependencies(chart)
        if isinstance(validated, Err):
            return validated

        git_location = self._git_location_json(chart.chart_path)
        if isinstance(git_location, Err):
            return git_location
        chart_resource = as_ocm_resource(chart, git_location.value)

        relations = parse_image_relations(
            request.image_relations,
            environ=self._environ,
            run_command=self._run_command,
        )
        if isinstance(relations, Err):
            return relations

        projected = as_ocm_resources(relations.value, chart.version)
        if isinstance(projected, Err):
            return projected
        image_resources, relations_json = projected.value
        self._console.debug(
            f"declared {len(relations.value)} image relation(s) over {len(image_resources)} image(s)"
        )

        chart_resource = chart_resource.with_label(
            Label(name=LabelName.IMAGE_RELATIONS.value, value=relations_json)
        )
        return Ok(
            ComponentDeclaration(
                name=request.component_name_prefix + chart.name,
                version=chart.version,
                provider={"name": request.provider_name},
                resources=(chart_resource, *image_resources),
            )
        )

    def render(self, request: BundleRequest) -> Result[str, BundleError]:
        """Render component-constructor.yaml for the request."""
        return self.build_component(request).map(lambda c: render_component_constructor([c]))

