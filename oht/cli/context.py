from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from oht.core.config import CONFIG_FILE_NAME, Config, load_config, load_config_or_default
from oht.core.errors import ErrorCode
from oht.core.result import Err
from oht.output.console import ConsoleProtocol, RichConsole

DEBUG_ENV = "OHT_DEBUG"
CONFIG_ENV = "OHT_CONFIG"


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: Config
    console: ConsoleProtocol


def debug_enabled() -> bool:
    return os.environ.get(DEBUG_ENV, "").strip().lower() in {"1", "true", "yes"}


def build_context() -> CLIContext:
    console = RichConsole(show_debug=debug_enabled())

    explicit = os.environ.get(CONFIG_ENV)
    if explicit:
        config_result = load_config(Path(explicit))
    else:
        config_result = load_config_or_default(Path.cwd() / CONFIG_FILE_NAME)

    if isinstance(config_result, Err):
        console.error(config_result.error.message)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    return CLIContext(config=config_result.value, console=console)
