"""Configuration management CLI commands."""

import json
from typing import Any, Optional

import typer
import yaml
from rich.console import Console
from rich.syntax import Syntax

from mimirbridge.cli.main import state
from mimirbridge.cli.output import print_config_tables, print_error, print_info
from mimirbridge.config import YAML_SECTIONS, Settings

app = typer.Typer(help="Configuration management")
console = Console()

_SECRET_FIELDS = {"push_password"}


@app.command("show")
def show_config(
    section: Optional[str] = typer.Option(
        None,
        "--section",
        "-s",
        help="Show specific section: scrape, push, bridge, logging",
    ),
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format: table, yaml, json",
    ),
) -> None:
    """
    Show current bridge configuration.

    Values are merged from environment, YAML file and defaults. The push
    password is never printed.
    """
    config_dict = settings_to_dict(state.settings)

    if section:
        if section not in config_dict:
            print_error(f"Unknown section: {section}")
            print_info(f"Available sections: {', '.join(config_dict.keys())}")
            raise typer.Exit(1)
        config_dict = {section: config_dict[section]}

    if format == "yaml":
        config_yaml = yaml.dump(config_dict, default_flow_style=False, sort_keys=False)
        console.print(Syntax(config_yaml, "yaml", theme="monokai", line_numbers=True))
    elif format == "json":
        json_str = json.dumps(config_dict, indent=2)
        console.print(Syntax(json_str, "json", theme="monokai", line_numbers=True))
    elif format == "table":
        print_config_tables(config_dict)
    else:
        print_error(f"Invalid format: {format}")
        raise typer.Exit(1)


def settings_to_dict(settings: Settings) -> dict[str, dict[str, Any]]:
    """Convert settings to the nested layout of the YAML config file."""
    result: dict[str, dict[str, Any]] = {}
    for section, keys in YAML_SECTIONS.items():
        values = {}
        for key, field_name in keys.items():
            value = getattr(settings, field_name)
            if field_name in _SECRET_FIELDS and value is not None:
                value = "***REDACTED***"
            values[key] = value
        result[section] = values
    return result
