"""Evaluation CLI commands: eval and check."""

import json
from pathlib import Path
from typing import Any

import click
import yaml

from libcel.errors import ExpressionError, ParseError
from libcel.parser import parse
from libcel.program import compile
from libcel.values import format_value


def _fail(message: str) -> None:
    click.echo(click.style(message, fg="red"), err=True)
    raise SystemExit(1)


def _load_bindings(bindings_file: Path | None, assignments: tuple[str, ...]) -> dict[str, Any]:
    """Merge bindings from a YAML/JSON file and NAME=VALUE options."""
    variables: dict[str, Any] = {}

    if bindings_file is not None:
        with open(bindings_file) as f:
            data = yaml.safe_load(f)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            _fail(f"Error: bindings file {bindings_file} must contain a mapping")
        variables.update(data)

    for assignment in assignments:
        name, sep, raw = assignment.partition("=")
        if not sep or not name.strip():
            _fail(f"Error: invalid --var '{assignment}', expected NAME=VALUE")
        try:
            variables[name.strip()] = yaml.safe_load(raw) if raw else ""
        except yaml.YAMLError as e:
            _fail(f"Error: cannot parse value for '{name}': {e}")

    return variables


def _to_json(value: Any) -> Any:
    if isinstance(value, dict):
        return {format_value(k): _to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json(v) for v in value]
    if isinstance(value, str):
        return str(value)
    return value


@click.command("eval")
@click.argument("expression")
@click.option(
    "--var",
    "assignments",
    multiple=True,
    metavar="NAME=VALUE",
    help="Bind a variable; VALUE is parsed as YAML (repeatable).",
)
@click.option(
    "--bindings",
    "bindings_file",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML or JSON file holding a mapping of variable bindings.",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the result as JSON.")
def eval_cmd(
    expression: str,
    assignments: tuple[str, ...],
    bindings_file: Path | None,
    as_json: bool,
):
    """Evaluate EXPRESSION and print the result."""
    variables = _load_bindings(bindings_file, assignments)

    try:
        result = compile(expression).evaluate(variables)
    except ExpressionError as e:
        _fail(f"{type(e).__name__}: {e}")

    if as_json:
        click.echo(json.dumps(_to_json(result), default=format_value))
    else:
        click.echo(format_value(result))


@click.command()
@click.argument("expression")
def check(expression: str):
    """Check that EXPRESSION parses."""
    try:
        parse(expression)
    except ParseError as e:
        _fail(f"ParseError: {e}")

    click.echo(click.style("OK", fg="green"))
