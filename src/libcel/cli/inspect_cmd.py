"""Inspection CLI commands: tokens, ast and functions."""

import click
import yaml

from libcel.builtins import standard_functions
from libcel.errors import ParseError
from libcel.functions import FunctionCategory
from libcel.lexer import Lexer
from libcel.parser import parse


@click.group()
def inspect():
    """Inspect how expressions are tokenized and parsed."""
    pass


@inspect.command()
@click.argument("expression")
def tokens(expression: str):
    """Print the token stream of EXPRESSION."""
    try:
        token_list = Lexer(expression).tokenize()
    except ParseError as e:
        click.echo(click.style(f"LexerError: {e}", fg="red"), err=True)
        raise SystemExit(1)

    for token in token_list:
        click.echo(f"{token.line}:{token.column}\t{token.type.name}\t{token.value}")


@inspect.command()
@click.argument("expression")
def ast(expression: str):
    """Print the syntax tree of EXPRESSION as YAML."""
    try:
        root = parse(expression)
    except ParseError as e:
        click.echo(click.style(f"ParseError: {e}", fg="red"), err=True)
        raise SystemExit(1)

    click.echo(yaml.safe_dump(root.to_dict(), sort_keys=False), nl=False)


@inspect.command()
@click.option(
    "--category",
    type=click.Choice(sorted({f.category.value for f in standard_functions().list_all()})),
    default=None,
    help="Only list functions in this category.",
)
def functions(category: str | None):
    """List the standard functions and methods."""
    registry = standard_functions()
    if category is None:
        definitions = registry.list_all()
    else:
        definitions = registry.list_by_category(FunctionCategory(category))

    for func_def in sorted(definitions, key=lambda f: (f.method, f.name)):
        click.echo(f"{func_def.signature()}")
        click.echo(click.style(f"    {func_def.description}", dim=True))
