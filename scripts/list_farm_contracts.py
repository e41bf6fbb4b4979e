#!/usr/bin/python3

from itertools import groupby
from pathlib import Path
from typing import List

import click
from ape.cli import ConnectedProviderCommand

from deployment.constants import TOKEN_FARM_PARAMS_FILEPATH
from deployment.registry import RegistryEntry, read_registry
from deployment.utils import _load_yaml, get_artifact_filepath, get_chain_name


def _format_chain_name(chain_name: str) -> str:
    """Format the chain name to capitalize each word and join with slashes."""
    return "/".join(word.capitalize() for word in chain_name.split())


def _display_registry_entries(entries: List[RegistryEntry]) -> None:
    """Display registry entries grouped by chain ID."""
    for chain_id, chain_entries in groupby(entries, key=lambda e: e.chain_id):
        try:
            chain_name = _format_chain_name(get_chain_name(chain_id))
        except ValueError:
            chain_name = f"Chain {chain_id}"
        click.secho(f"\n{chain_name}", fg="yellow")

        for index, entry in enumerate(chain_entries, start=1):
            click.secho(f"    {index}. {entry.name} {entry.address}", fg="cyan")


@click.command(cls=ConnectedProviderCommand, name="list-farm-contracts")
@click.option(
    "--registry",
    "-r",
    help="Registry file (defaults to the one configured for the token farm).",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
def cli(registry):
    """List the deployed token farm contracts."""
    if registry is None:
        registry = get_artifact_filepath(_load_yaml(TOKEN_FARM_PARAMS_FILEPATH))
    if not registry.exists():
        raise click.ClickException(f"No registry found at {registry}")
    _display_registry_entries(read_registry(filepath=registry))


if __name__ == "__main__":
    cli()
