"""
marshalgen CLI - Main entry point.

Provides commands for generating a marshaller factory from a configuration
file and for inspecting the configured types.
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from marshalgen.config.loader import (
    build_registry,
    generate_default_config,
    load_config_from_yaml,
    load_extensions,
)
from marshalgen.config.models import MarshalgenConfig
from marshalgen.errors import ConfigurationError, GenerationError
from marshalgen.marshalling.generator import MarshallerGeneratorFactory
from marshalgen.state.cache import GenerationCache

app = typer.Typer(
    name="marshalgen",
    help="Generate Java marshaller factories for a closed set of types",
    no_args_is_help=True,
)

console = Console()

DEFAULT_CONFIG = "./marshalgen.yaml"


# =============================================================================
# Helper Functions
# =============================================================================


def run_generation(config: MarshalgenConfig, print_out: bool = False) -> tuple[str, Path]:
    """
    Run one generation pass for a configuration.

    Returns:
        The generated source and the cache file it was written to
    """
    registry = build_registry(config)
    cache = GenerationCache(config.output.cache_dir)
    generator = MarshallerGeneratorFactory.get_for(
        config.target,
        registry,
        extensions=load_extensions(config.extensions),
        cache=cache,
        print_out=print_out or config.output.print_out,
        default_array_marshallers=config.default_array_marshallers,
    )
    source = generator.generate(config.output.package_name, config.output.class_name)
    return source, cache.cache_file(config.output.class_name)


def _configure_logging(verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=log_level, format="%(name)s: %(message)s")


# =============================================================================
# Commands
# =============================================================================


@app.command()
def generate(
    config: str = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="Path to configuration YAML file"),
    print_out: bool = typer.Option(False, "--print-out", help="Echo the generated source to stdout"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Generate the marshaller factory class.

    Examples:
        marshalgen generate
        marshalgen generate -c config/marshalgen.yaml --print-out
    """
    _configure_logging(verbose)

    try:
        console.print(f"[cyan]Loading configuration from {config}...[/cyan]")
        cfg = load_config_from_yaml(Path(config))

        source, cache_file = run_generation(cfg, print_out=print_out)

        console.print(
            Panel(
                f"Class: [bold]{cfg.output.package_name}.{cfg.output.class_name}[/bold]\n"
                f"Target: {cfg.target.value}\n"
                f"Lines: {source.count(chr(10))}\n"
                f"Written to: {cache_file}",
                title="[green]✓ Generation complete[/green]",
            )
        )

    except ConfigurationError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        raise typer.Exit(1)
    except GenerationError as e:
        where = f" ({e.type_name})" if e.type_name else ""
        console.print(f"[bold red]Generation Error{where}:[/bold red] {e}")
        if verbose:
            console.print_exception()
        raise typer.Exit(1)


@app.command()
def init(
    output: str = typer.Option(DEFAULT_CONFIG, "--output", "-o", help="Output path for config file"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
):
    """
    Generate a default configuration file.

    Creates a marshalgen.yaml with an example type manifest that you can customize.
    """
    output_path = Path(output)

    if output_path.exists() and not force:
        if not typer.confirm(f"{output} already exists. Overwrite?"):
            console.print("[yellow]Cancelled.[/yellow]")
            raise typer.Abort()

    generate_default_config(output_path)
    console.print(f"[green]✓[/green] Generated configuration file: {output}")
    console.print("\nEdit this file to describe your types and choose which ones to expose.")


@app.command()
def types(
    config: str = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="Path to configuration YAML file"),
):
    """
    List the exposed types and how each will be marshalled.
    """
    try:
        cfg = load_config_from_yaml(Path(config))
        registry = build_registry(cfg)
    except GenerationError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        raise typer.Exit(1)

    table = Table(title="Exposed Types")
    table.add_column("Type", style="cyan")
    table.add_column("Marshaller")
    table.add_column("Aliases", style="dim")

    for type_ in registry.get_exposed_types():
        name = type_.fully_qualified_name
        marshaller: Optional[str] = None
        known = registry.get_known_serializer_type(name)
        if known is not None:
            marshaller = known.fully_qualified_name
        table.add_row(name, marshaller or "[green]generated[/green]", ", ".join(registry.get_aliases_of(name)))

    console.print(table)


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
