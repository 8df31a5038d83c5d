"""Main CLI entry point (``signet``)."""

from pathlib import Path

import click
import typer
from rich.console import Console
from typer.core import TyperGroup

from signetloop import __version__
from signetloop.aperture.config import render_aperture_config, write_aperture_config
from signetloop.environment.service import SignetEnvironment
from signetloop.exceptions import OperationAbortedError, SignetLoopError
from signetloop.infrastructure.runner import CommandResult
from signetloop.utils.config import get_settings
from signetloop.utils.logging import configure_from_settings, get_logger, set_correlation_id

logger = get_logger(__name__)
console = Console()

VERBS = "start|stop|status|logs|bitcoin|lnd|loop"

# Forward everything after the verb, option-looking arguments and --help included.
PASS_THROUGH = {
    "allow_extra_args": True,
    "ignore_unknown_options": True,
    "help_option_names": [],
}


def usage_text(prog: str = "signet") -> str:
    return "\n".join(
        [
            f"Usage: {prog} {{{VERBS}}}",
            "",
            "Custom Signet Loop Environment",
            "Connects to your existing LND with max-cltv-expiry=300",
            "Runs LOCAL Loop server that respects your CLTV limits",
            "",
            "Additional commands: setup, aperture-config",
            "",
            "Set LND_DIR environment variable if not in /root/.lnd",
            f"Example: LND_DIR=/path/to/lnd {prog} start",
        ]
    )


def print_usage() -> None:
    console.print(usage_text(), markup=False, highlight=False)


class VerbGroup(TyperGroup):
    """Command group that answers unknown verbs with usage text and exit 1."""

    def resolve_command(self, ctx: click.Context, args: list[str]):
        if args and not args[0].startswith("-") and self.get_command(ctx, args[0]) is None:
            logger.info("unknown_verb", verb=args[0])
            print_usage()
            ctx.exit(1)
        return super().resolve_command(ctx, args)


app = typer.Typer(
    name="signet",
    cls=VerbGroup,
    help="⚡ Loop on signet: local development environment",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=False,
)


def _environment() -> SignetEnvironment:
    return SignetEnvironment(get_settings(), console=console)


def _exit_with(result: CommandResult) -> None:
    if result.error:
        console.print(f"[red]{result.error}[/red]")
    raise typer.Exit(result.exit_code)


def version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold blue]signet-loop[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """
    Manage the local Loop signet environment.

    Wraps docker compose and forwards commands to bitcoin-cli, lncli and loop.
    """
    configure_from_settings(get_settings(), verbose=verbose)
    set_correlation_id()

    if ctx.invoked_subcommand is None:
        print_usage()
        raise typer.Exit(1)


@app.command("start")
def start() -> None:
    """Check LND, recreate the containers and run post-start setup."""
    env = _environment()
    try:
        env.start()
    except OperationAbortedError:
        raise typer.Exit(1)
    except SignetLoopError as e:
        logger.error("start_failed", error=str(e), context=e.context)
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)


@app.command("setup")
def setup() -> None:
    """Re-run post-start setup without recreating the containers."""
    try:
        _environment().setup()
    except SignetLoopError as e:
        logger.error("setup_failed", error=str(e), context=e.context)
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)


@app.command("stop")
def stop() -> None:
    """Stop and remove the containers."""
    _exit_with(_environment().stop())


@app.command("status")
def status() -> None:
    """Show chain, LND, Loop server and Loop client status."""
    _environment().status()


@app.command("logs", context_settings=PASS_THROUGH)
def logs(args: list[str] = typer.Argument(None, help="Arguments for docker compose logs")) -> None:
    """Follow container logs (docker compose logs -f)."""
    _exit_with(_environment().logs(list(args or [])))


@app.command("bitcoin", context_settings=PASS_THROUGH)
def bitcoin(args: list[str] = typer.Argument(None, help="bitcoin-cli arguments")) -> None:
    """Run bitcoin-cli against the signet node."""
    _exit_with(_environment().bitcoin.run(list(args or [])))


@app.command("lnd", context_settings=PASS_THROUGH)
def lnd(args: list[str] = typer.Argument(None, help="lncli arguments")) -> None:
    """Run lncli against your existing LND."""
    _exit_with(_environment().lnd.run(list(args or [])))


@app.command("loop", context_settings=PASS_THROUGH)
def loop(args: list[str] = typer.Argument(None, help="loop arguments")) -> None:
    """Run the loop client inside its container."""
    _exit_with(_environment().loop.run(list(args or [])))


@app.command("aperture-config")
def aperture_config(
    output: Path = typer.Option(
        None, "--output", "-o", help="Write to this file instead of stdout"
    ),
) -> None:
    """Render the Aperture configuration."""
    settings = get_settings()
    try:
        if output is None:
            typer.echo(render_aperture_config(settings), nl=False)
            return
        path = write_aperture_config(settings, output)
    except SignetLoopError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Aperture config written to {path}[/green]")


def run() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    run()
