# cli.py
from __future__ import annotations

import signal
import sys
from pathlib import Path

import click

from .errors import HandledError
from .process import CancelToken
from .settings import Settings
from .topology import upstream_repo_name
from .ui.console import Console, set_console
from .upgrade import ProviderUpgrade, bare_name


def _install_interrupt_handler(cancel: CancelToken):
    """
    First Ctrl-C cancels the running step; a second one interrupts outright.
    """
    def _handler(signum, frame):
        if cancel.cancelled:
            raise KeyboardInterrupt
        cancel.cancel()

    return signal.signal(signal.SIGINT, _handler)


@click.command()
@click.argument("name")
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.option(
    "--gopath",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Root of the local repository cache (defaults to $GOPATH or ~/go)",
)
@click.option("--remote", default=None, help="Remote of the provider repo to pull from and push to")
def cli(name, debug, gopath, remote):
    """upgrade-provider automates the process of upgrading a TF-bridged provider.

    NAME is the provider repository, e.g. pulumi-aws.
    """
    console = Console(debug=debug)
    set_console(console)

    try:
        settings = Settings.from_env().override(gopath=gopath, remote=remote)
    except ValueError as e:
        console.print_error(
            "Invalid configuration",
            str(e),
            suggestion="UPGRADE_PROVIDER_ORG_REMAP takes comma separated name=org pairs.",
        )
        sys.exit(1)
    console.print_debug(f"repository cache: {settings.cache_root}")

    cancel = CancelToken()
    previous = _install_interrupt_handler(cancel)
    upgrade = ProviderUpgrade(name, settings, console=console, cancel=cancel)

    try:
        console.print_run_started(provider=name, upstream=upstream_repo_name(bare_name(name)))
        upgrade.run()
    except HandledError:
        console.print_partial_progress(upgrade.completed_side_effects)
        sys.exit(130 if cancel.cancelled else 1)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        console.print_partial_progress(upgrade.completed_side_effects)
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        console.print_partial_progress(upgrade.completed_side_effects)
        sys.exit(1)
    finally:
        signal.signal(signal.SIGINT, previous)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
