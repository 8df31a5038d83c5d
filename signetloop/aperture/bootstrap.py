"""Aperture container entry point.

Waits for etcd and LND to accept connections, then replaces the current
process with the Aperture binary so it receives signals directly.
"""

import os

from rich.console import Console

from signetloop.infrastructure.readiness import wait_for_port
from signetloop.utils.config import Settings, get_settings
from signetloop.utils.logging import configure_from_settings, get_logger, set_correlation_id

logger = get_logger(__name__)
console = Console()


def prepare_directories(settings: Settings) -> None:
    """Create the Aperture and Loop state directories."""
    for directory in (settings.aperture_dir, settings.loop_dir):
        directory.mkdir(parents=True, exist_ok=True)
        logger.debug("directory_ready", path=str(directory))


def wait_for_dependencies(settings: Settings) -> None:
    """Block until etcd and then LND are reachable. Never times out."""
    interval = settings.readiness_interval_seconds

    console.print("Waiting for ETCD to be ready...")
    wait_for_port(settings.etcd_host, settings.etcd_port, interval)
    console.print("ETCD is ready")

    console.print("Waiting for LND to be accessible...")
    wait_for_port(settings.lnd_rpc_host, settings.lnd_rpc_port, interval)
    console.print("LND is accessible")


def aperture_argv(settings: Settings) -> list[str]:
    return [str(settings.aperture_binary), f"--configfile={settings.aperture_config_path}"]


def run(settings: Settings | None = None) -> None:
    """Prepare, wait, then exec Aperture. Does not return on success."""
    settings = settings or get_settings()

    console.print("Initializing Aperture for Loop Signet environment...")
    prepare_directories(settings)
    wait_for_dependencies(settings)

    argv = aperture_argv(settings)
    console.print("Starting Aperture...")
    logger.info("aperture_exec", command=argv)
    os.execv(argv[0], argv)


def main() -> None:
    """Console script entry point (``signet-aperture-init``)."""
    settings = get_settings()
    configure_from_settings(settings)
    set_correlation_id()
    run(settings)


if __name__ == "__main__":
    main()
