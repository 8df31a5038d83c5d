"""Signet Loop environment lifecycle.

Brings the docker compose project up and down, installs the Aperture config
into its container, and reports on the chain, the LND node and the Loop
client. All steps are sequential. Reporting steps are best-effort: a failing
query prints a warning and the next step still runs.
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable
from dataclasses import dataclass

from rich.console import Console

from signetloop.aperture.config import write_aperture_config
from signetloop.exceptions import CommandExecutionError, OperationAbortedError, SignetLoopError
from signetloop.infrastructure.clients import (
    LNDCLI,
    BitcoinCLI,
    ComposeCLI,
    DockerCLI,
    LoopCLI,
    WalletBalance,
)
from signetloop.infrastructure.readiness import wait_until
from signetloop.infrastructure.runner import CommandResult, CommandRunner
from signetloop.utils.config import Settings
from signetloop.utils.logging import LogPerformance, get_logger

logger = get_logger(__name__)

_AFFIRMATIVE = re.compile(r"[Yy]")


def is_affirmative(response: str | None) -> bool:
    """Only a single ``y`` or ``Y`` counts as yes."""
    if response is None:
        return False
    return _AFFIRMATIVE.fullmatch(response.strip()) is not None


@dataclass
class StatusSection:
    title: str
    query: Callable[[], CommandResult]
    fallback: str


class SignetEnvironment:
    """Operator-facing lifecycle of the signet Loop environment.

    Args:
        settings: Environment settings
        runner: Command runner (defaults to one exporting ``LND_DIR``)
        console: Rich console for operator output
        ask: Reads one line of operator input for a prompt
        sleep: Sleep function, replaceable in tests
    """

    def __init__(
        self,
        settings: Settings,
        runner: CommandRunner | None = None,
        console: Console | None = None,
        ask: Callable[[str], str] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.runner = runner or CommandRunner(env={"LND_DIR": str(settings.lnd_dir)})
        self.console = console or Console()
        self.ask = ask or self._ask_console
        self.sleep = sleep

        self.bitcoin = BitcoinCLI(settings, self.runner)
        self.lnd = LNDCLI(settings, self.runner)
        self.loop = LoopCLI(settings, self.runner)
        self.docker = DockerCLI(settings, self.runner)
        self.compose = ComposeCLI(settings, self.runner)

    def _ask_console(self, prompt: str) -> str:
        self.console.print(prompt)
        try:
            return self.console.input()
        except EOFError:
            return ""

    def _warn(self, message: str) -> None:
        self.console.print(f"[yellow]{message}[/yellow]")

    # ------------------------------------------------------------------
    # start / stop / logs
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Check LND, recreate the compose project, then run setup.

        Raises:
            OperationAbortedError: LND is unreachable and the operator declined
            CommandExecutionError: ``docker compose up`` failed
        """
        s = self.settings
        self.console.print("Starting Loop signet environment...")
        self.console.print(f"Connecting to your existing LND at {s.lnd_rpcserver}")
        self.console.print(f"LND directory: {s.lnd_dir}")

        if not self.lnd.is_reachable():
            logger.warning("lnd_unreachable", rpcserver=s.lnd_rpcserver, lnd_dir=str(s.lnd_dir))
            self._warn(f"WARNING: Cannot connect to your LND at {s.lnd_rpcserver}")
            self.console.print("Please ensure your LND is running and accessible")
            self.console.print(f"Expected LND config location: {s.lnd_dir}")
            self.console.print()
            response = self.ask("Continue anyway? (y/n)")
            if not is_affirmative(response):
                logger.info("start_declined")
                raise OperationAbortedError("Start aborted: LND is not reachable")
        else:
            self.console.print("[green]✓ Successfully connected to your existing LND[/green]")

        self.compose.up(force_recreate=True).check("docker compose up failed")
        logger.info("compose_started", project=s.compose_project)

        self.console.print("Waiting for services to start...")
        self.sleep(s.settle_seconds)
        self.setup()

    def stop(self) -> CommandResult:
        return self.compose.down()

    def logs(self, args: list[str]) -> CommandResult:
        return self.compose.logs(args, follow=True)

    # ------------------------------------------------------------------
    # Post-start setup
    # ------------------------------------------------------------------

    def setup(self) -> None:
        """Install the Aperture config and report chain and LND state."""
        with LogPerformance("post_start_setup", logger):
            if self.settings.manage_aperture:
                self.console.print("Copying aperture configuration files")
                try:
                    self.setup_aperture()
                except SignetLoopError as e:
                    logger.warning("aperture_setup_failed", error=str(e), context=e.context)
                    self._warn(f"Warning: Aperture setup failed: {e.message}")

            self.console.print("Checking Bitcoin signet status")
            if not self.bitcoin.run(["getblockchaininfo"]).success:
                self._warn("Warning: Could not connect to your Bitcoin signet node")

            self.console.print("Checking your existing LND")
            self._report_lnd()

    def setup_aperture(self) -> None:
        """Write the Aperture config and exchange TLS certificates with its container.

        Waiting for the container is unbounded. Every copy is non-fatal.
        """
        s = self.settings
        container = s.aperture_container
        config_path = write_aperture_config(s)

        self.console.print("Waiting for aperture container...")
        wait_until(
            lambda: self.docker.path_exists(container, s.aperture_dir),
            s.container_poll_interval_seconds,
            description=f"{container}:{s.aperture_dir}",
            sleep=self.sleep,
        )

        if not self.docker.copy(str(config_path), f"{container}:{s.aperture_config_path}").success:
            self._warn("Warning: Could not copy aperture config into the container")

        if s.lnd_tls_cert_path.is_file():
            lnd_cert_target = f"{container}:{s.aperture_dir.as_posix()}/lnd-tls.cert"
            if not self.docker.copy(str(s.lnd_tls_cert_path), lnd_cert_target).success:
                self._warn("Warning: Could not copy LND TLS cert to aperture")
        else:
            logger.info("lnd_tls_cert_missing", path=str(s.lnd_tls_cert_path))

        self.sleep(s.aperture_cert_wait_seconds)
        self._export_aperture_cert()

    def _export_aperture_cert(self) -> None:
        s = self.settings
        export_path = s.aperture_cert_export_path
        source = f"{s.aperture_container}:{s.aperture_dir.as_posix()}/tls.cert"

        if not self.docker.copy(source, str(export_path), quiet=True).success:
            self.console.print("Aperture TLS cert not ready yet")

        try:
            export_path.chmod(0o644)
        except OSError as e:
            logger.debug("aperture_cert_chmod_skipped", path=str(export_path), error=str(e))

        target = f"{s.loop_client_container}:{s.loop_dir.as_posix()}/aperture-tls.cert"
        if not self.docker.copy(str(export_path), target, quiet=True).success:
            self.console.print("Will copy aperture cert later")

    def _report_lnd(self) -> None:
        s = self.settings
        try:
            info = self.lnd.get_info()
        except CommandExecutionError as e:
            logger.warning("lnd_info_failed", error=str(e))
            self.console.print("[red]✗ Could not connect to your LND[/red]")
            self.console.print("Please check:")
            self.console.print(f"1. LND is running on {s.lnd_rpcserver}")
            self.console.print(f"2. LND directory path: {s.lnd_dir}")
            self.console.print("3. Macaroon and TLS cert are accessible")
            return

        self.console.print("[green]✓ Connected to your existing LND successfully[/green]")
        self.console.print(f"LND Pubkey: {info.identity_pubkey}")

        balance: WalletBalance | None
        try:
            balance = self.lnd.wallet_balance()
        except CommandExecutionError as e:
            logger.warning("wallet_balance_failed", error=str(e))
            balance = None

        if balance is None:
            self._warn("Wallet Balance: unknown (could not query wallet)")
        else:
            self.console.print(f"Wallet Balance: {balance.confirmed_balance} sats")

        if balance is not None and balance.is_empty:
            self.console.print()
            self.console.print("Your LND wallet appears to be empty.")
            self.console.print("You may need to fund it with signet coins for testing Loop.")
            try:
                address = self.lnd.new_address("p2wkh")
            except CommandExecutionError as e:
                logger.warning("new_address_failed", error=str(e))
                self._warn("Warning: Could not generate a new LND address")
            else:
                self.console.print(f"LND Address: {address}")

        self.console.print()
        self.console.print("Your LND CLTV settings from config:")
        self.console.print("- max-cltv-expiry=300 (this should fix the CLTV delta error!)")
        self.console.print("- bitcoin.timelockdelta=20")
        self.console.print()
        self.console.print("Local Loop server is now running and should respect these limits.")
        self.console.print("Test with: signet loop getinfo")

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status_sections(self) -> list[StatusSection]:
        s = self.settings
        sections = [
            StatusSection(
                "Bitcoin Signet Status",
                lambda: self.bitcoin.run(["getblockchaininfo"]),
                "Could not connect to Bitcoin signet",
            ),
            StatusSection(
                "Your Existing LND Status",
                lambda: self.lnd.run(["getinfo"]),
                "Could not connect to your LND",
            ),
            StatusSection(
                "LND Wallet Balance",
                lambda: self.lnd.run(["walletbalance"]),
                "Could not get wallet balance",
            ),
            StatusSection(
                "LND Channels",
                lambda: self.lnd.run(["listchannels"]),
                "Could not list channels",
            ),
            StatusSection(
                "Loop Server Status",
                lambda: self.docker.logs(s.loop_server_container, tail=5),
                "Loop server not ready",
            ),
        ]
        if s.manage_aperture:
            sections.append(
                StatusSection(
                    "Aperture Status",
                    lambda: self.docker.logs(s.aperture_container, tail=5),
                    "Aperture not ready",
                )
            )
        sections.append(
            StatusSection(
                "Loop Client Status",
                lambda: self.loop.run(["getinfo"]),
                "Loop client not ready yet",
            )
        )
        return sections

    def status(self) -> dict[str, bool]:
        """Run every status query in order.

        Returns:
            Section title mapped to whether its query succeeded
        """
        outcome: dict[str, bool] = {}
        sections = self.status_sections()
        for index, section in enumerate(sections):
            self.console.print(f"[bold]=== {section.title} ===[/bold]")
            ok = section.query().success
            if not ok:
                self._warn(section.fallback)
            outcome[section.title] = ok
            if index < len(sections) - 1:
                self.console.print()

        logger.info("status_collected", failed=[t for t, ok in outcome.items() if not ok])
        return outcome
