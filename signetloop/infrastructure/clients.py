"""Thin wrappers around the external CLIs.

Each wrapper only knows how to build an argv and, for the few queries the
environment reports on, how to read the JSON that comes back. Everything
else is relayed untouched.
"""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

from signetloop.exceptions import CommandExecutionError, wrap_exception
from signetloop.utils.config import Settings

from .runner import CommandResult, CommandRunner

T = TypeVar("T")


def tty_flags() -> list[str]:
    """Flags for ``docker exec``: allocate a TTY only when we have one."""
    return ["-ti"] if sys.stdin.isatty() else ["-i"]


# =============================================================================
# Value objects parsed from lncli output
# =============================================================================


@dataclass(frozen=True)
class NodeInfo:
    """Subset of ``lncli getinfo`` used for reporting."""

    identity_pubkey: str
    alias: str = ""
    num_peers: int = 0
    num_active_channels: int = 0
    block_height: int = 0
    synced_to_chain: bool = False

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> NodeInfo:
        return cls(
            identity_pubkey=data["identity_pubkey"],
            alias=data.get("alias", ""),
            num_peers=int(data.get("num_peers", 0)),
            num_active_channels=int(data.get("num_active_channels", 0)),
            block_height=int(data.get("block_height", 0)),
            synced_to_chain=bool(data.get("synced_to_chain", False)),
        )


@dataclass(frozen=True)
class WalletBalance:
    """On-chain wallet balance in satoshis. lncli reports amounts as strings."""

    confirmed_balance: int
    unconfirmed_balance: int = 0
    total_balance: int = 0

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> WalletBalance:
        return cls(
            confirmed_balance=int(data["confirmed_balance"]),
            unconfirmed_balance=int(data.get("unconfirmed_balance", 0)),
            total_balance=int(data.get("total_balance", 0)),
        )

    @property
    def is_empty(self) -> bool:
        return self.confirmed_balance == 0


def _parse_json(result: CommandResult, what: str, parse: Callable[[Any], T]) -> T:
    result.check(f"Could not get {what}")
    try:
        return parse(result.json())
    except (ValueError, KeyError, TypeError) as e:
        raise wrap_exception(
            e,
            f"Unexpected output while reading {what}",
            exception_class=CommandExecutionError,
            command=" ".join(result.command[:1]),
        )


# =============================================================================
# CLI wrappers
# =============================================================================


class _Client(ABC):
    def __init__(self, settings: Settings, runner: CommandRunner):
        self.settings = settings
        self.runner = runner

    @abstractmethod
    def command(self, args: list[str]) -> list[str]:
        """Build the full argv for ``args``."""
        pass

    def run(self, args: list[str], **kwargs: Any) -> CommandResult:
        return self.runner.run(self.command(list(args)), **kwargs)


class BitcoinCLI(_Client):
    """``bitcoin-cli`` inside the bitcoind container."""

    def command(self, args: list[str]) -> list[str]:
        s = self.settings
        return [
            "docker",
            "exec",
            *tty_flags(),
            s.bitcoind_container,
            "bitcoin-cli",
            f"-{s.bitcoin_network}",
            f"-rpcuser={s.bitcoin_rpc_user}",
            f"-rpcpassword={s.bitcoin_rpc_password}",
            *args,
        ]


class LNDCLI(_Client):
    """``lncli`` against the externally managed LND node."""

    def command(self, args: list[str]) -> list[str]:
        s = self.settings
        return [
            "lncli",
            "--network",
            s.bitcoin_network,
            f"--rpcserver={s.lnd_rpcserver}",
            f"--macaroonpath={s.lnd_macaroon_path}",
            f"--tlscertpath={s.lnd_tls_cert_path}",
            *args,
        ]

    def is_reachable(self) -> bool:
        """Lightweight RPC probe; output is discarded."""
        return self.run(["getinfo"], discard=True).success

    def get_info(self) -> NodeInfo:
        return _parse_json(self.run(["getinfo"], capture=True), "LND node info", NodeInfo.from_json)

    def wallet_balance(self) -> WalletBalance:
        return _parse_json(
            self.run(["walletbalance"], capture=True), "wallet balance", WalletBalance.from_json
        )

    def new_address(self, address_type: str = "p2wkh") -> str:
        return _parse_json(
            self.run(["newaddress", address_type], capture=True),
            "new address",
            lambda data: str(data["address"]),
        )


class LoopCLI(_Client):
    """``loop`` client inside the Loop client container."""

    def command(self, args: list[str]) -> list[str]:
        s = self.settings
        return [
            "docker",
            "exec",
            *tty_flags(),
            s.loop_client_container,
            "loop",
            "--network",
            s.bitcoin_network,
            *args,
        ]


class DockerCLI(_Client):
    """Plain ``docker`` commands against single containers."""

    def command(self, args: list[str]) -> list[str]:
        return ["docker", *args]

    def path_exists(self, container: str, path: Path | str) -> bool:
        result = self.run(["exec", container, "ls", str(path)], discard=True)
        return result.success

    def copy(self, source: str, destination: str, *, quiet: bool = False) -> CommandResult:
        """``docker cp``; use ``container:path`` on either side."""
        if quiet:
            return self.run(["cp", source, destination], discard=True)
        return self.run(["cp", source, destination])

    def logs(self, container: str, tail: int = 5) -> CommandResult:
        return self.run(["logs", container, f"--tail={tail}"], suppress_stderr=True)


class ComposeCLI(_Client):
    """``docker compose`` scoped to the environment's project name."""

    def command(self, args: list[str]) -> list[str]:
        return ["docker", "compose", "-p", self.settings.compose_project, *args]

    def up(self, force_recreate: bool = True) -> CommandResult:
        args = ["up", "--force-recreate", "-d"] if force_recreate else ["up", "-d"]
        return self.run(args)

    def down(self) -> CommandResult:
        return self.run(["down"])

    def logs(self, args: list[str], follow: bool = True) -> CommandResult:
        return self.run(["logs", "-f", *args] if follow else ["logs", *args])
