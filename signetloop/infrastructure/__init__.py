"""Infrastructure: external command execution, CLI wrappers and readiness polling."""

from .clients import (
    LNDCLI,
    BitcoinCLI,
    ComposeCLI,
    DockerCLI,
    LoopCLI,
    NodeInfo,
    WalletBalance,
)
from .readiness import is_port_open, wait_for_port, wait_until
from .runner import CommandResult, CommandRunner

__all__ = [
    "BitcoinCLI",
    "CommandResult",
    "CommandRunner",
    "ComposeCLI",
    "DockerCLI",
    "LNDCLI",
    "LoopCLI",
    "NodeInfo",
    "WalletBalance",
    "is_port_open",
    "wait_for_port",
    "wait_until",
]
