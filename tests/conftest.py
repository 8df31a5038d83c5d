"""
Pytest configuration and global fixtures.

No test runs docker, lncli or bitcoin-cli: the environment service gets a
``FakeRunner`` that records every argv and answers from a script.
"""

import io
import json
from collections.abc import Callable
from pathlib import Path

import pytest
from rich.console import Console

from signetloop.environment.service import SignetEnvironment
from signetloop.infrastructure.runner import CommandResult
from signetloop.utils.config import Settings
from signetloop.utils.logging import configure_logging

TEST_PUBKEY = "03e7156ae33b0a208d0744199163177e909e80176e55d97a2f221ede0f934dd9ad"


class FakeRunner:
    """Stand-in for ``CommandRunner``.

    Responses are matched on a substring of the joined argv; the first
    matching rule wins. Unmatched commands succeed with empty output.
    """

    def __init__(self):
        self.calls: list[list[str]] = []
        self.call_kwargs: list[dict] = []
        self._rules: list[tuple[str, Callable[[list[str]], CommandResult]]] = []

    def respond(self, needle: str, exit_code: int = 0, stdout: str | dict = "") -> None:
        text = json.dumps(stdout) if isinstance(stdout, dict) else stdout
        self._rules.append(
            (needle, lambda argv: CommandResult(command=argv, exit_code=exit_code, stdout=text))
        )

    def fail(self, needle: str, exit_code: int = 1) -> None:
        self.respond(needle, exit_code=exit_code)

    def run(self, command: list[str], **kwargs) -> CommandResult:
        self.calls.append(list(command))
        self.call_kwargs.append(kwargs)
        joined = " ".join(command)
        for needle, responder in self._rules:
            if needle in joined:
                return responder(list(command))
        return CommandResult(command=list(command), exit_code=0)

    def joined_calls(self) -> list[str]:
        return [" ".join(call) for call in self.calls]

    def index_of(self, needle: str) -> int:
        for i, joined in enumerate(self.joined_calls()):
            if needle in joined:
                return i
        raise AssertionError(f"no call containing {needle!r}: {self.joined_calls()}")


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with temporary paths and no waiting."""
    lnd_dir = tmp_path / "lnd"
    lnd_dir.mkdir()
    return Settings(
        lnd_dir=lnd_dir,
        aperture_dir=tmp_path / "aperture",
        loop_dir=tmp_path / "loop",
        rendered_config_path=tmp_path / "out" / "aperture.yaml",
        aperture_cert_export_path=tmp_path / "out" / "aperture-tls.cert",
        settle_seconds=0,
        aperture_cert_wait_seconds=0,
        container_poll_interval_seconds=0.01,
        readiness_interval_seconds=0.01,
    )


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def make_environment(settings, fake_runner, output):
    """Factory for a ``SignetEnvironment`` wired to the fake runner."""

    def _make(answer: str = "n", **overrides) -> SignetEnvironment:
        env_settings = settings.model_copy(update=overrides) if overrides else settings
        return SignetEnvironment(
            env_settings,
            runner=fake_runner,
            console=Console(file=output, width=200, color_system=None),
            ask=lambda prompt: answer,
            sleep=lambda seconds: None,
        )

    return _make


@pytest.fixture
def healthy_lnd(fake_runner):
    """Script lncli responses for a reachable node with a funded wallet."""
    fake_runner.respond("tls.cert getinfo", stdout={"identity_pubkey": TEST_PUBKEY, "alias": "signet"})
    fake_runner.respond("tls.cert walletbalance", stdout={"confirmed_balance": "150000"})
    return fake_runner


@pytest.fixture(autouse=True)
def reset_logging():
    """CLI invocations bind log output to CliRunner streams; rebind afterwards."""
    yield
    configure_logging()
