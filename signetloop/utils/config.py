"""Application settings.

Values are read from ``SIGNET_*`` environment variables and an optional
``.env`` file. ``LND_DIR`` is also accepted without the prefix, as the
compose file reads it under that name.
"""

from pathlib import Path

from platformdirs import PlatformDirs
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

dirs = PlatformDirs("signet-loop", appauthor=False)

DEFAULT_LND_DIR = Path("/root/.lnd")


class Settings(BaseSettings):
    """Settings for the signet Loop environment."""

    model_config = SettingsConfigDict(
        env_prefix="SIGNET_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # LND (externally managed)
    lnd_dir: Path = Field(
        default=DEFAULT_LND_DIR,
        validation_alias=AliasChoices("lnd_dir", "signet_lnd_dir"),
        description="LND data directory holding tls.cert and the macaroons",
    )
    lnd_rpc_host: str = "localhost"
    lnd_rpc_port: int = Field(default=10009, ge=1, le=65535)

    # Docker compose
    compose_project: str = "signet"
    bitcoin_network: str = "signet"

    # Containers
    bitcoind_container: str = "bitcoind"
    loop_client_container: str = "loopclient-signet"
    loop_server_container: str = "loopserver-signet"
    aperture_container: str = "aperture-signet"

    # bitcoind RPC credentials used by bitcoin-cli inside the container
    bitcoin_rpc_user: str = "bitcoin"
    bitcoin_rpc_password: str = "bitcoin"

    # Aperture
    manage_aperture: bool = Field(
        default=True,
        description="Render and install the Aperture config during setup",
    )
    aperture_dir: Path = Path("/root/.aperture")
    loop_dir: Path = Path("/root/.loop")
    aperture_binary: Path = Path("/bin/aperture")
    aperture_listen_port: int = Field(default=11018, ge=1, le=65535)
    aperture_price: int = Field(default=1000, ge=0)
    etcd_host: str = "localhost"
    etcd_port: int = Field(default=2379, ge=1, le=65535)
    loop_server_host: str = "localhost"
    loop_server_port: int = Field(default=11009, ge=1, le=65535)
    rendered_config_path: Path = Path("/tmp/aperture.yaml")
    aperture_cert_export_path: Path = Path("/tmp/aperture-tls.cert")

    # Timing (seconds)
    settle_seconds: float = Field(default=10, ge=0)
    readiness_interval_seconds: float = Field(default=1, gt=0)
    container_poll_interval_seconds: float = Field(default=2, gt=0)
    aperture_cert_wait_seconds: float = Field(default=5, ge=0)

    # Logging
    log_level: str = "WARNING"
    json_logs: bool = False
    log_to_file: bool = False
    log_file_path: Path = Field(default_factory=lambda: Path(dirs.user_log_dir) / "signet.log")

    @field_validator("lnd_dir", mode="before")
    @classmethod
    def _empty_lnd_dir_is_default(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_LND_DIR
        return value

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {value}")
        return level

    @property
    def lnd_rpcserver(self) -> str:
        return f"{self.lnd_rpc_host}:{self.lnd_rpc_port}"

    @property
    def lnd_tls_cert_path(self) -> Path:
        return self.lnd_dir / "tls.cert"

    @property
    def lnd_macaroon_dir(self) -> Path:
        return self.lnd_dir / "data" / "chain" / "bitcoin" / self.bitcoin_network

    @property
    def lnd_macaroon_path(self) -> Path:
        return self.lnd_macaroon_dir / "admin.macaroon"

    @property
    def aperture_config_path(self) -> Path:
        """Location of the config inside the Aperture container."""
        return self.aperture_dir / "aperture.yaml"


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Re-read settings from the environment."""
    global _settings
    _settings = Settings()
    return _settings
