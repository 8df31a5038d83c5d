"""Aperture configuration rendering.

The config is a fixed YAML document. Only paths and endpoints that follow
from the settings are substituted; with default settings the output is the
stock signet configuration. The rendered text is parsed back and validated
before it is written anywhere.
"""

import re
from pathlib import Path
from typing import Literal

import yaml
from jinja2 import StrictUndefined, Template
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from signetloop.exceptions import ConfigurationError, wrap_exception
from signetloop.utils.config import Settings
from signetloop.utils.logging import get_logger

logger = get_logger(__name__)

APERTURE_TEMPLATE = """\
listenaddr: '0.0.0.0:{{ listen_port }}'
staticroot: '{{ aperture_dir }}/static'
servestatic: true
debuglevel: trace
insecure: false
writetimeout: 0s

servername: aperture
autocert: false

authenticator:
 lndhost: {{ lnd_host }}
 tlspath: {{ aperture_dir }}/lnd-tls.cert
 macdir: {{ macaroon_dir }}
 network: {{ network }}

etcd:
 host: '{{ etcd_host }}'
 user:
 password:

services:
 - name: loop
   hostregexp: '^.*$'
   pathregexp: '^/looprpc.*$'
   address: '{{ loop_server }}'
   protocol: https
   tlscertpath: {{ aperture_dir }}/loopserver-tls.cert
   price: {{ price }}
   authwhitelistpaths:
     - '^/looprpc.SwapServer/LoopOutTerms.*$'
     - '^/looprpc.SwapServer/LoopOutQuote.*$'
     - '^/looprpc.SwapServer/LoopInTerms.*$'
     - '^/looprpc.SwapServer/LoopInQuote.*$'
"""


# =============================================================================
# Schema
# =============================================================================


def _compile(pattern: str) -> None:
    try:
        re.compile(pattern)
    except re.error as e:
        raise ValueError(f"invalid regular expression {pattern!r}: {e}") from e


class AuthenticatorConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    lndhost: str
    tlspath: str
    macdir: str
    network: str


class EtcdConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    host: str
    user: str | None = None
    password: str | None = None


class ServiceConfig(BaseModel):
    """A backend proxied by Aperture."""

    model_config = ConfigDict(extra="forbid")

    name: str
    hostregexp: str
    pathregexp: str
    address: str
    protocol: Literal["http", "https"]
    tlscertpath: str | None = None
    price: int = Field(ge=0)
    authwhitelistpaths: list[str] = Field(default_factory=list)

    @field_validator("hostregexp", "pathregexp")
    @classmethod
    def _valid_regexp(cls, value: str) -> str:
        _compile(value)
        return value

    @field_validator("authwhitelistpaths")
    @classmethod
    def _valid_whitelist(cls, value: list[str]) -> list[str]:
        for pattern in value:
            _compile(pattern)
        return value


class ApertureConfig(BaseModel):
    """Schema of the Aperture YAML config as rendered by this package."""

    model_config = ConfigDict(extra="forbid")

    listenaddr: str
    staticroot: str
    servestatic: bool
    debuglevel: str
    insecure: bool
    writetimeout: str
    servername: str
    autocert: bool
    authenticator: AuthenticatorConfig
    etcd: EtcdConfig
    services: list[ServiceConfig] = Field(min_length=1)

    def service(self, name: str) -> ServiceConfig:
        for service in self.services:
            if service.name == name:
                return service
        raise KeyError(name)


# =============================================================================
# Rendering
# =============================================================================


def render_aperture_config(settings: Settings) -> str:
    """Render the Aperture YAML for the given settings."""
    template = Template(
        APERTURE_TEMPLATE,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )
    return template.render(
        listen_port=settings.aperture_listen_port,
        aperture_dir=settings.aperture_dir.as_posix(),
        lnd_host=settings.lnd_rpcserver,
        macaroon_dir=settings.lnd_macaroon_dir.as_posix(),
        network=settings.bitcoin_network,
        etcd_host=f"{settings.etcd_host}:{settings.etcd_port}",
        loop_server=f"{settings.loop_server_host}:{settings.loop_server_port}",
        price=settings.aperture_price,
    )


def load_aperture_config(text: str) -> ApertureConfig:
    """Parse and validate Aperture YAML.

    Raises:
        ConfigurationError: If the text is not YAML or does not match the schema
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise wrap_exception(e, "Aperture config is not valid YAML", exception_class=ConfigurationError)

    if not isinstance(data, dict):
        raise ConfigurationError("Aperture config must be a mapping", expected="mapping")

    try:
        return ApertureConfig.model_validate(data)
    except ValidationError as e:
        raise wrap_exception(
            e,
            "Aperture config does not match the expected schema",
            exception_class=ConfigurationError,
            errors=e.error_count(),
        )


def write_aperture_config(settings: Settings, path: Path | None = None) -> Path:
    """Render, validate and write the Aperture config, replacing any old file.

    The text is always the substituted template. A validation failure only
    logs a warning, since paths such as ``LND_DIR`` are written unquoted and
    may not survive a YAML round trip.

    Returns:
        The path written to
    """
    target = path or settings.rendered_config_path
    rendered = render_aperture_config(settings)
    try:
        load_aperture_config(rendered)
    except ConfigurationError as e:
        logger.warning("aperture_config_unvalidated", path=str(target), error=str(e))

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.unlink(missing_ok=True)
        target.write_text(rendered, encoding="utf-8")
    except OSError as e:
        raise wrap_exception(
            e,
            "Could not write aperture config",
            exception_class=ConfigurationError,
            path=str(target),
        )

    logger.info("aperture_config_written", path=str(target), bytes=len(rendered))
    return target
