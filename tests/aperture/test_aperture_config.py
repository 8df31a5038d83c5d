"""Tests for Aperture config rendering."""

from pathlib import Path
from textwrap import dedent

import pytest

from signetloop.aperture.config import (
    load_aperture_config,
    render_aperture_config,
    write_aperture_config,
)
from signetloop.exceptions import ConfigurationError
from signetloop.utils.config import Settings

STOCK_CONFIG = dedent(
    """\
    listenaddr: '0.0.0.0:11018'
    staticroot: '/root/.aperture/static'
    servestatic: true
    debuglevel: trace
    insecure: false
    writetimeout: 0s

    servername: aperture
    autocert: false

    authenticator:
     lndhost: localhost:10009
     tlspath: /root/.aperture/lnd-tls.cert
     macdir: /root/.lnd/data/chain/bitcoin/signet
     network: signet

    etcd:
     host: 'localhost:2379'
     user:
     password:

    services:
     - name: loop
       hostregexp: '^.*$'
       pathregexp: '^/looprpc.*$'
       address: 'localhost:11009'
       protocol: https
       tlscertpath: /root/.aperture/loopserver-tls.cert
       price: 1000
       authwhitelistpaths:
         - '^/looprpc.SwapServer/LoopOutTerms.*$'
         - '^/looprpc.SwapServer/LoopOutQuote.*$'
         - '^/looprpc.SwapServer/LoopInTerms.*$'
         - '^/looprpc.SwapServer/LoopInQuote.*$'
    """
)


@pytest.fixture
def stock_settings(monkeypatch) -> Settings:
    monkeypatch.delenv("LND_DIR", raising=False)
    return Settings(_env_file=None)


def test_default_rendering_is_byte_identical(stock_settings):
    assert render_aperture_config(stock_settings) == STOCK_CONFIG


@pytest.mark.parametrize("lnd_dir", ["/home/alice/.lnd", "/srv/lnd node", "/x"])
def test_lnd_dir_substituted(stock_settings, lnd_dir):
    settings = stock_settings.model_copy(update={"lnd_dir": Path(lnd_dir)})

    rendered = render_aperture_config(settings)

    expected = STOCK_CONFIG.replace(
        " macdir: /root/.lnd/data/chain/bitcoin/signet",
        f" macdir: {lnd_dir}/data/chain/bitcoin/signet",
    )
    assert rendered == expected


def test_rendered_config_validates(stock_settings):
    config = load_aperture_config(render_aperture_config(stock_settings))

    assert config.listenaddr == "0.0.0.0:11018"
    assert config.etcd.user is None
    assert config.writetimeout == "0s"
    loop = config.service("loop")
    assert loop.price == 1000
    assert loop.protocol == "https"
    assert len(loop.authwhitelistpaths) == 4


def test_other_settings_flow_into_rendering(stock_settings):
    settings = stock_settings.model_copy(
        update={"aperture_listen_port": 8443, "aperture_price": 5, "etcd_port": 12379}
    )

    config = load_aperture_config(render_aperture_config(settings))

    assert config.listenaddr == "0.0.0.0:8443"
    assert config.service("loop").price == 5
    assert config.etcd.host == "localhost:12379"


def test_invalid_yaml_rejected():
    with pytest.raises(ConfigurationError, match="not valid YAML"):
        load_aperture_config("listenaddr: [unclosed")


def test_non_mapping_rejected():
    with pytest.raises(ConfigurationError, match="mapping"):
        load_aperture_config("- just\n- a list\n")


def test_schema_violation_rejected(stock_settings):
    broken = render_aperture_config(stock_settings).replace("protocol: https", "protocol: gopher")

    with pytest.raises(ConfigurationError, match="expected schema"):
        load_aperture_config(broken)


def test_bad_regexp_rejected(stock_settings):
    broken = render_aperture_config(stock_settings).replace("'^/looprpc.*$'", "'^/looprpc(.*$'")

    with pytest.raises(ConfigurationError):
        load_aperture_config(broken)


def test_write_replaces_existing_file(settings):
    target = settings.rendered_config_path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text("stale: true\n")

    written = write_aperture_config(settings)

    assert written == target
    assert target.read_text() == render_aperture_config(settings)


def test_write_to_explicit_path(settings, tmp_path):
    target = tmp_path / "nested" / "dir" / "aperture.yaml"

    write_aperture_config(settings, target)

    assert target.exists()


def test_write_keeps_template_when_yaml_does_not_round_trip(settings):
    settings = settings.model_copy(update={"lnd_dir": Path("/srv/lnd: node")})

    written = write_aperture_config(settings)

    text = written.read_text()
    assert text == render_aperture_config(settings)
    assert " macdir: /srv/lnd: node/data/chain/bitcoin/signet\n" in text
