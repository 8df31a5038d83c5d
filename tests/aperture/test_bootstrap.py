"""Tests for the Aperture container bootstrap."""

from unittest.mock import call, patch

from signetloop.aperture import bootstrap
from signetloop.utils.logging import get_correlation_id


def test_prepare_directories(settings):
    bootstrap.prepare_directories(settings)

    assert settings.aperture_dir.is_dir()
    assert settings.loop_dir.is_dir()

    # Existing directories are fine.
    bootstrap.prepare_directories(settings)


def test_waits_for_etcd_then_lnd(settings):
    with patch("signetloop.aperture.bootstrap.wait_for_port") as mock_wait:
        bootstrap.wait_for_dependencies(settings)

    assert mock_wait.call_args_list == [
        call("localhost", 2379, settings.readiness_interval_seconds),
        call("localhost", 10009, settings.readiness_interval_seconds),
    ]


def test_aperture_argv(settings):
    assert bootstrap.aperture_argv(settings) == [
        "/bin/aperture",
        f"--configfile={settings.aperture_dir}/aperture.yaml",
    ]


def test_run_execs_aperture_after_waiting(settings):
    order = []

    with (
        patch(
            "signetloop.aperture.bootstrap.wait_for_port",
            side_effect=lambda host, port, interval: order.append(("wait", port)),
        ),
        patch(
            "signetloop.aperture.bootstrap.os.execv",
            side_effect=lambda path, argv: order.append(("exec", path)),
        ) as mock_execv,
    ):
        bootstrap.run(settings)

    assert order == [("wait", 2379), ("wait", 10009), ("exec", "/bin/aperture")]
    mock_execv.assert_called_once_with("/bin/aperture", bootstrap.aperture_argv(settings))


def test_main_configures_logging_and_runs(settings):
    with (
        patch("signetloop.aperture.bootstrap.get_settings", return_value=settings),
        patch("signetloop.aperture.bootstrap.configure_from_settings") as mock_configure,
        patch("signetloop.aperture.bootstrap.run") as mock_run,
    ):
        bootstrap.main()

    mock_configure.assert_called_once_with(settings)
    mock_run.assert_called_once_with(settings)
    assert get_correlation_id() is not None
