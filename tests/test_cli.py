"""Tests for the command line interface."""

import pathlib

import pytest

from app_bundler import cli


def test_cli_bundle_invokes_builder(tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Verify CLI flags are resolved into the builder call."""
    captured: dict[str, object] = {}

    def fake_bundle_app(**kwargs: object) -> None:
        captured.update(kwargs)

    monkeypatch.setattr(cli, "bundle_app", fake_bundle_app)
    code = cli.main(
        [
            "bundle",
            "--products-dir",
            str(tmp_path),
            "--product",
            "App",
            "--identifier",
            "com.example.App",
            "-o",
            str(tmp_path / "out"),
            "--target",
            "linux",
            "--url-scheme",
            "myapp",
            "--dbus-activatable",
            "--helper-executable",
            "AppHelper",
            "--helper-executable",
            "AppDaemon",
        ]
    )

    assert code == 0
    app = captured["app"]
    assert app.name == "App"  # type: ignore[attr-defined]
    assert app.url_schemes == ("myapp",)  # type: ignore[attr-defined]
    assert app.dbus_activatable is True  # type: ignore[attr-defined]
    assert app.helper_executables == ("AppHelper", "AppDaemon")  # type: ignore[attr-defined]
    assert captured["products_dir"] == tmp_path
    assert captured["platform"].name == "linux"  # type: ignore[attr-defined]


def test_cli_reports_bundle_errors(tmp_path: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Verify a failing bundle run logs one error and exits 1."""
    code = cli.main(
        [
            "bundle",
            "--products-dir",
            str(tmp_path / "missing"),
            "--product",
            "App",
            "--identifier",
            "com.example.App",
            "-o",
            str(tmp_path / "out"),
            "--target",
            "linux",
        ]
    )

    assert code == 1
    assert "Products directory does not exist" in capsys.readouterr().err


def test_cli_rejects_unknown_target(tmp_path: pathlib.Path) -> None:
    """Verify an unknown target exits 1."""
    code = cli.main(
        [
            "bundle",
            "--products-dir",
            str(tmp_path),
            "--product",
            "App",
            "--identifier",
            "com.example.App",
            "-o",
            str(tmp_path / "out"),
            "--target",
            "arm64-apple-darwin",
            "-q",
        ]
    )
    assert code == 1
