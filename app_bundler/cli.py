"""Command line interface for app-bundler."""

import argparse
import logging
import pathlib
import sys

from app_bundler.builder import AppConfig, bundle_app
from app_bundler.context import BundlerContext
from app_bundler.errors import BundleError
from app_bundler.target import TargetPlatformConfig, TargetResolutionError, resolve_target_platform


def _configure_logging(*, verbose: int, quiet: int) -> logging.Logger:
    """Configure the app-bundler logger.

    :param verbose: Verbosity count (0+).
    :param quiet: Quietness count (0+).
    :returns: Configured logger.
    """

    level: int = logging.INFO
    if quiet >= 2:
        level = logging.ERROR
    elif quiet >= 1:
        level = logging.WARNING
    elif verbose >= 1:
        level = logging.DEBUG

    logger: logging.Logger = logging.getLogger("app_bundler")
    logger.setLevel(level)
    logger.propagate = False

    handler: logging.Handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.handlers.clear()
    logger.addHandler(handler)
    return logger


def _build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="app-bundler",
        description="Bundle a built executable and its dynamic libraries into a runnable app.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_bundle = subparsers.add_parser(
        "bundle",
        help="Create a generic bundle from a build's products directory.",
    )
    p_bundle.add_argument(
        "--products-dir",
        type=pathlib.Path,
        required=True,
        help="Directory the build placed its executable and libraries in.",
    )
    p_bundle.add_argument(
        "--product",
        type=str,
        required=True,
        help="Name of the executable product (without any .exe suffix).",
    )
    p_bundle.add_argument(
        "--app-name",
        type=str,
        default=None,
        help="App name. Defaults to the product name.",
    )
    p_bundle.add_argument(
        "--identifier",
        type=str,
        required=True,
        help="Reverse-DNS app identifier (e.g. com.example.App).",
    )
    p_bundle.add_argument(
        "-o",
        "--output",
        type=pathlib.Path,
        required=True,
        help="Directory to create the <app>.generic bundle in.",
    )
    p_bundle.add_argument(
        "--target",
        type=str,
        default="native",
        help=(
            "Target platform: 'native', 'linux', 'windows' or a target triple "
            "(e.g. x86_64-unknown-linux-gnu)."
        ),
    )
    p_bundle.add_argument(
        "--icon",
        type=pathlib.Path,
        default=None,
        help="Icon file to install (Linux only).",
    )
    p_bundle.add_argument(
        "--dbus-activatable",
        action="store_true",
        help="Generate a D-Bus service file and mark the desktop entry D-Bus activatable.",
    )
    p_bundle.add_argument(
        "--url-scheme",
        dest="url_schemes",
        action="append",
        default=[],
        help="URL scheme handled by the app. Pass multiple times for more schemes.",
    )
    p_bundle.add_argument(
        "--helper-executable",
        dest="helper_executables",
        action="append",
        default=[],
        help="Another executable product to copy next to the main one. Pass multiple times for more.",
    )
    p_bundle.add_argument(
        "--installation-root",
        type=pathlib.PurePosixPath,
        default=pathlib.PurePosixPath("/"),
        help="Where the bundle root will be installed; used in desktop files.",
    )
    p_bundle.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable verbose logging.",
    )
    p_bundle.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Reduce logging. Pass multiple times to suppress more output.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the app-bundler CLI.

    :param argv: Optional argv list (excluding program name).
    :returns: Exit code.
    """

    ns = _build_parser().parse_args(argv)
    if ns.command == "bundle":
        logger: logging.Logger = _configure_logging(verbose=ns.verbose, quiet=ns.quiet)
        app: AppConfig = AppConfig(
            name=ns.app_name if ns.app_name is not None else ns.product,
            identifier=ns.identifier,
            product=ns.product,
            icon=ns.icon,
            dbus_activatable=ns.dbus_activatable,
            url_schemes=tuple(ns.url_schemes),
            helper_executables=tuple(ns.helper_executables),
        )
        try:
            target_cfg: TargetPlatformConfig = resolve_target_platform(target=ns.target)
            bundle_app(
                app=app,
                products_dir=ns.products_dir,
                output_dir=ns.output,
                platform=target_cfg.platform,
                context=BundlerContext(logger=logger),
                installation_root=ns.installation_root,
            )
        except (BundleError, TargetResolutionError) as e:
            logger.error(f"app-bundler: error: {e}")
            return 1
        return 0

    raise AssertionError(f"Unhandled command: {ns.command}")

