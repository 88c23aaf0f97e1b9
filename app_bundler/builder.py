"""Bundle builder.

This module produces a "generic" bundle: a directory that runs in place on the
target platform without the build environment.

- It lays out the bundle directories for the target platform.
- It copies the built executable and any resource bundles from the products
  directory.
- On Linux it writes the ``.desktop`` file (and D-Bus ``.service`` file for
  D-Bus activatable apps) and copies the icon.
- Finally it copies the executable's dynamic library closure into the bundle
  and rewrites search paths (see :mod:`app_bundler.engine`).
"""

from dataclasses import dataclass, field
import logging
import pathlib
import shutil
import time

from app_bundler.context import BundlerContext
from app_bundler.engine import CopyRecord, copy_dynamic_library_dependencies
from app_bundler.errors import BuildError
from app_bundler.layout import BundleLayout
from app_bundler.platforms import Platform


@dataclass(frozen=True, slots=True)
class AppConfig:
    """App configuration.

    :ivar name: App name; used for the bundle and executable names.
    :ivar identifier: Reverse-DNS identifier (e.g. ``com.example.App``).
    :ivar product: Name of the built executable product.
    :ivar icon: Optional icon file to install.
    :ivar dbus_activatable: Whether to generate a D-Bus service file.
    :ivar url_schemes: URL schemes the app handles.
    :ivar helper_executables: Other executable products the app launches;
        copied next to the main executable.
    """

    name: str
    identifier: str
    product: str
    icon: pathlib.Path | None = None
    dbus_activatable: bool = False
    url_schemes: tuple[str, ...] = field(default_factory=tuple)
    helper_executables: tuple[str, ...] = field(default_factory=tuple)


# swift-windowsappsdk looks for its bootstrap DLL at the path SwiftPM uses, so
# this resource bundle must keep its `.resources` extension.
_KEEP_RESOURCES_EXTENSION: frozenset[str] = frozenset({"swift-windowsappsdk_CWinAppSDK"})


def intended_bundle_root(*, app: AppConfig, output_dir: pathlib.Path) -> pathlib.Path:
    return output_dir / f"{app.name}.generic"


def bundle_app(
    *,
    app: AppConfig,
    products_dir: pathlib.Path,
    output_dir: pathlib.Path,
    platform: Platform,
    context: BundlerContext | None = None,
    installation_root: pathlib.PurePosixPath = pathlib.PurePosixPath("/"),
) -> BundleLayout:
    """Build a generic bundle for ``app``.

    :param app: App configuration.
    :param products_dir: Directory the build placed its products in.
    :param output_dir: Directory the ``<name>.generic`` bundle is created in.
    :param platform: Target platform.
    :param context: Run context. Defaults to a fresh one.
    :param installation_root: Where the bundle root will be installed on the
        target system; used for paths written into desktop files.
    :returns: Layout of the created bundle.
    :raises BundleError: If any step fails.
    """

    if context is None:
        context = BundlerContext()
    logger: logging.Logger = context.logger

    if products_dir.is_dir() is False:
        raise BuildError(f"Products directory does not exist: {products_dir}")

    root: pathlib.Path = intended_bundle_root(app=app, output_dir=output_dir)
    layout: BundleLayout = platform.make_layout(root, app_name=app.name, app_identifier=app.identifier)

    t_total0: float = time.perf_counter()
    logger.info(f"app-bundler: bundling '{root.name}' for {platform.name}")
    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"app-bundler: products_dir={products_dir}")
        logger.debug(f"app-bundler: layout={layout}")

    layout.create_directories()

    executable_artifact: pathlib.Path = products_dir / f"{app.product}{platform.executable_suffix}"
    _copy_executable(
        source=executable_artifact,
        destination=layout.executable,
        platform=platform,
        logger=logger,
    )

    _copy_helper_executables(
        names=app.helper_executables,
        products_dir=products_dir,
        bin_dir=layout.bin_dir,
        platform=platform,
        logger=logger,
    )

    _copy_resources(
        source_dir=products_dir,
        destination_dir=layout.resources_dir,
        logger=logger,
    )

    if layout.desktop_file is not None:
        executable_location: pathlib.PurePosixPath = installation_root / layout.executable.relative_to(
            layout.root
        ).as_posix()
        _write_desktop_file(
            path=layout.desktop_file,
            app=app,
            installed_executable=executable_location,
            logger=logger,
        )
        if app.dbus_activatable is True and layout.dbus_service_file is not None:
            _write_dbus_service_file(
                path=layout.dbus_service_file,
                app=app,
                installed_executable=executable_location,
            )

    if app.icon is not None and layout.icon is not None:
        _copy_file(src=app.icon, dst=layout.icon, what="icon")

    logger.info("app-bundler: copying dynamic libraries")
    t_libs0: float = time.perf_counter()
    records: list[CopyRecord] = copy_dynamic_library_dependencies(
        layout.executable,
        destination_dir=layout.library_dir,
        products_dir=products_dir,
        platform=platform,
        context=context,
    )
    t_libs1: float = time.perf_counter()
    logger.info(
        f"app-bundler: relocated {len(records)} libraries in {t_libs1 - t_libs0:.2f}s"
    )

    t_total1: float = time.perf_counter()
    logger.info(f"app-bundler: wrote {root} in {t_total1 - t_total0:.2f}s")
    return layout


def _copy_file(*, src: pathlib.Path, dst: pathlib.Path, what: str) -> None:
    """Copy a single file, converting failures to :class:`BuildError`.

    :param src: Source file.
    :param dst: Destination file.
    :param what: Description used in the error message.
    :raises BuildError: If the copy fails.
    """

    try:
        shutil.copy2(src, dst)
    except OSError as e:
        raise BuildError(f"Failed to copy {what} {src} to {dst}: {e}") from e


def _copy_executable(
    *,
    source: pathlib.Path,
    destination: pathlib.Path,
    platform: Platform,
    logger: logging.Logger,
) -> None:
    """Copy the built executable (and its debug info, if present) into the bundle.

    :param source: Built executable.
    :param destination: Executable location inside the bundle.
    :param platform: Target platform.
    :param logger: Logger for progress output.
    :raises BuildError: If the executable is missing or can't be copied.
    """

    logger.info("app-bundler: copying executable")
    if source.is_file() is False:
        raise BuildError(f"Built executable does not exist: {source}")
    _copy_file(src=source, dst=destination, what="executable")

    if platform.copies_executable_debug_info is True:
        debug_info: pathlib.Path = platform.debug_info_for(source)
        if debug_info.is_file() is True:
            _copy_file(src=debug_info, dst=platform.debug_info_for(destination), what="debug info")


def _copy_helper_executables(
    *,
    names: tuple[str, ...],
    products_dir: pathlib.Path,
    bin_dir: pathlib.Path,
    platform: Platform,
    logger: logging.Logger,
) -> None:
    """Copy other executable products next to the main executable.

    Helpers keep their built file names so the app can find them by name.

    :param names: Helper product names (without any executable suffix).
    :param products_dir: Products directory.
    :param bin_dir: Bundle directory holding executables.
    :param platform: Target platform.
    :param logger: Logger for progress output.
    :raises BuildError: If a helper is missing or can't be copied.
    """

    for name in names:
        file_name: str = f"{name}{platform.executable_suffix}"
        source: pathlib.Path = products_dir / file_name
        logger.info(f"app-bundler: copying helper executable '{file_name}'")
        if source.is_file() is False:
            raise BuildError(f"Helper executable '{name}' does not exist: {source}")
        destination: pathlib.Path = bin_dir / file_name
        _copy_file(src=source, dst=destination, what=f"helper executable '{name}'")

        if platform.copies_executable_debug_info is True:
            debug_info: pathlib.Path = platform.debug_info_for(source)
            if debug_info.is_file() is True:
                _copy_file(src=debug_info, dst=platform.debug_info_for(destination), what="debug info")


def _copy_resources(
    *,
    source_dir: pathlib.Path,
    destination_dir: pathlib.Path,
    logger: logging.Logger,
) -> None:
    """Copy ``*.resources`` bundles from the products directory.

    They're renamed to ``*.bundle`` for consistency across platforms.

    :param source_dir: Products directory.
    :param destination_dir: Bundle resources directory.
    :param logger: Logger for progress output.
    :raises BuildError: If a resource bundle can't be copied.
    """

    try:
        children: list[pathlib.Path] = sorted(source_dir.iterdir())
    except OSError as e:
        raise BuildError(f"Failed to enumerate resource bundles in {source_dir}: {e}") from e

    for child in children:
        if child.suffix != ".resources" or child.is_dir() is False:
            continue
        logger.info(f"app-bundler: copying resource bundle '{child.name}'")

        bundle_name: str = child.stem
        if bundle_name in _KEEP_RESOURCES_EXTENSION:
            dest: pathlib.Path = destination_dir / f"{bundle_name}.resources"
        else:
            dest = destination_dir / f"{bundle_name}.bundle"

        try:
            shutil.copytree(child, dest, dirs_exist_ok=True)
        except (OSError, shutil.Error) as e:
            raise BuildError(f"Failed to copy resource bundle {child} to {dest}: {e}") from e


def encode_ini_section(title: str, properties: list[tuple[str, str]]) -> str:
    """Render a single ``[title]`` section of ``key=value`` lines.

    :param title: Section title.
    :param properties: Ordered key/value pairs.
    :returns: Section text ending in a newline.
    """

    lines: list[str] = [f"[{title}]"]
    for key, value in properties:
        lines.append(f"{key}={value}")
    return "\n".join(lines) + "\n"


def render_desktop_entry(*, app: AppConfig, installed_executable: pathlib.PurePosixPath) -> str:
    """Render the contents of the app's ``.desktop`` file.

    :param app: App configuration.
    :param installed_executable: Executable path once installed.
    :returns: Desktop entry text.
    """

    exec_path: str = str(installed_executable).replace(" ", "\\ ")
    properties: list[tuple[str, str]] = [
        ("Type", "Application"),
        # Desktop entry spec version, not the app version.
        ("Version", "1.0"),
        ("Name", app.name),
        ("Comment", ""),
        ("Exec", f"{exec_path} %U"),
        ("Icon", app.name),
        ("Terminal", "false"),
        ("Categories", ""),
    ]
    if app.dbus_activatable is True:
        properties.append(("DBusActivatable", "true"))
    if len(app.url_schemes) > 0:
        properties.append(
            ("MimeType", ";".join(f"x-scheme-handler/{scheme}" for scheme in app.url_schemes))
        )
    return encode_ini_section("Desktop Entry", properties)


def render_dbus_service(*, app: AppConfig, installed_executable: pathlib.PurePosixPath) -> str:
    properties: list[tuple[str, str]] = [
        ("Name", app.identifier),
        ("Exec", f'"{installed_executable}"'),
    ]
    return encode_ini_section("D-BUS Service", properties)


def _write_desktop_file(
    *,
    path: pathlib.Path,
    app: AppConfig,
    installed_executable: pathlib.PurePosixPath,
    logger: logging.Logger,
) -> None:
    logger.info(f"app-bundler: creating '{path.name}'")
    try:
        path.write_text(
            render_desktop_entry(app=app, installed_executable=installed_executable),
            encoding="utf-8",
        )
    except OSError as e:
        raise BuildError(f"Failed to create desktop file {path}: {e}") from e


def _write_dbus_service_file(
    *,
    path: pathlib.Path,
    app: AppConfig,
    installed_executable: pathlib.PurePosixPath,
) -> None:
    try:
        path.write_text(
            render_dbus_service(app=app, installed_executable=installed_executable),
            encoding="utf-8",
        )
    except OSError as e:
        raise BuildError(f"Failed to create D-Bus service file {path}: {e}") from e
