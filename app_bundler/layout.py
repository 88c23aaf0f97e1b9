"""Bundle directory layouts for each target platform."""

from dataclasses import dataclass
import pathlib

from app_bundler.errors import BuildError


@dataclass(frozen=True, slots=True)
class BundleLayout:
    """Absolute paths that make up a bundle.

    :ivar root: Bundle root directory.
    :ivar bin_dir: Directory containing executables.
    :ivar executable: Main executable.
    :ivar library_dir: Directory dynamic libraries are copied into.
    :ivar resources_dir: Directory resource bundles are copied into.
    :ivar icon: App icon location (Linux only).
    :ivar desktop_file: ``.desktop`` file location (Linux only).
    :ivar dbus_service_file: D-Bus ``.service`` file location (Linux only).
    """

    root: pathlib.Path
    bin_dir: pathlib.Path
    executable: pathlib.Path
    library_dir: pathlib.Path
    resources_dir: pathlib.Path
    icon: pathlib.Path | None = None
    desktop_file: pathlib.Path | None = None
    dbus_service_file: pathlib.Path | None = None

    def directories(self) -> list[pathlib.Path]:
        """All directories that must exist before anything is copied.

        :returns: Directories, parents before children where it matters.
        """

        dirs: list[pathlib.Path] = [self.root, self.bin_dir, self.library_dir, self.resources_dir]
        for f in (self.icon, self.desktop_file, self.dbus_service_file):
            if f is not None:
                dirs.append(f.parent)
        return dirs

    def create_directories(self) -> None:
        """Create every directory in :meth:`directories`.

        :raises BuildError: If a directory can't be created.
        """

        for d in self.directories():
            try:
                d.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise BuildError(f"Failed to create directory {d}: {e}") from e


def desktop_file_name(app_identifier: str) -> str:
    return f"{app_identifier}.desktop"


def dbus_service_file_name(app_identifier: str) -> str:
    return f"{app_identifier}.service"


def linux_layout(root: pathlib.Path, *, app_name: str, app_identifier: str) -> BundleLayout:
    """Compute the FHS-style layout used on Linux.

    Resources live next to the executable in ``usr/bin``. The icon is stored
    under the 512x512 hicolor directory, which is the largest size desktop
    environments look up.

    :param root: Bundle root.
    :param app_name: App name (used for the executable).
    :param app_identifier: Reverse-DNS app identifier.
    :returns: Layout.
    """

    bin_dir: pathlib.Path = root / "usr" / "bin"
    share: pathlib.Path = root / "usr" / "share"
    return BundleLayout(
        root=root,
        bin_dir=bin_dir,
        executable=bin_dir / app_name,
        library_dir=root / "usr" / "lib",
        resources_dir=bin_dir,
        icon=share / "icons" / "hicolor" / "512x512" / "apps" / f"{app_identifier}.png",
        desktop_file=share / "applications" / desktop_file_name(app_identifier),
        dbus_service_file=share / "dbus-1" / "services" / dbus_service_file_name(app_identifier),
    )


def windows_layout(root: pathlib.Path, *, app_name: str, app_identifier: str) -> BundleLayout:
    """Compute the flat layout used on Windows.

    Executables, DLLs and resources all live in the bundle root.

    :param root: Bundle root.
    :param app_name: App name (used for the executable).
    :param app_identifier: Unused; accepted for a uniform signature.
    :returns: Layout.
    """

    return BundleLayout(
        root=root,
        bin_dir=root,
        executable=root / f"{app_name}.exe",
        library_dir=root,
        resources_dir=root,
    )
