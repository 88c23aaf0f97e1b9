"""Target resolution helpers.

Accepts ``native``, a bare platform name (``linux``, ``windows``) or a
Rust/LLVM-like target triple (e.g. ``x86_64-unknown-linux-gnu``,
``x86_64-pc-windows-msvc``) and maps it to one of the supported bundling
platforms.
"""

from dataclasses import dataclass
import sys

from app_bundler.platforms import PLATFORMS, Platform


class TargetResolutionError(ValueError):
    """Raised when a target spec cannot be resolved to a bundling platform."""


@dataclass(frozen=True, slots=True)
class TargetPlatformConfig:
    """Resolved bundling target.

    :ivar spec: Target spec as the user supplied it.
    :ivar platform: Bundling platform.
    """

    spec: str
    platform: Platform


def resolve_target_platform(*, target: str, host_platform: str | None = None) -> TargetPlatformConfig:
    """Resolve a user-supplied target into a :class:`TargetPlatformConfig`.

    :param target: ``native``, a platform name or a target triple.
    :param host_platform: Override for :data:`sys.platform` (``native`` only).
    :returns: Resolved target config.
    :raises TargetResolutionError: If the target is not recognized.
    """

    name: str
    if target == "native":
        name = _platform_name_from_sys_platform(host_platform or sys.platform)
    elif target.lower() in PLATFORMS:
        name = target.lower()
    else:
        name = _platform_name_from_triple(target)

    return TargetPlatformConfig(spec=target, platform=PLATFORMS[name])


def _platform_name_from_sys_platform(sys_platform: str) -> str:
    """Map :data:`sys.platform` to a bundling platform name.

    :param sys_platform: Value like ``linux`` or ``win32``.
    :returns: Platform name.
    :raises TargetResolutionError: If the host can't be bundled for natively.
    """

    if sys_platform.startswith("linux") is True:
        return "linux"
    if sys_platform in ("win32", "cygwin"):
        return "windows"
    raise TargetResolutionError(
        f"No generic bundler for host platform {sys_platform!r}; pass --target explicitly."
    )


def _platform_name_from_triple(target: str) -> str:
    """Extract the platform from a target triple.

    :param target: Triple such as ``aarch64-unknown-linux-gnu``.
    :returns: Platform name.
    :raises TargetResolutionError: If the triple is malformed or unsupported.
    """

    parts: list[str] = target.split("-")
    if len(parts) < 3:
        raise TargetResolutionError(
            f"Unrecognized target spec {target!r}. Provide 'native', 'linux', 'windows' or a target triple."
        )

    os_part: str = parts[2]
    if os_part == "linux":
        return "linux"
    if os_part == "windows":
        return "windows"

    raise TargetResolutionError(
        f"Unsupported OS in target triple {target!r} (os={os_part!r})."
    )
