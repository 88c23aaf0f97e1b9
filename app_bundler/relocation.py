"""Rewriting of library search-path metadata."""

import os
import pathlib
from typing import Protocol

from app_bundler.context import BundlerContext
from app_bundler.errors import MetadataRewriteFailed, ToolError


class Relocator(Protocol):
    """Points a binary's library search path at a directory."""

    def point_at_directory(
        self,
        binary: pathlib.Path,
        directory: pathlib.Path,
        *,
        context: BundlerContext,
    ) -> None:
        ...


def origin_relative_runpath(binary: pathlib.Path, directory: pathlib.Path) -> str:
    """Build an ``$ORIGIN``-relative runpath from ``binary`` to ``directory``.

    :param binary: Binary whose runpath is being set.
    :param directory: Directory the binary should search.
    :returns: ``$ORIGIN`` or ``$ORIGIN/<relative path>``.
    """

    rel: str = os.path.relpath(directory, binary.parent)
    if rel == ".":
        return "$ORIGIN"
    return f"$ORIGIN/{pathlib.PurePath(rel).as_posix()}"


class PatchelfRelocator:
    """Sets ELF runpaths with ``patchelf --set-rpath``.

    ``--set-rpath`` replaces every existing entry, so running it twice with
    the same value is harmless.
    """

    tool: str = "patchelf"

    def set_runpath(self, binary: pathlib.Path, runpath: str, *, context: BundlerContext) -> None:
        """Replace the runpath of ``binary``.

        :param binary: ELF file to modify in place.
        :param runpath: Literal runpath value.
        :param context: Run context.
        :raises MetadataRewriteFailed: If ``patchelf`` fails.
        """

        try:
            context.run_tool([self.tool, "--set-rpath", runpath, str(binary)])
        except ToolError as e:
            raise MetadataRewriteFailed(binary, runpath, e) from e

    def point_at_directory(
        self,
        binary: pathlib.Path,
        directory: pathlib.Path,
        *,
        context: BundlerContext,
    ) -> None:
        runpath: str = origin_relative_runpath(binary, directory)
        context.logger.debug(f"app-bundler: setting runpath of {binary.name} to {runpath}")
        self.set_runpath(binary, runpath, context=context)


class ModuleDirectoryRelocator:
    """No-op relocator for PE modules.

    The Windows loader searches the directory of the loading module first, and
    every copied DLL sits next to the executable.
    """

    def point_at_directory(
        self,
        binary: pathlib.Path,
        directory: pathlib.Path,
        *,
        context: BundlerContext,
    ) -> None:
        if binary.parent.resolve() != directory.resolve():
            context.logger.warning(
                f"app-bundler: {binary.name} can only search its own directory, not {directory}"
            )
