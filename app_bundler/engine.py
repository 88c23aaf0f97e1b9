"""Copies a binary's dynamic library closure into a bundle and relocates it.

The dependency graph is walked with an explicit worklist. Every copied library
is identified by its destination path; a destination is marked as visited as
soon as it's copied, before its own dependencies are listed, so diamonds and
cycles (``A -> B -> A``) are handled exactly once and the walk terminates.

Each newly copied library is enumerated again even when the listing tool
already reports the transitive closure (``ldd`` does, ``dumpbin`` doesn't).
"""

from collections import deque
from dataclasses import dataclass
import logging
import pathlib
import shutil

from app_bundler.context import BundlerContext
from app_bundler.enumerator import LibraryReference
from app_bundler.errors import CopyFailed, UnresolvableLibrary
from app_bundler.platforms import Platform
from app_bundler.policy import Found, ResolutionOutcome, Skipped, resolve_reference


@dataclass(frozen=True, slots=True)
class CopyRecord:
    """A library copied into the bundle.

    :ivar source: Real (symlink-resolved) file that was copied.
    :ivar destination: File written inside the library directory.
    """

    source: pathlib.Path
    destination: pathlib.Path


def copy_dynamic_library_dependencies(
    binary: pathlib.Path,
    *,
    destination_dir: pathlib.Path,
    products_dir: pathlib.Path,
    platform: Platform,
    context: BundlerContext | None = None,
    visited: set[pathlib.Path] | None = None,
) -> list[CopyRecord]:
    """Copy every bundleable dependency of ``binary`` into ``destination_dir``.

    Copied libraries get a search path pointing at their own directory, and
    ``binary`` itself gets one pointing at ``destination_dir``. There is no
    partial success: the first failure is raised and files already written are
    left on disk for the caller to clean up.

    :param binary: Executable (already inside the bundle) to process.
    :param destination_dir: Bundle library directory.
    :param products_dir: Directory holding the build's products.
    :param platform: Target platform.
    :param context: Run context. Defaults to a fresh one.
    :param visited: Destinations already handled. A fresh set is used if omitted.
    :returns: Records of the libraries copied by this call, in copy order.
    :raises EnumerationFailed: If listing a binary's dependencies fails.
    :raises MalformedToolOutput: If the listing tool's output can't be parsed.
    :raises UnresolvableLibrary: If an allow-listed library can't be found.
    :raises CopyFailed: If a library can't be copied.
    :raises MetadataRewriteFailed: If a search path can't be rewritten.
    """

    if context is None:
        context = BundlerContext()
    if visited is None:
        visited = set()

    logger: logging.Logger = context.logger
    resolved_products: pathlib.Path = products_dir.resolve()
    records: list[CopyRecord] = []

    pending: deque[pathlib.Path] = deque([binary])
    while len(pending) > 0:
        current: pathlib.Path = pending.popleft()
        sources: list[pathlib.Path] = _bundled_sources(
            current,
            products_dir=resolved_products,
            platform=platform,
            context=context,
        )

        for source in sources:
            destination: pathlib.Path = destination_dir / source.name
            if destination in visited:
                continue

            record: CopyRecord = _copy_library(source, destination, platform=platform, context=context)
            visited.add(destination)
            records.append(record)

            platform.relocator.point_at_directory(destination, destination_dir, context=context)
            pending.append(destination)

    platform.relocator.point_at_directory(binary, destination_dir, context=context)
    logger.info(f"app-bundler: copied {len(records)} dynamic libraries for {binary.name}")
    return records


def _bundled_sources(
    binary: pathlib.Path,
    *,
    products_dir: pathlib.Path,
    platform: Platform,
    context: BundlerContext,
) -> list[pathlib.Path]:
    """List the source files of the dependencies of ``binary`` that get bundled.

    :param binary: Binary to enumerate.
    :param products_dir: Symlink-resolved products directory.
    :param platform: Target platform.
    :param context: Run context.
    :returns: Unique source paths in enumerator order.
    :raises UnresolvableLibrary: If an allow-listed library can't be found.
    """

    refs: list[LibraryReference] = platform.enumerator.enumerate(
        binary,
        search_context=products_dir,
        context=context,
    )

    sources: list[pathlib.Path] = []
    for ref in refs:
        context.logger.debug(f"app-bundler: resolving {ref.name!r}")
        outcome: ResolutionOutcome = resolve_reference(
            ref,
            products_dir=products_dir,
            platform=platform,
            environ=context.environ,
        )
        if isinstance(outcome, Skipped):
            continue
        if isinstance(outcome, Found):
            if outcome.path not in sources:
                sources.append(outcome.path)
            continue
        raise UnresolvableLibrary(outcome.name, list(outcome.searched))

    return sources


def _copy_library(
    source: pathlib.Path,
    destination: pathlib.Path,
    *,
    platform: Platform,
    context: BundlerContext,
) -> CopyRecord:
    """Copy a library's real file (and debug info, if any) to ``destination``.

    The destination keeps the name the library was referenced by, not the name
    of the symlink target.

    :param source: Library path, possibly a symlink.
    :param destination: Destination file.
    :param platform: Target platform.
    :param context: Run context.
    :returns: Copy record.
    :raises CopyFailed: If copying fails.
    """

    real_source: pathlib.Path = source.resolve()
    context.logger.debug(f"app-bundler: copying {real_source} -> {destination}")
    try:
        shutil.copy2(real_source, destination)
    except OSError as e:
        raise CopyFailed(real_source, destination, e) from e

    debug_info: pathlib.Path = platform.debug_info_for(real_source)
    if debug_info.is_file() is True:
        debug_destination: pathlib.Path = platform.debug_info_for(destination)
        try:
            shutil.copy2(debug_info, debug_destination)
        except OSError as e:
            raise CopyFailed(debug_info, debug_destination, e) from e

    return CopyRecord(source=real_source, destination=destination)
