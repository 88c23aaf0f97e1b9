"""Decides which dependencies get bundled."""

from dataclasses import dataclass
import pathlib
from typing import Mapping

from app_bundler.enumerator import LibraryReference
from app_bundler.platforms import Platform


@dataclass(frozen=True, slots=True)
class Found:
    """The library should be bundled from ``path``."""

    path: pathlib.Path


@dataclass(frozen=True, slots=True)
class Skipped:
    """The library is left for the host system to provide."""

    name: str


@dataclass(frozen=True, slots=True)
class Unresolvable:
    """The library is allow-listed but couldn't be found.

    :ivar name: Library name.
    :ivar searched: Directories that were searched.
    """

    name: str
    searched: tuple[pathlib.Path, ...] = ()


ResolutionOutcome = Found | Skipped | Unresolvable


def resolve_reference(
    reference: LibraryReference,
    *,
    products_dir: pathlib.Path,
    platform: Platform,
    environ: Mapping[str, str],
) -> ResolutionOutcome:
    """Resolve a dependency reference to a bundling decision.

    Build products always win: a file with the same name in the products
    directory is used even if the name is also allow-listed. Anything else is
    only bundled when allow-listed, and is then looked up first where the
    listing tool said it was, then along the host search path.

    :param reference: Reference reported by the enumerator.
    :param products_dir: Symlink-resolved products directory.
    :param platform: Target platform.
    :param environ: Environment holding the host search path.
    :returns: Resolution outcome.
    """

    base_name: str = reference.base_name

    product: pathlib.Path = products_dir / base_name
    if product.is_file() is True:
        return Found(product)

    if platform.is_allowed(base_name) is False:
        return Skipped(reference.name)

    if reference.path is not None and reference.path.is_file() is True:
        return Found(reference.path)

    searched: list[pathlib.Path] = platform.search_directories(environ)
    for directory in searched:
        candidate: pathlib.Path = directory / base_name
        if candidate.is_file() is True:
            return Found(candidate)

    return Unresolvable(reference.name, tuple(searched))
