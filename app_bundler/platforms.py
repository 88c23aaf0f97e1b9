"""Per-platform bundling capabilities.

A :class:`Platform` gathers everything that differs between binary formats
(listing tool, search-path rewriting, allow-list, naming rules, layout) so the
relocation engine and the builder are written once.
"""

from dataclasses import dataclass
import pathlib
from typing import Callable, Mapping

from app_bundler.enumerator import DumpbinEnumerator, Enumerator, LddEnumerator
from app_bundler.layout import BundleLayout, linux_layout, windows_layout
from app_bundler.relocation import ModuleDirectoryRelocator, PatchelfRelocator, Relocator


@dataclass(frozen=True, slots=True)
class Platform:
    """Bundling capability for one target platform.

    :ivar name: Platform name (``linux`` or ``windows``).
    :ivar enumerator: Dependency enumerator for the platform's binary format.
    :ivar relocator: Search-path rewriter.
    :ivar allow_list: Normalized names of libraries that may be redistributed.
    :ivar normalize_name: Maps a library file name to its allow-list key.
    :ivar search_path_variables: Environment variables holding library search
        directories, in lookup order (first one set wins).
    :ivar search_path_separator: Separator used inside those variables.
    :ivar debug_info_for: Maps a library to its debug-info companion path.
    :ivar executable_suffix: Suffix of built executables.
    :ivar copies_executable_debug_info: Whether executables ship with a
        debug-info companion next to them in the products directory.
    :ivar make_layout: Layout factory.
    """

    name: str
    enumerator: Enumerator
    relocator: Relocator
    allow_list: frozenset[str]
    normalize_name: Callable[[str], str]
    search_path_variables: tuple[str, ...]
    search_path_separator: str
    debug_info_for: Callable[[pathlib.Path], pathlib.Path]
    executable_suffix: str
    copies_executable_debug_info: bool
    make_layout: Callable[..., BundleLayout]

    def search_directories(self, environ: Mapping[str, str]) -> list[pathlib.Path]:
        """Split the host search-path variable into directories.

        :param environ: Environment mapping.
        :returns: Directories in listed order; empty entries are dropped.
        """

        value: str = ""
        for var in self.search_path_variables:
            if var in environ:
                value = environ[var]
                break
        return [
            pathlib.Path(part)
            for part in value.split(self.search_path_separator)
            if part.strip() != ""
        ]

    def is_allowed(self, library_name: str) -> bool:
        return self.normalize_name(library_name) in self.allow_list


# Only the Swift runtime and its direct support libraries are bundled. Most
# other system libraries (Gtk in particular) break when moved between
# distributions, and libc must always come from the host.
LINUX_ALLOW_LIST: frozenset[str] = frozenset(
    {
        "libswiftCore",
        "libswiftGlibc",
        "libswiftDispatch",
        "libswiftDistributed",
        "libswiftObservation",
        "libswiftRegexBuilder",
        "libswiftRemoteMirror",
        "libswiftSynchronization",
        "libswiftSwiftOnoneSupport",
        "libBlocksRuntime",
        "libdispatch",
        "libswift_Volatile",
        "libswift_Concurrency",
        "libswift_RegexParser",
        "libswift_StringProcessing",
        "libswift_Backtracing",
        "libswift_Builtin_float",
        "libswift_Differentiation",
        "lib_FoundationICU",
        "lib_InternalSwiftScan",
        "lib_InternalSwiftStaticMirror",
        "libFoundation",
        "libFoundationXML",
        "libFoundationEssentials",
        "libFoundationNetworking",
        "libFoundationInternationalization",
        "libicuuc",
        "libicudata",
        "libicuucswift",
        "libicui18nswift",
        "libicudataswift",
    }
)

_WINDOWS_ALLOWED_MODULES: list[str] = [
    "swiftCore",
    "swiftCRT",
    "swiftDispatch",
    "swiftDistributed",
    "swiftObservation",
    "swiftRegexBuilder",
    "swiftRemoteMirror",
    "swiftSwiftOnoneSupport",
    "swiftSynchronization",
    "swiftWinSDK",
    "Foundation",
    "FoundationXML",
    "FoundationNetworking",
    "FoundationEssentials",
    "FoundationInternationalization",
    "BlocksRuntime",
    "_FoundationICU",
    "_InternalSwiftScan",
    "_InternalSwiftStaticMirror",
    "swift_Concurrency",
    "swift_RegexParser",
    "swift_StringProcessing",
    "swift_Differentiation",
    "concrt140",
    "msvcp140",
    "msvcp140_1",
    "msvcp140_2",
    "msvcp140_atomic_wait",
    "msvcp140_codecvt_ids",
    "vccorlib140",
    "vcruntime140",
    "vcruntime140_1",
    "vcruntime140_threads",
    "dispatch",
]

WINDOWS_ALLOW_LIST: frozenset[str] = frozenset(
    f"{name}.dll".lower() for name in _WINDOWS_ALLOWED_MODULES
)


def _elf_library_stem(file_name: str) -> str:
    # libswiftCore.so.5.10 -> libswiftCore
    return file_name.split(".")[0]


def _pe_module_name(file_name: str) -> str:
    return file_name.lower()


def _elf_debug_info(library: pathlib.Path) -> pathlib.Path:
    return library.with_name(f"{library.name}.debug")


def _pe_debug_info(library: pathlib.Path) -> pathlib.Path:
    return library.with_suffix(".pdb")


LINUX: Platform = Platform(
    name="linux",
    enumerator=LddEnumerator(),
    relocator=PatchelfRelocator(),
    allow_list=LINUX_ALLOW_LIST,
    normalize_name=_elf_library_stem,
    search_path_variables=("LD_LIBRARY_PATH",),
    search_path_separator=":",
    debug_info_for=_elf_debug_info,
    executable_suffix="",
    copies_executable_debug_info=False,
    make_layout=linux_layout,
)

WINDOWS: Platform = Platform(
    name="windows",
    enumerator=DumpbinEnumerator(),
    relocator=ModuleDirectoryRelocator(),
    allow_list=WINDOWS_ALLOW_LIST,
    normalize_name=_pe_module_name,
    search_path_variables=("Path", "PATH"),
    search_path_separator=";",
    debug_info_for=_pe_debug_info,
    executable_suffix=".exe",
    copies_executable_debug_info=True,
    make_layout=windows_layout,
)

PLATFORMS: dict[str, Platform] = {p.name: p for p in (LINUX, WINDOWS)}
