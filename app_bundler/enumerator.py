"""Dynamic dependency enumeration.

Each supported binary format has one enumerator. All of them run a listing
tool and turn its text output into an ordered list of
:class:`LibraryReference` values, so the relocation engine never sees the
tool's grammar.

- ``ldd`` (ELF): one ``name => path (0xaddress)`` entry per line.
- ``dumpbin /DEPENDENTS`` (PE): a block of bare DLL names below a heading,
  terminated by a blank line.

Individual lines that don't match the entry grammar are dropped. A missing
section heading or terminator is an error.
"""

from dataclasses import dataclass
import pathlib
import re
from typing import Protocol

from app_bundler.context import BundlerContext
from app_bundler.errors import EnumerationFailed, MalformedToolOutput, ToolError


@dataclass(frozen=True, slots=True)
class LibraryReference:
    """A dependency as reported by a listing tool.

    :ivar name: Library name exactly as the tool printed it.
    :ivar path: Absolute path the tool resolved it to, if any.
    """

    name: str
    path: pathlib.Path | None

    @property
    def base_name(self) -> str:
        """File name of the library, without any directory part."""

        if self.path is not None:
            return self.path.name
        return pathlib.PurePath(self.name).name


class Enumerator(Protocol):
    """Lists the direct dynamic dependencies of a binary."""

    def enumerate(
        self,
        binary: pathlib.Path,
        *,
        search_context: pathlib.Path,
        context: BundlerContext,
    ) -> list[LibraryReference]:
        ...


_LDD_LINE_RE: re.Pattern[str] = re.compile(
    r"^(?P<name>\S+)\s+=>\s+(?:(?P<path>/\S.*?)\s+\((?P<addr>0x[0-9a-fA-F]+)\)|(?P<missing>not found))$"
)

_DUMPBIN_HEADING: str = "Image has the following dependencies:"

_DUMPBIN_NAME_RE: re.Pattern[str] = re.compile(r"^[^\s\\/:]+\.[A-Za-z0-9]+$")


def parse_ldd_output(output: str) -> list[LibraryReference]:
    """Parse ``ldd`` output.

    ``ldd`` prints no heading; the whole output is the dependency section.
    The vDSO and the dynamic loader (lines without ``=>``) are dropped, as is
    anything else that doesn't look like an entry.

    :param output: Complete standard output of ``ldd``.
    :returns: References in the order ``ldd`` printed them.
    """

    refs: list[LibraryReference] = []
    for raw in output.splitlines():
        m = _LDD_LINE_RE.match(raw.strip())
        if m is None:
            continue
        path: pathlib.Path | None = None
        if m.group("path") is not None:
            path = pathlib.Path(m.group("path"))
        refs.append(LibraryReference(name=m.group("name"), path=path))
    return refs


def parse_dumpbin_output(output: str) -> list[LibraryReference]:
    """Parse ``dumpbin /DEPENDENTS`` output.

    The dependency block starts two lines below the heading (the heading is
    followed by a blank line) and ends at the next blank line.

    :param output: Complete standard output of ``dumpbin``.
    :returns: References in the order ``dumpbin`` printed them.
    :raises MalformedToolOutput: If the heading or the terminator is missing.
    """

    lines: list[str] = output.splitlines()

    heading_index: int | None = None
    for i, line in enumerate(lines):
        if line.strip() == _DUMPBIN_HEADING:
            heading_index = i
            break
    if heading_index is None:
        raise MalformedToolOutput(output, "Couldn't find section heading")

    start: int = heading_index + 2
    end: int | None = None
    for i in range(start, len(lines)):
        if lines[i].strip() == "":
            end = i
            break
    if end is None:
        raise MalformedToolOutput(output, "Couldn't find end of section")

    refs: list[LibraryReference] = []
    for line in lines[start:end]:
        name: str = line.strip()
        if _DUMPBIN_NAME_RE.match(name) is None:
            continue
        refs.append(LibraryReference(name=name, path=None))
    return refs


class LddEnumerator:
    """Enumerates ELF dependencies with ``ldd``."""

    tool: str = "ldd"

    def enumerate(
        self,
        binary: pathlib.Path,
        *,
        search_context: pathlib.Path,
        context: BundlerContext,
    ) -> list[LibraryReference]:
        """List the dependencies of ``binary``.

        :param binary: ELF executable or shared object.
        :param search_context: Directory exported as ``LD_LIBRARY_PATH``.
        :param context: Run context.
        :returns: Parsed references.
        :raises EnumerationFailed: If ``ldd`` is missing or fails.
        """

        try:
            output: str = context.run_tool(
                [self.tool, str(binary)],
                env={"LD_LIBRARY_PATH": str(search_context)},
            )
        except ToolError as e:
            raise EnumerationFailed(binary, e) from e
        return parse_ldd_output(output)


class DumpbinEnumerator:
    """Enumerates PE dependencies with ``dumpbin /DEPENDENTS``."""

    tool: str = "dumpbin"

    def enumerate(
        self,
        binary: pathlib.Path,
        *,
        search_context: pathlib.Path,
        context: BundlerContext,
    ) -> list[LibraryReference]:
        """List the dependencies of ``binary``.

        ``dumpbin`` reports names only, so ``search_context`` is unused here;
        resolution against the products directory happens in the policy.

        :param binary: PE executable or DLL.
        :param search_context: Products directory (unused).
        :param context: Run context.
        :returns: Parsed references.
        :raises EnumerationFailed: If ``dumpbin`` is missing or fails.
        :raises MalformedToolOutput: If the output can't be parsed.
        """

        try:
            output: str = context.run_tool([self.tool, "/DEPENDENTS", str(binary)])
        except ToolError as e:
            raise EnumerationFailed(binary, e) from e
        return parse_dumpbin_output(output)
