"""Error types raised while bundling.

Every failure is terminal for the bundling run that raised it; nothing here is
retried. Errors carry the offending paths so the CLI can print a single line
that identifies which library and which operation failed.
"""

import pathlib


class BundleError(RuntimeError):
    """Base class for all bundling failures."""


class BuildError(BundleError):
    """Raised when the surrounding bundle layout cannot be produced."""


class ToolError(BundleError):
    """Raised when an external tool cannot be run or exits nonzero.

    :ivar command: Command line that was run.
    :ivar returncode: Exit code, or ``None`` if the tool could not be started.
    :ivar stderr: Captured standard error (may be empty).
    """

    def __init__(self, command: list[str], returncode: int | None, stderr: str) -> None:
        self.command: list[str] = command
        self.returncode: int | None = returncode
        self.stderr: str = stderr
        if returncode is None:
            message: str = f"Failed to run {command[0]!r}"
        else:
            message = f"{' '.join(command)} exited with status {returncode}"
        if len(stderr.strip()) > 0:
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)


class EnumerationFailed(BundleError):
    """Raised when the dependency-listing tool fails for a binary."""

    def __init__(self, binary: pathlib.Path, cause: ToolError) -> None:
        self.binary: pathlib.Path = binary
        self.cause: ToolError = cause
        super().__init__(f"Failed to enumerate dynamic dependencies of {binary}: {cause}")


class MalformedToolOutput(BundleError):
    """Raised when dependency-listing output doesn't have the expected shape.

    :ivar output: The complete raw tool output.
    :ivar reason: Human-readable description of what was missing.
    """

    def __init__(self, output: str, reason: str) -> None:
        self.output: str = output
        self.reason: str = reason
        super().__init__(f"Failed to parse dependency tool output: {reason}")


class UnresolvableLibrary(BundleError):
    """Raised when an allow-listed library can't be located anywhere."""

    def __init__(self, name: str, searched: list[pathlib.Path]) -> None:
        self.name: str = name
        self.searched: list[pathlib.Path] = searched
        super().__init__(
            f"Failed to locate {name!r} (searched {len(searched)} directories)"
        )


class CopyFailed(BundleError):
    """Raised when a library (or its debug info) can't be copied into the bundle."""

    def __init__(self, source: pathlib.Path, destination: pathlib.Path, cause: OSError) -> None:
        self.source: pathlib.Path = source
        self.destination: pathlib.Path = destination
        self.cause: OSError = cause
        super().__init__(f"Failed to copy {source} to {destination}: {cause}")


class MetadataRewriteFailed(BundleError):
    """Raised when a binary's library search path can't be rewritten."""

    def __init__(self, binary: pathlib.Path, search_path: str, cause: ToolError) -> None:
        self.binary: pathlib.Path = binary
        self.search_path: str = search_path
        self.cause: ToolError = cause
        super().__init__(f"Failed to set search path of {binary} to {search_path!r}: {cause}")
