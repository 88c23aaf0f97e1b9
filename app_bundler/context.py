"""Explicit per-run context: logger, environment and external tool runner."""

from dataclasses import dataclass, field
import logging
import os
import subprocess
from typing import Mapping

from app_bundler.errors import ToolError


class ToolRunner:
    """Runs external tools and captures their output.

    Tests substitute a fake with the same ``run`` signature.
    """

    def run(
        self,
        command: list[str],
        *,
        env: Mapping[str, str] | None = None,
        logger: logging.Logger | None = None,
    ) -> str:
        """Run a command to completion.

        :param command: Command and arguments.
        :param env: Optional full environment for the child process.
        :param logger: Optional logger for debug output.
        :returns: Captured standard output.
        :raises ToolError: If the tool is missing or exits nonzero.
        """

        if logger is not None and logger.isEnabledFor(logging.DEBUG) is True:
            logger.debug(f"app-bundler: running {' '.join(command)}")

        try:
            proc = subprocess.run(
                command,
                env=None if env is None else dict(env),
                capture_output=True,
                text=True,
                errors="surrogateescape",
                check=False,
            )
        except OSError as e:
            raise ToolError(command, None, str(e)) from e

        if proc.returncode != 0:
            raise ToolError(command, proc.returncode, proc.stderr)
        return proc.stdout


@dataclass(frozen=True, slots=True)
class BundlerContext:
    """State shared by every step of one bundling run.

    :ivar logger: Logger for progress output.
    :ivar environ: Host environment used for search paths and child processes.
    :ivar runner: Runner used for ``ldd``, ``dumpbin`` and ``patchelf``.
    """

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("app_bundler"))
    environ: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))
    runner: ToolRunner = field(default_factory=ToolRunner)

    def run_tool(self, command: list[str], *, env: Mapping[str, str] | None = None) -> str:
        """Run an external tool through :attr:`runner`.

        :param command: Command and arguments.
        :param env: Extra variables layered over :attr:`environ`.
        :returns: Captured standard output.
        :raises ToolError: If the tool fails.
        """

        full_env: dict[str, str] = dict(self.environ)
        if env is not None:
            full_env.update(env)
        return self.runner.run(command, env=full_env, logger=self.logger)
