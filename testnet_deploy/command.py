"""Library for running the external tools used by a deployment.

Commands are executed without a shell, so arguments such as an extra vars
document are passed through to the tool unchanged.
"""

import asyncio
from dataclasses import dataclass
import logging
import os
from pathlib import Path
import shlex
import subprocess

from .exceptions import CommandException

_LOGGER = logging.getLogger(__name__)

__all__: list[str] = []


@dataclass
class Command:
    """A tool invocation and how to handle its failure."""

    cmd: list[str]
    """Executable followed by its arguments."""

    cwd: Path | None = None

    exc: type[CommandException] = CommandException
    """Raised when the command exits with an error or times out."""

    env: dict[str, str] | None = None
    """Variables added to the environment of the current process."""

    timeout: float | None = None

    def __str__(self) -> str:
        """Render the command as it would be typed in a shell."""
        line = shlex.join(self.cmd)
        return f"({self.cwd}) {line}" if self.cwd else line

    async def run(self) -> bytes:
        """Run the command and return its standard output."""
        _LOGGER.debug("Running command: %s", self)
        proc = await asyncio.create_subprocess_exec(
            *self.cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=self.cwd,
            env={**os.environ, **(self.env or {})},
        )
        try:
            out, err = await proc.communicate()
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise
        if proc.returncode:
            message = "\n".join(
                [f"Command '{self}' failed with return code {proc.returncode}"]
                + [
                    stream.decode("utf-8", errors="replace")
                    for stream in (out, err)
                    if stream
                ]
            )
            _LOGGER.debug(message)
            raise self.exc(message)
        return out


async def run(cmd: Command) -> str:
    """Run the command and return its standard output as text."""
    try:
        out = await asyncio.wait_for(cmd.run(), cmd.timeout)
    except asyncio.TimeoutError as err:
        raise cmd.exc(f"Command '{cmd}' timed out after {cmd.timeout}s") from err
    except FileNotFoundError as err:
        raise cmd.exc(f"Command '{cmd}' could not be started: {err}") from err
    return out.decode("utf-8", errors="replace")
