"""Library for reaching the deployed VMs over ssh."""

import asyncio
import logging
from pathlib import Path

from . import command
from .exceptions import ReachabilityTimeoutError, SshException

__all__ = [
    "SshClient",
]

_LOGGER = logging.getLogger(__name__)

SSH_BIN = "ssh"
DEFAULT_MAX_ATTEMPTS = 60
DEFAULT_INTERVAL = 5.0
CONNECT_TIMEOUT = 5
# Seconds a remote command may run before it is abandoned
COMMAND_TIMEOUT = 120.0


class SshClient:
    """Runs commands on remote hosts with the ssh client."""

    def __init__(
        self,
        private_key_path: Path | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        interval: float = DEFAULT_INTERVAL,
        timeout: float = COMMAND_TIMEOUT,
    ) -> None:
        """Initialize SshClient."""
        self._private_key_path = private_key_path
        self._max_attempts = max_attempts
        self._interval = interval
        self._timeout = timeout

    def _args(self, ip_address: str, user: str) -> list[str]:
        args = [
            SSH_BIN,
            "-o",
            "StrictHostKeyChecking=no",
            "-o",
            "UserKnownHostsFile=/dev/null",
            "-o",
            "BatchMode=yes",
            "-o",
            f"ConnectTimeout={CONNECT_TIMEOUT}",
        ]
        if self._private_key_path:
            args.extend(["-i", str(self._private_key_path)])
        args.append(f"{user}@{ip_address}")
        return args

    async def run_command(self, ip_address: str, user: str, remote_cmd: str) -> str:
        """Run a command on the host and return its output."""
        return await command.run(
            command.Command(
                self._args(ip_address, user) + [remote_cmd],
                exc=SshException,
                timeout=self._timeout,
            )
        )

    async def wait_for_ssh_availability(self, ip_address: str, user: str) -> None:
        """Block until the host accepts ssh connections."""
        _LOGGER.info("Waiting for %s to be available over ssh", ip_address)
        for attempt in range(1, self._max_attempts + 1):
            try:
                await self.run_command(ip_address, user, "true")
            except SshException as err:
                _LOGGER.debug(
                    "Attempt %d/%d to reach %s failed: %s",
                    attempt,
                    self._max_attempts,
                    ip_address,
                    err,
                )
                if attempt < self._max_attempts:
                    await asyncio.sleep(self._interval)
                continue
            _LOGGER.info("%s is available over ssh", ip_address)
            return
        raise ReachabilityTimeoutError(ip_address, self._max_attempts)
