"""Tests for command library."""

import pytest

from testnet_deploy.command import Command, run
from testnet_deploy.exceptions import CommandException, InfraException, PlaybookRunError


async def test_command() -> None:
    """Test stdout parsing of a command."""
    result = await run(Command(["echo", "Hello"]))
    assert result == "Hello\n"


async def test_command_env() -> None:
    """Test environment variables are passed to the command."""
    result = await run(Command(["printenv", "DEPLOY_NAME"], env={"DEPLOY_NAME": "beta"}))
    assert result == "beta\n"


async def test_failed_command() -> None:
    """Test a failing command."""
    with pytest.raises(CommandException, match="return code 1"):
        await run(Command(["/bin/false"]))


async def test_failed_command_exception_type() -> None:
    """Test a failing command raises the configured exception."""
    with pytest.raises(InfraException):
        await run(Command(["/bin/false"], exc=InfraException))


async def test_command_timeout() -> None:
    """Test a command that does not finish in time."""
    with pytest.raises(CommandException, match="timed out"):
        await run(Command(["sleep", "5"], timeout=0.1))


async def test_failed_command_invalid_utf8() -> None:
    """Test a failure is reported when the output is not valid UTF-8."""
    with pytest.raises(PlaybookRunError, match="return code 2") as exc_info:
        await run(
            Command(
                ["sh", "-c", "printf 'fatal: \\377 host'; exit 2"],
                exc=PlaybookRunError,
            )
        )
    assert "fatal: � host" in str(exc_info.value)


async def test_command_invalid_utf8_output() -> None:
    """Test undecodable output is replaced rather than raised."""
    result = await run(Command(["sh", "-c", "printf 'ok \\377'"]))
    assert result == "ok �"
