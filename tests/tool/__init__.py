"""Test helpers for testnet-deploy tools."""

from testnet_deploy.command import Command, run

TESTNET_DEPLOY_BIN = "testnet-deploy"


async def run_command(args: list[str], env: dict[str, str] | None = None) -> str:
    return await run(Command([TESTNET_DEPLOY_BIN] + args, env=env))
