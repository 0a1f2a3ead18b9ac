"""Testnet-deploy inventory action."""

import logging
from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import pathlib
from typing import cast

from testnet_deploy.deploy import TestnetDeployer
from testnet_deploy.format import YamlFormatter
from testnet_deploy.inventory import (
    DeploymentType,
    EnvironmentDetails,
    EnvironmentType,
    write_inventory,
)
from testnet_deploy.reporter import ConsoleReporter

from . import common

_LOGGER = logging.getLogger(__name__)


class InventoryAction:
    """Testnet-deploy inventory action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "inventory",
                help="List the VMs of a testnet",
                description="Print the VMs of every role of a testnet and optionally save them.",
            ),
        )
        args.add_argument("--name", required=True, help="Name of the testnet")
        args.add_argument(
            "--no-refresh",
            dest="refresh",
            action="store_false",
            default=True,
            help="Use the cached inventory instead of querying the cloud provider",
        )
        args.add_argument(
            "--deployment-type",
            choices=[value.value for value in DeploymentType],
            default=DeploymentType.NEW.value,
        )
        args.add_argument(
            "--environment-type",
            choices=[value.value for value in EnvironmentType],
            default=EnvironmentType.DEVELOPMENT.value,
        )
        args.add_argument(
            "--genesis-multiaddr",
            action="store_true",
            default=False,
            help="Look up the address of the genesis node",
        )
        args.add_argument(
            "--output-file",
            type=pathlib.Path,
            default=None,
            help="Write the inventory snapshot to this file",
        )
        args.add_argument(
            "--output",
            "-o",
            choices=["yaml"],
            default=None,
            help="Also print the inventory snapshot in this format",
        )
        common.add_codebase_flags(args)
        common.add_deployer_flags(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        name: str,
        refresh: bool,
        deployment_type: str,
        environment_type: str,
        genesis_multiaddr: bool,
        output_file: pathlib.Path | None,
        output: str | None,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        deployer = TestnetDeployer.from_config(
            common.deployer_config(**kwargs), ConsoleReporter()
        )
        multiaddr = None
        if genesis_multiaddr:
            multiaddr, _ = await deployer.get_genesis_multiaddr(name)
        inventory = await deployer.list_inventory(
            name,
            refresh,
            common.codebase(**kwargs),
            environment_details=EnvironmentDetails(
                DeploymentType(deployment_type), EnvironmentType(environment_type)
            ),
            genesis_multiaddr=multiaddr,
        )
        if output == "yaml":
            YamlFormatter().print(inventory.to_dict())
        if output_file:
            await write_inventory(output_file, inventory)
            _LOGGER.info("Wrote inventory snapshot to %s", output_file)
