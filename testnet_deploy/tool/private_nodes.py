"""Testnet-deploy private-nodes action."""

import logging
from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import pathlib
from typing import cast

from testnet_deploy.deploy import TestnetDeployer
from testnet_deploy.inventory import read_inventory
from testnet_deploy.private_nodes import PrivateNodeOptions, setup_private_nodes
from testnet_deploy.reporter import ConsoleReporter

from . import common

_LOGGER = logging.getLogger(__name__)


class PrivateNodesAction:
    """Testnet-deploy private-nodes action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "private-nodes",
                help="Add private nodes behind a NAT gateway to a testnet",
                description=(
                    "Turn the last node VM of a testnet into a private VM behind a "
                    "NAT gateway and provision nodes on it."
                ),
            ),
        )
        args.add_argument(
            "--inventory-file",
            type=pathlib.Path,
            required=True,
            help="Inventory snapshot written by `testnet-deploy inventory --output-file`",
        )
        common.add_codebase_flags(args)
        common.add_deployer_flags(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        inventory_file: pathlib.Path,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        inventory = await read_inventory(inventory_file)
        deployer = TestnetDeployer.from_config(
            common.deployer_config(**kwargs), ConsoleReporter()
        )
        await setup_private_nodes(
            deployer,
            PrivateNodeOptions(
                current_inventory=inventory, codebase=common.codebase(**kwargs)
            ),
        )
