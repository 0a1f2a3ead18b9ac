"""Testnet-deploy deploy action."""

import logging
from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
from typing import cast

from testnet_deploy.deploy import DeployCmd, DeploymentConfig, TestnetDeployer
from testnet_deploy.extra_vars import LogstashDetails
from testnet_deploy.exceptions import InputException
from testnet_deploy.reporter import ConsoleReporter

from . import common

_LOGGER = logging.getLogger(__name__)

DEFAULT_NODE_COUNT = 20
DEFAULT_VM_COUNT = 10


class DeployAction:
    """Testnet-deploy deploy action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "deploy",
                help="Deploy a new testnet",
                description="Create the VMs for a testnet and provision the nodes.",
            ),
        )
        args.add_argument("--name", required=True, help="Name of the testnet")
        args.add_argument(
            "--node-count",
            type=int,
            default=DEFAULT_NODE_COUNT,
            help="Number of nodes to run on each VM",
        )
        args.add_argument(
            "--vm-count",
            type=int,
            default=DEFAULT_VM_COUNT,
            help="Number of node VMs to create",
        )
        args.add_argument(
            "--public-rpc",
            action="store_true",
            default=False,
            help="Expose the node RPC endpoints on the public address",
        )
        args.add_argument(
            "--env",
            dest="env_variables",
            action=common.EnvAppendAction,
            default=None,
            help="Environment variables for the nodes as key=value (repeatable)",
        )
        args.add_argument(
            "--logstash-stack-name",
            default=None,
            help="Logstash stack the nodes forward their logs to",
        )
        args.add_argument(
            "--logstash-host",
            dest="logstash_hosts",
            action="append",
            default=None,
            help="Address of a logstash host as ip:port (repeatable)",
        )
        common.add_codebase_flags(args)
        common.add_deployer_flags(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        name: str,
        node_count: int,
        vm_count: int,
        public_rpc: bool,
        env_variables: list[tuple[str, str]] | None,
        logstash_stack_name: str | None,
        logstash_hosts: list[str] | None,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        logstash_details = None
        if logstash_stack_name or logstash_hosts:
            if not (logstash_stack_name and logstash_hosts):
                raise InputException(
                    "Both --logstash-stack-name and --logstash-host are required"
                )
            logstash_details = LogstashDetails(logstash_stack_name, logstash_hosts)

        deployer = TestnetDeployer.from_config(
            common.deployer_config(**kwargs), ConsoleReporter()
        )
        config = DeploymentConfig(
            name=name,
            node_count=node_count,
            vm_count=vm_count,
            codebase=common.codebase(**kwargs),
            public_rpc=public_rpc,
            logstash_details=logstash_details,
            env_variables=env_variables,
        )
        result = await DeployCmd(deployer, config).execute()
        _LOGGER.info("Deployment %s finished: %s", name, result.node_provisioning)
