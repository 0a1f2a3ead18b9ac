"""Library for flags shared by the testnet-deploy commands."""

from argparse import (
    ArgumentParser,
    Action,
    ArgumentError,
    Namespace,
)
import logging
import pathlib
from typing import Any

from testnet_deploy.codebase import CodebaseVariant, parse_codebase
from testnet_deploy.config import CloudProvider, DeployerConfig

_LOGGER = logging.getLogger(__name__)


class EnvAppendAction(Action):
    """Append a key=value pair to the argument list."""

    def __call__(
        self,
        parser: ArgumentParser,
        namespace: Namespace,
        values: Any,
        option_string: str | None = None,
    ) -> None:
        result = getattr(namespace, self.dest) or []
        for value in values.split(","):
            if not value:
                continue
            key, sep, val = value.partition("=")
            if not sep or not key:
                raise ArgumentError(self, f"Expected key=value format from '{value}'")
            result.append((key, val))
        setattr(namespace, self.dest, result)


def add_deployer_flags(args: ArgumentParser) -> None:
    """Add flags that configure the deployment tools."""
    args.add_argument(
        "--working-dir",
        help="Directory holding the terraform and ansible resources",
        type=pathlib.Path,
        default=pathlib.Path("."),
    )
    args.add_argument(
        "--provider",
        help="Cloud provider the VMs are created on",
        choices=[provider.value for provider in CloudProvider],
        default=CloudProvider.DIGITAL_OCEAN.value,
    )
    args.add_argument(
        "--ssh-private-key",
        help="Private key used to log in to the VMs",
        type=pathlib.Path,
        default=None,
    )
    args.add_argument(
        "--ansible-verbose",
        help="Run ansible with verbose output",
        action="store_true",
        default=False,
    )


def add_codebase_flags(args: ArgumentParser) -> None:
    """Add flags that select the source of the deployed binaries."""
    args.add_argument(
        "--branch",
        help="Build the binaries from this branch (requires --repo-owner)",
        default=None,
    )
    args.add_argument(
        "--repo-owner",
        help="Owner of the repository fork the branch is in",
        default=None,
    )
    args.add_argument(
        "--safenode-version",
        help="Install this released version of safenode",
        default=None,
    )
    args.add_argument(
        "--safenode-features",
        help="Comma separated features to build safenode with",
        type=lambda value: [feature for feature in value.split(",") if feature],
        default=None,
    )


def deployer_config(**kwargs: Any) -> DeployerConfig:
    """Build the deployer configuration from the flags."""
    return DeployerConfig(
        working_dir=kwargs["working_dir"],
        cloud_provider=CloudProvider(kwargs["provider"]),
        ssh_private_key=kwargs.get("ssh_private_key"),
        ansible_verbose=kwargs.get("ansible_verbose", False),
    )


def codebase(**kwargs: Any) -> CodebaseVariant:
    """Build the codebase variant from the flags."""
    return parse_codebase(
        branch=kwargs.get("branch"),
        repo_owner=kwargs.get("repo_owner"),
        version=kwargs.get("safenode_version"),
        features=kwargs.get("safenode_features"),
    )
