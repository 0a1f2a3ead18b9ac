"""Representation of the hosts provisioned for a testnet.

The inventory of a deployment is read from the ansible dynamic inventory files
that are generated per deployment and per role. A snapshot of the inventory of
every role may be serialized and used later by commands that change an
existing deployment, e.g. adding private nodes.
"""

from dataclasses import dataclass, field
from enum import StrEnum
import logging
from pathlib import Path
from typing import cast

import aiofiles
from mashumaro import DataClassDictMixin
from mashumaro.codecs.yaml import yaml_encode
from mashumaro.config import BaseConfig
from mashumaro.exceptions import InvalidFieldValue, MissingField
import yaml

from .exceptions import InputException

__all__ = [
    "InventoryEntry",
    "InventoryType",
    "DeploymentType",
    "EnvironmentType",
    "EnvironmentDetails",
    "DeploymentInventory",
    "inventory_path",
    "read_inventory",
    "write_inventory",
]

_LOGGER = logging.getLogger(__name__)

INVENTORY_DIR = "inventory"


@dataclass(frozen=True)
class InventoryEntry:
    """A single provisioned VM."""

    name: str
    """Host name of the VM."""

    public_ip: str
    """Public address used to reach the VM."""

    private_ip: str | None = None
    """Address of the VM on the private network, if it has one."""


class InventoryType(StrEnum):
    """Role of a group of VMs in a deployment."""

    GENESIS = "genesis"
    BUILD = "build"
    NODES = "nodes"
    FAUCET = "faucet"
    NAT_GATEWAY = "nat_gateway"
    PRIVATE_NODES = "private_nodes"
    AUDITOR = "auditor"
    UPLOADER = "uploader"
    BOOTSTRAP = "bootstrap"

    @property
    def role(self) -> str:
        """Role name used in the inventory file name."""
        return _INVENTORY_ROLES[self]


_INVENTORY_ROLES = {
    InventoryType.GENESIS: "genesis",
    InventoryType.BUILD: "build",
    InventoryType.NODES: "node",
    # The faucet is deployed to the genesis VM
    InventoryType.FAUCET: "genesis",
    InventoryType.NAT_GATEWAY: "nat_gateway",
    InventoryType.PRIVATE_NODES: "private_node",
    InventoryType.AUDITOR: "auditor",
    InventoryType.UPLOADER: "uploader",
    InventoryType.BOOTSTRAP: "bootstrap_node",
}


def inventory_path(name: str, inventory_type: InventoryType, provider: str) -> Path:
    """Return the path of an inventory file relative to the ansible directory.

    The `provider` is the inventory suffix of the cloud provider e.g. `digital_ocean`.
    """
    return Path(INVENTORY_DIR) / f".{name}_{inventory_type.role}_inventory_{provider}.yml"


class DeploymentType(StrEnum):
    """How the deployment was created."""

    NEW = "new"
    BOOTSTRAP = "bootstrap"


class EnvironmentType(StrEnum):
    """The environment a deployment runs in, which selects the terraform variables."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"

    @property
    def tfvars_filename(self) -> str:
        """Name of the terraform variables file for the environment."""
        if self == EnvironmentType.DEVELOPMENT:
            return "dev.tfvars"
        return f"{self.value}.tfvars"


@dataclass
class EnvironmentDetails:
    """Metadata about the environment of a deployment."""

    deployment_type: DeploymentType = DeploymentType.NEW
    environment_type: EnvironmentType = EnvironmentType.DEVELOPMENT


@dataclass
class DeploymentInventory(DataClassDictMixin):
    """The VMs of every role in a deployment."""

    name: str
    """Name of the deployment."""

    environment_details: EnvironmentDetails = field(default_factory=EnvironmentDetails)

    genesis_vms: list[InventoryEntry] = field(default_factory=list)
    build_vms: list[InventoryEntry] = field(default_factory=list)
    node_vms: list[InventoryEntry] = field(default_factory=list)
    nat_gateway_vms: list[InventoryEntry] = field(default_factory=list)
    private_node_vms: list[InventoryEntry] = field(default_factory=list)
    auditor_vms: list[InventoryEntry] = field(default_factory=list)
    uploader_vms: list[InventoryEntry] = field(default_factory=list)
    bootstrap_node_vms: list[InventoryEntry] = field(default_factory=list)

    genesis_multiaddr: str | None = None
    """Address of the genesis node, when it is known."""

    def role_vms(self, inventory_type: InventoryType) -> list[InventoryEntry]:
        """Return the VMs for the role."""
        return cast(list[InventoryEntry], getattr(self, _ROLE_FIELDS[inventory_type]))

    def set_role_vms(
        self, inventory_type: InventoryType, vms: list[InventoryEntry]
    ) -> None:
        """Replace the VMs for the role."""
        setattr(self, _ROLE_FIELDS[inventory_type], vms)

    @classmethod
    def parse_yaml(cls, content: str) -> "DeploymentInventory":
        """Parse a serialized inventory."""
        try:
            doc = yaml.safe_load(content)
        except yaml.YAMLError as err:
            raise InputException(f"Unable to parse inventory yaml: {err}") from err
        if not isinstance(doc, dict):
            raise InputException(f"Expected inventory object but got: {doc}")
        try:
            return cls.from_dict(doc)
        except (MissingField, InvalidFieldValue) as err:
            raise InputException(f"Invalid inventory: {err}") from err

    def yaml(self) -> str:
        """Return a YAML string representation of the inventory."""
        return cast(str, yaml_encode(self, self.__class__))

    class Config(BaseConfig):
        omit_none = True


_ROLE_FIELDS = {
    InventoryType.GENESIS: "genesis_vms",
    InventoryType.BUILD: "build_vms",
    InventoryType.NODES: "node_vms",
    InventoryType.FAUCET: "genesis_vms",
    InventoryType.NAT_GATEWAY: "nat_gateway_vms",
    InventoryType.PRIVATE_NODES: "private_node_vms",
    InventoryType.AUDITOR: "auditor_vms",
    InventoryType.UPLOADER: "uploader_vms",
    InventoryType.BOOTSTRAP: "bootstrap_node_vms",
}


async def read_inventory(inventory_file: Path) -> DeploymentInventory:
    """Return the contents of a serialized inventory snapshot.

    A snapshot is typically created by `testnet-deploy inventory --output-file`.
    """
    try:
        async with aiofiles.open(str(inventory_file)) as infile:
            content = await infile.read()
    except FileNotFoundError as err:
        raise InputException(f"Inventory file {inventory_file} does not exist") from err
    if not content:
        raise InputException(f"Inventory file {inventory_file} is empty")
    _LOGGER.debug("Read inventory snapshot from %s", inventory_file)
    return DeploymentInventory.parse_yaml(content)


async def write_inventory(inventory_file: Path, inventory: DeploymentInventory) -> None:
    """Write the inventory snapshot to disk."""
    async with aiofiles.open(str(inventory_file), mode="w") as outfile:
        await outfile.write(inventory.yaml())
