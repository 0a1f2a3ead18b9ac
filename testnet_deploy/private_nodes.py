"""Adds nodes that are only reachable through a NAT gateway to a deployment.

The last node VM of an existing deployment is turned into a private VM: a NAT
gateway VM is created in front of it, and nodes are then provisioned on the
private VM with the gateway configured as its route to the network.

This works from a snapshot of the inventory of the deployment, created with
`testnet-deploy inventory --output-file`, rather than looking up every role
again. Only the NAT gateway is looked up since it does not exist until it has
been created.
"""

from dataclasses import dataclass, field
import logging
from pathlib import Path

import aiofiles
import yaml

from .ansible import Playbook
from .codebase import CodebaseVariant, PreBuilt
from .deploy import TestnetDeployer, run_stage
from .exceptions import DeployerException, InventoryEmptyError
from .extra_vars import ExtraVarsBuilder
from .inventory import (
    DeploymentInventory,
    DeploymentType,
    InventoryEntry,
    InventoryType,
    INVENTORY_DIR,
)

__all__ = [
    "PrivateNodeOptions",
    "setup_private_nodes",
]

_LOGGER = logging.getLogger(__name__)

TOTAL_STAGES = 4


@dataclass
class PrivateNodeOptions:
    """Options for adding private nodes to a deployment."""

    current_inventory: DeploymentInventory
    """Snapshot of the deployment the private nodes are added to."""

    codebase: CodebaseVariant = field(default_factory=PreBuilt)


def infra_args(inventory: DeploymentInventory) -> list[tuple[str, str]]:
    """Terraform variables that keep the existing VMs and add the NAT gateway."""
    genesis_vm_count = (
        1 if inventory.environment_details.deployment_type == DeploymentType.NEW else 0
    )
    return [
        ("genesis_vm_count", str(genesis_vm_count)),
        ("auditor_vm_count", str(len(inventory.auditor_vms))),
        ("bootstrap_node_vm_count", str(len(inventory.bootstrap_node_vms))),
        ("node_vm_count", str(len(inventory.node_vms))),
        ("uploader_vm_count", str(len(inventory.uploader_vms))),
        ("use_custom_bin", "false"),
        ("setup_nat_gateway", "true"),
    ]


def find_private_vm(inventory: DeploymentInventory) -> InventoryEntry:
    """Return the last node VM, which will host the private nodes."""
    suffix = f"{inventory.name}-node-{len(inventory.node_vms)}"
    for vm in inventory.node_vms:
        if suffix in vm.name:
            return vm
    raise InventoryEmptyError(InventoryType.NODES)


def static_inventory(
    private_vm: InventoryEntry, nat_gateway: InventoryEntry, user: str
) -> str:
    """Inventory that reaches the private VM by jumping through the gateway."""
    if not private_vm.private_ip:
        raise DeployerException(f"VM {private_vm.name} has no private IP address")
    doc = {
        "all": {
            "hosts": {
                private_vm.name: {
                    "ansible_host": private_vm.private_ip,
                    "ansible_ssh_common_args": (
                        f"-o ProxyJump={user}@{nat_gateway.public_ip}"
                    ),
                }
            }
        }
    }
    return yaml.dump(doc, sort_keys=False, explicit_start=True)


class PrivateNodeSetup:
    """Runs the stages that add private nodes to a deployment."""

    def __init__(self, deployer: TestnetDeployer, options: PrivateNodeOptions) -> None:
        """Initialize PrivateNodeSetup."""
        self._deployer = deployer
        self._inventory = options.current_inventory
        self._reporter = deployer.reporter
        self._extra_vars = ExtraVarsBuilder(
            self._inventory.name,
            deployer.cloud_provider.value,
            options.codebase,
        )

    @property
    def _name(self) -> str:
        return self._inventory.name

    async def execute(self) -> None:
        """Run every stage, stopping at the first failure."""
        await run_stage(
            self._reporter,
            "create infra",
            self._deployer.create_or_update_infra(
                self._name,
                infra_args(self._inventory),
                self._inventory.environment_details.environment_type.tfvars_filename,
            ),
        )

        n = 1
        try:
            private_vm = find_private_vm(self._inventory)
        except InventoryEmptyError as err:
            self._reporter.stage_failed("obtain the inventory of the last vm", err)
            raise

        n += 1
        self._reporter.stage_banner(n, TOTAL_STAGES, "Provision NAT Gateway")
        await run_stage(
            self._reporter,
            "provision NAT gateway",
            self.provision_nat_gateway(private_vm),
        )

        n += 1
        self._reporter.stage_banner(n, TOTAL_STAGES, "Get NAT Gateway inventory")
        nat_gateway = await run_stage(
            self._reporter,
            "get NAT Gateway inventory",
            self._deployer.first_host(
                self._name, InventoryType.NAT_GATEWAY, refresh=True
            ),
        )

        n += 1
        self._reporter.stage_banner(
            n, TOTAL_STAGES, "Provision Private Nodes on the last VM"
        )
        await run_stage(
            self._reporter,
            "provision private nodes",
            self.provision_private_nodes(private_vm, nat_gateway),
        )

    async def provision_nat_gateway(self, private_vm: InventoryEntry) -> None:
        """Provision the NAT gateway for the private VM."""
        if not private_vm.private_ip:
            raise DeployerException(f"VM {private_vm.name} has no private IP address")
        runner = self._deployer.ansible_runner
        await runner.run_playbook(
            Playbook.NAT_GATEWAY,
            runner.inventory_path(self._name, InventoryType.NAT_GATEWAY),
            self._deployer.ssh_user,
            self._extra_vars.nat_gateway(private_vm.private_ip),
        )

    async def provision_private_nodes(
        self, private_vm: InventoryEntry, nat_gateway: InventoryEntry
    ) -> None:
        """Provision the nodes on the private VM behind the NAT gateway."""
        if not nat_gateway.private_ip:
            raise DeployerException(
                f"NAT gateway {nat_gateway.name} has no private IP address"
            )
        runner = self._deployer.ansible_runner
        inventory_file = (
            Path(INVENTORY_DIR)
            / f".{self._name}_private_node_static_inventory_{self._deployer.cloud_provider.inventory_suffix}.yml"
        )
        content = static_inventory(private_vm, nat_gateway, self._deployer.ssh_user)
        async with aiofiles.open(
            str(runner.working_dir / inventory_file), mode="w"
        ) as outfile:
            await outfile.write(content)
        _LOGGER.debug("Wrote private node inventory to %s", inventory_file)

        await runner.run_playbook(
            Playbook.PRIVATE_NODES,
            inventory_file,
            self._deployer.ssh_user,
            self._extra_vars.private_nodes(
                nat_gateway.private_ip, self._inventory.genesis_multiaddr
            ),
        )


async def setup_private_nodes(
    deployer: TestnetDeployer, options: PrivateNodeOptions
) -> None:
    """Add a NAT gateway and private nodes to an existing deployment."""
    await PrivateNodeSetup(deployer, options).execute()
