"""Library for running ansible playbooks against the VMs of a deployment.

Playbooks are run against the dynamic inventory file of a single role, and are
parameterized with an extra vars document:
```python
from testnet_deploy.ansible import AnsibleRunner, Playbook
from testnet_deploy.inventory import InventoryType

runner = AnsibleRunner(Path("resources/ansible"), "digital_ocean")
hosts = await runner.get_inventory("beta", InventoryType.GENESIS, refresh=True)
await runner.run_playbook(
    Playbook.GENESIS_NODE,
    runner.inventory_path("beta", InventoryType.GENESIS),
    "root",
    extra_vars,
)
```
"""

from enum import StrEnum
import json
import logging
from pathlib import Path
from typing import Any

from . import command
from .exceptions import InputException, PlaybookRunError
from .extra_vars import ExtraVarsDocument
from .inventory import InventoryEntry, InventoryType, inventory_path

__all__ = [
    "AnsibleRunner",
    "Playbook",
]

_LOGGER = logging.getLogger(__name__)

ANSIBLE_PLAYBOOK_BIN = "ansible-playbook"
ANSIBLE_INVENTORY_BIN = "ansible-inventory"

PUBLIC_IP_VAR = "ansible_host"
PRIVATE_IP_VAR = "private_ip"


class Playbook(StrEnum):
    """A playbook in the ansible directory."""

    BUILD = "build.yml"
    GENESIS_NODE = "genesis_node.yml"
    NODES = "nodes.yml"
    FAUCET = "faucet.yml"
    RPC_CLIENT = "safenode_rpc_client.yml"
    NAT_GATEWAY = "nat_gateway.yml"
    PRIVATE_NODES = "private_nodes.yml"


def parse_inventory(content: str) -> list[InventoryEntry]:
    """Parse the output of `ansible-inventory --list` into entries.

    Hosts are returned in the order ansible lists them.
    """
    try:
        doc: dict[str, Any] = json.loads(content)
    except json.JSONDecodeError as err:
        raise InputException(f"Unable to parse ansible inventory: {err}") from err
    if not isinstance(doc, dict):
        raise InputException(f"Expected ansible inventory object but got: {doc}")
    hostvars = doc.get("_meta", {}).get("hostvars", {})
    entries = []
    for name, host in hostvars.items():
        if not (public_ip := host.get(PUBLIC_IP_VAR)):
            raise InputException(f"Inventory host {name} has no {PUBLIC_IP_VAR}")
        entries.append(
            InventoryEntry(
                name=name, public_ip=public_ip, private_ip=host.get(PRIVATE_IP_VAR)
            )
        )
    return entries


class AnsibleRunner:
    """Issues ansible commands from the ansible directory."""

    def __init__(
        self,
        working_dir: Path,
        provider: str,
        ssh_private_key: Path | None = None,
        verbose: bool = False,
    ) -> None:
        """Initialize AnsibleRunner.

        The `provider` is the inventory suffix of the cloud provider.
        """
        self._working_dir = working_dir
        self._provider = provider
        self._ssh_private_key = ssh_private_key
        self._verbose = verbose

    @property
    def working_dir(self) -> Path:
        """The ansible directory."""
        return self._working_dir

    def inventory_path(self, name: str, inventory_type: InventoryType) -> Path:
        """Return the inventory file for the role of a deployment."""
        return inventory_path(name, inventory_type, self._provider)

    async def run_playbook(
        self,
        playbook: Playbook,
        inventory: Path,
        user: str,
        extra_vars: ExtraVarsDocument | None = None,
    ) -> None:
        """Run the playbook against the hosts in the inventory."""
        args = [
            ANSIBLE_PLAYBOOK_BIN,
            "--inventory",
            str(inventory),
            "--user",
            user,
        ]
        if self._ssh_private_key:
            args.extend(["--private-key", str(self._ssh_private_key)])
        if extra_vars is not None:
            args.extend(["--extra-vars", str(extra_vars)])
        if self._verbose:
            args.append("-v")
        args.append(playbook.value)
        _LOGGER.debug("Running playbook %s against %s", playbook, inventory)
        await command.run(
            command.Command(args, cwd=self._working_dir, exc=PlaybookRunError)
        )

    async def inventory_list(
        self, inventory: Path, refresh: bool
    ) -> list[InventoryEntry]:
        """List the hosts in the inventory file.

        A refresh discards the cached dynamic inventory and queries the cloud
        provider again.
        """
        args = [ANSIBLE_INVENTORY_BIN, "--inventory", str(inventory), "--list"]
        if refresh:
            args.append("--flush-cache")
        out = await command.run(
            command.Command(args, cwd=self._working_dir, exc=PlaybookRunError)
        )
        return parse_inventory(out)

    async def get_inventory(
        self, name: str, inventory_type: InventoryType, refresh: bool
    ) -> list[InventoryEntry]:
        """List the hosts for the role of a deployment."""
        return await self.inventory_list(
            self.inventory_path(name, inventory_type), refresh
        )
