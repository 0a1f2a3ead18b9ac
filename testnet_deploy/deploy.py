"""Deployment of a new testnet.

A deployment creates the VMs with terraform and then provisions them with a
fixed sequence of ansible runs:
- Build the custom binaries on the build VM (only when the codebase needs it)
- Provision the genesis node
- Provision the remaining nodes, pointed at the genesis node
- Deploy the faucet on the genesis VM
- Deploy the safenode RPC client on the genesis VM

Every stage is fatal on failure except for the remaining nodes. A few VMs
failing to start their nodes usually still leaves a usable testnet, so that
failure is recorded in the result and reported as a warning at the end.

Example usage:
```python
from testnet_deploy.deploy import DeployCmd, DeploymentConfig, TestnetDeployer

deployer = TestnetDeployer.from_config(DeployerConfig(), ConsoleReporter())
config = DeploymentConfig(name="beta", node_count=20, vm_count=10, codebase=PreBuilt())
result = await DeployCmd(deployer, config).execute()
```
"""

from collections.abc import Awaitable
from dataclasses import dataclass
from enum import StrEnum
import json
import logging
from typing import Any, TypeVar

from .ansible import AnsibleRunner, Playbook
from .codebase import CodebaseVariant
from .config import CloudProvider, DeployerConfig
from .context import stage_context
from .exceptions import (
    DeployerException,
    InventoryEmptyError,
    PlaybookRunError,
)
from .extra_vars import ExtraVarsBuilder, ExtraVarsDocument, LogstashDetails
from .format import VmTableFormatter
from .inventory import (
    DeploymentInventory,
    EnvironmentDetails,
    InventoryEntry,
    InventoryType,
)
from .reporter import Reporter
from .ssh import SshClient
from .terraform import TerraformRunner

__all__ = [
    "DeploymentConfig",
    "DeployCmd",
    "DeployResult",
    "StageResult",
    "StageStatus",
    "TestnetDeployer",
]

_LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")

NODE_MANAGER_STATUS_CMD = "safenode-manager status --json"
LOOPBACK_PREFIX = "/ip4/127."

PARTIAL_FAILURE_WARNING = [
    "Some nodes failed to provision without error.",
    "This usually means a small number of nodes failed to start on a few VMs.",
    "However, most of the time the deployment will still be usable.",
    "See the output from Ansible to determine which VMs had failures.",
]

# Roles listed for the operator after a deployment, in display order
LISTED_ROLES = [
    InventoryType.BUILD,
    InventoryType.GENESIS,
    InventoryType.NODES,
    InventoryType.BOOTSTRAP,
    InventoryType.AUDITOR,
    InventoryType.UPLOADER,
    InventoryType.NAT_GATEWAY,
    InventoryType.PRIVATE_NODES,
]


class StageStatus(StrEnum):
    """Outcome of a stage that is allowed to fail."""

    SUCCEEDED = "Succeeded"
    PARTIAL_FAILURE = "PartialFailure"


@dataclass
class StageResult:
    """Outcome and optional error message for a stage."""

    status: StageStatus
    error: str | None = None

    def __str__(self) -> str:
        """Return a string representation of the result."""
        if self.error:
            return f"{self.status}: {self.error}"
        return str(self.status)


@dataclass(frozen=True)
class DeploymentConfig:
    """The parameters of a single deployment."""

    name: str
    """Name of the deployment, used for the terraform workspace and inventories."""

    node_count: int
    """Number of nodes to run on each node VM."""

    vm_count: int
    """Number of node VMs to create."""

    codebase: CodebaseVariant

    public_rpc: bool = False
    """Whether the node RPC endpoints are reachable on the public address."""

    logstash_details: LogstashDetails | None = None

    env_variables: list[tuple[str, str]] | None = None
    """Environment variables set for the node processes."""


@dataclass
class DeployResult:
    """Result of a deployment that ran to completion."""

    genesis_multiaddr: str
    node_provisioning: StageResult
    inventory: DeploymentInventory | None = None

    @property
    def partial_failure(self) -> bool:
        """Return True if some nodes failed to provision."""
        return self.node_provisioning.status == StageStatus.PARTIAL_FAILURE


def _parse_genesis_multiaddr(content: str) -> str:
    """Return the listen address of the genesis node from the node manager status."""
    try:
        status: dict[str, Any] = json.loads(content)
    except json.JSONDecodeError as err:
        raise DeployerException(f"Unable to parse node manager status: {err}") from err
    if not isinstance(status, dict):
        raise DeployerException(f"Expected node manager status object but got: {status}")
    for node in status.get("nodes", []):
        if not node.get("genesis"):
            continue
        for addr in node.get("listen_addr") or []:
            if addr and not str(addr).startswith(LOOPBACK_PREFIX):
                return str(addr)
    raise DeployerException("Unable to find the multiaddr of the genesis node")


async def run_stage(reporter: Reporter, stage: str, coro: Awaitable[_T]) -> _T:
    """Await a fatal stage, reporting the failure before raising."""
    try:
        return await coro
    except DeployerException as err:
        reporter.stage_failed(stage, err)
        raise


class TestnetDeployer:
    """The collaborators used to deploy and inspect testnets."""

    def __init__(
        self,
        terraform_runner: TerraformRunner,
        ansible_runner: AnsibleRunner,
        ssh_client: SshClient,
        cloud_provider: CloudProvider,
        reporter: Reporter,
    ) -> None:
        """Initialize TestnetDeployer."""
        self.terraform_runner = terraform_runner
        self.ansible_runner = ansible_runner
        self.ssh_client = ssh_client
        self.cloud_provider = cloud_provider
        self.reporter = reporter

    @classmethod
    def from_config(cls, config: DeployerConfig, reporter: Reporter) -> "TestnetDeployer":
        """Create the collaborators from the configuration."""
        return cls(
            TerraformRunner(config.terraform_dir),
            AnsibleRunner(
                config.ansible_dir,
                config.cloud_provider.inventory_suffix,
                ssh_private_key=config.ssh_private_key,
                verbose=config.ansible_verbose,
            ),
            SshClient(
                config.ssh_private_key,
                max_attempts=config.ssh_max_attempts,
                interval=config.ssh_interval,
            ),
            config.cloud_provider,
            reporter,
        )

    @property
    def ssh_user(self) -> str:
        return self.cloud_provider.ssh_user

    async def first_host(
        self, name: str, inventory_type: InventoryType, refresh: bool = True
    ) -> InventoryEntry:
        """Return the first VM of a role, which must exist."""
        hosts = await self.ansible_runner.get_inventory(name, inventory_type, refresh)
        if not hosts:
            raise InventoryEmptyError(inventory_type)
        return hosts[0]

    async def create_or_update_infra(
        self, name: str, args: list[tuple[str, str]], tfvars: str | None = None
    ) -> None:
        """Apply the terraform configuration in the workspace of the deployment."""
        with stage_context("infra", self.reporter):
            self.reporter.info(f"Selecting {name} workspace...")
            await self.terraform_runner.workspace_select(name)
            self.reporter.info("Running terraform apply...")
            await self.terraform_runner.apply(args, tfvars)

    async def get_genesis_multiaddr(self, name: str) -> tuple[str, str]:
        """Return the multiaddr of the genesis node and the IP of its VM."""
        genesis = await self.first_host(name, InventoryType.GENESIS, refresh=False)
        out = await self.ssh_client.run_command(
            genesis.public_ip, self.ssh_user, NODE_MANAGER_STATUS_CMD
        )
        return (_parse_genesis_multiaddr(out), genesis.public_ip)

    async def list_inventory(
        self,
        name: str,
        refresh: bool,
        codebase: CodebaseVariant,
        node_count: int | None = None,
        environment_details: EnvironmentDetails | None = None,
        genesis_multiaddr: str | None = None,
    ) -> DeploymentInventory:
        """Report the VMs of every role in the deployment and return them."""
        inventory = DeploymentInventory(
            name=name,
            environment_details=environment_details or EnvironmentDetails(),
            genesis_multiaddr=genesis_multiaddr,
        )
        formatter = VmTableFormatter()
        for inventory_type in LISTED_ROLES:
            vms = await self.ansible_runner.get_inventory(name, inventory_type, refresh)
            inventory.set_role_vms(inventory_type, vms)
            if not vms:
                continue
            self.reporter.info(f"{inventory_type} VMs:")
            for line in formatter.format(vms):
                self.reporter.info(line)

        self.reporter.info(f"Codebase: {codebase.describe()}")
        if node_count is not None:
            self.reporter.info(f"Nodes per VM: {node_count}")
        if genesis_multiaddr:
            self.reporter.info(f"Genesis multiaddr: {genesis_multiaddr}")
        return inventory


class DeployCmd:
    """Deploys a new testnet."""

    def __init__(self, deployer: TestnetDeployer, config: DeploymentConfig) -> None:
        """Initialize DeployCmd."""
        self._deployer = deployer
        self._config = config
        self._reporter = deployer.reporter
        self._extra_vars = ExtraVarsBuilder(
            config.name,
            deployer.cloud_provider.value,
            config.codebase,
            public_rpc=config.public_rpc,
            logstash_details=config.logstash_details,
            env_variables=config.env_variables,
        )

    async def _stage(self, stage: str, coro: Awaitable[_T]) -> _T:
        return await run_stage(self._reporter, stage, coro)

    async def execute(self) -> DeployResult:
        """Run every stage of the deployment."""
        name = self._config.name
        build_required = self._config.codebase.build_required
        _LOGGER.info("Deploying %s (%s)", name, self._config.codebase.describe())

        await self._stage("create infra", self.create_infra(build_required))

        n = 1
        total = 5 if build_required else 4
        if build_required:
            self._reporter.stage_banner(n, total, "Build Custom Binaries")
            await self._stage(
                "build safe network binaries", self.build_safe_network_binaries()
            )
            n += 1

        self._reporter.stage_banner(n, total, "Provision Genesis Node")
        await self._stage("provision genesis node", self.provision_genesis_node())
        n += 1

        genesis_multiaddr, _ = await self._stage(
            "get genesis multiaddr", self._deployer.get_genesis_multiaddr(name)
        )
        self._reporter.info(f"Obtained multiaddr for genesis node: {genesis_multiaddr}")

        self._reporter.stage_banner(n, total, "Provision Remaining Nodes")
        node_provisioning = await self.provision_remaining_nodes(genesis_multiaddr)
        n += 1

        self._reporter.stage_banner(n, total, "Deploy Faucet")
        await self._stage("provision faucet", self.provision_faucet(genesis_multiaddr))
        n += 1

        self._reporter.stage_banner(n, total, "Provision RPC Client on Genesis Node")
        await self._stage(
            "provision safenode rpc client",
            self.provision_safenode_rpc_client(genesis_multiaddr),
        )

        inventory = await self._stage(
            "list inventory",
            self._deployer.list_inventory(
                name,
                True,
                self._config.codebase,
                self._config.node_count,
                genesis_multiaddr=genesis_multiaddr,
            ),
        )

        result = DeployResult(genesis_multiaddr, node_provisioning, inventory)
        if result.partial_failure:
            self._reporter.warning(PARTIAL_FAILURE_WARNING)
        return result

    async def create_infra(self, enable_build_vm: bool) -> None:
        """Create the VMs for the deployment."""
        await self._deployer.create_or_update_infra(
            self._config.name,
            [
                ("node_count", str(self._config.vm_count)),
                ("use_custom_bin", str(enable_build_vm).lower()),
            ],
        )

    async def _wait_for_host(self, inventory_type: InventoryType) -> None:
        host = await self._deployer.first_host(self._config.name, inventory_type)
        await self._deployer.ssh_client.wait_for_ssh_availability(
            host.public_ip, self._deployer.ssh_user
        )

    async def _run_playbook(
        self,
        playbook: Playbook,
        inventory_type: InventoryType,
        extra_vars: ExtraVarsDocument,
    ) -> None:
        runner = self._deployer.ansible_runner
        await runner.run_playbook(
            playbook,
            runner.inventory_path(self._config.name, inventory_type),
            self._deployer.ssh_user,
            extra_vars,
        )

    async def build_safe_network_binaries(self) -> None:
        """Build the custom binaries on the build VM."""
        with stage_context("build", self._reporter):
            self._reporter.info("Obtaining IP address for build VM...")
            await self._wait_for_host(InventoryType.BUILD)
            self._reporter.info("Running ansible against build VM...")
            await self._run_playbook(
                Playbook.BUILD, InventoryType.BUILD, self._extra_vars.build()
            )

    async def provision_genesis_node(self) -> None:
        """Provision the first node, which the other nodes connect to."""
        with stage_context("genesis", self._reporter):
            await self._wait_for_host(InventoryType.GENESIS)
            await self._run_playbook(
                Playbook.GENESIS_NODE, InventoryType.GENESIS, self._extra_vars.node()
            )

    async def provision_remaining_nodes(self, genesis_multiaddr: str) -> StageResult:
        """Provision the nodes on every node VM.

        A failed playbook run is returned as a partial failure rather than raised.
        """
        extra_vars = self._extra_vars.node(genesis_multiaddr, self._config.node_count)
        try:
            with stage_context("nodes", self._reporter):
                await self._run_playbook(Playbook.NODES, InventoryType.NODES, extra_vars)
        except PlaybookRunError as err:
            _LOGGER.warning("Provisioning the remaining nodes failed: %s", err)
            return StageResult(StageStatus.PARTIAL_FAILURE, str(err))
        self._reporter.info("Provisioned all remaining nodes")
        return StageResult(StageStatus.SUCCEEDED)

    async def provision_faucet(self, genesis_multiaddr: str) -> None:
        """Deploy the faucet on the genesis VM."""
        with stage_context("faucet", self._reporter):
            self._reporter.info("Running ansible against genesis node to deploy faucet...")
            await self._run_playbook(
                Playbook.FAUCET,
                InventoryType.GENESIS,
                self._extra_vars.faucet(genesis_multiaddr),
            )

    async def provision_safenode_rpc_client(self, genesis_multiaddr: str) -> None:
        """Deploy the safenode RPC client on the genesis VM."""
        with stage_context("rpc_client", self._reporter):
            self._reporter.info(
                "Running ansible against genesis node to start safenode_rpc_client service..."
            )
            await self._run_playbook(
                Playbook.RPC_CLIENT,
                InventoryType.GENESIS,
                self._extra_vars.rpc_client(genesis_multiaddr),
            )
