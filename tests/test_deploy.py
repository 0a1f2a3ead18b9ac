"""Tests for the deployment pipeline."""

from pathlib import Path

import pytest

from testnet_deploy.ansible import Playbook
from testnet_deploy.codebase import Branch, PreBuilt, Versioned
from testnet_deploy.deploy import (
    DeployCmd,
    DeploymentConfig,
    StageStatus,
    _parse_genesis_multiaddr,
)
from testnet_deploy.exceptions import (
    DeployerException,
    InfraException,
    InventoryEmptyError,
    PlaybookRunError,
)
from testnet_deploy.inventory import InventoryEntry, InventoryType
from testnet_deploy.reporter import EventKind, RecordingReporter, format_banner

from .fakes import (
    GENESIS_MULTIADDR,
    FakeAnsibleRunner,
    FakeSshClient,
    FakeTerraformRunner,
    make_deployer,
)

NAME = "beta"
GENESIS = InventoryEntry("beta-genesis", "64.0.0.1", "10.0.0.1")
BUILD = InventoryEntry("beta-build", "64.0.0.2", "10.0.0.2")
NODES = [
    InventoryEntry(f"beta-node-{i}", f"64.0.1.{i}", f"10.0.1.{i}") for i in range(1, 4)
]
WARNING_TEXT = "Some nodes failed to provision without error."


@pytest.fixture(name="reporter")
def reporter_fixture() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture(name="terraform")
def terraform_fixture() -> FakeTerraformRunner:
    return FakeTerraformRunner()


@pytest.fixture(name="ansible")
def ansible_fixture(tmp_path: Path) -> FakeAnsibleRunner:
    return FakeAnsibleRunner(
        tmp_path,
        inventories={
            InventoryType.GENESIS: [GENESIS],
            InventoryType.BUILD: [BUILD],
            InventoryType.NODES: NODES,
        },
    )


@pytest.fixture(name="ssh")
def ssh_fixture() -> FakeSshClient:
    return FakeSshClient()


def make_cmd(
    terraform: FakeTerraformRunner,
    ansible: FakeAnsibleRunner,
    ssh: FakeSshClient,
    reporter: RecordingReporter,
    **kwargs: object,
) -> DeployCmd:
    values: dict[str, object] = {
        "name": NAME,
        "node_count": 20,
        "vm_count": 3,
        "codebase": PreBuilt(),
    }
    values.update(kwargs)
    config = DeploymentConfig(**values)  # type: ignore[arg-type]
    return DeployCmd(make_deployer(terraform, ansible, ssh, reporter), config)


async def test_deploy_prebuilt(
    terraform: FakeTerraformRunner,
    ansible: FakeAnsibleRunner,
    ssh: FakeSshClient,
    reporter: RecordingReporter,
) -> None:
    """Test a deployment of released binaries runs every stage in order."""
    result = await make_cmd(terraform, ansible, ssh, reporter).execute()

    assert result.genesis_multiaddr == GENESIS_MULTIADDR
    assert result.node_provisioning.status == StageStatus.SUCCEEDED
    assert not result.partial_failure

    assert terraform.calls == [
        ("workspace_select", NAME),
        ("apply", ([("node_count", "3"), ("use_custom_bin", "false")], None)),
    ]
    assert ansible.playbooks == [
        Playbook.GENESIS_NODE,
        Playbook.NODES,
        Playbook.FAUCET,
        Playbook.RPC_CLIENT,
    ]
    assert [run.inventory for run in ansible.runs] == [
        Path("inventory/.beta_genesis_inventory_digital_ocean.yml"),
        Path("inventory/.beta_node_inventory_digital_ocean.yml"),
        Path("inventory/.beta_genesis_inventory_digital_ocean.yml"),
        Path("inventory/.beta_genesis_inventory_digital_ocean.yml"),
    ]
    assert {run.user for run in ansible.runs} == {"root"}
    assert ssh.waited == [("64.0.0.1", "root")]
    assert ssh.commands == [("64.0.0.1", "root", "safenode-manager status --json")]

    assert "genesis_multiaddr" not in ansible.extra_vars(Playbook.GENESIS_NODE)
    nodes_vars = ansible.extra_vars(Playbook.NODES)
    assert f'"genesis_multiaddr": "{GENESIS_MULTIADDR}"' in nodes_vars
    assert '"node_instance_count": "20"' in nodes_vars
    assert GENESIS_MULTIADDR in ansible.extra_vars(Playbook.FAUCET)
    assert GENESIS_MULTIADDR in ansible.extra_vars(Playbook.RPC_CLIENT)

    assert reporter.messages(EventKind.BANNER) == [
        format_banner(1, 4, "Provision Genesis Node"),
        format_banner(2, 4, "Provision Remaining Nodes"),
        format_banner(3, 4, "Deploy Faucet"),
        format_banner(4, 4, "Provision RPC Client on Genesis Node"),
    ]
    assert f"Obtained multiaddr for genesis node: {GENESIS_MULTIADDR}" in (
        reporter.messages(EventKind.INFO)
    )
    assert not reporter.messages(EventKind.WARNING)
    assert not reporter.messages(EventKind.STAGE_FAILED)

    assert result.inventory is not None
    assert result.inventory.node_vms == NODES
    assert result.inventory.genesis_multiaddr == GENESIS_MULTIADDR


async def test_deploy_branch_builds_first(
    terraform: FakeTerraformRunner,
    ansible: FakeAnsibleRunner,
    ssh: FakeSshClient,
    reporter: RecordingReporter,
) -> None:
    """Test a branch deployment builds the binaries as the first stage."""
    cmd = make_cmd(
        terraform,
        ansible,
        ssh,
        reporter,
        codebase=Branch(repo_owner="jacderida", branch="custom-branch"),
    )
    await cmd.execute()

    assert terraform.calls[1] == (
        "apply",
        ([("node_count", "3"), ("use_custom_bin", "true")], None),
    )
    assert ansible.playbooks[0] == Playbook.BUILD
    assert ansible.runs[0].inventory == Path(
        "inventory/.beta_build_inventory_digital_ocean.yml"
    )
    assert ssh.waited == [("64.0.0.2", "root"), ("64.0.0.1", "root")]
    banners = reporter.messages(EventKind.BANNER)
    assert len(banners) == 5
    assert "Ansible Run 1 of 5: Build Custom Binaries" in banners[0]
    assert "Ansible Run 5 of 5: Provision RPC Client on Genesis Node" in banners[4]
    for playbook in (Playbook.NODES, Playbook.FAUCET, Playbook.RPC_CLIENT):
        assert "jacderida/custom-branch" in ansible.extra_vars(playbook)


async def test_deploy_versioned(
    terraform: FakeTerraformRunner,
    ansible: FakeAnsibleRunner,
    ssh: FakeSshClient,
    reporter: RecordingReporter,
) -> None:
    """Test a versioned deployment installs the node by version."""
    cmd = make_cmd(terraform, ansible, ssh, reporter, codebase=Versioned("1.2.3"))
    await cmd.execute()

    assert Playbook.BUILD not in ansible.playbooks
    nodes_vars = ansible.extra_vars(Playbook.NODES)
    assert '"version": "1.2.3"' in nodes_vars
    assert "node_archive_url" not in nodes_vars


async def test_remaining_nodes_soft_fail(
    terraform: FakeTerraformRunner,
    ansible: FakeAnsibleRunner,
    ssh: FakeSshClient,
    reporter: RecordingReporter,
) -> None:
    """Test a failure provisioning the nodes still completes the deployment."""
    ansible.failing.add(Playbook.NODES)
    result = await make_cmd(terraform, ansible, ssh, reporter).execute()

    assert result.partial_failure
    assert result.node_provisioning.status == StageStatus.PARTIAL_FAILURE
    assert result.node_provisioning.error == "Playbook nodes.yml failed"
    assert ansible.playbooks == [
        Playbook.GENESIS_NODE,
        Playbook.NODES,
        Playbook.FAUCET,
        Playbook.RPC_CLIENT,
    ]
    warnings = reporter.messages(EventKind.WARNING)
    assert len(warnings) == 1
    assert sum(message.count(WARNING_TEXT) for message in reporter.messages()) == 1
    # The warning comes after the inventory has been listed
    assert reporter.events[-1].kind == EventKind.WARNING
    assert not reporter.messages(EventKind.STAGE_FAILED)


@pytest.mark.parametrize(
    ("playbook", "stage"),
    [
        (Playbook.GENESIS_NODE, "provision genesis node"),
        (Playbook.FAUCET, "provision faucet"),
        (Playbook.RPC_CLIENT, "provision safenode rpc client"),
    ],
)
async def test_fatal_stages(
    terraform: FakeTerraformRunner,
    ansible: FakeAnsibleRunner,
    ssh: FakeSshClient,
    reporter: RecordingReporter,
    playbook: Playbook,
    stage: str,
) -> None:
    """Test a failure in any other stage aborts the deployment."""
    ansible.failing.add(playbook)
    with pytest.raises(PlaybookRunError):
        await make_cmd(terraform, ansible, ssh, reporter).execute()

    assert ansible.playbooks[-1] == playbook
    assert reporter.messages(EventKind.STAGE_FAILED) == [
        f"Failed to {stage}: Playbook {playbook} failed"
    ]
    assert not reporter.messages(EventKind.WARNING)


async def test_build_failure_is_fatal(
    terraform: FakeTerraformRunner,
    ansible: FakeAnsibleRunner,
    ssh: FakeSshClient,
    reporter: RecordingReporter,
) -> None:
    """Test a failed build stops before the genesis node."""
    ansible.failing.add(Playbook.BUILD)
    cmd = make_cmd(
        terraform, ansible, ssh, reporter, codebase=PreBuilt(features=["chaos"])
    )
    with pytest.raises(PlaybookRunError):
        await cmd.execute()
    assert ansible.playbooks == [Playbook.BUILD]


async def test_infra_failure_is_fatal(
    ansible: FakeAnsibleRunner,
    ssh: FakeSshClient,
    reporter: RecordingReporter,
) -> None:
    """Test a terraform failure stops before any playbook runs."""
    terraform = FakeTerraformRunner(fail_apply=True)
    with pytest.raises(InfraException):
        await make_cmd(terraform, ansible, ssh, reporter).execute()
    assert not ansible.runs
    assert reporter.messages(EventKind.STAGE_FAILED) == [
        "Failed to create infra: terraform apply failed"
    ]


async def test_empty_genesis_inventory(
    terraform: FakeTerraformRunner,
    ansible: FakeAnsibleRunner,
    ssh: FakeSshClient,
    reporter: RecordingReporter,
) -> None:
    """Test a deployment without a genesis VM fails."""
    ansible.inventories[InventoryType.GENESIS] = []
    with pytest.raises(InventoryEmptyError) as exc_info:
        await make_cmd(terraform, ansible, ssh, reporter).execute()
    assert exc_info.value.role == InventoryType.GENESIS
    assert not ansible.runs


def test_parse_genesis_multiaddr() -> None:
    """Test the genesis address is read from the node manager status."""
    content = """{
        "nodes": [
            {"genesis": false, "listen_addr": ["/ip4/10.0.0.9/tcp/1"]},
            {"genesis": true, "listen_addr": ["/ip4/127.0.0.1/tcp/2", "/ip4/10.0.0.1/tcp/2"]}
        ]
    }"""
    assert _parse_genesis_multiaddr(content) == "/ip4/10.0.0.1/tcp/2"


def test_parse_genesis_multiaddr_skips_loopback_and_empty() -> None:
    """Test every loopback address and empty entries are skipped."""
    content = """{
        "nodes": [
            {"genesis": true, "listen_addr": ["", "/ip4/127.0.0.10/tcp/2", "/ip4/10.0.0.1/tcp/2"]}
        ]
    }"""
    assert _parse_genesis_multiaddr(content) == "/ip4/10.0.0.1/tcp/2"


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        '{"nodes": []}',
        '{"nodes": [{"genesis": true, "listen_addr": ["/ip4/127.0.0.1/tcp/2"]}]}',
        '{"nodes": [{"genesis": true, "listen_addr": [""]}]}',
        "[]",
    ],
)
def test_parse_genesis_multiaddr_invalid(content: str) -> None:
    """Test a status without a usable genesis address."""
    with pytest.raises(DeployerException):
        _parse_genesis_multiaddr(content)


async def test_list_inventory(
    terraform: FakeTerraformRunner,
    ansible: FakeAnsibleRunner,
    ssh: FakeSshClient,
    reporter: RecordingReporter,
) -> None:
    """Test the VMs of every role are reported and collected."""
    ansible.inventories[InventoryType.NAT_GATEWAY] = [
        InventoryEntry("beta-nat-gateway", "64.0.2.1")
    ]
    deployer = make_deployer(terraform, ansible, ssh, reporter)
    inventory = await deployer.list_inventory(
        NAME, False, Versioned("1.2.3"), node_count=20
    )

    assert inventory.genesis_vms == [GENESIS]
    assert inventory.build_vms == [BUILD]
    assert inventory.node_vms == NODES
    assert inventory.nat_gateway_vms[0].private_ip is None
    assert inventory.genesis_multiaddr is None
    assert {refresh for _, refresh in ansible.inventory_calls} == {False}

    messages = reporter.messages(EventKind.INFO)
    assert messages[:4] == [
        "build VMs:",
        "NAME          PUBLIC_IP    PRIVATE_IP",
        "beta-build    64.0.0.2     10.0.0.2",
        "genesis VMs:",
    ]
    assert "beta-nat-gateway    64.0.2.1     -" in messages
    assert messages[-2:] == ["Codebase: safenode version 1.2.3", "Nodes per VM: 20"]


async def test_genesis_without_listen_address(
    terraform: FakeTerraformRunner,
    ansible: FakeAnsibleRunner,
    reporter: RecordingReporter,
) -> None:
    """Test a genesis node without a usable address stops before the nodes."""
    ssh = FakeSshClient(genesis_multiaddr="")
    with pytest.raises(DeployerException):
        await make_cmd(terraform, ansible, ssh, reporter).execute()
    assert ansible.playbooks == [Playbook.GENESIS_NODE]
    assert reporter.messages(EventKind.STAGE_FAILED) == [
        "Failed to get genesis multiaddr: "
        "Unable to find the multiaddr of the genesis node"
    ]
