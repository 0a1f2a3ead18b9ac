"""Tests for the ansible library."""

import json
from pathlib import Path

import pytest

from testnet_deploy import command
from testnet_deploy.ansible import AnsibleRunner, Playbook, parse_inventory
from testnet_deploy.exceptions import InputException, PlaybookRunError
from testnet_deploy.extra_vars import ExtraVarsDocument
from testnet_deploy.inventory import InventoryEntry, InventoryType

INVENTORY = {
    "_meta": {
        "hostvars": {
            "beta-node-1": {"ansible_host": "64.0.1.1", "private_ip": "10.0.1.1"},
            "beta-node-2": {"ansible_host": "64.0.1.2"},
        }
    },
    "all": {"children": ["ungrouped"]},
}


@pytest.fixture(name="commands")
def commands_fixture(monkeypatch: pytest.MonkeyPatch) -> list[command.Command]:
    """Record commands instead of running them."""
    commands: list[command.Command] = []

    async def fake_run(cmd: command.Command) -> str:
        commands.append(cmd)
        return json.dumps(INVENTORY)

    monkeypatch.setattr(command, "run", fake_run)
    return commands


def test_parse_inventory() -> None:
    """Test the hosts are read from the inventory host variables."""
    assert parse_inventory(json.dumps(INVENTORY)) == [
        InventoryEntry("beta-node-1", "64.0.1.1", "10.0.1.1"),
        InventoryEntry("beta-node-2", "64.0.1.2"),
    ]


def test_parse_empty_inventory() -> None:
    """Test an inventory without hosts."""
    assert parse_inventory('{"all": {"children": ["ungrouped"]}}') == []


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        "[]",
        '{"_meta": {"hostvars": {"beta-node-1": {"private_ip": "10.0.1.1"}}}}',
    ],
    ids=["invalid-json", "not-object", "no-public-ip"],
)
def test_parse_invalid_inventory(content: str) -> None:
    """Test inventory output that cannot be used."""
    with pytest.raises(InputException):
        parse_inventory(content)


async def test_run_playbook(commands: list[command.Command]) -> None:
    """Test the arguments of a playbook run."""
    runner = AnsibleRunner(
        Path("resources/ansible"),
        "digital_ocean",
        ssh_private_key=Path("/keys/id_rsa"),
        verbose=True,
    )
    extra_vars = ExtraVarsDocument().add_value("testnet_name", "beta")
    await runner.run_playbook(
        Playbook.NODES,
        runner.inventory_path("beta", InventoryType.NODES),
        "root",
        extra_vars,
    )

    (cmd,) = commands
    assert cmd.cmd == [
        "ansible-playbook",
        "--inventory",
        "inventory/.beta_node_inventory_digital_ocean.yml",
        "--user",
        "root",
        "--private-key",
        "/keys/id_rsa",
        "--extra-vars",
        '{ "testnet_name": "beta" }',
        "-v",
        "nodes.yml",
    ]
    assert cmd.cwd == Path("resources/ansible")
    assert cmd.exc is PlaybookRunError


@pytest.mark.parametrize(
    ("refresh", "expected_flags"),
    [(True, ["--flush-cache"]), (False, [])],
)
async def test_get_inventory(
    commands: list[command.Command], refresh: bool, expected_flags: list[str]
) -> None:
    """Test listing the hosts of a role."""
    runner = AnsibleRunner(Path("resources/ansible"), "aws")
    hosts = await runner.get_inventory("beta", InventoryType.GENESIS, refresh)
    assert len(hosts) == 2

    (cmd,) = commands
    assert cmd.cmd == [
        "ansible-inventory",
        "--inventory",
        "inventory/.beta_genesis_inventory_aws.yml",
        "--list",
    ] + expected_flags
