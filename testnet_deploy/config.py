"""Configuration objects for testnet-deploy."""

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from .ssh import DEFAULT_INTERVAL, DEFAULT_MAX_ATTEMPTS


class CloudProvider(StrEnum):
    """Cloud provider the VMs are created on."""

    DIGITAL_OCEAN = "digital-ocean"
    AWS = "aws"

    @property
    def ssh_user(self) -> str:
        """User for connecting to the VMs."""
        if self == CloudProvider.AWS:
            return "ubuntu"
        return "root"

    @property
    def inventory_suffix(self) -> str:
        """Suffix of the ansible inventory files for the provider."""
        return self.value.replace("-", "_")


@dataclass
class DeployerConfig:
    """Configuration for the collaborators used by a deployment."""

    working_dir: Path = Path(".")
    """Directory holding the `resources` used for deployments."""

    cloud_provider: CloudProvider = CloudProvider.DIGITAL_OCEAN

    ssh_private_key: Path | None = None
    """Key used by ansible and ssh to log in to the VMs."""

    ansible_verbose: bool = False

    ssh_max_attempts: int = DEFAULT_MAX_ATTEMPTS
    ssh_interval: float = DEFAULT_INTERVAL

    @property
    def ansible_dir(self) -> Path:
        return self.working_dir / "resources" / "ansible"

    @property
    def terraform_dir(self) -> Path:
        return self.working_dir / "resources" / "terraform" / "testnet" / self.cloud_provider.value
