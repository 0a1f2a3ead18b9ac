"""Library for running terraform to create the VMs of a deployment.

Each deployment lives in its own terraform workspace named after the
deployment, so the same configuration is applied once per testnet:
```python
from testnet_deploy.terraform import TerraformRunner

runner = TerraformRunner(Path("resources/terraform/testnet/digital-ocean"))
await runner.workspace_select("beta")
await runner.apply([("node_count", "10"), ("use_custom_bin", "false")])
```
"""

import logging
from pathlib import Path

from . import command
from .exceptions import InfraException

__all__ = [
    "TerraformRunner",
]

_LOGGER = logging.getLogger(__name__)

TERRAFORM_BIN = "terraform"


class TerraformRunner:
    """Issues terraform commands in a working directory."""

    def __init__(self, working_dir: Path, binary: str = TERRAFORM_BIN) -> None:
        """Initialize TerraformRunner."""
        self._working_dir = working_dir
        self._binary = binary

    async def _run(self, args: list[str]) -> str:
        return await command.run(
            command.Command(
                [self._binary] + args, cwd=self._working_dir, exc=InfraException
            )
        )

    async def workspace_select(self, name: str) -> None:
        """Select the workspace for the deployment, creating it if needed."""
        _LOGGER.debug("Selecting terraform workspace %s", name)
        await self._run(["workspace", "select", "-or-create", name])

    async def apply(
        self, args: list[tuple[str, str]], tfvars: str | None = None
    ) -> None:
        """Apply the configuration with the variables to the selected workspace."""
        cmd = ["apply", "-auto-approve", "-input=false"]
        for key, value in args:
            cmd.extend(["-var", f"{key}={value}"])
        if tfvars:
            cmd.append(f"-var-file={tfvars}")
        await self._run(cmd)
