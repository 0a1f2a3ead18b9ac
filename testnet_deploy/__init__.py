"""
Library for deploying safe network testnets to the cloud.

A deployment creates VMs with terraform and provisions them with ansible. See
`testnet_deploy.deploy` for a new testnet and `testnet_deploy.private_nodes`
for adding nodes behind a NAT gateway to an existing one.
"""

__all__ = [
    "codebase",
    "deploy",
    "exceptions",
    "extra_vars",
    "inventory",
    "private_nodes",
    # Note this is exposed for CLI documentation, not to be used as a library
    "tool",
]
