"""Representation of where the deployed safe network binaries come from.

A deployment uses exactly one codebase variant for its whole lifetime:
- `PreBuilt` uses the released binaries, unless feature flags are requested in
  which case the `main` branch is built with those features.
- `Branch` builds the binaries from a branch in a fork of the repository.
- `Versioned` installs a specific released version of the node.

The variant decides whether a build VM is needed and which archive URL each
playbook is given:
```python
from testnet_deploy.codebase import ArtifactKind, Branch

codebase = Branch(repo_owner="jacderida", branch="custom-branch")
assert codebase.build_required
url = codebase.artifact_url(ArtifactKind.FAUCET, "beta")
```
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum

from .exceptions import InputException

__all__ = [
    "ArtifactKind",
    "CodebaseVariant",
    "PreBuilt",
    "Branch",
    "Versioned",
    "parse_codebase",
]


ARCHIVE_HOST = "https://sn-node.s3.eu-west-2.amazonaws.com"
ARCHIVE_SUFFIX = "x86_64-unknown-linux-musl.tar.gz"
DEFAULT_ORG = "maidsafe"
DEFAULT_BRANCH = "main"


class ArtifactKind(StrEnum):
    """A binary archive that is deployed to the testnet VMs."""

    SAFENODE = "safenode"
    NODE_MANAGER = "safenode-manager"
    NODE_MANAGER_DAEMON = "safenode-manager-daemon"
    FAUCET = "faucet"
    RPC_CLIENT = "safenode_rpc_client"

    @property
    def latest_url(self) -> str:
        """URL of the most recently released archive."""
        return f"https://{_LATEST_BUCKETS[self]}.s3.eu-west-2.amazonaws.com/{self.value}-latest-{ARCHIVE_SUFFIX}"


_LATEST_BUCKETS = {
    ArtifactKind.SAFENODE: "sn-node",
    ArtifactKind.NODE_MANAGER: "sn-node-manager",
    ArtifactKind.NODE_MANAGER_DAEMON: "sn-node-manager",
    ArtifactKind.FAUCET: "sn-faucet",
    ArtifactKind.RPC_CLIENT: "sn-node-rpc-client",
}


def custom_archive_url(
    kind: ArtifactKind, org: str, branch: str, deployment_name: str
) -> str:
    """URL of an archive uploaded by the build VM for a deployment."""
    return f"{ARCHIVE_HOST}/{org}/{branch}/{kind.value}-{deployment_name}-{ARCHIVE_SUFFIX}"


class CodebaseVariant(ABC):
    """Base class for the source of the deployed binaries."""

    @property
    @abstractmethod
    def build_required(self) -> bool:
        """Return True if the binaries must be built on a build VM."""

    @abstractmethod
    def artifact_url(self, kind: ArtifactKind, deployment_name: str) -> str | None:
        """Return the archive URL for the artifact, or None if not installed by URL."""

    @abstractmethod
    def org_and_branch(self) -> tuple[str, str] | None:
        """Return the repository owner and branch the binaries are built from."""

    @abstractmethod
    def describe(self) -> str:
        """Return a human readable description of the variant."""

    @property
    def features_list(self) -> str | None:
        """Feature flags passed to the build, comma separated."""
        return None

    @property
    def node_version(self) -> str | None:
        """Version of safenode to install when it is not installed from a URL."""
        return None

    @property
    def branch_scoped(self) -> bool:
        """Return True if every artifact is published under the source branch."""
        return False


def _join_features(features: list[str] | None) -> str | None:
    if not features:
        return None
    return ",".join(features)


@dataclass(frozen=True)
class PreBuilt(CodebaseVariant):
    """Released binaries, optionally rebuilt from main with feature flags."""

    features: list[str] | None = None

    @property
    def build_required(self) -> bool:
        return bool(self.features)

    def artifact_url(self, kind: ArtifactKind, deployment_name: str) -> str | None:
        if self.features and kind == ArtifactKind.SAFENODE:
            return custom_archive_url(
                kind, DEFAULT_ORG, DEFAULT_BRANCH, deployment_name
            )
        return kind.latest_url

    def org_and_branch(self) -> tuple[str, str] | None:
        if self.features:
            return (DEFAULT_ORG, DEFAULT_BRANCH)
        return None

    @property
    def features_list(self) -> str | None:
        return _join_features(self.features)

    def describe(self) -> str:
        if self.features:
            return f"{DEFAULT_ORG}/{DEFAULT_BRANCH} with features {self.features_list}"
        return "latest release"


@dataclass(frozen=True)
class Branch(CodebaseVariant):
    """Binaries built from a branch of a repository fork."""

    repo_owner: str
    branch: str
    features: list[str] | None = None

    @property
    def build_required(self) -> bool:
        return True

    def artifact_url(self, kind: ArtifactKind, deployment_name: str) -> str | None:
        return custom_archive_url(kind, self.repo_owner, self.branch, deployment_name)

    def org_and_branch(self) -> tuple[str, str] | None:
        return (self.repo_owner, self.branch)

    @property
    def branch_scoped(self) -> bool:
        return True

    @property
    def features_list(self) -> str | None:
        return _join_features(self.features)

    def describe(self) -> str:
        desc = f"{self.repo_owner}/{self.branch}"
        if self.features:
            desc += f" with features {self.features_list}"
        return desc


@dataclass(frozen=True)
class Versioned(CodebaseVariant):
    """A specific released version of the node."""

    version: str

    @property
    def build_required(self) -> bool:
        return False

    def artifact_url(self, kind: ArtifactKind, deployment_name: str) -> str | None:
        # The node manager installs safenode with `--version`
        if kind == ArtifactKind.SAFENODE:
            return None
        return kind.latest_url

    def org_and_branch(self) -> tuple[str, str] | None:
        return None

    def describe(self) -> str:
        return f"safenode version {self.version}"

    @property
    def node_version(self) -> str | None:
        return self.version


def parse_codebase(
    branch: str | None = None,
    repo_owner: str | None = None,
    version: str | None = None,
    features: list[str] | None = None,
) -> CodebaseVariant:
    """Build the codebase variant from command line style arguments."""
    if branch and version:
        raise InputException("A branch and a version cannot be used together")
    if version:
        if features:
            raise InputException("Features cannot be used with a versioned node")
        return Versioned(version=version)
    if branch or repo_owner:
        if not (branch and repo_owner):
            raise InputException("Both the branch and the repository owner are required")
        return Branch(repo_owner=repo_owner, branch=branch, features=features or None)
    return PreBuilt(features=features or None)
