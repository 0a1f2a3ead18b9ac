"""Library for building the extra vars documents passed to ansible playbooks.

Each playbook run is given a single document on the command line with
`--extra-vars`. The playbooks template against the exact text produced here, so
the document is assembled by hand rather than with a serializer:
```
{ "provider": "digital-ocean", "testnet_name": "beta", "logstash_hosts": ["10.0.0.1:5044"] }
```
Values are written verbatim without escaping.
"""

from collections.abc import Iterable
from dataclasses import dataclass
import logging

from .codebase import ArtifactKind, CodebaseVariant
from .exceptions import MissingRequiredFieldError

__all__ = [
    "ExtraVarsDocument",
    "ExtraVarsBuilder",
    "LogstashDetails",
]

_LOGGER = logging.getLogger(__name__)

SEPARATOR = ", "


@dataclass(frozen=True)
class LogstashDetails:
    """A logstash stack the nodes ship their logs to."""

    stack_name: str
    """Name of the logstash deployment."""

    hosts: list[str]
    """Addresses of the logstash hosts as `ip:port`."""


class ExtraVarsDocument:
    """An ordered set of key/value pairs rendered in the playbook format."""

    def __init__(self) -> None:
        """Initialize ExtraVarsDocument."""
        self._entries: list[str] = []
        self._keys: list[str] = []

    def add_value(self, name: str, value: str) -> "ExtraVarsDocument":
        """Add a string value to the document."""
        self._keys.append(name)
        self._entries.append(f'"{name}": "{value}"')
        return self

    def add_list(self, name: str, values: Iterable[str]) -> "ExtraVarsDocument":
        """Add an array of strings to the document."""
        items = SEPARATOR.join(f'"{value}"' for value in values)
        self._keys.append(name)
        self._entries.append(f'"{name}": [{items}]')
        return self

    @property
    def keys(self) -> list[str]:
        """Names of the values in the document in insertion order."""
        return list(self._keys)

    def __contains__(self, name: object) -> bool:
        return name in self._keys

    def __str__(self) -> str:
        """Render the document."""
        return "{ " + SEPARATOR.join(self._entries) + " }"


class ExtraVarsBuilder:
    """Builds the extra vars document for each stage of a deployment."""

    def __init__(
        self,
        name: str,
        provider: str,
        codebase: CodebaseVariant,
        public_rpc: bool = False,
        logstash_details: LogstashDetails | None = None,
        env_variables: list[tuple[str, str]] | None = None,
    ) -> None:
        """Initialize ExtraVarsBuilder."""
        self._name = name
        self._provider = provider
        self._codebase = codebase
        self._public_rpc = public_rpc
        self._logstash_details = logstash_details
        self._env_variables = env_variables

    @staticmethod
    def _add_genesis_multiaddr(
        doc: ExtraVarsDocument, genesis_multiaddr: str | None
    ) -> None:
        if genesis_multiaddr is None:
            return
        if not genesis_multiaddr:
            raise MissingRequiredFieldError("genesis_multiaddr")
        doc.add_value("genesis_multiaddr", genesis_multiaddr)

    def _base(self) -> ExtraVarsDocument:
        doc = ExtraVarsDocument()
        doc.add_value("provider", self._provider)
        doc.add_value("testnet_name", self._name)
        return doc

    def _add_org_and_branch(self, doc: ExtraVarsDocument) -> None:
        if not self._codebase.branch_scoped:
            return
        if (source := self._codebase.org_and_branch()) is not None:
            org, branch = source
            doc.add_value("branch", branch)
            doc.add_value("org", org)

    def _add_env_variables(self, doc: ExtraVarsDocument) -> None:
        if not self._env_variables:
            return
        doc.add_value(
            "env_variables",
            ",".join(f"{key}={value}" for key, value in self._env_variables),
        )

    def _artifact_url(self, kind: ArtifactKind) -> str:
        url = self._codebase.artifact_url(kind, self._name)
        if url is None:
            raise MissingRequiredFieldError(f"{kind.value} archive url")
        return url

    def build(self) -> ExtraVarsDocument:
        """Document for building custom binaries on the build VM."""
        doc = ExtraVarsDocument()
        source = self._codebase.org_and_branch()
        if not self._codebase.build_required or source is None:
            doc.add_value("custom_bin", "false")
            return doc
        org, branch = source
        doc.add_value("custom_bin", "true")
        doc.add_value("testnet_name", self._name)
        doc.add_value("org", org)
        doc.add_value("branch", branch)
        if features := self._codebase.features_list:
            doc.add_value("safenode_features_list", features)
        return doc

    def node(
        self,
        genesis_multiaddr: str | None = None,
        node_instance_count: int | None = None,
    ) -> ExtraVarsDocument:
        """Document for provisioning the genesis node or the remaining nodes.

        The genesis node itself is provisioned without a genesis address and
        without an instance count.
        """
        doc = self._base()
        self._add_genesis_multiaddr(doc, genesis_multiaddr)
        if node_instance_count is not None:
            doc.add_value("node_instance_count", str(node_instance_count))
        # The playbooks default to false
        if self._public_rpc:
            doc.add_value("public_rpc", "true")
        self._add_node_artifacts(doc)
        self._add_env_variables(doc)
        if self._logstash_details:
            doc.add_value("logstash_stack_name", self._logstash_details.stack_name)
            doc.add_list("logstash_hosts", self._logstash_details.hosts)
        return doc

    def _add_node_artifacts(self, doc: ExtraVarsDocument) -> None:
        if (version := self._codebase.node_version) is not None:
            doc.add_value("version", version)
        else:
            doc.add_value(
                "node_archive_url", self._artifact_url(ArtifactKind.SAFENODE)
            )
        self._add_org_and_branch(doc)
        doc.add_value(
            "node_manager_archive_url", self._artifact_url(ArtifactKind.NODE_MANAGER)
        )
        doc.add_value(
            "node_manager_daemon_archive_url",
            self._artifact_url(ArtifactKind.NODE_MANAGER_DAEMON),
        )

    def _genesis_service(
        self, genesis_multiaddr: str | None, kind: ArtifactKind, key: str
    ) -> ExtraVarsDocument:
        if not genesis_multiaddr:
            raise MissingRequiredFieldError("genesis_multiaddr")
        doc = self._base()
        doc.add_value("genesis_multiaddr", genesis_multiaddr)
        self._add_org_and_branch(doc)
        doc.add_value(key, self._artifact_url(kind))
        return doc

    def faucet(self, genesis_multiaddr: str | None) -> ExtraVarsDocument:
        """Document for deploying the faucet on the genesis VM."""
        return self._genesis_service(
            genesis_multiaddr, ArtifactKind.FAUCET, "faucet_archive_url"
        )

    def rpc_client(self, genesis_multiaddr: str | None) -> ExtraVarsDocument:
        """Document for deploying the safenode RPC client on the genesis VM."""
        return self._genesis_service(
            genesis_multiaddr,
            ArtifactKind.RPC_CLIENT,
            "safenode_rpc_client_archive_url",
        )

    def nat_gateway(self, private_node_ip: str) -> ExtraVarsDocument:
        """Document for provisioning the NAT gateway in front of a private VM."""
        doc = self._base()
        doc.add_value("node_private_ip_eth1", private_node_ip)
        return doc

    def private_nodes(
        self, nat_gateway_private_ip: str, genesis_multiaddr: str | None = None
    ) -> ExtraVarsDocument:
        """Document for provisioning nodes that are only reachable through the gateway."""
        doc = self._base()
        self._add_genesis_multiaddr(doc, genesis_multiaddr)
        doc.add_value("make_vm_private", "true")
        doc.add_value("nat_gateway_private_ip_eth1", nat_gateway_private_ip)
        self._add_node_artifacts(doc)
        self._add_env_variables(doc)
        return doc
