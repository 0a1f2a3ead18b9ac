"""Exceptions related to testnet-deploy."""

__all__ = [
    "DeployerException",
    "InputException",
    "CommandException",
    "InfraException",
    "PlaybookRunError",
    "SshException",
    "ReachabilityTimeoutError",
    "InventoryEmptyError",
    "MissingRequiredFieldError",
]


class DeployerException(Exception):
    """Generic base exception used for this library."""


class InputException(DeployerException):
    """Raised when the input files or values are not formatted as expected."""


class CommandException(DeployerException):
    """Raised when there is a failure running a subcommand."""


class InfraException(CommandException):
    """Raised when there is a failure running a terraform command."""


class PlaybookRunError(CommandException):
    """Raised when there is a failure running an ansible command."""


class SshException(CommandException):
    """Raised when a command run over ssh fails."""


class ReachabilityTimeoutError(DeployerException):
    """Raised when a host never accepted ssh connections."""

    def __init__(self, ip_address: str, attempts: int) -> None:
        super().__init__(
            f"Host {ip_address} was not reachable over ssh after {attempts} attempts"
        )
        self.ip_address = ip_address
        self.attempts = attempts


class InventoryEmptyError(DeployerException):
    """Raised when a required inventory group has no hosts."""

    def __init__(self, role: str) -> None:
        super().__init__(f"The {role} inventory is empty")
        self.role = role


class MissingRequiredFieldError(DeployerException):
    """Raised when a value required to build a document was not supplied."""

    def __init__(self, field: str) -> None:
        super().__init__(f"The {field} value is required but was not supplied")
        self.field = field
