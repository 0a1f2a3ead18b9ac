"""Library for formatting inventories for the console."""

from collections.abc import Iterable
import sys
from typing import Any, Generator, TextIO

import yaml

from .inventory import InventoryEntry

PADDING = 4
MISSING = "-"

VM_COLUMNS = ["name", "public_ip", "private_ip"]


def _cell(value: Any) -> str:
    return MISSING if value is None else str(value)


def format_table(
    headers: list[str], rows: Iterable[list[str]]
) -> Generator[str, None, None]:
    """Yield the rows aligned in columns as wide as their widest value."""
    table = [[header.upper() for header in headers]] + list(rows)
    widths = [max(len(row[i]) for row in table) + PADDING for i in range(len(headers))]
    for row in table:
        yield "".join(value.ljust(width) for value, width in zip(row, widths)).rstrip()


class VmTableFormatter:
    """Formats VMs as a table with one row per VM."""

    def __init__(self, columns: list[str] | None = None) -> None:
        """Initialize VmTableFormatter."""
        self._columns = columns or VM_COLUMNS

    def format(self, vms: list[InventoryEntry]) -> Generator[str, None, None]:
        """Yield the lines of the table, or nothing without any VMs."""
        if not vms:
            return
        rows = [[_cell(getattr(vm, column)) for column in self._columns] for vm in vms]
        yield from format_table(self._columns, rows)


class YamlFormatter:
    """A formatter that prints a yaml document."""

    def print(self, data: Any, file: TextIO = sys.stdout) -> None:
        """Print the data as a single document."""
        print(yaml.dump(data, sort_keys=False, explicit_start=True), end="", file=file)
