"""
CSV manifest accumulated while a bundle is built.

Every field is double-quoted with inner quotes doubled; rows are joined
with newlines.
"""

from __future__ import annotations

SINGLE_HEADER = ("EvidenceId", "Description", "Link", "Unit", "ResponsibleParty")
BUNDLE_HEADER = ("RequestId", "EvidenceId", "Description", "Link", "Unit", "ResponsibleParty", "Path")


def csv_field(value: object) -> str:
    text = "" if value is None else str(value)
    return '"' + text.replace('"', '""') + '"'


def csv_row(values: tuple | list) -> str:
    return ",".join(csv_field(v) for v in values)


class Manifest:
    """Ordered manifest rows under a fixed header."""

    def __init__(self, header: tuple[str, ...]) -> None:
        self.header = header
        self.rows: list[tuple[str, ...]] = []

    def add(self, *values: str) -> None:
        if len(values) != len(self.header):
            raise ValueError(
                f"Manifest row has {len(values)} fields, header has {len(self.header)}"
            )
        self.rows.append(tuple(values))

    def __len__(self) -> int:
        return len(self.rows)

    def render(self) -> str:
        lines = [csv_row(self.header)]
        lines.extend(csv_row(r) for r in self.rows)
        return "\n".join(lines)
