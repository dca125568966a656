"""Witness validation and immunity audit.

An immunity claim ``immune(X, witness = Y)`` means something only if ``Y``
names a real function, test or proof, or defers to a known external tool.
The audit resolves each claim's witness against a function index of the
workspace. It does not run witnesses or check what they assert.
"""

from __future__ import annotations

import enum
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .index import FunctionIndex, WitnessKind, collect_function_index

__all__ = [
    "Immunity",
    "StatusKind",
    "WitnessStatus",
    "ImmunityAudit",
    "AuditReport",
    "audit",
    "validate_witness",
    "detect_external_tool",
]

_ASCII_LOWER = str.maketrans(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz"
)

# Prefixes (and loose substrings) that mark a witness as owned by an external tool.
_EXTERNAL_TOOLS: tuple[tuple[str, str | None, str], ...] = (
    ("clippy::", "clippy_", "clippy"),
    ("kani::", "kani_proof", "kani"),
    ("prusti::", None, "prusti"),
    ("creusot::", None, "creusot"),
    ("verus::", None, "verus"),
    ("mutants::", None, "cargo-mutants"),
)


@dataclass(frozen=True)
class Immunity:
    """An immunity claim found in source: the antigen, its witness and context."""

    antigen: str
    witness: str
    rationale: str | None = None
    file: Path | None = None
    line: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """A JSON-ready representation of the claim."""
        return {
            "antigen": self.antigen,
            "witness": self.witness,
            "rationale": self.rationale,
            "file": None if self.file is None else str(self.file),
            "line": self.line,
        }


class StatusKind(enum.Enum):
    """The outcome of validating one witness."""

    RESOLVED = "resolved"
    EXTERNAL = "external"
    NOT_FOUND = "not_found"
    MISSING = "missing"


@dataclass(frozen=True)
class WitnessStatus:
    """What the audit determined about a witness.

    ``RESOLVED`` means the name was found, not that the witness ran or that it
    asserts immunity to this particular failure class.
    """

    kind: StatusKind
    location: Path | None = None
    witness_kind: WitnessKind | None = None
    tool_hint: str | None = None
    reason: str | None = None

    @classmethod
    def resolved(cls, location: Path, witness_kind: WitnessKind) -> WitnessStatus:
        return cls(StatusKind.RESOLVED, location=location, witness_kind=witness_kind)

    @classmethod
    def external(cls, tool_hint: str) -> WitnessStatus:
        return cls(StatusKind.EXTERNAL, tool_hint=tool_hint)

    @classmethod
    def not_found(cls, reason: str) -> WitnessStatus:
        return cls(StatusKind.NOT_FOUND, reason=reason)

    @classmethod
    def missing(cls) -> WitnessStatus:
        return cls(StatusKind.MISSING)

    def to_dict(self) -> dict[str, Any]:
        """A JSON-ready mapping tagged by ``status``."""
        data: dict[str, Any] = {"status": self.kind.value}
        if self.kind is StatusKind.RESOLVED:
            data["location"] = str(self.location)
            data["witness_kind"] = self.witness_kind.value if self.witness_kind else None
        elif self.kind is StatusKind.EXTERNAL:
            data["tool_hint"] = self.tool_hint
        elif self.kind is StatusKind.NOT_FOUND:
            data["reason"] = self.reason
        return data


@dataclass(frozen=True)
class ImmunityAudit:
    """The audit result of one immunity claim."""

    immunity: Immunity
    witness_status: WitnessStatus

    def is_well_formed(self) -> bool:
        """True if the witness resolved locally or defers to an external tool."""
        return self.witness_status.kind in (StatusKind.RESOLVED, StatusKind.EXTERNAL)

    def to_dict(self) -> dict[str, Any]:
        return {
            "immunity": self.immunity.to_dict(),
            "witness_status": self.witness_status.to_dict(),
        }


@dataclass
class AuditReport:
    """Audit results for every immunity claim in a workspace."""

    audits: list[ImmunityAudit] = field(default_factory=list)

    def _count(self, kind: StatusKind) -> int:
        return sum(1 for a in self.audits if a.witness_status.kind is kind)

    @property
    def resolved_count(self) -> int:
        return self._count(StatusKind.RESOLVED)

    @property
    def external_count(self) -> int:
        return self._count(StatusKind.EXTERNAL)

    @property
    def broken_count(self) -> int:
        return self._count(StatusKind.NOT_FOUND)

    @property
    def missing_count(self) -> int:
        return self._count(StatusKind.MISSING)

    def all_valid(self) -> bool:
        """True if no witness is broken or missing."""
        return self.broken_count == 0 and self.missing_count == 0

    def problematic_audits(self) -> list[ImmunityAudit]:
        """Audits whose claim is not well formed, in report order."""
        return [a for a in self.audits if not a.is_well_formed()]

    def to_dict(self) -> dict[str, Any]:
        return {
            "audits": [a.to_dict() for a in self.audits],
            "resolved_count": self.resolved_count,
            "external_count": self.external_count,
            "broken_count": self.broken_count,
            "missing_count": self.missing_count,
        }


def audit(
    immunities: Iterable[Immunity], workspace_root: str | os.PathLike[str]
) -> AuditReport:
    """Validate the witness of each claim against the functions under ``workspace_root``.

    Files that cannot be read or lexed are skipped silently.
    """
    index = collect_function_index(workspace_root)
    return AuditReport(
        [ImmunityAudit(imm, validate_witness(imm.witness, index)) for imm in immunities]
    )


def validate_witness(
    witness: str, index: FunctionIndex | Mapping[str, tuple[Path, WitnessKind]]
) -> WitnessStatus:
    """Determine the status of one witness identifier against a function index."""
    trimmed = witness.strip()
    if not trimmed:
        return WitnessStatus.missing()

    tool = detect_external_tool(trimmed)
    if tool is not None:
        return WitnessStatus.external(tool)

    function_name = trimmed.rsplit("::", 1)[-1]
    while function_name.endswith("()"):
        function_name = function_name[:-2]
    function_name = function_name.strip()

    entry = index.get(function_name)
    if entry is None:
        return WitnessStatus.not_found(
            f"no function named `{function_name}` found in any .rs file under the scan root"
        )
    location, kind = entry
    return WitnessStatus.resolved(location, kind)


def detect_external_tool(witness: str) -> str | None:
    """Name the external tool a witness refers to, or None for a local witness."""
    lower = witness.translate(_ASCII_LOWER)
    for prefix, fragment, tool in _EXTERNAL_TOOLS:
        if lower.startswith(prefix) or (fragment is not None and fragment in lower):
            return tool
    return None