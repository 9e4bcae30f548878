"""Canonical ids, evidence, module resolution and the warning ledger."""

from .evidence import Evidence, aggregate_confidence, cap_evidence
from .ledger import LedgerError, WarningLedger
from .module_resolver import ModuleDescriptor, ModuleResolver

__all__ = [
    "Evidence",
    "LedgerError",
    "ModuleDescriptor",
    "ModuleResolver",
    "WarningLedger",
    "aggregate_confidence",
    "cap_evidence",
]
