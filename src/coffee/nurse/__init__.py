"""Nurse: consistency verification and repair."""

from .report import Anomaly, AnomalyKind, RepairAction, RepairOutcome, SanityReport
from .service import NurseService

__all__ = [
    "Anomaly",
    "AnomalyKind",
    "NurseService",
    "RepairAction",
    "RepairOutcome",
    "SanityReport",
]
