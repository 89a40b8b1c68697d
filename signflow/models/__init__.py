# Models package

from .document import (
    DocumentModel,
    SignatureModel,
    SignatureKind,
    SignatureStatus,
    Placement,
    TERMINAL_STATUSES,
)
from .workflow import SignatureWorkflowModel

__all__ = [
    "DocumentModel",
    "SignatureModel",
    "SignatureKind",
    "SignatureStatus",
    "Placement",
    "TERMINAL_STATUSES",
    "SignatureWorkflowModel",
]
