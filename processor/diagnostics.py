"""Collection of extraction diagnostics."""
import logging
from typing import List, Optional

from processor.models import Diagnostic, DiagnosticKind

logger = logging.getLogger(__name__)


def report(
    diagnostics: Optional[List[Diagnostic]],
    kind: DiagnosticKind,
    field: Optional[str],
    message: str
) -> None:
    """
    Record a diagnostic and log it at debug level.

    Args:
        diagnostics: List receiving the diagnostic, or None to only log it
        kind: Class of the problem
        field: Affected record field, if any
        message: Human readable description
    """
    logger.debug(f"{kind.value} ({field or '-'}): {message}")
    if diagnostics is not None:
        diagnostics.append(Diagnostic(kind=kind, message=message, field=field))
