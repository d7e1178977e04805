"""Reconciliation of rosters with externally recorded attendance."""
import logging
from datetime import date
from typing import List, Optional

from processor.diagnostics import report
from processor.models import (
    AttendanceStatus,
    Diagnostic,
    DiagnosticKind,
    EventCategory,
    ExternalAttendance,
    Roster,
    SlotAssignment,
)
from processor.reference_data import ReconciliationExceptions

logger = logging.getLogger(__name__)


class Reconciler:
    """Overlays external attendance data onto an extracted roster."""

    def __init__(self, exceptions: ReconciliationExceptions):
        """
        Initialize the reconciler.

        Args:
            exceptions: Known absent players and dated corrections
        """
        self.exceptions = exceptions

    def reconcile(
        self,
        category: EventCategory,
        event_date: Optional[date],
        roster: Optional[Roster],
        external: Optional[ExternalAttendance],
        diagnostics: Optional[List[Diagnostic]] = None
    ) -> Optional[Roster]:
        """
        Set the attendance status of every slot and collect the reserve.

        Slot statuses are only taken from the external record when its
        category matches the event's, or when a category override exists for
        the event date. Unseen external players always go to the reserve.
        The external record is never modified.

        Args:
            category: Category extracted from the thread
            event_date: Date of the event
            roster: Roster built from the thread, or None
            external: Attendance recorded for the event date, or None
            diagnostics: List receiving problems

        Returns:
            The roster with statuses and reserve set, an empty roster holding
            only the reserve if the thread had none, or None
        """
        if roster is not None:
            for slot in roster.slots:
                slot.status = AttendanceStatus.UNKNOWN
            roster.reserve = []

        if external is None:
            return roster

        applies = self._category_matches(category, event_date, external)
        if not applies:
            report(
                diagnostics,
                DiagnosticKind.RECONCILIATION_CONFLICT,
                'category',
                f"External event has category {external.category.value} "
                f"instead of {category.value}"
            )

        if roster is None:
            roster = Roster()

        if applies:
            for slot in roster.slots:
                self._apply_status(slot, external, event_date, diagnostics)

        unseen = dict(external.player_status)
        for player in roster.players():
            unseen.pop(player, None)

        for player, status in unseen.items():
            roster.add_reserve(player, status)

        if unseen:
            logger.debug(f"Added {len(unseen)} players to the reserve")
        return roster

    def _apply_status(
        self,
        slot: SlotAssignment,
        external: ExternalAttendance,
        event_date: Optional[date],
        diagnostics: Optional[List[Diagnostic]]
    ) -> None:
        status = external.get_player_status(slot.player)
        if status is not None:
            slot.status = status
        elif slot.player in self.exceptions.known_absent:
            return
        elif slot.player in self.exceptions.dated_appearances.get(event_date, frozenset()):
            slot.status = AttendanceStatus.APPEARED
        else:
            report(
                diagnostics,
                DiagnosticKind.RECONCILIATION_CONFLICT,
                'roster',
                f"External data says player '{slot.player}' has not "
                f"participated in this event"
            )

    def _category_matches(
        self,
        category: EventCategory,
        event_date: Optional[date],
        external: ExternalAttendance
    ) -> bool:
        if external.category == category:
            return True
        override = self.exceptions.category_overrides.get(event_date)
        return override is not None and override == external.category
