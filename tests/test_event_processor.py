"""Unit tests for EventProcessor."""
from datetime import date, time

import pytest

from processor.event_processor import EventProcessor
from processor.models import (
    AttendanceStatus,
    DiagnosticKind,
    EventCategory,
    ExternalAttendance,
    RoleCategory,
)

THREAD_URL = 'https://www.gruppe-w.de/forum/viewthread.php?thread_id=1234'
TITLE = '[15.03.2014] CO40 Example'
BODY = [
    "<strong>Datum:</strong> 15.03.2014<br />",
    "<strong>Eventbeginn:</strong> 20:00 Uhr<br />",
    "Map: Altis<br />",
    "<strong>Slotliste:</strong><br />",
    "#1 - Squad Leader - <strong>Sunny</strong><br />",
    "#2 - Rifleman - <strong>RaXus</strong><br />",
    "#3 - ??? - <strong>Njal</strong> - nicht bestätigt<br />",
]


@pytest.fixture
def processor(reference):
    """Event processor using the bundled reference data."""
    return EventProcessor(reference)


class TestEventProcessor:
    """Test cases for EventProcessor class."""

    def test_process_thread(self, processor, make_thread):
        """Test extracting a complete event thread."""
        result = processor.process_thread(make_thread(TITLE, BODY), url=THREAD_URL)
        record = result.record

        assert not result.skipped
        assert record.name == 'Example'
        assert record.category == EventCategory.COOP
        assert record.capacity == 40
        assert record.creator == 'DasCleverle'
        assert record.map == 'Altis'
        assert record.date == date(2014, 3, 15)
        assert record.start_time == time(20, 0)
        assert record.thread_id == 1234
        assert record.post_id == 4711
        assert [(slot.slot_key, slot.role, slot.player) for slot in record.roster.slots] == [
            (1, RoleCategory.SL, 'Sunny'),
            (2, RoleCategory.RFL, 'RaXuS'),
            (3, RoleCategory.UNKNOWN, 'Njal'),
        ]
        assert record.roster.slots[2].unconfirmed
        assert all(slot.status == AttendanceStatus.UNKNOWN for slot in record.roster.slots)
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.CLASSIFICATION_MISS]

    def test_process_thread_with_attendance(self, processor, make_thread):
        """Test that external attendance of the event date is merged."""
        attendance = {
            date(2014, 3, 15): ExternalAttendance(EventCategory.COOP, {
                'Sunny': AttendanceStatus.APPEARED,
                'RaXuS': AttendanceStatus.NOT_APPEARED,
                'Bob': AttendanceStatus.EXCUSED,
            }),
            date(2014, 3, 16): ExternalAttendance(EventCategory.COOP, {
                'Anna': AttendanceStatus.APPEARED,
            }),
        }

        result = processor.process_thread(
            make_thread(TITLE, BODY), url=THREAD_URL, attendance=attendance
        )
        roster = result.record.roster

        assert roster.slots[0].status == AttendanceStatus.APPEARED
        assert roster.slots[1].status == AttendanceStatus.NOT_APPEARED
        assert roster.slots[2].status == AttendanceStatus.UNKNOWN
        assert [(entry.player, entry.status) for entry in roster.reserve] == [
            ('Bob', AttendanceStatus.EXCUSED)
        ]
        assert sorted(d.kind.value for d in result.diagnostics) == [
            'CLASSIFICATION_MISS', 'RECONCILIATION_CONFLICT'
        ]

    def test_process_thread_deterministic(self, processor, make_thread):
        """Test that the same thread gives the same record and diagnostics."""
        lines = make_thread('[15.03.2014] #42', [
            "<strong>Eventbeginn:</strong> 25:00 Uhr<br />",
            "Map: Nowhere <b>Land</b><br />",
            "<strong>Slotliste:</strong><br />",
            "#1 - ??? - <strong>Njal</strong><br />",
            "#2 - Squad Leader - <strong>Sunny</strong><br />",
            "#3 - Koch - <strong>Anna</strong><br />",
        ])
        attendance = {
            date(2014, 3, 15): ExternalAttendance(EventCategory.TVT, {
                'Sunny': AttendanceStatus.APPEARED,
                'Bob': AttendanceStatus.NOT_APPEARED,
            }),
        }

        first = processor.process_thread(lines, url=THREAD_URL, attendance=attendance)
        second = processor.process_thread(list(lines), url=THREAD_URL, attendance=attendance)

        assert len(first.diagnostics) >= 5
        assert first.record == second.record
        assert first.diagnostics == second.diagnostics
        assert [entry.player for entry in first.record.roster.reserve] == ['Bob']

    def test_ignored_thread(self, processor, make_thread):
        """Test that threads that are no events are skipped."""
        result = processor.process_thread(make_thread('[Abgesagt] BB37 The Raid', BODY))

        assert result.record is None
        assert result.skipped
        assert result.diagnostics == []

    def test_thread_without_title(self, processor):
        """Test that a page without title yields no record."""
        result = processor.process_thread(['<html>', '</html>'], url=THREAD_URL)

        assert result.record is None
        assert not result.skipped
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.STRUCTURAL_ANOMALY]

    def test_thread_without_roster(self, processor, make_thread):
        """Test that a thread without slot list still yields a record."""
        result = processor.process_thread(
            make_thread(TITLE, BODY[:3]), url=THREAD_URL
        )

        assert result.record is not None
        assert result.record.roster is None
        assert [d.field for d in result.diagnostics] == ['roster']

    def test_process_threads(self, processor, make_thread):
        """Test that a failing thread does not stop the others."""
        threads = [
            (THREAD_URL, make_thread(TITLE, BODY)),
            ('https://www.gruppe-w.de/forum/viewthread.php?thread_id=99', None),
            ('https://www.gruppe-w.de/forum/viewthread.php?thread_id=5',
             make_thread('[Abgesagt] BB37 The Raid', BODY)),
        ]

        results = processor.process_threads(threads)

        assert len(results) == 2
        assert results[0].record.thread_id == 1234
        assert results[1].skipped
