"""Event processor turning forum threads into event records."""
import logging
from datetime import date
from typing import Iterable, List, Mapping, Optional, Tuple

from processor.diagnostics import report
from processor.field_extractors import (
    THREAD_POSTID_OFFSET_CREATOR,
    THREAD_TITLE_OFFSET_CREATOR,
    THREAD_TITLE_OFFSET_DATE,
    FieldExtractor,
    find_title,
)
from processor.models import (
    DiagnosticKind,
    EventRecord,
    ExternalAttendance,
    ExtractionResult,
)
from processor.reconciler import Reconciler
from processor.reference_data import ReferenceData
from processor.roster_builder import RosterBuilder

logger = logging.getLogger(__name__)


class EventProcessor:
    """Processor extracting and reconciling event threads."""

    def __init__(self, reference: Optional[ReferenceData] = None):
        """
        Initialize the processor.

        Args:
            reference: Reference data to use (default: the bundled tables)
        """
        self.reference = reference or ReferenceData.load()
        self.fields = FieldExtractor(self.reference)
        self.roster_builder = RosterBuilder(
            self.reference.classifier, self.reference.aliases
        )
        self.reconciler = Reconciler(self.reference.reconciliation)

    def process_threads(
        self,
        threads: Iterable[Tuple[str, List[str]]],
        attendance: Optional[Mapping[date, ExternalAttendance]] = None
    ) -> List[ExtractionResult]:
        """
        Process several threads.

        Args:
            threads: Pairs of (thread url, page lines)
            attendance: External attendance keyed by event date

        Returns:
            List of ExtractionResult objects, one per thread that could be read
        """
        results = []
        total = 0

        for url, lines in threads:
            total += 1
            try:
                results.append(self.process_thread(lines, url=url, attendance=attendance))
            except Exception as e:
                logger.warning(f"Failed to process thread '{url}': {e}")
                continue

        extracted = sum(1 for result in results if result.record is not None)
        logger.info(
            f"Extracted {extracted} events out of {total} threads"
        )
        return results

    def process_thread(
        self,
        lines: List[str],
        url: Optional[str] = None,
        attendance: Optional[Mapping[date, ExternalAttendance]] = None
    ) -> ExtractionResult:
        """
        Extract one thread.

        Args:
            lines: Lines of the rendered thread page
            url: Url of the thread, used for its id
            attendance: External attendance keyed by event date

        Returns:
            ExtractionResult with the record, or without one if the thread
            is no event or has no title
        """
        diagnostics = []

        found = find_title(lines)
        if found is None:
            report(diagnostics, DiagnosticKind.STRUCTURAL_ANOMALY, 'title',
                   f"Thread has no title: {url}")
            logger.warning(f"Skipping thread without title: {url}")
            return ExtractionResult(record=None, diagnostics=diagnostics)

        title_index, title = found
        if self.fields.is_ignored(title):
            logger.info(f"Skipping thread that is no event: '{title}'")
            return ExtractionResult(record=None, diagnostics=diagnostics, skipped=True)

        creator_index = title_index + THREAD_TITLE_OFFSET_CREATOR

        event_date = self.fields.extract_date(
            title, _line_at(lines, title_index + THREAD_TITLE_OFFSET_DATE), diagnostics
        )
        creator = self.fields.extract_creator(_line_at(lines, creator_index), diagnostics)
        post_id = self.fields.extract_post_id(
            _line_at(lines, creator_index + THREAD_POSTID_OFFSET_CREATOR), diagnostics
        )
        category = self.fields.extract_category(title, diagnostics)
        capacity = self.fields.extract_capacity(title, diagnostics)
        thread_id = self.fields.extract_thread_id(url, diagnostics)
        start_time = self.fields.extract_start_time(title, lines, creator_index, diagnostics)
        map_name = self.fields.extract_map(lines, creator_index, diagnostics)
        name = self.fields.extract_name(title, diagnostics)

        roster = self.roster_builder.build(lines, creator_index, diagnostics)
        external = None
        if attendance and event_date is not None:
            external = attendance.get(event_date)
        roster = self.reconciler.reconcile(category, event_date, roster, external, diagnostics)

        record = EventRecord(
            name=name,
            category=category,
            capacity=capacity,
            creator=creator,
            map=map_name,
            date=event_date,
            start_time=start_time,
            thread_id=thread_id,
            post_id=post_id,
            roster=roster
        )

        if diagnostics:
            logger.warning(
                f"Extracted '{name}' (thread {thread_id}) with "
                f"{len(diagnostics)} diagnostics"
            )
        else:
            logger.info(f"Extracted '{name}' (thread {thread_id})")
        return ExtractionResult(record=record, diagnostics=diagnostics)


def _line_at(lines: List[str], index: int) -> Optional[str]:
    return lines[index] if 0 <= index < len(lines) else None
