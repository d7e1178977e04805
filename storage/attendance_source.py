"""Loader for externally recorded event attendance."""
import csv
import logging
import os
from datetime import date, datetime
from typing import Dict

from processor.models import AttendanceStatus, EventCategory, ExternalAttendance

logger = logging.getLogger(__name__)

FIELDS = ('date', 'category', 'player', 'status')


def load_attendance(path: str) -> Dict[date, ExternalAttendance]:
    """
    Load external attendance from a CSV file.

    The file has the columns date (dd.mm.yyyy), category, player and
    status. Players keep the order of their rows.

    Args:
        path: Path to the CSV file

    Returns:
        ExternalAttendance keyed by event date, empty if the file does not exist
    """
    if not os.path.exists(path):
        logger.warning(f"Attendance file {path} does not exist")
        return {}

    categories: Dict[date, EventCategory] = {}
    statuses: Dict[date, Dict[str, AttendanceStatus]] = {}

    with open(path, 'r', encoding='utf-8', newline='') as f:
        reader = csv.DictReader(f)
        missing = [name for name in FIELDS if name not in (reader.fieldnames or [])]
        if missing:
            raise ValueError(f"Attendance file {path} is missing columns: {', '.join(missing)}")

        for line_number, row in enumerate(reader, start=2):
            try:
                event_date = datetime.strptime(row['date'].strip(), '%d.%m.%Y').date()
                category = EventCategory[row['category'].strip().upper()]
                status = AttendanceStatus[row['status'].strip().upper()]
                player = row['player'].strip()
            except (KeyError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed attendance row {line_number}: {e}")
                continue

            if not player:
                logger.warning(f"Skipping attendance row {line_number} without player")
                continue
            known = categories.setdefault(event_date, category)
            if known != category:
                logger.warning(
                    f"Skipping attendance row {line_number}: category {category.value} "
                    f"conflicts with {known.value} for the same date"
                )
                continue
            statuses.setdefault(event_date, {})[player] = status

    attendance = {
        event_date: ExternalAttendance(
            category=categories[event_date], player_status=players
        )
        for event_date, players in statuses.items()
    }
    logger.info(f"Loaded attendance of {len(attendance)} events from {path}")
    return attendance
