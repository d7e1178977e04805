"""DynamoDB manager for event storage operations."""
import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import ClientError

from processor.field_extractors import date_to_text, text_to_date, text_to_time, time_to_text
from processor.models import (
    NO_ID,
    AttendanceStatus,
    EventCategory,
    EventRecord,
    RoleCategory,
    Roster,
    SlotAssignment,
    SyncResult,
)

logger = logging.getLogger(__name__)


class DynamoDBManager:
    """Manager for DynamoDB operations."""

    BATCH_SIZE = 25  # DynamoDB batch operation limit

    def __init__(self, table_name: str, region_name: Optional[str] = None):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
            region_name: AWS region (default: taken from the environment)
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBManager for table: {table_name}")

    def get_all_events(self) -> Dict[int, EventRecord]:
        """
        Retrieve all events from DynamoDB using Scan operation.

        Returns:
            Dictionary mapping thread_id to EventRecord objects
        """
        logger.info("Scanning DynamoDB table for all events")
        events = {}

        try:
            response = self.table.scan()
            items = response.get('Items', [])

            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    ExclusiveStartKey=response['LastEvaluatedKey']
                )
                items.extend(response.get('Items', []))

            for item in items:
                record = self.item_to_record(item)
                if record:
                    events[record.thread_id] = record

            logger.info(f"Retrieved {len(events)} events from DynamoDB")
            return events

        except ClientError as e:
            logger.error(f"Error scanning DynamoDB table: {e}")
            raise

    def sync_events(
        self,
        records: List[EventRecord],
        delete_missing: bool = False
    ) -> SyncResult:
        """
        Synchronize event records with DynamoDB.

        Records without a thread id can not be keyed and are left out.

        Args:
            records: Event records extracted from the forum
            delete_missing: Also delete stored events that were not extracted again

        Returns:
            SyncResult with counts of added, updated, deleted events
        """
        logger.info(f"Starting sync process with {len(records)} records")
        errors = []

        try:
            existing_events = self.get_all_events()

            new_events = {}
            for record in records:
                if record.thread_id == NO_ID:
                    logger.warning(f"Skipping event '{record.name}' without thread id")
                    continue
                new_events[record.thread_id] = record

            events_to_add = [
                record for thread_id, record in new_events.items()
                if thread_id not in existing_events
            ]
            events_to_update = [
                record for thread_id, record in new_events.items()
                if thread_id in existing_events and
                self._events_differ(record, existing_events[thread_id])
            ]
            thread_ids_to_delete = []
            if delete_missing:
                thread_ids_to_delete = [
                    thread_id for thread_id in existing_events
                    if thread_id not in new_events
                ]

            logger.info(
                f"Sync plan: {len(events_to_add)} to add, "
                f"{len(events_to_update)} to update, "
                f"{len(thread_ids_to_delete)} to delete"
            )

            added_count = 0
            updated_count = 0
            deleted_count = 0

            if events_to_add or events_to_update:
                write_count = self.batch_write_events(events_to_add + events_to_update)
                added_count = min(write_count, len(events_to_add))
                updated_count = write_count - added_count

            if thread_ids_to_delete:
                deleted_count = self.batch_delete_events(thread_ids_to_delete)

            logger.info(
                f"Sync complete: {added_count} added, {updated_count} updated, "
                f"{deleted_count} deleted"
            )

            return SyncResult(
                added=added_count,
                updated=updated_count,
                deleted=deleted_count,
                errors=errors
            )

        except Exception as e:
            error_msg = f"Error during sync operation: {e}"
            logger.error(error_msg, exc_info=True)
            errors.append(error_msg)
            return SyncResult(added=0, updated=0, deleted=0, errors=errors)

    def batch_write_events(self, records: List[EventRecord]) -> int:
        """
        Write events to DynamoDB in batches of 25 items.

        Args:
            records: Event records to write

        Returns:
            Count of successfully written events
        """
        if not records:
            return 0

        logger.info(f"Writing {len(records)} events to DynamoDB")
        success_count = 0

        for i in range(0, len(records), self.BATCH_SIZE):
            batch = records[i:i + self.BATCH_SIZE]

            try:
                with self.table.batch_writer() as writer:
                    for record in batch:
                        writer.put_item(Item=self.record_to_item(record))
                success_count += len(batch)

            except ClientError as e:
                logger.error(
                    f"Error writing batch {i // self.BATCH_SIZE + 1}: {e}"
                )
                continue

        logger.info(f"Successfully wrote {success_count} events")
        return success_count

    def batch_delete_events(self, thread_ids: List[int]) -> int:
        """
        Delete events from DynamoDB in batches of 25 items.

        Args:
            thread_ids: Thread ids of the events to delete

        Returns:
            Count of successfully deleted events
        """
        if not thread_ids:
            return 0

        logger.info(f"Deleting {len(thread_ids)} events from DynamoDB")
        success_count = 0

        for i in range(0, len(thread_ids), self.BATCH_SIZE):
            batch = thread_ids[i:i + self.BATCH_SIZE]

            try:
                with self.table.batch_writer() as writer:
                    for thread_id in batch:
                        writer.delete_item(Key={'thread_id': thread_id})
                success_count += len(batch)

            except ClientError as e:
                logger.error(
                    f"Error deleting batch {i // self.BATCH_SIZE + 1}: {e}"
                )
                continue

        logger.info(f"Successfully deleted {success_count} events")
        return success_count

    @staticmethod
    def record_to_item(record: EventRecord) -> Dict[str, Any]:
        """
        Convert an EventRecord to a DynamoDB item.

        Args:
            record: EventRecord object

        Returns:
            DynamoDB item dictionary
        """
        item = {
            'thread_id': record.thread_id,
            'post_id': record.post_id,
            'name': record.name,
            'category': record.category.name,
            'capacity': record.capacity,
            'creator': record.creator,
            'map': record.map,
            'date': date_to_text(record.date) if record.date else None,
            'start_time': time_to_text(record.start_time) if record.start_time else None,
            'roster': None
        }

        if record.roster is not None:
            item['roster'] = {
                'slots': [
                    {
                        'slot_key': slot.slot_key,
                        'role': slot.role.name,
                        'raw_role_label': slot.raw_role_label,
                        'player': slot.player,
                        'status': slot.status.name,
                        'unconfirmed': slot.unconfirmed
                    }
                    for slot in record.roster.slots
                ],
                'reserve': [
                    {'player': entry.player, 'status': entry.status.name}
                    for entry in record.roster.reserve
                ]
            }

        return item

    @staticmethod
    def item_to_record(item: Dict[str, Any]) -> Optional[EventRecord]:
        """
        Convert a DynamoDB item to an EventRecord.

        Args:
            item: DynamoDB item dictionary

        Returns:
            EventRecord object or None if conversion fails
        """
        try:
            roster = None
            if item.get('roster') is not None:
                roster = Roster()
                for slot in item['roster'].get('slots', []):
                    roster.add_slot(SlotAssignment(
                        slot_key=int(slot['slot_key']),
                        role=RoleCategory[slot['role']],
                        raw_role_label=slot['raw_role_label'],
                        player=slot['player'],
                        status=AttendanceStatus[slot['status']],
                        unconfirmed=bool(slot.get('unconfirmed', False))
                    ))
                for entry in item['roster'].get('reserve', []):
                    roster.add_reserve(entry['player'], AttendanceStatus[entry['status']])

            return EventRecord(
                name=item['name'],
                category=EventCategory[item['category']],
                capacity=int(item['capacity']),
                creator=item['creator'],
                map=item['map'],
                date=text_to_date(item['date']) if item.get('date') else None,
                start_time=text_to_time(item['start_time']) if item.get('start_time') else None,
                thread_id=int(item['thread_id']),
                post_id=int(item['post_id']),
                roster=roster
            )
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Failed to convert item to EventRecord: {e}")
            return None

    def _events_differ(self, record1: EventRecord, record2: EventRecord) -> bool:
        """
        Compare two EventRecord objects to determine if they differ.

        Args:
            record1: First EventRecord
            record2: Second EventRecord

        Returns:
            True if events differ, False otherwise
        """
        return self.record_to_item(record1) != self.record_to_item(record2)
