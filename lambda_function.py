"""AWS Lambda handler for the Gruppe W event crawler."""
import json
import logging
import os
import time
from typing import Dict, Any

from scraper.forum_crawler import ForumCrawler
from processor.event_processor import EventProcessor
from storage.attendance_source import load_attendance
from storage.dynamodb_manager import DynamoDBManager


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _error_response(message: str, error: Exception, start_time: float, **extra: Any) -> Dict[str, Any]:
    duration = time.time() - start_time
    body = {
        'message': message,
        'error': str(error),
        'error_type': type(error).__name__,
        'duration_seconds': round(duration, 2)
    }
    body.update(extra)
    return {'statusCode': 500, 'body': json.dumps(body)}


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for the event crawler.

    Args:
        event: EventBridge event payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and summary statistics
    """
    # Read configuration from environment variables
    table_name = os.environ.get('TABLE_NAME', 'gruppe-w-events')
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    forum_url = os.environ.get('FORUM_URL', ForumCrawler.BASE_URL)
    timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '30'))
    fetch_attempts = int(os.environ.get('FETCH_ATTEMPTS', '1'))
    attendance_path = os.environ.get('ATTENDANCE_PATH')
    delete_missing = os.environ.get('DELETE_MISSING', 'false').lower() in ('1', 'true', 'yes')

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    logger.info(
        f"Lambda execution started for table {table_name} "
        f"(forum {forum_url}, {fetch_attempts} fetch attempts)"
    )

    try:
        crawler = ForumCrawler(
            base_url=forum_url, timeout=timeout_seconds, attempts=fetch_attempts
        )
        processor = EventProcessor()
        dynamodb_manager = DynamoDBManager(table_name=table_name)
        attendance = load_attendance(attendance_path) if attendance_path else {}

        # Crawl and extract threads, a failing fetch ends the run
        try:
            logger.info("Collecting event threads from forum")
            urls = crawler.get_event_urls()
            results = processor.process_threads(crawler.fetch_threads(urls), attendance)
        except Exception as e:
            logger.error(
                f"Failed to crawl forum: {str(e)}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            return _error_response('Failed to crawl forum', e, start_time)

        records = [result.record for result in results if result.record is not None]
        skipped = sum(1 for result in results if result.skipped)
        diagnostics = sum(len(result.diagnostics) for result in results)
        logger.info(
            f"Extracted {len(records)} events from {len(urls)} threads "
            f"({skipped} skipped, {diagnostics} diagnostics)"
        )

        try:
            logger.info("Synchronizing events with DynamoDB")
            sync_result = dynamodb_manager.sync_events(records, delete_missing=delete_missing)
        except Exception as e:
            logger.error(
                f"Error during DynamoDB sync operation: {str(e)}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            return _error_response(
                'Failed to sync events with DynamoDB', e, start_time,
                note='Previous events remain in DynamoDB'
            )

        duration = time.time() - start_time
        logger.info(
            f"Lambda execution completed in {round(duration, 2)} seconds: "
            f"{sync_result.added} added, {sync_result.updated} updated, "
            f"{sync_result.deleted} deleted, {len(sync_result.errors)} errors"
        )

        return {
            'statusCode': 200,
            'body': json.dumps({
                'message': 'Sync completed successfully',
                'statistics': {
                    'threads_found': len(urls),
                    'events_extracted': len(records),
                    'threads_skipped': skipped,
                    'diagnostics': diagnostics,
                    'events_added': sync_result.added,
                    'events_updated': sync_result.updated,
                    'events_deleted': sync_result.deleted,
                    'duration_seconds': round(duration, 2)
                },
                'errors': sync_result.errors
            })
        }

    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _error_response('Sync failed', e, start_time)
