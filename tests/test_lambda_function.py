"""Integration tests for Lambda handler."""
import json
import logging
import os
from datetime import date
from unittest.mock import Mock, patch

import pytest

from lambda_function import JsonFormatter, lambda_handler, setup_logging
from processor.models import (
    Diagnostic,
    DiagnosticKind,
    EventCategory,
    EventRecord,
    ExtractionResult,
    SyncResult,
)

THREAD_URLS = [
    'https://www.gruppe-w.de/forum/viewthread.php?thread_id=1234',
    'https://www.gruppe-w.de/forum/viewthread.php?thread_id=1235',
]


@pytest.fixture
def mock_env():
    """Set up environment variables for testing."""
    env_vars = {
        'TABLE_NAME': 'test-gruppe-w-events',
        'LOG_LEVEL': 'INFO',
        'TIMEOUT_SECONDS': '10',
        'FETCH_ATTEMPTS': '2'
    }
    with patch.dict(os.environ, env_vars):
        os.environ.pop('FORUM_URL', None)
        os.environ.pop('ATTENDANCE_PATH', None)
        os.environ.pop('DELETE_MISSING', None)
        yield env_vars


@pytest.fixture
def mock_context():
    """Create a mock Lambda context."""
    context = Mock()
    context.function_name = 'test-function'
    context.memory_limit_in_mb = 512
    context.invoked_function_arn = 'arn:aws:lambda:us-east-1:123456789012:function:test-function'
    context.aws_request_id = 'test-request-id'
    return context


@pytest.fixture
def sample_results():
    """Create sample extraction results."""
    record = EventRecord(
        name='Example',
        category=EventCategory.COOP,
        capacity=40,
        creator='DasCleverle',
        map='Altis',
        date=date(2014, 3, 15),
        start_time=None,
        thread_id=1234,
        post_id=4711,
        roster=None
    )
    return [
        ExtractionResult(
            record=record,
            diagnostics=[Diagnostic(DiagnosticKind.STRUCTURAL_ANOMALY, 'No slot list', 'roster')]
        ),
        ExtractionResult(record=None, skipped=True),
    ]


@pytest.fixture
def mocks(sample_results):
    """Patch the crawler, processor and DynamoDB manager of the handler."""
    with patch('lambda_function.ForumCrawler') as mock_crawler_class, \
            patch('lambda_function.EventProcessor') as mock_processor_class, \
            patch('lambda_function.DynamoDBManager') as mock_dynamodb_class:
        mock_crawler_class.BASE_URL = 'https://www.gruppe-w.de/forum/'
        mock_crawler = mock_crawler_class.return_value
        mock_crawler.get_event_urls.return_value = THREAD_URLS
        mock_crawler.fetch_threads.return_value = iter([])

        mock_processor = mock_processor_class.return_value
        mock_processor.process_threads.return_value = sample_results

        mock_dynamodb = mock_dynamodb_class.return_value
        mock_dynamodb.sync_events.return_value = SyncResult(
            added=1,
            updated=0,
            deleted=0,
            errors=[]
        )

        yield Mock(
            crawler_class=mock_crawler_class,
            crawler=mock_crawler,
            processor=mock_processor,
            dynamodb_class=mock_dynamodb_class,
            dynamodb=mock_dynamodb
        )


class TestLambdaHandler:
    """Test cases for Lambda handler."""

    def test_successful_sync(self, mocks, mock_env, mock_context, sample_results):
        """Test successful end-to-end sync process."""
        response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 200
        body = json.loads(response['body'])
        assert body['message'] == 'Sync completed successfully'
        assert body['statistics']['threads_found'] == 2
        assert body['statistics']['events_extracted'] == 1
        assert body['statistics']['threads_skipped'] == 1
        assert body['statistics']['diagnostics'] == 1
        assert body['statistics']['events_added'] == 1
        assert body['statistics']['events_updated'] == 0
        assert body['statistics']['events_deleted'] == 0
        assert 'duration_seconds' in body['statistics']
        assert body['errors'] == []

        mocks.crawler_class.assert_called_once_with(
            base_url='https://www.gruppe-w.de/forum/', timeout=10, attempts=2
        )
        mocks.dynamodb_class.assert_called_once_with(table_name='test-gruppe-w-events')
        mocks.crawler.fetch_threads.assert_called_once_with(THREAD_URLS)
        mocks.processor.process_threads.assert_called_once_with(
            mocks.crawler.fetch_threads.return_value, {}
        )
        mocks.dynamodb.sync_events.assert_called_once_with(
            [sample_results[0].record], delete_missing=False
        )

    def test_attendance_and_delete_missing(self, mocks, mock_env, mock_context):
        """Test that attendance data and deletion are configured from the environment."""
        attendance = {date(2014, 3, 15): Mock()}
        with patch.dict(os.environ, {'ATTENDANCE_PATH': '/tmp/attendance.csv', 'DELETE_MISSING': 'true'}), \
                patch('lambda_function.load_attendance', return_value=attendance) as mock_load:
            response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 200
        mock_load.assert_called_once_with('/tmp/attendance.csv')
        assert mocks.processor.process_threads.call_args[0][1] is attendance
        assert mocks.dynamodb.sync_events.call_args[1] == {'delete_missing': True}

    def test_crawl_failure(self, mocks, mock_env, mock_context):
        """Test error handling for forum fetch failures."""
        mocks.crawler.get_event_urls.side_effect = Exception('Network error')

        response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 500
        body = json.loads(response['body'])
        assert body['message'] == 'Failed to crawl forum'
        assert 'Network error' in body['error']
        assert body['error_type'] == 'Exception'
        assert 'duration_seconds' in body
        assert not mocks.dynamodb.sync_events.called

    def test_dynamodb_sync_failure(self, mocks, mock_env, mock_context):
        """Test error handling for DynamoDB sync failures."""
        mocks.dynamodb.sync_events.side_effect = Exception('DynamoDB error')

        response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 500
        body = json.loads(response['body'])
        assert body['message'] == 'Failed to sync events with DynamoDB'
        assert 'DynamoDB error' in body['error']
        assert body['note'] == 'Previous events remain in DynamoDB'

    def test_setup_failure(self, mocks, mock_env, mock_context):
        """Test error handling for failures before crawling."""
        mocks.dynamodb_class.side_effect = Exception('No credentials')

        response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 500
        body = json.loads(response['body'])
        assert body['message'] == 'Sync failed'
        assert 'No credentials' in body['error']

    def test_sync_errors_reported(self, mocks, mock_env, mock_context):
        """Test that errors collected during sync are returned."""
        mocks.dynamodb.sync_events.return_value = SyncResult(
            added=0, updated=0, deleted=0, errors=['Error during sync operation: boom']
        )

        response = lambda_handler({}, mock_context)

        body = json.loads(response['body'])
        assert response['statusCode'] == 200
        assert body['errors'] == ['Error during sync operation: boom']

    @patch('lambda_function.setup_logging')
    def test_logging_output(self, mock_setup_logging, mocks, mock_env, mock_context, caplog):
        """Test that logging output is generated correctly."""
        with caplog.at_level(logging.INFO, logger='lambda_function'):
            response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 200
        log_messages = [record.message for record in caplog.records]
        assert any('Lambda execution started' in msg for msg in log_messages)
        assert any('Collecting event threads from forum' in msg for msg in log_messages)
        assert any('Synchronizing events with DynamoDB' in msg for msg in log_messages)
        assert any('Lambda execution completed' in msg for msg in log_messages)


class TestSetupLogging:
    """Test cases for logging setup."""

    def test_setup_logging_default_level(self):
        """Test logging setup with default INFO level."""
        setup_logging()
        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_debug_level(self):
        """Test logging setup with DEBUG level."""
        setup_logging('DEBUG')
        assert logging.getLogger().level == logging.DEBUG

    def test_setup_logging_unknown_level(self):
        """Test that an unknown level falls back to INFO."""
        setup_logging('VERBOSE')
        assert logging.getLogger().level == logging.INFO

    def test_json_formatter(self):
        """Test that log records are formatted as JSON keeping umlauts."""
        record = logging.LogRecord(
            'processor', logging.WARNING, __file__, 1, 'Sanitäter fehlt', None, None
        )

        data = json.loads(JsonFormatter().format(record))

        assert data['level'] == 'WARNING'
        assert data['message'] == 'Sanitäter fehlt'
        assert data['logger'] == 'processor'
        assert 'Sanitäter' in JsonFormatter().format(record)
