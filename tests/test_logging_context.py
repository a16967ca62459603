# -*- coding: utf-8 -*-
"""
Test suite for structured logging and request context propagation.

Covers request_id generation, actor context, the JSON formatter and the
execution lifecycle log events emitted by the engine.
"""

import io
import json
import logging
import sys
import uuid

import pytest
from flask import Flask

from opsflow.services.request_context import (
    get_request_context, get_request_id, init_request_context, set_actor_context
)
from opsflow.services.structured_logging import StructuredFormatter, StructuredLogger, get_logger
from opsflow.services.workflow_service import WorkflowService


@pytest.fixture
def bare_app():
    """Minimal Flask app with only the request context middleware."""
    app = Flask(__name__)
    app.config['TESTING'] = True
    init_request_context(app)
    return app


@pytest.fixture
def captured():
    """Attach a JSON handler to the opsflow logger tree and return its stream."""
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter(json_enabled=True))
    root = logging.getLogger('opsflow')
    previous_level = root.level
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)
    yield stream
    root.removeHandler(handler)
    root.setLevel(previous_level)


def read_lines(stream):
    return [json.loads(line) for line in stream.getvalue().strip().split('\n') if line]


def make_record(msg='Test message', level=logging.INFO, exc_info=None):
    return logging.LogRecord(name='test.logger', level=level, pathname='test.py', lineno=42,
                             msg=msg, args=(), exc_info=exc_info)


class TestRequestContext:

    def test_request_id_generated_and_returned(self, bare_app):
        @bare_app.route('/whoami')
        def whoami():
            return {'request_id': get_request_id()}

        response = bare_app.test_client().get('/whoami')
        request_id = response.get_json()['request_id']

        uuid.UUID(request_id)
        assert response.headers['X-Request-ID'] == request_id
        assert response.headers['X-Response-Time'].endswith('ms')

    def test_incoming_request_id_is_kept_when_valid(self, bare_app):
        @bare_app.route('/whoami')
        def whoami():
            return {'request_id': get_request_id()}

        client = bare_app.test_client()
        incoming = str(uuid.uuid4())
        assert client.get('/whoami', headers={'X-Request-ID': incoming}).get_json()['request_id'] == incoming
        assert client.get('/whoami', headers={'X-Request-ID': 'not-a-uuid'}).get_json()['request_id'] != 'not-a-uuid'

    def test_different_requests_get_different_ids(self, bare_app):
        @bare_app.route('/whoami')
        def whoami():
            return {'request_id': get_request_id()}

        client = bare_app.test_client()
        ids = {client.get('/whoami').get_json()['request_id'] for _ in range(5)}
        assert len(ids) == 5

    def test_actor_context_is_included(self, bare_app):
        @bare_app.route('/whoami', methods=['POST'])
        def whoami():
            set_actor_context(org_id='org-1', actor_email='ops@acme.test')
            return get_request_context()

        context = bare_app.test_client().post('/whoami', json={}).get_json()
        assert context['method'] == 'POST'
        assert context['path'] == '/whoami'
        assert context['org_id'] == 'org-1'
        assert context['actor_email'] == 'ops@acme.test'

    def test_context_without_actor_omits_actor_fields(self, bare_app):
        @bare_app.route('/whoami')
        def whoami():
            return get_request_context()

        context = bare_app.test_client().get('/whoami').get_json()
        assert 'org_id' not in context
        assert 'actor_email' not in context


class TestStructuredFormatter:

    def test_json_formatting(self):
        data = json.loads(StructuredFormatter(json_enabled=True).format(make_record()))
        assert data['level'] == 'INFO'
        assert data['logger'] == 'test.logger'
        assert data['message'] == 'Test message'
        assert data['line'] == 42
        assert 'timestamp' in data

    def test_plain_formatting(self):
        formatted = StructuredFormatter(json_enabled=False).format(make_record())
        assert formatted == 'Test message'

    def test_extra_fields_included(self):
        record = make_record()
        record.extra_fields = {'execution_id': 'ex-1', 'step_id': 's1'}
        data = json.loads(StructuredFormatter(json_enabled=True).format(record))
        assert data['execution_id'] == 'ex-1'
        assert data['step_id'] == 's1'

    def test_exception_formatting(self):
        try:
            raise ValueError("Test exception")
        except ValueError:
            record = make_record('Error occurred', logging.ERROR, exc_info=sys.exc_info())
        data = json.loads(StructuredFormatter(json_enabled=True).format(record))
        assert 'ValueError' in data['exception']
        assert 'Test exception' in data['exception']


class TestStructuredLogger:

    def test_get_logger_names_the_logger(self):
        assert get_logger('opsflow.test').logger.name == 'opsflow.test'

    def test_keyword_context_becomes_fields(self, captured):
        get_logger('opsflow.test').info('Something happened', org_id='org-1', count=3)
        entry = read_lines(captured)[-1]
        assert entry['message'] == 'Something happened'
        assert entry['org_id'] == 'org-1'
        assert entry['count'] == 3

    def test_execution_events(self, captured):
        logger = StructuredLogger('opsflow.test')
        logger.log_execution_event('workflow', 'ex-1', 'completed', workflow_id='wf-1')
        logger.log_execution_event('agent', 'ex-2', 'failed', error_message='boom')

        completed, failed = read_lines(captured)[-2:]
        assert completed['event_type'] == 'execution'
        assert completed['execution_kind'] == 'workflow'
        assert completed['level'] == 'INFO'
        assert completed['message'] == 'Workflow execution ex-1 completed'
        assert failed['level'] == 'WARNING'
        assert failed['error_message'] == 'boom'

    def test_step_and_performance_events(self, captured):
        logger = StructuredLogger('opsflow.test')
        logger.log_step_event('ex-1', 'notify', 'success', 12)
        logger.log_step_event('ex-1', 'notify', 'failed', 40, error='smtp down')
        logger.log_performance_event('tool.web_search', 1500)

        success, failure, slow = read_lines(captured)[-3:]
        assert success['level'] == 'DEBUG'
        assert success['duration_ms'] == 12
        assert failure['level'] == 'WARNING'
        assert failure['error'] == 'smtp down'
        assert slow['event_type'] == 'performance'
        assert slow['level'] == 'WARNING'

    def test_exception_carries_traceback(self, captured):
        try:
            raise RuntimeError('kaboom')
        except RuntimeError:
            get_logger('opsflow.test').exception('Handler failed')

        entry = read_lines(captured)[-1]
        assert entry['level'] == 'ERROR'
        assert 'RuntimeError: kaboom' in entry['exception']


class TestEngineLogging:

    def test_workflow_run_logs_lifecycle(self, captured, client, auth_headers, db_session, org):
        # App startup pins the engine loggers to LOG_LEVEL; step events are DEBUG
        logging.getLogger('opsflow.workflows').setLevel(logging.DEBUG)
        workflow = WorkflowService(db_session).create_workflow(
            org.id, "Logged", steps=[{"id": "only", "action": "delay"}])

        response = client.post("/api/v1/workflows/execute", headers=auth_headers,
                               json={"workflow_id": workflow.id})
        request_id = response.headers['X-Request-ID']

        entries = read_lines(captured)
        executions = [e for e in entries if e.get('event_type') == 'execution']
        assert [e['status'] for e in executions] == ['running', 'completed']
        assert all(e['request_id'] == request_id for e in executions)
        assert all(e['org_id'] == org.id for e in executions)

        steps = [e for e in entries if e.get('event_type') == 'step']
        assert steps[0]['step_id'] == 'only'
        assert steps[0]['action'] == 'delay'

        ends = [e for e in entries if e.get('event_type') == 'request_end']
        assert ends[-1]['status_code'] == 200
