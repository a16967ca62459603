import os
import tempfile

import pytest

from opsflow.services.errors import DeliveryError, NotificationError
from opsflow.services.retry_policy import RetryRunner

# Set test environment variables
os.environ["TESTING"] = "true"
os.environ["OPSFLOW_LOG_JSON"] = "false"

JWT_TEST_SECRET = "test-jwt-secret-key-that-is-long-enough-for-hs256"


class FakeLLM:
    """
    Stand-in for LLMService.

    ``responses`` is consumed in order; an Exception instance is raised
    instead of returned. When empty, ``default`` is returned.
    """

    def __init__(self, default="ok"):
        self.default = default
        self.responses = []
        self.calls = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def is_configured(self):
        return True

    def generate(self, prompt, response_schema=None, add_context_from_internet=False, system=None):
        self.calls.append({
            "prompt": prompt,
            "response_schema": response_schema,
            "add_context_from_internet": add_context_from_internet,
        })
        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, Exception):
            raise response
        return response


class FakeNotifier:
    def __init__(self):
        self.emails = []
        self.notifications = []
        self.failures_left = 0

    def _maybe_fail(self):
        if self.failures_left:
            self.failures_left -= 1
            raise NotificationError("Notification provider unavailable")

    def send_email(self, to_email, subject, body):
        self._maybe_fail()
        self.emails.append({"to": to_email, "subject": subject, "body": body})

    def send_notification(self, message, channel=None, webhook_url=None):
        self._maybe_fail()
        self.notifications.append({"message": message, "channel": channel, "webhook_url": webhook_url})


class FakeHttpClient:
    def __init__(self, status=200, data=None):
        self.status = status
        self.data = data
        self.requests = []
        self.network_error = False

    def request(self, method, url, json_body=None, headers=None):
        self.requests.append({"method": method, "url": url, "json": json_body, "headers": headers})
        if self.network_error:
            raise DeliveryError(f"Request to {url} failed: connection refused")
        return {"status": self.status, "ok": 200 <= self.status < 300, "data": self.data}

    def post_json(self, url, json_body, method="POST"):
        return self.request(method, url, json_body=json_body)


class SleepRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def app():
    """Create and configure a new app instance for each test."""
    db_fd, db_path = tempfile.mkstemp()
    from opsflow.factory import create_app
    from opsflow.database import db
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        "JWT_SECRET_KEY": JWT_TEST_SECRET,
    })
    app.extensions['llm'] = FakeLLM()
    app.extensions['notifier'] = FakeNotifier()
    app.extensions['http_client'] = FakeHttpClient()
    app.extensions['retry_runner'] = RetryRunner(sleep=SleepRecorder())
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def db_session(app):
    from opsflow.database import db
    return db.session


@pytest.fixture
def llm(app):
    return app.extensions['llm']


@pytest.fixture
def notifier(app):
    return app.extensions['notifier']


@pytest.fixture
def http_client(app):
    return app.extensions['http_client']


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def org(db_session):
    from opsflow.models import Organization
    org = Organization(name="Acme Support", slug="acme-support")
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture
def make_headers(app, org):
    """Build Authorization headers for a user of ``org`` with the given role."""
    from opsflow.services.auth import issue_token

    def _make(role="member", email="ops@acme.test", org_id=None):
        token = issue_token(email, org_id or org.id, role=role)
        return {"Authorization": f"Bearer {token}"}
    return _make


@pytest.fixture
def auth_headers(make_headers):
    return make_headers("admin")
