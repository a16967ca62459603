# -*- coding: utf-8 -*-
"""
Tests for the outbound collaborators (HTTP egress, LLM, notifications) with
their transports mocked.
"""
import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from opsflow.services.errors import DeliveryError, LLMError, NotificationError
from opsflow.services.http_client import HttpClient
from opsflow.services.llm_service import LLMService
from opsflow.services.notification_service import NotificationService


def fake_response(status=200, body=None, text=None):
    response = MagicMock()
    response.status_code = status
    if body is not None:
        response.content = json.dumps(body).encode()
        response.json.return_value = body
        response.text = json.dumps(body)
    else:
        response.content = (text or "").encode()
        response.json.side_effect = ValueError("not json")
        response.text = text or ""
    return response


class TestHttpClient:

    def test_non_2xx_is_returned_not_raised(self):
        session = MagicMock()
        session.request.return_value = fake_response(500, {"error": "boom"})

        result = HttpClient(session=session).request("post", "https://x.test", json_body={"a": 1})

        assert result == {"status": 500, "ok": False, "data": {"error": "boom"}}
        method, url = session.request.call_args[0]
        assert method == "POST"
        assert session.request.call_args[1]["data"] == '{"a": 1}'

    def test_text_and_empty_bodies(self):
        session = MagicMock()
        session.request.side_effect = [fake_response(200, text="plain"), fake_response(204)]
        client = HttpClient(session=session)
        assert client.request("GET", "https://x.test")["data"] == "plain"
        assert client.request("GET", "https://x.test")["data"] is None

    def test_network_failure_raises_delivery_error(self):
        session = MagicMock()
        session.request.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(DeliveryError):
            HttpClient(session=session).post_json("https://down.test", {})


class TestLLMService:

    def test_unconfigured_service_raises(self):
        with pytest.raises(LLMError):
            LLMService(api_key="").generate("hi")

    @patch("opsflow.services.llm_service.requests.post")
    def test_plain_text_generation(self, post):
        post.return_value = fake_response(200, {"choices": [{"message": {"content": "hello"}}]})

        assert LLMService(api_key="k", model="m1").generate("hi") == "hello"
        payload = post.call_args[1]["json"]
        assert payload["model"] == "m1"
        assert "response_format" not in payload

    @patch("opsflow.services.llm_service.requests.post")
    def test_structured_generation_parses_json(self, post):
        post.return_value = fake_response(200, {"choices": [{"message": {"content": '{"plan": []}'}}]})
        schema = {"type": "object"}

        assert LLMService(api_key="k").generate("plan", response_schema=schema) == {"plan": []}
        assert post.call_args[1]["json"]["response_format"]["json_schema"]["schema"] is schema

    @patch("opsflow.services.llm_service.requests.post")
    def test_search_uses_search_model(self, post):
        post.return_value = fake_response(200, {"choices": [{"message": {"content": "found"}}]})
        LLMService(api_key="k", search_model="searcher").generate("q", add_context_from_internet=True)
        assert post.call_args[1]["json"]["model"] == "searcher"

    @patch("opsflow.services.llm_service.requests.post")
    def test_errors_become_llm_errors(self, post):
        service = LLMService(api_key="k")

        post.return_value = fake_response(429, {"error": "rate limited"})
        with pytest.raises(LLMError, match="429"):
            service.generate("x")

        post.return_value = fake_response(200, {"choices": [{"message": {"content": "not json"}}]})
        with pytest.raises(LLMError):
            service.generate("x", response_schema={"type": "object"})

        post.side_effect = requests.exceptions.Timeout()
        with pytest.raises(LLMError, match="timeout"):
            service.generate("x")


class TestNotificationService:

    def test_email_without_sendgrid_raises(self):
        with pytest.raises(NotificationError):
            NotificationService().send_email("a@b.test", "s", "b")

    def test_email_sent_through_sendgrid(self):
        service = NotificationService(sendgrid_api_key="SG.test")
        service.client = MagicMock()
        service.client.send.return_value = MagicMock(status_code=202)

        service.send_email("a@b.test", "Subject", "Body <b>")

        assert service.client.send.call_count == 1

    def test_rejected_email_raises(self):
        service = NotificationService(sendgrid_api_key="SG.test")
        service.client = MagicMock()
        service.client.send.return_value = MagicMock(status_code=400)
        with pytest.raises(NotificationError, match="400"):
            service.send_email("a@b.test", "s", "b")

    @patch("opsflow.services.notification_service.requests.post")
    def test_slack_notification(self, post):
        post.return_value = MagicMock(status_code=200)

        NotificationService(slack_webhook_url="https://hooks.slack.test/default").send_notification(
            "Deploy done", channel="#ops")

        url = post.call_args[0][0]
        assert url == "https://hooks.slack.test/default"
        assert post.call_args[1]["json"] == {"text": "Deploy done", "channel": "#ops"}

    @patch("opsflow.services.notification_service.requests.post")
    def test_explicit_webhook_overrides_default(self, post):
        post.return_value = MagicMock(status_code=500)
        service = NotificationService(slack_webhook_url="https://hooks.slack.test/default")
        with pytest.raises(NotificationError):
            service.send_notification("x", webhook_url="https://hooks.slack.test/other")
        assert post.call_args[0][0] == "https://hooks.slack.test/other"

    @patch("opsflow.services.notification_service.requests.post")
    def test_notification_without_webhook_is_logged_only(self, post):
        NotificationService().send_notification("hello")
        post.assert_not_called()
