"""
Registry of the external collaborators the engine depends on.

``init_collaborators`` builds them from app config and stores them in
``app.extensions``; tests replace the entries with fakes.
"""

from flask import Flask, current_app

from opsflow.services.http_client import HttpClient
from opsflow.services.llm_service import LLMService
from opsflow.services.notification_service import NotificationService
from opsflow.services.retry_policy import RetryRunner


def init_collaborators(app: Flask) -> None:
    config = app.config
    app.extensions['llm'] = LLMService(
        api_key=config.get("OPENAI_API_KEY", ""),
        model=config.get("OPENAI_MODEL", "gpt-4o-mini"),
        search_model=config.get("OPENAI_SEARCH_MODEL", "gpt-4o-mini-search-preview"),
    )
    app.extensions['notifier'] = NotificationService(
        sendgrid_api_key=config.get("SENDGRID_API_KEY"),
        from_email=config.get("SENDGRID_FROM_EMAIL", "workflows@opsflow.dev"),
        from_name=config.get("SENDGRID_FROM_NAME", "OpsFlow"),
        slack_webhook_url=config.get("SLACK_WEBHOOK_URL"),
        timeout=config.get("HTTP_TIMEOUT_SECONDS", 15),
    )
    app.extensions['http_client'] = HttpClient(timeout=config.get("HTTP_TIMEOUT_SECONDS", 15))
    app.extensions['retry_runner'] = RetryRunner()


def get_llm():
    return current_app.extensions['llm']


def get_notifier():
    return current_app.extensions['notifier']


def get_http_client():
    return current_app.extensions['http_client']


def get_retry_runner():
    return current_app.extensions['retry_runner']
