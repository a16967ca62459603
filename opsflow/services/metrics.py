# -*- coding: utf-8 -*-
"""
Service for managing Prometheus metrics.

Each app gets its own CollectorRegistry so several apps (tests, workers) can
live in one process. HTTP request metrics are recorded by middleware; the
engine records execution outcomes through ``get_metrics_service()``.
"""

import os
import time
from typing import Optional
from flask import Flask, request, g, current_app, has_app_context
from prometheus_client import CollectorRegistry, Counter, Histogram
from prometheus_client.exposition import generate_latest


def init_metrics(app: Flask) -> None:
    """Initialize metrics service and endpoints."""
    service = MetricsService()
    app.extensions['metrics'] = service

    if service.enabled:
        @app.before_request
        def before_request():
            g.metrics_start_time = time.time()

        @app.after_request
        def after_request(response):
            start = getattr(g, 'metrics_start_time', None)
            if start is not None:
                service.record_http_request(
                    route=request.url_rule.rule if request.url_rule else request.path,
                    method=request.method,
                    status_code=response.status_code,
                    duration_seconds=time.time() - start
                )
            return response

        @app.route("/metrics")
        def metrics():
            return generate_latest(service.registry), 200, {
                'Content-Type': 'text/plain; version=0.0.4; charset=utf-8'}


def get_metrics_service() -> Optional['MetricsService']:
    """Get the metrics service instance from the current app context."""
    if has_app_context():
        return current_app.extensions.get('metrics')
    return None


class MetricsService:
    """Service for managing Prometheus metrics."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.enabled = os.environ.get(
            "OPSFLOW_METRICS_ENABLED",
            "true").lower() == "true"
        self.registry = registry if registry is not None else CollectorRegistry()

        if self.enabled:
            self.http_requests_total = Counter(
                "opsflow_http_requests_total",
                "Total number of HTTP requests.",
                ["route", "method", "status"],
                registry=self.registry
            )
            self.http_request_duration_seconds = Histogram(
                "opsflow_http_request_duration_seconds",
                "Duration of HTTP requests in seconds.",
                ["route", "method"],
                registry=self.registry
            )
            self.workflow_executions_total = Counter(
                "opsflow_workflow_executions_total",
                "Finished workflow executions.",
                ["status"],
                registry=self.registry
            )
            self.workflow_steps_total = Counter(
                "opsflow_workflow_steps_total",
                "Executed workflow steps, including retries.",
                ["action", "status"],
                registry=self.registry
            )
            self.agent_executions_total = Counter(
                "opsflow_agent_executions_total",
                "Finished agent executions.",
                ["status"],
                registry=self.registry
            )
            self.tool_invocations_total = Counter(
                "opsflow_tool_invocations_total",
                "Tool invocations.",
                ["function", "status"],
                registry=self.registry
            )

    def record_http_request(
            self,
            route: str,
            method: str,
            status_code: int,
            duration_seconds: float):
        if self.enabled:
            self.http_requests_total.labels(
                route=route,
                method=method,
                status=status_code).inc()
            self.http_request_duration_seconds.labels(
                route=route, method=method).observe(duration_seconds)

    def record_workflow_execution(self, status: str):
        if self.enabled:
            self.workflow_executions_total.labels(status=status).inc()

    def record_workflow_step(self, action: str, status: str):
        if self.enabled:
            self.workflow_steps_total.labels(action=action or "none", status=status).inc()

    def record_agent_execution(self, status: str):
        if self.enabled:
            self.agent_executions_total.labels(status=status).inc()

    def record_tool_invocation(self, function: str, status: str):
        if self.enabled:
            self.tool_invocations_total.labels(function=function, status=status).inc()

    def get_metrics(self) -> str:
        if self.enabled:
            return generate_latest(self.registry).decode('utf-8')
        return ""
