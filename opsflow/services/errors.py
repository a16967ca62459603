# -*- coding: utf-8 -*-
"""
Error taxonomy for the execution engine.

Every exception carries the HTTP status the API layer translates it into.
``retryable`` tells the workflow retry policy whether another attempt can
possibly succeed.
"""


class OpsFlowError(Exception):
    status_code = 500
    retryable = True

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(OpsFlowError):
    status_code = 400
    retryable = False


class UnauthorizedError(OpsFlowError):
    status_code = 401
    retryable = False

    def __init__(self, message: str = "Unauthorized", details: dict = None):
        super().__init__(message, details)


class ForbiddenError(OpsFlowError):
    status_code = 403
    retryable = False


class NotFoundError(OpsFlowError):
    status_code = 404
    retryable = False


class ConflictError(OpsFlowError):
    status_code = 409
    retryable = False


class StepConfigurationError(OpsFlowError):
    """A step or tool is configured in a way that can never succeed."""
    status_code = 400
    retryable = False


class SubWorkflowError(StepConfigurationError):
    """Sub-workflow recursion hit a cycle or the configured depth limit."""


class LLMError(OpsFlowError):
    """The text-generation collaborator failed or returned garbage."""
    status_code = 502


class DeliveryError(OpsFlowError):
    """Outbound HTTP request could not be delivered (network level)."""
    status_code = 502


class NotificationError(OpsFlowError):
    """Email or chat notification was rejected by the provider."""
    status_code = 502


def is_retryable(error: Exception) -> bool:
    """Configuration-class errors are never retried; everything else may be."""
    return getattr(error, "retryable", True)
