"""OpsFlow workflow and agent execution service."""

__version__ = "0.4.0"
