"""Utility modules for configuration, logging, errors, auth and AWS integration."""

from .response_formatter import ResponseFormatter

__all__ = [
    'ResponseFormatter'
]
