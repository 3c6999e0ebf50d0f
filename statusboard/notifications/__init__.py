"""Failure notifications for check runs."""

from .email import EmailNotifier, format_failures_html
