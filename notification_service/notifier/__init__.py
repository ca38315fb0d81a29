"""
Notifier package.

This package contains:
- SMS-style message templates for auction events
- an in-memory hub holding delivered notifications and per-topic
  real-time event feeds

The main user-facing pieces are:
    render_message(kind, context)
    EventHub
"""

from .hub import EventHub
from .messages import KINDS, render_message

__all__ = [
    "EventHub",
    "KINDS",
    "render_message",
]
