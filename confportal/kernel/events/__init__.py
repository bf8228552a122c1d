"""
Append-only audit logging.
"""

from confportal.kernel.events.event_store import EventStore

__all__ = ["EventStore"]
