"""
Event Store service for append-only audit logging.

State changes are logged here in the same transaction that applies them, so
an audit row exists exactly when the change was committed.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import select, and_, desc, func
from sqlalchemy.ext.asyncio import AsyncSession

from confportal.kernel.models.event_log import EventLog, EventType


class EventStore:
    """
    Service for managing the immutable event log.

    Usage:
        event_store = EventStore(session)
        await event_store.log(
            event_type=EventType.SUBMISSION_STATUS_CHANGED,
            entity_type="submission",
            entity_id=submission.id,
            user_id=admin_id,
            payload={"from": "pending", "to": "accepted"},
        )
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(
        self,
        event_type: EventType,
        entity_type: str,
        entity_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
        payload: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> EventLog:
        """
        Log an event to the immutable audit log.

        Args:
            event_type: The type of event
            entity_type: The type of entity (user, submission, attendee)
            entity_id: The ID of the entity
            user_id: The ID of the user who triggered the event (None for gateway callbacks)
            payload: Additional event data
            ip_address: Client IP address

        Returns:
            The created EventLog record
        """
        event = EventLog(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            payload=self._serialize_payload(payload) if payload else {},
            ip_address=ip_address,
        )

        self.session.add(event)
        # Caller's transaction commits it
        return event

    async def get_entity_history(
        self,
        entity_type: str,
        entity_id: uuid.UUID,
        event_types: Optional[List[EventType]] = None,
        limit: int = 100,
    ) -> List[EventLog]:
        """Get the event history for a specific entity, newest first."""
        query = select(EventLog).where(
            and_(
                EventLog.entity_type == entity_type,
                EventLog.entity_id == entity_id,
            )
        )

        if event_types:
            query = query.where(EventLog.event_type.in_(event_types))

        query = query.order_by(desc(EventLog.created_at)).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_events(
        self,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
        event_type: Optional[EventType] = None,
    ) -> int:
        """Count events matching the given criteria."""
        query = select(func.count(EventLog.id))

        if entity_type:
            query = query.where(EventLog.entity_type == entity_type)
        if entity_id:
            query = query.where(EventLog.entity_id == entity_id)
        if event_type:
            query = query.where(EventLog.event_type == event_type)

        result = await self.session.execute(query)
        return result.scalar() or 0

    def _serialize_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Convert payload values to JSON-serializable types."""
        return {key: self._serialize_value(value) for key, value in payload.items()}

    def _serialize_value(self, value: Any) -> Any:
        if isinstance(value, dict):
            return self._serialize_payload(value)
        if isinstance(value, (list, tuple)):
            return [self._serialize_value(v) for v in value]
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, (uuid.UUID, Decimal)):
            return str(value)
        if isinstance(value, datetime):
            return value.isoformat()
        return value
