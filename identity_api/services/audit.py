"""
Best-effort audit trail.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from identity_api.db.models import AuditAction, AuditLogModel

logger = logging.getLogger(__name__)


class AuditTrail:
    """
    Appends audit rows inside a savepoint of the caller's transaction.

    A failed write rolls back only the savepoint and is logged; it never
    fails or undoes the mutation being audited.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        action: AuditAction,
        entity_type: str,
        entity_id: str,
        detail: str = "",
    ) -> bool:
        """Record one action. Returns False if the write failed."""
        try:
            async with self.session.begin_nested():
                self.session.add(
                    AuditLogModel(
                        action=action.value,
                        entity_type=entity_type,
                        entity_id=entity_id,
                        detail=detail,
                    )
                )
        except SQLAlchemyError:
            logger.exception(f"Failed to write audit entry {action.value} for {entity_type} {entity_id}")
            return False
        return True
