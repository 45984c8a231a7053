"""Audit service: append-only, hash-chained event log."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Sequence
from uuid import UUID, uuid4

from sqlalchemy import func, insert, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import is_unique_violation
from ..core.exceptions import ConflictError
from ..core.security import hash_content
from ..models import AuditAction, AuditChainHead, AuditLog, utcnow

logger = logging.getLogger(__name__)

GLOBAL_CHAIN = "global"
MAX_APPEND_ATTEMPTS = 5


class AuditChainConflictError(ConflictError):
    """The chain head kept moving while appending."""
    pass


@dataclass
class ChainVerification:
    is_valid: bool
    verified_entries: int
    broken_at_id: UUID | None = None
    verified_at: datetime = field(default_factory=utcnow)


def chain_key(organization_id: UUID | None) -> str:
    return GLOBAL_CHAIN if organization_id is None else str(organization_id)


def _scope_filter(model, organization_id: UUID | None):
    if organization_id is None:
        return model.organization_id.is_(None)
    return model.organization_id == organization_id


class AuditService:
    """Service for audit logging.

    Each organization (and the global scope) has its own chain: every entry
    stores the hash of the entry before it, so a removed or edited row
    breaks the chain. The current tip of each chain lives in
    ``audit_chain_heads`` and only moves by compare-and-set.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log_event(
        self,
        action: AuditAction,
        resource_type: str,
        resource_id: UUID,
        organization_id: UUID | None = None,
        user_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Append an event to the organization's chain."""
        scope = chain_key(organization_id)
        await self._lock_chain(scope)

        # Normalize to what the JSON column will hand back on read
        details = json.loads(json.dumps(details or {}, default=str))

        for attempt in range(1, MAX_APPEND_ATTEMPTS + 1):
            previous_hash = await self._chain_head(scope)
            entry_id = uuid4()
            entry_hash = self._compute_hash(
                entry_id, organization_id, user_id, action,
                resource_type, resource_id, details, previous_hash,
            )
            if await self._advance_head(scope, previous_hash, entry_hash):
                break
            logger.info(f"Audit chain {scope} moved during append (attempt {attempt})")
        else:
            raise AuditChainConflictError(f"Could not append to audit chain {scope}")

        entry = AuditLog(
            id=entry_id,
            organization_id=organization_id,
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details,
            previous_hash=previous_hash,
            entry_hash=entry_hash,
        )
        self.session.add(entry)
        await self.session.flush()

        logger.debug(f"Audit {action.value} {resource_type}:{resource_id}")
        return entry

    async def get_audit_log(
        self,
        organization_id: UUID,
        user_id: UUID | None = None,
        action: AuditAction | None = None,
        resource_type: str | None = None,
        resource_id: UUID | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[Sequence[AuditLog], int]:
        """Query the audit log with filters."""
        query = select(AuditLog).where(AuditLog.organization_id == organization_id)

        if user_id:
            query = query.where(AuditLog.user_id == user_id)
        if action:
            query = query.where(AuditLog.action == action)
        if resource_type:
            query = query.where(AuditLog.resource_type == resource_type)
        if resource_id:
            query = query.where(AuditLog.resource_id == resource_id)
        if start_date:
            query = query.where(AuditLog.created_at >= start_date)
        if end_date:
            query = query.where(AuditLog.created_at <= end_date)

        # Count total
        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.session.execute(count_query)).scalar_one()

        # Get results
        query = query.order_by(AuditLog.created_at.desc()).limit(limit).offset(offset)
        result = await self.session.execute(query)

        return result.scalars().all(), total

    async def verify_chain_integrity(self, organization_id: UUID | None) -> ChainVerification:
        """Recompute every hash and walk the chain from its first entry to the head."""
        result = await self.session.execute(
            select(AuditLog).where(_scope_filter(AuditLog, organization_id))
        )
        entries = result.scalars().all()
        head = await self._chain_head(chain_key(organization_id))
        if not entries:
            return ChainVerification(is_valid=head is None, verified_entries=0)

        by_previous: dict[str | None, AuditLog] = {}
        for entry in entries:
            expected = self._compute_hash(
                entry.id, entry.organization_id, entry.user_id, entry.action,
                entry.resource_type, entry.resource_id, entry.details or {},
                entry.previous_hash,
            )
            if expected != entry.entry_hash:
                logger.warning(f"Audit entry {entry.id} hash mismatch")
                return ChainVerification(False, len(by_previous), broken_at_id=entry.id)
            if entry.previous_hash in by_previous:
                logger.warning(f"Audit chain fork at {entry.previous_hash}")
                return ChainVerification(False, len(by_previous), broken_at_id=entry.id)
            by_previous[entry.previous_hash] = entry

        # Walk from genesis; every entry must be reachable and the last one is the head
        visited = 0
        last = None
        cursor = by_previous.get(None)
        while cursor is not None:
            visited += 1
            last = cursor
            cursor = by_previous.get(cursor.entry_hash)

        if visited != len(entries) or last.entry_hash != head:
            logger.warning(f"Audit chain {chain_key(organization_id)} is not contiguous")
            return ChainVerification(False, visited, broken_at_id=last.id if last else None)

        return ChainVerification(is_valid=True, verified_entries=visited)

    # =========================================================================
    # CHAIN HEAD
    # =========================================================================

    async def _lock_chain(self, scope: str) -> None:
        """Serialize appends to one chain until the transaction ends (PostgreSQL)."""
        if self.session.get_bind().dialect.name != "postgresql":
            return
        await self.session.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:scope))"), {"scope": scope}
        )

    async def _chain_head(self, scope: str) -> str | None:
        result = await self.session.execute(
            select(AuditChainHead.head_hash).where(AuditChainHead.scope_key == scope)
        )
        return result.scalar_one_or_none()

    async def _advance_head(
        self, scope: str, previous_hash: str | None, entry_hash: str
    ) -> bool:
        """Move the head from ``previous_hash`` to ``entry_hash``; False if it moved."""
        if previous_hash is None:
            try:
                await self.session.execute(
                    insert(AuditChainHead).values(
                        scope_key=scope, head_hash=entry_hash, updated_at=utcnow()
                    )
                )
            except IntegrityError as e:
                if is_unique_violation(e):
                    return False
                raise
            return True

        # Head rows are never loaded as ORM objects
        result = await self.session.execute(
            update(AuditChainHead)
            .where(
                AuditChainHead.scope_key == scope,
                AuditChainHead.head_hash == previous_hash,
            )
            .values(head_hash=entry_hash, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def _compute_hash(
        entry_id: UUID,
        organization_id: UUID | None,
        user_id: UUID | None,
        action: AuditAction | str,
        resource_type: str,
        resource_id: UUID,
        details: dict[str, Any],
        previous_hash: str | None,
    ) -> str:
        action_value = action.value if isinstance(action, AuditAction) else action
        payload = json.dumps(
            {
                "id": str(entry_id),
                "organization_id": str(organization_id) if organization_id else None,
                "user_id": str(user_id) if user_id else None,
                "action": action_value,
                "resource_type": resource_type,
                "resource_id": str(resource_id),
                "details": details,
                "previous_hash": previous_hash,
            },
            sort_keys=True,
            default=str,
        )
        return hash_content(payload)
