"""Idempotency service for replaying responses to retried requests."""

import hashlib
import json
import logging
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.exceptions import ProblemDetailsException
from ..models.idempotency import IdempotencyRecord

logger = logging.getLogger(__name__)


class IdempotencyMismatchError(ProblemDetailsException):
    """Exception when an idempotency key is reused with a different request body."""

    def __init__(self, method: str):
        super().__init__(
            status_code=422,
            title="Idempotency Key Mismatch",
            detail=f"Idempotency key was already used for '{method}' with a different request body",
            type_uri="https://example.com/problems/idempotency-key-mismatch",
            extensions={
                "code": "IDEMPOTENCY_KEY_MISMATCH",
                "retryable": False,
                "method": method,
            },
        )


def compute_request_hash(request_body: dict[str, Any]) -> str:
    """SHA-256 of the request body with keys sorted."""
    normalized = json.dumps(request_body, sort_keys=True, separators=(',', ':'), default=str)
    return hashlib.sha256(normalized.encode('utf-8')).hexdigest()


def scope_idempotency_key(idempotency_key: str, owner_id: Optional[str]) -> str:
    """Bind a hashed idempotency key to the caller; anonymous callers share the guest scope."""
    scoped = f"{owner_id or 'guest'}:{idempotency_key}"
    return hashlib.sha256(scoped.encode('utf-8')).hexdigest()


class IdempotencyService:
    """Service for handling idempotent operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def check_idempotency(
        self,
        idempotency_key: str,
        method: str,
        request_body: dict[str, Any],
    ) -> tuple[int, dict[str, Any]] | None:
        """
        Return the cached response for a retried request, if any.

        Args:
            idempotency_key: Hashed idempotency key
            method: Operation name
            request_body: Request body to hash and compare

        Returns:
            Tuple of (status_code, response_body), or None for a new request

        Raises:
            IdempotencyMismatchError: If key exists with different request body
        """
        request_hash = compute_request_hash(request_body)

        stmt = select(IdempotencyRecord).where(
            IdempotencyRecord.idempotency_key == idempotency_key,
            IdempotencyRecord.method == method,
            IdempotencyRecord.expires_at > utcnow()
        )
        result = await self.db.execute(stmt)
        existing_record = result.scalar_one_or_none()

        if existing_record is None:
            return None

        if existing_record.request_body_hash != request_hash:
            logger.warning(
                "Idempotency key mismatch",
                extra={
                    "method": method,
                    "existing_hash": existing_record.request_body_hash[:8],
                    "new_hash": request_hash[:8]
                }
            )
            raise IdempotencyMismatchError(method)

        logger.info(
            "Returning cached idempotent response",
            extra={
                "method": method,
                "status_code": existing_record.response_status_code,
                "created_at": existing_record.created_at.isoformat()
            }
        )
        return existing_record.response_status_code, json.loads(existing_record.response_body)

    async def store_response(
        self,
        idempotency_key: str,
        method: str,
        request_body: dict[str, Any],
        status_code: int,
        response_body: dict[str, Any],
        ttl_hours: int = 24
    ) -> None:
        """
        Store the response of an idempotent operation for ``ttl_hours``.

        An expired record for the same key and operation is replaced.
        """
        now = utcnow()
        expires_at = now + timedelta(hours=ttl_hours)

        await self.db.execute(
            delete(IdempotencyRecord).where(
                IdempotencyRecord.idempotency_key == idempotency_key,
                IdempotencyRecord.method == method,
                IdempotencyRecord.expires_at <= now
            )
        )

        record = IdempotencyRecord(
            idempotency_key=idempotency_key,
            method=method,
            request_body_hash=compute_request_hash(request_body),
            response_status_code=status_code,
            response_body=json.dumps(response_body, sort_keys=True, separators=(',', ':')),
            expires_at=expires_at
        )

        try:
            self.db.add(record)
            await self.db.commit()
        except IntegrityError as e:
            # A concurrent request stored the same key first
            await self.db.rollback()
            logger.info(
                "Idempotency record already exists",
                extra={"method": method, "error": str(e.orig)}
            )
            return

        logger.info(
            "Stored idempotency record",
            extra={
                "method": method,
                "status_code": status_code,
                "expires_at": expires_at.isoformat()
            }
        )

    async def cleanup_expired_records(self) -> int:
        """Delete expired idempotency records and return how many were removed."""
        stmt = delete(IdempotencyRecord).where(IdempotencyRecord.expires_at <= utcnow())
        result = await self.db.execute(stmt)
        await self.db.commit()

        if result.rowcount:
            logger.info(
                "Cleaned up expired idempotency records",
                extra={"deleted_count": result.rowcount}
            )
        return result.rowcount
