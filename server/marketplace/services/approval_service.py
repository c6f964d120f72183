"""
Approval workflow for global catalog entities.

Categories and destinations share one workflow: sellers submit entries,
admins approve or reject them, and each seller keeps a preference row
that mirrors the global approval state next to their own visibility
flags. ``ApprovalService`` is parameterized by an ``EntityKind`` that
names the model and its content fields.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.dependencies import AuthContext
from ..core.exceptions import ConflictError, NotFoundError, PolicyViolationError, ValidationError
from ..core.observability import metrics_collector
from ..models.catalog import ApprovalStatus, GlobalCategory, GlobalDestination
from ..models.seller_preference import EntityKindName, SellerPreference
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityKind:
    """Describes one kind of global entity handled by the workflow."""

    name: EntityKindName
    model: type
    content_fields: tuple[str, ...]
    # Fields compared case-insensitively to detect duplicate submissions
    identity_fields: tuple[str, ...]

    @property
    def label(self) -> str:
        return self.name.value


CATEGORY = EntityKind(
    name=EntityKindName.CATEGORY,
    model=GlobalCategory,
    content_fields=("name", "description", "image_url", "reason"),
    identity_fields=("name",),
)

DESTINATION = EntityKind(
    name=EntityKindName.DESTINATION,
    model=GlobalDestination,
    content_fields=("name", "description", "cover_image", "country", "region", "city"),
    identity_fields=("name", "country", "city"),
)


def slugify(value: str) -> str:
    """Lowercase, hyphen-separated slug of ``value``."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "entry"


def is_activation_toggle_only(current: Mapping[str, Any], changes: Mapping[str, Any]) -> bool:
    """True when ``changes`` flips ``is_active`` and leaves every other field as it is."""
    if "is_active" not in changes:
        return False
    return all(current.get(field) == value for field, value in changes.items() if field != "is_active")


class RemovalOutcome(str, Enum):
    """What removing an entity from a seller's list did."""
    HIDDEN = "hidden"
    DELETED = "deleted"
    REMOVED = "removed"


@dataclass
class SellerEntityView:
    """A global entity joined with one seller's preference."""

    entity: Any
    preference: SellerPreference
    is_owner: bool


class ApprovalService:
    """Service for the submit/approve/reject lifecycle of one entity kind."""

    def __init__(self, db: AsyncSession, kind: EntityKind):
        self.db = db
        self.kind = kind
        self.model = kind.model
        self.notifications = NotificationService(db)

    # Lookups

    async def get_by_id(self, entity_id: UUID):
        stmt = select(self.model).where(self.model.id == entity_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id_or_raise(self, entity_id: UUID):
        entity = await self.get_by_id(entity_id)
        if entity is None:
            logger.warning(
                "Global entity not found",
                extra={"kind": self.kind.label, "entity_id": str(entity_id)}
            )
            raise NotFoundError(resource_type=self.kind.label, resource_id=str(entity_id))
        return entity

    async def get(self, entity_id: UUID, auth: Optional[AuthContext] = None):
        """
        Get an entity; unapproved ones are visible only to their creator and admins.

        Raises:
            NotFoundError: If not found or not visible to the caller
        """
        entity = await self.get_by_id_or_raise(entity_id)
        if entity.approval_status != ApprovalStatus.APPROVED:
            visible = auth is not None and (auth.is_admin or entity.created_by == auth.user_id)
            if not visible:
                raise NotFoundError(resource_type=self.kind.label, resource_id=str(entity_id))
        return entity

    async def _list_by_status(self, status: ApprovalStatus, active_only: bool = False) -> list:
        stmt = select(self.model).where(self.model.approval_status == status.value)
        if active_only:
            stmt = stmt.where(self.model.is_active.is_(True))
        stmt = stmt.order_by(self.model.submitted_at.desc())
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def list_approved(self) -> list:
        """Approved and globally active entities."""
        return await self._list_by_status(ApprovalStatus.APPROVED, active_only=True)

    async def list_pending(self) -> list:
        """Entities awaiting review."""
        return await self._list_by_status(ApprovalStatus.PENDING)

    async def list_rejected(self) -> list:
        """Rejected entities."""
        return await self._list_by_status(ApprovalStatus.REJECTED)

    async def list_for_seller(self, seller: AuthContext) -> list[SellerEntityView]:
        """Entities on the seller's list, with the seller's flags."""
        stmt = (
            select(self.model, SellerPreference)
            .join(SellerPreference, SellerPreference.entity_id == self.model.id)
            .where(
                SellerPreference.entity_kind == self.kind.name.value,
                SellerPreference.seller_id == seller.user_id,
                SellerPreference.is_visible.is_(True),
            )
            .order_by(self.model.name)
        )
        result = await self.db.execute(stmt)
        return [
            SellerEntityView(entity=entity, preference=preference, is_owner=entity.created_by == seller.user_id)
            for entity, preference in result.all()
        ]

    # Helpers

    async def _find_duplicate(self, values: Mapping[str, Any], exclude_id: Optional[UUID] = None):
        conditions = []
        for field in self.kind.identity_fields:
            column = getattr(self.model, field)
            value = values.get(field)
            if value is None:
                conditions.append(column.is_(None))
            else:
                conditions.append(func.lower(column) == value.lower())
        if exclude_id is not None:
            conditions.append(self.model.id != exclude_id)

        stmt = select(self.model).where(*conditions).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _ensure_unique(self, values: Mapping[str, Any], exclude_id: Optional[UUID] = None) -> None:
        duplicate = await self._find_duplicate(values, exclude_id)
        if duplicate is not None:
            raise ConflictError(
                detail=f"A {self.kind.label} named '{duplicate.name}' already exists",
                conflicting_resource={
                    "id": str(duplicate.id),
                    "name": duplicate.name,
                    "approval_status": ApprovalStatus(duplicate.approval_status).value,
                }
            )

    async def _unique_slug(self, name: str, exclude_id: Optional[UUID] = None) -> str:
        base = slugify(name)
        candidate = base
        suffix = 2
        while True:
            stmt = select(self.model.id).where(self.model.slug == candidate)
            if exclude_id is not None:
                stmt = stmt.where(self.model.id != exclude_id)
            if await self.db.scalar(stmt) is None:
                return candidate
            candidate = f"{base}-{suffix}"
            suffix += 1

    async def _get_preference(self, seller_id: UUID, entity_id: UUID) -> Optional[SellerPreference]:
        stmt = select(SellerPreference).where(
            SellerPreference.entity_kind == self.kind.name.value,
            SellerPreference.seller_id == seller_id,
            SellerPreference.entity_id == entity_id,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _upsert_preference(self, seller_id: UUID, entity, **flags) -> SellerPreference:
        """Create or update a seller's preference, mirroring the entity's approval state."""
        preference = await self._get_preference(seller_id, entity.id)
        if preference is None:
            preference = SellerPreference(
                entity_kind=self.kind.name,
                seller_id=seller_id,
                entity_id=entity.id,
                is_active=False,
                is_visible=True,
                is_enabled=True,
                is_favorite=False,
                added_at=utcnow(),
            )
            self.db.add(preference)

        preference.is_approved = entity.is_approved
        preference.approval_status = entity.approval_status
        for name, value in flags.items():
            setattr(preference, name, value)
        return preference

    async def _sync_preferences(self, entity, deactivate: bool) -> None:
        """Copy the entity's approval state into every seller's preference."""
        values = {
            "is_approved": entity.is_approved,
            "approval_status": ApprovalStatus(entity.approval_status).value,
        }
        if deactivate:
            values["is_active"] = False
        stmt = (
            update(SellerPreference)
            .where(
                SellerPreference.entity_kind == self.kind.name.value,
                SellerPreference.entity_id == entity.id,
            )
            .values(**values)
        )
        await self.db.execute(stmt)

    async def _delete_entity(self, entity) -> None:
        await self.db.execute(
            delete(SellerPreference).where(
                SellerPreference.entity_kind == self.kind.name.value,
                SellerPreference.entity_id == entity.id,
            )
        )
        await self.db.delete(entity)

    def _content_of(self, entity) -> dict[str, Any]:
        content = {field: getattr(entity, field) for field in self.kind.content_fields}
        content["is_active"] = entity.is_active
        return content

    # Workflow

    async def submit(self, data: Mapping[str, Any], seller: AuthContext):
        """
        Submit a new entity for review.

        Raises:
            ConflictError: If an entity with the same identity already exists
        """
        await self._ensure_unique(data)

        content = {field: data.get(field) for field in self.kind.content_fields}
        entity = self.model(
            **content,
            slug=await self._unique_slug(data["name"]),
            created_by=seller.user_id,
            approval_status=ApprovalStatus.PENDING,
            is_approved=False,
            is_active=False,
            submitted_at=utcnow(),
            usage_count=0,
        )
        self.db.add(entity)
        await self.db.flush()

        await self._upsert_preference(seller.user_id, entity, is_active=False)

        await self.db.commit()
        await self.db.refresh(entity)

        logger.info(
            "Global entity submitted",
            extra={
                "kind": self.kind.label,
                "entity_id": str(entity.id),
                "entity_name": entity.name,
                "created_by": str(seller.user_id)
            }
        )
        return entity

    async def approve(self, entity_id: UUID, admin: AuthContext):
        """
        Approve an entity and activate it for its creator.

        Approving an already approved and active entity changes nothing.

        Raises:
            NotFoundError: If entity not found
        """
        entity = await self.get_by_id_or_raise(entity_id)
        if entity.approval_status == ApprovalStatus.APPROVED and entity.is_active:
            return entity

        entity.approval_status = ApprovalStatus.APPROVED
        entity.is_approved = True
        entity.is_active = True
        entity.approved_by = admin.user_id
        entity.approved_at = utcnow()
        entity.rejected_by = None
        entity.rejected_at = None
        entity.rejection_reason = None

        await self._sync_preferences(entity, deactivate=False)
        await self._upsert_preference(entity.created_by, entity, is_active=True)
        self.notifications.notify_decision(self.kind.label, entity, ApprovalStatus.APPROVED, admin.user_id)

        await self.db.commit()
        await self.db.refresh(entity)

        metrics_collector.record_approval_decision(self.kind.label, "approved")
        logger.info(
            "Global entity approved",
            extra={"kind": self.kind.label, "entity_id": str(entity.id), "approved_by": str(admin.user_id)}
        )
        return entity

    async def reject(self, entity_id: UUID, admin: AuthContext, reason: Optional[str]):
        """
        Reject an entity and deactivate it everywhere.

        Raises:
            ValidationError: If no reason is given
            NotFoundError: If entity not found
        """
        if not reason or not reason.strip():
            raise ValidationError(
                detail="A rejection reason is required",
                violations=[{"path": "reason", "message": "Field required"}],
            )

        entity = await self.get_by_id_or_raise(entity_id)

        entity.approval_status = ApprovalStatus.REJECTED
        entity.is_approved = False
        entity.is_active = False
        entity.rejected_by = admin.user_id
        entity.rejected_at = utcnow()
        entity.rejection_reason = reason.strip()
        entity.approved_by = None
        entity.approved_at = None

        await self._sync_preferences(entity, deactivate=True)
        await self._upsert_preference(entity.created_by, entity, is_active=False)
        self.notifications.notify_decision(self.kind.label, entity, ApprovalStatus.REJECTED, admin.user_id)

        await self.db.commit()
        await self.db.refresh(entity)

        metrics_collector.record_approval_decision(self.kind.label, "rejected")
        logger.info(
            "Global entity rejected",
            extra={
                "kind": self.kind.label,
                "entity_id": str(entity.id),
                "rejected_by": str(admin.user_id),
                "reason": entity.rejection_reason
            }
        )
        return entity

    async def update(self, entity_id: UUID, changes: Mapping[str, Any], auth: AuthContext):
        """
        Edit an entity.

        Admins may edit anything and keep its status. A seller may edit only
        their own entries; any content change sends the entry back to review,
        while a bare activation toggle does not.

        Raises:
            NotFoundError: If not found or not owned by the seller
            ConflictError: If the new identity collides with another entity
            PolicyViolationError: If activating an entity that is not approved
        """
        if "name" in changes and not changes["name"]:
            raise ValidationError(
                detail=f"A {self.kind.label} name cannot be empty",
                violations=[{"path": "name", "message": "Field required"}],
            )

        entity = await self.get_by_id_or_raise(entity_id)
        if not auth.is_admin and entity.created_by != auth.user_id:
            raise NotFoundError(resource_type=self.kind.label, resource_id=str(entity_id))

        current =self._content_of(entity)
        toggle_only = is_activation_toggle_only(current, changes)
        content_changes = {
            field: value for field, value in changes.items()
            if field in self.kind.content_fields and current.get(field) != value
        }

        if any(field in content_changes for field in self.kind.identity_fields):
            merged = {field: content_changes.get(field, current.get(field)) for field in self.kind.identity_fields}
            await self._ensure_unique(merged, exclude_id=entity.id)
            if "name" in content_changes:
                entity.slug = await self._unique_slug(content_changes["name"], exclude_id=entity.id)

        for field, value in content_changes.items():
            setattr(entity, field, value)

        resubmitted = not auth.is_admin and not toggle_only and bool(content_changes)
        if resubmitted:
            entity.mark_pending()
            await self._sync_preferences(entity, deactivate=True)
        elif "is_active" in changes and changes["is_active"] != entity.is_active:
            if changes["is_active"] and entity.approval_status != ApprovalStatus.APPROVED:
                raise PolicyViolationError(
                    detail=f"Only approved {self.kind.label} entries can be activated",
                    policy="activation_not_allowed",
                )
            entity.is_active = changes["is_active"]
            await self._upsert_preference(entity.created_by, entity, is_active=entity.is_active)

        await self.db.commit()
        await self.db.refresh(entity)

        logger.info(
            "Global entity updated",
            extra={
                "kind": self.kind.label,
                "entity_id": str(entity.id),
                "updated_by": str(auth.user_id),
                "fields": sorted(content_changes),
                "resubmitted": resubmitted
            }
        )
        return entity

    async def delete(self, entity_id: UUID, admin: AuthContext) -> None:
        """
        Permanently delete an entity and every seller preference for it.

        Raises:
            NotFoundError: If entity not found
        """
        entity = await self.get_by_id_or_raise(entity_id)
        await self._delete_entity(entity)
        await self.db.commit()

        logger.info(
            "Global entity deleted",
            extra={"kind": self.kind.label, "entity_id": str(entity_id), "deleted_by": str(admin.user_id)}
        )

    # Seller preferences

    async def _get_for_seller(self, entity_id: UUID, seller: AuthContext):
        entity = await self.get_by_id_or_raise(entity_id)
        is_owner = entity.created_by == seller.user_id
        if entity.approval_status != ApprovalStatus.APPROVED and not is_owner:
            raise NotFoundError(resource_type=self.kind.label, resource_id=str(entity_id))
        return entity, is_owner

    async def toggle_active(self, seller: AuthContext, entity_id: UUID) -> SellerEntityView:
        """
        Flip the seller's activation of an entity.

        Raises:
            NotFoundError: If the entity is neither approved nor the seller's own
            PolicyViolationError: If activating a rejected entity, or a pending one the seller did not create
        """
        entity, is_owner = await self._get_for_seller(entity_id, seller)
        approved = entity.approval_status == ApprovalStatus.APPROVED

        preference = await self._get_preference(seller.user_id, entity.id)
        if preference is None:
            preference = await self._upsert_preference(seller.user_id, entity, is_active=approved)
        else:
            target = not preference.is_active
            if target:
                if entity.approval_status == ApprovalStatus.REJECTED:
                    raise PolicyViolationError(
                        detail=f"A rejected {self.kind.label} cannot be activated",
                        policy="activation_not_allowed",
                    )
                if entity.approval_status == ApprovalStatus.PENDING and not is_owner:
                    raise PolicyViolationError(
                        detail=f"A pending {self.kind.label} can only be activated by its creator",
                        policy="activation_not_allowed",
                    )
            preference.is_active = target

        await self.db.commit()
        await self.db.refresh(preference)

        logger.info(
            "Seller activation toggled",
            extra={
                "kind": self.kind.label,
                "entity_id": str(entity.id),
                "seller_id": str(seller.user_id),
                "is_active": preference.is_active
            }
        )
        return SellerEntityView(entity=entity, preference=preference, is_owner=is_owner)

    async def toggle_favorite(self, seller: AuthContext, entity_id: UUID) -> SellerEntityView:
        """
        Flip the seller's favorite flag on an entity.

        Raises:
            NotFoundError: If the entity is neither approved nor the seller's own
        """
        entity, is_owner = await self._get_for_seller(entity_id, seller)

        preference = await self._get_preference(seller.user_id, entity.id)
        if preference is None:
            approved = entity.approval_status == ApprovalStatus.APPROVED
            preference = await self._upsert_preference(
                seller.user_id, entity, is_active=approved, is_favorite=True
            )
        else:
            preference.is_favorite = not preference.is_favorite

        await self.db.commit()
        await self.db.refresh(preference)
        return SellerEntityView(entity=entity, preference=preference, is_owner=is_owner)

    async def add_existing_to_seller_list(self, seller: AuthContext, entity_id: UUID) -> SellerEntityView:
        """
        Put an approved entity on the seller's list.

        ``usage_count`` counts the other sellers listing an entity; the
        creator's own listing is never counted.

        Raises:
            NotFoundError: If the entity does not exist or is not approved
        """
        entity = await self.get_by_id_or_raise(entity_id)
        if entity.approval_status != ApprovalStatus.APPROVED:
            raise NotFoundError(
                resource_type=self.kind.label,
                resource_id=str(entity_id),
                detail=f"Approved {self.kind.label} with ID '{entity_id}' could not be found",
            )

        existing = await self._get_preference(seller.user_id, entity.id)
        newly_listed = existing is None or not existing.is_visible

        preference = await self._upsert_preference(
            seller.user_id,
            entity,
            is_visible=True,
            is_enabled=True,
            is_active=True,
        )
        if newly_listed:
            if entity.created_by != seller.user_id:
                entity.usage_count += 1
            preference.added_at = utcnow()

        await self.db.commit()
        await self.db.refresh(entity)
        await self.db.refresh(preference)

        logger.info(
            "Global entity added to seller list",
            extra={
                "kind": self.kind.label,
                "entity_id": str(entity.id),
                "seller_id": str(seller.user_id),
                "usage_count": entity.usage_count
            }
        )
        return SellerEntityView(entity=entity, preference=preference, is_owner=entity.created_by == seller.user_id)

    async def remove_from_seller_list(self, seller: AuthContext, entity_id: UUID) -> RemovalOutcome:
        """
        Take an entity off the seller's list.

        The creator's approved entry is only hidden; the creator's unapproved
        entry is deleted outright. Neither touches the usage count, which only
        counts other sellers. For anyone else the preference row is dropped
        and the usage count decremented.

        Raises:
            NotFoundError: If the entity, or the seller's preference for it, does not exist
        """
        entity = await self.get_by_id_or_raise(entity_id)

        if entity.created_by == seller.user_id:
            if entity.approval_status == ApprovalStatus.APPROVED:
                await self._upsert_preference(
                    seller.user_id,
                    entity,
                    is_visible=False,
                    is_enabled=False,
                    is_active=False,
                )
                outcome = RemovalOutcome.HIDDEN
            else:
                await self._delete_entity(entity)
                outcome = RemovalOutcome.DELETED
        else:
            preference = await self._get_preference(seller.user_id, entity.id)
            if preference is None:
                raise NotFoundError(
                    resource_type="seller preference",
                    detail=f"This {self.kind.label} is not on your list",
                )
            await self.db.delete(preference)
            entity.usage_count = max(0, entity.usage_count - 1)
            outcome = RemovalOutcome.REMOVED

        await self.db.commit()

        logger.info(
            "Global entity removed from seller list",
            extra={
                "kind": self.kind.label,
                "entity_id": str(entity_id),
                "seller_id": str(seller.user_id),
                "outcome": outcome.value
            }
        )
        return outcome
