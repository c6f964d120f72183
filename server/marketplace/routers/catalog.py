"""Routers for the global category and destination catalogs."""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import AdminOnly, AuthContext, DatabaseSession, OptionalAuth, StaffOnly
from ..schemas.catalog import (
    Category,
    CategorySubmitRequest,
    CategoryUpdateRequest,
    Destination,
    DestinationSubmitRequest,
    DestinationUpdateRequest,
    RejectRequest,
    SellerCategory,
    SellerDestination,
    SellerPreference,
)
from ..schemas.common import MessageResponse, dump
from ..services.approval_service import CATEGORY, DESTINATION, ApprovalService, EntityKind, SellerEntityView

logger = logging.getLogger(__name__)


def build_catalog_router(
    kind: EntityKind,
    prefix: str,
    submit_schema: type[BaseModel],
    update_schema: type[BaseModel],
    response_schema: type[BaseModel],
    seller_schema: type[BaseModel],
) -> APIRouter:
    """Build the approval workflow endpoints for one kind of global entity."""
    router = APIRouter(prefix=prefix, tags=[f"global-{kind.label}"])

    def entity_body(entity) -> dict:
        return dump(response_schema.model_validate(entity))

    def seller_body(view: SellerEntityView) -> dict:
        fields = response_schema.model_validate(view.entity).model_dump()
        return dump(seller_schema(
            **fields,
            is_owner=view.is_owner,
            preference=SellerPreference.model_validate(view.preference),
        ))

    def ok(content, status_code: int = 200) -> JSONResponse:
        return JSONResponse(status_code=status_code, content=content)

    @router.get("/approved", response_model=list[response_schema])
    async def list_approved(db: AsyncSession = DatabaseSession) -> JSONResponse:
        """Approved entries available to every seller."""
        entities = await ApprovalService(db, kind).list_approved()
        return ok([entity_body(entity) for entity in entities])

    @router.get("/seller", response_model=list[seller_schema])
    async def list_for_seller(
        db: AsyncSession = DatabaseSession,
        auth: AuthContext = StaffOnly
    ) -> JSONResponse:
        """Entries on the caller's list with their personal flags."""
        views = await ApprovalService(db, kind).list_for_seller(auth)
        return ok([seller_body(view) for view in views])

    @router.get("/admin/pending", response_model=list[response_schema])
    async def list_pending(
        db: AsyncSession = DatabaseSession,
        auth: AuthContext = AdminOnly
    ) -> JSONResponse:
        """Entries awaiting review."""
        entities = await ApprovalService(db, kind).list_pending()
        return ok([entity_body(entity) for entity in entities])

    @router.get("/admin/rejected", response_model=list[response_schema])
    async def list_rejected(
        db: AsyncSession = DatabaseSession,
        auth: AuthContext = AdminOnly
    ) -> JSONResponse:
        """Rejected entries."""
        entities = await ApprovalService(db, kind).list_rejected()
        return ok([entity_body(entity) for entity in entities])

    @router.put("/admin/{entity_id}/approve", response_model=response_schema)
    async def approve(
        entity_id: UUID,
        db: AsyncSession = DatabaseSession,
        auth: AuthContext = AdminOnly
    ) -> JSONResponse:
        """Approve an entry and notify its creator."""
        entity = await ApprovalService(db, kind).approve(entity_id, auth)
        return ok(entity_body(entity))

    @router.put("/admin/{entity_id}/reject", response_model=response_schema)
    async def reject(
        entity_id: UUID,
        request: RejectRequest,
        db: AsyncSession = DatabaseSession,
        auth: AuthContext = AdminOnly
    ) -> JSONResponse:
        """Reject an entry with a reason and notify its creator."""
        entity = await ApprovalService(db, kind).reject(entity_id, auth, request.reason)
        return ok(entity_body(entity))

    @router.delete("/admin/{entity_id}", response_model=MessageResponse)
    async def delete(
        entity_id: UUID,
        db: AsyncSession = DatabaseSession,
        auth: AuthContext = AdminOnly
    ) -> JSONResponse:
        """Delete an entry and every seller's preference for it."""
        await ApprovalService(db, kind).delete(entity_id, auth)
        return ok(dump(MessageResponse(message=f"{kind.label.capitalize()} deleted")))

    @router.post("/submit", response_model=response_schema, status_code=201)
    async def submit(
        request: submit_schema,
        db: AsyncSession = DatabaseSession,
        auth: AuthContext = StaffOnly
    ) -> JSONResponse:
        """Propose a new entry for admin review."""
        entity = await ApprovalService(db, kind).submit(request.model_dump(), auth)
        return ok(entity_body(entity), status_code=201)

    @router.get("/{entity_id}", response_model=response_schema)
    async def get(
        entity_id: UUID,
        db: AsyncSession = DatabaseSession,
        auth: Optional[AuthContext] = OptionalAuth
    ) -> JSONResponse:
        """Get an approved entry, or an unapproved one owned by the caller."""
        entity = await ApprovalService(db, kind).get(entity_id, auth)
        return ok(entity_body(entity))

    @router.patch("/{entity_id}", response_model=response_schema)
    async def update(
        entity_id: UUID,
        request: update_schema,
        db: AsyncSession = DatabaseSession,
        auth: AuthContext = StaffOnly
    ) -> JSONResponse:
        """Edit an entry; seller content edits send it back for review."""
        changes = request.model_dump(exclude_unset=True)
        entity = await ApprovalService(db, kind).update(entity_id, changes, auth)
        return ok(entity_body(entity))

    @router.patch("/{entity_id}/toggle-active", response_model=seller_schema)
    async def toggle_active(
        entity_id: UUID,
        db: AsyncSession = DatabaseSession,
        auth: AuthContext = StaffOnly
    ) -> JSONResponse:
        """Flip the caller's activation of an entry."""
        view = await ApprovalService(db, kind).toggle_active(auth, entity_id)
        return ok(seller_body(view))

    @router.put("/{entity_id}/favorite", response_model=seller_schema)
    async def toggle_favorite(
        entity_id: UUID,
        db: AsyncSession = DatabaseSession,
        auth: AuthContext = StaffOnly
    ) -> JSONResponse:
        """Flip the caller's favorite flag on an entry."""
        view = await ApprovalService(db, kind).toggle_favorite(auth, entity_id)
        return ok(seller_body(view))

    @router.post("/{entity_id}/add-to-list", response_model=seller_schema)
    async def add_to_list(
        entity_id: UUID,
        db: AsyncSession = DatabaseSession,
        auth: AuthContext = StaffOnly
    ) -> JSONResponse:
        """Put an approved entry on the caller's list."""
        view = await ApprovalService(db, kind).add_existing_to_seller_list(auth, entity_id)
        return ok(seller_body(view))

    @router.post("/{entity_id}/remove-from-list", response_model=MessageResponse)
    async def remove_from_list(
        entity_id: UUID,
        db: AsyncSession = DatabaseSession,
        auth: AuthContext = StaffOnly
    ) -> JSONResponse:
        """Take an entry off the caller's list."""
        outcome = await ApprovalService(db, kind).remove_from_seller_list(auth, entity_id)
        return ok(dump(MessageResponse(message=f"{kind.label.capitalize()} {outcome.value}")))

    return router


category_router = build_catalog_router(
    CATEGORY,
    "/v1/global/categories",
    submit_schema=CategorySubmitRequest,
    update_schema=CategoryUpdateRequest,
    response_schema=Category,
    seller_schema=SellerCategory,
)

destination_router = build_catalog_router(
    DESTINATION,
    "/v1/global/destinations",
    submit_schema=DestinationSubmitRequest,
    update_schema=DestinationUpdateRequest,
    response_schema=Destination,
    seller_schema=SellerDestination,
)
