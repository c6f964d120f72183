"""Integration tests for the global category and destination endpoints."""

import pytest

CATEGORIES = "/v1/global/categories"
DESTINATIONS = "/v1/global/destinations"


async def _submit_category(client, headers, name="Food Tours"):
    response = await client.post(
        f"{CATEGORIES}/submit",
        json={"name": name, "description": "Eat your way around", "reason": "Many sellers run them"},
        headers=headers
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_submit_category(test_client, seller, auth_headers):
    """Submitted categories start pending and inactive."""
    data = await _submit_category(test_client, auth_headers(seller))

    assert data["approvalStatus"] == "pending"
    assert data["isApproved"] is False
    assert data["isActive"] is False
    assert data["slug"] == "food-tours"
    assert data["createdBy"] == str(seller.user_id)


@pytest.mark.asyncio
async def test_submit_requires_staff(test_client, customer, auth_headers):
    """Customers cannot propose catalog entries."""
    response = await test_client.post(
        f"{CATEGORIES}/submit", json={"name": "Anything"}, headers=auth_headers(customer)
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_submit_duplicate_is_conflict(test_client, seller, auth_headers):
    """Duplicate names are refused."""
    await _submit_category(test_client, auth_headers(seller))

    response = await test_client.post(
        f"{CATEGORIES}/submit", json={"name": "food tours"}, headers=auth_headers(seller)
    )

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_approval_flow(test_client, seller, admin, auth_headers):
    """An approved category shows up for everyone and on its creator's list."""
    created = await _submit_category(test_client, auth_headers(seller))

    pending = await test_client.get(f"{CATEGORIES}/admin/pending", headers=auth_headers(admin))
    assert [c["id"] for c in pending.json()] == [created["id"]]

    approved = await test_client.put(
        f"{CATEGORIES}/admin/{created['id']}/approve", headers=auth_headers(admin)
    )
    assert approved.status_code == 200
    assert approved.json()["approvalStatus"] == "approved"
    assert approved.json()["approvedBy"] == str(admin.user_id)

    public = await test_client.get(f"{CATEGORIES}/approved")
    assert [c["id"] for c in public.json()] == [created["id"]]

    mine = await test_client.get(f"{CATEGORIES}/seller", headers=auth_headers(seller))
    assert len(mine.json()) == 1
    assert mine.json()[0]["isOwner"] is True
    assert mine.json()[0]["preference"]["isActive"] is True

    inbox = await test_client.get("/v1/notifications", headers=auth_headers(seller))
    assert inbox.json()[0]["type"] == "category_approved"


@pytest.mark.asyncio
async def test_approve_requires_admin(test_client, seller, auth_headers):
    """Sellers cannot approve their own submissions."""
    created = await _submit_category(test_client, auth_headers(seller))

    response = await test_client.put(
        f"{CATEGORIES}/admin/{created['id']}/approve", headers=auth_headers(seller)
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_reject_without_reason(test_client, seller, admin, auth_headers):
    """A rejection needs a reason."""
    created = await _submit_category(test_client, auth_headers(seller))

    response = await test_client.put(
        f"{CATEGORIES}/admin/{created['id']}/reject", json={}, headers=auth_headers(admin)
    )

    assert response.status_code == 400
    assert response.json()["violations"][0]["path"] == "reason"


@pytest.mark.asyncio
async def test_reject_and_notify(test_client, seller, admin, auth_headers):
    """Rejected entries are listed for admins and the creator is told why."""
    created = await _submit_category(test_client, auth_headers(seller))

    response = await test_client.put(
        f"{CATEGORIES}/admin/{created['id']}/reject",
        json={"reason": "Covered by Culinary"},
        headers=auth_headers(admin)
    )
    assert response.status_code == 200
    assert response.json()["rejectionReason"] == "Covered by Culinary"

    rejected = await test_client.get(f"{CATEGORIES}/admin/rejected", headers=auth_headers(admin))
    assert [c["id"] for c in rejected.json()] == [created["id"]]

    inbox = await test_client.get(
        "/v1/notifications", params={"unreadOnly": "true"}, headers=auth_headers(seller)
    )
    [notification] = inbox.json()
    assert notification["rejectionReason"] == "Covered by Culinary"

    read = await test_client.patch(
        f"/v1/notifications/{notification['id']}/read", headers=auth_headers(seller)
    )
    assert read.json()["isRead"] is True

    toggled = await test_client.patch(
        f"{CATEGORIES}/{created['id']}/toggle-active", headers=auth_headers(seller)
    )
    assert toggled.status_code == 400
    assert toggled.json()["code"] == "ACTIVATION_NOT_ALLOWED"


@pytest.mark.asyncio
async def test_seller_edit_sends_back_to_review(test_client, seller, admin, auth_headers):
    """A seller's content edit makes an approved category pending again."""
    created = await _submit_category(test_client, auth_headers(seller))
    await test_client.put(f"{CATEGORIES}/admin/{created['id']}/approve", headers=auth_headers(admin))

    response = await test_client.patch(
        f"{CATEGORIES}/{created['id']}",
        json={"description": "Street food only"},
        headers=auth_headers(seller)
    )

    assert response.status_code == 200
    assert response.json()["approvalStatus"] == "pending"
    assert response.json()["description"] == "Street food only"


@pytest.mark.asyncio
async def test_pending_entry_hidden_from_other_sellers(test_client, seller, other_seller, auth_headers):
    """Only the creator can see their pending entry."""
    created = await _submit_category(test_client, auth_headers(seller))

    own = await test_client.get(f"{CATEGORIES}/{created['id']}", headers=auth_headers(seller))
    other = await test_client.get(f"{CATEGORIES}/{created['id']}", headers=auth_headers(other_seller))
    anonymous = await test_client.get(f"{CATEGORIES}/{created['id']}")

    assert own.status_code == 200
    assert other.status_code == 404
    assert anonymous.status_code == 404


@pytest.mark.asyncio
async def test_add_favorite_and_remove(test_client, seller, other_seller, admin, auth_headers):
    """Another seller can list, favorite and drop an approved category."""
    created = await _submit_category(test_client, auth_headers(seller))
    await test_client.put(f"{CATEGORIES}/admin/{created['id']}/approve", headers=auth_headers(admin))
    headers = auth_headers(other_seller)

    added = await test_client.post(f"{CATEGORIES}/{created['id']}/add-to-list", headers=headers)
    assert added.status_code == 200
    assert added.json()["isOwner"] is False
    assert added.json()["usageCount"] == 1

    favorite = await test_client.put(f"{CATEGORIES}/{created['id']}/favorite", headers=headers)
    assert favorite.json()["preference"]["isFavorite"] is True

    removed = await test_client.post(f"{CATEGORIES}/{created['id']}/remove-from-list", headers=headers)
    assert removed.status_code == 200
    assert removed.json()["message"] == "Category removed"

    listed = await test_client.get(f"{CATEGORIES}/seller", headers=headers)
    assert listed.json() == []


@pytest.mark.asyncio
async def test_admin_delete(test_client, seller, admin, auth_headers):
    """Admins can delete entries outright."""
    created = await _submit_category(test_client, auth_headers(seller))

    response = await test_client.delete(f"{CATEGORIES}/admin/{created['id']}", headers=auth_headers(admin))
    missing = await test_client.get(f"{CATEGORIES}/{created['id']}", headers=auth_headers(admin))

    assert response.status_code == 200
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_destination_workflow(test_client, seller, admin, auth_headers):
    """Destinations follow the same workflow and keep their location fields."""
    response = await test_client.post(
        f"{DESTINATIONS}/submit",
        json={"name": "Kyoto", "country": "Japan", "region": "Kansai", "city": "Kyoto"},
        headers=auth_headers(seller)
    )
    assert response.status_code == 201
    destination = response.json()
    assert destination["country"] == "Japan"

    duplicate = await test_client.post(
        f"{DESTINATIONS}/submit",
        json={"name": "KYOTO", "country": "japan", "city": "kyoto"},
        headers=auth_headers(seller)
    )
    assert duplicate.status_code == 409

    approved = await test_client.put(
        f"{DESTINATIONS}/admin/{destination['id']}/approve", headers=auth_headers(admin)
    )
    assert approved.json()["approvalStatus"] == "approved"

    inbox = await test_client.get("/v1/notifications", headers=auth_headers(seller))
    assert inbox.json()[0]["type"] == "destination_approved"


@pytest.mark.asyncio
async def test_update_with_null_name_is_validation_error(test_client, seller, auth_headers):
    """An explicit null name is rejected with 400 before reaching the service."""
    created = await _submit_category(test_client, auth_headers(seller))

    response = await test_client.patch(
        f"{CATEGORIES}/{created['id']}", json={"name": None}, headers=auth_headers(seller)
    )

    assert response.status_code == 400
    assert any("name" in violation["path"] for violation in response.json()["violations"])

    unchanged = await test_client.get(f"{CATEGORIES}/{created['id']}", headers=auth_headers(seller))
    assert unchanged.json()["name"] == "Food Tours"


@pytest.mark.asyncio
async def test_destination_update_with_null_name_is_validation_error(test_client, seller, auth_headers):
    """Destinations reject a null name the same way."""
    created = await test_client.post(
        f"{DESTINATIONS}/submit", json={"name": "Lisbon", "country": "Portugal"}, headers=auth_headers(seller)
    )

    response = await test_client.patch(
        f"{DESTINATIONS}/{created.json()['id']}", json={"name": None, "city": "Lisbon"}, headers=auth_headers(seller)
    )

    assert response.status_code == 400
