from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient


@pytest.mark.asyncio
async def test_create_and_renew_membership(app_with_db, seed, clock) -> None:
    app, _ = app_with_db
    organization = await seed.organization()
    member = await seed.member(organization.id)
    discipline = await seed.discipline(organization.id)
    headers = {"X-Organization-Id": str(organization.id)}

    payload = {
        "memberId": str(member.id),
        "disciplineId": str(discipline.id),
        "startDate": clock.now().isoformat(),
        "endDate": (clock.now() + timedelta(days=30)).isoformat(),
        "amountPaid": "180.00",
        "paymentMethod": "card",
    }

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        created = await client.post("/api/v1/memberships", json=payload, headers=headers)
        duplicate = await client.post("/api/v1/memberships", json=payload, headers=headers)
        membership_id = created.json()["id"]
        renewed = await client.post(
            f"/api/v1/memberships/{membership_id}/renew",
            json={"numMonths": 3, "amountPaid": "450.00"},
            headers=headers,
        )

    assert created.status_code == 201
    assert created.json()["status"] == "active"
    assert duplicate.status_code == 409

    assert renewed.status_code == 201
    body = renewed.json()
    assert body["id"] != membership_id
    assert body["status"] == "active"
    assert body["endDate"].startswith("2026-06-10T14:00:00")


@pytest.mark.asyncio
async def test_membership_endpoints_validate_input(app_with_db, seed, clock) -> None:
    app, _ = app_with_db
    organization = await seed.organization()
    member = await seed.member(organization.id)
    discipline = await seed.discipline(organization.id)
    headers = {"X-Organization-Id": str(organization.id)}

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        backwards = await client.post(
            "/api/v1/memberships",
            json={
                "memberId": str(member.id),
                "disciplineId": str(discipline.id),
                "startDate": clock.now().isoformat(),
                "endDate": (clock.now() - timedelta(days=1)).isoformat(),
                "amountPaid": "10",
            },
            headers=headers,
        )
        zero_months = await client.post(
            f"/api/v1/memberships/{member.id}/renew",
            json={"numMonths": 0, "amountPaid": "10"},
            headers=headers,
        )
        unknown = await client.post(
            f"/api/v1/memberships/{member.id}/renew",
            json={"numMonths": 1, "amountPaid": "10"},
            headers=headers,
        )

    assert backwards.status_code == 422
    assert zero_months.status_code == 422
    assert unknown.status_code == 404


@pytest.mark.asyncio
async def test_expire_endpoint_is_one_way(app_with_db, seed, clock) -> None:
    app, _ = app_with_db
    organization = await seed.organization()
    member = await seed.member(organization.id)
    discipline = await seed.discipline(organization.id)
    membership = await seed.membership(organization.id, member.id, discipline.id, end_date=clock.now())
    headers = {"X-Organization-Id": str(organization.id)}

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        first = await client.post(f"/api/v1/memberships/{membership.id}/expire", headers=headers)
        second = await client.post(f"/api/v1/memberships/{membership.id}/expire", headers=headers)

    assert first.status_code == 200
    assert first.json()["status"] == "expired"
    assert second.status_code == 422
