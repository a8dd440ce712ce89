"""Integration tests for spool, brand shortcut and stats endpoints."""

import pytest
from httpx import AsyncClient


def _spool_payload(**overrides):
    payload = {
        "material": "PETG",
        "color_name": "Signal Orange",
        "color": "#FF6600",
        "brand": "Prusament",
        "total_weight": 1000,
        "price": 25.0,
    }
    payload.update(overrides)
    return payload


class TestSpoolsAPI:
    """Integration tests for /api/spools."""

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_create_defaults_remaining_to_total(self, async_client: AsyncClient, user_factory, auth_headers):
        user = await user_factory()

        response = await async_client.post("/api/spools", json=_spool_payload(), headers=auth_headers(user))

        assert response.status_code == 201
        result = response.json()
        assert result["id"] > 0
        assert result["user_id"] == user.id
        assert result["remaining_weight"] == 1000
        assert result["price"] == 25.0

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_create_with_partial_spool_and_no_price(self, async_client: AsyncClient, user_factory, auth_headers):
        user = await user_factory()
        payload = _spool_payload(remaining_weight=420)
        del payload["price"]

        response = await async_client.post("/api/spools", json=payload, headers=auth_headers(user))

        assert response.status_code == 201
        assert response.json()["remaining_weight"] == 420
        assert response.json()["price"] == 0

    @pytest.mark.asyncio
    @pytest.mark.integration
    @pytest.mark.parametrize(
        "overrides",
        [
            {"total_weight": 0},
            {"total_weight": -10},
            {"price": -1},
            {"material": ""},
            {"remaining_weight": 1500},
        ],
    )
    async def test_create_rejects_invalid_spools(self, async_client: AsyncClient, user_factory, auth_headers, overrides):
        user = await user_factory()

        response = await async_client.post("/api/spools", json=_spool_payload(**overrides), headers=auth_headers(user))

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidInput"

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_create_adds_brand_shortcut(self, async_client: AsyncClient, user_factory, auth_headers):
        user = await user_factory()

        await async_client.post("/api/spools", json=_spool_payload(brand="Sunlu"), headers=auth_headers(user))
        response = await async_client.get("/api/brands", headers=auth_headers(user))

        assert "Sunlu" in response.json()

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_list_only_own_spools_newest_first(
        self, async_client: AsyncClient, user_factory, spool_factory, auth_headers
    ):
        alice = await user_factory()
        bob = await user_factory()
        first = await spool_factory(alice.id, color_name="First")
        second = await spool_factory(alice.id, color_name="Second")
        await spool_factory(bob.id, color_name="Bob's")

        response = await async_client.get("/api/spools", headers=auth_headers(alice))

        assert response.status_code == 200
        assert [s["id"] for s in response.json()] == [second.id, first.id]

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_update_remaining_weight(self, async_client: AsyncClient, user_factory, spool_factory, auth_headers):
        user = await user_factory()
        spool = await spool_factory(user.id)

        response = await async_client.put(
            f"/api/spools/{spool.id}", json={"remaining_weight": 640}, headers=auth_headers(user)
        )

        assert response.status_code == 200
        assert response.json()["remaining_weight"] == 640

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_update_to_low_weight_notifies(
        self, async_client: AsyncClient, user_factory, spool_factory, auth_headers, mock_notifier
    ):
        user = await user_factory()
        spool = await spool_factory(user.id)

        await async_client.put(f"/api/spools/{spool.id}", json={"remaining_weight": 90}, headers=auth_headers(user))

        mock_notifier.dispatch.assert_called_once()

    @pytest.mark.asyncio
    @pytest.mark.integration
    @pytest.mark.parametrize("weight", [-1, 1000.01])
    async def test_update_out_of_range(
        self, async_client: AsyncClient, user_factory, spool_factory, auth_headers, weight
    ):
        user = await user_factory()
        spool = await spool_factory(user.id)

        response = await async_client.put(
            f"/api/spools/{spool.id}", json={"remaining_weight": weight}, headers=auth_headers(user)
        )

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidInput"

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_update_other_users_spool_is_not_found(
        self, async_client: AsyncClient, user_factory, spool_factory, auth_headers, remaining_of
    ):
        owner = await user_factory()
        intruder = await user_factory()
        spool = await spool_factory(owner.id)

        response = await async_client.put(
            f"/api/spools/{spool.id}", json={"remaining_weight": 1}, headers=auth_headers(intruder)
        )

        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"
        assert await remaining_of(spool.id) == 1000

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_delete_spool(self, async_client: AsyncClient, user_factory, spool_factory, auth_headers, remaining_of):
        user = await user_factory()
        spool = await spool_factory(user.id)

        response = await async_client.delete(f"/api/spools/{spool.id}", headers=auth_headers(user))

        assert response.status_code == 200
        assert response.json() == {"message": "Spool deleted"}
        assert await remaining_of(spool.id) is None

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_delete_other_users_spool_is_not_found(
        self, async_client: AsyncClient, user_factory, spool_factory, auth_headers, remaining_of
    ):
        owner = await user_factory()
        intruder = await user_factory()
        spool = await spool_factory(owner.id)

        response = await async_client.delete(f"/api/spools/{spool.id}", headers=auth_headers(intruder))

        assert response.status_code == 404
        assert await remaining_of(spool.id) == 1000


class TestBrandsAPI:
    """Integration tests for /api/brands."""

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_add_is_idempotent_and_sorted(self, async_client: AsyncClient, user_factory, auth_headers):
        user = await user_factory()

        first = await async_client.post("/api/brands", json={"brand": "Sunlu"}, headers=auth_headers(user))
        second = await async_client.post("/api/brands", json={"brand": "Sunlu"}, headers=auth_headers(user))
        await async_client.post("/api/brands", json={"brand": "Atomic"}, headers=auth_headers(user))
        response = await async_client.get("/api/brands", headers=auth_headers(user))

        assert first.status_code == 201
        assert first.json() == {"brand": "Sunlu"}
        assert second.status_code == 201
        assert response.json() == ["Atomic", "Sunlu"]

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_delete_brand(self, async_client: AsyncClient, user_factory, auth_headers):
        user = await user_factory()
        await async_client.post("/api/brands", json={"brand": "Sunlu"}, headers=auth_headers(user))

        response = await async_client.delete("/api/brands/Sunlu", headers=auth_headers(user))
        brands = await async_client.get("/api/brands", headers=auth_headers(user))

        assert response.status_code == 200
        assert brands.json() == []

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_brands_are_per_user(self, async_client: AsyncClient, user_factory, auth_headers):
        alice = await user_factory()
        bob = await user_factory()
        await async_client.post("/api/brands", json={"brand": "Sunlu"}, headers=auth_headers(alice))

        response = await async_client.get("/api/brands", headers=auth_headers(bob))

        assert response.json() == []


class TestStatsAPI:
    """Integration tests for /api/stats."""

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_empty_inventory(self, async_client: AsyncClient, user_factory, auth_headers):
        user = await user_factory()

        response = await async_client.get("/api/stats", headers=auth_headers(user))

        assert response.status_code == 200
        assert response.json() == {
            "totalSpools": 0,
            "totalWeight": 0,
            "materialTypes": 0,
            "totalValue": 0,
            "totalSpent": 0,
        }

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_totals(self, async_client: AsyncClient, user_factory, spool_factory, auth_headers):
        user = await user_factory()
        other = await user_factory()
        await spool_factory(user.id, material="PLA", total_weight=1000.0, remaining_weight=500.0, price=20.0)
        await spool_factory(user.id, material="PLA", total_weight=1000.0, remaining_weight=1000.0, price=30.0)
        await spool_factory(user.id, material="PETG", total_weight=500.0, remaining_weight=250.0, price=10.0)
        await spool_factory(other.id, material="ABS", price=99.0)

        response = await async_client.get("/api/stats", headers=auth_headers(user))

        stats = response.json()
        assert stats["totalSpools"] == 3
        assert stats["totalWeight"] == pytest.approx(1750.0)
        assert stats["materialTypes"] == 2
        assert stats["totalValue"] == pytest.approx(10.0 + 30.0 + 5.0)
        assert stats["totalSpent"] == pytest.approx(60.0)
