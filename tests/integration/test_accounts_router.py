"""Integration tests for account and device endpoints."""

import pytest


async def _check_in(client, device_id="dev-1"):
    resp = await client.post("/devices/check-in", json={
        "device_id": device_id, "device_model": "Pixel 8",
        "app_version": "2.1.0", "platform": "android",
    })
    assert resp.status_code == 200
    return resp.json()


class TestAuth:
    async def test_missing_key(self, client):
        resp = await client.get("/accounts")
        assert resp.status_code == 422

    async def test_wrong_key(self, client):
        resp = await client.get("/accounts", headers={"X-Console-Api-Key": "wrong"})
        assert resp.status_code == 403

    async def test_health_open(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestDeviceEndpoints:
    async def test_check_in_new_then_existing(self, client):
        first = await _check_in(client)
        assert first["is_new_device"] is True
        second = await _check_in(client)
        assert second["is_new_device"] is False

    async def test_status_report(self, client):
        await _check_in(client)
        resp = await client.post("/devices/status", json={
            "device_id": "dev-1", "status": "vpn_connected", "country": "Myanmar",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "vpn_connected"
        assert data["effective_status"] == "vpn_connected"

    async def test_status_unknown_device(self, client):
        resp = await client.post("/devices/status", json={"device_id": "ghost", "status": "online"})
        assert resp.status_code == 404
        assert resp.json()["code"] == "ACCOUNT_NOT_FOUND"

    async def test_data_usage(self, client):
        await _check_in(client)
        await client.post("/devices/data-usage", json={"device_id": "dev-1", "bytes_used": 500})
        resp = await client.post("/devices/data-usage", json={"device_id": "dev-1", "bytes_used": 250})
        assert resp.json()["data_usage"] == 750


class TestOperatorEndpoints:
    async def test_list_and_get(self, client, admin_headers):
        await _check_in(client, "dev-1")
        await _check_in(client, "dev-2")
        resp = await client.get("/accounts", headers=admin_headers)
        assert resp.status_code == 200
        assert {a["id"] for a in resp.json()} == {"dev-1", "dev-2"}

        resp = await client.get("/accounts/dev-1", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["balance"] == 0
        assert data["effective_status"] == "online"

    async def test_get_missing(self, client, admin_headers):
        resp = await client.get("/accounts/ghost", headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "not_found"

    async def test_ban_and_unban(self, client, admin_headers):
        await _check_in(client)
        resp = await client.post("/accounts/dev-1/ban", json={"reason": "ad fraud"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["effective_status"] == "banned"
        assert resp.json()["ban_reason"] == "ad fraud"

        # Heartbeat cannot clear a ban
        resp = await client.post("/devices/status", json={"device_id": "dev-1", "status": "online"})
        assert resp.json()["effective_status"] == "banned"

        resp = await client.post("/accounts/dev-1/unban", headers=admin_headers)
        assert resp.json()["status"] == "offline"

    async def test_delete(self, client, admin_headers):
        await _check_in(client)
        resp = await client.delete("/accounts/dev-1", headers=admin_headers)
        assert resp.status_code == 204
        resp = await client.delete("/accounts/dev-1", headers=admin_headers)
        assert resp.status_code == 404

    async def test_delete_with_history_refused(self, client, admin_headers):
        await _check_in(client)
        await client.post("/devices/ad-reward", json={"device_id": "dev-1"})
        resp = await client.delete("/accounts/dev-1", headers=admin_headers)
        assert resp.status_code == 422

    async def test_stats(self, client, admin_headers):
        await _check_in(client, "dev-1")
        await _check_in(client, "dev-2")
        await client.post("/accounts/dev-2/ban", json={}, headers=admin_headers)
        resp = await client.get("/stats", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_accounts"] == 2
        assert data["online"] == 1
        assert data["banned"] == 1
