"""Integration tests for withdrawal endpoints."""

import pytest

from bvpn_console.withdrawals.txid import is_transaction_id


class TestWithdrawalRouter:
    async def _setup(self, client, admin_headers, balance=50000):
        """Register a device, fund it and submit one request."""
        await client.post("/devices/check-in", json={
            "device_id": "dev-1", "device_model": "Pixel 8",
        })
        await client.post("/accounts/dev-1/balance", json={
            "amount": balance, "reason": "seed",
        }, headers=admin_headers)
        resp = await client.post("/devices/withdrawals", json={
            "device_id": "dev-1", "amount": 20000, "method": "KBZ Pay",
            "account_number": "09123456789", "account_name": "Aung Aung",
        })
        assert resp.status_code == 201
        return resp.json()

    async def test_submit(self, client, admin_headers):
        data = await self._setup(client, admin_headers)
        assert data["points_deducted"] == 20000
        assert data["new_balance"] == 30000

    async def test_submit_below_minimum(self, client, admin_headers):
        await self._setup(client, admin_headers)
        resp = await client.post("/devices/withdrawals", json={
            "device_id": "dev-1", "amount": 500, "method": "KBZ Pay",
            "account_number": "0912", "account_name": "Aung Aung",
        })
        assert resp.status_code == 422

    async def test_list_pending(self, client, admin_headers):
        data = await self._setup(client, admin_headers)
        resp = await client.get("/withdrawals?status=pending", headers=admin_headers)
        assert resp.status_code == 200
        rows = resp.json()
        assert [w["id"] for w in rows] == [data["withdrawal_id"]]
        assert rows[0]["status"] == "pending"

    async def test_list_bad_status(self, client, admin_headers):
        resp = await client.get("/withdrawals?status=paid", headers=admin_headers)
        assert resp.status_code == 422

    async def test_approve(self, client, admin_headers):
        data = await self._setup(client, admin_headers)
        resp = await client.post(
            f"/withdrawals/{data['withdrawal_id']}/process",
            json={"action": "approve", "receipt_reference": "KBZ-998877"},
            headers={**admin_headers, "X-Operator": "ops@bvpn"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "approved"
        assert is_transaction_id(body["transaction_id"])
        assert body["processed_at"] is not None
        assert body["processed_by"] == "ops@bvpn"

    async def test_approve_without_receipt(self, client, admin_headers):
        data = await self._setup(client, admin_headers)
        resp = await client.post(
            f"/withdrawals/{data['withdrawal_id']}/process",
            json={"action": "approve"},
            headers=admin_headers,
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == "MISSING_RECEIPT"

    async def test_reject_without_reason(self, client, admin_headers):
        data = await self._setup(client, admin_headers)
        resp = await client.post(
            f"/withdrawals/{data['withdrawal_id']}/process",
            json={"action": "reject", "rejection_reason": ""},
            headers=admin_headers,
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == "MISSING_REASON"

    async def test_second_decision_conflicts(self, client, admin_headers):
        data = await self._setup(client, admin_headers)
        url = f"/withdrawals/{data['withdrawal_id']}/process"
        resp = await client.post(url, json={
            "action": "reject", "rejection_reason": "Wrong account name",
        }, headers=admin_headers)
        assert resp.status_code == 200

        resp = await client.post(url, json={
            "action": "approve", "receipt_reference": "R1",
        }, headers=admin_headers)
        assert resp.status_code == 409
        assert resp.json()["code"] == "INVALID_TRANSITION"

        resp = await client.get(f"/withdrawals/{data['withdrawal_id']}", headers=admin_headers)
        body = resp.json()
        assert body["status"] == "rejected"
        assert body["transaction_id"] is None
        assert body["rejection_reason"] == "Wrong account name"

    async def test_unknown_withdrawal(self, client, admin_headers):
        resp = await client.post("/withdrawals/nope/process", json={
            "action": "approve", "receipt_reference": "R1",
        }, headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json()["code"] == "WITHDRAWAL_NOT_FOUND"

    async def test_pending_in_stats(self, client, admin_headers):
        await self._setup(client, admin_headers)
        resp = await client.get("/stats", headers=admin_headers)
        data = resp.json()
        assert data["pending_withdrawals"] == 1
        assert data["total_pending_points"] == 20000

    async def test_device_cancel_refunds(self, client, admin_headers):
        data = await self._setup(client, admin_headers)
        resp = await client.post(
            f"/devices/withdrawals/{data['withdrawal_id']}/cancel",
            json={"device_id": "dev-1"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["points_refunded"] == 20000
        assert body["new_balance"] == 50000
        stored = await client.get(f"/withdrawals/{data['withdrawal_id']}", headers=admin_headers)
        assert stored.json()["status"] == "rejected"
        assert stored.json()["rejection_reason"] == "Cancelled by user"

    async def test_cancel_other_device(self, client, admin_headers):
        data = await self._setup(client, admin_headers)
        resp = await client.post(
            f"/devices/withdrawals/{data['withdrawal_id']}/cancel",
            json={"device_id": "dev-2"},
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == "NOT_WITHDRAWAL_OWNER"

    async def test_cancel_after_decision_conflicts(self, client, admin_headers):
        data = await self._setup(client, admin_headers)
        await client.post(
            f"/withdrawals/{data['withdrawal_id']}/process",
            json={"action": "reject", "rejection_reason": "fraud"},
            headers=admin_headers,
        )
        resp = await client.post(
            f"/devices/withdrawals/{data['withdrawal_id']}/cancel",
            json={"device_id": "dev-1"},
        )
        assert resp.status_code == 409
