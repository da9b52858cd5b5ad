"""
ConsoleClient SDK — sync client for the BVPN Console operator API.

Reads are retried with backoff. Ledger writes are retried only when the
caller supplies an ``idempotency_key``; without one a timed-out write may
already have been applied, so the client reports ``UNKNOWN_OUTCOME``
instead of sending it again. Withdrawal decisions are never retried.
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx


@dataclass
class ClientResult:
    """Outcome of one API call."""

    ok: bool
    data: Any = None
    status_code: Optional[int] = None
    code: str = ""
    error: str = ""


class ConsoleClient:
    """Synchronous HTTP client for BVPN Console."""

    def __init__(
        self,
        server_url: str = "http://localhost:8080",
        api_key: Optional[str] = None,
        operator: Optional[str] = None,
        timeout: int = 30,
        max_retries: int = 3,
        retry_backoff_base: float = 0.5,
    ):
        self.server_url = server_url.rstrip("/")
        self.api_key = api_key
        self.operator = operator
        self.max_retries = max_retries
        self.retry_backoff_base = retry_backoff_base
        self._http = httpx.Client(
            base_url=self.server_url,
            timeout=timeout,
        )

    def _headers(self) -> dict[str, str]:
        headers = {}
        if self.api_key:
            headers["X-Console-Api-Key"] = self.api_key
        if self.operator:
            headers["X-Operator"] = self.operator
        return headers

    @staticmethod
    def _error_result(resp) -> ClientResult:
        try:
            body = resp.json()
        except (json.JSONDecodeError, ValueError):
            body = {}
        if not isinstance(body, dict):
            body = {}
        return ClientResult(
            ok=False,
            status_code=resp.status_code,
            code=body.get("code", "CLIENT_ERROR" if resp.status_code < 500 else "SERVER_ERROR"),
            error=body.get("error") or str(body.get("detail", f"HTTP {resp.status_code}")),
        )

    def _request(
        self,
        method: str,
        path: str,
        retry: bool = True,
        **kwargs: Any,
    ) -> ClientResult:
        """Central HTTP method with structured error handling.

        With ``retry`` set, timeouts, transport errors, 5xx and 429 are
        retried with exponential backoff. Other 4xx are returned at once.
        """
        attempts = self.max_retries if retry else 1
        last_error = ""
        for attempt in range(attempts):
            try:
                resp = getattr(self._http, method)(path, headers=self._headers(), **kwargs)
            except httpx.TimeoutException:
                last_error = "timeout"
            except httpx.HTTPError as e:
                last_error = str(e)
            else:
                if resp.status_code >= 500 or resp.status_code == 429:
                    last_error = f"HTTP {resp.status_code}"
                    if attempt == attempts - 1:
                        return self._error_result(resp)
                elif resp.status_code >= 400:
                    return self._error_result(resp)
                elif resp.status_code == 204:
                    return ClientResult(ok=True, status_code=204)
                else:
                    try:
                        return ClientResult(ok=True, data=resp.json(), status_code=resp.status_code)
                    except (json.JSONDecodeError, ValueError):
                        return ClientResult(ok=False, status_code=resp.status_code,
                                            code="JSON_ERROR", error="Invalid JSON response")
            if attempt < attempts - 1:
                time.sleep(self.retry_backoff_base * (2 ** attempt))

        if not retry:
            return ClientResult(
                ok=False,
                code="UNKNOWN_OUTCOME",
                error=f"Request failed ({last_error}); the write may have been applied",
            )
        return ClientResult(
            ok=False,
            code="CONNECTION_ERROR",
            error=f"All {attempts} retries exhausted: {last_error}",
        )

    # ── Accounts ──

    def list_accounts(self, status: Optional[str] = None, limit: int = 100) -> ClientResult:
        params: dict[str, Any] = {"limit": limit}
        if status:
            params["status"] = status
        return self._request("get", "/accounts", params=params)

    def get_account(self, account_id: str) -> ClientResult:
        return self._request("get", f"/accounts/{account_id}")

    def ban(self, account_id: str, reason: Optional[str] = None) -> ClientResult:
        # Ban and unban are idempotent, so retrying is safe
        return self._request("post", f"/accounts/{account_id}/ban", json={"reason": reason})

    def unban(self, account_id: str) -> ClientResult:
        return self._request("post", f"/accounts/{account_id}/unban")

    def stats(self) -> ClientResult:
        return self._request("get", "/stats")

    # ── Ledger ──

    def adjust_balance(
        self,
        account_id: str,
        amount: int,
        reason: str,
        idempotency_key: Optional[str] = None,
    ) -> ClientResult:
        body = {"amount": amount, "reason": reason, "idempotency_key": idempotency_key}
        return self._request(
            "post", f"/accounts/{account_id}/balance",
            retry=idempotency_key is not None, json=body,
        )

    def adjust_vpn_time(
        self,
        account_id: str,
        mode: str,
        minutes: int,
        reason: str,
        idempotency_key: Optional[str] = None,
    ) -> ClientResult:
        body = {"mode": mode, "minutes": minutes, "reason": reason,
                "idempotency_key": idempotency_key}
        return self._request(
            "post", f"/accounts/{account_id}/vpn-time",
            retry=idempotency_key is not None, json=body,
        )

    def get_activity_log(
        self, account_id: str, limit: int = 50, type: Optional[str] = None,
    ) -> ClientResult:
        params: dict[str, Any] = {"limit": limit}
        if type:
            params["type"] = type
        return self._request("get", f"/accounts/{account_id}/activity", params=params)

    def verify_ledger(self, account_id: str) -> ClientResult:
        return self._request("get", f"/accounts/{account_id}/ledger/verify")

    # ── Withdrawals ──

    def list_withdrawals(
        self,
        status: Optional[str] = None,
        device_id: Optional[str] = None,
        limit: int = 100,
    ) -> ClientResult:
        params: dict[str, Any] = {"limit": limit}
        if status:
            params["status"] = status
        if device_id:
            params["device_id"] = device_id
        return self._request("get", "/withdrawals", params=params)

    def get_withdrawal(self, withdrawal_id: str) -> ClientResult:
        return self._request("get", f"/withdrawals/{withdrawal_id}")

    def approve_withdrawal(self, withdrawal_id: str, receipt_reference: str) -> ClientResult:
        return self._request(
            "post", f"/withdrawals/{withdrawal_id}/process", retry=False,
            json={"action": "approve", "receipt_reference": receipt_reference},
        )

    def reject_withdrawal(self, withdrawal_id: str, rejection_reason: str) -> ClientResult:
        return self._request(
            "post", f"/withdrawals/{withdrawal_id}/process", retry=False,
            json={"action": "reject", "rejection_reason": rejection_reason},
        )

    # ── Lifecycle ──

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "ConsoleClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
