#!/usr/bin/env python3
"""Golden path demo for ClaimGate: submit, contend, release, work, complete."""

from __future__ import annotations

import json
import os
import sys
import uuid
from typing import Any
from urllib.error import HTTPError
from urllib.request import Request, urlopen


def _env(name: str, default: str | None = None) -> str | None:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value


class ApiError(RuntimeError):
    def __init__(self, status: int, body: dict[str, Any]) -> None:
        self.status = status
        self.body = body
        super().__init__(f"{status}: {body}")

    @property
    def code(self) -> str | None:
        return self.body.get("error", {}).get("code")


class HttpClient:
    def __init__(self, base_url: str, api_key: str | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key

    def request_json(
        self,
        method: str,
        path: str,
        caller: tuple[str, str] | None = None,
        payload: dict[str, Any] | None = None,
        timeout: float = 10.0,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        data = None
        if payload is not None:
            data = json.dumps(payload, default=str).encode("utf-8")

        req = Request(url, data=data, method=method)
        req.add_header("Content-Type", "application/json")
        if self.api_key:
            req.add_header("Authorization", f"Bearer {self.api_key}")
        if caller:
            req.add_header("X-Caller-Id", caller[0])
            req.add_header("X-Caller-Role", caller[1])

        try:
            with urlopen(req, timeout=timeout) as response:
                raw = response.read()
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            try:
                body = json.loads(detail)
            except ValueError:
                body = {"detail": detail}
            raise ApiError(exc.code, body) from None

        if not raw:
            return {}
        return json.loads(raw.decode("utf-8"))


def main() -> int:
    base_url = _env("CLAIMGATE_URL", "http://localhost:8080")
    api_key = _env("CLAIMGATE_API_KEY")
    suffix = uuid.uuid4().hex[:8]

    customer = (f"cust-{suffix}", "customer")
    mechanic_a = (f"mech-a-{suffix}", "provider")
    mechanic_b = (f"mech-b-{suffix}", "provider")

    client = HttpClient(base_url, api_key=api_key)

    print("Checking health...")
    health = client.request_json("GET", "/v1/health")
    if health.get("status") != "healthy":
        raise RuntimeError(f"Unexpected health response: {health}")

    print("Submitting order...")
    order = client.request_json(
        "POST",
        "/v1/orders",
        caller=customer,
        payload={
            "items": [{"id": "svc-oil", "name": "Oil change", "price": "49.99"}],
            "total_price": "49.99",
            "description": "Golden path demo",
        },
    )
    order_id = order["id"]
    print(f"Order {order_id} is {order['status']}")

    print("Mechanic A claims...")
    client.request_json("POST", f"/v1/orders/{order_id}/claim", caller=mechanic_a)

    print("Mechanic B tries to claim (expect conflict)...")
    try:
        client.request_json("POST", f"/v1/orders/{order_id}/claim", caller=mechanic_b)
        raise RuntimeError("Second claim unexpectedly succeeded")
    except ApiError as exc:
        if exc.code != "CLAIM_CONFLICT":
            raise
        print(f"  got {exc.code} as expected")

    print("Mechanic A releases...")
    client.request_json("POST", f"/v1/orders/{order_id}/release", caller=mechanic_a)

    print("Mechanic B claims, accepts, starts, completes...")
    for action in ("claim", "accept", "start", "complete"):
        order = client.request_json("POST", f"/v1/orders/{order_id}/{action}", caller=mechanic_b)
        print(f"  {action}: {order['status']}")

    provider = client.request_json("GET", f"/v1/providers/{mechanic_b[0]}")
    print(
        f"Mechanic B counters: accepted={provider['accepted_job_count']} "
        f"completed={provider['completed_job_count']}"
    )

    if order["status"] != "Completed":
        raise RuntimeError(f"Order ended in {order['status']}")
    print("Golden path complete.")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as exc:
        print(f"Golden path failed: {exc}", file=sys.stderr)
        sys.exit(1)
