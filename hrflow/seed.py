"""Seed script for development data.

Run with:  python -m hrflow.seed   (or the ``hrflow-seed`` script)
Seeds leave types, recurring holidays, the designated "Leave Request" type and
initial entitlements for a demo employee through the running API.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import UTC, datetime

import httpx

from hrflow.config import get_settings
from hrflow.main import configure_logging

logger = logging.getLogger(__name__)

BASE_URL = "http://localhost:8000"
MANAGER_USER_ID = "00000000-0000-0000-0000-000000000001"
DEMO_EMPLOYEE_ID = "00000000-0000-0000-0000-000000000002"

HEADERS = {
    "Content-Type": "application/json",
    "X-User-Id": MANAGER_USER_ID,
    "X-Role": "manager",
}

LEAVE_TYPES = [
    {
        "name": "Vacation Leave",
        "code": "VAC",
        "description": "Annual vacation leave for rest and recreation",
        "max_days_per_request": 15,
        "max_days_per_year": 15,
        "min_notice_days": 3,
        "sort_order": 1,
    },
    {
        "name": "Sick Leave",
        "code": "SICK",
        "description": "Leave for illness or medical appointments",
        "max_days_per_request": 5,
        "max_days_per_year": 15,
        "min_notice_days": 0,
        "sort_order": 2,
    },
    {
        "name": "Personal Leave",
        "code": "PER",
        "description": "Personal leave for personal matters",
        "max_days_per_request": 3,
        "max_days_per_year": 5,
        "min_notice_days": 2,
        "sort_order": 3,
    },
    {
        "name": "Maternity Leave",
        "code": "MAT",
        "description": "Maternity leave for expecting mothers",
        "max_days_per_request": 105,
        "max_days_per_year": 105,
        "min_notice_days": 30,
        "sort_order": 4,
    },
    {
        "name": "Paternity Leave",
        "code": "PAT",
        "description": "Paternity leave for new fathers",
        "max_days_per_request": 7,
        "max_days_per_year": 7,
        "min_notice_days": 7,
        "sort_order": 5,
    },
    {
        "name": "Emergency Leave",
        "code": "EMER",
        "description": "Leave for urgent, unforeseen situations",
        "max_days_per_request": 3,
        "max_days_per_year": 5,
        "min_notice_days": 0,
        "sort_order": 6,
    },
]

# Initial entitlement per leave type code; zero-day types are granted on demand.
ENTITLEMENTS = {"VAC": "15", "SICK": "15", "PER": "5", "EMER": "5"}

HOLIDAYS = [
    {"date": "2026-01-01", "name": "New Year's Day", "type": "regular", "is_recurring": True},
    {"date": "2026-05-01", "name": "Labor Day", "type": "regular", "is_recurring": True},
    {"date": "2026-12-25", "name": "Christmas Day", "type": "regular", "is_recurring": True},
    {"date": "2026-12-30", "name": "Rizal Day", "type": "regular", "is_recurring": True},
]


async def _safe_post(client: httpx.AsyncClient, url: str, json: dict, label: str) -> dict | None:
    resp = await client.post(url, json=json, headers=HEADERS)
    if resp.status_code in (200, 201):
        logger.info("[OK] %s", label)
        return resp.json()
    if resp.status_code == 409:
        logger.info("[SKIP] %s (already exists)", label)
        return None
    logger.error("[ERROR] %s: %d %s", label, resp.status_code, resp.text[:200])
    return None


async def seed_leave_types(client: httpx.AsyncClient) -> dict[str, str]:
    logger.info("--- Seeding leave types ---")
    for leave_type in LEAVE_TYPES:
        await _safe_post(client, f"{BASE_URL}/leave-types", leave_type, f"Leave type: {leave_type['code']}")

    resp = await client.get(f"{BASE_URL}/leave-types", headers=HEADERS)
    resp.raise_for_status()
    return {item["code"]: item["id"] for item in resp.json()["items"]}


async def seed_holidays(client: httpx.AsyncClient) -> None:
    logger.info("--- Seeding holidays ---")
    for holiday in HOLIDAYS:
        await _safe_post(client, f"{BASE_URL}/holidays", holiday, f"Holiday: {holiday['name']}")


async def seed_leave_request_type(client: httpx.AsyncClient) -> None:
    """Create the designated leave request type, unpublished until its approvers are configured."""
    logger.info("--- Seeding leave request type ---")
    await _safe_post(
        client,
        f"{BASE_URL}/request-types",
        {
            "name": get_settings().leave_request_type_name,
            "description": "Leave request covering vacation, sick and special leave types.",
            "has_fulfillment": False,
            "is_published": False,
            "approval_steps": [],
        },
        "Request type: Leave Request (configure approval steps, then publish)",
    )


async def seed_entitlements(client: httpx.AsyncClient, leave_type_ids: dict[str, str]) -> None:
    logger.info("--- Seeding entitlements for %s ---", DEMO_EMPLOYEE_ID)
    year = datetime.now(UTC).year
    resp = await client.get(
        f"{BASE_URL}/employees/{DEMO_EMPLOYEE_ID}/leave-balances",
        headers=HEADERS,
        params={"year": year},
    )
    resp.raise_for_status()
    accrued = {item["leave_type_code"]: item["accrued"] for item in resp.json()["items"]}

    for code, days in ENTITLEMENTS.items():
        leave_type_id = leave_type_ids.get(code)
        if leave_type_id is None:
            logger.warning("[SKIP] leave type %s not found", code)
            continue
        if float(accrued.get(code, 0)) > 0:
            logger.info("[SKIP] %s entitlement already granted", code)
            continue
        await _safe_post(
            client,
            f"{BASE_URL}/leave-accruals",
            {
                "employee_id": DEMO_EMPLOYEE_ID,
                "leave_type_id": leave_type_id,
                "amount": days,
                "accrual_type": "annual",
                "notes": f"Initial leave entitlement for {year}",
            },
            f"Entitlement: {code} {days} day(s)",
        )


async def main_async() -> None:
    async with httpx.AsyncClient(timeout=30.0) as client:
        try:
            resp = await client.get(f"{BASE_URL}/health")
            resp.raise_for_status()
        except httpx.HTTPError:
            logger.error("API is not reachable at %s; start the server first", BASE_URL)
            sys.exit(1)

        leave_type_ids = await seed_leave_types(client)
        await seed_holidays(client)
        await seed_leave_request_type(client)
        await seed_entitlements(client, leave_type_ids)
    logger.info("Seeding complete")


def main() -> None:
    configure_logging(get_settings().log_level)
    asyncio.run(main_async())


if __name__ == "__main__":
    main()
