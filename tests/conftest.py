"""
Pytest configuration and fixtures for CampusGrid Console tests.
"""

import asyncio
import json
import os

import httpx
import pytest

# Set test environment before importing campusgrid modules
os.environ["APP_ENV"] = "development"
os.environ["LOG_LEVEL"] = "DEBUG"

from campusgrid.adapters.platform_client import PlatformClient  # noqa: E402
from campusgrid.config import CampusGridSettings  # noqa: E402
from campusgrid.models.operator import Operator  # noqa: E402
from campusgrid.session import OperatorSession  # noqa: E402

API_BASE = "http://platform.test/api"


def run(coro):
    """Run a coroutine to completion (no async plugin needed)."""
    return asyncio.run(coro)


def make_settings(**overrides) -> CampusGridSettings:
    values = {"api_base_url": API_BASE, "jwt_secret_key": "test-secret", **overrides}
    return CampusGridSettings(_env_file=None, **values)


def make_session(role: str | None = "superadmin", token: str = "test-token") -> OperatorSession:
    session = OperatorSession()
    operator = Operator(email="ops@campusgrid.in", name="Ops", role=role) if role else None
    session.init(token, operator)
    return session


def make_client(handler, session: OperatorSession | None = None, settings: CampusGridSettings | None = None):
    """PlatformClient whose HTTP traffic goes to ``handler`` (sync or async)."""
    return PlatformClient(
        session or make_session(),
        settings=settings or make_settings(),
        transport=httpx.MockTransport(handler),
    )


def envelope(data, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json={"success": True, "data": data})


def failure(message: str, status_code: int) -> httpx.Response:
    return httpx.Response(status_code, json={"success": False, "message": message})


def body_of(request: httpx.Request) -> dict:
    return json.loads(request.content.decode("utf-8"))


LINCOLN = {
    "groupName": "Lincoln Group",
    "displayName": "Lincoln Group of Schools",
    "subdomain": "lincoln",
    "organizationType": "Trust",
    "establishedYear": 1998,
    "registrationNumber": "REG-2041",
    "affiliatedBoards": ["CBSE", "ICSE"],
    "planType": "Standard",
    "noOfSchools": 4,
    "contactPerson": "Anita Rao",
    "contactPhone": "9876543210",
    "contactEmail": "a@b.com",
    "addressLine1": "12 MG Road",
    "city": "Pune",
    "state": "Maharashtra",
    "pincode": "411001",
    "country": "India",
    "panNumber": "AACCL1234K",
    "gstNumber": "27AACCL1234K1Z5",
    "bankName": "HDFC Bank",
    "accountHolderName": "Lincoln Group",
    "accountNumber": "50100234567890",
    "ifscCode": "HDFC0001234",
    "billingEmail": "billing@lincoln.edu.in",
    "paymentMode": "Invoice",
}


def group_row(group_id: str, name: str, status: str = "Pending", **extra) -> dict:
    subdomain = extra.pop("subdomain", name.lower().replace(" ", ""))
    return {
        "_id": group_id,
        "groupName": name,
        "subdomain": subdomain,
        "contactEmail": extra.pop("contactEmail", f"office@{subdomain}.org"),
        "status": status,
        "createdAt": extra.pop("createdAt", "2024-01-01T00:00:00Z"),
        **extra,
    }


@pytest.fixture
def settings() -> CampusGridSettings:
    return make_settings()


@pytest.fixture
def lincoln() -> dict:
    return json.loads(json.dumps(LINCOLN))
