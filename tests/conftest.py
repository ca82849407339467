"""Shared fixtures: canned HTTP responses and a mocked requests session."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from zephyr_mcp.client import ZephyrClient

BASE_URL = "https://api.zephyrscale.example.com/v2"
API_KEY = "test-api-key-123456"


def make_response(status_code=200, json_body=None, text=None, content_type="application/json", url=""):
    """Build a real requests.Response without touching the network."""
    response = requests.Response()
    response.status_code = status_code
    response.url = url
    if json_body is not None:
        response._content = json.dumps(json_body).encode("utf-8")
    elif text is not None:
        response._content = text.encode("utf-8")
    else:
        response._content = b""
    if content_type:
        response.headers["Content-Type"] = content_type
    return response


def steps_page(descriptions, total, is_last=None, key="values"):
    page = {key: [{"description": d, "expectedResult": f"{d} ok"} for d in descriptions], "total": total}
    if is_last is not None:
        page["isLast"] = is_last
    return page


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(session):
    return ZephyrClient(API_KEY, BASE_URL, timeout=30, session=session)


@pytest.fixture
def fake_client():
    """Executor double for service/dispatch tests; configure execute.side_effect."""
    fake = MagicMock()
    fake.base_url = BASE_URL + "/"
    return fake
