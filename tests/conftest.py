"""Shared fixtures: a fake Databox service behind httpx.MockTransport."""

import copy
import json

import httpx
import pytest

from databox_client import AsyncClient, Client

TEST_HOST = "https://push.test"


class FakeService:
    """Records requests and replies with a queued (status, body) pair."""

    def __init__(self):
        self.requests = []
        self.status = 200
        self.body = {"id": "abc", "type": "success", "message": "Pushed"}
        self.raw_body = None
        self.error = None

    def reply(self, status, body=None, raw_body=None):
        self.status = status
        self.body = body
        self.raw_body = raw_body

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error(str(self.error.__name__), request=request)
        if self.raw_body is not None:
            return httpx.Response(self.status, content=self.raw_body)
        return httpx.Response(self.status, json=self.body)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    @property
    def last_json(self):
        return json.loads(self.last_request.content)


@pytest.fixture
def service():
    return FakeService()


@pytest.fixture
def client(service):
    """Create a client fixture for tests."""
    http_client = httpx.Client(transport=httpx.MockTransport(service.handler))
    client = Client("token123", push_host=TEST_HOST, http_client=http_client)
    yield client
    http_client.close()


@pytest.fixture
def make_async_client(service):
    def factory():
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(service.handler))
        return AsyncClient("token123", push_host=TEST_HOST, http_client=http_client)
    return factory


@pytest.fixture
def last_push_body():
    return copy.deepcopy(LAST_PUSH)


LAST_PUSH = {
    "request": {
        "date": "2024-03-01T10:00:00Z",
        "body": {
            "data": [{"$visits": 42, "unit": "count", "country": "US"}],
            "meta": {"ensure_unique": True},
        },
        "errors": ["bad date"],
    },
    "response": {
        "date": "2024-03-01T10:00:01Z",
        "body": {"id": "p-1", "type": "success", "message": "Pushed"},
    },
    "metrics": ["visits"],
}
