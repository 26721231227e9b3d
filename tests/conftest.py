import json

import jwt
import pytest
import requests


TEST_SECRET = "intune-assignments-test-secret-0123456789"


def make_token(tenant_id: str = "tenant-1234") -> str:
    return jwt.encode({"tid": tenant_id, "aud": "https://graph.microsoft.com"}, TEST_SECRET, algorithm="HS256")


def make_response(status_code: int = 200, payload=None, url: str = "https://graph.microsoft.com/") -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response.reason = "OK" if status_code < 400 else "Error"
    response.url = url
    response.encoding = "utf-8"
    response._content = json.dumps(payload if payload is not None else {}).encode("utf-8")
    return response


def assigned_to(*group_ids):
    return [
        {"target": {"@odata.type": "#microsoft.graph.groupAssignmentTarget", "groupId": group_id}}
        for group_id in group_ids
    ]


class FakeSession:
    """Stands in for requests.Session, answering by URL."""

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.calls = []
        self.closed = False

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        response = self.responses.get(url)
        if isinstance(response, Exception):
            raise response
        if response is None:
            return make_response(404, {"error": {"code": "ResourceNotFound"}}, url=url)
        return response

    def close(self):
        self.closed = True


class FakeGraphClient:
    """In-process replacement for GraphAPIClient keyed by resource path."""

    def __init__(self, listings=None, groups=None, token_valid=True, failures=None):
        self.listings = listings or {}
        self.groups = groups or []
        self.token_valid = token_valid
        self.failures = failures or {}
        self.listed_paths = []
        self.connected = False
        self.disconnected = False

    def __enter__(self):
        self.connected = True
        return self

    def __exit__(self, exc_type, exc_value, tb):
        self.disconnected = True
        return False

    def validate_token(self):
        if self.token_valid:
            return True, ""
        return False, "Invalid or expired access token."

    def get_group_by_display_name(self, display_name):
        from intuneAssignments.graph.api_client import GroupNotFoundError

        for group in self.groups:
            if group["displayName"] == display_name:
                return dict(group)
        raise GroupNotFoundError(display_name)

    def list_with_assignments(self, resource_path):
        self.listed_paths.append(resource_path)
        if resource_path in self.failures:
            raise self.failures[resource_path]
        return [dict(obj) for obj in self.listings.get(resource_path, [])]


@pytest.fixture
def finance_group():
    return {"id": "G1", "displayName": "Finance"}


@pytest.fixture
def token():
    return make_token()
