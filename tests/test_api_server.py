import pytest
import requests

from intuneAssignments import main as main_module
from web import api_server

from conftest import FakeGraphClient, assigned_to, make_response, make_token


@pytest.fixture
def fake_client(monkeypatch):
    client = FakeGraphClient(
        groups=[{"id": "G1", "displayName": "Finance"}],
        listings={
            "deviceAppManagement/iosManagedAppProtections": [
                {"displayName": "iOS MAM", "lastModifiedDateTime": "2024-05-05T05:05:05Z",
                 "assignments": assigned_to("G1")},
            ],
        },
    )
    monkeypatch.setattr(main_module, "GraphAPIClient", lambda token, **kwargs: client)
    return client


@pytest.fixture
def http():
    api_server.app.config["TESTING"] = True
    return api_server.app.test_client()


def test_categories_lists_endpoint_labels(http):
    body = http.get("/api/categories").get_json()

    assert "All" in body["choices"]
    assert body["categories"]["ApplicationProtectionPolicies"] == [
        "AndroidManagedAppProtections", "iOSManagedAppProtections", "WindowsManagedAppProtections",
    ]


def test_extract_tenant_id(http):
    response = http.post("/api/extract-tenant-id", json={"token": make_token("tenant-77")})
    assert response.get_json() == {"tenant_id": "tenant-77"}

    missing = http.post("/api/extract-tenant-id", json={})
    assert missing.status_code == 400

    garbage = http.post("/api/extract-tenant-id", json={"token": "garbage"})
    assert garbage.status_code == 400


def test_assignments_returns_records(http, fake_client):
    response = http.post("/api/assignments", json={
        "token": make_token(), "group": "Finance", "categories": ["ApplicationProtectionPolicies"],
    })

    assert response.status_code == 200
    body = response.get_json()
    assert body["group"] == {"id": "G1", "displayName": "Finance"}
    assert body["assignments_count"] == 1
    assert [r["subLabel"] for r in body["results"]["ApplicationProtectionPolicies"]] == [
        "AndroidManagedAppProtections", "iOSManagedAppProtections", "WindowsManagedAppProtections",
    ]
    assert "✓ Resolved group 'Finance' (G1)" in body["log"]


def test_assignments_validates_input(http, fake_client):
    assert http.post("/api/assignments", json={"group": "Finance", "categories": ["All"]}).status_code == 400

    response = http.post("/api/assignments", json={"token": make_token(), "group": "Finance", "categories": []})
    assert response.status_code == 400
    assert response.get_json()["error"] == "No policy category selected"
    assert fake_client.listed_paths == []


def test_assignments_unknown_group_is_404(http, fake_client):
    response = http.post("/api/assignments", json={"token": make_token(), "group": "Nobody", "categories": ["All"]})

    assert response.status_code == 404
    assert "Nobody" in response.get_json()["error"]


def test_assignments_transport_failure_is_502(http, fake_client):
    fake_client.failures["deviceAppManagement/mobileApps"] = requests.exceptions.ConnectionError("reset")

    response = http.post("/api/assignments", json={"token": make_token(), "group": "Finance", "categories": ["All"]})

    assert response.status_code == 502


def test_report_returns_html(http, fake_client):
    response = http.post("/api/report", json={"token": make_token(), "group": "Finance", "categories": "All"})

    assert response.status_code == 200
    assert response.mimetype == "text/html"
    document = response.get_data(as_text=True)
    assert document.count("<section") == 8
    assert "iOS MAM" in document


@pytest.mark.parametrize("route", ["/api/assignments", "/api/report", "/api/validate-token"])
def test_non_object_body_is_rejected(http, fake_client, route):
    response = http.post(route, json=["x"])

    assert response.status_code == 400
    assert "JSON object" in response.get_json()["error"]
    assert fake_client.listed_paths == []


def test_categories_of_wrong_type_are_reported(http, fake_client):
    response = http.post("/api/assignments", json={"token": make_token(), "group": "Finance", "categories": 5})

    assert response.status_code == 400
    assert response.get_json()["error"] == "Unknown policy categories: 5; No policy category selected"
    assert fake_client.listed_paths == []


def test_threads_must_be_a_positive_integer(http, fake_client):
    response = http.post("/api/assignments", json={
        "token": make_token(), "group": "Finance", "categories": ["All"], "threads": "many",
    })

    assert response.status_code == 400
    assert fake_client.listed_paths == []


@pytest.mark.parametrize("token_valid,status,body", [
    (True, 200, {"valid": True}),
    (False, 401, {"valid": False, "error": "Invalid or expired access token."}),
])
def test_validate_token(http, monkeypatch, token_valid, status, body):
    client = FakeGraphClient(token_valid=token_valid)
    monkeypatch.setattr(api_server, "GraphAPIClient", lambda token: client)

    response = http.post("/api/validate-token", json={"token": make_token()})

    assert response.status_code == status
    assert response.get_json() == body
    assert client.disconnected


def test_validate_token_requires_token(http):
    response = http.post("/api/validate-token", json={})

    assert response.status_code == 400
    assert response.get_json() == {"valid": False, "error": "No token provided"}


def test_report_requires_token_and_selection(http, fake_client):
    assert http.post("/api/report", json={"group": "Finance", "categories": ["All"]}).status_code == 400

    response = http.post("/api/report", json={"token": make_token(), "categories": ["All"]})
    assert response.status_code == 400
    assert response.get_json()["error"] == "No group name provided"
    assert fake_client.listed_paths == []


def test_report_unknown_group_is_404(http, fake_client):
    response = http.post("/api/report", json={"token": make_token(), "group": "Nobody", "categories": ["All"]})

    assert response.status_code == 404
    assert "Nobody" in response.get_json()["error"]


def test_report_transport_failure_is_502(http, fake_client):
    fake_client.failures["deviceAppManagement/mobileApps"] = requests.exceptions.ConnectionError("reset")

    response = http.post("/api/report", json={"token": make_token(), "group": "Finance", "categories": ["All"]})

    assert response.status_code == 502
    assert response.mimetype == "application/json"


@pytest.mark.parametrize("route", ["/api/assignments", "/api/report"])
def test_graph_status_is_passed_through(http, fake_client, route):
    forbidden = make_response(403, {"error": {"code": "Forbidden"}})
    fake_client.failures["deviceAppManagement/mobileApps"] = requests.exceptions.HTTPError(
        "403 Client Error: Forbidden", response=forbidden)

    response = http.post(route, json={"token": make_token(), "group": "Finance", "categories": ["Applications"]})

    assert response.status_code == 403
    assert response.get_json()["error"] == "403 Client Error: Forbidden"
