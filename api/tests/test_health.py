from fastapi.testclient import TestClient


def test_healthz_reports_environment(api_client: TestClient) -> None:
    response = api_client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "environment": "dev"}


def test_root_reports_service_name(api_client: TestClient) -> None:
    response = api_client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["service"] == "recovery-jobs-api"
