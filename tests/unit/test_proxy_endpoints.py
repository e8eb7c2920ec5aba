"""Unit tests for the proxy HTTP endpoints."""

import httpx
import pytest

from konsole.services.fixtures import DEFAULT_FIXTURE, fixture_name_for

HEADERS = {"X-API-KEY": "sk-test"}


def _ok(body):
    return lambda request: httpx.Response(200, json=body)


class TestAPIKeyRequired:
    """Tests for the X-API-KEY precondition."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/evaluations"),
            ("POST", "/api/evaluations"),
            ("GET", "/api/evaluations/5"),
            ("GET", "/api/assistant/asst_1"),
        ],
    )
    def test_missing_key_is_401_without_outbound_call(self, app_client, settings, method, path):
        """Test requests without a key are rejected before forwarding."""
        client, transport = app_client(_ok({}), settings)

        kwargs = {"json": {"dataset_id": 1}} if method == "POST" else {}
        response = client.request(method, path, **kwargs)

        assert response.status_code == 401
        assert response.json()["error"] == "Missing X-API-KEY header"
        assert transport.requests == []

    def test_blank_key_is_401(self, app_client, settings):
        """Test a whitespace-only key counts as missing."""
        client, transport = app_client(_ok({}), settings)
        response = client.get("/api/evaluations", headers={"X-API-KEY": "  "})
        assert response.status_code == 401
        assert transport.requests == []

    def test_upload_without_key_is_401(self, app_client, settings):
        """Test dataset upload requires a key too."""
        client, transport = app_client(_ok({}), settings)
        response = client.post(
            "/api/evaluations/datasets",
            files={"file": ("qa.csv", b"q,a\n1,2\n", "text/csv")},
            data={"dataset_name": "qa"},
        )
        assert response.status_code == 401
        assert transport.requests == []


class TestForwarding:
    """Tests for forwarding and status mirroring."""

    def test_list_evaluations_mirrors_body(self, app_client, settings):
        """Test the job list is passed through verbatim."""
        client, transport = app_client(_ok({"data": [{"id": 1}]}), settings)

        response = client.get("/api/evaluations", headers=HEADERS)

        assert response.status_code == 200
        assert response.json() == {"data": [{"id": 1}]}
        sent = transport.requests[0]
        assert sent.url.path == "/api/v1/evaluations"
        assert sent.headers["X-API-KEY"] == "sk-test"

    def test_upstream_error_status_mirrored(self, app_client, settings):
        """Test a 404 upstream is returned as 404 with its body."""
        client, _ = app_client(
            lambda request: httpx.Response(404, json={"error": "Evaluation not found"}),
            settings,
        )

        response = client.get("/api/evaluations/999", headers=HEADERS)

        assert response.status_code == 404
        assert response.json() == {"error": "Evaluation not found"}

    def test_create_evaluation_forwards_json(self, app_client, settings):
        """Test the creation payload is forwarded as JSON."""
        client, transport = app_client(_ok({"id": 17, "status": "pending"}), settings)
        payload = {"dataset_id": 3, "experiment_name": "baseline"}

        response = client.post("/api/evaluations", json=payload, headers=HEADERS)

        assert response.json()["id"] == 17
        sent = transport.requests[0]
        assert sent.method == "POST"
        assert sent.url.path == "/api/v1/evaluations"
        assert b'"experiment_name"' in sent.content

    def test_upload_forwards_multipart(self, app_client, settings):
        """Test uploads are re-sent as multipart with the form fields."""
        client, transport = app_client(_ok({"dataset_id": "ds-9"}), settings)

        response = client.post(
            "/api/evaluations/datasets",
            files={"file": ("qa.csv", b"q,a\n1,2\n", "text/csv")},
            data={"dataset_name": "qa", "duplication_factor": "2"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.json() == {"dataset_id": "ds-9"}
        sent = transport.requests[0]
        assert sent.url.path == "/api/v1/evaluations/datasets"
        assert sent.headers["content-type"].startswith("multipart/form-data")
        assert b'name="dataset_name"' in sent.content
        assert b'name="duplication_factor"' in sent.content
        assert b"q,a\n1,2\n" in sent.content

    def test_assistant_forwarded(self, app_client, settings):
        """Test assistant lookups are forwarded."""
        client, transport = app_client(_ok({"id": "asst_1", "model": "gpt-4"}), settings)

        response = client.get("/api/assistant/asst_1", headers=HEADERS)

        assert response.json()["model"] == "gpt-4"
        assert transport.requests[0].url.path == "/api/v1/assistant/asst_1"

    def test_transport_failure_is_500(self, app_client, settings):
        """Test a network failure is reported as 500 with error and details."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        client, _ = app_client(handler, settings)

        response = client.get("/api/evaluations", headers=HEADERS)

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "Failed to forward request to backend"
        assert "details" in body

    def test_validation_error_is_400(self, app_client, settings):
        """Test a malformed request body is a 400 with a correlation id."""
        client, transport = app_client(_ok({}), settings)

        response = client.post(
            "/api/evaluations",
            content=b"not json",
            headers={**HEADERS, "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Validation error"
        assert "correlation_id" in response.json()
        assert transport.requests == []


class TestMockMode:
    """Tests for mock fixture mode."""

    @pytest.mark.parametrize(
        "evaluation_id,expected_id",
        [("2", 44), ("44", 44), ("1", 1), ("3", 1), ("abc", 1)],
    )
    def test_fixture_mapping(self, app_client, mock_settings, evaluation_id, expected_id):
        """Test ids 2 and 44 get the second sample and all others the first."""
        client, transport = app_client(_ok({}), mock_settings)

        response = client.get(f"/api/evaluations/{evaluation_id}", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["id"] == expected_id
        assert transport.requests == []

    def test_missing_fixture_is_404(self, app_client, mock_settings, tmp_path):
        """Test a missing fixture file is a 404 distinct from upstream errors."""
        empty = mock_settings.model_copy(update={"mock_data_dir": tmp_path})
        client, _ = app_client(_ok({}), empty)

        response = client.get("/api/evaluations/1", headers=HEADERS)

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "Mock data not found"
        assert body["details"]

    def test_malformed_fixture_is_404(self, app_client, mock_settings, tmp_path):
        """Test an unparseable fixture file is a 404."""
        (tmp_path / DEFAULT_FIXTURE).write_text("{not json")
        broken = mock_settings.model_copy(update={"mock_data_dir": tmp_path})
        client, _ = app_client(_ok({}), broken)

        response = client.get("/api/evaluations/7", headers=HEADERS)

        assert response.status_code == 404

    def test_list_still_forwards_in_mock_mode(self, app_client, mock_settings):
        """Test only the single-evaluation endpoint is served from fixtures."""
        client, transport = app_client(_ok([]), mock_settings)
        client.get("/api/evaluations", headers=HEADERS)
        assert len(transport.requests) == 1

    def test_fixture_name_for(self):
        """Test the id to fixture mapping directly."""
        assert fixture_name_for("2") == "evaluation-sample-2.json"
        assert fixture_name_for("10") == DEFAULT_FIXTURE


class TestHealth:
    """Tests for the health endpoint."""

    def test_health(self, app_client, mock_settings):
        """Test health reports status and mock mode."""
        client, _ = app_client(_ok({}), mock_settings)
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["mock_mode"] is True
        assert "X-Correlation-Id" in response.headers

    def test_incoming_correlation_id_reused(self, app_client, settings):
        """Test a caller-supplied correlation id is echoed back."""
        client, _ = app_client(_ok({}), settings)
        response = client.get("/health", headers={"X-Correlation-Id": "corr-42"})
        assert response.headers["X-Correlation-Id"] == "corr-42"
