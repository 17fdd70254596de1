"""
API Endpoint Tests

Integration tests for REST API endpoints using FastAPI TestClient.
Validates request/response contracts, error handling, and endpoint behavior.

Test Categories:
1. TestInfoEndpoints - /, /health, /config
2. TestModelsEndpoint - /models, /models/refresh
3. TestPlanEndpoint - /plan dry-run selection
4. TestGenerateEndpoint - /generate routing and fallback
5. TestMetricsEndpoint - /metrics after traffic
6. TestErrorHandling - validation and error envelope
"""

from lightrouter.exceptions import ErrorKind
from tests.fixtures import failure


class TestInfoEndpoints:
    """Tests for /, /health and /config."""

    def test_root(self, test_client):
        """Verify the root endpoint describes the service."""
        response = test_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Visual Light Router"
        assert data["health"] == "/health"

    def test_health_healthy_with_models_and_adapters(self, test_client):
        """Verify /health is healthy with models and adapters loaded."""
        response = test_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["uptime_seconds"] >= 0
        names = {c["name"] for c in data["components"]}
        assert {"registry", "local", "gateway", "direct"} <= names

    def test_health_unhealthy_with_empty_registry(self, test_client, registry):
        """Verify an empty registry makes /health unhealthy."""
        registry.replace([])

        data = test_client.get("/health").json()

        assert data["status"] == "unhealthy"
        registry_component = next(c for c in data["components"] if c["name"] == "registry")
        assert registry_component["status"] == "unhealthy"

    def test_config_hides_secrets(self, test_client):
        """Verify /config reports key presence without the keys."""
        response = test_client.get("/config")

        assert response.status_code == 200
        data = response.json()
        assert data["routing"]["max_fallbacks"] >= 0
        assert data["api_keys_configured"] == {"openrouter": False, "groq": False, "gemini": False}
        assert "openrouter_api_key" not in response.text


class TestModelsEndpoint:
    """Tests for /models and /models/refresh."""

    def test_list_models(self, test_client):
        """Verify /models lists descriptors with statistics."""
        response = test_client.get("/models")

        assert response.status_code == 200
        data = response.json()
        ids = [m["id"] for m in data["models"]]
        assert sorted(ids) == ["gw-basic", "gw-best", "gw-good", "local-llm"]
        assert data["statistics"]["total_models"] == 4
        assert data["statistics"]["by_provider_kind"] == {"gateway": 3, "local": 1}

    def test_refresh_without_sources_keeps_models(self, test_client):
        """Verify /models/refresh keeps the pool when there are no sources."""
        response = test_client.post("/models/refresh")

        assert response.status_code == 200
        assert response.json()["total_models"] == 4


class TestPlanEndpoint:
    """Tests for /plan."""

    def test_plan_returns_primary_and_fallbacks(self, test_client, fake_adapter):
        """Verify /plan orders candidates without calling adapters."""
        response = test_client.post("/plan", json={"modality": "text"})

        assert response.status_code == 200
        data = response.json()
        assert data["primary"]["id"] == "gw-best"
        assert [d["id"] for d in data["fallbacks"]] == ["gw-good", "gw-basic"]
        assert fake_adapter.calls == []

    def test_plan_privacy_selects_local(self, test_client):
        """Verify privacy_required plans only local models."""
        response = test_client.post("/plan", json={"modality": "text", "privacy_required": True})

        assert response.status_code == 200
        data = response.json()
        assert data["primary"]["id"] == "local-llm"
        assert data["fallbacks"] == []

    def test_plan_no_eligible_model(self, test_client):
        """Verify /plan reports unmet constraints as NO_ELIGIBLE_MODEL."""
        response = test_client.post(
            "/plan",
            json={"modality": "text", "privacy_required": True, "min_context_length": 100_000},
        )

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "NO_ELIGIBLE_MODEL"
        assert error["details"]["unmet_constraints"] == ["context", "privacy"]

    def test_plan_unknown_modality(self, test_client):
        """Verify a modality with no models reports the modality constraint."""
        response = test_client.post("/plan", json={"modality": "video"})

        assert response.status_code == 422
        assert response.json()["error"]["details"]["unmet_constraints"] == ["modality"]


class TestGenerateEndpoint:
    """Tests for /generate."""

    def test_generate_success(self, test_client):
        """Verify /generate returns the result and routing details."""
        response = test_client.post("/generate", json={"prompt": "Hello", "modality": "text"})

        assert response.status_code == 200
        data = response.json()
        assert data["result"] == "ok:gw-best"
        assert data["descriptor_used"] == "gw-best"
        assert data["provider_kind"] == "gateway"
        assert data["attempts"] == ["gw-best"]
        assert data["fallback_used"] is False
        assert data["latency_ms"] >= 0

    def test_generate_with_fallback(self, test_client, fake_adapter):
        """Verify /generate reports the fallback it used."""
        fake_adapter.behaviors["gw-best"] = failure(ErrorKind.RATE_LIMITED)

        data = test_client.post("/generate", json={"prompt": "Hello", "modality": "text"}).json()

        assert data["descriptor_used"] == "gw-good"
        assert data["attempts"] == ["gw-best", "gw-good"]
        assert data["fallback_used"] is True

    def test_generate_passes_options(self, test_client, fake_adapter):
        """Verify /generate accepts generation options."""
        response = test_client.post(
            "/generate",
            json={
                "prompt": "Summarize",
                "modality": "text",
                "privacy_required": True,
                "options": {"max_tokens": 100, "temperature": 0.1},
            },
        )

        assert response.status_code == 200
        assert fake_adapter.calls == ["local-llm"]

    def test_generate_exhausted(self, test_client, fake_adapter):
        """Verify exhaustion returns 503 with every attempt."""
        for descriptor_id in ("gw-best", "gw-good", "gw-basic"):
            fake_adapter.behaviors[descriptor_id] = failure(ErrorKind.UNAVAILABLE)

        response = test_client.post("/generate", json={"prompt": "Hello", "modality": "text"})

        assert response.status_code == 503
        error = response.json()["error"]
        assert error["code"] == "MODELS_EXHAUSTED"
        attempts = error["details"]["attempts"]
        assert [a["descriptor_id"] for a in attempts] == ["gw-best", "gw-good", "gw-basic"]
        assert all(a["kind"] == "unavailable" for a in attempts)

    def test_generate_rate_limited_sets_retry_after(self, test_client, fake_adapter):
        """All-rate-limited exhaustion returns the longest delay as Retry-After."""
        for descriptor_id, delay in (("gw-best", 30.0), ("gw-good", 12.5), ("gw-basic", None)):
            fake_adapter.behaviors[descriptor_id] = failure(
                ErrorKind.RATE_LIMITED, retry_after=delay
            )

        response = test_client.post("/generate", json={"prompt": "Hello", "modality": "text"})

        assert response.status_code == 503
        assert response.headers["retry-after"] == "30"
        error = response.json()["error"]
        assert error["details"]["retry_after"] == 30.0
        assert error["details"]["attempts"][1]["retry_after"] == 12.5

    def test_generate_exhausted_without_rate_limits_has_no_retry_after(
        self, test_client, fake_adapter
    ):
        """Exhaustion from outages carries no Retry-After header."""
        fake_adapter.behaviors["gw-best"] = failure(ErrorKind.RATE_LIMITED, retry_after=30.0)
        for descriptor_id in ("gw-good", "gw-basic"):
            fake_adapter.behaviors[descriptor_id] = failure(ErrorKind.UNAVAILABLE)

        response = test_client.post("/generate", json={"prompt": "Hello", "modality": "text"})

        assert response.status_code == 503
        assert "retry-after" not in response.headers

    def test_generate_invalid_request(self, test_client, fake_adapter):
        """Verify an invalid request returns 400 after one attempt."""
        fake_adapter.behaviors["gw-best"] = failure(ErrorKind.INVALID_REQUEST, "gw-best")

        response = test_client.post("/generate", json={"prompt": "Hello", "modality": "text"})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_REQUEST"
        assert error["details"]["descriptor_id"] == "gw-best"
        assert fake_adapter.calls == ["gw-best"]

    def test_generate_budget_and_capability_constraints(self, test_client, fake_adapter):
        """Verify budget and capability constraints filter candidates."""
        response = test_client.post(
            "/generate", json={"prompt": "Hello", "modality": "text", "max_budget": 0.0}
        )

        # local-llm is free, so a zero budget still has one candidate
        assert response.status_code == 200
        assert fake_adapter.calls == ["local-llm"]

        response = test_client.post(
            "/generate",
            json={"prompt": "Hello", "modality": "text", "required_capabilities": ["vision"]},
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "NO_ELIGIBLE_MODEL"

    def test_unexpected_adapter_error_is_internal(self, test_client, fake_adapter):
        """Verify an adapter bug returns 500 without leaking its message."""
        fake_adapter.behaviors["gw-best"] = RuntimeError("adapter bug")

        response = test_client.post("/generate", json={"prompt": "Hello", "modality": "text"})

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "INTERNAL_ERROR"
        assert "adapter bug" not in error["message"]


class TestMetricsEndpoint:
    """Tests for /metrics."""

    def test_metrics_empty(self, test_client):
        """Verify /metrics is empty before traffic."""
        data = test_client.get("/metrics").json()

        assert data["total_attempts"] == 0
        assert data["attempts_by_model"] == {}

    def test_metrics_after_fallback(self, test_client, fake_adapter):
        """Verify /metrics counts every attempt of a fallback."""
        fake_adapter.behaviors["gw-best"] = failure(ErrorKind.TIMEOUT)
        test_client.post("/generate", json={"prompt": "Hello", "modality": "text"})

        data = test_client.get("/metrics").json()

        assert data["total_attempts"] == 2
        assert data["successful_attempts"] == 1
        assert data["overall_success_rate"] == 0.5
        assert data["attempts_by_model"]["gw-best"]["success_rate"] == 0.0
        assert data["attempts_by_model"]["gw-good"]["success_rate"] == 1.0
        assert data["attempts_by_provider_kind"] == {"gateway": 2}


class TestErrorHandling:
    """Validation errors use the standard error envelope."""

    def test_missing_prompt(self, test_client):
        """Verify a missing prompt names the field in the error."""
        response = test_client.post("/generate", json={"modality": "text"})

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert "prompt" in error["field"]

    def test_whitespace_prompt(self, test_client, fake_adapter):
        """Verify a blank prompt is rejected before routing."""
        response = test_client.post("/generate", json={"prompt": "   ", "modality": "text"})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        assert fake_adapter.calls == []

    def test_unknown_modality_value(self, test_client):
        """Verify an unknown modality value is a validation error."""
        response = test_client.post("/generate", json={"prompt": "Hi", "modality": "hologram"})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_unknown_field_rejected(self, test_client):
        """Verify unknown request fields are rejected."""
        response = test_client.post(
            "/generate", json={"prompt": "Hi", "modality": "text", "model": "gw-best"}
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_negative_budget_rejected(self, test_client):
        """Verify a negative budget is rejected."""
        response = test_client.post("/plan", json={"modality": "text", "max_budget": -1})

        assert response.status_code == 422

    def test_invalid_json(self, test_client):
        """Verify malformed JSON uses the error envelope."""
        response = test_client.post(
            "/generate", content="not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
