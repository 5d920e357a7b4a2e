"""Tests for the HTTP routes and the MCP validation tool."""

import json
from unittest.mock import MagicMock, patch

import pytest
from starlette.requests import Request
from starlette.testclient import TestClient

import k6validator.server
from k6validator.config import ValidationConfig
from k6validator.core.exceptions import (
    InvalidInputError,
    MalformedRequestError,
    RequestTooLargeError,
)
from k6validator.core.rate_limiter import RateLimiter
from k6validator.server import read_body, run_validation, validate_request_fields

validate_k6_script_func = k6validator.server.validate_k6_script.fn

VALID_SCRIPT = """
import http from 'k6/http';

export default function () {
  http.get('https://test.k6.io');
}
"""


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    k6validator.server.rate_limiter.reset()
    yield
    k6validator.server.rate_limiter.reset()


@pytest.fixture
def client():
    return TestClient(k6validator.server.mcp.http_app())


class TestRequestFields:
    """Test request field checks."""

    def test_valid_payload(self):
        script, language, options = validate_request_fields({"script": VALID_SCRIPT})
        assert script == VALID_SCRIPT
        assert language == "javascript"
        assert options is None

    def test_typescript_filename(self):
        _, language, _ = validate_request_fields({"script": "x", "filename": "load.ts"})
        assert language == "typescript"

    @pytest.mark.parametrize(
        "payload,error",
        [
            ({}, "Script is required"),
            ({"script": None}, "Script is required"),
            ({"script": 42}, "Script must be a string"),
            ({"script": ""}, "Script cannot be empty"),
            ({"script": "x" * 51201}, "Script exceeds maximum size of 50KB"),
            ({"script": chr(0x1F600) * 25601}, "Script exceeds maximum size of 50KB"),
            ({"script": "x", "filename": "load.py"}, "Script filename must end with one of: .js, .ts"),
            ({"script": "x", "options": "{bad"}, "Options must be a valid JSON object"),
            ({"script": "x", "options": "[1, 2]"}, "Options must be a valid JSON object"),
        ],
    )
    def test_field_errors(self, payload, error):
        config = ValidationConfig(max_script_size=51200)
        with pytest.raises(InvalidInputError) as exc_info:
            validate_request_fields(payload, config)
        assert exc_info.value.errors == [error]

    def test_all_errors_reported(self):
        with pytest.raises(InvalidInputError) as exc_info:
            validate_request_fields({"filename": "a.txt", "options": 3})
        assert len(exc_info.value.errors) == 3

    def test_options_object_and_string(self):
        _, _, options = validate_request_fields({"script": "x", "options": {"vus": 1}})
        assert options == {"vus": 1}
        _, _, options = validate_request_fields({"script": "x", "options": '{"vus": 2}'})
        assert options == {"vus": 2}


class TestRunValidation:
    """Test status codes chosen for each outcome."""

    def test_valid_script(self):
        status, body = run_validation({"script": VALID_SCRIPT})
        assert status == 200
        assert body["valid"] is True
        assert body["message"] == "Script validation passed"

    def test_invalid_script(self):
        status, body = run_validation({"script": "const x = 1;"})
        assert status == 400
        assert body["valid"] is False
        assert body["message"] == "Script validation failed"

    def test_invalid_fields(self):
        status, body = run_validation({"script": ""})
        assert status == 400
        assert body == {
            "valid": False,
            "errors": ["Script cannot be empty"],
            "warnings": [],
            "message": "Validation failed",
        }

    def test_unexpected_failure(self):
        broken = MagicMock()
        broken.validate.side_effect = RuntimeError("boom")
        with patch("k6validator.server.validator", broken):
            status, body = run_validation({"script": VALID_SCRIPT})
        assert status == 500
        assert body["errors"] == ["Internal server error during validation"]
        assert body["message"] == "Server error"


class TestMCPTool:
    """Test the validate_k6_script tool."""

    @pytest.mark.asyncio
    async def test_valid_script(self):
        result = await validate_k6_script_func(script=VALID_SCRIPT)
        assert result["valid"] is True
        assert result["errors"] == []

    @pytest.mark.asyncio
    async def test_violation(self):
        script = VALID_SCRIPT.replace("http.get", "eval('1'); http.get")
        result = await validate_k6_script_func(script=script, filename="test.js")
        assert result["valid"] is False
        assert result["errors"] == [
            "Script contains dangerous functions that could execute arbitrary code "
            "(found: eval()"
        ]

    @pytest.mark.asyncio
    async def test_bad_filename(self):
        result = await validate_k6_script_func(script=VALID_SCRIPT, filename="test.sh")
        assert result["message"] == "Validation failed"


class TestHTTPRoutes:
    """Test the HTTP surface end to end."""

    def test_validate_json(self, client):
        response = client.post("/api/v1/validate", json={"script": VALID_SCRIPT})
        assert response.status_code == 200
        assert response.json()["valid"] is True

    def test_validate_json_invalid_script(self, client):
        response = client.post("/api/v1/validate", json={"script": "const x = 1;"})
        assert response.status_code == 400
        assert len(response.json()["errors"]) == 3

    def test_validate_form(self, client):
        response = client.post("/api/v1/validate", data={"script": VALID_SCRIPT})
        assert response.status_code == 200
        assert response.json()["valid"] is True

    def test_malformed_json(self, client):
        response = client.post(
            "/api/v1/validate",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json() == {
            "valid": False,
            "errors": ["Invalid JSON format in request body"],
            "warnings": [],
            "message": "Request body contains malformed JSON",
        }

    def test_json_array_body(self, client):
        response = client.post("/api/v1/validate", json=[VALID_SCRIPT])
        assert response.status_code == 400
        assert response.json()["errors"] == [
            "Request must include a script field with valid JavaScript code"
        ]

    def test_unsupported_content_type(self, client):
        response = client.post(
            "/api/v1/validate",
            content=VALID_SCRIPT.encode(),
            headers={"content-type": "text/plain"},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid request format"

    def test_body_too_large(self, client):
        body = json.dumps({"script": "x" * 70000})
        response = client.post(
            "/api/v1/validate",
            content=body.encode(),
            headers={"content-type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["errors"] == ["Request body too large"]

    def test_chunked_body_too_large(self, client):
        def chunks():
            for _ in range(10):
                yield b"x" * 10000

        response = client.post(
            "/api/v1/validate",
            content=chunks(),
            headers={"content-type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["errors"] == ["Request body too large"]

    def test_form_field_over_limit(self, client):
        response = client.post("/api/v1/validate", data={"script": "x" * 52000})
        assert response.status_code == 400
        assert response.json() == {
            "valid": False,
            "errors": ["Form field exceeds 50KB limit"],
            "warnings": [],
            "message": "Field too large",
        }

    def test_form_with_file_part(self, client):
        response = client.post(
            "/api/v1/validate",
            data={"script": VALID_SCRIPT},
            files={"upload": ("test.js", b"export default function () {}")},
        )
        assert response.status_code == 400
        assert response.json()["errors"] == ["Request body parsing failed"]
        assert response.json()["message"] == "Invalid request format"

    def test_script_over_field_limit(self, client):
        response = client.post("/api/v1/validate", json={"script": "x" * 51201})
        assert response.status_code == 400
        body = response.json()
        assert body["errors"] == ["Script exceeds maximum size of 50KB"]
        assert body["message"] == "Validation failed"

    def test_rate_limit(self, client):
        with patch(
            "k6validator.server.rate_limiter", RateLimiter(calls=2, period=900)
        ):
            codes = [
                client.post("/api/v1/validate", json={"script": VALID_SCRIPT}).status_code
                for _ in range(3)
            ]
            response = client.post("/api/v1/validate", json={"script": VALID_SCRIPT})

        assert codes == [200, 200, 429]
        assert response.status_code == 429
        assert response.json() == {
            "error": "Too many requests, please try again later.",
            "retryAfter": 900,
        }

    def test_health(self, client):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["service"] == "k6-script-validator"
        assert "timestamp" in body

    def test_info(self, client):
        body = client.get("/").json()
        assert body["service"] == "k6-script-validator"
        assert body["version"] == "1.0.0"
        assert body["status"] == "running"


def _request(headers: dict[str, str], receive) -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/v1/validate",
        "query_string": b"",
        "headers": [(k.encode(), v.encode()) for k, v in headers.items()],
    }
    return Request(scope, receive)


class TestReadBody:
    """Test the bounded body reader."""

    @pytest.mark.asyncio
    async def test_declared_length_rejected_before_reading(self):
        async def receive():
            raise AssertionError("body must not be read")

        request = _request({"content-length": "1000000000"}, receive)
        with pytest.raises(RequestTooLargeError):
            await read_body(request, 61440)

    @pytest.mark.asyncio
    async def test_stream_stops_once_limit_passed(self):
        calls = 0

        async def receive():
            nonlocal calls
            calls += 1
            return {"type": "http.request", "body": b"x" * 1000, "more_body": True}

        request = _request({}, receive)
        with pytest.raises(RequestTooLargeError):
            await read_body(request, 5000)
        assert calls == 6

    @pytest.mark.asyncio
    async def test_chunks_within_limit_are_joined(self):
        messages = [
            {"type": "http.request", "body": b"ab", "more_body": True},
            {"type": "http.request", "body": b"cd", "more_body": False},
        ]

        async def receive():
            return messages.pop(0)

        assert await read_body(_request({}, receive), 4) == b"abcd"

    @pytest.mark.asyncio
    async def test_invalid_content_length(self):
        async def receive():
            raise AssertionError("body must not be read")

        with pytest.raises(MalformedRequestError):
            await read_body(_request({"content-length": "lots"}, receive), 100)
