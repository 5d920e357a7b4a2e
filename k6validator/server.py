import asyncio
import json
import sys
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Annotated, Any

from fastmcp import FastMCP
from pydantic import Field
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import Message

from . import constants
from .analysis.ast_engine import language_for_filename
from .analysis.resource import script_length
from .config import ServerConfig, ValidationConfig, load_server_config, load_validation_config
from .core.exceptions import (
    BodyParseError,
    FieldTooLargeError,
    InvalidInputError,
    MalformedRequestError,
    RateLimitExceededError,
    RequestTooLargeError,
)
from .core.logging_config import configure_validation_logging, get_validation_logger
from .core.rate_limiter import RateLimiter
from .responses import ValidationResponseBuilder, handle_mapped_error
from .validator import ScriptValidator

logger = get_validation_logger("server")

server_config: ServerConfig = load_server_config()
validation_config: ValidationConfig = load_validation_config()
validator = ScriptValidator(config=validation_config)
rate_limiter = RateLimiter(
    calls=server_config.rate_limit_max_requests,
    period=server_config.rate_limit_window_seconds,
)

# Initialize FastMCP server
mcp: FastMCP = FastMCP("k6validator-mcp")


# ---------------------------------------------------------------------------
# Request field validation
# ---------------------------------------------------------------------------


def validate_request_fields(
    payload: Mapping[str, Any],
    config: ValidationConfig = validation_config,
) -> tuple[str, str, dict[str, Any] | None]:
    """Check the fields of a validation request.

    Returns:
        ``(script, language, options)``

    Raises:
        InvalidInputError: With every field error found.
    """
    errors: list[str] = []

    script = payload.get("script")
    if script is None:
        errors.append("Script is required")
    elif not isinstance(script, str):
        errors.append("Script must be a string")
    elif script == "":
        errors.append("Script cannot be empty")
    elif script_length(script) > config.max_script_size:
        errors.append(f"Script exceeds maximum size of {config.max_script_size // 1024}KB")

    filename = payload.get("filename")
    if filename is not None:
        if not isinstance(filename, str) or not filename.lower().endswith(
            config.valid_extensions
        ):
            errors.append(
                "Script filename must end with one of: " + ", ".join(config.valid_extensions)
            )

    options = parse_options(payload.get("options"), errors)

    if errors:
        raise InvalidInputError(errors)

    return script, language_for_filename(filename), options


def parse_options(value: Any, errors: list[str]) -> dict[str, Any] | None:
    """Decode the optional ``options`` field, a JSON object or its JSON text."""
    if value is None:
        return None
    parsed = value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            errors.append("Options must be a valid JSON object")
            return None
    if not isinstance(parsed, dict):
        errors.append("Options must be a valid JSON object")
        return None
    return parsed


async def read_body(request: Request, body_limit: int) -> bytes:
    """Read the request body, stopping as soon as it passes *body_limit* bytes.

    Raises:
        RequestTooLargeError: Declared or received length exceeds the limit.
        MalformedRequestError: Content-Length header is not a number.
    """
    declared = request.headers.get("content-length")
    if declared is not None:
        try:
            declared_length = int(declared)
        except ValueError as e:
            raise MalformedRequestError("Invalid Content-Length header") from e
        if declared_length > body_limit:
            raise RequestTooLargeError("Request body too large")

    chunks: list[bytes] = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > body_limit:
            raise RequestTooLargeError("Request body too large")
        chunks.append(chunk)
    return b"".join(chunks)


async def read_payload(
    request: Request,
    body_limit: int,
    field_limit: int | None = None,
) -> dict[str, Any]:
    """Read a JSON or form body into a plain dict.

    Raises:
        RequestTooLargeError: Body exceeds *body_limit* bytes.
        FieldTooLargeError: A form field exceeds *field_limit* code units.
        BodyParseError: Form body could not be parsed.
        json.JSONDecodeError: JSON body does not decode.
        MalformedRequestError: Body is neither a JSON object nor a form.
    """
    content_type = request.headers.get("content-type", "")
    body = await read_body(request, body_limit)

    if content_type.startswith("application/json"):
        payload = json.loads(body or b"null")
        if not isinstance(payload, dict):
            raise MalformedRequestError("Request body must be a JSON object")
        return payload

    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        # The stream is consumed; the form parser reads the buffered body instead
        async def replay() -> Message:
            return {"type": "http.request", "body": body, "more_body": False}

        buffered = Request(request.scope, receive=replay)
        try:
            form = await buffered.form(max_files=0, max_fields=server_config.max_form_fields)
        except (HTTPException, MultiPartException) as e:
            raise BodyParseError(f"Unreadable form body: {e}") from e

        limit = field_limit if field_limit is not None else validation_config.max_script_size
        # max_files=0 makes the parser reject file parts, so every value is a str
        fields: dict[str, Any] = dict(form.items())
        for key, value in fields.items():
            if script_length(value) > limit:
                raise FieldTooLargeError(f"Form field {key!r} exceeds {limit} code units")
        return fields

    raise MalformedRequestError(f"Unsupported content type: {content_type or 'none'}")


def run_validation(payload: Mapping[str, Any]) -> tuple[int, dict[str, Any]]:
    """Validate a decoded request payload.

    Returns:
        ``(status_code, response_dict)``: 200 for a valid script, 400 for an
        invalid script or request, 500 for an unexpected failure.
    """
    try:
        script, language, options = validate_request_fields(payload)
    except InvalidInputError as e:
        return 400, ValidationResponseBuilder.error(e.errors, "Validation failed").to_dict()

    if options:
        logger.debug("Request options received", extra={"event": "options_parsed"})

    try:
        result = validator.validate(script, language)
    except Exception:
        logger.exception("Validation error", extra={"event": "server_error"})
        return 500, ValidationResponseBuilder.server_error().to_dict()

    return (200 if result.valid else 400), result.to_dict()


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# HTTP routes
# ---------------------------------------------------------------------------


@mcp.custom_route("/api/v1/validate", methods=["POST"])
async def validate_route(request: Request) -> JSONResponse:
    """Validate a k6 script posted as JSON or form fields."""
    started = time.perf_counter()
    status_code = 500
    try:
        rate_limiter.check(_client_key(request))
        payload = await read_payload(
            request,
            server_config.body_limit(validation_config),
            field_limit=validation_config.max_script_size,
        )
        status_code, body = await run_in_threadpool(run_validation, payload)
        return JSONResponse(body, status_code=status_code)
    except RateLimitExceededError as e:
        status_code = e.status_code
        return JSONResponse(
            {
                "error": str(e),
                "retryAfter": int(server_config.rate_limit_window_seconds),
            },
            status_code=status_code,
        )
    except MalformedRequestError:
        status_code = 400
        return JSONResponse(
            ValidationResponseBuilder.invalid_request().to_dict(), status_code=status_code
        )
    except Exception as e:
        mapped = handle_mapped_error(e)
        if mapped is not None:
            status_code, response = mapped
            return JSONResponse(response.to_dict(), status_code=status_code)
        logger.exception("Error occurred", extra={"event": "server_error"})
        status_code = 500
        return JSONResponse(
            ValidationResponseBuilder.server_error().to_dict(), status_code=status_code
        )
    finally:
        logger.info(
            f"{request.method} {request.url.path} {status_code}",
            extra={
                "event": "http_request",
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "client": _client_key(request),
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )


@mcp.custom_route("/api/v1/health", methods=["GET"])
async def health_route(request: Request) -> JSONResponse:
    return JSONResponse(
        {
            "status": "healthy",
            "service": constants.SERVICE_NAME,
            "timestamp": _timestamp(),
        }
    )


@mcp.custom_route("/", methods=["GET"])
async def info_route(request: Request) -> JSONResponse:
    return JSONResponse(
        {
            "service": constants.SERVICE_NAME,
            "version": constants.SERVICE_VERSION,
            "status": "running",
            "timestamp": _timestamp(),
        }
    )


# ---------------------------------------------------------------------------
# MCP tools
# ---------------------------------------------------------------------------


@mcp.tool
async def validate_k6_script(
    script: Annotated[
        str,
        Field(description="Full source of the k6 load-test script to validate"),
    ],
    filename: Annotated[
        str | None,
        Field(
            description="Optional script filename; '.ts' selects the TypeScript parser",
            default=None,
        ),
    ] = None,
    options: Annotated[
        dict[str, Any] | str | None,
        Field(
            description="Optional k6 options as a JSON object or JSON string",
            default=None,
        ),
    ] = None,
) -> dict[str, Any]:
    """Statically validate a k6 load-test script before it is executed.

    The script is never run. It is parsed and scanned for:
    - Imports outside the k6 namespace (Node.js built-ins, npm packages)
    - A missing protocol module import (k6/http, k6/ws, k6/net/grpc)
    - A missing exported test function
    - Dynamic code execution, XSS, SQL injection and obfuscation patterns
    - Oversized scripts and excessive virtual user counts

    USE THIS TOOL WHEN:
    - You are about to submit a k6 script for execution
    - You want to know why a script was rejected

    Returns a dict with ``valid``, ``errors``, ``warnings`` and ``message``.
    """
    payload: dict[str, Any] = {"script": script}
    if filename is not None:
        payload["filename"] = filename
    if options is not None:
        payload["options"] = options
    _status, body = await run_in_threadpool(run_validation, payload)
    return body


def main() -> None:
    """Run the validator service with HTTP streaming transport."""
    configure_validation_logging()

    print(f"k6 Script Validator v{constants.SERVICE_VERSION} (HTTP Streaming)", file=sys.stderr)
    print("=" * 50, file=sys.stderr)
    print(
        f"Limits: {validation_config.max_script_size} bytes per script, "
        f"{validation_config.max_vus} VUs",
        file=sys.stderr,
    )
    print(f"CORS origins: {', '.join(server_config.cors_origins)}", file=sys.stderr)
    print("=" * 50, file=sys.stderr)
    print(f"Starting HTTP server on {server_config.host}:{server_config.port}...", file=sys.stderr)
    print(
        f"Validation endpoint: http://localhost:{server_config.port}/api/v1/validate",
        file=sys.stderr,
    )

    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=server_config.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )
    ]

    try:
        asyncio.run(
            mcp.run_http_async(
                transport="streamable-http",
                host=server_config.host,
                port=server_config.port,
                middleware=middleware,
            )
        )
    except KeyboardInterrupt:
        print("\nShutting down...", file=sys.stderr)
        sys.exit(0)
    except Exception as e:
        print(f"Server error: {e}", file=sys.stderr)
        import traceback

        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
