"""FastMCP server for AdvanceWeekly - weekly reflection generation jobs."""

import logging

from fastmcp import FastMCP
from fastmcp.server.auth.providers.github import GitHubProvider
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse

from advanceweekly.config import settings
from advanceweekly.tools import (
    job_enqueue,
    job_status,
    preferences_get,
    preferences_reset,
    preferences_update,
    reflection_generate_now,
    reflection_hourly_check,
)

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("advanceweekly.server")

# Suppress noisy MCP streamable_http ClosedResourceError logs (known issue with stateless mode)
logging.getLogger("mcp.server.streamable_http").setLevel(logging.CRITICAL)

# GitHub OAuth for MCP tools, when configured
auth = None
if settings.github_client_id and settings.github_client_secret:
    auth = GitHubProvider(
        client_id=settings.github_client_id,
        client_secret=settings.github_client_secret,
        base_url=f"http://localhost:{settings.advanceweekly_port}",
    )

mcp = FastMCP("advanceweekly", auth=auth, stateless_http=True, json_response=True)


# Health check endpoint
@mcp.custom_route("/health", methods=["GET"])
async def health_check(request: Request) -> PlainTextResponse:
    """Health check endpoint for container orchestration."""
    return PlainTextResponse("OK")


# Internal API endpoints for the cron tick and local automation (unauthenticated, localhost only)


def _check_localhost(request: Request) -> bool:
    """Verify request is from localhost."""
    client_host = request.client.host if request.client else None
    return client_host in ("127.0.0.1", "localhost", "::1")


def _forbidden() -> JSONResponse:
    return JSONResponse({"error": "Forbidden: localhost only"}, status_code=403)


async def _json_body(request: Request) -> dict:
    body = await request.body()
    return await request.json() if body else {}


@mcp.custom_route("/internal/hourly-check", methods=["POST"])
async def internal_hourly_check(request: Request) -> JSONResponse:
    """Scheduler tick, called hourly by an external cron."""
    if not _check_localhost(request):
        return _forbidden()

    try:
        data = await _json_body(request)
        return JSONResponse(await reflection_hourly_check(now=data.get("now")))
    except Exception as e:
        logger.exception("Hourly check failed")
        return JSONResponse({"error": str(e)}, status_code=500)


@mcp.custom_route("/internal/enqueue", methods=["POST"])
async def internal_enqueue(request: Request) -> JSONResponse:
    """Queue an operation."""
    if not _check_localhost(request):
        return _forbidden()

    try:
        data = await _json_body(request)
        result = await job_enqueue(
            user_id=data.get("user_id", ""),
            job_type=data.get("job_type", ""),
            input_data=data.get("input_data"),
        )
        status_code = 400 if result["status"] == "error" else 202
        return JSONResponse(result, status_code=status_code)
    except Exception as e:
        logger.exception("Enqueue failed")
        return JSONResponse({"error": str(e)}, status_code=500)


@mcp.custom_route("/internal/generate-now", methods=["POST"])
async def internal_generate_now(request: Request) -> JSONResponse:
    """Manual weekly reflection trigger."""
    if not _check_localhost(request):
        return _forbidden()

    try:
        data = await _json_body(request)
        result = await reflection_generate_now(
            user_id=data.get("user_id", ""),
            week_start=data.get("week_start"),
        )
        status_code = 400 if result["status"] == "error" else 202
        return JSONResponse(result, status_code=status_code)
    except Exception as e:
        logger.exception("Generate-now failed")
        return JSONResponse({"error": str(e)}, status_code=500)


@mcp.custom_route("/internal/status", methods=["POST"])
async def internal_status(request: Request) -> JSONResponse:
    """Poll an operation."""
    if not _check_localhost(request):
        return _forbidden()

    try:
        data = await _json_body(request)
        result = await job_status(
            operation_id=data.get("operation_id", ""),
            user_id=data.get("user_id"),
        )
        status_code = 404 if result["status"] == "not_found" else 200
        return JSONResponse(result, status_code=status_code)
    except Exception as e:
        logger.exception("Status query failed")
        return JSONResponse({"error": str(e)}, status_code=500)


@mcp.custom_route("/internal/preferences", methods=["POST"])
async def internal_preferences(request: Request) -> JSONResponse:
    """Read, update or reset preferences depending on ``action``."""
    if not _check_localhost(request):
        return _forbidden()

    try:
        data = await _json_body(request)
        user_id = data.get("user_id", "")
        action = data.get("action", "get")
        if action == "get":
            result = await preferences_get(user_id)
        elif action == "update":
            result = await preferences_update(user_id, data.get("changes") or {})
        elif action == "reset":
            result = await preferences_reset(user_id)
        else:
            return JSONResponse({"error": f"Unknown action: {action}"}, status_code=400)
        status_code = 400 if result.get("status") == "error" else 200
        return JSONResponse(result, status_code=status_code)
    except Exception as e:
        logger.exception("Preferences request failed")
        return JSONResponse({"error": str(e)}, status_code=500)


# Register MCP tools
@mcp.tool()
async def enqueue(
    user_id: str,
    job_type: str,
    input_data: dict | None = None,
) -> dict:
    """Queue an asynchronous job.

    Args:
        user_id: User identifier.
        job_type: "weekly_reflection_generation" (input: week_start, week_end,
            include_integrations) or "career_plan_generation" (input: role,
            level, company_ladder).
        input_data: Job-type specific payload.

    Returns:
        dict with operation_id and status "queued", or status "duplicate"
        when the same target already has an operation or result.
    """
    return await job_enqueue(user_id=user_id, job_type=job_type, input_data=input_data)


@mcp.tool()
async def generate_now(
    user_id: str,
    week_start: str | None = None,
) -> dict:
    """Generate a weekly reflection now.

    Args:
        user_id: User identifier.
        week_start: Optional ISO date in the target week. Defaults to the
            user's current local week.

    Returns:
        dict with operation_id and status, as for enqueue.
    """
    return await reflection_generate_now(user_id=user_id, week_start=week_start)


@mcp.tool()
async def status(
    operation_id: str,
    user_id: str | None = None,
) -> dict:
    """Get status, progress and result or error of an operation."""
    return await job_status(operation_id=operation_id, user_id=user_id)


@mcp.tool()
async def get_preferences(user_id: str) -> dict:
    """Get reflection scheduling preferences."""
    return await preferences_get(user_id)


@mcp.tool()
async def update_preferences(user_id: str, changes: dict) -> dict:
    """Update reflection scheduling preferences.

    Args:
        user_id: User identifier.
        changes: Any of auto_generate, preferred_day, preferred_hour,
            timezone, include_integrations, notify_on_generation.
    """
    return await preferences_update(user_id=user_id, changes=changes)


@mcp.tool()
async def reset_preferences(user_id: str) -> dict:
    """Restore default reflection scheduling preferences."""
    return await preferences_reset(user_id)


# ASGI app for uvicorn
app = mcp.http_app()

if __name__ == "__main__":
    mcp.run(
        transport="http",
        host=settings.advanceweekly_host,
        port=settings.advanceweekly_port,
        stateless_http=True,
    )
