"""
AWS Lambda handler for the Postback Commission API.

This is the production entry point for AWS Lambda deployments.
For local development, use main.py (Flask app) instead.
"""

import json
import logging
import re
from urllib.parse import unquote, urlencode

from postback_engine import PostbackProcessor
from postback_engine.config import Settings, create_store
from postback_engine.errors import InternalError, PostbackError

settings = Settings.from_env()

# Configure logging
logger = logging.getLogger()
logger.setLevel(getattr(logging, settings.log_level, logging.INFO))

# Environment (dev, staging, prod)
ENVIRONMENT = settings.environment

# Initialize store and processor (reused across warm invocations)
store = create_store(settings)
processor = PostbackProcessor(store, postback_log=store)

# CORS headers for API Gateway
CORS_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
    "Access-Control-Allow-Methods": "GET,OPTIONS",
}

WEBHOOK_PATH = re.compile(r"^/(?:webhook|api/postback)/(?P<house>[^/]+)/(?P<event>[^/]+)/?$")


def lambda_handler(event, context):
    """
    Main Lambda entry point.

    Handles API Gateway events for:
    - GET /health
    - GET /api
    - GET /webhook/{house}/{event}
    - OPTIONS (CORS preflight)
    """
    # Handle CORS preflight
    http_method = event.get("httpMethod") or event.get("requestContext", {}).get("http", {}).get("method", "")
    if http_method == "OPTIONS":
        return {"statusCode": 200, "headers": CORS_HEADERS, "body": ""}

    # Get path (supports both REST API and HTTP API formats)
    path = event.get("path") or event.get("rawPath", "")

    # Route to appropriate handler
    if path == "/health" and http_method == "GET":
        return handle_health()
    elif path == "/api" and http_method == "GET":
        return handle_api_info()

    match = WEBHOOK_PATH.match(path)
    if match and http_method == "GET":
        # HTTP API v2 delivers rawPath percent-encoded
        return handle_postback(event, unquote(match.group("house")), unquote(match.group("event")))

    return _response(404, {"error": "Not found", "path": path})


def _response(status_code, body):
    return {"statusCode": status_code, "headers": CORS_HEADERS, "body": json.dumps(body)}


def handle_health():
    """Health check endpoint."""
    return _response(200, {"status": "healthy", "service": "postback", "environment": ENVIRONMENT})


def handle_api_info():
    """API information endpoint."""
    return _response(
        200,
        {
            "status": "ok",
            "message": "Postback Commission API",
            "version": "1.0",
            "environment": ENVIRONMENT,
            "runtime": "AWS Lambda",
            "endpoints": {"webhook": "/webhook/{house}/{event} [GET]", "health": "/health [GET]"},
        },
    )


def handle_postback(event, house_identifier, event_name):
    """Resolve a partner postback and compute the commission."""
    params = event.get("queryStringParameters") or {}
    request_context = event.get("requestContext", {})
    ip = request_context.get("identity", {}).get("sourceIp") or request_context.get("http", {}).get("sourceIp")
    path = event.get("path") or event.get("rawPath", "")
    raw = f"{path}?{urlencode(params)}" if params else path

    logger.info(f"Postback received: {raw}")

    try:
        result = processor.process_from_params(house_identifier, event_name, params, ip=ip, raw=raw)
        return _response(200, result)

    except PostbackError as e:
        return _response(e.status_code, e.to_dict())

    except Exception as e:
        # Unexpected errors - log details but return generic message to avoid information disclosure
        logger.error(f"Unexpected processing error: {str(e)}", exc_info=True)
        return _response(500, {"error": InternalError.error})
