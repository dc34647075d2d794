# jsoncomms/main.py

"""
Reference FastAPI service wired with the jsoncomms helpers.

This file defines:
- JSON logging and request/correlation-ID middlewares
- A global handler that turns body decoding failures into error envelopes
- A liveness probe
- The broker endpoint, which decodes its body with the strict JSON contract

Run with: uvicorn jsoncomms.main:app
"""

import logging

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import Depends, FastAPI, Request

from jsoncomms.config import settings
from jsoncomms.dependencies import get_tools, json_body
from jsoncomms.exceptions import RequestDecodeError
from jsoncomms.logging_config import configure_logging
from jsoncomms.middlewares import AccessLogMiddleware
from jsoncomms.schemas import BrokerRequestPayload, ResponseEnvelope
from jsoncomms.tools import JSONTools

logger = logging.getLogger("jsoncomms.broker")

# ───────────────────────────────────────────────────────────────────────────────
# Application Startup
# ───────────────────────────────────────────────────────────────────────────────
configure_logging(settings.log_level)

app = FastAPI(
    title="jsoncomms broker",
    version="0.1.0",
    description="Reference service for the strict JSON request/response helpers.",
)

# ───────────────────────────────────────────────────────────────────────────────
# Global Exception Handling
# ───────────────────────────────────────────────────────────────────────────────
@app.exception_handler(RequestDecodeError)
async def handle_decode_error(request: Request, exc: RequestDecodeError):
    """
    Answer with `{"error": true, "message": ...}` and the error's status code.
    """
    return get_tools().error_json(exc, exc.status_code)

# ───────────────────────────────────────────────────────────────────────────────
# Middleware Stack
# ───────────────────────────────────────────────────────────────────────────────
app.add_middleware(AccessLogMiddleware)
app.add_middleware(CorrelationIdMiddleware)

# ───────────────────────────────────────────────────────────────────────────────
# Health Probes
# ───────────────────────────────────────────────────────────────────────────────
@app.get("/healthz", tags=["health"])
async def healthz(tools: JSONTools = Depends(get_tools)):
    return tools.write_json(200, ResponseEnvelope(message="ok"))

# ───────────────────────────────────────────────────────────────────────────────
# /v1/broker
# ───────────────────────────────────────────────────────────────────────────────
@app.post("/v1/broker")
async def broker(
    payload: BrokerRequestPayload = Depends(json_body(BrokerRequestPayload)),
    tools: JSONTools = Depends(get_tools),
):
    """
    Single entry point for front-end actions.

    - "auth": requires an `auth` object, answers 202 with the email
    - anything else: 400 error envelope
    """
    if payload.action == "auth":
        if payload.auth is None or not payload.auth.email:
            return tools.error_json(ValueError("auth action requires an email"))
        logger.info("broker action accepted", extra={"action": payload.action})
        return tools.write_json(
            202,
            ResponseEnvelope(message="authentication request accepted", data={"email": payload.auth.email}),
        )

    return tools.error_json(ValueError(f"unknown action {payload.action!r}"))
