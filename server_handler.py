"""
Local HTTP server for the invoice extraction service.

This module exposes the Lambda handler over HTTP with FastAPI so the endpoint
can run outside AWS (local development, containers, EC2).
"""

import base64
import os
import sys

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request, Response
from starlette.concurrency import run_in_threadpool

from invoice_vision.handlers.lambda_handler import handler
from invoice_vision.utils.logger import setup_logger

ROUTE = "/api/extract-invoice"

app = FastAPI(title="Invoice Vision Service")


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


@app.api_route(ROUTE, methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"])
async def extract_invoice(request: Request):
    """Translate the HTTP request into a proxy event and run the Lambda handler."""
    raw_body = await request.body()
    event = {
        "httpMethod": request.method,
        "path": request.url.path,
        "headers": dict(request.headers),
        "queryStringParameters": dict(request.query_params) or None,
        "body": raw_body.decode("utf-8", errors="replace") if raw_body else None,
        "isBase64Encoded": False,
    }

    result = await run_in_threadpool(handler, event, None)

    body = result.get("body") or ""
    content = base64.b64decode(body) if result.get("isBase64Encoded") else body.encode("utf-8")
    return Response(
        content=content,
        status_code=result["statusCode"],
        headers=result.get("headers") or {},
    )


def run_server():
    """Entry point for running the local server."""
    load_dotenv()
    logger = setup_logger()
    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))
    logger.info(f"Starting invoice extraction server on {host}:{port}")
    try:
        uvicorn.run(app, host=host, port=port)
    except KeyboardInterrupt:
        print("\nReceived keyboard interrupt, shutting down...")
        sys.exit(0)


if __name__ == "__main__":
    run_server()
