"""
AWS Lambda handler for the invoice extraction HTTP endpoint.

This module handles API Gateway / function URL proxy events carrying one or
more base64-encoded invoice documents and returns the extracted invoice data.
"""

import base64
import binascii
import json
from typing import Any, Dict, List, Optional

from ..core.config import ExtractionConfig, read_cors_enabled
from ..core.errors import ClientInputError, InvoiceExtractionError, MethodNotAllowedError
from ..core.export import CSV_CONTENT_TYPE, XLSX_CONTENT_TYPE, to_csv_bytes, to_xlsx_bytes
from ..core.models import UploadedFile
from ..core.processor import InvoiceExtractor
from ..utils.logger import SERVICE_NAME, setup_logger

EXPORT_FORMATS = ("json", "csv", "xlsx")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    AWS Lambda handler for invoice extraction requests.

    Args:
        event: API Gateway proxy event (or a direct invocation payload)
        context: Lambda context object

    Returns:
        Proxy integration response with statusCode, headers and body
    """
    # Set up logger (file logging disabled for Lambda)
    logger = setup_logger(SERVICE_NAME, enable_file_logging=False)
    cors_enabled = read_cors_enabled()

    try:
        method = get_http_method(event)
        if method == "OPTIONS" and cors_enabled:
            return build_response(200, None, cors_enabled=cors_enabled)
        if method != "POST":
            raise MethodNotAllowedError(method)

        config = ExtractionConfig.from_env()

        # Fail fast before touching the body or the network
        config.require_api_key()

        body = parse_body(event)
        export_format = get_export_format(event, body)

        if "files" in body:
            return handle_batch(body["files"], config, export_format, logger)

        uploaded = UploadedFile.from_payload(body)
        logger.info(f"Received single-file request ({uploaded.mime_type})")

        with InvoiceExtractor(config, logger=logger) as extractor:
            invoice = extractor.extract(uploaded)

        if export_format != "json":
            return build_export_response([invoice], [uploaded.name], export_format, config, cors_enabled)
        return build_response(200, invoice, cors_enabled=cors_enabled)

    except InvoiceExtractionError as e:
        if e.status_code >= 500:
            logger.error(f"Request failed: {e.message}" + (f" ({e.details})" if e.details else ""))
        else:
            logger.warning(f"Rejected request: {e.message}" + (f" ({e.details})" if e.details else ""))
        return build_response(e.status_code, e.to_dict(), cors_enabled=cors_enabled)
    except Exception as e:
        logger.error(f"Unexpected error in Lambda handler: {str(e)}", exc_info=True)
        return build_response(
            500,
            {"error": "Failed to process invoice.", "details": str(e)},
            cors_enabled=cors_enabled,
        )


def handle_batch(files: Any, config: ExtractionConfig, export_format: str, logger) -> Dict[str, Any]:
    if not isinstance(files, list) or not files:
        raise ClientInputError("files must be a non-empty array.")
    if len(files) > config.batch_max_files:
        raise ClientInputError(
            "Too many files in request.",
            f"At most {config.batch_max_files} files are accepted, got {len(files)}",
        )

    logger.info(f"Received batch request with {len(files)} file(s)")

    with InvoiceExtractor(config, logger=logger) as extractor:
        result = extractor.extract_batch(files)

    if result.all_failed:
        return build_response(
            500,
            {"error": "All files failed to process.", "invoices": result.invoices},
            cors_enabled=config.cors_enabled,
        )

    if export_format != "json":
        records, names = result.records(
            [entry.get("fileName") if isinstance(entry, dict) else None for entry in files]
        )
        return build_export_response(records, names, export_format, config, config.cors_enabled)

    return build_response(200, {"invoices": result.invoices}, cors_enabled=config.cors_enabled)


def get_http_method(event: Dict[str, Any]) -> str:
    """Read the HTTP method from REST API, HTTP API or function URL events."""
    method = event.get("httpMethod")
    if not method:
        method = (event.get("requestContext") or {}).get("http", {}).get("method")
    if not method and "body" not in event:
        # Direct invocation with the request body as the event
        return "POST"
    return (method or "").upper()


def parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Decode the request body into a dict.

    Raises:
        ClientInputError: If the body is not a JSON object
    """
    if "body" not in event and not event.get("httpMethod") and not event.get("requestContext"):
        body: Any = event
    else:
        body = event.get("body")

    if body is None or body == "":
        return {}

    if isinstance(body, (str, bytes)):
        if event.get("isBase64Encoded"):
            try:
                body = base64.b64decode(body)
            except (binascii.Error, ValueError) as e:
                raise ClientInputError("Request body is not valid base64.", str(e))
        try:
            body = json.loads(body)
        except ValueError as e:
            raise ClientInputError("Request body is not valid JSON.", str(e))

    if not isinstance(body, dict):
        raise ClientInputError("Request body must be a JSON object.")
    return body


def get_export_format(event: Dict[str, Any], body: Dict[str, Any]) -> str:
    query = event.get("queryStringParameters") or {}
    export_format = (query.get("format") or body.get("format") or "json")
    if not isinstance(export_format, str) or export_format.lower() not in EXPORT_FORMATS:
        raise ClientInputError(
            "Unsupported export format.",
            f"format must be one of {', '.join(EXPORT_FORMATS)}",
        )
    return export_format.lower()


def build_export_response(records: List[Any], names: List[Optional[str]], export_format: str,
                          config: ExtractionConfig, cors_enabled: bool) -> Dict[str, Any]:
    if export_format == "csv":
        return build_response(
            200,
            to_csv_bytes(records, config.schema_variant, names).decode("utf-8"),
            content_type=CSV_CONTENT_TYPE,
            cors_enabled=cors_enabled,
        )

    data = to_xlsx_bytes(records, config.schema_variant, names)
    response = build_response(
        200,
        base64.b64encode(data).decode(),
        content_type=XLSX_CONTENT_TYPE,
        cors_enabled=cors_enabled,
    )
    response["headers"]["Content-Disposition"] = 'attachment; filename="invoices.xlsx"'
    response["isBase64Encoded"] = True
    return response


def build_response(status_code: int, body: Any, content_type: str = "application/json",
                   cors_enabled: bool = True) -> Dict[str, Any]:
    """Build a proxy integration response. Non-string bodies are serialized as JSON."""
    headers: Dict[str, str] = {}
    if cors_enabled:
        headers.update(CORS_HEADERS)

    if body is None:
        text = ""
    elif isinstance(body, str) and content_type != "application/json":
        text = body
    else:
        text = json.dumps(body, ensure_ascii=False)

    if body is not None:
        headers["Content-Type"] = content_type

    return {
        "statusCode": status_code,
        "headers": headers,
        "body": text,
        "isBase64Encoded": False,
    }
