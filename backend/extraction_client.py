"""Client for the external document-understanding service.

The service is opaque: we post the uploaded file together with the
category/subcategory the user picked and get back a JSON body whose
``dataFields`` entry is a flat label -> value mapping.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_ERROR = "Document field extraction failed."


class ExtractionServiceError(Exception):
    """Raised when the extraction service cannot produce a usable response."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _error_message(resp: requests.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return resp.text or DEFAULT_ERROR
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return str(payload.get("message") or error or DEFAULT_ERROR)
    return DEFAULT_ERROR


def request_form_fields(
    endpoint: str,
    filename: str,
    content: bytes,
    *,
    category: str,
    subcategory: Optional[str] = None,
    content_type: Optional[str] = None,
    timeout: int = 60,
) -> Dict[str, Any]:
    """Send a document for targeted field extraction and return the JSON body.

    Expected response JSON:
    {
      "success": true,
      "category": "...",
      "subCategory": "...",
      "dataFields": {"Title": "...", ...}
    }
    """
    url = f"{endpoint.rstrip('/')}/api/targeted"
    data = {"category": category}
    if subcategory:
        data["subCategory"] = subcategory
    files = {"file": (filename, content, content_type or "application/octet-stream")}

    try:
        resp = requests.post(url, data=data, files=files, timeout=timeout)
    except requests.RequestException as exc:
        logger.warning("Extraction service unreachable at %s: %s", url, exc)
        raise ExtractionServiceError(f"Extraction service unreachable: {exc}") from exc

    if resp.status_code >= 400:
        message = _error_message(resp)
        logger.error("Extraction service error %d: %s", resp.status_code, message)
        raise ExtractionServiceError(message, status_code=resp.status_code)

    try:
        body = resp.json()
    except ValueError as exc:
        logger.error("Extraction service returned non-JSON response: %s", resp.text[:500])
        raise ExtractionServiceError("Extraction service returned invalid JSON") from exc
    if not isinstance(body, dict):
        raise ExtractionServiceError("Extraction service returned an unexpected payload")
    return body


def data_fields(body: Dict[str, Any]) -> Dict[str, Any]:
    """Pull the label -> value mapping out of a service response."""
    fields = body.get("dataFields")
    if not isinstance(fields, dict):
        classification = body.get("classification")
        if isinstance(classification, dict):
            fields = classification.get("dataFields")
    return dict(fields) if isinstance(fields, dict) else {}
