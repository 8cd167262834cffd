"""FastAPI wrapper around the document auto-fill resolution engine.

The service is stateless: callers send the extracted label/value pairs, the
current form values and the dropdown options they render, and get back the
writes that are safe to apply plus the keys to highlight. ``/autofill/analyze``
additionally forwards an uploaded document to the extraction service first.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Ensure the repo root (engine, registry, autofill) is importable when deployed.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.append(str(ROOT_DIR))

from autofill.types import FormType  # noqa: E402
from backend.extraction_client import ExtractionServiceError, data_fields, request_form_fields  # noqa: E402
from backend.schemas import (  # noqa: E402
    AutoFillRequest,
    AutoFillResponse,
    FieldInfo,
    FormTypeInfo,
    FormTypeRequest,
    FormTypeResponse,
)
from engine import AutoFillResult, autofill_engine  # noqa: E402

logger = logging.getLogger("autofill-api")
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))


def get_settings() -> Dict[str, Any]:
    allowed_raw = os.getenv("ALLOWED_ORIGINS", "*")
    allowed_list = [o.strip() for o in allowed_raw.split(",") if o.strip()]
    return {
        "extraction_endpoint": os.getenv("EXTRACTION_ENDPOINT"),
        "http_timeout": int(os.getenv("EXTRACTION_HTTP_TIMEOUT", "60")),
        "overwrite": os.getenv("AUTOFILL_OVERWRITE", "false").lower() == "true",
        "allowed_origins": allowed_list,
    }


settings = get_settings()
app = FastAPI(title="Document Auto-fill API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings["allowed_origins"] or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _to_response(result: AutoFillResult) -> AutoFillResponse:
    return AutoFillResponse(
        form_type=result.form_type.value if result.form_type else None,
        writes=dict(result.writes),
        highlighted=list(result.writes.keys()),
        populated_count=result.populated_count,
        message=result.message,
    )


def _resolve_type(form_type: Optional[str], category: Optional[str], subcategory: Optional[str]) -> Optional[FormType]:
    if form_type:
        parsed = FormType.parse(form_type)
        if parsed is None or autofill_engine.registry.get(parsed) is None:
            raise HTTPException(status_code=422, detail=f"Unknown form type: {form_type}")
        return parsed
    return autofill_engine.resolve_form_type(category, subcategory)


@app.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok", "form_types": len(autofill_engine.registry.form_types)}


@app.get("/form-types", response_model=List[FormTypeInfo])
def list_form_types() -> List[FormTypeInfo]:
    return [
        FormTypeInfo(
            form_type=definition.form_type.value,
            label=definition.label,
            fields=[FieldInfo(key=spec.key, kind=spec.kind.value) for spec in definition.fields],
        )
        for definition in autofill_engine.registry.definitions()
    ]


@app.post("/form-type", response_model=FormTypeResponse)
def resolve_form_type(payload: FormTypeRequest) -> FormTypeResponse:
    form_type = autofill_engine.resolve_form_type(payload.category, payload.subcategory)
    return FormTypeResponse(form_type=form_type.value if form_type else None)


@app.post("/autofill/resolve", response_model=AutoFillResponse)
def resolve_autofill(payload: AutoFillRequest) -> AutoFillResponse:
    form_type = _resolve_type(payload.form_type, payload.category, payload.subcategory)
    if form_type is None:
        return AutoFillResponse()

    overwrite = payload.overwrite if payload.overwrite is not None else get_settings()["overwrite"]
    options = {key: [opt.model_dump() for opt in opts] for key, opts in payload.dropdown_options.items()}
    result = autofill_engine.plan(
        form_type,
        payload.data_fields,
        payload.current_values,
        dropdown_options=options,
        overwrite=overwrite,
    )
    logger.info("Resolved %s: %d field(s) to write", form_type.value, result.populated_count)
    return _to_response(result)


@app.post("/autofill/analyze", response_model=AutoFillResponse)
async def analyze_document(
    file: UploadFile = File(...),
    category: str = Form(...),
    subCategory: Optional[str] = Form(None),
):
    current = get_settings()
    endpoint = current["extraction_endpoint"]
    if not endpoint:
        return JSONResponse(status_code=503, content={"detail": "Document extraction service is not configured"})

    content = await file.read()
    if not content:
        return JSONResponse(status_code=400, content={"detail": "Empty file uploaded"})

    logger.info("Analyzing upload file=%s type=%s size=%d", file.filename, file.content_type, len(content))
    try:
        body = await run_in_threadpool(
            request_form_fields,
            endpoint,
            file.filename or "upload",
            content,
            category=category,
            subcategory=subCategory,
            content_type=file.content_type,
            timeout=current["http_timeout"],
        )
    except ExtractionServiceError as exc:
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    form_type = autofill_engine.resolve_form_type(
        body.get("category") or category,
        body.get("subCategory") or subCategory,
    )
    if form_type is None:
        return AutoFillResponse()
    result = autofill_engine.plan(form_type, data_fields(body), {}, overwrite=True)
    return _to_response(result)


@app.exception_handler(Exception)
async def unhandled_error_handler(_, exc: Exception):  # type: ignore[override]
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("backend.app:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")), reload=True)
