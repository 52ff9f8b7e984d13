"""
FastAPI application for the Peppol QC Service.

Provides REST API endpoints for:
- Health check
- Invoice document analysis (PDF or spreadsheet upload)
- JSON invoice record validation
- Rule listing

An incomplete record is a normal outcome: the full analysis result is returned
with status 422 so that clients can show what is missing.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from .config import API_HOST, API_PORT, MAX_UPLOAD_SIZE_MB, get_logger, setup_logging
from .exceptions import DocumentReadError, UnsupportedDocumentError
from .pipeline import analyze_document, analyze_record
from .schemas import AnalysisResult, InvoiceRecord, RuleDescription
from .validator import describe_rules

logger = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and log startup/shutdown."""
    setup_logging()
    logger.info(f"Peppol QC Service API starting on {API_HOST}:{API_PORT}")
    yield
    logger.info("Peppol QC Service API shutting down")


# ============================================================================
# FastAPI App Configuration
# ============================================================================

app = FastAPI(
    title="Peppol QC Service API",
    description="""
    Peppol invoice quality control API.

    This API extracts structured data from supplier invoices, checks it
    against a subset of Peppol BIS Billing 3.0 rules, scores its conformity
    and renders a UBL invoice when the data is complete.

    ## Features

    - **Analyze documents**: Upload a PDF or Excel invoice
    - **Validate JSON**: Submit an invoice record directly
    - **Rules**: List the validation rules and their codes
    """,
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Configure CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Response Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


def _result_response(result: AnalysisResult) -> JSONResponse:
    """200 for a complete record, 422 with the same body when it is incomplete."""
    status_code = 200 if result.is_complete else 422
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


# ============================================================================
# API Endpoints
# ============================================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Returns the service status and version information.
    """
    from . import __version__
    return HealthResponse(status="ok", version=__version__)


@app.post(
    "/analyze",
    response_model=AnalysisResult,
    responses={422: {"model": AnalysisResult, "description": "Incomplete invoice record"}},
    tags=["Analysis"],
    summary="Analyze an invoice document",
)
async def analyze(
    file: UploadFile = File(..., description="Invoice document (.pdf, .xlsx or .xlsm)")
) -> JSONResponse:
    """
    Extract, validate and score an uploaded invoice document.

    **Processing Steps:**
    1. Pick the extractor from the content type (or the file extension)
    2. Extract and normalize the invoice fields
    3. Run the completeness gate and the Peppol rules
    4. Render UBL XML when the record is complete

    **Limitations:**
    - Maximum file size: MAX_UPLOAD_SIZE_MB
    - Supported formats: PDF, XLSX, XLSM
    """
    content = await file.read()

    if len(content) > MAX_UPLOAD_SIZE_MB * 1024 * 1024:
        raise HTTPException(
            status_code=413,
            detail=f"{file.filename}: File too large (max {MAX_UPLOAD_SIZE_MB}MB)",
        )

    try:
        result = await run_in_threadpool(
            analyze_document,
            content,
            mime_type=file.content_type,
            filename=file.filename,
            logger=logger,
        )
    except UnsupportedDocumentError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DocumentReadError as e:
        logger.error(f"Failed to read {file.filename}: {e.reason}")
        raise HTTPException(status_code=422, detail=str(e))

    return _result_response(result)


@app.post(
    "/validate-json",
    response_model=AnalysisResult,
    responses={422: {"model": AnalysisResult, "description": "Incomplete invoice record"}},
    tags=["Validation"],
    summary="Validate an invoice record",
)
async def validate_json(record: InvoiceRecord) -> JSONResponse:
    """
    Validate an invoice record provided as JSON.

    The record is normalized, checked and scored exactly like an extracted one.
    """
    logger.info(f"Received validation request for invoice {record.invoice_number!r}")
    result = analyze_record(record, logger)
    return _result_response(result)


@app.get("/rules", response_model=list[RuleDescription], tags=["System"])
async def list_rules() -> list[RuleDescription]:
    """
    List all validation rules applied by the service.

    Returns each rule with the finding codes it emits, its severity and
    a description.
    """
    return describe_rules()


# ============================================================================
# Error Handlers
# ============================================================================

@app.exception_handler(Exception)
async def generic_exception_handler(request, exc):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# ============================================================================
# Main Entry Point
# ============================================================================

def run_server():
    """Run the API server using uvicorn."""
    import uvicorn
    uvicorn.run(app, host=API_HOST, port=API_PORT)


if __name__ == "__main__":
    run_server()
