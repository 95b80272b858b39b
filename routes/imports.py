"""
Catalog import API routes.

Uploads run synchronously: the response carries the finished session.
Sessions stay in memory and can be fetched again by id.
"""

from fastapi import APIRouter, UploadFile, File
from fastapi.responses import JSONResponse, PlainTextResponse
import structlog

from config import settings
from exceptions import AppError, FileTooLargeError
from models.import_session import ImportSession, ImportSummaryResponse
from services.import_progress_service import get_import_session_store
from services.product_import_service import ProductImportService
from services.serial_import_service import SerialImportService
from services.template_service import TemplateService, template_filename
from utils.text_utils import decode_upload

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


def summarize(session: ImportSession):
    """Summary body; aborted sessions are answered with 422."""
    summary = ImportSummaryResponse(
        session=session,
        error_preview=session.error_preview(settings.import_error_preview_limit)
    )
    if session.aborted:
        return JSONResponse(
            status_code=422,
            content=summary.model_dump(mode="json")
        )
    return summary


async def read_upload(file: UploadFile) -> str:
    """
    Raises:
        FileTooLargeError: Upload above settings.import_max_file_bytes
    """
    content = await file.read()
    if len(content) > settings.import_max_file_bytes:
        raise FileTooLargeError(len(content), settings.import_max_file_bytes)
    return decode_upload(content, settings.import_file_encoding)


# ===================
# IMPORTS
# ===================

@router.post("/products", response_model=ImportSummaryResponse)
async def import_products(file: UploadFile = File(...)):
    """
    Import products from a CSV file.

    Row errors do not fail the request: they are listed on the session.

    Raises:
        422: Structural error (empty file, unknown stock column, missing headers)
    """
    logger.info(
        "product_import_upload",
        filename=file.filename,
        content_type=file.content_type
    )

    try:
        text = await read_upload(file)
        service = ProductImportService(session_store=get_import_session_store())
        session = service.import_csv(text)
        return summarize(session)

    except Exception as e:
        return handle_error(e)


@router.post("/products/{parent_id}/serials", response_model=ImportSummaryResponse)
async def import_serials(parent_id: str, file: UploadFile = File(...)):
    """
    Import serial-numbered children under a parent product.

    Raises:
        404: Parent product not found
        422: Parent not serial-hosting, or invalid file structure
    """
    logger.info(
        "serial_import_upload",
        parent_id=parent_id,
        filename=file.filename
    )

    try:
        text = await read_upload(file)
        service = SerialImportService(session_store=get_import_session_store())
        session = service.import_csv(parent_id, text)
        return summarize(session)

    except Exception as e:
        return handle_error(e)


@router.get("/sessions/{session_id}", response_model=ImportSummaryResponse)
async def get_import_session(session_id: str):
    """
    Get an import session by ID.

    Raises:
        404: Unknown session
    """
    try:
        session = get_import_session_store().get(session_id)
        return ImportSummaryResponse(
            session=session,
            error_preview=session.error_preview(settings.import_error_preview_limit)
        )

    except Exception as e:
        return handle_error(e)


# ===================
# TEMPLATES
# ===================

@router.get("/templates/products")
async def product_template():
    """Download the product import template."""
    try:
        text = TemplateService().product_template()
        return PlainTextResponse(
            text,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{template_filename("products")}"'}
        )

    except Exception as e:
        return handle_error(e)


@router.get("/templates/serials/{parent_id}")
async def serial_template(parent_id: str):
    """
    Download the serial import template for a parent product.

    Raises:
        404: Parent product not found
    """
    try:
        text, filename = TemplateService().serial_template(parent_id)
        return PlainTextResponse(
            text,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'}
        )

    except Exception as e:
        return handle_error(e)
