import io
import os
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, File, Request, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from record_store import RecordStore, SqlAlchemyRecordStore, create_db_engine, create_session_factory, init_db
from settings import settings
from sheet_config import SchemaRegistry, build_registry
from workbook_io import EXPORT_FILENAME, XLSX_MEDIA_TYPE
from workbook_process import (
    ExportRequest,
    ImportRequest,
    ImportResponse,
    UploadResponse,
    WorkbookProcessor,
)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Create logs directory if it doesn't exist
os.makedirs(settings.log_dir, exist_ok=True)

# Configure logging
logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
logger = logging.getLogger(__name__)

# Write every module's logs to a daily file as well
log_file_path = os.path.join(settings.log_dir, f"app_{datetime.now().strftime('%Y%m%d')}.log")
file_handler = logging.FileHandler(log_file_path)
file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
logging.getLogger().addHandler(file_handler)

schema_registry = build_registry(settings.schema_config_path)
engine = create_db_engine(settings.database_url)
SessionLocal = create_session_factory(engine)


def get_schema_registry() -> SchemaRegistry:
    return schema_registry


def get_record_store() -> RecordStore:
    return SqlAlchemyRecordStore(SessionLocal)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.db_auto_create:
        init_db(engine)
        logger.info("Database tables ensured")
    yield


# Initialize FastAPI app with metadata
app = FastAPI(
    title="Sheet Import API",
    description="API for validating, importing and exporting Excel workbooks",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.resolved_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Rejected malformed request to {request.url.path}", extra={"errors": exc.errors()})
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid request body."})


# API Endpoints
@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok"}


@app.post("/api/upload", response_model=UploadResponse, tags=["Workbook Processing"])
async def upload_workbook(
    file: Optional[UploadFile] = File(None),
    registry: SchemaRegistry = Depends(get_schema_registry),
):
    """
    Validate every sheet of an uploaded .xlsx file.

    Returns:
        dict: JSON response with:
            - sheetNames: Sheets in workbook order
            - sheetData: Mapped rows per processed sheet, invalid rows included
            - validationErrors: Row errors per sheet, only for sheets that have any
    """
    max_upload_bytes = settings.max_upload_bytes
    content = None
    if file is not None:
        logger.info(f"Received upload {file.filename}")
        # Read at most one byte past the limit
        content = await file.read(max_upload_bytes + 1)

    result = await run_in_threadpool(
        WorkbookProcessor.process_upload, content, registry, max_upload_bytes
    )

    # Single exit point
    if result.is_failure():
        return JSONResponse(status_code=result.status_code.value, content=result.to_dict())
    return result.data


@app.post("/api/import", response_model=ImportResponse, tags=["Workbook Processing"])
def import_records(
    request: ImportRequest,
    store: RecordStore = Depends(get_record_store),
    registry: SchemaRegistry = Depends(get_schema_registry),
):
    """
    Store previously validated rows, skipping rows with errors or no name.
    """
    result = WorkbookProcessor.import_rows(request, store, registry)
    if result.is_failure():
        return JSONResponse(status_code=result.status_code.value, content=result.to_dict())
    return result.data


@app.post("/api/export", tags=["Workbook Processing"])
def export_workbook(request: ExportRequest):
    """
    Download the posted sheet data as validated_data.xlsx.
    """
    result = WorkbookProcessor.export_workbook(request)
    if result.is_failure():
        return JSONResponse(status_code=result.status_code.value, content=result.to_dict())
    return StreamingResponse(
        io.BytesIO(result.data),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={EXPORT_FILENAME}"}
    )


# Run the application if executed directly
if __name__ == "__main__":
    import uvicorn
    logger.info("Starting Sheet Import API in development mode.")
    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=True)
