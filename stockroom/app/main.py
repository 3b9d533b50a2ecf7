import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from stockroom.app.api.router import router as api_router
from stockroom.app.logging_setup import configure_logging
from stockroom.services.errors import StockroomError

configure_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(title="Stockroom", version="0.1.0")
app.include_router(api_router, prefix="/api")


@app.exception_handler(StockroomError)
async def stockroom_error_handler(request: Request, exc: StockroomError):
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    # malformed input is a 400 here, not FastAPI's default 422
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("storage_failure", path=request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": f"Storage failure ({exc.__class__.__name__})"})
