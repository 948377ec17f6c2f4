import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import auth
import blog
import bookings
import contact_settings
import content
import expenses
import rooms
import uploads
from database import get_db, init_db, ping
from errors import AppError, ErrorKind, Internal, InvalidInput
from logging_config import setup_logging
from middleware import register_middleware
from settings import settings

logger = logging.getLogger(__name__)

STATUS_KINDS = {
    401: ErrorKind.UNAUTHENTICATED,
    403: ErrorKind.UNAUTHORIZED,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.CONFLICT,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # honour a test override of the database dependency
    db = app.dependency_overrides.get(get_db, get_db)()
    init_db(db)
    uploads.configure_media_storage()
    logger.info("%s %s started (%s)", settings.APP_NAME, settings.API_VERSION, settings.ENVIRONMENT)
    yield
    logger.info("%s shutting down", settings.APP_NAME)


def _error_response(error: AppError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def _validation_message(errors) -> str:
    messages = []
    for error in errors:
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{field}: {error.get('msg')}" if field else error.get("msg", ""))
    return "; ".join(messages) or InvalidInput.default_message


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", exc.kind.value, request.method, request.url.path, exc.message)
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _error_response(InvalidInput(_validation_message(exc.errors())))

    @app.exception_handler(ValidationError)
    async def model_validation_handler(request: Request, exc: ValidationError):
        return _error_response(InvalidInput(_validation_message(exc.errors())))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        kind = STATUS_KINDS.get(exc.status_code, ErrorKind.INVALID_INPUT)
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc.detail), "error": kind.value},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(PyMongoError)
    async def database_error_handler(request: Request, exc: PyMongoError):
        logger.exception("Database error on %s %s", request.method, request.url.path)
        return _error_response(Internal(str(exc) if settings.DEBUG else "Database error"))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(Internal(str(exc) if settings.DEBUG else None))


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.APP_NAME, version=settings.API_VERSION, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_middleware(app)
    register_exception_handlers(app)

    for module in (auth, rooms, bookings, content, contact_settings, blog, expenses, uploads):
        app.include_router(module.router)

    @app.get("/")
    def root():
        return {"message": f"{settings.APP_NAME} running"}

    @app.get("/api/health")
    def health(db: Database = Depends(get_db)):
        database_ok = ping(db)
        return {
            "success": True,
            "status": "ok" if database_ok else "degraded",
            "database": "connected" if database_ok else "unavailable",
            "version": settings.API_VERSION,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
