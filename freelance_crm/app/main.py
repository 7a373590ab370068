# Freelance CRM backend entrypoint: FastAPI app, routers and the error envelope.

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from freelance_crm.app.api import (
    batch,
    clients,
    invoices,
    login,
    projects,
    recurring_tasks,
    register,
    reminders,
    settings as settings_api,
    time_entries,
)
from freelance_crm.app.api.responses import error_body
from freelance_crm.app.core.errors import ApiError
from freelance_crm.app.core.logging_config import configure_logging
from freelance_crm.app.core.settings import get_settings
from freelance_crm.app.db.base import Base
from freelance_crm.app.db.session import engine

configure_logging()
logger = logging.getLogger(__name__)

settings = get_settings()
app = FastAPI(title=settings.app_name, version=settings.api_version)

origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(register.router)
app.include_router(login.router)
app.include_router(clients.router)
app.include_router(projects.router)
app.include_router(invoices.router)
app.include_router(reminders.router)
app.include_router(time_entries.router)
app.include_router(recurring_tasks.router)
app.include_router(batch.router)
app.include_router(settings_api.router)


@app.exception_handler(ApiError)
async def handle_api_error(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.to_dict()))


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    details = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part != "body") or "body"
        details.setdefault(field, []).append(error["msg"])
    error = {"code": "VALIDATION_ERROR", "message": "The given data was invalid.", "details": details}
    return JSONResponse(status_code=422, content=error_body(error))


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException):
    code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
    return JSONResponse(status_code=exc.status_code, content=error_body({"code": code, "message": str(exc.detail)}))


@app.get("/")
def read_root():
    return {"app": settings.app_name, "version": settings.api_version, "status": "ok"}


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.on_event("startup")
def create_tables():
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")
