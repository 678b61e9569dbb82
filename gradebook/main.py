"""FastAPI entrypoint for the school gradebook service."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from gradebook.config import LOG_LEVEL
from gradebook.database import create_db_and_tables
from gradebook.routers import exams as exams_router_module
from gradebook.routers import grades as grades_router_module
from gradebook.routers import questions as questions_router_module

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="School Gradebook")


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Recoverable validation and precondition failures raised by services."""
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


# Routers
app.include_router(questions_router_module.router, prefix="/questions", tags=["questions"])
app.include_router(exams_router_module.router, prefix="/exams", tags=["exams"])
app.include_router(grades_router_module.router, prefix="/grades", tags=["grades"])


@app.get("/health")
def health():
    return {"status": "ok"}


@app.on_event("startup")
def on_startup():
    """Initialize database schema."""
    create_db_and_tables()
