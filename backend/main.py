import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import APP_NAME, CORS_ORIGINS, LOG_LEVEL
from database import init_db, ping_db
from errors import GoalifyError, ServiceUnavailable
from responses import send_error, send_success
from routes.auth_routes import router as auth_router
from routes.goal_routes import router as goal_router
from routes.milestone_routes import router as milestone_router
from routes.task_routes import router as task_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize db configuration
init_db()

app = FastAPI(title=APP_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(goal_router)
app.include_router(milestone_router)
app.include_router(task_router)


# ── Error envelope ────────────────────────────────────────────────
@app.exception_handler(GoalifyError)
async def goalify_error_handler(request: Request, exc: GoalifyError):
    return send_error(exc.message, exc.errors, exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return send_error(str(exc.detail), None, exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.setdefault(".".join(loc) or "request", []).append(err.get("msg", "Invalid value"))
    return send_error("Validation failed", errors, 422)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return send_error("Server error", None, 500)


@app.get("/api/v1/health-check")
async def health():
    try:
        ping_db()
    except SQLAlchemyError as exc:
        logger.exception("Health check could not reach the database")
        raise ServiceUnavailable("Database unavailable") from exc
    return send_success({"status": "ok"}, "Backend is alive!")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
