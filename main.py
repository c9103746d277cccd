from fastapi import FastAPI, Depends, Query, status, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlmodel import Session
from sqlalchemy.exc import SQLAlchemyError
from contextlib import asynccontextmanager
from typing import List, Optional
from datetime import datetime, timezone
import json
import logging
import platform
import sys
import time

import config
import dashboard
import services
from database import create_db_and_tables, describe_store, get_session, ping_store
from errors import ServiceError
from models import RecordStatus
from schemas import (
    StudentCreate, StudentUpdate, StudentResponse,
    CourseCreate, CourseUpdate, CourseResponse,
    DashboardStats, HealthResponse, MessageResponse,
)

# Configure logging
_error_file = logging.FileHandler(config.ERROR_LOG_FILE)
_error_file.setLevel(logging.ERROR)
logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(config.LOG_FILE),
        _error_file,
    ]
)
logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()


def redact(payload):
    """Mask configured sensitive fields in a request body before logging it"""
    if isinstance(payload, dict):
        return {
            key: "***" if key in config.LOG_REDACT_FIELDS else redact(value)
            for key, value in payload.items()
        }
    if isinstance(payload, list):
        return [redact(item) for item in payload]
    return payload


async def _request_body(request: Request):
    if request.method == "GET":
        return None
    raw = await request.body()
    if not raw:
        return None
    try:
        return redact(json.loads(raw))
    except ValueError:
        return "<unparseable body>"


class ErrorLoggingRoute(APIRoute):
    """Route class that logs failed requests together with the request that caused them"""

    def get_route_handler(self):
        handler = super().get_route_handler()

        async def logging_route_handler(request: Request):
            try:
                return await handler(request)
            except Exception as exc:
                is_client_error = isinstance(exc, (RequestValidationError, StarletteHTTPException)) or (
                    isinstance(exc, ServiceError) and exc.status_code < 500
                )
                body = await _request_body(request)
                logger.log(
                    logging.WARNING if is_client_error else logging.ERROR,
                    f"{request.method} {request.url.path} failed: {exc} "
                    f"(params={request.path_params}, query={dict(request.query_params)}"
                    + (f", body={body}" if body is not None else "") + ")",
                    exc_info=not is_client_error,
                )
                raise

        return logging_route_handler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create database tables on startup"""
    try:
        logger.info("Starting application...")
        create_db_and_tables()
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to create database tables: {str(e)}", exc_info=True)
        raise
    yield
    logger.info("Shutting down application")


app = FastAPI(
    title="Student Course Management API",
    description="Manage students and courses and summarize them on a dashboard",
    version="1.0.0",
    lifespan=lifespan,
)
app.router.route_class = ErrorLoggingRoute

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Access log: method, path, status and duration of every request"""
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(f"{request.method} {request.url.path} {response.status_code} {duration_ms:.1f}ms")
    return response


# Global exception handlers
@app.exception_handler(ServiceError)
async def service_exception_handler(request: Request, exc: ServiceError):
    """Map service errors to their status code"""
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report invalid request data as 400 with a readable message"""
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"][1:]) or str(error["loc"][0])
        problems.append(f"{field}: {error['msg']}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "; ".join(problems) or "Invalid request"}
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handle database-related errors"""
    logger.error(f"Database error: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "A database error occurred. Please try again later."}
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all uncaught exceptions"""
    logger.error(f"Unexpected error: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error"}
    )


@app.get("/", tags=["Root"])
async def read_root():
    """Root endpoint"""
    return {
        "message": "Welcome to Student Course Management API",
        "docs": "/docs",
        "health": "/health"
    }


# ============= COURSE ENDPOINTS =============

@app.get("/courses", response_model=List[CourseResponse], tags=["Courses"])
def read_courses(
    course_status: Optional[RecordStatus] = Query(None, alias="status"),
    session: Session = Depends(get_session),
):
    """Get all courses alphabetically, optionally filtered by status"""
    return services.list_courses(session, course_status)


@app.get("/courses/{course_id}", response_model=CourseResponse, tags=["Courses"])
def read_course(course_id: str, session: Session = Depends(get_session)):
    """Get a specific course by ID"""
    return services.get_course(session, course_id)


@app.post("/courses", response_model=CourseResponse, status_code=status.HTTP_201_CREATED, tags=["Courses"])
def create_course(course: CourseCreate, session: Session = Depends(get_session)):
    """Create a new course"""
    logger.info(f"Creating course: {course.name}")
    return services.create_course(session, course)


@app.put("/courses/{course_id}", response_model=CourseResponse, tags=["Courses"])
def update_course(course_id: str, course_update: CourseUpdate, session: Session = Depends(get_session)):
    """Update a course's information"""
    return services.update_course(session, course_id, course_update)


@app.delete(
    "/courses/{course_id}",
    response_model=MessageResponse,
    responses={status.HTTP_409_CONFLICT: {"model": MessageResponse}},
    tags=["Courses"],
)
def delete_course(course_id: str, session: Session = Depends(get_session)):
    """Delete a course that has no enrolled students"""
    services.delete_course(session, course_id)
    return {"message": "Course deleted successfully"}


# ============= STUDENT ENDPOINTS =============

@app.get("/students", response_model=List[StudentResponse], tags=["Students"])
def read_students(session: Session = Depends(get_session)):
    """Get all students, newest first"""
    return services.list_students(session)


@app.get("/students/search", response_model=List[StudentResponse], tags=["Students"])
def search_students(
    q: Optional[str] = Query(None, description="Matched against name, email and course name"),
    session: Session = Depends(get_session),
):
    """Case-insensitive search over students"""
    return services.search_students(session, q)


@app.get("/students/{student_id}", response_model=StudentResponse, tags=["Students"])
def read_student(student_id: str, session: Session = Depends(get_session)):
    """Get a specific student by ID"""
    return services.get_student(session, student_id)


@app.post("/students", response_model=StudentResponse, status_code=status.HTTP_201_CREATED, tags=["Students"])
def create_student(student: StudentCreate, session: Session = Depends(get_session)):
    """Create a new student"""
    logger.info(f"Creating student with email: {student.email}")
    return services.create_student(session, student)


@app.put("/students/{student_id}", response_model=StudentResponse, tags=["Students"])
def update_student(student_id: str, student_update: StudentUpdate, session: Session = Depends(get_session)):
    """Update a student's information"""
    return services.update_student(session, student_id, student_update)


@app.delete("/students/{student_id}", response_model=MessageResponse, tags=["Students"])
def delete_student(student_id: str, session: Session = Depends(get_session)):
    """Delete a student"""
    services.delete_student(session, student_id)
    return {"message": "Student deleted successfully"}


# ============= DASHBOARD =============

@app.get("/dashboard/stats", response_model=DashboardStats, tags=["Dashboard"])
def read_dashboard_stats(session: Session = Depends(get_session)):
    """Counts, success rate and per-course enrollment, recomputed on every call"""
    return dashboard.compute_dashboard_stats(session)


# ============= HEALTH =============

def uptime_seconds() -> float:
    return round(time.monotonic() - STARTED_AT, 3)


def format_uptime(seconds: float) -> str:
    """Render an uptime as e.g. '1d 2h 3m 4s', omitting zero parts"""
    seconds = int(seconds)
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    parts = [f"{value}{unit}" for value, unit in ((days, "d"), (hours, "h"), (minutes, "m"), (seconds, "s")) if value]
    return " ".join(parts) or "0s"


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health():
    """Liveness check"""
    return HealthResponse(status="UP", timestamp=datetime.now(timezone.utc), uptime_seconds=uptime_seconds())


@app.get("/health/detailed", tags=["Health"])
def health_detailed(session: Session = Depends(get_session)):
    """Readiness check including store connectivity"""
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        connected = ping_store(session)
        uptime = uptime_seconds()
        body = {
            "status": "UP" if connected else "DOWN",
            "timestamp": timestamp,
            "uptimeSeconds": uptime,
            "uptime": format_uptime(uptime),
            "environment": config.ENVIRONMENT,
            "database": {"status": "connected" if connected else "disconnected", **describe_store(session)},
            "system": {"pythonVersion": platform.python_version(), "platform": sys.platform},
        }
    except Exception as e:
        logger.error(f"Detailed health check failed: {str(e)}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"status": "DOWN", "timestamp": timestamp, "message": str(e)}
        )

    if not connected:
        logger.warning("Detailed health check: store disconnected")
    return JSONResponse(
        status_code=status.HTTP_200_OK if connected else status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=config.HOST, port=config.PORT)
