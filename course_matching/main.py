# course_matching/main.py
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from course_matching.database import Base, engine
from course_matching.errors import MatchingError, PersistenceError
from course_matching.routers import applications, availability, matching, notification_emails, time_windows

import time
import logging
from course_matching.logging_config import setup_logging
import course_matching.models.base  # noqa: F401  (registers every table)


setup_logging()
logger = logging.getLogger("course_matching")


# create tables if missing
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Course Matching Backend", version="1.0.0")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    try:
        response = await call_next(request)
        ms = int((time.time() - start) * 1000)
        logger.info("%s %s -> %s (%dms)", request.method, request.url.path, response.status_code, ms)
        return response
    except Exception:
        ms = int((time.time() - start) * 1000)
        logger.exception("Unhandled error %s %s (%dms)", request.method, request.url.path, ms)
        raise


@app.exception_handler(MatchingError)
async def matching_error_handler(request: Request, exc: MatchingError):
    if isinstance(exc, PersistenceError):
        # detail is already in the log
        logger.warning("%s %s -> persistence failure", request.method, request.url.path)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Routers
app.include_router(time_windows.router)
app.include_router(applications.router)
app.include_router(matching.router)
app.include_router(availability.router)
app.include_router(notification_emails.router)

@app.get("/")
def root():
    return {"message": "Course matching backend is running!"}
