# File: civictrack/main.py
# Project: civictrack

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi import _rate_limit_exceeded_handler

from civictrack.core.config import cors_origins_list, settings
from civictrack.core.errors import IssueError
from civictrack.core.ratelimit import limiter
from civictrack.routers import admin_users, issues, issues_stats

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

def issue_error_handler(request: Request, exc: IssueError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

app = FastAPI(title="Civic Issue Tracker API")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(IssueError, issue_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins_list(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/health")
def health():
    return {"ok": True}

app.include_router(issues_stats.router)
app.include_router(issues.router)
app.include_router(admin_users.router)
