# gradebook/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from gradebook.core.config import settings
from gradebook.core.logging_config import setup_logging
from gradebook.db.base import Base
from gradebook.db.session import engine
from gradebook.api.v1.endpoints import (
    assignments,
    auth,
    exams,
    health,
    questions,
    submissions,
    users,
)
from gradebook import models  # noqa

app = FastAPI(title=settings.PROJECT_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup():
    setup_logging()
    Base.metadata.create_all(bind=engine)


API_PREFIX = "/api/v1"

app.include_router(auth.router, prefix=API_PREFIX)
app.include_router(users.router, prefix=API_PREFIX)
app.include_router(questions.router, prefix=API_PREFIX)
app.include_router(assignments.router, prefix=API_PREFIX)
app.include_router(exams.router, prefix=API_PREFIX)
app.include_router(submissions.router, prefix=API_PREFIX)
app.include_router(health.router, prefix=f"{API_PREFIX}/health")
