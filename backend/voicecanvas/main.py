import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import OperationalError

from voicecanvas.api.routes import router
from voicecanvas.db.models import Base
from voicecanvas.db.session import engine
from voicecanvas.observability.logging import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="Voice Canvas Core",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.on_event("startup")
def startup():
    retries = 5
    delay = 2

    for attempt in range(retries):
        try:
            Base.metadata.create_all(bind=engine)
            logger.info("Database connected")
            return
        except OperationalError:
            logger.warning("Waiting for database... (%d/%d)", attempt + 1, retries)
            time.sleep(delay)

    # Canvas records are optional; keep serving the core operations
    logger.warning("Database not ready, running without persistence")
