import logging

from fastapi import FastAPI

from .api.routes import router
from .core.config import settings
from .core.errors import register_exception_handlers
from .db.base import Base
from .db.session import engine

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="ChoreCoins API", version="0.1.0")
register_exception_handlers(app)
app.include_router(router)


@app.on_event("startup")
def create_schema() -> None:
    Base.metadata.create_all(bind=engine)
