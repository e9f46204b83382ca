import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.v1.auth import router as auth_router
from app.api.v1.loyalty import router as loyalty_router
from app.api.v1.push import router as push_router
from app.api.v1.queue import router as queue_router
from app.core.config import settings
from app.wiring.dependencies import get_container

class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for key in (
            "entry_id", "salon_id", "user_id", "channel", "status", "outcome", "actor", "trust_level", "reason", "error"
        ):
            value = getattr(record, key, None)
            if value not in (None, ""):
                extras.append(f"{key}={value}")
        base = super().format(record)
        if extras:
            return f"{base} | " + " ".join(extras)
        return base


handler = logging.StreamHandler()
handler.setFormatter(ContextFormatter("%(levelname)s:%(name)s:%(message)s"))

root = logging.getLogger()
root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
root.handlers.clear()
root.addHandler(handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    container = app.dependency_overrides.get(get_container, get_container)()
    container.start()
    try:
        yield
    finally:
        container.stop()


app = FastAPI(title="Salon Walk-in Queue", version="1.0.0", lifespan=lifespan)

app.include_router(queue_router, tags=["queue"])
app.include_router(auth_router, tags=["auth"])
app.include_router(loyalty_router, tags=["loyalty"])
app.include_router(push_router, tags=["push"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
