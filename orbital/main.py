import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from orbital.routers import maps, stream
from orbital.services.maps import map_service

logging.basicConfig(
    level=getattr(logging, map_service.config.server.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Orbital layout service starting")
    yield
    # Detach every engine so no frame loop outlives the app
    map_service.shutdown()
    logger.info("Orbital layout service stopped")


app = FastAPI(title="Orbital Layout API", lifespan=lifespan)

app.include_router(maps.router)
app.include_router(stream.router)


@app.get("/health")
async def health():
    return {"status": "ok", "maps": len(map_service.maps)}
