from contextlib import asynccontextmanager

from fastapi import FastAPI

from deployment_engine.api.container import get_status_monitor
from deployment_engine.api.routes.deployments import router as deployments_router
from deployment_engine.api.routes.errors import router as errors_router
from deployment_engine.api.routes.status import router as status_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    monitor = get_status_monitor()
    monitor.start()
    yield
    monitor.stop()


app = FastAPI(title="Deployment Engine API", lifespan=lifespan)


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(deployments_router)
app.include_router(status_router)
app.include_router(errors_router)
