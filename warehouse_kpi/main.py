import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from warehouse_kpi.config import LOG_LEVEL, KPI_SUMMARY_ON_STARTUP
from warehouse_kpi.routers import categories, kpi, operators, shipments
from warehouse_kpi.services.auth import PermissionDenied
from warehouse_kpi.services.category_service import CategoryInUseError
from warehouse_kpi.services.summary_cache import summary_cache

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("warehouse_kpi")

app = FastAPI(title="Warehouse KPI Console API", version="0.1.0")


@app.on_event("startup")
async def _startup():
    logger.info("Warehouse KPI Console API starting — docs at /docs")
    if KPI_SUMMARY_ON_STARTUP:
        await summary_cache.refresh()


@app.exception_handler(PermissionDenied)
async def _permission_denied(request: Request, exc: PermissionDenied):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(CategoryInUseError)
async def _category_in_use(request: Request, exc: CategoryInUseError):
    return JSONResponse(
        status_code=409,
        content={"detail": str(exc), "usage_count": exc.usage_count},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(kpi.router, prefix="/api/kpi", tags=["KPI"])
app.include_router(categories.router, prefix="/api/categories", tags=["Categories"])
app.include_router(operators.router, prefix="/api/operators", tags=["Operators"])
app.include_router(shipments.router, prefix="/api/shipments", tags=["Shipments"])


@app.get("/")
async def root():
    return {"app": "Warehouse KPI Console", "docs": "/docs"}
