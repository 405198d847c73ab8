# snwms/router_mount.py
from __future__ import annotations

from fastapi import FastAPI


def mount_routers(app: FastAPI) -> None:
    from snwms.api.routers.deliveries import router as deliveries_router
    from snwms.api.routers.inventory import router as inventory_router
    from snwms.api.routers.returns import router as returns_router
    from snwms.api.routers.serials import router as serials_router
    from snwms.api.routers.stock_logs import router as stock_logs_router
    from snwms.obs.metrics import router as metrics_router

    app.include_router(inventory_router)
    app.include_router(serials_router)
    app.include_router(deliveries_router)
    app.include_router(returns_router)
    app.include_router(stock_logs_router)
    app.include_router(metrics_router)
