from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront.metrics import METRICS_ENABLED, metrics_endpoint, metrics_middleware, set_app_info
from storefront.routers.admin import router as admin_router
from storefront.routers.cart import router as cart_router
from storefront.routers.orders import router as orders_router
from storefront.routers.products import router as products_router
from storefront.routers.ratings import router as ratings_router
from storefront.routers.wishlist import router as wishlist_router

def create_app() -> FastAPI:
    app = FastAPI(title="Cosmetics Storefront API", version="0.1.0")

    @app.get("/")
    async def index():
        return {"status": "ok", "service": app.title}

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if METRICS_ENABLED:
        app.middleware("http")(metrics_middleware)
        set_app_info(app.title, app.version)
        app.get("/metrics")(metrics_endpoint)

    app.include_router(products_router)
    app.include_router(cart_router)
    app.include_router(ratings_router)
    app.include_router(orders_router)
    app.include_router(wishlist_router)
    app.include_router(admin_router)

    return app

app = create_app()
