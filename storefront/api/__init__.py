# storefront/api/__init__.py
from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront.api.routers import health, cart, designs, checkout, orders, downloads, webhooks
from storefront.domain.errors import StorefrontError


def create_app(**kwargs) -> FastAPI:
    app = FastAPI(title="Storefront", version="1.0.0", **kwargs)

    @app.exception_handler(StorefrontError)
    async def storefront_error(request, exc: StorefrontError):
        #errors raised from dependencies (e.g. missing session) end up here
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})

    @app.exception_handler(RequestValidationError)
    async def validation_error(request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"detail": {"error": "invalid_input", "message": "Invalid request", "fields": jsonable_encoder(exc.errors())}},
        )

    app.include_router(health.router)
    app.include_router(designs.router)
    app.include_router(cart.router)
    app.include_router(checkout.router)
    app.include_router(orders.router)
    app.include_router(downloads.router)
    app.include_router(webhooks.router)
    return app
