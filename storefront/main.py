# storefront/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
import uvicorn

from storefront.api.routers import auth, cart, health, orders
from storefront.bootstrap import Container, build_container
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def create_app(container: Container | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # kontener budowany przy starcie, testy podaja wlasny
        app.state.container = container or build_container()
        result = await app.state.container.cart.restore()
        logger.info(f"Startup restore: {result.outcome.value} (cart={app.state.container.snapshot.cart_id})")
        yield
        await app.state.container.cart.drain()
        logger.info("Background cart tasks drained")

    app = FastAPI(
        title="Storefront Cart",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.include_router(health.router)
    app.include_router(cart.router)
    app.include_router(auth.router)
    app.include_router(orders.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
