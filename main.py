import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

import config
from accounts import router as auth_router, seller_router
from cart import router as cart_router
from complaints import router as complaints_router
from coupons import router as coupon_router
from database import connect, ensure_indexes
from mailer import Mailer
from throttling import limiter

logger = logging.getLogger(__name__)


def setup_logging():
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - [%(levelname)s] - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    client = None
    if app.state.db is None:
        config.validate()
        if config.DATABASE_URL and config.DATABASE_NAME:
            client, app.state.db = connect(config.DATABASE_URL, config.DATABASE_NAME, config.DATABASE_POOL_SIZE)
        else:
            logger.warning("DATABASE_URL / DATABASE_NAME not set, running without a database")
    if app.state.db is not None:
        ensure_indexes(app.state.db)
    try:
        yield
    finally:
        if client is not None:
            client.close()
            logger.info("MongoDB client closed")


def format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", "Invalid request"))
    return "; ".join(parts)


def create_app(db=None, mailer=None) -> FastAPI:
    """Build the application. db and mailer default to the configured ones."""
    app = FastAPI(title="Storefront Backend", lifespan=lifespan)
    app.state.db = db
    app.state.mailer = mailer or Mailer.from_config()
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": format_validation_errors(exc)})

    # ----------------------- Health -----------------------
    @app.get("/")
    def root():
        return {"message": "Storefront API running"}

    @app.get("/test")
    def test_database():
        current = app.state.db
        response = {
            "backend": "✅ Running",
            "database": "❌ Not Available",
            "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
            "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
            "connection_status": "Not Connected",
            "collections": [],
        }
        try:
            if current is not None:
                response["database"] = "✅ Connected & Working"
                response["connection_status"] = "Connected"
                response["collections"] = current.list_collection_names()[:10]
        except Exception as e:
            response["database"] = f"❌ Error: {str(e)[:80]}"
        return response

    app.include_router(auth_router)
    app.include_router(seller_router)
    app.include_router(cart_router)
    app.include_router(complaints_router)
    app.include_router(coupon_router)
    return app


setup_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
