from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from classifieds.backends.base import MarketplaceBackend
from classifieds.config import Settings, get_settings
from classifieds.db import get_backend
from classifieds.errors import ConfigurationError
from classifieds.marketplace import Marketplace
from classifieds.routers import listing


def create_app(settings: Optional[Settings] = None, backend: Optional[MarketplaceBackend] = None) -> FastAPI:
    app = FastAPI(title="Classifieds Marketplace")

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, replace with your frontend domain
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(listing.router)

    @app.on_event("startup")
    async def on_startup():
        nonlocal settings, backend
        try:
            settings = settings or get_settings()
            backend = backend or get_backend(settings)
        except ConfigurationError as e:
            print(f"[main] {e}")
            settings = settings or Settings()
            backend = None
        app.state.marketplace = Marketplace(settings, backend)
        await app.state.marketplace.start()

    @app.on_event("shutdown")
    async def on_shutdown():
        await app.state.marketplace.stop()

    @app.get("/health")
    def health():
        marketplace = app.state.marketplace
        return {
            "message": "Classifieds backend is live",
            "backend": marketplace.backend.name if marketplace.backend else None,
            "signed_in": bool(marketplace.state.user_id),
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
