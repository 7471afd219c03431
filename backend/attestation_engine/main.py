"""
Attestation Engine 1.0 - FastAPI Application

Main entry point for the Attestation Engine backend.

Architecture:
- Identity provider -> VerificationService -> encrypted SubjectSecrets + credential bundle
- Counterparty request -> fresh age/address commitments -> Compliance Event Ledger
- Privacy requests -> export (right-to-know) / best-effort erasure (right-to-be-forgotten)
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings
from .database import build_engine, build_session_factory, init_db
from .routers import privacy_router, verification_router
from .services.address_matching import AddressMatcher, NormalizedAddressMatcher
from .services.anchoring import ChainAnchorService

VERSION = "1.0.0"

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Root logging config for the process."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    anchor_service: Optional[ChainAnchorService] = None,
    address_matcher: Optional[AddressMatcher] = None,
) -> FastAPI:
    """
    Build the application.

    Settings and collaborators are passed in explicitly; nothing is read
    from the environment unless settings is omitted.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings)
    engine = build_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize database on startup."""
        init_db(engine)
        logger.info(f"Attestation Engine {VERSION} started")
        yield
        engine.dispose()

    app = FastAPI(
        lifespan=lifespan,
        title="Attestation Engine",
        description="""
    Attestation Engine 1.0 - Privacy-preserving age and address verification

    ## Flow
    1. **Identity verification**: provider attributes are encrypted at rest
    2. **Counterparty verification**: fresh commitments, recorded as compliance events
    3. **Privacy requests**: data export and right-to-be-forgotten

    ## Key Principles
    - Counterparties see commitments and booleans, never identity attributes
    - Compliance events are append-only; erasure only unlinks them from the subject
    - Reference codes keep the audit trail after erasure
    """,
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.anchor_service = anchor_service
    app.state.address_matcher = address_matcher or NormalizedAddressMatcher()

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(privacy_router)
    app.include_router(verification_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "version": VERSION}

    return app


# For running with: python -m attestation_engine.main
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(Settings.from_env()), host="0.0.0.0", port=8001)
