"""
Savings Vault API Application Factory
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from .. import __version__
from ..errors import (
    VaultError, AlreadyRegistered, NotRegistered, NotAdmin, NotOwner,
    DuplicateLockPeriod, InvalidBank, TransferFailed
)
from .registry import router as registry_router
from .vaults import router as vaults_router
from .assets import router as assets_router


# Status code per error kind; anything else is a 422 validation failure
ERROR_STATUS = {
    NotAdmin: 403,
    NotOwner: 403,
    NotRegistered: 404,
    InvalidBank: 404,
    AlreadyRegistered: 409,
    DuplicateLockPeriod: 409,
    TransferFailed: 402,
}


def error_status(error: VaultError) -> int:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status_code
    return 422


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Savings Vault API",
        description="Per-identity savings vaults with time-locked banks and breaking fees",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(VaultError)
    async def vault_error_handler(request: Request, exc: VaultError):
        return JSONResponse(status_code=error_status(exc), content=exc.to_dict())

    app.include_router(registry_router, prefix="/registry", tags=["Registry"])
    app.include_router(vaults_router, prefix="/vaults", tags=["Vaults"])
    app.include_router(assets_router, prefix="/assets", tags=["Assets"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "savings_vault_api",
            "version": __version__
        }

    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Savings Vault API",
            "version": __version__,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "registry": "/registry",
                "vaults": "/vaults",
                "assets": "/assets"
            }
        }

    return app


app = create_app()


def run_server(host: str = "0.0.0.0", port: int = 8095, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "core_savings.api:app",
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )
