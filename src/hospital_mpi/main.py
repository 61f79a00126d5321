"""
Hospital MPI Service
Controller/Service/Repository Pattern
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import aiohttp

from . import __version__
from .core.cache import CacheManager
from .core.config import get_config, configure_logging, is_production, ApplicationConfig
from .core.database import DatabaseManager
from .domains.patient.controllers.patient_controller import router as patient_router
from .domains.patient.repositories.patient_store import PatientStore
from .domains.patient.repositories.patient_repository import MongoPatientStore
from .domains.patient.repositories.memory_store import InMemoryPatientStore
from .domains.audit.repositories.audit_repository import AuditSink, MongoAuditSink, InMemoryAuditSink
from .domains.audit.services.audit_dispatcher import AuditDispatcher
from .domains.staff.controllers.staff_controller import router as staff_router
from .domains.staff.repositories.staff_repository import StaffStore, MongoStaffStore, InMemoryStaffStore
from .providers import create_provider, BaseHospitalSource

logger = logging.getLogger(__name__)


class MPIServiceContext:
    """Centralized service context for dependency injection"""

    def __init__(self, config: Optional[ApplicationConfig] = None):
        self.config = config or get_config()
        self.db_manager: Optional[DatabaseManager] = None
        self.cache_manager: Optional[CacheManager] = None
        self.http_session: Optional[aiohttp.ClientSession] = None
        self.source: Optional[BaseHospitalSource] = None
        self.store: Optional[PatientStore] = None
        self.audit_sink: Optional[AuditSink] = None
        self.audit: Optional[AuditDispatcher] = None
        self.staff_store: Optional[StaffStore] = None
        self.start_time = datetime.now(timezone.utc)
        self._initialized = False

    async def initialize(self):
        """Initialize all connections and services"""
        if self._initialized:
            return

        logger.info("Initializing MPI Service Context...")
        logger.debug(f"Settings: {self.config.to_dict()}")

        # Storage
        await self._init_store()

        # Initialize HTTP session for hospital calls
        http = self.config.http
        connector = aiohttp.TCPConnector(
            limit=http.max_pool_size,
            limit_per_host=http.max_per_host,
            ttl_dns_cache=http.ttl_dns_cache
        )
        timeout = aiohttp.ClientTimeout(total=http.total_timeout, connect=http.connect_timeout)
        self.http_session = aiohttp.ClientSession(connector=connector, timeout=timeout)

        # Initialize provider
        await self._init_provider()

        self.audit = AuditDispatcher(self.audit_sink)

        self._initialized = True
        logger.info("MPI Service Context initialized successfully")

    async def _init_store(self):
        """Initialize the patient, audit and staff stores for the configured backend"""
        backend = self.config.store_backend
        logger.info(f"Initializing {backend} store")

        if backend == "memory":
            self.store = InMemoryPatientStore()
            self.audit_sink = InMemoryAuditSink()
            self.staff_store = InMemoryStaffStore()
            await self.store.initialize()
            return

        self.db_manager = DatabaseManager(self.config.database)
        await self.db_manager.initialize()

        if self.config.redis.enabled:
            self.cache_manager = CacheManager(self.config.redis)
            await self.cache_manager.initialize()

        collections = self.config.get_database_collections()
        self.store = MongoPatientStore(
            self.db_manager,
            cache_manager=self.cache_manager,
            collection_name=collections["patients"],
            cache_ttl_seconds=self.config.redis.patient_ttl_seconds
        )
        await self.store.initialize()
        self.audit_sink = MongoAuditSink(self.db_manager, collection_name=collections["search_events"])
        self.staff_store = MongoStaffStore(self.db_manager, collection_name=collections["staff"])

    async def _init_provider(self):
        """Initialize the configured hospital source"""
        provider_name = self.config.hospital_source.provider_name
        logger.info(f"Initializing provider: {provider_name}")

        self.source = create_provider(
            provider_name,
            session=self.http_session,
            base_url=self.config.hospital_source.base_url
        )
        await self.source.initialize()

    async def health(self):
        """Dependency health summary"""
        checks = {}
        if self.db_manager:
            checks["database"] = await self.db_manager.health_check()
        if self.cache_manager:
            checks["cache"] = await self.cache_manager.health_check()
        if self.source:
            source_health = await self.source.health_check()
            source_health["stats"] = self.source.get_stats()
            checks["hospital_source"] = source_health
        return checks

    async def cleanup(self):
        """Cleanup all connections"""
        logger.info("Cleaning up MPI Service Context...")

        if self.audit:
            await self.audit.drain()

        if self.source:
            await self.source.cleanup()

        if self.http_session:
            await self.http_session.close()

        if self.store:
            await self.store.cleanup()

        if self.cache_manager:
            await self.cache_manager.cleanup()

        if self.db_manager:
            await self.db_manager.cleanup()

        self._initialized = False
        logger.info("Cleanup complete")


# FastAPI application with lifecycle management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage service lifecycle"""
    # Startup
    logger.info("Starting MPI Service...")
    app.state.mpi_service = MPIServiceContext()
    await app.state.mpi_service.initialize()
    logger.info("MPI Service started successfully")

    yield

    # Shutdown
    logger.info("Shutting down MPI Service...")
    await app.state.mpi_service.cleanup()
    logger.info("MPI Service shutdown complete")


def create_app() -> FastAPI:
    """Build the FastAPI application"""
    config = get_config()
    docs_enabled = not is_production()

    app = FastAPI(
        title=config.app_name,
        version=__version__,
        description="Patient identity resolution and search across hospitals",
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_origins,
        allow_credentials=config.security.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(staff_router)
    app.include_router(patient_router)

    @app.get("/health")
    async def health_check(request: Request):
        """Service and dependency health"""
        context = getattr(request.app.state, "mpi_service", None)
        checks = await context.health() if context else {}
        degraded = any(
            check.get("status") not in ("healthy", None) for check in checks.values()
        )

        return {
            "status": "degraded" if degraded else "healthy",
            "version": __version__,
            "store_backend": config.store_backend,
            "provider": config.hospital_source.provider_name,
            "checks": checks,
            "uptime_seconds": (
                (datetime.now(timezone.utc) - context.start_time).total_seconds() if context else 0
            ),
            "timestamp": datetime.now(timezone.utc)
        }

    @app.get("/")
    async def root():
        """Root endpoint with service information"""
        return {
            "service": config.app_name,
            "version": __version__,
            "pattern": "Controller/Service/Repository",
            "documentation": "/docs" if docs_enabled else None,
            "health": "/health"
        }

    return app


app = create_app()


def run():
    """Console entry point"""
    import uvicorn

    config = get_config()
    configure_logging(config.logging)

    uvicorn.run(
        "hospital_mpi.main:app",
        host=config.host,
        port=config.port,
        workers=config.workers,
        loop="uvloop",
        log_level=config.logging.level.lower(),
        access_log=config.debug,
        reload=False
    )


if __name__ == "__main__":
    run()
