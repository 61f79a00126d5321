"""
Environment-driven settings for the Hospital MPI service

Every value is read from an environment variable when the section is
constructed; get_config() builds and validates the whole tree once.
"""

import os
import logging
from logging.handlers import RotatingFileHandler
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field, asdict
from functools import lru_cache

logger = logging.getLogger(__name__)

SECRET_MASK = "***masked***"


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").lower() == "true"


@dataclass
class DatabaseConfig:
    """MongoDB connection and collection names"""
    uri: str = field(default_factory=lambda: os.getenv("MONGODB_URI", "mongodb://localhost:27017"))
    name: str = field(default_factory=lambda: os.getenv("MPI_DB", "hospital_mpi"))
    max_pool_size: int = field(default_factory=lambda: _env_int("MONGO_POOL_SIZE", 50))
    min_pool_size: int = field(default_factory=lambda: _env_int("MONGO_MIN_POOL_SIZE", 10))
    max_idle_time_ms: int = field(default_factory=lambda: _env_int("MONGO_MAX_IDLE_TIME_MS", 10000))
    server_selection_timeout_ms: int = field(default_factory=lambda: _env_int("MONGO_SERVER_SELECTION_TIMEOUT_MS", 5000))

    patients_collection: str = field(default_factory=lambda: os.getenv("PATIENTS_COLLECTION", "patients"))
    search_events_collection: str = field(default_factory=lambda: os.getenv("SEARCH_EVENTS_COLLECTION", "search_events"))
    staff_collection: str = field(default_factory=lambda: os.getenv("STAFF_COLLECTION", "staff"))


@dataclass
class RedisConfig:
    """Patient read cache; only used with the mongo store backend"""
    enabled: bool = field(default_factory=lambda: _env_bool("CACHE_ENABLED", True))
    host: str = field(default_factory=lambda: os.getenv("REDIS_HOST", "localhost"))
    port: int = field(default_factory=lambda: _env_int("REDIS_PORT", 6379))
    password: Optional[str] = field(default_factory=lambda: os.getenv("REDIS_PASSWORD"))
    db: int = field(default_factory=lambda: _env_int("REDIS_DB", 0))
    max_connections: int = field(default_factory=lambda: _env_int("REDIS_POOL_SIZE", 50))
    socket_timeout: int = field(default_factory=lambda: _env_int("REDIS_SOCKET_TIMEOUT", 30))
    socket_connect_timeout: int = field(default_factory=lambda: _env_int("REDIS_CONNECT_TIMEOUT", 30))
    # orjson works on bytes
    decode_responses: bool = False

    default_ttl_seconds: int = field(default_factory=lambda: _env_int("CACHE_DEFAULT_TTL", 3600))
    patient_ttl_seconds: int = field(default_factory=lambda: _env_int("PATIENT_CACHE_TTL", 3600))


@dataclass
class HTTPConfig:
    """Shared aiohttp session pool"""
    total_timeout: int = field(default_factory=lambda: _env_int("HTTP_TOTAL_TIMEOUT", 30))
    connect_timeout: int = field(default_factory=lambda: _env_int("HTTP_CONNECT_TIMEOUT", 10))
    max_pool_size: int = field(default_factory=lambda: _env_int("CONNECTION_POOL_SIZE", 100))
    max_per_host: int = field(default_factory=lambda: _env_int("HTTP_MAX_PER_HOST", 30))
    ttl_dns_cache: int = field(default_factory=lambda: _env_int("HTTP_DNS_CACHE_TTL", 300))


@dataclass
class HospitalSourceConfig:
    """External hospital source"""
    provider_name: str = field(default_factory=lambda: os.getenv("HOSPITAL_PROVIDER", "hospital"))
    base_url: str = field(default_factory=lambda: os.getenv("HOSPITAL_BASE", "http://hospital-a.api.co.th"))
    timeout_seconds: float = field(default_factory=lambda: float(os.getenv("HOSPITAL_TIMEOUT_SECONDS", "2")))


@dataclass
class SecurityConfig:
    """Bearer token verification and CORS"""
    jwt_secret_key: str = field(default_factory=lambda: os.getenv("JWT_SECRET", ""))
    jwt_algorithm: str = field(default_factory=lambda: os.getenv("JWT_ALGORITHM", "HS256"))
    jwt_expiration_seconds: int = field(default_factory=lambda: _env_int("JWT_EXPIRES_SECONDS", 3600))

    # Staff passwords
    bcrypt_rounds: int = field(default_factory=lambda: _env_int("BCRYPT_ROUNDS", 12))
    password_min_length: int = field(default_factory=lambda: _env_int("PASSWORD_MIN_LENGTH", 6))

    cors_origins: List[str] = field(default_factory=lambda: os.getenv("CORS_ORIGINS", "*").split(","))
    cors_allow_credentials: bool = field(default_factory=lambda: _env_bool("CORS_ALLOW_CREDENTIALS", True))


@dataclass
class SearchConfig:
    """Page sizes for the search endpoints"""
    legacy_default_limit: int = field(default_factory=lambda: _env_int("SEARCH_LEGACY_DEFAULT_LIMIT", 10))
    default_limit: int = field(default_factory=lambda: _env_int("SEARCH_DEFAULT_LIMIT", 20))
    max_limit: int = field(default_factory=lambda: _env_int("SEARCH_MAX_LIMIT", 100))


@dataclass
class LoggingConfig:
    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    format: str = field(default_factory=lambda: os.getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"))

    # Optional rotating file next to stderr
    log_file: Optional[str] = field(default_factory=lambda: os.getenv("LOG_FILE"))
    max_file_size: int = field(default_factory=lambda: _env_int("LOG_MAX_FILE_SIZE", 10 * 1024 * 1024))
    backup_count: int = field(default_factory=lambda: _env_int("LOG_BACKUP_COUNT", 5))


@dataclass
class ApplicationConfig:
    """Top-level settings tree"""
    app_name: str = field(default_factory=lambda: os.getenv("APP_NAME", "Hospital MPI Service"))
    environment: str = field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))
    debug: bool = field(default_factory=lambda: _env_bool("DEBUG", False))

    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_int("PORT", 8080))
    workers: int = field(default_factory=lambda: _env_int("WORKERS", 1))

    # "mongo" or "memory"
    store_backend: str = field(default_factory=lambda: os.getenv("STORE_BACKEND", "mongo"))

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    http: HTTPConfig = field(default_factory=HTTPConfig)
    hospital_source: HospitalSourceConfig = field(default_factory=HospitalSourceConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self):
        self.validate()

    def validate(self):
        """Raise ValueError listing every invalid setting"""
        problems = []

        if self.store_backend not in ("mongo", "memory"):
            problems.append(f"Unknown store backend '{self.store_backend}'")
        elif self.store_backend == "mongo":
            if not (self.database.uri and self.database.name):
                problems.append("MongoDB URI and database name are required for the mongo backend")
            if self.redis.enabled and not (1 <= self.redis.port <= 65535):
                problems.append("Redis port must be between 1 and 65535")

        source = self.hospital_source
        if source.provider_name == "hospital" and not source.base_url:
            problems.append("HOSPITAL_BASE is required for the hospital provider")
        if source.timeout_seconds <= 0:
            problems.append("Hospital timeout must be positive")

        search = self.search
        if not (1 <= search.default_limit <= search.max_limit):
            problems.append("Search default limit must be between 1 and the max limit")
        if search.legacy_default_limit < 1:
            problems.append("Legacy search default limit must be positive")

        if not (4 <= self.security.bcrypt_rounds <= 31):
            problems.append("BCRYPT_ROUNDS must be between 4 and 31")

        if self.environment == "production" and not self.security.jwt_secret_key:
            problems.append("JWT secret key must be set in production")

        if problems:
            raise ValueError(f"Configuration validation failed: {'; '.join(problems)}")

    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def get_database_collections(self) -> Dict[str, str]:
        return {
            "patients": self.database.patients_collection,
            "search_events": self.database.search_events_collection,
            "staff": self.database.staff_collection,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Settings as a dict with secrets masked, for startup logging"""
        data = asdict(self)
        data["security"]["jwt_secret_key"] = SECRET_MASK
        if data["redis"].get("password"):
            data["redis"]["password"] = SECRET_MASK
        return data


@lru_cache(maxsize=1)
def get_config() -> ApplicationConfig:
    """Process-wide settings, built on first use"""
    config = ApplicationConfig()
    logger.info(f"Configuration loaded for environment: {config.environment}")
    return config


def configure_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure root logging from the logging settings"""
    config = config or get_config().logging

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if config.log_file:
        handlers.append(RotatingFileHandler(
            config.log_file,
            maxBytes=config.max_file_size,
            backupCount=config.backup_count
        ))

    logging.basicConfig(
        level=getattr(logging, config.level.upper(), logging.INFO),
        format=config.format,
        handlers=handlers,
        force=True
    )


def get_database_config() -> DatabaseConfig:
    return get_config().database


def get_redis_config() -> RedisConfig:
    return get_config().redis


def get_security_config() -> SecurityConfig:
    return get_config().security


def get_search_config() -> SearchConfig:
    return get_config().search


def is_production() -> bool:
    return get_config().is_production()
