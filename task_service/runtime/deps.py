# =============================================================================
# Configuration & Dependency Injection Container
# =============================================================================
# Provides environment configuration and lazy-loaded collaborators (task
# store, AWS clients, outbound API client). The pipeline receives a Deps
# instance through its constructor instead of reaching for globals.
# =============================================================================

import logging
import os
import threading
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Callable, Dict

import boto3

logger = logging.getLogger(__name__)


def _get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _get_env_bool(key: str, default: bool = False) -> bool:
    return _get_env(key, str(default)).lower() == "true"


def _get_env_int(key: str, default: int) -> int:
    raw = _get_env(key, str(default))
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {key}={raw!r}, using {default}")
        return default


def _get_env_log_level(key: str, default: str = "INFO") -> str:
    level = _get_env(key, default).upper()
    if not isinstance(logging.getLevelName(level), int):
        logger.warning(f"Unknown log level for {key}={level!r}, using {default}")
        return default
    return level


@dataclass(frozen=True)
class Config:
    """Service configuration, read once from the environment."""
    service_name: str = "task-service"
    service_version: str = "1.0.0"
    log_level: str = "INFO"
    region: str = "us-east-1"
    custom_source_prefix: str = "com.custom"
    custom_detail_type_prefix: str = "custom-event"
    batch_max_workers: int = 1
    batch_deadline_margin_ms: int = 3000
    seed_sample_tasks: bool = True
    external_api_url: str = ""
    token_endpoint_url: str = ""
    token_secret_name: str = ""
    external_api_timeout_seconds: int = 30
    token_cache_ttl_seconds: int = 3300

    @property
    def external_api_configured(self) -> bool:
        return bool(self.external_api_url and self.token_endpoint_url and self.token_secret_name)


def load_config() -> Config:
    """Build Config from environment variables."""
    return Config(
        service_name=_get_env("SERVICE_NAME", "task-service"),
        service_version=_get_env("SERVICE_VERSION", "1.0.0"),
        log_level=_get_env_log_level("LOG_LEVEL", "INFO"),
        region=_get_env("AWS_REGION", "us-east-1"),
        custom_source_prefix=_get_env("CUSTOM_EVENT_SOURCE_PREFIX", "com.custom"),
        custom_detail_type_prefix=_get_env("CUSTOM_EVENT_DETAIL_TYPE_PREFIX", "custom-event"),
        batch_max_workers=max(1, _get_env_int("BATCH_MAX_WORKERS", 1)),
        batch_deadline_margin_ms=max(0, _get_env_int("BATCH_DEADLINE_MARGIN_MS", 3000)),
        seed_sample_tasks=_get_env_bool("SEED_SAMPLE_TASKS", True),
        external_api_url=_get_env("EXTERNAL_API_URL"),
        token_endpoint_url=_get_env("TOKEN_ENDPOINT_URL"),
        token_secret_name=_get_env("TOKEN_SECRET_NAME"),
        external_api_timeout_seconds=_get_env_int("EXTERNAL_API_TIMEOUT_SECONDS", 30),
        token_cache_ttl_seconds=_get_env_int("TOKEN_CACHE_TTL_SECONDS", 3300),
    )


@dataclass
class Deps:
    """
    Dependency container handed to every handler.

    Collaborators are created on first access so the module imports without
    AWS credentials. Tests pass their own collaborators through overrides.

    Usage:
        def handle_get_task(event: HttpRequestEvent, deps: Deps) -> HttpResult:
            task = deps.store.get(event.path_parameters["id"])
    """
    config: Config = field(default_factory=load_config)
    _overrides: Dict[str, Any] = field(default_factory=dict, repr=False)
    _resolved: Dict[str, Any] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False)

    def _resolve(self, name: str, factory: Callable[[], Any]) -> Any:
        # Batch workers may touch a collaborator first; build each one exactly once
        with self._lock:
            if name not in self._resolved:
                value = self._overrides.get(name)
                self._resolved[name] = value if value is not None else factory()
            return self._resolved[name]

    @cached_property
    def store(self):
        """In-memory task store."""
        from handlers.store import TaskStore
        return self._resolve("store", lambda: TaskStore(seed=self.config.seed_sample_tasks))

    @cached_property
    def secrets(self):
        """Secrets Manager client."""
        return self._resolve("secrets", lambda: boto3.client("secretsmanager", region_name=self.config.region))

    @cached_property
    def token_provider(self):
        """Bearer token provider for the outbound API."""
        from handlers.external_api import TokenProvider
        return self._resolve("token_provider", lambda: TokenProvider(
            secrets_client=self.secrets,
            secret_name=self.config.token_secret_name,
            token_endpoint_url=self.config.token_endpoint_url,
            ttl_seconds=self.config.token_cache_ttl_seconds,
            timeout=self.config.external_api_timeout_seconds,
        ))

    @cached_property
    def external_api(self):
        """Authenticated outbound HTTP client."""
        from handlers.external_api import ExternalApiClient
        return self._resolve("external_api", lambda: ExternalApiClient(
            url=self.config.external_api_url,
            token_provider=self.token_provider,
            timeout=self.config.external_api_timeout_seconds,
        ))


def create_deps(config: Config = None, **overrides) -> Deps:
    """Create a new Deps instance, optionally with explicit collaborators."""
    return Deps(config=config or load_config(), _overrides=overrides)
