"""microgen configuration.

Two models live here:

* :class:`ServiceConfig`: the immutable record of every substitutable value
  for one generation run.  It is built once from a service name plus caller
  overrides and then passed explicitly through the walker, renderer and
  writer.  Nothing in the engine reads configuration from ambient state.
* :class:`GeneratorSettings`: tool-level settings (where templates live,
  where output goes, which post-generation hooks run), loadable from
  environment variables.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates" / "service"

DEFAULT_MODULE_NAMESPACE = "github.com/microgen-services"
DEFAULT_AUTHOR = "Microgen Authors"
DEFAULT_VERSION = "1.0.0"

ENVIRONMENTS = ("development", "staging", "production")


class DatabaseDriver(str, Enum):
    """Database drivers the default template knows how to wire up."""

    MYSQL = "mysql"
    POSTGRES = "postgres"
    SQLITE = "sqlite"


# driver -> (default port, default user)
DRIVER_DEFAULTS: dict[DatabaseDriver, tuple[int, str]] = {
    DatabaseDriver.MYSQL: (3306, "root"),
    DatabaseDriver.POSTGRES: (5432, "postgres"),
    DatabaseDriver.SQLITE: (0, "sqlite"),
}

_DB_URL_PARTS = frozenset({"db_driver", "db_user", "db_password", "db_host", "db_port", "db_name"})
_REDIS_URL_PARTS = frozenset({"redis_host", "redis_port", "redis_db", "redis_password"})


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def compose_database_url(
    driver: DatabaseDriver,
    *,
    user: str,
    password: str,
    host: str,
    port: int,
    name: str,
) -> str:
    """Build a driver-specific connection string from individual fields."""
    if driver is DatabaseDriver.POSTGRES:
        return f"postgres://{user}:{password}@{host}:{port}/{name}?sslmode=disable"
    if driver is DatabaseDriver.SQLITE:
        return f"file:{name}.db?cache=shared"
    return f"{user}:{password}@tcp({host}:{port})/{name}?parseTime=true"


def compose_redis_url(*, host: str, port: int, db: int, password: str) -> str:
    """Build a ``redis://`` URL from individual fields."""
    auth = f":{password}@" if password else ""
    return f"redis://{auth}{host}:{port}/{db}"


# ---------------------------------------------------------------------------
# Service configuration
# ---------------------------------------------------------------------------


class ServiceConfig(BaseModel):
    """Every value a template may reference, for one generation run.

    Fields that depend on the service name or on other fields (module path,
    database name, connection URLs, driver-specific port and user) are
    derived when they are not supplied.  Empty values are treated as absent,
    so an empty override always falls back to the default.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    service_name: str = Field(..., min_length=1, description="Service identifier")
    module_name: str = Field(..., description="Module path of the generated service")
    description: str = Field(..., description="Free-text description")
    version: str = Field(default=DEFAULT_VERSION)
    author: str = Field(default=DEFAULT_AUTHOR)
    port: int = Field(default=8080, ge=1, le=65535, description="HTTP port")
    grpc_port: int = Field(default=8081, ge=1, le=65535, description="RPC port")

    db_driver: DatabaseDriver = Field(default=DatabaseDriver.MYSQL)
    db_url: str = Field(..., description="Takes precedence over the individual db fields")
    db_host: str = Field(default="localhost")
    db_port: int = Field(..., ge=0, le=65535)
    db_user: str = Field(...)
    db_password: str = Field(default="password")
    db_name: str = Field(...)

    redis_url: str = Field(..., description="Takes precedence over the individual redis fields")
    redis_host: str = Field(default="localhost")
    redis_port: int = Field(default=6379, ge=1, le=65535)
    redis_db: int = Field(default=0, ge=0, le=15)
    redis_password: str = Field(default="redis")

    environment: str = Field(default="development")

    @model_validator(mode="before")
    @classmethod
    def _fill_derived_defaults(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        values = {key: value for key, value in data.items() if not _is_empty(value)}
        name = values.get("service_name")
        if not isinstance(name, str):
            return values
        name = name.strip()
        values["service_name"] = name

        driver = DatabaseDriver(values.setdefault("db_driver", DatabaseDriver.MYSQL))
        default_port, default_user = DRIVER_DEFAULTS[driver]
        values.setdefault("module_name", f"{DEFAULT_MODULE_NAMESPACE}/{name}")
        values.setdefault("description", f"{name} microservice")
        values.setdefault("db_port", default_port)
        values.setdefault("db_user", default_user)
        values.setdefault("db_name", name.replace("-", "_"))

        if "db_url" not in values:
            values["db_url"] = compose_database_url(
                driver,
                user=values["db_user"],
                password=values.get("db_password", cls.model_fields["db_password"].default),
                host=values.get("db_host", cls.model_fields["db_host"].default),
                port=values["db_port"],
                name=values["db_name"],
            )
        if "redis_url" not in values:
            values["redis_url"] = compose_redis_url(
                host=values.get("redis_host", cls.model_fields["redis_host"].default),
                port=values.get("redis_port", cls.model_fields["redis_port"].default),
                db=values.get("redis_db", cls.model_fields["redis_db"].default),
                password=values.get("redis_password", cls.model_fields["redis_password"].default),
            )
        return values

    @property
    def is_known_environment(self) -> bool:
        return self.environment in ENVIRONMENTS


class ConfigOverrides(BaseModel):
    """Caller-supplied replacements for :class:`ServiceConfig` defaults.

    Every field is optional; ``None`` and empty strings mean "keep the
    default".
    """

    model_config = ConfigDict(extra="forbid")

    module_name: str | None = None
    description: str | None = None
    version: str | None = None
    author: str | None = None
    port: int | None = None
    grpc_port: int | None = None
    db_driver: DatabaseDriver | None = None
    db_url: str | None = None
    db_host: str | None = None
    db_port: int | None = None
    db_user: str | None = None
    db_password: str | None = None
    db_name: str | None = None
    redis_url: str | None = None
    redis_host: str | None = None
    redis_port: int | None = None
    redis_db: int | None = None
    redis_password: str | None = None
    environment: str | None = None


def new_config(service_name: str) -> ServiceConfig:
    """Return a fully populated default configuration for *service_name*."""
    if _is_empty(service_name):
        raise ValueError("service name must not be empty")
    return ServiceConfig(service_name=service_name)


def apply_overrides(
    config: ServiceConfig,
    overrides: ConfigOverrides | Mapping[str, Any],
) -> ServiceConfig:
    """Return a new configuration with every non-empty override applied.

    *config* is left untouched.  A supplied URL wins over individual
    connection fields; when only individual fields are supplied the URL is
    recomposed from them.  Changing the driver without a port or user resets
    those to the driver's defaults.
    """
    if not isinstance(overrides, ConfigOverrides):
        overrides = ConfigOverrides.model_validate(
            {key: value for key, value in overrides.items() if not _is_empty(value)}
        )
    supplied = {
        key: value
        for key, value in overrides.model_dump(exclude_none=True).items()
        if not _is_empty(value)
    }
    if not supplied:
        return config

    data = config.model_dump()
    data.update(supplied)

    if "db_driver" in supplied:
        for key in ("db_port", "db_user"):
            if key not in supplied:
                data.pop(key)
    if "db_url" not in supplied and supplied.keys() & _DB_URL_PARTS:
        data.pop("db_url")
    if "redis_url" not in supplied and supplied.keys() & _REDIS_URL_PARTS:
        data.pop("redis_url")

    return ServiceConfig.model_validate(data)


# ---------------------------------------------------------------------------
# Tool settings
# ---------------------------------------------------------------------------


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class GeneratorSettings(BaseModel):
    """Tool-level settings for the ``microgen`` command."""

    templates_dir: Path = Field(default=DEFAULT_TEMPLATE_DIR)
    output_dir: Path = Field(default=Path("."))
    init_git: bool = Field(default=True, description="Run the git hook after generation")
    init_module: bool = Field(default=True, description="Run the go module hook after generation")

    @classmethod
    def from_env(cls) -> "GeneratorSettings":
        """Build settings from environment variables.

        Recognised variables (all optional):
            MICROGEN_TEMPLATES_DIR, MICROGEN_OUTPUT_DIR,
            MICROGEN_INIT_GIT, MICROGEN_INIT_MODULE.
        """
        kwargs: dict[str, Any] = {
            "init_git": _env_flag("MICROGEN_INIT_GIT", True),
            "init_module": _env_flag("MICROGEN_INIT_MODULE", True),
        }
        if os.environ.get("MICROGEN_TEMPLATES_DIR"):
            kwargs["templates_dir"] = Path(os.environ["MICROGEN_TEMPLATES_DIR"])
        if os.environ.get("MICROGEN_OUTPUT_DIR"):
            kwargs["output_dir"] = Path(os.environ["MICROGEN_OUTPUT_DIR"])
        return cls(**kwargs)
