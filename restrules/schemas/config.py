"""
Special schemas for the configuration file and its properties
"""

from typing import Dict, List, Optional, Union

import pydantic


DEFAULT_SINGLETON_SEGMENTS = [
    "health",
    "login",
    "logout",
    "me",
    "profile",
    "search",
    "settings",
    "status",
    "versions"
]

DEFAULT_VERBS = [
    "add",
    "change",
    "create",
    "delete",
    "do",
    "edit",
    "fetch",
    "get",
    "insert",
    "list",
    "make",
    "modify",
    "patch",
    "post",
    "put",
    "remove",
    "retrieve",
    "save",
    "set",
    "update"
]


class GeneralConfig(pydantic.BaseModel):
    vendor: pydantic.constr(min_length=1, max_length=64, pattern=r"^[a-z0-9.-]+$") = "restrules"
    seed_sample_data: bool = True


class ServerConfig(pydantic.BaseModel):
    host: str = "127.0.0.1"
    port: pydantic.conint(gt=0, lt=65536) = 8000


class NamingConfig(pydantic.BaseModel):
    max_nesting_depth: pydantic.PositiveInt = 2
    singletons: List[pydantic.constr(min_length=1)] = DEFAULT_SINGLETON_SEGMENTS
    verbs: List[pydantic.constr(min_length=1)] = DEFAULT_VERBS


class PaginationConfig(pydantic.BaseModel):
    default_limit: pydantic.PositiveInt = 20
    max_limit: pydantic.PositiveInt = 100

    @pydantic.model_validator(mode="after")
    def enforce_limit_order(self) -> "PaginationConfig":
        if self.default_limit > self.max_limit:
            raise ValueError("Field 'default_limit' must not exceed 'max_limit'")
        return self


class CachingConfig(pydantic.BaseModel):
    max_age: pydantic.NonNegativeInt = 60
    etags: bool = True


class RateLimitConfig(pydantic.BaseModel):
    enabled: bool = True
    requests: pydantic.PositiveInt = 120
    window: pydantic.PositiveFloat = 60.0


class AuthClient(pydantic.BaseModel):
    name: pydantic.constr(min_length=1, max_length=255)
    password_hash: str
    role: pydantic.constr(min_length=1, max_length=64) = "reader"


class AuthConfig(pydantic.BaseModel):
    secret_key: Optional[pydantic.constr(min_length=16)] = None
    token_expiration_minutes: pydantic.PositiveInt = 120
    allow_weak_insecure_password_hashes: bool = False
    clients: List[AuthClient] = []

    @pydantic.field_validator("clients")
    @classmethod
    def enforce_client_constraints(cls, value: List[AuthClient]):
        if len({v.name.lower() for v in value}) != len(value):
            raise ValueError("Field 'name' must be unique")
        return value


class LoggingConfig(pydantic.BaseModel):
    version: pydantic.conint(ge=1, le=1) = 1
    disable_existing_loggers: bool = False
    incremental: bool = False
    filters: Dict[str, Dict[str, Union[str, list]]] = {
        "multipart_no_debug": {
            "()": "restrules.misc.logger.NoDebugFilter",
            "name": "multipart.multipart"
        }
    }
    formatters: Dict[str, Dict[str, str]] = {
        "default": {
            "style": "{",
            "format": "{asctime}: restrules {process}: [{levelname}] {name}: {message}",
            "datefmt": "%d.%m.%Y %H:%M:%S"
        },
        "file": {
            "style": "{",
            "format": "{asctime} ({process}): [{levelname}] {name}: {message}",
            "datefmt": "%d.%m.%Y %H:%M"
        },
        "access": {
            "()": "uvicorn.logging.AccessFormatter",
            "fmt": "%(asctime)s %(client_addr)s - \"%(request_line)s\" %(status_code)s"
        }
    }
    loggers: Dict[str, dict] = {}
    handlers: Dict[str, Dict[str, Union[str, list]]] = {
        "default": {
            "level": "INFO",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "formatter": "default",
            "filters": ["multipart_no_debug"]
        },
        "file": {
            "level": "DEBUG",
            "class": "logging.FileHandler",
            "filename": "./restrules.log",
            "formatter": "file",
            "filters": ["multipart_no_debug"]
        },
        "access": {
            "level": "INFO",
            "class": "logging.FileHandler",
            "filename": "./access.log",
            "formatter": "access"
        }
    }
    root: dict = {
        "level": "INFO",
        "handlers": ["default", "file"]
    }


class CoreConfig(pydantic.BaseModel):
    general: GeneralConfig = GeneralConfig()
    server: ServerConfig = ServerConfig()
    naming: NamingConfig = NamingConfig()
    pagination: PaginationConfig = PaginationConfig()
    caching: CachingConfig = CachingConfig()
    rate_limit: RateLimitConfig = RateLimitConfig()
    auth: AuthConfig = AuthConfig()
    logging: LoggingConfig = LoggingConfig()
