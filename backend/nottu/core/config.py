# /backend/nottu/core/config.py

import json
import logging
from typing import Literal
from urllib.parse import urlparse

from pydantic import (
    AliasChoices,
    Field,
    PostgresDsn,
    RedisDsn,
    computed_field,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", case_sensitive=False
    )

    # --- Environment & Debug ---
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development", validation_alias=AliasChoices("APP_ENV", "NODE_ENV")
    )
    DEBUG: bool = Field(default=False, validation_alias=AliasChoices("DEBUG_MODE", "DEBUG"))
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
    )

    # --- Server Configuration ---
    SERVER_HOST: str = Field(default="0.0.0.0", validation_alias="SERVER_HOST")
    SERVER_PORT: int = Field(default=5000, validation_alias=AliasChoices("SERVER_PORT", "PORT"))
    FRONTEND_URL: str = Field(
        default="http://localhost:3000",
        description="Browser origin of the frontend; also the WebAuthn fallback origin.",
        validation_alias="FRONTEND_URL",
    )

    # --- Core Application Settings ---
    APP_NAME: str = Field(default="Nottu", validation_alias="APP_NAME")
    APP_VERSION: str = Field(default="0.1.0", validation_alias="APP_VERSION")
    APP_DESCRIPTION: str = Field(
        default="Passkey (WebAuthn) authentication API.",
        validation_alias="APP_DESCRIPTION",
    )
    API_PREFIX: str = Field(default="/api", validation_alias="API_PREFIX")

    # --- JWT & Session Settings ---
    SECRET_KEY: str = Field(validation_alias=AliasChoices("JWT_SECRET", "SECRET_KEY"))
    ALGORITHM: str = Field(default="HS256", validation_alias="ALGORITHM")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(
        default=7 * 24 * 60, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES"
    )

    # --- WebAuthn / Relying Party ---
    WEBAUTHN_RP_NAME: str = Field(default="Nottu", validation_alias="WEBAUTHN_RP_NAME")
    WEBAUTHN_RP_ID: str | None = Field(
        default=None,
        description="Relying party id (domain). Derived from FRONTEND_URL when unset.",
        validation_alias=AliasChoices("WEBAUTHN_RP_ID", "RP_ID"),
    )
    WEBAUTHN_ORIGIN: str | None = Field(
        default=None,
        description="Expected origin of WebAuthn responses. Defaults to FRONTEND_URL.",
        validation_alias=AliasChoices("WEBAUTHN_ORIGIN", "EXPECTED_ORIGIN"),
    )
    WEBAUTHN_CHALLENGE_TTL_SECONDS: int = Field(
        default=300, validation_alias="WEBAUTHN_CHALLENGE_TTL_SECONDS"
    )
    CHALLENGE_PURGE_INTERVAL_SECONDS: int = Field(
        default=900, validation_alias="CHALLENGE_PURGE_INTERVAL_SECONDS"
    )

    # --- Profile photos (object storage) ---
    OBJECT_STORAGE_ENDPOINT_URL: str | None = Field(
        default=None,
        description="S3-compatible endpoint (e.g. MinIO). Unset means AWS S3.",
        validation_alias=AliasChoices("OBJECT_STORAGE_ENDPOINT_URL", "S3_ENDPOINT_URL"),
    )
    OBJECT_STORAGE_BUCKET: str | None = Field(
        default=None,
        description="Bucket holding profile photos. Photo keys are not signed without it.",
        validation_alias=AliasChoices("OBJECT_STORAGE_BUCKET", "AWS_S3_BUCKET", "MINIO_BUCKET"),
    )
    OBJECT_STORAGE_REGION: str = Field(
        default="us-east-1", validation_alias=AliasChoices("OBJECT_STORAGE_REGION", "AWS_REGION")
    )
    OBJECT_STORAGE_ACCESS_KEY_ID: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "OBJECT_STORAGE_ACCESS_KEY_ID", "AWS_ACCESS_KEY_ID", "MINIO_ACCESS_KEY"
        ),
    )
    OBJECT_STORAGE_SECRET_ACCESS_KEY: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "OBJECT_STORAGE_SECRET_ACCESS_KEY", "AWS_SECRET_ACCESS_KEY", "MINIO_SECRET_KEY"
        ),
    )
    OBJECT_STORAGE_SESSION_TOKEN: str | None = Field(
        default=None,
        validation_alias=AliasChoices("OBJECT_STORAGE_SESSION_TOKEN", "AWS_SESSION_TOKEN"),
    )
    PROFILE_PHOTO_URL_TTL_SECONDS: int = Field(
        default=86400, validation_alias="PROFILE_PHOTO_URL_TTL_SECONDS"
    )

    # --- Logging ---
    SECURITY_LOG_PATH: str | None = Field(default=None, validation_alias="SECURITY_LOG_PATH")

    # --- Database Settings ---
    PRIMARY_DATABASE_URL_ENV: PostgresDsn | None = Field(
        default=None, validation_alias="DATABASE_URL"
    )
    POSTGRES_SERVER: str = Field(
        default="localhost", validation_alias=AliasChoices("POSTGRES_SERVER", "DB_HOST")
    )
    POSTGRES_USER: str = Field(
        default="postgres", validation_alias=AliasChoices("POSTGRES_USER", "DB_USER")
    )
    POSTGRES_PASSWORD: str = Field(
        default="postgres", validation_alias=AliasChoices("POSTGRES_PASSWORD", "DB_PASSWORD")
    )
    POSTGRES_DB: str = Field(default="nottu", validation_alias=AliasChoices("POSTGRES_DB", "DB_NAME"))
    POSTGRES_PORT: int = Field(default=5432, validation_alias=AliasChoices("POSTGRES_PORT", "DB_PORT"))
    DB_POOL_SIZE: int = Field(default=20, validation_alias="DB_POOL_SIZE")
    DB_ECHO: bool = Field(default=False, validation_alias="DB_ECHO")

    # --- Celery & Redis Settings ---
    REDIS_HOST: str = Field(default="redis", validation_alias="REDIS_HOST")
    REDIS_PORT: int = Field(default=6379, validation_alias="REDIS_PORT")
    CELERY_BROKER_URL_ENV: RedisDsn | None = Field(
        default=None, validation_alias="CELERY_BROKER_URL"
    )
    CELERY_RESULT_BACKEND_ENV: RedisDsn | None = Field(
        default=None, validation_alias="CELERY_RESULT_BACKEND"
    )
    TIMEZONE: str = Field(default="UTC", validation_alias="CELERY_TIMEZONE")

    # --- Fields for complex parsing ---
    backend_cors_origins_env_str: str | None = Field(
        default='["http://localhost:3000"]',
        validation_alias=AliasChoices("BACKEND_CORS_ORIGINS", "CORS_ORIGIN"),
    )

    # --- Private storage for parsed values ---
    _parsed_backend_cors_origins: list[str] = []

    def _parse_string_list_input_helper(
        self, input_str: str | None, field_name_for_log: str
    ) -> list[str]:
        parsed_list: list[str] = []
        if not input_str or not input_str.strip():
            return parsed_list
        try:
            loaded_items = json.loads(input_str)
            if isinstance(loaded_items, list):
                parsed_list = [str(item).strip() for item in loaded_items if str(item).strip()]
            else:
                parsed_list = [item.strip() for item in input_str.split(",") if item.strip()]
        except json.JSONDecodeError:
            logger.debug(
                "JSONDecodeError for %s. Falling back to comma separation.", field_name_for_log
            )
            parsed_list = [item.strip() for item in input_str.split(",") if item.strip()]

        if not parsed_list:
            logger.warning(
                "Env var %s (value: '%s') resulted in an empty parsed list.",
                field_name_for_log,
                input_str,
            )
        return parsed_list

    @model_validator(mode="after")
    def _process_complex_fields_and_debug_overrides(self) -> "Settings":
        self._parsed_backend_cors_origins = self._parse_string_list_input_helper(
            self.backend_cors_origins_env_str, "BACKEND_CORS_ORIGINS"
        )

        if self.DEBUG:
            if self.LOG_LEVEL != "DEBUG":
                logger.info("DEBUG mode is ON. Overriding LOG_LEVEL to DEBUG.")
                self.LOG_LEVEL = "DEBUG"
            if not self.DB_ECHO:
                logger.info("DEBUG mode is ON. Overriding DB_ECHO to True.")
                self.DB_ECHO = True

        if self.API_PREFIX and self.API_PREFIX != "/":
            self.API_PREFIX = "/" + self.API_PREFIX.strip("/")
        else:
            self.API_PREFIX = ""
        return self

    @property
    def BACKEND_CORS_ORIGINS(self) -> list[str]:
        return self._parsed_backend_cors_origins

    @property
    def webauthn_rp_id(self) -> str:
        if self.WEBAUTHN_RP_ID:
            return self.WEBAUTHN_RP_ID
        return urlparse(self.FRONTEND_URL).hostname or "localhost"

    @property
    def webauthn_origin(self) -> str:
        if self.WEBAUTHN_ORIGIN:
            return self.WEBAUTHN_ORIGIN
        return self.FRONTEND_URL.rstrip("/")

    def _build_postgres_dsn(self, base_dsn: PostgresDsn | None, use_async: bool) -> PostgresDsn:
        driver_prefix = "postgresql+asyncpg://" if use_async else "postgresql://"
        alt_driver_prefix = "postgresql://" if use_async else "postgresql+asyncpg://"

        if base_dsn:
            db_url_str = str(base_dsn)
            if db_url_str.startswith(driver_prefix):
                return base_dsn
            elif db_url_str.startswith(alt_driver_prefix):
                return PostgresDsn(db_url_str.replace(alt_driver_prefix, driver_prefix, 1))
            elif "://" in db_url_str:
                return PostgresDsn(driver_prefix + db_url_str.split("://", 1)[1])
            else:
                raise ValueError(f"Malformed base DSN for DB (missing scheme?): {db_url_str}")
        return PostgresDsn(
            f"{driver_prefix}{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @computed_field(repr=False)
    @property
    def ASYNC_SQLALCHEMY_DATABASE_URL(self) -> PostgresDsn:
        return self._build_postgres_dsn(self.PRIMARY_DATABASE_URL_ENV, use_async=True)

    @property
    def CELERY_BROKER_URL(self) -> RedisDsn | None:
        if self.CELERY_BROKER_URL_ENV:
            return self.CELERY_BROKER_URL_ENV
        if self.REDIS_HOST:
            try:
                return RedisDsn(f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/0")
            except Exception as e:
                logger.error(f"Failed to build CELERY_BROKER_URL from components: {e}")
                return None
        return None

    @property
    def CELERY_RESULT_BACKEND(self) -> RedisDsn | None:
        if self.CELERY_RESULT_BACKEND_ENV:
            return self.CELERY_RESULT_BACKEND_ENV
        if self.REDIS_HOST:
            try:
                return RedisDsn(f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/1")
            except Exception as e:
                logger.error(f"Failed to build CELERY_RESULT_BACKEND from components: {e}")
                return None
        return None


settings = Settings()
