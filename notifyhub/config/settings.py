"""Application settings loaded from environment variables."""

import json
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources.providers.dotenv import DotEnvSettingsSource
from pydantic_settings.sources.providers.env import EnvSettingsSource

VALID_TELEGRAM_PARSE_MODES = ("", "Markdown", "MarkdownV2", "HTML")

# Fields that accept comma-separated strings in .env
_COMMA_LIST_FIELDS = frozenset({"ntfy_topics", "ntfy_tags", "telegram_chat_ids"})


class _CommaListSourceMixin:
    """Allow comma-separated values for list fields instead of requiring JSON."""

    def prepare_field_value(
        self, field_name: str, field: object, value: object, value_is_complex: bool
    ) -> object:
        if field_name in _COMMA_LIST_FIELDS and isinstance(value, str):
            try:
                parsed = json.loads(value)
            except (json.JSONDecodeError, ValueError):
                parsed = None
            # Scalars such as "20240101" or "true" are single list items.
            if isinstance(parsed, list):
                return parsed
            return [v.strip() for v in value.split(",") if v.strip()]
        return super().prepare_field_value(field_name, field, value, value_is_complex)


class _Env(_CommaListSourceMixin, EnvSettingsSource):
    pass


class _DotEnv(_CommaListSourceMixin, DotEnvSettingsSource):
    pass


class Settings(BaseSettings):
    """Credentials, recipients and dispatch policy for the bundled backends."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: str = "notifyhub"
    request_timeout_seconds: float = Field(default=10.0, gt=0)

    dispatch_dry_run: bool = False
    dispatch_continue_on_error: bool = False
    dispatch_concurrency: int = Field(default=1, ge=1, le=64)
    dispatch_timeout_seconds: float | None = Field(default=None, gt=0)

    ntfy_token: str = ""
    ntfy_api_base_url: str = "https://ntfy.sh/"
    ntfy_topics: list[str] = Field(default_factory=list)
    ntfy_priority: int = Field(default=3, ge=1, le=5)
    ntfy_tags: list[str] = Field(default_factory=list)

    telegram_bot_token: str = ""
    telegram_chat_ids: list[int] = Field(default_factory=list)
    telegram_parse_mode: str = "Markdown"

    @field_validator("ntfy_topics", "ntfy_tags", mode="before")
    @classmethod
    def _parse_string_list(cls, value: object) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, (int, float)):
            return [str(value)]
        if isinstance(value, list):
            return [str(item).strip() for item in value if str(item).strip()]
        raise ValueError("value must be a comma-separated string or list")

    @field_validator("telegram_chat_ids", mode="before")
    @classmethod
    def _parse_chat_ids(cls, value: object) -> list[int]:
        if value is None:
            return []
        if isinstance(value, int):
            return [value]
        if isinstance(value, str):
            raw_items: list[object] = [item for item in value.split(",")]
        elif isinstance(value, list):
            raw_items = list(value)
        else:
            raise ValueError("telegram_chat_ids must be a comma-separated string or list")

        chat_ids: list[int] = []
        for raw_item in raw_items:
            text = str(raw_item).strip()
            if not text:
                continue
            try:
                chat_ids.append(int(text))
            except ValueError as exc:
                raise ValueError(f"Invalid Telegram chat ID: {text!r}") from exc
        return chat_ids

    @field_validator("telegram_parse_mode", mode="after")
    @classmethod
    def _validate_parse_mode(cls, value: str) -> str:
        for mode in VALID_TELEGRAM_PARSE_MODES:
            if value.lower() == mode.lower():
                return mode
        raise ValueError(
            f"Invalid telegram_parse_mode: {value!r}. "
            f"Valid values are: {', '.join(repr(m) for m in VALID_TELEGRAM_PARSE_MODES)}"
        )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            _Env(settings_cls),
            _DotEnv(
                settings_cls,
                env_file=settings_cls.model_config.get("env_file", ".env"),
                env_file_encoding=settings_cls.model_config.get(
                    "env_file_encoding", "utf-8"
                ),
            ),
            file_secret_settings,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()
