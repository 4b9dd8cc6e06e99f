from typing import Annotated

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources.types import NoDecode


_MIN_SESSION_SECRET_KEY_LENGTH = 32
_PLACEHOLDER_SESSION_SECRETS = frozenset({
    "change-me",
    "changeme",
    "change-me-to-random-value",
    "please-change-me",
    "your-secret-key",
})


def _split_unique(raw_values: object, *, lower: bool = False) -> tuple[str, ...] | object:
    """Turn a comma separated string or sequence into a trimmed, deduplicated tuple."""

    if raw_values is None:
        candidates: list[str] = []
    elif isinstance(raw_values, str):
        candidates = raw_values.split(",")
    else:
        try:
            candidates = list(raw_values)  # type: ignore[call-overload]
        except TypeError:
            return raw_values

    normalised: list[str] = []
    seen: set[str] = set()
    for candidate in candidates:
        if not isinstance(candidate, str):
            continue
        trimmed = candidate.strip()
        if lower:
            trimmed = trimmed.lower()
        if not trimmed or trimmed in seen:
            continue
        seen.add(trimmed)
        normalised.append(trimmed)
    return tuple(normalised)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    - environment: runtime environment (development/staging/production)
    - llm_provider: generative AI provider used for vocabulary generation
    - firestore_*: document store connection
    """

    environment: str = Field(
        default="development",
        description="Runtime environment",
    )

    # --- Session ---
    session_secret_key: str = Field(
        default="",
        description="Secret key for signing session tokens",
    )
    session_cookie_name: str = Field(
        default="kv_session",
        description="Session cookie name",
    )
    session_cookie_secure: bool = Field(
        default=False,
        description="Whether to mark the session cookie as Secure",
    )
    session_max_age_seconds: int = Field(
        default=60 * 60 * 24 * 7,
        description="Session lifetime in seconds",
    )
    disable_session_auth: bool = Field(
        default=False,
        description=(
            "Resolve every request to default_user_id instead of checking the "
            "session (development/testing only)"
        ),
    )
    default_user_id: str = Field(
        default="default_user",
        description="Owner id used when session auth is disabled",
    )

    # --- Firestore ---
    firestore_project_id: str | None = Field(
        default=None,
        description="Firestore project id (falls back to gcp_project_id)",
    )
    firestore_emulator_host: str | None = Field(
        default=None,
        description="Firestore emulator host, e.g. 127.0.0.1:8080",
    )
    gcp_project_id: str | None = Field(
        default=None,
        description="Google Cloud project id",
        validation_alias=AliasChoices("gcp_project_id", "google_cloud_project"),
    )

    # --- LLM ---
    llm_provider: str = Field(
        default="openai",
        description="LLM service provider (openai/local)",
    )
    llm_model: str = Field(
        default="gpt-4o-mini",
        description="LLM model name",
    )
    llm_temperature: float | None = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Sampling temperature for vocabulary generation",
    )
    llm_timeout_ms: int = Field(
        default=60000,
        description="Per-attempt timeout for LLM calls (ms)",
    )
    llm_max_retries: int = Field(
        default=1,
        description="Max attempts for LLM calls",
    )
    llm_max_tokens: int = Field(
        default=1500,
        description="Max tokens for LLM completion output",
    )
    openai_api_key: str | None = Field(default=None, description="OpenAI API Key")

    # --- Vocabulary generation ---
    generate_rate_limit_count: int = Field(
        default=20,
        description="Generation requests allowed per window and client IP",
    )
    generate_rate_limit_window_seconds: int = Field(
        default=15 * 60,
        description="Window length of the generation rate limit",
    )

    # --- Operations ---
    rate_limit_per_min_ip: int = Field(
        default=240,
        description="Per-IP API requests per minute",
    )
    rate_limit_per_min_user: int = Field(
        default=240,
        description="Per-user API requests per minute",
    )
    security_hsts_max_age_seconds: int = Field(
        default=63072000,
        description="Strict-Transport-Security max-age directive in seconds",
    )
    security_hsts_include_subdomains: bool = Field(
        default=True,
        description="Whether to append includeSubDomains to Strict-Transport-Security",
    )
    allowed_cors_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("http://localhost:3000", "http://127.0.0.1:3000"),
        description="Comma separated CORS origins",
        validation_alias=AliasChoices("allowed_cors_origins", "cors_allowed_origins"),
    )

    # --- Strict mode ---
    strict_mode: bool = Field(
        default=True,
        description="Fail fast on missing/invalid configuration (disable only for tests)",
    )

    # - env_file: read .env
    # - extra: ignore unused keys in .env
    # - case_sensitive: environment keys are case-insensitive
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("session_secret_key", mode="after")
    @classmethod
    def _validate_session_secret(cls, value: str) -> str:
        """Reject empty, placeholder, or short session secrets at load time."""

        secret = (value or "").strip()
        if not secret:
            raise ValueError(
                "SESSION_SECRET_KEY must be a non-empty random string",
            )

        if secret.casefold() in _PLACEHOLDER_SESSION_SECRETS:
            raise ValueError(
                "SESSION_SECRET_KEY must not use placeholder values like 'change-me'",
            )

        if len(secret) < _MIN_SESSION_SECRET_KEY_LENGTH:
            raise ValueError(
                "SESSION_SECRET_KEY must be at least 32 characters long",
            )

        return secret

    @field_validator("allowed_cors_origins", mode="before")
    @classmethod
    def _normalise_allowed_cors_origins(
        cls, raw_origins: object
    ) -> tuple[str, ...] | object:  # pragma: no cover - pydantic handles typing
        return _split_unique(raw_origins)

    @model_validator(mode="after")
    def _apply_environment_sensitive_defaults(self) -> "Settings":
        """Turn on Secure cookies in production unless explicitly configured."""

        environment_name = (self.environment or "").lower()
        is_secure_explicitly_configured = "session_cookie_secure" in self.model_fields_set
        if environment_name == "production" and not is_secure_explicitly_configured:
            self.session_cookie_secure = True
        if environment_name == "production" and self.disable_session_auth:
            raise ValueError("DISABLE_SESSION_AUTH must not be enabled in production")

        return self

    @property
    def is_development(self) -> bool:
        return (self.environment or "").strip().lower() == "development"


settings = Settings()
