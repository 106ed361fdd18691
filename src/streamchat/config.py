import logging
import os

from pydantic import BaseModel, Field

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4"

LOG_FORMAT = '%(asctime)s:%(name)s:%(levelname)s:%(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ProviderConfig(BaseModel):
    """Connection settings for one OpenAI-compatible provider.

    Args:
        base_url: API root, e.g. ``https://api.openai.com/v1``.  Trailing
            slashes are tolerated.
        api_key: Sent as a bearer token.
        model: Model id used for every request.
        name: Display name of the provider.
        system_prompt: Prepended as a system message to each streaming
            request when non-blank.
        temperature: Sampling temperature.  Defaults to ``None``, which
            leaves it out of the request so the server's own default
            applies; pass e.g. ``0.7`` to pin it.
        max_tokens: Completion ceiling; omitted when ``None``.
    """

    base_url: str = DEFAULT_BASE_URL
    api_key: str = Field(default="", repr=False)
    model: str = DEFAULT_MODEL
    name: str = ""
    system_prompt: str = ""
    temperature: float | None = None
    max_tokens: int | None = None
    connect_timeout: float = 30.0
    read_timeout: float = 60.0
    write_timeout: float = 30.0

    @property
    def is_configured(self) -> bool:
        return bool(
            self.base_url.strip() and self.api_key.strip() and self.model.strip()
        )

    def normalized_base_url(self) -> str:
        return self.base_url.rstrip("/")

    @classmethod
    def from_env(cls, **overrides) -> "ProviderConfig":
        values = {
            "base_url": os.getenv("STREAMCHAT_BASE_URL", DEFAULT_BASE_URL),
            "api_key": os.getenv("STREAMCHAT_API_KEY") or os.getenv("OPENAI_API_KEY", ""),
            "model": os.getenv("STREAMCHAT_MODEL", DEFAULT_MODEL),
            "system_prompt": os.getenv("STREAMCHAT_SYSTEM_PROMPT", ""),
        }
        values.update(overrides)
        return cls(**values)


class WebSearchConfig(BaseModel):
    enabled: bool = False
    api_key: str = Field(default="", repr=False)
    provider: str = "brave"

    @property
    def is_active(self) -> bool:
        return self.enabled and bool(self.api_key.strip())

    @classmethod
    def from_env(cls) -> "WebSearchConfig":
        enabled = os.getenv("STREAMCHAT_SEARCH_ENABLED", "").strip().lower()
        return cls(
            enabled=enabled in ("1", "true", "yes", "on"),
            api_key=os.getenv("STREAMCHAT_SEARCH_API_KEY", ""),
            provider=os.getenv("STREAMCHAT_SEARCH_PROVIDER", "brave"),
        )


def configure_logging(level: int = logging.INFO, log_file: str | None = None) -> None:
    """Install streamchat's log format on the root logger.

    Library modules only create loggers; applications call this once.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )
