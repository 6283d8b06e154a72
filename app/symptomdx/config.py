"""Runtime settings for the symptomdx engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_INFERENCE_URL = "https://api-inference.huggingface.co/models/Mykesmedicus"


def _as_bool(value: str | None, *, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _inference_mode(value: str | None) -> str:
    if not value:
        return "remote"
    token = value.strip().lower().replace("-", "_")
    mapping = {
        "remote": "remote",
        "default": "remote",
        "hf": "remote",
        "huggingface": "remote",
        "local": "local",
        "mock": "local",
        "offline": "local",
        "rules": "local",
        "off": "local",
    }
    return mapping.get(token, "remote")


def _first_env(*names: str) -> str | None:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


@dataclass(frozen=True)
class Settings:
    app_name: str = field(default_factory=lambda: os.getenv("SYMPTOMDX_APP_NAME", "symptomdx-api"))

    inference_url: str = field(
        default_factory=lambda: os.getenv("SYMPTOMDX_INFERENCE_URL", DEFAULT_INFERENCE_URL)
    )
    inference_token: str | None = field(
        default_factory=lambda: _first_env(
            "HUGGINGFACE_API_TOKEN",
            "HF_TOKEN",
            "HF_API_TOKEN",
        )
    )
    inference_mode: str = field(
        default_factory=lambda: _inference_mode(os.getenv("SYMPTOMDX_INFERENCE_MODE"))
    )
    # Backward compatibility with the old USE_MOCK_AI switch.
    use_mock_ai: bool = field(default_factory=lambda: _as_bool(os.getenv("USE_MOCK_AI"), default=False))

    classify_timeout_sec: float = field(
        default_factory=lambda: float(os.getenv("SYMPTOMDX_CLASSIFY_TIMEOUT_SEC", "5"))
    )
    diagnosis_timeout_sec: float = field(
        default_factory=lambda: float(os.getenv("SYMPTOMDX_DIAGNOSIS_TIMEOUT_SEC", "10"))
    )

    # Context window
    context_chat_limit: int = field(
        default_factory=lambda: int(os.getenv("SYMPTOMDX_CONTEXT_CHAT_LIMIT", "3"))
    )

    # Persistence
    local_storage_dir: str = field(
        default_factory=lambda: os.getenv("SYMPTOMDX_LOCAL_STORAGE_DIR", ".symptomdx_local_store")
    )

    @property
    def remote_enabled(self) -> bool:
        return self.inference_mode == "remote" and not self.use_mock_ai and bool(self.inference_token)


def get_settings() -> Settings:
    return Settings()
