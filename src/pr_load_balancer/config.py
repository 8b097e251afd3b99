import os
from dataclasses import dataclass

from .allocator import DEFAULT_CONCURRENCY_CAP, DEFAULT_TARGET_REVIEWERS

DEFAULT_API_VERSION = "7.1"


@dataclass(frozen=True)
class Settings:
    api_version: str = DEFAULT_API_VERSION
    target_reviewers: int = DEFAULT_TARGET_REVIEWERS
    concurrency_cap: int = DEFAULT_CONCURRENCY_CAP
    max_workers: int = 8
    page_size: int = 100
    request_timeout: int = 30


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}.") from None


def load_settings() -> Settings:
    return Settings(
        api_version=os.getenv("AZDO_API_VERSION") or DEFAULT_API_VERSION,
        target_reviewers=_int_env("PRLB_TARGET_REVIEWERS", DEFAULT_TARGET_REVIEWERS),
        concurrency_cap=_int_env("PRLB_CONCURRENCY_CAP", DEFAULT_CONCURRENCY_CAP),
        max_workers=max(_int_env("PRLB_MAX_WORKERS", 8), 1),
        page_size=max(_int_env("PRLB_PAGE_SIZE", 100), 1),
        request_timeout=_int_env("PRLB_REQUEST_TIMEOUT", 30),
    )
