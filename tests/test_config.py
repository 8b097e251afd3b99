import pytest

from pr_load_balancer.config import Settings, load_settings


def test_load_settings_defaults(monkeypatch):
    for name in (
        "AZDO_API_VERSION",
        "PRLB_TARGET_REVIEWERS",
        "PRLB_CONCURRENCY_CAP",
        "PRLB_MAX_WORKERS",
        "PRLB_PAGE_SIZE",
        "PRLB_REQUEST_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)

    assert load_settings() == Settings()


def test_load_settings_reads_environment(monkeypatch):
    monkeypatch.setenv("AZDO_API_VERSION", "7.0")
    monkeypatch.setenv("PRLB_CONCURRENCY_CAP", "3")
    monkeypatch.setenv("PRLB_MAX_WORKERS", "0")

    settings = load_settings()

    assert settings.api_version == "7.0"
    assert settings.concurrency_cap == 3
    assert settings.max_workers == 1


def test_load_settings_rejects_non_integer(monkeypatch):
    monkeypatch.setenv("PRLB_TARGET_REVIEWERS", "two")

    with pytest.raises(RuntimeError, match="PRLB_TARGET_REVIEWERS"):
        load_settings()
