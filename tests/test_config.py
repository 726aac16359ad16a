from __future__ import annotations

import pytest

from scripts.namesearch import config as config_module
from scripts.namesearch.config import PipelineOptions, load_config, load_fetch_config
from scripts.namesearch.secrets import resolve_database_url, resolve_secret

ENV_VARS = (
    "DATABASE_URL",
    "PG_HOST",
    "PG_PORT",
    "PG_USER",
    "PG_DATABASE",
    "PG_PASSWORD",
    "DIRECTORY_API_URL",
    "INDEXER_PAGE_CAP",
    "INDEXER_BATCH_SIZE",
    "INDEXER_BATCH_DELAY",
    "INDEXER_LOOKUP_TIMEOUT",
    "INDEXER_COLLECTION_PREFIX",
    "INDEXER_REBUILD_INTERVAL_HOURS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_module, "load_dotenv", lambda: None)


def test_defaults_fetch_everything() -> None:
    config = load_config()

    assert config.pipeline == PipelineOptions(
        page_cap=None, batch_size=5, inter_batch_delay=0.0, lookup_timeout=30.0
    )
    assert config.directory.api_base_url == "https://core.blockstack.org"
    assert config.collections.namespace == "search_namespace"
    assert config.collections.name_cache == "search_people_cache"
    assert config.database.url.startswith("postgresql://namesearch:")


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INDEXER_PAGE_CAP", "3")
    monkeypatch.setenv("INDEXER_BATCH_SIZE", "20")
    monkeypatch.setenv("INDEXER_BATCH_DELAY", "1.5")
    monkeypatch.setenv("INDEXER_COLLECTION_PREFIX", "")
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db/x")

    config = load_config()

    assert config.pipeline.page_cap == 3
    assert config.pipeline.batch_size == 20
    assert config.pipeline.inter_batch_delay == 1.5
    assert config.collections.namespace == "namespace"
    assert config.database.url == "postgresql://u:p@db/x"


@pytest.mark.parametrize(
    "kwargs",
    [{"page_cap": -1}, {"batch_size": 0}, {"inter_batch_delay": -0.1}, {"lookup_timeout": 0}],
)
def test_invalid_options_rejected(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        PipelineOptions(**kwargs)


def test_override_only_applies_given_values() -> None:
    base = PipelineOptions(page_cap=4, batch_size=10, inter_batch_delay=2.0)

    assert base.override() == base
    assert base.override(batch_size=3) == PipelineOptions(page_cap=4, batch_size=3, inter_batch_delay=2.0)
    assert base.override(page_cap=0).page_cap == 0


def test_plain_secret_values_pass_through(monkeypatch: pytest.MonkeyPatch) -> None:
    assert resolve_secret("hunter2") == "hunter2"
    monkeypatch.setenv("PG_HOST", "db.internal")
    monkeypatch.setenv("PG_PASSWORD", "pw")

    assert resolve_database_url() == "postgresql://namesearch:pw@db.internal:5432/namesearch"


def test_fetch_config_skips_database_secrets(monkeypatch: pytest.MonkeyPatch) -> None:
    def unreachable_secret_store() -> str:
        raise RuntimeError("secret store unreachable")

    monkeypatch.setattr(config_module, "resolve_database_url", unreachable_secret_store)
    monkeypatch.setenv("DIRECTORY_API_URL", "http://directory.test")
    monkeypatch.setenv("INDEXER_BATCH_SIZE", "7")

    directory, options = load_fetch_config()

    assert directory.api_base_url == "http://directory.test"
    assert options.batch_size == 7
    assert options.page_cap is None
    with pytest.raises(RuntimeError):
        load_config()
