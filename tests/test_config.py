import os

import pytest

from deep_pagination.config import (
    DEFAULT_TARGETS,
    ConfigError,
    Target,
    TargetRegistry,
    UnknownTarget,
    env_int,
    load_scenarios,
    parse_duration,
    parse_targets,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("PAGINATION_"):
            monkeypatch.delenv(key)


@pytest.mark.parametrize(
    "raw,expected",
    [("30", 30), ("45s", 45), ("5m", 300), ("2h", 7200), ("1.5m", 90), (" 10M ", 600)],
)
def test_parse_duration(raw, expected):
    assert parse_duration(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_parse_duration_empty(raw):
    assert parse_duration(raw) is None


@pytest.mark.parametrize("raw", ["soon", "5d", "-3s", "m"])
def test_parse_duration_invalid(raw):
    with pytest.raises(ConfigError):
        parse_duration(raw)


def test_env_int_falls_back(monkeypatch):
    monkeypatch.setenv("PAGINATION_VUS", "lots")
    assert env_int("PAGINATION_VUS", 10) == 10


def test_registry_defaults():
    registry = TargetRegistry.from_env()

    assert registry.names() == ["postgres", "mysql", "valkey"]
    assert registry.resolve("MySQL").base_address == DEFAULT_TARGETS["MySQL"]
    assert "Valkey" in registry
    assert len(registry) == 3


def test_registry_unknown_target():
    registry = TargetRegistry(DEFAULT_TARGETS)

    with pytest.raises(UnknownTarget) as info:
        registry.resolve("cassandra")
    assert info.value.name == "cassandra"
    assert "postgres" in str(info.value)
    assert isinstance(info.value, LookupError)


def test_registry_from_env_strips_trailing_slash(monkeypatch):
    monkeypatch.setenv("PAGINATION_TARGETS", "pg=http://pg:8081/, kv = http://kv:8083")

    registry = TargetRegistry.from_env()

    assert [t.base_address for t in registry] == ["http://pg:8081", "http://kv:8083"]
    assert registry.resolve("kv").label == "Kv"


def test_labels_keep_mixed_case_spelling(monkeypatch):
    assert [t.label for t in TargetRegistry(DEFAULT_TARGETS)] == ["Postgres", "MySQL", "Valkey"]

    monkeypatch.setenv("PAGINATION_TARGETS", "CockroachDB=http://crdb:26257,tidb=http://tidb:4000")
    registry = TargetRegistry.from_env()

    assert registry.names() == ["cockroachdb", "tidb"]
    assert registry.resolve("COCKROACHDB").label == "CockroachDB"
    assert registry.resolve("tidb").label == "Tidb"
    assert registry.resolve("cockroachdb") == Target("cockroachdb", "http://crdb:26257")


@pytest.mark.parametrize("raw", ["postgres", "=http://x", "pg="])
def test_parse_targets_rejects_bad_entries(raw):
    with pytest.raises(ConfigError):
        parse_targets(raw)


def test_load_scenarios_defaults():
    scenarios = load_scenarios(TargetRegistry(DEFAULT_TARGETS))

    assert [s.target.name for s in scenarios] == ["postgres", "mysql", "valkey"]
    for scenario in scenarios:
        assert scenario.virtual_users == 10
        assert scenario.iterations_per_vu == 1
        assert scenario.max_duration_seconds == 600


def test_load_scenarios_overrides(monkeypatch):
    monkeypatch.setenv("PAGINATION_VUS", "4")
    monkeypatch.setenv("PAGINATION_MAX_DURATION", "90s")
    monkeypatch.setenv("PAGINATION_VALKEY_VUS", "2")
    monkeypatch.setenv("PAGINATION_VALKEY_ITERATIONS", "3")
    monkeypatch.setenv("PAGINATION_MYSQL_MAX_DURATION", "1h")

    by_name = {s.target.name: s for s in load_scenarios(TargetRegistry(DEFAULT_TARGETS))}

    assert by_name["postgres"].virtual_users == 4
    assert by_name["postgres"].max_duration_seconds == 90
    assert by_name["valkey"].virtual_users == 2
    assert by_name["valkey"].iterations_per_vu == 3
    assert by_name["mysql"].max_duration_seconds == 3600


def test_load_scenarios_subset(monkeypatch):
    monkeypatch.setenv("PAGINATION_SCENARIOS", "valkey, postgres, valkey")

    scenarios = load_scenarios(TargetRegistry(DEFAULT_TARGETS))

    assert [s.target.name for s in scenarios] == ["valkey", "postgres"]


def test_load_scenarios_unknown_target_is_fatal(monkeypatch):
    monkeypatch.setenv("PAGINATION_SCENARIOS", "postgres,mongo")

    with pytest.raises(UnknownTarget):
        load_scenarios(TargetRegistry(DEFAULT_TARGETS))


def test_load_scenarios_invalid_duration(monkeypatch):
    monkeypatch.setenv("PAGINATION_MAX_DURATION", "forever")

    with pytest.raises(ConfigError, match="PAGINATION_MAX_DURATION"):
        load_scenarios(TargetRegistry(DEFAULT_TARGETS))
