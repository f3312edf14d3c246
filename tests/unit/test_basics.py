import csv
from pathlib import Path
from time import sleep

from scripts import generate_data
from storebench import config
from storebench.coercion import coerce
from storebench.domain.models import CoercedRecord
from storebench.engines import available_engines, build_engine
from storebench.loader import read_source
from storebench.schema import PEOPLE_SCHEMA
from storebench.utils import profiler


def test_get_settings_defaults():
    settings = config.get_settings()
    assert settings.pg_host == "localhost"
    assert settings.pg_port == 5432
    assert settings.clickhouse_port == 8123
    assert settings.mongo_uri.startswith("mongodb://")
    assert settings.default_table == "people"
    assert settings.load_batch_size > 0
    assert settings.failure_sample_limit == 20


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("LOAD_BATCH_SIZE", "500")
    monkeypatch.setenv("LOAD_TOLERANCE", "3")
    config.get_settings.cache_clear()
    settings = config.get_settings()
    assert settings.load_batch_size == 500
    assert settings.load_tolerance == 3


def test_profile_block_measures_time():
    with profiler.profile_block("sleep") as stats:
        sleep(0.05)
    assert stats.duration_seconds >= 0.05
    if stats.cpu_percent is not None:
        assert isinstance(stats.cpu_percent, float)


def test_engine_registry_in_declaration_order():
    assert available_engines() == ["postgres", "clickhouse", "mongodb"]
    engine = build_engine("clickhouse")
    assert engine.name == "clickhouse"


def test_generate_data_writes_loadable_csv(tmp_path: Path):
    csv_path = tmp_path / "people.csv"
    generate_data._generate_rows_csv(csv_path, rows=50, batch_size=7, seed=123)
    assert csv_path.exists()
    with csv_path.open("r", newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    # header + 50 rows
    assert len(rows) == 51
    assert rows[0] == ["user_id", "username", "sex", "email", "phone", "dob", "job_title"]

    outcomes = [coerce(r, PEOPLE_SCHEMA, "postgres") for r in read_source(csv_path)]
    assert all(isinstance(o, CoercedRecord) for o in outcomes)


def test_generate_data_is_deterministic(tmp_path: Path):
    first = tmp_path / "a.csv"
    second = tmp_path / "b.csv"
    generate_data._generate_rows_csv(first, rows=20, batch_size=5, seed=9)
    generate_data._generate_rows_csv(second, rows=20, batch_size=5, seed=9)
    assert first.read_text() == second.read_text()
