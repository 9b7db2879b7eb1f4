"""Tests for Settings and seed loading."""

import json
from pathlib import Path

import pytest

from ordersub.errors import SeedFileError, SettingsError
from ordersub.json_store import JsonRecordStore
from ordersub.seed import load_seed
from ordersub.settings import DATA_DIR, Settings


class TestSettings:
    def test_defaults(self):
        settings = Settings.from_env({})

        assert settings.store == "json"
        assert settings.data_dir == DATA_DIR
        assert settings.cache_ttl == 300.0
        assert settings.session_ttl == 86400.0
        assert settings.webhook_secret == ""

    def test_reads_environment(self):
        settings = Settings.from_env(
            {
                "ORDERSUB_STORE": "pocketbase",
                "POCKETBASE_URL": "http://pb.local:8090",
                "PB_ADMIN_EMAIL": "admin@test.dev",
                "TELEGRAM_TOKEN": "123:ABC",
                "ORDERSUB_HTTP_TIMEOUT": "2.5",
                "ORDERSUB_DATA_DIR": "/tmp/ordersub",
                "ORDERSUB_LOG_LEVEL": "debug",
            }
        )

        assert settings.store == "pocketbase"
        assert settings.pocketbase_url == "http://pb.local:8090"
        assert settings.http_timeout == 2.5
        assert settings.data_dir == Path("/tmp/ordersub")
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize(
        "env",
        [
            {"ORDERSUB_STORE": "sqlite"},
            {"ORDERSUB_STORE": "pocketbase"},
            {"ORDERSUB_HTTP_TIMEOUT": "fast"},
            {"ORDERSUB_CACHE_TTL": "-1"},
            {"ORDERSUB_LOG_LEVEL": "LOUD"},
        ],
    )
    def test_invalid_values(self, env):
        with pytest.raises(SettingsError):
            Settings.from_env(env)


class TestSeed:
    def test_load_seed(self, temp_dir):
        seed_file = temp_dir / "seed.json"
        seed_file.write_text(
            json.dumps(
                {
                    "provinces": [{"name": "Tehran"}, {"name": "Fars"}],
                    "plans_new": [{"id": "m30", "plan_type": "Mobile", "days": 30, "price": 1}],
                }
            )
        )
        store = JsonRecordStore(temp_dir / "data")

        counts = load_seed(store, seed_file)

        assert counts == {"provinces": 2, "plans_new": 1}
        assert store.get("plans_new", "m30")["days"] == 30

    def test_reloading_skips_existing_ids(self, temp_dir):
        seed_file = temp_dir / "seed.json"
        seed_file.write_text(json.dumps({"plans_new": [{"id": "m30"}]}))
        store = JsonRecordStore(temp_dir / "data")

        load_seed(store, seed_file)
        counts = load_seed(store, seed_file)

        assert counts == {"plans_new": 0}
        assert len(store.list("plans_new")) == 1

    def test_shipped_example_seed_is_valid(self, temp_dir):
        example = Path(__file__).parent.parent / "seed.example.json"

        counts = load_seed(JsonRecordStore(temp_dir), example)

        assert counts["plans_new"] > 0
        assert counts["config"] > 0

    @pytest.mark.parametrize(
        "content",
        ["{broken", "[1, 2]", '{"plans_new": {"id": "x"}}', '{"plans_new": ["x"]}'],
    )
    def test_invalid_seed_files(self, temp_dir, content):
        seed_file = temp_dir / "seed.json"
        seed_file.write_text(content)

        with pytest.raises(SeedFileError):
            load_seed(JsonRecordStore(temp_dir / "data"), seed_file)

    def test_missing_seed_file(self, temp_dir):
        with pytest.raises(SeedFileError):
            load_seed(JsonRecordStore(temp_dir), temp_dir / "nope.json")
