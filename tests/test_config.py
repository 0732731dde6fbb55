import pytest

from tradedesk.config import AppConfig, load_config, parse_config, resolve_config_path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("PG_DSN", "TRADEDESK_LOG_LEVEL", "TRADEDESK_CONFIG"):
        monkeypatch.delenv(var, raising=False)


class TestParse:
    def test_defaults(self):
        cfg = parse_config({})
        assert cfg == AppConfig()
        assert cfg.market_data.max_streams_per_connection == 20
        assert cfg.market_data.reconnect_max_attempts == 5
        assert cfg.ledger.max_leverage == 50
        assert cfg.accounts.demo_balance == 10_000
        assert cfg.storage.pg_dsn is None

    def test_sections(self):
        cfg = parse_config({
            "log_level": "debug",
            "market_data": {"reconnect_base_delay_sec": 1, "unknown_knob": 3},
            "ledger": {"max_leverage": 20},
        })
        assert cfg.log_level == "DEBUG"
        assert cfg.market_data.reconnect_base_delay_sec == 1
        assert cfg.ledger.max_leverage == 20

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("PG_DSN", "postgresql://localhost/demo")
        monkeypatch.setenv("TRADEDESK_LOG_LEVEL", "warning")
        cfg = parse_config({"storage": {"pg_dsn": "postgresql://other"}, "log_level": "INFO"})
        assert cfg.storage.pg_dsn == "postgresql://localhost/demo"
        assert cfg.log_level == "WARNING"

    def test_bad_section(self):
        with pytest.raises(ValueError):
            parse_config({"ledger": [1, 2]})


class TestLoad:
    def test_load_explicit_file(self, tmp_path):
        p = tmp_path / "td.yaml"
        p.write_text("accounts:\n  demo_balance: 2500\n", encoding="utf-8")
        cfg = load_config(str(p), dotenv=False)
        assert cfg.accounts.demo_balance == 2500
        assert cfg.source_path == str(p.resolve())

    def test_env_path(self, tmp_path, monkeypatch):
        p = tmp_path / "td.yaml"
        p.write_text("log_level: ERROR\n", encoding="utf-8")
        monkeypatch.setenv("TRADEDESK_CONFIG", str(p))
        assert load_config(dotenv=False).log_level == "ERROR"

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            resolve_config_path(str(tmp_path / "nope.yaml"))

    def test_upward_search(self, tmp_path, monkeypatch):
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "tradedesk.yaml").write_text("log_level: DEBUG\n", encoding="utf-8")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)
        assert resolve_config_path() == (tmp_path / "config" / "tradedesk.yaml").resolve()
