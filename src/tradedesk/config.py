# src/tradedesk/config.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

log = logging.getLogger("tradedesk.config")

CONFIG_ENV = "TRADEDESK_CONFIG"
CONFIG_RELPATH = Path("config") / "tradedesk.yaml"

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(threadName)s | %(message)s"


# ============================================================
# MODELS
# ============================================================

@dataclass(frozen=True)
class MarketDataConfig:
    rest_base_url: str = "https://api.binance.com"
    ws_base_url: str = "wss://stream.binance.com:9443"
    max_streams_per_connection: int = 20
    reconnect_base_delay_sec: float = 5.0
    reconnect_max_delay_sec: float = 30.0
    reconnect_max_attempts: int = 5
    request_timeout_sec: float = 10.0
    request_max_retries: int = 3
    request_backoff_base: float = 1.5
    top_tokens_limit: int = 300


@dataclass(frozen=True)
class LedgerConfig:
    max_leverage: float = 50.0
    maintenance_margin_rate: float = 0.005
    initial_margin_rate: float = 0.01
    default_leverage: float = 5.0
    default_margin_mode: str = "cross"


@dataclass(frozen=True)
class AccountsConfig:
    demo_balance: float = 10_000.0


@dataclass(frozen=True)
class PollingConfig:
    positions_refresh_sec: float = 5.0
    balance_refresh_sec: float = 10.0
    summary_log_sec: float = 30.0


@dataclass(frozen=True)
class StorageConfig:
    pg_dsn: Optional[str] = None


@dataclass(frozen=True)
class AppConfig:
    market_data: MarketDataConfig = field(default_factory=MarketDataConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    accounts: AccountsConfig = field(default_factory=AccountsConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    session_path: str = "~/.tradedesk/session.json"
    log_level: str = "INFO"
    source_path: Optional[str] = None


# ============================================================
# LOCATE / LOAD
# ============================================================

def _find_cfg_candidate(base: Path) -> Optional[Path]:
    base = base.resolve()
    for _ in range(0, 12):
        p = (base / CONFIG_RELPATH).resolve()
        if p.exists():
            return p
        if base.parent == base:
            break
        base = base.parent
    return None


def resolve_config_path(explicit: Optional[str] = None) -> Optional[Path]:
    """
    Order: explicit argument, $TRADEDESK_CONFIG, upward search from cwd,
    upward search from this file. None when nothing is found.
    """
    for raw in (explicit, os.environ.get(CONFIG_ENV)):
        if not raw:
            continue
        cand = Path(raw).expanduser()
        cand = (Path.cwd() / cand).resolve() if not cand.is_absolute() else cand.resolve()
        if cand.exists():
            return cand
        raise FileNotFoundError(f"tradedesk config not found: {cand}")

    return _find_cfg_candidate(Path.cwd()) or _find_cfg_candidate(Path(__file__).resolve().parent)


def _section(raw: dict, name: str) -> dict:
    sec = raw.get(name) or {}
    if not isinstance(sec, dict):
        raise ValueError(f"config section '{name}' must be a mapping")
    return sec


def _build(cls, data: dict[str, Any]):
    # unknown keys are dropped with a warning instead of crashing the runner
    known = set(cls.__dataclass_fields__)
    dropped = sorted(k for k in data if k not in known)
    if dropped:
        log.warning("[CONFIG] %s: unknown keys ignored=%s", cls.__name__, dropped)
    return cls(**{k: v for k, v in data.items() if k in known})


def parse_config(raw: dict[str, Any], *, source_path: Optional[str] = None) -> AppConfig:
    raw = raw or {}
    storage = dict(_section(raw, "storage"))
    env_dsn = os.environ.get("PG_DSN")
    if env_dsn:
        storage["pg_dsn"] = env_dsn

    log_level = os.environ.get("TRADEDESK_LOG_LEVEL") or raw.get("log_level") or "INFO"

    return AppConfig(
        market_data=_build(MarketDataConfig, _section(raw, "market_data")),
        ledger=_build(LedgerConfig, _section(raw, "ledger")),
        accounts=_build(AccountsConfig, _section(raw, "accounts")),
        polling=_build(PollingConfig, _section(raw, "polling")),
        storage=_build(StorageConfig, storage),
        session_path=str(raw.get("session_path") or AppConfig.session_path),
        log_level=str(log_level).upper(),
        source_path=source_path,
    )


def load_config(path: Optional[str] = None, *, dotenv: bool = True) -> AppConfig:
    if dotenv:
        load_dotenv(override=False)

    cfg_path = resolve_config_path(path)
    if cfg_path is None:
        log.info("[CONFIG] no %s found, using defaults", CONFIG_RELPATH)
        return parse_config({})

    with cfg_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    log.info("[CONFIG] loaded %s", cfg_path)
    return parse_config(raw, source_path=str(cfg_path))


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
    )
