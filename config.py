"""Environment-driven configuration for the events ingestor."""
import math
import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from fetcher.ticketmaster_client import clamp_page_size
from processor.errors import ConfigError


def _flag(raw: Optional[str], default: bool) -> bool:
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ('1', 'true')


def _int(env: Mapping[str, str], name: str, default: int, positive: bool = True) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if positive and value <= 0:
        raise ConfigError(f"{name} must be greater than zero, got {raw!r}")
    return value


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if not math.isfinite(value) or value <= 0:
        raise ConfigError(f"{name} must be a finite number greater than zero, got {raw!r}")
    return value


@dataclass
class IngestConfig:
    """Settings for one ingestor process."""
    api_key: str
    business_id: str
    preferred_user_id: Optional[str] = None
    cities: List[str] = field(default_factory=lambda: ['Cape Town'])
    country_code: str = 'ZA'
    fetch_window_days: int = 120
    page_size: int = 100
    retention_days: int = 1
    events_table_name: str = 'events-and-specials'
    users_table_name: str = 'users'
    businesses_table_name: str = 'businesses'
    timeout_seconds: int = 30
    schedule_interval_hours: float = 6
    run_on_start: bool = False
    enabled: bool = True
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls, env: Mapping[str, str] = None) -> 'IngestConfig':
        """
        Read configuration from environment variables.

        Args:
            env: Mapping to read from (default: os.environ)

        Returns:
            IngestConfig instance

        Raises:
            ConfigError: If a required variable is missing or malformed
        """
        env = os.environ if env is None else env

        api_key = env.get('TICKETMASTER_API_KEY')
        business_id = env.get('SYSTEM_BUSINESS_ID')
        if not api_key:
            raise ConfigError("Missing TICKETMASTER_API_KEY")
        if not business_id:
            raise ConfigError("Missing SYSTEM_BUSINESS_ID")

        cities = [c.strip() for c in env.get('CITIES', 'Cape Town').split(',') if c.strip()]
        if not cities:
            raise ConfigError("CITIES must name at least one city")

        return cls(
            api_key=api_key,
            business_id=business_id,
            preferred_user_id=env.get('SYSTEM_USER_ID') or None,
            cities=cities,
            country_code=env.get('COUNTRY_CODE', 'ZA'),
            fetch_window_days=_int(env, 'FETCH_WINDOW_DAYS', 120),
            page_size=clamp_page_size(_int(env, 'PAGE_SIZE', 100, positive=False)),
            retention_days=_int(env, 'RETENTION_DAYS', 1),
            events_table_name=env.get('EVENTS_TABLE_NAME', 'events-and-specials'),
            users_table_name=env.get('USERS_TABLE_NAME', 'users'),
            businesses_table_name=env.get('BUSINESSES_TABLE_NAME', 'businesses'),
            timeout_seconds=_int(env, 'TIMEOUT_SECONDS', 30),
            schedule_interval_hours=_float(env, 'SCHEDULE_INTERVAL_HOURS', 6),
            run_on_start=_flag(env.get('RUN_ON_START'), False),
            enabled=_flag(env.get('ENABLE_TICKETMASTER_INGEST'), True),
            log_level=env.get('LOG_LEVEL', 'INFO')
        )
