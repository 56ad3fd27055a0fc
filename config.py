"""
Cabo Bite Pipeline Configuration
Typed configuration objects built from environment tunables and an optional config.json
"""
import os
import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional
from dotenv import load_dotenv

from bite_scanner.scanner import ConfigurationError

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_PATH = os.path.join('public', 'data', 'biteReports.json')
DEFAULT_USER_AGENT = "CaboMarlinOpsBot/1.0 (+https://github.com/evbarleyg/cabo-marlin-ops; data refresh bot)"
DEFAULT_SCHEDULE_AT = "05:30"

DEFAULT_SOURCE_CONFIDENCE = {
    "El Budster": 0.9,
    "Pisces": 0.85,
    "Cabo Sportfishing Reports": 0.75,
    "FishingBooker": 0.6,
}
DEFAULT_CONFIDENCE = 0.65


@dataclass
class CrawlConfig:
    """Pagination limits per source family and stop thresholds"""
    max_pages_listing: int = 12
    max_pages_archive: int = 30
    empty_streak: int = 2
    stale_streak: int = 4


@dataclass
class HttpConfig:
    """Fetch client politeness settings"""
    min_delay_ms: int = 500
    max_delay_ms: int = 1000
    request_timeout_ms: int = 15000
    user_agent: str = DEFAULT_USER_AGENT


@dataclass
class OutputConfig:
    """Snapshot output settings"""
    output_path: str = DEFAULT_OUTPUT_PATH
    history_window_days: int = 365
    max_failures: int = 50


@dataclass
class SourceWeights:
    """Per-source confidence used for the weighted marlin signal"""
    confidence: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SOURCE_CONFIDENCE))
    default: float = DEFAULT_CONFIDENCE


@dataclass
class Config:
    """Main configuration object"""
    crawl: CrawlConfig = field(default_factory=CrawlConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    weights: SourceWeights = field(default_factory=SourceWeights)
    schedule_at: str = DEFAULT_SCHEDULE_AT


# Global config instance
_config_instance: Optional[Config] = None


def env_positive_int(name: str, default: int) -> int:
    """Read a positive integer tunable; anything else logs a warning and yields the default"""
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not an integer, using {default}")
        return default
    if value <= 0:
        logger.warning(f"Ignoring {name}={raw!r}: must be positive, using {default}")
        return default
    return value


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value.strip() if value and value.strip() else default


def _read_config_file(config_path: str) -> Dict:
    if not config_path or not os.path.exists(config_path):
        logger.debug(f"No config file at {config_path}, using defaults")
        return {}
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in configuration file {config_path}: {e}")
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {config_path} must contain a JSON object")
    return data


def _load_weights(section: Dict) -> SourceWeights:
    weights = SourceWeights()
    table = section.get('source_confidence')
    if table is not None:
        if not isinstance(table, dict):
            raise ConfigurationError("bite_scanner.source_confidence must be an object of source -> weight")
        for source, weight in table.items():
            if not isinstance(weight, (int, float)) or not 0 <= weight <= 1:
                raise ConfigurationError(f"Confidence for {source!r} must be a number in [0, 1], got {weight!r}")
        weights.confidence = {str(source): float(weight) for source, weight in table.items()}
    default = section.get('default_confidence')
    if default is not None:
        if not isinstance(default, (int, float)) or not 0 <= default <= 1:
            raise ConfigurationError(f"bite_scanner.default_confidence must be in [0, 1], got {default!r}")
        weights.default = float(default)
    return weights


def load_config(config_path: str = "config.json") -> Config:
    """
    Load configuration from environment tunables and config.json

    Args:
        config_path: Path to config.json file (optional, missing file means defaults)

    Returns:
        Typed Config object
    """
    global _config_instance

    section = _read_config_file(config_path).get('bite_scanner', {})
    if not isinstance(section, dict):
        raise ConfigurationError("bite_scanner section must be an object")

    crawl_defaults = CrawlConfig()
    http_defaults = HttpConfig()
    output_defaults = OutputConfig()

    crawl = CrawlConfig(
        max_pages_listing=env_positive_int('BITE_MAX_PAGES_LISTING', crawl_defaults.max_pages_listing),
        max_pages_archive=env_positive_int('BITE_MAX_PAGES_ARCHIVE', crawl_defaults.max_pages_archive),
        empty_streak=env_positive_int('BITE_EMPTY_STREAK', crawl_defaults.empty_streak),
        stale_streak=env_positive_int('BITE_STALE_STREAK', crawl_defaults.stale_streak),
    )
    http = HttpConfig(
        min_delay_ms=env_positive_int('BITE_MIN_DELAY_MS', http_defaults.min_delay_ms),
        max_delay_ms=env_positive_int('BITE_MAX_DELAY_MS', http_defaults.max_delay_ms),
        request_timeout_ms=env_positive_int('BITE_REQUEST_TIMEOUT_MS', http_defaults.request_timeout_ms),
        user_agent=_env_str('BITE_USER_AGENT', http_defaults.user_agent),
    )
    if http.max_delay_ms < http.min_delay_ms:
        logger.warning(f"BITE_MAX_DELAY_MS below BITE_MIN_DELAY_MS, using {http.min_delay_ms}ms for both")
        http.max_delay_ms = http.min_delay_ms

    output = OutputConfig(
        output_path=_env_str('BITE_OUTPUT_PATH', output_defaults.output_path),
        history_window_days=env_positive_int('BITE_HISTORY_WINDOW_DAYS', output_defaults.history_window_days),
    )

    _config_instance = Config(
        crawl=crawl,
        http=http,
        output=output,
        weights=_load_weights(section),
        schedule_at=_env_str('BITE_SCHEDULE_AT', DEFAULT_SCHEDULE_AT),
    )

    logger.debug(
        f"[CONFIG] pages listing={crawl.max_pages_listing} archive={crawl.max_pages_archive}, "
        f"streaks empty={crawl.empty_streak} stale={crawl.stale_streak}, "
        f"delay={http.min_delay_ms}-{http.max_delay_ms}ms timeout={http.request_timeout_ms}ms"
    )
    return _config_instance


def get_config() -> Config:
    """Get the global configuration instance"""
    if _config_instance is None:
        return load_config()
    return _config_instance
