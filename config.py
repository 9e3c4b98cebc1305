import logging
import math
import os
import re
from dataclasses import dataclass
from typing import Optional, Union

import httpx

# General
LOG_LEVEL = logging.INFO  # DEBUG for per-request logging
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(filename)s:%(lineno)d - %(message)s'
RESULTS_DIR = "results"  # Default for --results-dir when given without a path
SUMMARY_CSV_NAME = "load_test_summary.csv"

# Test defaults (mirror the k6 script this tool replaces)
DEFAULT_TARGET_URL = os.getenv("LOADGEN_TARGET_URL", "http://localhost:8080/")
DEFAULT_VIRTUAL_USERS = os.getenv("LOADGEN_VIRTUAL_USERS", "10")  # converted by argparse
DEFAULT_DURATION = os.getenv("LOADGEN_DURATION", "30s")
DEFAULT_PACING_INTERVAL = os.getenv("LOADGEN_PACING_INTERVAL", "0.2s")
DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0

# Check
EXPECTED_STATUS = 200
CHECK_NAME = "is status 200"

# Report
PERCENTILES = (50, 90, 95, 99)

_DURATION_RE = re.compile(r'^\s*(\d+(?:\.\d*)?|\.\d+)\s*(ms|s|m|h)?\s*$')
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


class ConfigurationError(ValueError):
    pass


def parse_duration(value: Union[str, int, float]) -> float:
    """Parse '30s', '500ms', '2m', '1h' or a bare number of seconds."""
    if isinstance(value, (int, float)):
        return float(value)
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ConfigurationError(f"Invalid duration: {value!r}")
    number, unit = match.groups()
    return float(number) * _UNIT_SECONDS[unit or "s"]


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


@dataclass(frozen=True)
class TestConfig:
    target_url: str
    virtual_users: int
    duration: float  # seconds
    pacing_interval: float = 0.2  # seconds
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    iterations: Optional[int] = None  # shared across all virtual users
    ramp_up: float = 0.0
    expected_status: int = EXPECTED_STATUS

    __test__ = False  # not a pytest test class

    def validate(self) -> "TestConfig":
        if not _is_int(self.virtual_users) or self.virtual_users < 1:
            raise ConfigurationError(f"virtual_users must be an integer >= 1, got {self.virtual_users!r}")
        if self.iterations is not None and not _is_int(self.iterations):
            raise ConfigurationError(f"iterations must be an integer, got {self.iterations!r}")
        for name in ("duration", "pacing_interval", "request_timeout", "ramp_up"):
            value = getattr(self, name)
            if not _is_number(value):
                raise ConfigurationError(f"{name} must be a finite number of seconds, got {value!r}")
        if self.duration <= 0:
            raise ConfigurationError(f"duration must be positive, got {self.duration!r}")
        if self.pacing_interval < 0:
            raise ConfigurationError(f"pacing_interval must be >= 0, got {self.pacing_interval!r}")
        if self.request_timeout <= 0:
            raise ConfigurationError(f"request_timeout must be positive, got {self.request_timeout!r}")
        if self.ramp_up < 0:
            raise ConfigurationError(f"ramp_up must be >= 0, got {self.ramp_up!r}")
        if self.ramp_up >= self.duration:
            # Later virtual users would start after the test has ended.
            raise ConfigurationError(
                f"ramp_up ({self.ramp_up!r}s) must be shorter than duration ({self.duration!r}s)")
        if self.iterations is not None and self.iterations < 1:
            raise ConfigurationError(f"iterations must be >= 1 when set, got {self.iterations!r}")

        try:
            url = httpx.URL(self.target_url)
        except (httpx.InvalidURL, TypeError) as e:
            raise ConfigurationError(f"Malformed target URL {self.target_url!r}: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ConfigurationError(f"Target URL must be an absolute http(s) URL, got {self.target_url!r}")
        return self
