import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .logging import get_logger
from .paths import default_data_dir, expand_abs

log = get_logger("config")

DEFAULT_REMOTE_URL = "https://sheetdb.io/api/v1/zrfkrm8qm5r3s"
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_VERIFY_TIMEOUT = 3.0
DEFAULT_REFRESH_DELAYS: Tuple[float, ...] = (0.2, 0.5)


def _find_upwards(start_dir: str, filename: str) -> Optional[str]:
    """Return first matching file found when walking up from start_dir.

    Lets the tools run from subdirectories (e.g. `src/`) and still find the
    project-level `.env`.
    """
    d = os.path.abspath(start_dir or ".")
    while True:
        candidate = os.path.join(d, filename)
        if os.path.isfile(candidate):
            return candidate
        parent = os.path.dirname(d)
        if parent == d:
            return None
        d = parent


def _read_dotenv(dotenv_dir: str) -> Dict[str, str]:
    """Minimal .env reader.

    - Reads key=value pairs, ignores comments (#/;) and blank lines.
    - Trims single/double quotes around the value.
    - Returns mapping; does not mutate environment.
    """
    env: Dict[str, str] = {}
    path = _find_upwards(dotenv_dir, ".env")
    if not path:
        log.debug(f"No .env found starting from: {os.path.abspath(dotenv_dir)}")
        return env
    try:
        with open(path, "r", encoding="utf-8") as f:
            for raw in f:
                line = raw.strip()
                if not line or line.startswith("#") or line.startswith(";"):
                    continue
                if "=" not in line:
                    continue
                k, v = line.split("=", 1)
                k = k.strip()
                v = v.strip()
                if (v.startswith('"') and v.endswith('"')) or (v.startswith("'") and v.endswith("'")):
                    v = v[1:-1]
                env[k] = v.strip()
        log.debug(f"Loaded {len(env)} key(s) from .env at {path}")
    except OSError as e:
        log.warning(f"Failed reading .env: {e}")
    return env


def _lookup(name: str, env: Dict[str, str]) -> Optional[str]:
    v = os.environ.get(name)
    if v is not None and v.strip():
        return v.strip()
    v = env.get(name)
    return v.strip() if v else None


def _parse_float(raw: Optional[str], default: float, name: str) -> float:
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        log.warning(f"Ignoring non-numeric {name}={raw!r}; using {default}")
        return default
    if value <= 0:
        log.warning(f"Ignoring non-positive {name}={raw!r}; using {default}")
        return default
    return value


def _parse_delays(raw: Optional[str]) -> Tuple[float, ...]:
    if not raw:
        return DEFAULT_REFRESH_DELAYS
    delays = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            delays.append(max(0.0, float(part)))
        except ValueError:
            log.warning(f"Ignoring invalid refresh delay {part!r}")
    return tuple(delays) if delays else DEFAULT_REFRESH_DELAYS


def _parse_bool(raw: Optional[str], default: bool) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off", "")


@dataclass
class Settings:
    remote_url: str = DEFAULT_REMOTE_URL
    data_dir: str = ""
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    verify_timeout: float = DEFAULT_VERIFY_TIMEOUT
    refresh_delays: Tuple[float, ...] = field(default_factory=lambda: DEFAULT_REFRESH_DELAYS)
    sync_enabled: bool = True

    @property
    def db_path(self) -> str:
        return os.path.join(self.data_dir, "storefront.sqlite3")


def load_settings(start_dir: Optional[str] = None) -> Settings:
    """Build Settings from the environment, then `.env`, then defaults."""
    start = start_dir or os.getcwd()
    env = _read_dotenv(start)
    data_dir = _lookup("STOREFRONT_DATA_DIR", env)
    settings = Settings(
        remote_url=(_lookup("STOREFRONT_REMOTE_URL", env) or DEFAULT_REMOTE_URL).rstrip("/"),
        data_dir=expand_abs(data_dir) if data_dir else default_data_dir(start),
        http_timeout=_parse_float(_lookup("STOREFRONT_HTTP_TIMEOUT", env), DEFAULT_HTTP_TIMEOUT, "STOREFRONT_HTTP_TIMEOUT"),
        verify_timeout=_parse_float(_lookup("STOREFRONT_VERIFY_TIMEOUT", env), DEFAULT_VERIFY_TIMEOUT, "STOREFRONT_VERIFY_TIMEOUT"),
        refresh_delays=_parse_delays(_lookup("STOREFRONT_REFRESH_DELAYS", env)),
        sync_enabled=_parse_bool(_lookup("STOREFRONT_SYNC_ENABLED", env), True),
    )
    log.debug(f"Settings loaded: remote={settings.remote_url} data_dir={settings.data_dir}")
    return settings
