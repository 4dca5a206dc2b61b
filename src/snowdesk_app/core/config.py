"""Configuration loader for database, service endpoints, and map settings."""

from __future__ import annotations

import os
import secrets
import sys
from dataclasses import dataclass
from pathlib import Path

import yaml

from snowdesk_app.core.crypto import CryptoService


@dataclass(frozen=True)
class DatabaseConfig:
    path: str
    key_env: str
    allow_sqlite_fallback: bool


@dataclass(frozen=True)
class EncryptionConfig:
    key_env: str


@dataclass(frozen=True)
class ServicesConfig:
    geocoding_url: str
    postal_lookup_url: str
    routing_url: str
    routing_profile: str
    user_agent: str
    timeout_seconds: float


@dataclass(frozen=True)
class MapConfig:
    center_lat: float
    center_lng: float
    zoom: int
    tile_url: str


@dataclass(frozen=True)
class LoggingConfig:
    level: str


@dataclass(frozen=True)
class AppConfig:
    database: DatabaseConfig
    encryption: EncryptionConfig
    services: ServicesConfig
    map: MapConfig
    logging: LoggingConfig


DEFAULT_CONFIG_REL_PATH = Path("config/settings.yaml")
DEFAULT_DB_KEY_ENV = "SNOWDESK_DB_KEY"
DEFAULT_ENCRYPTION_KEY_ENV = "SNOWDESK_ENCRYPTION_KEY"
RUNTIME_ENV_REL_PATH = Path("config/runtime.env")
DEFAULT_DB_FILENAME = "snowdesk.db"
_RUNTIME_ENV_LOADED = False


def _split_key_value(raw_line: str) -> tuple[str, str] | None:
    """Parse a KEY=VALUE line, tolerating `export` and PowerShell `$env:` prefixes."""
    line = raw_line.strip()
    if not line or line.startswith("#"):
        return None

    for prefix in ("$env:", "export "):
        if line.startswith(prefix):
            line = line[len(prefix) :]
            break

    if "=" not in line:
        return None

    key, value = (part.strip() for part in line.split("=", 1))
    if not key:
        return None
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        value = value[1:-1]
    return key, value


def _project_root() -> Path:
    """Return the directory holding config/ for source and frozen builds."""
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[3]


def _unique_paths(paths: list[Path]) -> list[Path]:
    unique: list[Path] = []
    seen: set[Path] = set()
    for path in paths:
        resolved = path.resolve()
        if resolved not in seen:
            seen.add(resolved)
            unique.append(resolved)
    return unique


def _iter_env_candidates() -> list[Path]:
    """Return candidate files that may contain runtime keys."""
    paths: list[Path] = []
    for root in (_project_root(), Path.cwd()):
        paths.append(root / ".env.local")
        paths.append(root / RUNTIME_ENV_REL_PATH)
    return _unique_paths(paths)


def _load_env_from_file(path: Path) -> None:
    """Copy KEY=VALUE lines into the process environment without overriding."""
    if not path.is_file():
        return
    with path.open("r", encoding="utf-8") as file:
        for line in file:
            parsed = _split_key_value(line)
            if parsed and parsed[0] not in os.environ:
                os.environ[parsed[0]] = parsed[1]


def _runtime_env_path() -> Path:
    return _project_root() / RUNTIME_ENV_REL_PATH


def _write_runtime_env(db_key: str, encryption_key: str) -> None:
    """Persist generated runtime keys in config/runtime.env."""
    path = _runtime_env_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        f"{DEFAULT_DB_KEY_ENV}='{db_key}'\n{DEFAULT_ENCRYPTION_KEY_ENV}='{encryption_key}'\n",
        encoding="utf-8",
    )


def _existing_db_candidates(config_db_path: str | None = None) -> list[Path]:
    """Return DB paths whose presence means keys must already exist."""
    candidates = [_project_root() / DEFAULT_DB_FILENAME, Path.cwd() / DEFAULT_DB_FILENAME]
    if config_db_path:
        db_path = Path(config_db_path)
        if not db_path.is_absolute():
            db_path = Path.cwd() / db_path
        candidates.append(db_path)
    return _unique_paths(candidates)


def _ensure_runtime_env_loaded() -> None:
    """Load local env files once per process."""
    global _RUNTIME_ENV_LOADED
    if _RUNTIME_ENV_LOADED:
        return
    for path in _iter_env_candidates():
        _load_env_from_file(path)
    _RUNTIME_ENV_LOADED = True


def _bootstrap_default_keys_if_needed(config_db_path: str | None = None) -> None:
    """Generate keys on first run; refuse when a database exists without its keys."""
    db_key = os.getenv(DEFAULT_DB_KEY_ENV)
    encryption_key = os.getenv(DEFAULT_ENCRYPTION_KEY_ENV)
    if db_key and encryption_key:
        return

    has_existing_db = any(path.exists() for path in _existing_db_candidates(config_db_path))
    if has_existing_db and not _runtime_env_path().exists():
        raise RuntimeError(
            "Runtime key file is missing while a database file exists. "
            f"Restore {RUNTIME_ENV_REL_PATH} or set {DEFAULT_DB_KEY_ENV}/{DEFAULT_ENCRYPTION_KEY_ENV}."
        )

    db_key = db_key or secrets.token_urlsafe(48)
    encryption_key = encryption_key or CryptoService.generate_base64_key()
    os.environ[DEFAULT_DB_KEY_ENV] = db_key
    os.environ[DEFAULT_ENCRYPTION_KEY_ENV] = encryption_key
    _write_runtime_env(db_key, encryption_key)


def ensure_runtime_keys(config_db_path: str | None = None) -> None:
    """Ensure runtime keys are loaded or bootstrapped for a configured DB path."""
    _ensure_runtime_env_loaded()
    _bootstrap_default_keys_if_needed(config_db_path)


def resolve_default_config_path() -> Path:
    """Resolve configuration path for source and packaged execution."""
    env_path = os.getenv("SNOWDESK_CONFIG_PATH")
    if env_path:
        return Path(env_path)

    candidates = [Path.cwd() / DEFAULT_CONFIG_REL_PATH, _project_root() / DEFAULT_CONFIG_REL_PATH]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return candidates[0]


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load the app configuration from YAML, filling optional sections with defaults."""
    path = config_path or resolve_default_config_path()
    if not path.exists():
        raise RuntimeError(f"Configuration file not found: {path}")
    with path.open("r", encoding="utf-8") as file:
        raw = yaml.safe_load(file) or {}

    services = raw.get("services", {})
    map_section = raw.get("map", {})
    return AppConfig(
        database=DatabaseConfig(
            path=str(raw["db"]["path"]),
            key_env=str(raw["db"].get("key_env", DEFAULT_DB_KEY_ENV)),
            allow_sqlite_fallback=bool(raw["db"].get("allow_sqlite_fallback", False)),
        ),
        encryption=EncryptionConfig(
            key_env=str(raw.get("encryption", {}).get("key_env", DEFAULT_ENCRYPTION_KEY_ENV)),
        ),
        services=ServicesConfig(
            geocoding_url=str(
                services.get("geocoding_url", "https://nominatim.openstreetmap.org")
            ),
            postal_lookup_url=str(
                services.get("postal_lookup_url", "https://zipcloud.ibsnet.co.jp")
            ),
            routing_url=str(services.get("routing_url", "https://router.project-osrm.org")),
            routing_profile=str(services.get("routing_profile", "driving")),
            user_agent=str(services.get("user_agent", "snowdesk/0.1")),
            timeout_seconds=float(services.get("timeout_seconds", 10.0)),
        ),
        map=MapConfig(
            center_lat=float(map_section.get("center_lat", 35.6762)),
            center_lng=float(map_section.get("center_lng", 139.6503)),
            zoom=int(map_section.get("zoom", 12)),
            tile_url=str(
                map_section.get("tile_url", "https://tile.openstreetmap.org/{z}/{x}/{y}.png")
            ),
        ),
        logging=LoggingConfig(
            level=str(raw.get("logging", {}).get("level", "INFO")),
        ),
    )


def get_required_env(name: str) -> str:
    """Return a required environment variable or raise a clear error."""
    _ensure_runtime_env_loaded()
    if name in {DEFAULT_DB_KEY_ENV, DEFAULT_ENCRYPTION_KEY_ENV}:
        _bootstrap_default_keys_if_needed()
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Required environment variable is missing: {name}")
    return value
