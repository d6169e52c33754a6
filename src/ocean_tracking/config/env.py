# src/ocean_tracking/config/env.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Tuple, Dict

from ocean_tracking.models import EnvCfg

try:
    from dotenv import load_dotenv, find_dotenv  # type: ignore
except Exception as e:  # pragma: no cover
    raise RuntimeError(
        "Missing dependency 'python-dotenv'. Install it with:\n"
        "  pip install python-dotenv"
    ) from e


# --- Public contract ---------------------------------------------------------

class EnvError(RuntimeError):
    """Raised when the environment cannot produce a usable configuration."""


# provider name -> env var holding its API key
PROVIDER_KEY_VARS: Dict[str, str] = {
    "maersk": "MAERSK_API_KEY",
    "msc": "MSC_API_KEY",
    "cma-cgm": "CMA_CGM_API_KEY",
    "cosco": "COSCO_API_KEY",
    "hapag-lloyd": "HAPAG_LLOYD_API_KEY",
    "evergreen": "EVERGREEN_API_KEY",
    "one-line": "ONE_LINE_API_KEY",
    "yang-ming": "YANG_MING_API_KEY",
    "zim": "ZIM_API_KEY",
    "shipsgo": "SHIPSGO_API_KEY",
    "searates": "SEARATES_API_KEY",
    "project44": "PROJECT44_API_KEY",
    "marine-traffic": "MARINE_TRAFFIC_API_KEY",
    "vessel-finder": "VESSEL_FINDER_API_KEY",
    "track-trace": "TRACK_TRACE_API_KEY",
}

CACHE_TTL_VAR = "TRACKING_CACHE_TTL_SECONDS"
EARLY_EXIT_VAR = "TRACKING_EARLY_EXIT_RELIABILITY"
DEADLINE_VAR = "TRACKING_DEADLINE_SECONDS"

DEFAULT_CACHE_TTL_SECONDS = 15 * 60
DEFAULT_EARLY_EXIT_RELIABILITY = 0.9


def load_project_dotenv(start: Optional[Path] = None, *, override: bool = False) -> Path:
    """
    Load variables from the nearest `.env` file (searching upward from `start` or CWD).
    Does NOT override existing env vars unless `override=True`.
    Returns the resolved Path to the .env file if found; otherwise Path().
    """
    start_path = Path.cwd() if start is None else Path(start)

    dotenv_str = find_dotenv(filename=".env", usecwd=True)
    dotenv_path = Path(dotenv_str) if dotenv_str else Path()

    if not dotenv_str:
        for p in (start_path, *start_path.parents):
            candidate = p / ".env"
            if candidate.exists():
                dotenv_path = candidate
                break

    if not dotenv_path.exists() or dotenv_path.is_dir():
        return Path()

    load_dotenv(dotenv_path=dotenv_path, override=override)
    return dotenv_path.resolve()


def env(name: str, *, default: Optional[str] = None, required: bool = False, cast=None):
    """
    Test-friendly accessor.

    - If `required=True` and var is missing, raise KeyError(name).
    - If `cast` is provided, apply it to the raw string and propagate cast errors.
    - Returns `default` when missing (or blank) and not required.
    """
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        if required:
            raise KeyError(name)
        return default

    if cast is not None:
        return cast(raw)
    return raw


def provider_credentials() -> Dict[str, str]:
    """Non-empty API keys currently in the process env, keyed by provider name."""
    out: Dict[str, str] = {}
    for provider, var in PROVIDER_KEY_VARS.items():
        value = (os.getenv(var) or "").strip()
        if value:
            out[provider] = value
    return out


def load_env(
    dotenv_path: Optional[Path] = None,
    *,
    override: bool = False,
    required_keys: Tuple[str, ...] = (),
    strict: bool = False,
) -> Dict[str, str]:
    """
    Load env vars from a .env file into the process environment and return a dict
    of key/value pairs found in that file.

    - If `dotenv_path` is provided, load exactly that file.
    - Otherwise, auto-discover the nearest .env via `load_project_dotenv`.
    - If `strict=True` and `required_keys` are provided, ensure they are present
      in `os.environ` after loading; otherwise raise EnvError.
    """
    loaded: Dict[str, str] = {}

    if dotenv_path:
        path = Path(dotenv_path)
        if path.exists():
            load_dotenv(dotenv_path=path, override=override)
            loaded = _read_dotenv_values(path)
    else:
        path = load_project_dotenv(override=override)
        if path and path.exists():
            loaded = _read_dotenv_values(path)

    if strict and required_keys:
        missing = [k for k in required_keys if not os.getenv(k)]
        if missing:
            raise EnvError(
                f"Missing required environment variable(s): {', '.join(missing)}")

    return loaded


def _read_dotenv_values(path: Path) -> Dict[str, str]:
    from dotenv import dotenv_values

    return {k: v for k, v in dotenv_values(path).items() if v is not None}


def _float_var(name: str, default: Optional[float], *, positive: bool = False) -> Optional[float]:
    try:
        value = env(name, default=None, cast=float)
    except ValueError as e:
        raise EnvError(f"{name} must be a number") from e
    if value is None:
        return default
    if positive and value <= 0:
        raise EnvError(f"{name} must be greater than zero")
    if value < 0:
        raise EnvError(f"{name} must not be negative")
    return value


def get_app_env(dotenv_path: Path | str | None = ".env", *, strict: bool = False) -> EnvCfg:
    """
    Load provider credentials and engine tunables into a typed config object.

    - `dotenv_path` may point to a specific .env file, or be None to disable
      file loading (useful for tests).
    - Existing process env wins over file values.
    - With `strict=True` at least one provider credential must be configured.
    """
    load_env(Path(dotenv_path) if dotenv_path else None, override=False)

    creds = provider_credentials()
    if strict and not creds:
        raise EnvError(
            "No provider credentials configured; set at least one of: "
            + ", ".join(PROVIDER_KEY_VARS.values())
        )

    return EnvCfg(
        credentials=creds,
        cache_ttl_seconds=_float_var(CACHE_TTL_VAR, DEFAULT_CACHE_TTL_SECONDS, positive=True),
        early_exit_reliability=_float_var(
            EARLY_EXIT_VAR, DEFAULT_EARLY_EXIT_RELIABILITY),
        deadline_seconds=_float_var(DEADLINE_VAR, None),
    )


__all__ = [
    "EnvError",
    "PROVIDER_KEY_VARS",
    "load_project_dotenv",
    "load_env",
    "env",
    "provider_credentials",
    "get_app_env",
]
