# fhe_governor/config.py
import logging
import os
import secrets
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

# -------- Defaults (non-secret) --------
_DEFAULT: Dict[str, Any] = {
    "oracle_address": "gateway",
    "revealers": ("admin",),
    "max_plaintext": 2**32 - 1,
    "log_level": "INFO",
    "base_url": "http://127.0.0.1:5000",
    "debug": False,
}


def _split(value: str) -> Tuple[str, ...]:
    return tuple(v.strip() for v in value.split(",") if v.strip())


def _flag(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(value)


# -------- ENV overrides; the token key only ever comes from ENV --------
_ENV_MAP = {
    "oracle_address": ("FHE_GOVERNOR_ORACLE_ADDRESS", str),
    "revealers": ("FHE_GOVERNOR_REVEALERS", _split),
    "max_plaintext": ("FHE_GOVERNOR_MAX_PLAINTEXT", int),
    "log_level": ("FHE_GOVERNOR_LOG_LEVEL", str),
    "base_url": ("FHE_GOVERNOR_BASE_URL", str),
    "debug": ("FHE_GOVERNOR_DEBUG", _flag),
}


@dataclass(frozen=True)
class Settings:
    oracle_address: str = _DEFAULT["oracle_address"]
    revealers: Tuple[str, ...] = _DEFAULT["revealers"]
    max_plaintext: int = _DEFAULT["max_plaintext"]
    log_level: str = _DEFAULT["log_level"]
    base_url: str = _DEFAULT["base_url"]
    debug: bool = _DEFAULT["debug"]
    token_key: bytes = field(default_factory=lambda: secrets.token_bytes(32), repr=False)

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for name, (env_name, cast) in _ENV_MAP.items():
            raw = env.get(env_name)
            if raw is None:
                continue
            try:
                values[name] = cast(raw)
            except ValueError:
                raise ValueError(f"invalid value for {env_name}: {raw!r}") from None
        key = env.get("FHE_GOVERNOR_TOKEN_KEY")
        if key:
            values["token_key"] = key.encode("utf-8")
        return cls(**values)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
