from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from ..auth import DEFAULT_SCOPE
from ..client import DEFAULT_BASE_URL, DEFAULT_TIMEOUT
from ..resolver import DEFAULT_CONCURRENCY

log = logging.getLogger(__name__)

_ENV_OVERRIDES = {
    "client_id": "APS_CLIENT_ID",
    "client_secret": "APS_CLIENT_SECRET",
    "facility_urn": "TANDEM_FACILITY_URN",
}


@dataclass(frozen=True)
class Settings:
    """Connection and resolution settings for a facility listing run."""

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    facility_urn: Optional[str] = None
    scope: str = DEFAULT_SCOPE
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    concurrency: int = DEFAULT_CONCURRENCY
    strict_references: bool = False

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "Settings":
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        for name in sorted(set(data) - known):
            log.warning("Unknown settings key '%s'; ignoring", name)
        values: Dict[str, Any] = {}
        for name in ("client_id", "client_secret", "facility_urn", "scope", "base_url"):
            if data.get(name) is not None:
                values[name] = str(data[name]).strip()
        if data.get("timeout") is not None:
            try:
                values["timeout"] = float(data["timeout"])
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Invalid value for 'timeout': {data['timeout']!r}") from exc
        if data.get("concurrency") is not None:
            try:
                values["concurrency"] = int(data["concurrency"])
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Invalid value for 'concurrency': {data['concurrency']!r}") from exc
        if data.get("strict_references") is not None:
            values["strict_references"] = _as_bool(data["strict_references"], "strict_references")
        settings = cls(**values)
        settings.validate()
        return settings

    @classmethod
    def from_file(cls, path: Path) -> "Settings":
        text = Path(path).read_text(encoding="utf-8")
        return cls.from_text(text, suffix=Path(path).suffix)

    @classmethod
    def from_text(cls, text: str, *, suffix: str) -> "Settings":
        return cls.from_mapping(cls._load_data_from_text(text, suffix=suffix))

    def validate(self) -> None:
        if self.concurrency < 1:
            raise ValueError(f"Invalid value for 'concurrency': {self.concurrency} (must be >= 1)")
        if self.timeout <= 0:
            raise ValueError(f"Invalid value for 'timeout': {self.timeout} (must be > 0)")

    def with_env(self, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Return a copy with credentials/facility taken from the environment."""
        env = os.environ if environ is None else environ
        updates = {name: env[var] for name, var in _ENV_OVERRIDES.items() if env.get(var)}
        return replace(self, **updates) if updates else self

    @staticmethod
    def _load_data_from_text(text: str, *, suffix: str) -> Dict[str, Any]:
        ext = (suffix or "").lower()
        if ext in {".yaml", ".yml"}:
            loaded = yaml.safe_load(text)
            if loaded is None:
                return {}
            if not isinstance(loaded, dict):
                raise ValueError("YAML settings must define a mapping at the top level")
            return loaded
        if ext == ".json":
            loaded = json.loads(text)
            if not isinstance(loaded, dict):
                raise ValueError("JSON settings must define a mapping at the top level")
            return loaded
        raise ValueError(f"Unsupported settings type: {suffix}")


def _as_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in ("1", "true", "yes", "on"):
        return True
    if normalized in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"Invalid value for '{name}': {value!r}")


def load_settings(path: Optional[Path] = None, *, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Load settings from ``path`` (or defaults) and apply environment overrides."""
    settings = Settings.from_file(path) if path is not None else Settings()
    return settings.with_env(environ)


__all__ = ["Settings", "load_settings"]
