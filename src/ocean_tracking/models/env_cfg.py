from __future__ import annotations
from dataclasses import dataclass, field
from typing import Mapping, Optional


@dataclass(frozen=True)
class EnvCfg:
    """Typed view of what get_app_env() resolves from the environment."""
    # provider name -> API key (only non-empty keys)
    credentials: Mapping[str, str] = field(default_factory=dict)
    cache_ttl_seconds: float = 900.0
    early_exit_reliability: float = 0.9
    deadline_seconds: Optional[float] = None

    def has_credential(self, provider: str) -> bool:
        return bool(self.credentials.get(provider))
