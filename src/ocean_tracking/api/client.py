# src/ocean_tracking/api/client.py
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
from requests.structures import CaseInsensitiveDict

ANY_PROVIDER = "*"

# recorded "error" values that replay as a raised exception instead of a response
_RAISES = {
    "timeout": requests.Timeout,
    "connection": requests.ConnectionError,
}


def make_response(url: str, status: int, body: Any = None, headers: Optional[Dict[str, str]] = None) -> requests.Response:
    """Build a real requests.Response carrying a JSON body."""
    resp = requests.Response()
    resp.status_code = int(status)
    resp.url = url
    resp.headers = CaseInsensitiveDict(headers or {})
    resp.headers.setdefault("Content-Type", "application/json")
    resp.encoding = "utf-8"
    resp._content = json.dumps(body if body is not None else {}).encode("utf-8")
    return resp


@dataclass
class ReplayTransport:
    """Offline transport that serves recorded provider responses.

    `replay_file` holds one JSON object or an array of objects shaped like::

        {"provider": "maersk", "trackingNumber": "MAEU1234567",
         "status": 200, "headers": {...}, "body": {...}}

    `provider` may be omitted (matches every provider) and `status` defaults
    to 200. An entry with `"error": "timeout"` or `"error": "connection"`
    raises the matching requests exception. Unknown numbers answer 404.
    """

    replay_file: Path
    provider: Optional[str] = None
    _index: Dict[tuple[str, str], Dict[str, Any]] = field(default_factory=dict, repr=False)
    calls: List[Dict[str, Any]] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        self.replay_file = Path(self.replay_file)
        if self._index:
            return
        if not self.replay_file.exists():
            raise ValueError(f"Replay file does not exist: {self.replay_file}")
        if not self.replay_file.is_file():
            raise ValueError(f"Replay file must be a single JSON file: {self.replay_file}")

        raw = json.loads(self.replay_file.read_text(encoding="utf-8"))
        entries = raw if isinstance(raw, list) else [raw]
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            tn = str(entry.get("trackingNumber") or "").strip().upper()
            if not tn:
                continue
            key = (str(entry.get("provider") or ANY_PROVIDER), tn)
            self._index[key] = entry

    @property
    def providers(self) -> List[str]:
        """Providers named in the recording (excluding wildcard entries)."""
        return sorted({p for p, _ in self._index if p != ANY_PROVIDER})

    def bind(self, provider: str) -> "ReplayTransport":
        """A view of the same recording scoped to one provider."""
        return ReplayTransport(self.replay_file, provider, self._index, self.calls)

    def _lookup(self, tn: str) -> Optional[Dict[str, Any]]:
        tn = tn.strip().upper()
        if self.provider is not None and (self.provider, tn) in self._index:
            return self._index[(self.provider, tn)]
        return self._index.get((ANY_PROVIDER, tn))

    def get(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        tn = str((params or {}).get("trackingNumber") or "")
        self.calls.append({"provider": self.provider, "url": url, "trackingNumber": tn})

        entry = self._lookup(tn)
        if entry is None:
            return make_response(url, 404, {"error": "Tracking number not found"})

        exc_type = _RAISES.get(str(entry.get("error") or "").lower())
        if exc_type is not None:
            raise exc_type(f"replayed {entry['error']} for {tn}")

        return make_response(url, entry.get("status", 200), entry.get("body"), entry.get("headers"))
