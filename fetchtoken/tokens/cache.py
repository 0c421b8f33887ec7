"""Per-context memo of validation verdicts."""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from ..models import Verdict

CacheKey = Tuple[str, str, str]


class ValidationCache:
    """Remembers verdicts keyed by ``(resource_id, sub_resource_id, token)``.

    Create one per request or worker context and drop it when the context
    ends. Once a triple resolves, repeated validations in the same context
    return the same verdict without touching the store.
    """

    def __init__(self) -> None:
        self._verdicts: Dict[CacheKey, Verdict] = {}

    def get(self, key: CacheKey) -> Optional[Verdict]:
        return self._verdicts.get(key)

    def put(self, key: CacheKey, verdict: Verdict) -> None:
        self._verdicts[key] = verdict

    def clear(self) -> None:
        self._verdicts.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._verdicts

    def __len__(self) -> int:
        return len(self._verdicts)
