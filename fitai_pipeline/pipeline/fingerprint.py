# fitai_pipeline/pipeline/fingerprint.py
"""
Request fingerprinting.

The fingerprint keys the cache, the generation lock and dedup, so it must
change whenever the candidate filter would see different constraints and
stay put otherwise. Case folding of tags belongs to the request models
(models/requests.py); this module only canonicalizes structure: key order,
explicit nulls, duplicate or reordered list entries, surrounding whitespace
and integral floats. Catalog IDs keep their case.
"""

import hashlib
import json
from typing import Any

from pydantic import BaseModel

from fitai_pipeline.models.jobs import JobKind


def _normalize(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).strip(): _normalize(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [_normalize(v) for v in value if v is not None]
        # De-duplicate and order by canonical text so ordering never matters
        unique = {json.dumps(item, sort_keys=True): item for item in items}
        return [unique[key] for key in sorted(unique)]
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def normalize_params(params: dict[str, Any]) -> dict[str, Any]:
    """Canonical form of request params (sorted keys, no nulls, set-like lists, stripped strings)."""
    normalized = _normalize(params)
    return dict(sorted(normalized.items()))


def compute_fingerprint(kind: JobKind, params: dict[str, Any]) -> str:
    """SHA-256 hex digest of kind + canonical JSON of params."""
    canonical = json.dumps(normalize_params(params), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(f"{kind.value}:{canonical}".encode("utf-8")).hexdigest()


def fingerprint_request(kind: JobKind, request: BaseModel) -> str:
    """Fingerprint of a validated request model (its tags already folded)."""
    return compute_fingerprint(kind, request.model_dump(mode="json"))
