# fitai_pipeline/pipeline/__init__.py
"""Generation pipeline: fingerprinting, invocation, validation and orchestration."""

from .fingerprint import compute_fingerprint, fingerprint_request, normalize_params
from .invoker import GenerationInvoker, RawOutput, estimate_cost_usd
from .kinds import KIND_SPECS, KindSpec, get_kind_spec
from .orchestrator import JobOrchestrator
from .retry import RetryPolicy
from .validation import ItemResult, ItemStatus, ValidationRepairEngine, ValidationReport

__all__ = [
    "compute_fingerprint",
    "fingerprint_request",
    "normalize_params",
    "GenerationInvoker",
    "RawOutput",
    "estimate_cost_usd",
    "KIND_SPECS",
    "KindSpec",
    "get_kind_spec",
    "JobOrchestrator",
    "RetryPolicy",
    "ItemResult",
    "ItemStatus",
    "ValidationRepairEngine",
    "ValidationReport",
]
