# fitai_pipeline/background/__init__.py
"""Background processing: sweep scheduler, lifecycle and signal handling."""

from .lifecycle import ServerLifecycle, load_catalogs
from .sweep import SweepReport, SweepScheduler

__all__ = ["ServerLifecycle", "SweepReport", "SweepScheduler", "load_catalogs"]
