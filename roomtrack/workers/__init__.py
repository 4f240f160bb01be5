# =======================================================================================
# roomtrack/workers/__init__.py - Workers Package
# =======================================================================================
from .expiry_worker import ExpiryWorker

__all__ = ["ExpiryWorker"]
