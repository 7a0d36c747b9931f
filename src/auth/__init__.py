from src.auth.internal import require_internal_scheduler_secret

__all__ = [
    "require_internal_scheduler_secret",
]
