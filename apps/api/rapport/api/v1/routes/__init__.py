"""Route package marker.

Keep this module import-light to avoid circular imports when service/worker
code imports a specific route module.
"""

__all__ = [
    "admin",
    "analytics",
    "contacts",
    "health",
    "messages",
    "scores",
]
