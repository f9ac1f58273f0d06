"""
Business logic services.
"""

from app.services.archival import LifecycleEngine

__all__ = [
    "LifecycleEngine",
]
