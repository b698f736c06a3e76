from .reference_repository import ReferenceRepository

__all__ = [
    "ReferenceRepository",
]
