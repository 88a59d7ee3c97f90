"""
Storage Module for CCA Memory

Durable, id-keyed persistence of artifacts.
"""

from .base import StorageBackend
from .filesystem import FileSystemStorage
from .artifact_storage import ArtifactStorage, create_artifact_storage

__all__ = [
    "StorageBackend",
    "FileSystemStorage",
    "ArtifactStorage",
    "create_artifact_storage",
]
