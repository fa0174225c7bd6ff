"""
Artifact Builder: compiles contracts and maintains the dist manifest.
"""

from .builder import ArtifactBuilder
from .fingerprint import file_sha256, fingerprint_sources
from .manifest import load_manifest, save_manifest, write_checksums

__all__ = [
    "ArtifactBuilder",
    "file_sha256",
    "fingerprint_sources",
    "load_manifest",
    "save_manifest",
    "write_checksums",
]
