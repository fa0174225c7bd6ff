"""
Build artifact models.
"""

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict


@dataclass(frozen=True)
class BuildArtifact:
    """
    A compiled, optimized contract binary ready for deployment.

    Artifacts are never mutated; a rebuild produces a new instance with the
    same name.
    """

    name: str
    # Digest of the sources and build commands that produced the binary
    fingerprint: str
    path: Path
    # sha256 of the binary itself
    checksum: str
    size: int
    built_at: float
    # True when the sources changed since this artifact was built
    stale: bool = False

    def to_manifest_entry(self) -> Dict[str, Any]:
        return {
            "fingerprint": self.fingerprint,
            "path": str(self.path),
            "checksum": self.checksum,
            "size": self.size,
            "built_at": self.built_at,
        }

    @classmethod
    def from_manifest_entry(cls, name: str, entry: Dict[str, Any]) -> "BuildArtifact":
        return cls(
            name=name,
            fingerprint=str(entry["fingerprint"]),
            path=Path(entry["path"]),
            checksum=str(entry.get("checksum", "")),
            size=int(entry.get("size", 0)),
            built_at=float(entry.get("built_at", 0.0)),
        )

    def marked_stale(self, stale: bool) -> "BuildArtifact":
        return replace(self, stale=stale)
