"""
Dist manifest persistence.

The manifest maps contract name to fingerprint, path, checksum and build
time. A `checksums.txt` in `sha256sum` format is written next to it, which is
the listing CosmWasm tooling conventionally ships with artifacts.
"""

import json
import logging
from pathlib import Path
from typing import Dict

from ..models.artifacts import BuildArtifact
from ..state.lockfile import write_json_atomic

logger = logging.getLogger(__name__)

MANIFEST_VERSION = 1


def load_manifest(path: Path) -> Dict[str, BuildArtifact]:
    """Read the manifest; a missing or unreadable manifest is empty."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return {}
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable manifest {path}: {e}")
        return {}

    artifacts = {}
    for name, entry in data.get("artifacts", {}).items():
        try:
            artifacts[name] = BuildArtifact.from_manifest_entry(name, entry)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed manifest entry '{name}': {e}")
    return artifacts


def save_manifest(path: Path, artifacts: Dict[str, BuildArtifact]) -> None:
    write_json_atomic(
        path,
        {
            "version": MANIFEST_VERSION,
            "artifacts": {name: a.to_manifest_entry() for name, a in sorted(artifacts.items())},
        },
    )


def write_checksums(path: Path, artifacts: Dict[str, BuildArtifact]) -> None:
    lines = [f"{a.checksum}  {a.path.name}" for _, a in sorted(artifacts.items())]
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text("\n".join(lines) + ("\n" if lines else ""), encoding="utf-8")
    tmp.replace(path)
