"""
Lock and status records.

Records are small JSON documents written atomically (temp file + rename) so a
concurrent reader never sees a half-written file. They are advisory: nothing
stops another tool from ignoring them, but every orchestrator operation reads
them first and refuses to proceed over a live record.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from ..models.runtime import LockRecord, NetworkRecord
from ..system.processes import is_pid_alive
from ..validation import ErrorSeverity, handle_file_error

logger = logging.getLogger(__name__)


def write_json_atomic(path: Path, data: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _read_json(path: Path, description: str) -> Optional[Dict[str, Any]]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as e:
        # A corrupt record cannot describe a live process; treat it as absent.
        handle_file_error(
            error=e,
            context=f"reading {description} {path}",
            severity=ErrorSeverity.WARNING,
            reraise=False,
            logger=logger,
        )
        return None


def read_lock(path: Path) -> Optional[LockRecord]:
    data = _read_json(path, "lock file")
    if data is None:
        return None
    try:
        return LockRecord.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Ignoring malformed lock file {path}: {e}")
        return None


def write_lock(path: Path, record: LockRecord) -> None:
    write_json_atomic(path, record.to_dict())
    logger.debug(f"Wrote lock file {path} for PID {record.pid}")


def remove_file(path: Path) -> None:
    path.unlink(missing_ok=True)


def lock_is_live(record: Optional[LockRecord]) -> bool:
    return record is not None and is_pid_alive(record.pid, record.create_time)


def read_network_record(path: Path) -> Optional[NetworkRecord]:
    data = _read_json(path, "network record")
    if data is None:
        return None
    try:
        return NetworkRecord.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Ignoring malformed network record {path}: {e}")
        return None


def write_network_record(path: Path, record: NetworkRecord) -> None:
    write_json_atomic(path, record.to_dict())
