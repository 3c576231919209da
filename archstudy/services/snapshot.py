"""
Whole-database export and import.

An import trusts the file: questions are upserted and history entries
inserted or overwritten by id, with no reconciliation. The payload is fully
validated before anything is written.
"""
from datetime import date
from pathlib import Path
from typing import Any, Dict, Union
import json
import logging

from pydantic import ValidationError

from archstudy.database import LocalStore
from archstudy.errors import SnapshotFormatError
from archstudy.models import Snapshot

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("questions", "history")

def backup_filename(day: date = None) -> str:
    day = day or date.today()
    return f"architect-study-backup-{day.isoformat()}.json"

async def export_snapshot(local: LocalStore) -> Snapshot:
    return Snapshot(
        questions=await local.get_all_questions(),
        history=await local.get_all_history(),
    )

def write_snapshot(snapshot: Snapshot, directory: Union[str, Path] = ".") -> Path:
    path = Path(directory) / backup_filename()
    path.write_text(
        json.dumps(snapshot.to_record(), ensure_ascii=False, indent=2), encoding="utf-8"
    )
    logger.info(f"Exported {len(snapshot.questions)} questions and {len(snapshot.history)} history items to {path}")
    return path

def parse_snapshot(payload: Union[str, bytes, Dict[str, Any]]) -> Snapshot:
    """Validate an import payload; raises SnapshotFormatError"""
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise SnapshotFormatError(f"Not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise SnapshotFormatError("Snapshot must be a JSON object")
    missing = [key for key in REQUIRED_KEYS if not isinstance(payload.get(key), list)]
    if missing:
        raise SnapshotFormatError(f"Invalid data format: missing {', '.join(missing)}")

    try:
        return Snapshot.from_record(payload)
    except ValidationError as e:
        raise SnapshotFormatError(f"Invalid snapshot records: {e.error_count()} errors") from e

def read_snapshot(path: Union[str, Path]) -> Snapshot:
    return parse_snapshot(Path(path).read_bytes())

async def import_snapshot(local: LocalStore, payload: Union[str, bytes, Dict[str, Any], Snapshot]) -> dict:
    snapshot = payload if isinstance(payload, Snapshot) else parse_snapshot(payload)

    await local.put_questions_batch(snapshot.questions)
    await local.put_history_batch(snapshot.history)

    logger.info(f"Imported {len(snapshot.questions)} questions and {len(snapshot.history)} history items")
    return {"questions": len(snapshot.questions), "history": len(snapshot.history)}
