from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from catalog.config import settings
from catalog.constants import COLUMN_ALIASES
from catalog.db.sqlite import CLASS_COLUMNS, ClassStore
from catalog.errors import NotFoundError, StorageError, ValidationError
from catalog.services.payload import normalize_payload

logger = logging.getLogger(__name__)

# строка 1 в таблице - заголовок, данные начинаются со 2-й
HEADER_OFFSET = 2

CREATED = "created"
UPDATED = "updated"
UNCHANGED = "unchanged"


@dataclass
class RowOutcome:
    index: int
    special_id: Optional[str] = None
    action: Optional[str] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason is None


@dataclass
class BulkUploadResult:
    processed: List[Dict[str, Any]] = field(default_factory=list)
    skipped: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def processed_count(self) -> int:
        return len(self.processed)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processedCount": self.processed_count,
            "skippedCount": self.skipped_count,
            "skipped": self.skipped,
            "processed": self.processed,
        }


def resolve_aliases(row: Mapping[str, Any]) -> Dict[str, Any]:
    clean = {str(k).strip(): v for k, v in row.items() if k is not None}
    out: Dict[str, Any] = {}
    for key, aliases in COLUMN_ALIASES.items():
        value: Any = ""
        for alias in aliases:
            v = clean.get(alias)
            if v is not None and str(v).strip() != "":
                value = v
                break
        out[key] = value
    return out


def reconcile_row(store: ClassStore, position: int, row: Mapping[str, Any], update_only: bool) -> RowOutcome:
    index = position + HEADER_OFFSET
    try:
        record = normalize_payload(resolve_aliases(row))
    except ValidationError as e:
        return RowOutcome(index, reason=str(e))

    special_id = record.get("special_id")
    if not special_id:
        return RowOutcome(index, reason="Special ID is required.")

    try:
        existing = store.get_by_special_id(special_id)
        if existing is None:
            if update_only:
                return RowOutcome(index, special_id, reason="Record not found (update only mode).")
            store.insert(record)
            return RowOutcome(index, special_id, CREATED)

        fields = {c: record[c] for c in CLASS_COLUMNS if c != "special_id"}
        # видео из админки не затираем пустой ячейкой
        if not fields["class_video"]:
            fields["class_video"] = existing.get("class_video")

        changed = {c: v for c, v in fields.items() if existing.get(c) != v}
        if not changed:
            return RowOutcome(index, special_id, UNCHANGED)
        store.update(existing["id"], changed)
        return RowOutcome(index, special_id, UPDATED)
    except (StorageError, NotFoundError) as e:
        return RowOutcome(index, special_id, reason=str(e))


def reconcile(
    store: ClassStore,
    rows: Iterable[Mapping[str, Any]],
    update_only: bool = False,
    workers: Optional[int] = None,
) -> BulkUploadResult:
    """
    Upsert every row by special id. Rows are independent: a bad row is
    reported in ``skipped`` and the rest of the batch goes on. Returns once
    every row has finished.
    """
    rows = list(rows)
    result = BulkUploadResult()
    if not rows:
        return result

    workers = max(1, min(workers or settings.bulk_workers, len(rows)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="bulk-import") as pool:
        outcomes = list(
            pool.map(
                lambda item: reconcile_row(store, item[0], item[1], update_only),
                enumerate(rows),
            )
        )

    for o in outcomes:
        if o.ok:
            result.processed.append({"index": o.index, "specialId": o.special_id, "action": o.action})
        else:
            logger.debug("row %s skipped: %s", o.index, o.reason)
            result.skipped.append({"index": o.index, "reason": o.reason})

    logger.info(
        "Bulk import done: processed=%s skipped=%s update_only=%s",
        result.processed_count,
        result.skipped_count,
        update_only,
    )
    return result
