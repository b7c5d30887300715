from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from catalog.constants import DELETE_VIDEO_SENTINEL
from catalog.utils.validators import parse_integer, parse_number

ClassPatch = Dict[str, Any]

# api name -> column
_REQUIRED_TEXT = {
    "mainCategory": "main_category",
    "quality": "quality",
    "className": "class_name",
}
_NULLABLE_TEXT = {
    "classNameArabic": "class_name_ar",
    "classNameEnglish": "class_name_en",
    "classFeatures": "class_features",
}

_MISSING = object()


def _text(v: Any) -> str:
    if isinstance(v, float) and v.is_integer():
        v = int(v)
    return str(v).strip()


def record_to_api(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "specialId": row["special_id"],
        "mainCategory": row["main_category"],
        "quality": row["quality"],
        "className": row["class_name"],
        "classNameArabic": row.get("class_name_ar"),
        "classNameEnglish": row.get("class_name_en"),
        "classFeatures": row.get("class_features"),
        "classPrice": row.get("class_price"),
        "classWeight": row.get("class_weight"),
        "classQuantity": row.get("class_quantity"),
        "classVideo": row.get("class_video"),
        "createdAt": row.get("created_at"),
        "updatedAt": row.get("updated_at"),
    }


def normalize_payload(raw: Mapping[str, Any], existing: Optional[Mapping[str, Any]] = None) -> ClassPatch:
    """
    Приводит сырые поля формы/строки таблицы к колонкам ``classes``.

    Without ``existing`` the result is a full record for insert. With
    ``existing`` only the specified fields are returned, so the result can be
    passed straight to ``ClassStore.update``. Raises ``ValidationError`` for
    numbers that do not parse.
    """
    creating = existing is None
    patch: ClassPatch = {}

    for key, column in _REQUIRED_TEXT.items():
        v = raw.get(key, _MISSING)
        text = "" if v is _MISSING or v is None else _text(v)
        if text or creating:
            patch[column] = text

    for key, column in _NULLABLE_TEXT.items():
        v = raw.get(key, _MISSING)
        if v is None:
            patch[column] = None
            continue
        text = "" if v is _MISSING else _text(v)
        if text:
            patch[column] = text
        elif creating:
            patch[column] = None

    for key, column, parse in (
        ("classPrice", "class_price", parse_number),
        ("classWeight", "class_weight", parse_number),
        ("classQuantity", "class_quantity", parse_integer),
    ):
        v = raw.get(key, _MISSING)
        if v is _MISSING:
            if creating:
                patch[column] = None
            continue
        patch[column] = parse(v, key)

    special_id = raw.get("specialId")
    if special_id is not None and _text(special_id):
        patch["special_id"] = _text(special_id).upper()
    elif creating:
        patch["special_id"] = None

    video = raw.get("classVideoUrl")
    if video is not None and _text(video):
        video = _text(video)
        patch["class_video"] = None if video == DELETE_VIDEO_SENTINEL else video
    elif creating:
        patch["class_video"] = None

    return patch
