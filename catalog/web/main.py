from __future__ import annotations

import io
import logging
import os
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, File, Form, Header, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from catalog.config import settings
from catalog.db.sqlite import ClassStore, SettingsStore, init_db
from catalog.errors import (
    CatalogError,
    DuplicateSpecialIdError,
    InvalidSourceError,
    NotFoundError,
    ProductNotFoundError,
    StorageError,
    ValidationError,
)
from catalog.services.app_settings import (
    load_columns,
    load_sheets_settings,
    save_columns,
    save_sheets_settings,
)
from catalog.services.auto_sync import SheetAutoSync
from catalog.services.bulk_import import BulkUploadResult, reconcile
from catalog.services.cart import (
    CartLine,
    CartView,
    add_line,
    lines_from_dicts,
    lines_to_dicts,
    remove_line,
    set_line,
    summarize,
)
from catalog.services.exports import export_catalog_xlsx
from catalog.services.order_form import build_order_form, normalize_customer_info
from catalog.services.order_ids import current_order_id, next_order_id
from catalog.services.order_pdf import render_order_pdf
from catalog.services.payload import normalize_payload, record_to_api
from catalog.services.sheets import fetch_sheet_rows, read_csv_rows, read_xlsx_rows, require_rows
from catalog.services.special_id import next_special_id
from catalog.services.uploads import release_videos, remove_uploaded, save_video
from catalog.utils.validators import INT64_MAX, parse_integer, parse_number

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

app = FastAPI(title="Class Catalog API")

app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    max_age=settings.session_max_age,
)
if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

os.makedirs(settings.uploads_dir, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.uploads_dir), name="uploads")


# ---------------- errors ----------------

_STATUS = (
    (DuplicateSpecialIdError, 409),
    (StorageError, 500),
    (NotFoundError, 404),
    (ValidationError, 400),
    (InvalidSourceError, 400),
)


@app.exception_handler(CatalogError)
def _catalog_error(request: Request, exc: CatalogError) -> JSONResponse:
    status = next((code for kind, code in _STATUS if isinstance(exc, kind)), 500)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"message": str(exc)})


@app.exception_handler(StarletteHTTPException)
def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})


# ---------------- dependencies ----------------

def get_class_store() -> ClassStore:
    return ClassStore()


def get_settings_store() -> SettingsStore:
    return SettingsStore()


def require_admin(x_admin_passcode: Optional[str] = Header(None)) -> None:
    if (x_admin_passcode or "").strip() != settings.admin_passcode:
        raise HTTPException(status_code=403, detail="Admin passcode required.")


def _sync_sheet(store: ClassStore, url: str, update_only: bool = False) -> BulkUploadResult:
    rows = require_rows(fetch_sheet_rows(url), "Google Sheets")
    return reconcile(store, rows, update_only=update_only)


_auto_sync: Optional[SheetAutoSync] = None


def get_auto_sync() -> SheetAutoSync:
    global _auto_sync
    if _auto_sync is None:
        _auto_sync = SheetAutoSync(
            SettingsStore(),
            runner=lambda url: _sync_sheet(ClassStore(), url),
            interval=settings.sheets_sync_interval,
        )
    return _auto_sync


@app.on_event("startup")
def _startup() -> None:
    init_db()
    if settings.sheets_auto_sync_thread:
        get_auto_sync().start()


@app.on_event("shutdown")
def _shutdown() -> None:
    if _auto_sync is not None:
        _auto_sync.stop()


def _flag(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    return str(v or "").strip().lower() in ("1", "true", "yes", "on")


def _required_int(payload: Dict[str, Any], key: str) -> int:
    value = parse_integer(payload.get(key), key)
    if value is None:
        raise ValidationError(f"{key} is required.")
    return value


@app.get("/health")
def health():
    return {"status": "ok"}


# ---------------- auth ----------------

@app.post("/api/auth/login")
def login(payload: Dict[str, Any] = Body(...)):
    password = str(payload.get("password") or "").strip()
    if password == settings.admin_passcode:
        return {"role": "admin"}
    # без USER_PASSWORD пользователь входит с пустым паролем
    if password == settings.user_password:
        return {"role": "user"}
    raise HTTPException(status_code=401, detail="Invalid password.")


# ---------------- classes ----------------

@app.get("/api/classes")
def classes_list(
    classNameSearch: Optional[str] = None,
    codeSearch: Optional[str] = None,
    category: Optional[str] = None,
    quality: Optional[str] = None,
    includeZeroQuantity: bool = False,
    store: ClassStore = Depends(get_class_store),
):
    rows = store.list(
        class_name_search=classNameSearch,
        code_search=codeSearch,
        category=category,
        quality=quality,
        include_zero_quantity=includeZeroQuantity,
    )
    return [record_to_api(r) for r in rows]


@app.get("/api/classes/export", dependencies=[Depends(require_admin)])
def classes_export(store: ClassStore = Depends(get_class_store)):
    buf = io.BytesIO()
    export_catalog_xlsx([record_to_api(r) for r in store.list(include_zero_quantity=True)], buf)
    return Response(
        content=buf.getvalue(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="classes-export.xlsx"'},
    )


@app.get("/api/classes/{identifier}")
def classes_get(identifier: str, store: ClassStore = Depends(get_class_store)):
    row = None
    if identifier.isdecimal() and int(identifier) <= INT64_MAX:
        row = store.get(int(identifier))
    if row is None:
        row = store.get_by_special_id(identifier)
    if row is None:
        raise NotFoundError(f"Class not found: {identifier}")
    return record_to_api(row)


@app.post("/api/classes/generate-id", dependencies=[Depends(require_admin)])
def classes_generate_id(
    payload: Optional[Dict[str, Any]] = Body(None),
    store: ClassStore = Depends(get_class_store),
):
    prefix = str((payload or {}).get("prefix") or "").strip()
    if prefix:
        return {"specialId": next_special_id(store, prefix)}
    return {"specialId": next_special_id(store)}


def _form_fields(**fields: Optional[str]) -> Dict[str, Any]:
    return {k: v for k, v in fields.items() if v is not None}


def _store_upload(video: Optional[UploadFile]) -> Optional[str]:
    if video is None or not video.filename:
        return None
    return save_video(video.file, video.filename)


@app.post("/api/classes", status_code=201, dependencies=[Depends(require_admin)])
def classes_create(
    specialId: Optional[str] = Form(None),
    mainCategory: Optional[str] = Form(None),
    quality: Optional[str] = Form(None),
    className: Optional[str] = Form(None),
    classNameArabic: Optional[str] = Form(None),
    classNameEnglish: Optional[str] = Form(None),
    classFeatures: Optional[str] = Form(None),
    classPrice: Optional[str] = Form(None),
    classWeight: Optional[str] = Form(None),
    classQuantity: Optional[str] = Form(None),
    classVideoUrl: Optional[str] = Form(None),
    classVideo: Optional[UploadFile] = File(None),
    store: ClassStore = Depends(get_class_store),
):
    uploaded = _store_upload(classVideo)
    try:
        raw = _form_fields(
            specialId=specialId,
            mainCategory=mainCategory,
            quality=quality,
            className=className,
            classNameArabic=classNameArabic,
            classNameEnglish=classNameEnglish,
            classFeatures=classFeatures,
            classPrice=classPrice,
            classWeight=classWeight,
            classQuantity=classQuantity,
            classVideoUrl=classVideoUrl,
        )
        if uploaded:
            raw["classVideoUrl"] = uploaded
        fields = normalize_payload(raw)
        if not fields["special_id"]:
            fields["special_id"] = next_special_id(store)
        row = store.insert(fields)
    except Exception:
        remove_uploaded(uploaded)
        raise
    logger.info("Class created: id=%s special_id=%s", row["id"], row["special_id"])
    return record_to_api(row)


@app.put("/api/classes/{class_id}", dependencies=[Depends(require_admin)])
def classes_update(
    class_id: int,
    specialId: Optional[str] = Form(None),
    mainCategory: Optional[str] = Form(None),
    quality: Optional[str] = Form(None),
    className: Optional[str] = Form(None),
    classNameArabic: Optional[str] = Form(None),
    classNameEnglish: Optional[str] = Form(None),
    classFeatures: Optional[str] = Form(None),
    classPrice: Optional[str] = Form(None),
    classWeight: Optional[str] = Form(None),
    classQuantity: Optional[str] = Form(None),
    classVideoUrl: Optional[str] = Form(None),
    classVideo: Optional[UploadFile] = File(None),
    store: ClassStore = Depends(get_class_store),
):
    existing = store.get(class_id)
    if existing is None:
        raise NotFoundError(f"Class not found: {class_id}")

    uploaded = _store_upload(classVideo)
    try:
        raw = _form_fields(
            specialId=specialId,
            mainCategory=mainCategory,
            quality=quality,
            className=className,
            classNameArabic=classNameArabic,
            classNameEnglish=classNameEnglish,
            classFeatures=classFeatures,
            classPrice=classPrice,
            classWeight=classWeight,
            classQuantity=classQuantity,
            classVideoUrl=classVideoUrl,
        )
        if uploaded:
            raw["classVideoUrl"] = uploaded
        row = store.update(class_id, normalize_payload(raw, existing))
    except Exception:
        remove_uploaded(uploaded)
        raise

    old_video = existing.get("class_video")
    if old_video and old_video != row.get("class_video"):
        release_videos(store, [old_video])
    return record_to_api(row)


@app.delete("/api/classes/{class_id}", status_code=204, dependencies=[Depends(require_admin)])
def classes_delete(class_id: int, store: ClassStore = Depends(get_class_store)):
    row = store.delete(class_id)
    release_videos(store, [row.get("class_video")])
    logger.info("Class deleted: id=%s special_id=%s", class_id, row.get("special_id"))
    return Response(status_code=204)


@app.delete("/api/classes", dependencies=[Depends(require_admin)])
def classes_delete_all(store: ClassStore = Depends(get_class_store)):
    rows = store.delete_all()
    release_videos(store, [r.get("class_video") for r in rows])
    logger.info("All classes deleted: %s", len(rows))
    return {"deletedCount": len(rows)}


@app.post("/api/classes/bulk-upload", dependencies=[Depends(require_admin)])
def classes_bulk_upload(
    file: UploadFile = File(...),
    updateOnly: Optional[str] = Form(None),
    store: ClassStore = Depends(get_class_store),
):
    max_bytes = settings.max_sheet_mb * 1024 * 1024
    data = file.file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise ValidationError(f"File is too large (max {settings.max_sheet_mb} MB).")

    name = (file.filename or "").lower()
    if name.endswith(".csv"):
        rows = read_csv_rows(data.decode("utf-8-sig", errors="replace"))
    elif name.endswith((".xlsx", ".xlsm")):
        rows = read_xlsx_rows(io.BytesIO(data))
    else:
        raise InvalidSourceError("Only .xlsx and .csv files are supported.")

    result = reconcile(store, require_rows(rows, "Uploaded file"), update_only=_flag(updateOnly))
    return result.to_dict()


@app.post("/api/classes/sync-from-sheets", dependencies=[Depends(require_admin)])
def classes_sync_from_sheets(
    payload: Optional[Dict[str, Any]] = Body(None),
    store: ClassStore = Depends(get_class_store),
    settings_store: SettingsStore = Depends(get_settings_store),
    auto_sync: SheetAutoSync = Depends(get_auto_sync),
):
    payload = payload or {}
    url = str(payload.get("sheetsUrl") or "").strip() or load_sheets_settings(settings_store)["url"]
    if not url:
        raise ValidationError("Google Sheets URL is required.")

    update_only = _flag(payload.get("updateOnly"))
    result = auto_sync.run_exclusive(lambda: _sync_sheet(store, url, update_only))
    if result is None:
        raise HTTPException(status_code=409, detail="A Google Sheets sync is already running.")
    return result.to_dict()


# ---------------- cart (session mirror) ----------------

def _cart_lines(request: Request) -> List[CartLine]:
    return lines_from_dicts(request.session.get("cart") or [])


def _save_cart(request: Request, lines: List[CartLine]) -> None:
    request.session["cart"] = lines_to_dicts(lines)


def _cart_view(lines: List[CartLine], store: ClassStore) -> CartView:
    rows = store.get_many(line.class_id for line in lines)
    return summarize(lines, {cid: record_to_api(r) for cid, r in rows.items()})


@app.get("/api/cart")
def cart_get(request: Request, store: ClassStore = Depends(get_class_store)):
    return _cart_view(_cart_lines(request), store).to_dict()


@app.post("/api/cart/add")
def cart_add(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    store: ClassStore = Depends(get_class_store),
):
    class_id = _required_int(payload, "classId")
    if store.get(class_id) is None:
        raise ProductNotFoundError(class_id)
    lines = add_line(_cart_lines(request), class_id)
    _save_cart(request, lines)
    return _cart_view(lines, store).to_dict()


@app.put("/api/cart/update")
def cart_update(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    store: ClassStore = Depends(get_class_store),
):
    class_id = _required_int(payload, "classId")
    quantity = _required_int(payload, "quantity")
    if quantity > 0 and store.get(class_id) is None:
        raise ProductNotFoundError(class_id)
    lines = set_line(_cart_lines(request), class_id, quantity)
    _save_cart(request, lines)
    return _cart_view(lines, store).to_dict()


@app.delete("/api/cart/remove/{class_id}")
def cart_remove(request: Request, class_id: int, store: ClassStore = Depends(get_class_store)):
    lines = remove_line(_cart_lines(request), class_id)
    _save_cart(request, lines)
    return _cart_view(lines, store).to_dict()


@app.delete("/api/cart/clear")
def cart_clear(request: Request):
    _save_cart(request, [])
    return CartView(items=[], total_items=0, known_total=0.0, has_unknown_prices=False).to_dict()


@app.get("/api/cart/order-id")
def order_id_current(settings_store: SettingsStore = Depends(get_settings_store)):
    return {"orderId": current_order_id(settings_store)}


@app.post("/api/cart/order-id")
def order_id_next(settings_store: SettingsStore = Depends(get_settings_store)):
    return {"orderId": next_order_id(settings_store)}


# ---------------- orders ----------------

@app.post("/api/orders/pdf")
def orders_pdf(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    store: ClassStore = Depends(get_class_store),
    settings_store: SettingsStore = Depends(get_settings_store),
):
    items = payload.get("items")
    if items:
        if not isinstance(items, list) or not all(
            isinstance(item, dict) and isinstance(item.get("record") or {}, dict) for item in items
        ):
            raise ValidationError("Invalid order items.")
        # итоги считаем заново по присланным записям
        records = {i: dict(item.get("record") or {}) for i, item in enumerate(items)}
        for record in records.values():
            record["classPrice"] = parse_number(record.get("classPrice"), "classPrice")
        lines = [CartLine(i, _required_int(item, "quantity")) for i, item in enumerate(items)]
        view = summarize(lines, records)
    else:
        view = _cart_view(_cart_lines(request), store)

    customer_info = payload.get("customerInfo") or {}
    # проверка до выдачи номера
    normalize_customer_info(customer_info)
    if not view.items:
        raise ValidationError("Cart is empty.")

    order_id = parse_integer(payload.get("orderId"), "orderId")
    if order_id is None:
        order_id = next_order_id(settings_store)
    form = build_order_form(view, customer_info, payload.get("language") or "en", order_id)

    buf = io.BytesIO()
    render_order_pdf(form, buf)
    logger.info("Order form %s rendered: %s items", order_id, form["totalItems"])
    return Response(
        content=buf.getvalue(),
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="order-form-{order_id}.pdf"',
            "X-Order-Id": str(order_id),
        },
    )


# ---------------- settings ----------------

@app.get("/api/settings/columns")
def settings_columns_get(settings_store: SettingsStore = Depends(get_settings_store)):
    return load_columns(settings_store)


@app.put("/api/settings/columns", dependencies=[Depends(require_admin)])
def settings_columns_put(
    payload: Dict[str, Any] = Body(...),
    settings_store: SettingsStore = Depends(get_settings_store),
):
    return save_columns(settings_store, payload.get("columns"))


@app.get("/api/settings/google-sheets")
def settings_sheets_get(settings_store: SettingsStore = Depends(get_settings_store)):
    return load_sheets_settings(settings_store)


@app.put("/api/settings/google-sheets", dependencies=[Depends(require_admin)])
def settings_sheets_put(
    payload: Dict[str, Any] = Body(...),
    settings_store: SettingsStore = Depends(get_settings_store),
):
    return save_sheets_settings(settings_store, payload.get("url"), payload.get("autoSync"))
