"""
Client-side cart: a local store that the UI trusts, plus a best-effort copy
of every change sent to the server session cart.

The local write always happens first and is never undone. Mirror calls run
one by one on a background worker; a failed mirror call is logged and
dropped.
"""
from __future__ import annotations

import json
import logging
import os
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

import requests

from catalog.config import settings
from catalog.errors import ProductNotFoundError, SyncDegradedError
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

logger = logging.getLogger(__name__)


# ---------------- local store ----------------

class CartStore:
    def load(self) -> List[CartLine]:
        raise NotImplementedError

    def save(self, lines: List[CartLine]) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryCartStore(CartStore):
    def __init__(self, lines: Optional[Iterable[CartLine]] = None):
        self._lines = list(lines or [])

    def load(self) -> List[CartLine]:
        return [CartLine(line.class_id, line.quantity) for line in self._lines]

    def save(self, lines: List[CartLine]) -> None:
        self._lines = [CartLine(line.class_id, line.quantity) for line in lines]

    def clear(self) -> None:
        self._lines = []


class JsonFileCartStore(CartStore):
    """Cart in a JSON file, dropped after ``ttl_hours`` without changes."""

    def __init__(self, path: str, ttl_hours: Optional[int] = None, clock: Callable[[], float] = time.time):
        self.path = path
        self.ttl_seconds = (ttl_hours or settings.cart_ttl_hours) * 3600
        self.clock = clock

    def load(self) -> List[CartLine]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            logger.warning("Cart file %s unreadable, starting empty: %s", self.path, e)
            return []

        if self.clock() - float(data.get("timestamp", 0)) >= self.ttl_seconds:
            return []
        try:
            return lines_from_dicts(data.get("items") or [])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Cart file %s has bad items, starting empty: %s", self.path, e)
            return []

    def save(self, lines: List[CartLine]) -> None:
        folder = os.path.dirname(self.path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        tmp = f"{self.path}.tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump({"items": lines_to_dicts(lines), "timestamp": self.clock()}, f)
        os.replace(tmp, self.path)

    def clear(self) -> None:
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass


# ---------------- server mirror ----------------

@dataclass
class MirrorResult:
    op: str
    ok: bool
    error: Optional[str] = None


class CartMirror:
    def add(self, class_id: int) -> None:
        raise NotImplementedError

    def set_quantity(self, class_id: int, quantity: int) -> None:
        raise NotImplementedError

    def remove(self, class_id: int) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class HttpCartMirror(CartMirror):
    """Session cart on the server (``/api/cart``). The requests session keeps the cookie."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _call(self, method: str, path: str, **kwargs: Any) -> None:
        try:
            resp = self.session.request(method, self.base_url + path, timeout=self.timeout, **kwargs)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise SyncDegradedError(f"{method} {path}: {e}") from e

    def add(self, class_id: int) -> None:
        self._call("POST", "/api/cart/add", json={"classId": class_id})

    def set_quantity(self, class_id: int, quantity: int) -> None:
        self._call("PUT", "/api/cart/update", json={"classId": class_id, "quantity": quantity})

    def remove(self, class_id: int) -> None:
        self._call("DELETE", f"/api/cart/remove/{class_id}")

    def clear(self) -> None:
        self._call("DELETE", "/api/cart/clear")


# ---------------- catalog snapshot ----------------

class StaticCatalog:
    def __init__(self, records: Iterable[Mapping[str, Any]] = ()):
        self.records = {int(r["id"]): dict(r) for r in records}

    def snapshot(self) -> Dict[int, Dict[str, Any]]:
        return self.records


class HttpCatalog:
    """``GET /api/classes`` cached for ``ttl`` seconds."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        ttl: float = 300.0,
        timeout: float = 10.0,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.session = session or requests.Session()
        self.ttl = ttl
        self.timeout = timeout
        self._records: Optional[Dict[int, Dict[str, Any]]] = None
        self._fetched_at = 0.0

    def refresh(self) -> Dict[int, Dict[str, Any]]:
        resp = self.session.get(f"{self.base_url}/api/classes", timeout=self.timeout)
        resp.raise_for_status()
        self._records = {int(r["id"]): r for r in resp.json()}
        self._fetched_at = time.monotonic()
        return self._records

    def snapshot(self) -> Dict[int, Dict[str, Any]]:
        if self._records is not None and time.monotonic() - self._fetched_at < self.ttl:
            return self._records
        try:
            return self.refresh()
        except requests.RequestException as e:
            if self._records is None:
                raise
            logger.warning("Catalog refresh failed, using cached snapshot: %s", e)
            return self._records


# ---------------- synchronizer ----------------

class CartSynchronizer:
    def __init__(
        self,
        store: CartStore,
        catalog: Union[StaticCatalog, HttpCatalog],
        mirror: Optional[CartMirror] = None,
        executor: Optional[Executor] = None,
    ):
        self.store = store
        self.catalog = catalog
        self.mirror = mirror
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="cart-mirror")
        self._lock = threading.Lock()

    def _mirror_call(self, op: str, fn: Callable[..., None], *args: Any) -> MirrorResult:
        try:
            fn(*args)
        except SyncDegradedError as e:
            logger.warning("Cart mirror %s failed, local cart kept: %s", op, e)
            return MirrorResult(op, False, str(e))
        return MirrorResult(op, True)

    def _send(self, op: str, fn_name: str, *args: Any) -> Optional[Future]:
        if self.mirror is None:
            return None
        return self._executor.submit(self._mirror_call, op, getattr(self.mirror, fn_name), *args)

    def add(self, product_id: int) -> Optional[Future]:
        if product_id not in self.catalog.snapshot():
            raise ProductNotFoundError(product_id)
        with self._lock:
            self.store.save(add_line(self.store.load(), product_id))
        return self._send("add", "add", product_id)

    def set_quantity(self, product_id: int, quantity: int) -> Optional[Future]:
        if quantity <= 0:
            return self.remove(product_id)
        if product_id not in self.catalog.snapshot():
            raise ProductNotFoundError(product_id)
        with self._lock:
            self.store.save(set_line(self.store.load(), product_id, quantity))
        return self._send("set_quantity", "set_quantity", product_id, quantity)

    def remove(self, product_id: int) -> Optional[Future]:
        with self._lock:
            self.store.save(remove_line(self.store.load(), product_id))
        return self._send("remove", "remove", product_id)

    def clear(self) -> Optional[Future]:
        with self._lock:
            self.store.clear()
        return self._send("clear", "clear")

    def replace_all(self, lines: Iterable[Union[CartLine, Mapping[str, Any]]]) -> Optional[Future]:
        new: List[CartLine] = []
        for line in lines:
            if not isinstance(line, CartLine):
                line = CartLine.from_dict(line)
            new = set_line(new, line.class_id, line.quantity)
        with self._lock:
            self.store.save(new)
        if self.mirror is None:
            return None
        return self._executor.submit(self._mirror_call, "replace_all", self._mirror_replace, new)

    def _mirror_replace(self, lines: List[CartLine]) -> None:
        self.mirror.clear()
        for line in lines:
            self.mirror.set_quantity(line.class_id, line.quantity)

    def read(self) -> CartView:
        return summarize(self.store.load(), self.catalog.snapshot())

    def wait_for_mirror(self, timeout: Optional[float] = None) -> None:
        # один воркер: пустая задача завершится после всех предыдущих
        self._executor.submit(lambda: None).result(timeout)

    def close(self) -> None:
        self._executor.shutdown(wait=True)
