"""Linked QuickBooks realm (company) id.

At most one realm id is held per process. It is persisted to a small JSON file
under a single key and stays valid until `clear()` is called; there is no
expiry.

Lifecycle:
- `init_realm_store(path, address)` once at startup. This reads the persisted
  value and, if the startup address carries a `realmId` query parameter that
  differs from it, adopts the new id and rewrites the address without that
  parameter.
- `get_realm_store().current_id()` at submit time.
- `adopt(realm_id)` after an explicit connect, `clear()` on disconnect.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from urllib.parse import parse_qsl, unquote_plus, urlsplit, urlunsplit

logger = logging.getLogger(__name__)

REALM_STORAGE_KEY = "qb_realm_id"
REALM_QUERY_PARAM = "realmId"


@dataclass(frozen=True, slots=True)
class RealmAdoption:
    realm_id: str | None
    url: str
    adopted: bool


def adopt_realm_from_url(url: str, persisted: str | None = None) -> RealmAdoption:
    """Pure adopt-and-normalize step for a redirect address.

    Returns the realm id to hold afterwards and the address to show. The
    address only changes when a new id is adopted; other query parameters and
    the fragment are preserved.
    """

    parts = urlsplit(url)
    pairs = parse_qsl(parts.query, keep_blank_values=True)
    candidate = next((v for k, v in pairs if k == REALM_QUERY_PARAM and v), None)

    if not candidate or candidate == persisted:
        return RealmAdoption(realm_id=persisted, url=url, adopted=False)

    # Kept parameters are copied as written, without re-encoding.
    remaining = [
        segment
        for segment in parts.query.split("&")
        if segment and unquote_plus(segment.split("=", 1)[0]) != REALM_QUERY_PARAM
    ]
    cleaned = urlunsplit(parts._replace(query="&".join(remaining)))
    return RealmAdoption(realm_id=candidate, url=cleaned, adopted=True)


class AddressBar:
    """The visible address. `replace` swaps it in place, with no navigation."""

    def __init__(self, url: str) -> None:
        self.url = url

    def replace(self, url: str) -> None:
        self.url = url


class RealmStore:
    def __init__(self, path: str) -> None:
        self._path = path
        self._realm_id: str | None = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def is_linked(self) -> bool:
        return self._realm_id is not None

    def current_id(self) -> str | None:
        return self._realm_id

    def initialize(self, address: AddressBar | None = None) -> RealmAdoption | None:
        self._realm_id = self._read()
        if address is None:
            return None
        return self.adopt_from_address(address)

    def adopt_from_address(self, address: AddressBar) -> RealmAdoption:
        adoption = adopt_realm_from_url(address.url, self._realm_id)
        if adoption.adopted:
            self.adopt(adoption.realm_id)
            address.replace(adoption.url)
        return adoption

    def adopt(self, realm_id: str | None) -> None:
        if not realm_id:
            raise ValueError("realm_id must be a non-empty string")
        self._write(realm_id)
        self._realm_id = realm_id
        logger.info("Linked QuickBooks realm (stored at %s)", self._path)

    def clear(self) -> None:
        if os.path.exists(self._path):
            os.remove(self._path)
        self._realm_id = None
        logger.info("Cleared linked QuickBooks realm")

    def _read(self) -> str | None:
        if not os.path.exists(self._path):
            return None
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable realm store %s: %s", self._path, e)
            return None

        value = raw.get(REALM_STORAGE_KEY) if isinstance(raw, dict) else None
        return value if isinstance(value, str) and value else None

    def _write(self, realm_id: str) -> None:
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump({REALM_STORAGE_KEY: realm_id}, f, indent=2)


class RealmStoreNotInitialized(RuntimeError):
    pass


_store: RealmStore | None = None


def init_realm_store(path: str, address: AddressBar | None = None) -> RealmStore:
    """Create and initialize the process-wide store (replacing any previous one)."""

    global _store
    store = RealmStore(path)
    store.initialize(address)
    _store = store
    return store


def get_realm_store() -> RealmStore:
    if _store is None:
        raise RealmStoreNotInitialized("Realm store not initialized; call init_realm_store() first")
    return _store


def reset_realm_store() -> None:
    global _store
    _store = None
