"""Data access layer for the parts ledger.

This module owns every read and write of ledger records. Business rules live
elsewhere.

The public API is organised around four responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Remote row stores: an openpyxl workbook store and a PostgREST-style HTTP
   store, both exposing row-level create/read/update/delete by ID, upsert by
   ID, and an all-or-nothing batch ``apply``.
3. The local cache: one JSON array file per collection, used as the offline
   fallback and as the source for startup sync.
4. :class:`LedgerGateway`: the cache-aside policy tying the two together.
   Every operation tries the remote store first; a successful write is
   mirrored into the cache, and any :class:`RemoteStoreError` is logged and the
   operation is replayed against the cache only.
"""


from __future__ import annotations

import configparser
import json
import os
import tempfile
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

import openpyxl
import requests
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.workbook import Workbook

from . import log, models
from .constants import Collection, StoreBackend


CONFIG_FILE_NAME = "config.ini"
DEFAULT_REMOTE_TIMEOUT = 10.0

SHEET_NAMES: Mapping[Collection, str] = {
    Collection.PRODUCTS: "Products",
    Collection.SALES: "Sales",
    Collection.STANDALONE_CREDITS: "StandaloneCredits",
    Collection.PAYMENTS: "Payments",
}

SHEET_COLUMNS: Mapping[Collection, Sequence[str]] = {
    Collection.PRODUCTS: [
        "id",
        "name",
        "type",
        "category",
        "brand",
        "country",
        "purchasePrice",
        "sellingPrice",
        "quantity",
        "pricing",
    ],
    Collection.SALES: [
        "id",
        "date",
        "buyerName",
        "items",
        "totalRevenue",
        "totalProfit",
        "creditInfo",
    ],
    Collection.STANDALONE_CREDITS: [
        "id",
        "buyerName",
        "creditAmount",
        "description",
        "date",
        "isStandalone",
    ],
    Collection.PAYMENTS: [
        "id",
        "buyerName",
        "amount",
        "date",
        "description",
        "saleId",
        "creditId",
    ],
}

# Columns holding nested structures; the workbook stores them as JSON text.
JSON_COLUMNS = frozenset({"pricing", "items", "creditInfo"})


class RemoteStoreError(Exception):
    """Raised when the remote row store is unreachable or rejects a request."""


class LocalCacheError(Exception):
    """Raised when the local cache cannot be read or written."""


class RecordNotFoundError(KeyError):
    """Raised when a record is absent from both the remote store and the cache."""


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    shop_name: str
    schema_version: str
    backend: StoreBackend
    cache_dir: Path
    data_file: Optional[Path] = None
    remote_url: Optional[str] = None
    remote_api_key: Optional[str] = None
    remote_timeout: float = DEFAULT_REMOTE_TIMEOUT


class MutationKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    UPSERT = "upsert"
    DELETE = "delete"


@dataclass(frozen=True)
class Mutation:
    """A single row-level write, applied as part of a batch."""

    kind: MutationKind
    collection: Collection
    record_id: str
    record: Optional[models.Record] = None


class RowStore(Protocol):
    """Contract the gateway requires of a remote store."""

    def select(self, collection: Collection) -> List[models.Record]: ...

    def apply(self, mutations: Sequence[Mutation]) -> None: ...

    def upsert(self, collection: Collection, record: models.Record) -> models.Record: ...


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification. Otherwise the function walks up from the current
    working directory toward the filesystem root looking for a file named
    ``CONFIG_FILE_NAME``; the first match is considered authoritative.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If no parent directory holds ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path, encoding="utf-8")
    return parser


def _resolve_path(raw: str, base_path: Optional[Path]) -> Path:
    path = Path(raw).expanduser()
    if not path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        path = (base_path / path).resolve()
    return path


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    The ``[Store] Backend`` option selects which remote options are required:
    ``workbook`` needs ``[Store] DataFile``; ``rest`` needs ``[Remote] Url`` and
    ``[Remote] ApiKey``. Relative paths are anchored to ``base_path`` (or the
    current working directory) and resolved.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory used to anchor relative paths.

    Returns:
        ConfigSettings: Immutable settings container.

    Raises:
        KeyError: If a required section or option is missing.
        ValueError: If the backend name or the remote timeout is invalid.
    """

    try:
        shop_name = parser.get("System", "ShopName")
        schema_version = parser.get("System", "SchemaVersion")
        backend_raw = parser.get("Store", "Backend")
        cache_dir_raw = parser.get("Cache", "Directory")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    try:
        backend = StoreBackend(backend_raw.strip().lower())
    except ValueError as exc:
        raise ValueError(f"Unsupported store backend: {backend_raw}") from exc

    data_file = None
    remote_url = None
    remote_api_key = None
    try:
        if backend is StoreBackend.WORKBOOK:
            data_file = _resolve_path(parser.get("Store", "DataFile"), base_path)
        else:
            remote_url = parser.get("Remote", "Url")
            remote_api_key = parser.get("Remote", "ApiKey")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    timeout = parser.getfloat("Remote", "Timeout", fallback=DEFAULT_REMOTE_TIMEOUT)
    if timeout <= 0:
        raise ValueError(f"Remote timeout must be positive: {timeout}")

    return ConfigSettings(
        shop_name=shop_name,
        schema_version=schema_version,
        backend=backend,
        cache_dir=_resolve_path(cache_dir_raw, base_path),
        data_file=data_file,
        remote_url=remote_url,
        remote_api_key=remote_api_key,
        remote_timeout=timeout,
    )


# ---------------------------------------------------------------------------
# Workbook row store
# ---------------------------------------------------------------------------


def open_workbook(data_file: Path) -> Workbook:
    """Open the master Excel workbook and return a live ``openpyxl`` workbook.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist after expansion and
            resolution.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    return openpyxl.load_workbook(data_file)


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook, creating parent directories on demand."""

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)


def locate_row(workbook: Workbook, sheet_name: str, key_column: str, key_value: str) -> Optional[int]:
    """Find a row by matching a key value within the specified worksheet.

    Args:
        workbook (Workbook): Workbook providing access to ``sheet_name``.
        sheet_name (str): Name of the worksheet to search.
        key_column (str): Header title identifying the key column.
        key_value (str): Value to match within the key column.

    Returns:
        int | None: 1-based Excel row index when a match is found, otherwise
            ``None``.

    Raises:
        KeyError: If ``key_column`` is not present in the worksheet header.
    """

    sheet = workbook[sheet_name]
    header_cells = list(sheet[1])
    header_map = {cell.value: idx + 1 for idx, cell in enumerate(header_cells)}
    if key_column not in header_map:
        raise KeyError(f"Unknown column: {key_column}")

    key_col_index = header_map[key_column]

    for row_idx, row in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
        cell_value = row[key_col_index - 1]
        if cell_value is not None and str(cell_value) == key_value:
            return row_idx

    return None


def serialize_row(collection: Collection, record: Mapping[str, Any]) -> List[object]:
    """Arrange a record into the worksheet column order of ``collection``.

    Nested mappings and lists are encoded as JSON text; absent keys become
    empty cells.
    """

    row: List[object] = []
    for column in SHEET_COLUMNS[collection]:
        value = record.get(column)
        if column in JSON_COLUMNS and value is not None:
            value = json.dumps(value, ensure_ascii=False)
        row.append(value)
    return row


def deserialize_row(headers: Sequence[Any], raw_row: Sequence[object]) -> models.Record:
    """Convert a worksheet row into a record mapping keyed by header titles.

    Blank cells are dropped so that optional fields stay absent. JSON columns
    that fail to decode are left out, letting the record reader fall back to
    its defaults.
    """

    record: models.Record = {}
    for header, value in zip(headers, raw_row):
        if header is None or value is None:
            continue
        if header in JSON_COLUMNS and isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                log.warning("Skipping undecodable '%s' cell in workbook row", header)
                continue
        record[str(header)] = value
    return record


class WorkbookRowStore:
    """Row store backed by an ``openpyxl`` workbook with one sheet per collection.

    The workbook is opened lazily and saved after every batch. A batch that
    fails midway discards in-memory edits by reloading the file, so a batch
    either lands completely or not at all.
    """

    def __init__(self, data_file: Path) -> None:
        self.data_file = Path(data_file).expanduser().resolve()
        self._workbook: Optional[Workbook] = None

    @property
    def workbook(self) -> Workbook:
        if self._workbook is None:
            try:
                self._workbook = open_workbook(self.data_file)
            except (FileNotFoundError, InvalidFileException, OSError) as exc:
                raise RemoteStoreError(f"Unable to open workbook '{self.data_file}': {exc}") from exc
            log.debug("Opened workbook '%s'", self.data_file)
        return self._workbook

    def _sheet(self, collection: Collection):
        try:
            return self.workbook[SHEET_NAMES[collection]]
        except KeyError as exc:
            raise RemoteStoreError(f"Workbook has no '{SHEET_NAMES[collection]}' sheet") from exc

    def select(self, collection: Collection) -> List[models.Record]:
        sheet = self._sheet(collection)
        headers = [cell.value for cell in sheet[1]]
        records = []
        for raw in sheet.iter_rows(min_row=2, values_only=True):
            # skip fully empty rows
            if any(cell is not None for cell in raw):
                records.append(deserialize_row(headers, raw))
        return records

    def fetch(self, collection: Collection, record_id: str) -> Optional[models.Record]:
        sheet = self._sheet(collection)
        row_index = locate_row(self.workbook, sheet.title, "id", record_id)
        if row_index is None:
            return None
        headers = [cell.value for cell in sheet[1]]
        raw = [cell.value for cell in sheet[row_index]]
        return deserialize_row(headers, raw)

    def _apply_one(self, mutation: Mutation) -> None:
        sheet = self._sheet(mutation.collection)
        row_index = locate_row(self.workbook, sheet.title, "id", mutation.record_id)

        if mutation.kind is MutationKind.DELETE:
            if row_index is not None:
                sheet.delete_rows(row_index)
            return

        if mutation.kind is MutationKind.INSERT and row_index is not None:
            raise RemoteStoreError(
                f"Duplicate id '{mutation.record_id}' in {mutation.collection.value}")
        if mutation.kind is MutationKind.UPDATE and row_index is None:
            raise RemoteStoreError(
                f"No {mutation.collection.value} row with id '{mutation.record_id}'")

        values = serialize_row(mutation.collection, mutation.record or {})
        if row_index is None:
            sheet.append(values)
        else:
            for column_index, value in enumerate(values, start=1):
                sheet.cell(row=row_index, column=column_index, value=value)

    def apply(self, mutations: Sequence[Mutation]) -> None:
        try:
            for mutation in mutations:
                self._apply_one(mutation)
            save_workbook(self.workbook, self.data_file)
        except (RemoteStoreError, OSError) as exc:
            # Drop partial edits; the next access reloads from disk.
            self._workbook = None
            if isinstance(exc, RemoteStoreError):
                raise
            raise RemoteStoreError(f"Unable to save workbook '{self.data_file}': {exc}") from exc

    def insert(self, collection: Collection, record: models.Record) -> models.Record:
        self.apply([Mutation(MutationKind.INSERT, collection, str(record["id"]), dict(record))])
        return dict(record)

    def update(self, collection: Collection, record: models.Record) -> models.Record:
        self.apply([Mutation(MutationKind.UPDATE, collection, str(record["id"]), dict(record))])
        return dict(record)

    def upsert(self, collection: Collection, record: models.Record) -> models.Record:
        self.apply([Mutation(MutationKind.UPSERT, collection, str(record["id"]), dict(record))])
        return dict(record)

    def delete(self, collection: Collection, record_id: str) -> None:
        self.apply([Mutation(MutationKind.DELETE, collection, record_id)])


# ---------------------------------------------------------------------------
# REST row store
# ---------------------------------------------------------------------------


class RestRowStore:
    """Row store speaking the PostgREST dialect (as exposed by Supabase).

    Each collection is a table at ``{base_url}/{collection}``. Rows are
    filtered with ``id=eq.<id>``; upserts use
    ``Prefer: resolution=merge-duplicates``. HTTP has no multi-table
    transaction, so :meth:`apply` snapshots each target row before writing it
    and restores the snapshots in reverse order when a later step fails.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = DEFAULT_REMOTE_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            }
        )

    def _request(
        self,
        method: str,
        collection: Collection,
        *,
        params: Optional[Dict[str, str]] = None,
        payload: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        url = f"{self.base_url}/{collection.value}"
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise RemoteStoreError(f"{method} {url} failed: {exc}") from exc

        if response.status_code >= 400:
            raise RemoteStoreError(f"{method} {url} returned HTTP {response.status_code}: {response.text}")
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteStoreError(f"{method} {url} returned non-JSON body") from exc

    @staticmethod
    def _by_id(record_id: str) -> Dict[str, str]:
        return {"id": f"eq.{record_id}"}

    def select(self, collection: Collection) -> List[models.Record]:
        rows = self._request("GET", collection, params={"select": "*"})
        return list(rows or [])

    def fetch(self, collection: Collection, record_id: str) -> Optional[models.Record]:
        rows = self._request("GET", collection, params={"select": "*", **self._by_id(record_id)})
        return rows[0] if rows else None

    def insert(self, collection: Collection, record: models.Record) -> models.Record:
        rows = self._request("POST", collection, payload=[dict(record)], prefer="return=representation")
        return rows[0] if rows else dict(record)

    def update(self, collection: Collection, record: models.Record) -> models.Record:
        rows = self._request(
            "PATCH",
            collection,
            params=self._by_id(str(record["id"])),
            payload=dict(record),
            prefer="return=representation",
        )
        if not rows:
            raise RemoteStoreError(f"No {collection.value} row with id '{record['id']}'")
        return rows[0]

    def upsert(self, collection: Collection, record: models.Record) -> models.Record:
        rows = self._request(
            "POST",
            collection,
            params={"on_conflict": "id"},
            payload=[dict(record)],
            prefer="resolution=merge-duplicates,return=representation",
        )
        return rows[0] if rows else dict(record)

    def delete(self, collection: Collection, record_id: str) -> None:
        self._request("DELETE", collection, params=self._by_id(record_id))

    def _apply_one(self, mutation: Mutation) -> None:
        if mutation.kind is MutationKind.DELETE:
            self.delete(mutation.collection, mutation.record_id)
        elif mutation.kind is MutationKind.INSERT:
            self.insert(mutation.collection, mutation.record or {})
        elif mutation.kind is MutationKind.UPDATE:
            self.update(mutation.collection, mutation.record or {})
        else:
            self.upsert(mutation.collection, mutation.record or {})

    def apply(self, mutations: Sequence[Mutation]) -> None:
        applied: List[Tuple[Mutation, Optional[models.Record]]] = []
        try:
            for mutation in mutations:
                prior = self.fetch(mutation.collection, mutation.record_id)
                self._apply_one(mutation)
                applied.append((mutation, prior))
        except RemoteStoreError:
            self._rollback(applied)
            raise

    def _rollback(self, applied: Sequence[Tuple[Mutation, Optional[models.Record]]]) -> None:
        for mutation, prior in reversed(applied):
            try:
                if prior is None:
                    self.delete(mutation.collection, mutation.record_id)
                else:
                    self.upsert(mutation.collection, prior)
            except RemoteStoreError as exc:
                log.error(
                    "Rollback of %s on %s '%s' failed: %s",
                    mutation.kind.value,
                    mutation.collection.value,
                    mutation.record_id,
                    exc,
                )


# ---------------------------------------------------------------------------
# Local cache
# ---------------------------------------------------------------------------


class LocalCache:
    """JSON-file cache holding one array per collection.

    Each collection lives at ``<directory>/<collection>.json``. Files are
    replaced atomically (write to a temp file, then ``os.replace``).
    """

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory).expanduser().resolve()

    def path_for(self, collection: Collection) -> Path:
        return self.directory / f"{collection.value}.json"

    def load(self, collection: Collection) -> List[models.Record]:
        path = self.path_for(collection)
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise LocalCacheError(f"Unable to read cache file '{path}': {exc}") from exc
        if not isinstance(data, list):
            raise LocalCacheError(f"Cache file '{path}' does not hold a JSON array")
        return data

    def store(self, collection: Collection, records: Iterable[models.Record]) -> None:
        path = self.path_for(collection)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{collection.value}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(list(records), handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except OSError as exc:
            raise LocalCacheError(f"Unable to write cache file '{path}': {exc}") from exc

    def find(self, collection: Collection, record_id: str) -> Optional[models.Record]:
        for record in self.load(collection):
            if str(record.get("id")) == record_id:
                return record
        return None

    def apply(self, mutations: Sequence[Mutation], *, strict: bool) -> None:
        """Apply a batch to the cached collections.

        With ``strict`` set (the offline path) updating or deleting a record the
        cache does not hold raises :class:`RecordNotFoundError` and nothing is
        written. Without it (mirroring a remote write that already succeeded)
        updates of unknown records are appended and unknown deletes ignored.
        """

        staged: Dict[Collection, List[models.Record]] = {}
        for mutation in mutations:
            records = staged.setdefault(mutation.collection, self.load(mutation.collection))
            index = next(
                (i for i, record in enumerate(records) if str(record.get("id")) == mutation.record_id),
                None,
            )
            if index is None and strict and mutation.kind in (MutationKind.UPDATE, MutationKind.DELETE):
                raise RecordNotFoundError(
                    f"{mutation.collection.value} record '{mutation.record_id}' not found in local cache"
                )
            if mutation.kind is MutationKind.DELETE:
                if index is not None:
                    del records[index]
            elif index is None:
                records.append(dict(mutation.record or {}))
            else:
                records[index] = dict(mutation.record or {})

        for collection, records in staged.items():
            self.store(collection, records)


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


class LedgerGateway:
    """Cache-aside access to ledger collections.

    Read policy: query the remote store; on failure serve the cached
    collection. Reads never overwrite the cache, so records written while
    offline survive until :meth:`sync_to_remote` pushes them.

    Write policy: apply the batch remotely; on success mirror it into the
    cache; on failure log and apply it to the cache alone. Whether a record
    is currently only local is implicit in whether its last write reached the
    remote store; the gateway does not track it.
    """

    def __init__(self, remote: RowStore, cache: LocalCache) -> None:
        self.remote = remote
        self.cache = cache

    def fetch_all(self, collection: Collection) -> List[models.Record]:
        try:
            return self.remote.select(collection)
        except RemoteStoreError as exc:
            log.warning("Failed to fetch %s from remote store, using local cache: %s", collection.value, exc)
            return self.cache.load(collection)

    def list(self, collection: Collection) -> List[Any]:
        codec = models.CODECS[collection]
        return [codec.deserialize(record) for record in self.fetch_all(collection)]

    def list_products(self) -> List[models.Product]:
        return self.list(Collection.PRODUCTS)

    def list_sales(self) -> List[models.Sale]:
        return self.list(Collection.SALES)

    def list_standalone_credits(self) -> List[models.StandaloneCredit]:
        return self.list(Collection.STANDALONE_CREDITS)

    def list_payments(self) -> List[models.Payment]:
        return self.list(Collection.PAYMENTS)

    def commit(self, mutations: Sequence[Mutation]) -> bool:
        """Apply a batch of writes all-or-nothing.

        Returns:
            bool: ``True`` when the remote store accepted the batch, ``False``
                when it was applied to the local cache only.

        Raises:
            RecordNotFoundError: If the remote failed and the cache cannot
                satisfy an update or delete.
            LocalCacheError: If the cache files cannot be written.
        """

        if not mutations:
            return True
        try:
            self.remote.apply(mutations)
        except RemoteStoreError as exc:
            log.warning("Remote write of %d change(s) failed, using local cache: %s", len(mutations), exc)
            self.cache.apply(mutations, strict=True)
            return False
        self.cache.apply(mutations, strict=False)
        return True

    def with_id(self, record: models.LedgerRecord) -> models.LedgerRecord:
        """Return ``record`` with a generated identifier when it has none."""

        if record.id:
            return record
        codec = models.CODECS[models.collection_for(record)]
        return replace(record, id=models.generate_id(codec.id_prefix))

    @staticmethod
    def mutation_for(kind: MutationKind, record: models.LedgerRecord) -> Mutation:
        collection = models.collection_for(record)
        return Mutation(kind, collection, record.id, models.CODECS[collection].serialize(record))

    def create(self, record: models.LedgerRecord) -> models.LedgerRecord:
        record = self.with_id(record)
        self.commit([self.mutation_for(MutationKind.INSERT, record)])
        return record

    def update(self, record: models.LedgerRecord) -> models.LedgerRecord:
        self.commit([self.mutation_for(MutationKind.UPDATE, record)])
        return record

    def delete(self, collection: Collection, record_id: str) -> None:
        self.commit([Mutation(MutationKind.DELETE, collection, record_id)])

    def sync_to_remote(self) -> Dict[Collection, int]:
        """Push every cached record to the remote store (upsert by ID).

        Last write wins; there is no conflict detection. The first remote
        failure is logged and ends the sync, since the store is presumably
        unreachable.

        Returns:
            dict[Collection, int]: Number of records pushed per collection.
        """

        pushed: Dict[Collection, int] = {collection: 0 for collection in Collection}
        for collection in Collection:
            for record in self.cache.load(collection):
                try:
                    self.remote.upsert(collection, record)
                except RemoteStoreError as exc:
                    log.warning("Failed to sync %s to remote store: %s", collection.value, exc)
                    return pushed
                pushed[collection] += 1
        log.info(
            "Synced local cache to remote store: %s",
            ", ".join(f"{collection.value}={count}" for collection, count in pushed.items()),
        )
        return pushed


def build_remote_store(settings: ConfigSettings) -> RowStore:
    """Instantiate the remote store selected by ``settings.backend``."""

    if settings.backend is StoreBackend.WORKBOOK:
        if settings.data_file is None:
            raise KeyError("Workbook backend requires a DataFile setting")
        return WorkbookRowStore(settings.data_file)
    if not settings.remote_url or not settings.remote_api_key:
        raise KeyError("REST backend requires Url and ApiKey settings")
    return RestRowStore(settings.remote_url, settings.remote_api_key, timeout=settings.remote_timeout)


def build_gateway(settings: ConfigSettings) -> LedgerGateway:
    return LedgerGateway(build_remote_store(settings), LocalCache(settings.cache_dir))
