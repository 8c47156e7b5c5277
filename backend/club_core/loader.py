from __future__ import annotations

import datetime as dt
import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import httpx

from .entities import (
    MAX_LIMIT,
    TABLE_COLUMNS,
    clamp_limit,
    clamp_offset,
    filter_criteria,
    require_table,
    resolve_order_by,
    table_columns,
    writable_fields,
)


logger = logging.getLogger(__name__)

NOT_FOUND = "Not found"


class DataStore:
    """Entity CRUD over Supabase PostgREST, or local JSON files when Supabase is not configured."""

    def __init__(self, data_dir: Path | None = None) -> None:
        """Initialize the DataStore.

        Args:
            data_dir: Directory holding one ``<table>.json`` file per table
                for the local fallback store.
        """
        env_dir = os.getenv("CLUB_DATA_DIR", "")
        self.data_dir = data_dir or (Path(env_dir) if env_dir else Path(__file__).parent.parent / "data")

        self.supabase_url = os.getenv("SUPABASE_URL", "")
        self.supabase_key = (
            os.getenv("SUPABASE_SERVICE_ROLE_KEY")
            or os.getenv("SUPABASE_SERVICE_KEY")
            or os.getenv("SUPABASE_ANON_KEY")
            or ""
        )
        self.supabase_schema = os.getenv("SUPABASE_SCHEMA", "public")
        self._missing_tables_logged: set[str] = set()

    @property
    def uses_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @property
    def backend_name(self) -> str:
        return "supabase" if self.uses_supabase else "local"

    # ------------------------------------------------------------------
    # Reads

    def list_entities(
        self,
        entity: str,
        sort: Optional[str] = None,
        limit: Any = None,
        offset: Any = None,
    ) -> List[Dict[str, Any]]:
        return self.filter_entities(entity, None, sort=sort, limit=limit, offset=offset)

    def filter_entities(
        self,
        entity: str,
        criteria: Mapping[str, Any] | None,
        sort: Optional[str] = None,
        limit: Any = None,
        offset: Any = None,
    ) -> List[Dict[str, Any]]:
        table = require_table(entity)
        where = filter_criteria(table, criteria)
        order = resolve_order_by(table, sort)
        limit_value = clamp_limit(limit)
        offset_value = clamp_offset(offset)

        if not self.uses_supabase:
            return self._select_local(table, where, order, limit_value, offset_value)

        params: Dict[str, Any] = {"select": "*", "limit": limit_value, "offset": offset_value}
        if order:
            column, descending = order
            params["order"] = f"{column}.{'desc' if descending else 'asc'}"
        params.update(self._postgrest_filters(where))

        try:
            with httpx.Client(timeout=10.0) as client:
                response = client.get(self._supabase_endpoint(table), params=params, headers=self._supabase_headers())
                response.raise_for_status()
                rows = response.json()
        except httpx.HTTPStatusError as exc:
            if exc.response is not None and exc.response.status_code == 404:
                self._log_missing_table(table)
            else:
                logger.warning("Supabase select on %s failed (%s); using local fallback", table, exc)
            return self._select_local(table, where, order, limit_value, offset_value)
        except httpx.HTTPError as exc:
            logger.warning("Supabase select on %s failed (%s); using local fallback", table, exc)
            return self._select_local(table, where, order, limit_value, offset_value)

        if not isinstance(rows, list):
            raise RuntimeError(f"Unexpected payload from Supabase {table} endpoint")
        return [row for row in rows if isinstance(row, dict)]

    def fetch_all(
        self,
        entity: str,
        criteria: Mapping[str, Any] | None = None,
        sort: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Page through every matching row, ``MAX_LIMIT`` rows at a time."""

        rows: List[Dict[str, Any]] = []
        offset = 0
        while True:
            page = self.filter_entities(entity, criteria, sort=sort, limit=MAX_LIMIT, offset=offset)
            rows.extend(page)
            if len(page) < MAX_LIMIT:
                return rows
            offset += MAX_LIMIT

    def get_entity(self, entity: str, entity_id: str) -> Dict[str, Any]:
        table = require_table(entity)

        if not self.uses_supabase:
            return self._get_local(table, entity_id)

        params = {"select": "*", "id": f"eq.{entity_id}", "limit": 1}
        try:
            with httpx.Client(timeout=10.0) as client:
                response = client.get(self._supabase_endpoint(table), params=params, headers=self._supabase_headers())
                response.raise_for_status()
                rows = response.json()
        except httpx.HTTPError as exc:
            logger.warning("Supabase get on %s failed (%s); using local fallback", table, exc)
            return self._get_local(table, entity_id)

        if isinstance(rows, list) and rows and isinstance(rows[0], dict):
            return rows[0]
        raise ValueError(NOT_FOUND)

    # ------------------------------------------------------------------
    # Writes

    def create_entity(self, entity: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        table = require_table(entity)
        record = self._insertable_record(table, entity, payload)

        if not self.uses_supabase:
            return self._insert_local(table, [record])[0]

        rows = self._insert_remote(table, [record])
        if rows is None:
            return self._insert_local(table, [record])[0]
        if not rows:
            raise RuntimeError(f"Unexpected response when creating {entity}")
        return rows[0]

    def create_entities(self, entity: str, payloads: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        table = require_table(entity)
        records = [self._insertable_record(table, entity, payload) for payload in payloads]
        if not records:
            return []

        if not self.uses_supabase:
            return self._insert_local(table, records)

        rows = self._insert_remote(table, records)
        if rows is None:
            return self._insert_local(table, records)
        return rows

    def update_entity(self, entity: str, entity_id: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        table = require_table(entity)
        if not isinstance(payload, Mapping):
            raise ValueError("Invalid request body. Expected an object.")
        changes = writable_fields(table, payload)
        if not changes:
            raise ValueError(
                f"No valid updatable fields for {entity}. Allowed columns: {', '.join(sorted(table_columns(table)))}"
            )

        if not self.uses_supabase:
            return self._update_local(table, entity_id, changes)

        headers = self._supabase_headers("return=representation")
        headers["Content-Type"] = "application/json"
        params = {"id": f"eq.{entity_id}", "select": "*"}
        try:
            with httpx.Client(timeout=10.0) as client:
                response = client.patch(self._supabase_endpoint(table), params=params, json=changes, headers=headers)
                response.raise_for_status()
                rows = response.json()
        except httpx.HTTPStatusError as exc:
            raise self._translate_status_error(exc, f"update {entity}") from exc
        except httpx.HTTPError as exc:
            raise RuntimeError(f"Failed to update {entity}: {exc}") from exc

        if isinstance(rows, list) and rows:
            return rows[0]
        if isinstance(rows, dict) and rows:
            return rows
        raise ValueError(NOT_FOUND)

    def delete_entity(self, entity: str, entity_id: str) -> Dict[str, Any]:
        table = require_table(entity)

        if not self.uses_supabase:
            return {"deleted": True, "row": self._delete_local(table, entity_id)}

        headers = self._supabase_headers("return=representation")
        params = {"id": f"eq.{entity_id}", "select": "*"}
        try:
            with httpx.Client(timeout=10.0) as client:
                response = client.delete(self._supabase_endpoint(table), params=params, headers=headers)
                response.raise_for_status()
                rows = response.json()
        except httpx.HTTPStatusError as exc:
            raise self._translate_status_error(exc, f"delete {entity}") from exc
        except httpx.HTTPError as exc:
            raise RuntimeError(f"Failed to delete {entity}: {exc}") from exc

        if isinstance(rows, list) and rows:
            return {"deleted": True, "row": rows[0]}
        raise ValueError(NOT_FOUND)

    def check_connection(self) -> Dict[str, Any]:
        if not self.uses_supabase:
            return {"status": "ok", "backend": self.backend_name, "message": f"Local data store at {self.data_dir}"}

        params = {"select": "id", "limit": 1}
        try:
            with httpx.Client(timeout=10.0) as client:
                response = client.get(self._supabase_endpoint("seasons"), params=params, headers=self._supabase_headers())
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise RuntimeError(f"Supabase is unreachable: {exc}") from exc
        return {"status": "ok", "backend": self.backend_name, "message": "Backend and DB connected"}

    # ------------------------------------------------------------------
    # Domain fetch helpers

    def fetch_match_balls(self, match_id: str) -> List[Dict[str, Any]]:
        return self.fetch_all("BallByBall", {"match_id": match_id})

    def fetch_tournament(self, tournament_id: str) -> Dict[str, Any]:
        try:
            return self.get_entity("Tournament", tournament_id)
        except ValueError as exc:
            raise ValueError("Tournament not found") from exc

    def fetch_tournament_teams(self, tournament_id: str) -> List[Dict[str, Any]]:
        return self.fetch_all("TournamentTeam", {"tournament_id": tournament_id}, sort="seed")

    def fetch_tournament_matches(self, tournament_id: str) -> List[Dict[str, Any]]:
        return self.fetch_all("TournamentMatch", {"tournament_id": tournament_id}, sort="match_number")

    # ---- internal Supabase helpers -------------------------------------------------

    def _supabase_endpoint(self, table: str) -> str:
        return f"{self.supabase_url.rstrip('/')}/rest/v1/{table}"

    def _supabase_headers(self, prefer: str | None = None, include_content_profile: bool = True) -> Dict[str, str]:
        headers = {
            "apikey": self.supabase_key,
            "Authorization": f"Bearer {self.supabase_key}",
            "Accept": "application/json",
        }
        if include_content_profile and self.supabase_schema and self.supabase_schema != "public":
            headers["Content-Profile"] = self.supabase_schema
        if self.supabase_schema and self.supabase_schema != "public":
            headers["Accept-Profile"] = self.supabase_schema
        if prefer:
            headers["Prefer"] = prefer
        return headers

    @staticmethod
    def _postgrest_filters(where: Mapping[str, Any]) -> Dict[str, str]:
        params: Dict[str, str] = {}
        for column, value in where.items():
            if value is None:
                params[column] = "is.null"
            elif isinstance(value, bool):
                params[column] = f"is.{str(value).lower()}"
            else:
                params[column] = f"eq.{value}"
        return params

    def _insert_remote(self, table: str, records: List[Dict[str, Any]]) -> List[Dict[str, Any]] | None:
        """POST rows to Supabase. Returns ``None`` when the local fallback should be used."""

        headers = self._supabase_headers("return=representation")
        headers["Content-Type"] = "application/json"
        params = {"select": "*"}
        body: Any = records if len(records) > 1 else records[0]

        try:
            with httpx.Client(timeout=10.0) as client:
                response = client.post(self._supabase_endpoint(table), params=params, json=body, headers=headers)
                response.raise_for_status()
                rows = response.json()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code if exc.response is not None else None
            if status_code is not None and 400 <= status_code < 500:
                raise self._translate_status_error(exc, f"insert into {table}") from exc
            logger.warning("Supabase insert into %s failed (%s); using local fallback", table, exc)
            return None
        except httpx.RequestError as exc:
            logger.warning("Supabase insert into %s unavailable (%s); using local fallback", table, exc)
            return None

        if isinstance(rows, list):
            return [row for row in rows if isinstance(row, dict)]
        if isinstance(rows, dict):
            return [rows]
        return []

    def _translate_status_error(self, exc: httpx.HTTPStatusError, action: str) -> Exception:
        status_code = exc.response.status_code if exc.response is not None else None
        detail = self._extract_supabase_detail(exc.response)
        if status_code == 404:
            return ValueError(NOT_FOUND)
        if status_code == 409:
            return ValueError(detail or f"Conflict while trying to {action}")
        if status_code is not None and 400 <= status_code < 500:
            return ValueError(detail or f"Supabase rejected {action} ({status_code})")
        return RuntimeError(f"Failed to {action}: {detail or exc}")

    def _log_missing_table(self, table: str) -> None:
        if table in self._missing_tables_logged:
            return
        logger.info(
            "Supabase table '%s' missing (HTTP 404). Falling back to local JSON.",
            table,
        )
        self._missing_tables_logged.add(table)

    def _extract_supabase_detail(self, response: httpx.Response | None) -> str | None:
        if response is None:
            return None
        try:
            payload = response.json()
        except ValueError:
            text = (response.text or "").strip()
            return text or None

        candidates = payload if isinstance(payload, list) else [payload]
        for item in candidates[:1]:
            if isinstance(item, dict):
                for key in ("message", "detail", "error", "hint", "code"):
                    value = item.get(key)
                    if isinstance(value, str) and value.strip():
                        return value.strip()
        return None

    # ---- record preparation ---------------------------------------------------------

    def _insertable_record(self, table: str, entity: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        if not isinstance(payload, Mapping):
            raise ValueError("Invalid request body. Expected an object.")
        record = writable_fields(table, payload)
        if not record:
            raise ValueError(
                f"No valid insertable fields for {entity}. Allowed columns: {', '.join(sorted(table_columns(table)))}"
            )
        return record

    # ---- local JSON store -----------------------------------------------------------

    def local_path(self, table: str) -> Path:
        return self.data_dir / f"{table}.json"

    def _load_local_rows(self, table: str) -> List[Dict[str, Any]]:
        data = self._read_json_file(self.local_path(table), [])
        if not isinstance(data, list):
            return []
        return [row for row in data if isinstance(row, dict)]

    def _select_local(
        self,
        table: str,
        where: Mapping[str, Any],
        order: tuple[str, bool] | None,
        limit: int,
        offset: int,
    ) -> List[Dict[str, Any]]:
        rows = [row for row in self._load_local_rows(table) if self._row_matches(row, where)]
        if order:
            column, descending = order
            rows.sort(key=lambda row: self._sort_key(row.get(column), descending), reverse=descending)
        return rows[offset : offset + limit]

    @staticmethod
    def _row_matches(row: Mapping[str, Any], where: Mapping[str, Any]) -> bool:
        for column, expected in where.items():
            actual = row.get(column)
            if expected is None or isinstance(expected, bool) or actual is None:
                if actual != expected:
                    return False
            elif str(actual) != str(expected):
                return False
        return True

    @staticmethod
    def _sort_key(value: Any, descending: bool) -> tuple:
        # NULLs sort last ascending and first descending, as in Postgres.
        if value is None:
            return (1, 0, "")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return (0, 0, value)
        return (0, 1, str(value))

    def _get_local(self, table: str, entity_id: str) -> Dict[str, Any]:
        for row in self._load_local_rows(table):
            if str(row.get("id")) == str(entity_id):
                return row
        raise ValueError(NOT_FOUND)

    def _insert_local(self, table: str, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        rows = self._load_local_rows(table)
        columns = TABLE_COLUMNS.get(table, frozenset())
        now = self._utc_now_iso()
        created: List[Dict[str, Any]] = []
        for record in records:
            entry: Dict[str, Any] = {"id": str(uuid.uuid4()), **record}
            if "created_date" in columns:
                entry["created_date"] = now
            if "updated_date" in columns:
                entry["updated_date"] = now
            rows.append(entry)
            created.append(entry)
        self._write_json_file(self.local_path(table), rows)
        return created

    def _update_local(self, table: str, entity_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
        rows = self._load_local_rows(table)
        for index, row in enumerate(rows):
            if str(row.get("id")) != str(entity_id):
                continue
            updated = {**row, **changes}
            if "updated_date" in TABLE_COLUMNS.get(table, frozenset()):
                updated["updated_date"] = self._utc_now_iso()
            rows[index] = updated
            self._write_json_file(self.local_path(table), rows)
            return updated
        raise ValueError(NOT_FOUND)

    def _delete_local(self, table: str, entity_id: str) -> Dict[str, Any]:
        rows = self._load_local_rows(table)
        for index, row in enumerate(rows):
            if str(row.get("id")) == str(entity_id):
                removed = rows.pop(index)
                self._write_json_file(self.local_path(table), rows)
                return removed
        raise ValueError(NOT_FOUND)

    def _read_json_file(self, path: Path, default: Any) -> Any:
        try:
            if not path.exists():
                return default
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Falling back to default for %s due to read error: %s", path, exc)
            return default

    def _write_json_file(self, path: Path, data: Any) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, sort_keys=True, default=str)
        except OSError as exc:
            raise RuntimeError(f"Failed to write local data store {path}") from exc

    def _remove_local_file(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:  # pragma: no cover
            logger.warning("Failed to remove local data store %s: %s", path, exc)

    @staticmethod
    def _utc_now_iso() -> str:
        return dt.datetime.now(dt.timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")

    # ------------------------------------------------------------------
    # Local backlog synchronisation helpers

    def sync_local_backlog(self) -> Dict[str, Dict[str, Any]]:
        """Push every locally cached table to Supabase, keeping rows that fail."""

        if not self.uses_supabase:
            raise RuntimeError("Supabase configuration is required to sync local backlog")

        summary: Dict[str, Dict[str, Any]] = {}
        for table in sorted(TABLE_COLUMNS):
            path = self.local_path(table)
            if not path.exists():
                continue
            summary[table] = self._sync_table_backlog(table)
        return summary

    def _sync_table_backlog(self, table: str) -> Dict[str, Any]:
        result: Dict[str, Any] = {"synced": 0, "remaining": 0, "errors": []}
        path = self.local_path(table)
        data = self._read_json_file(path, [])

        if not isinstance(data, list) or not data:
            self._remove_local_file(path)
            return result

        rows: List[Dict[str, Any]] = []
        remaining: List[Any] = []
        for row in data:
            if isinstance(row, dict) and row.get("id"):
                rows.append(row)
            else:
                remaining.append(row)
                result["errors"].append(f"Skipping malformed entry in {table} backlog")

        if rows:
            endpoint = self._supabase_endpoint(table)
            headers = self._supabase_headers("resolution=merge-duplicates,return=minimal")
            headers["Content-Type"] = "application/json"
            params = {"on_conflict": "id"}
            columns = TABLE_COLUMNS[table]

            with httpx.Client(timeout=10.0) as client:
                for row in rows:
                    record = {key: value for key, value in row.items() if key in columns}
                    try:
                        response = client.post(endpoint, params=params, json=[record], headers=headers)
                        response.raise_for_status()
                    except httpx.HTTPStatusError as exc:
                        detail = self._extract_supabase_detail(exc.response)
                        remaining.append(row)
                        result["errors"].append(detail or f"Supabase rejected {table} sync: {exc}")
                    except httpx.HTTPError as exc:
                        remaining.append(row)
                        result["errors"].append(f"{table} sync request failed: {exc}")
                    else:
                        result["synced"] += 1

        if remaining:
            self._write_json_file(path, remaining)
            result["remaining"] = len(remaining)
        else:
            self._remove_local_file(path)

        return result
