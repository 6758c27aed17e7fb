"""
Cloud progress stores -- where the player's progress lives off-device.

Each store reads and writes one record per user key:
    read(user_key)          -> CloudRecord or None when nothing exists yet
    write(user_key, fields) -> True; creates the record on first write

Local: JSON documents in a directory. Offline play and tests.
REST:  PostgREST-style HTTP API over the hosted database, with the
       user_profiles / user_progress tables.

Transport and storage failures raise CloudStoreError. Deciding what
a failure means is left to the loader and writer.
"""

from __future__ import annotations

import json
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from .config import CloudBackendType, CloudConfig
from .models import AuthSource, CloudProfile, CloudRecord, ProgressSnapshot

logger = logging.getLogger("skprogress.cloud")

PROGRESS_FIELDS = frozenset({
    "coins",
    "total_earned",
    "high_score",
    "unlocked_themes",
    "owned_power_ups",
    "has_completed_gate",
})

# user_profiles column holding each sign-in backend's user id
PROFILE_ID_COLUMNS = {
    AuthSource.PRIMARY.value: "clerk_id",
    AuthSource.FALLBACK.value: "simple_user_id",
}


class CloudStoreError(RuntimeError):
    """The cloud store could not be reached or returned garbage."""


def _check_fields(fields: dict[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - PROGRESS_FIELDS
    if unknown:
        raise ValueError(f"Unknown progress fields: {sorted(unknown)}")
    out = dict(fields)
    for key in ("unlocked_themes", "owned_power_ups"):
        if key in out:
            out[key] = sorted(out[key])
    return out


def _split_user_key(user_key: str) -> tuple[str, str]:
    source, sep, user_id = user_key.partition(":")
    if not sep or not source or not user_id:
        raise ValueError(f"Malformed user key: {user_key!r}")
    return source, user_id


def _profile_column(source: str) -> str:
    try:
        return PROFILE_ID_COLUMNS[source]
    except KeyError:
        raise ValueError(f"Unknown sign-in source: {source!r}") from None


class CloudStore(ABC):
    """Abstract cloud progress store."""

    @abstractmethod
    def read(self, user_key: str) -> Optional[CloudRecord]:
        """Fetch the profile and progress for a user.

        Returns:
            The CloudRecord, or None if the user has no record yet.

        Raises:
            CloudStoreError: On transport or storage failure.
        """

    @abstractmethod
    def write(self, user_key: str, fields: dict[str, Any]) -> bool:
        """Update the given progress fields, creating the record if needed.

        Returns:
            True once the write is stored.

        Raises:
            CloudStoreError: On transport or storage failure.
            ValueError: If ``fields`` names something that is not progress.
        """

    @abstractmethod
    def available(self) -> bool:
        """Check if this store is currently usable."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable store name."""


class LocalCloudStore(CloudStore):
    """One JSON document per user key in a local directory."""

    def __init__(self, root: Path) -> None:
        self.root = root.expanduser()

    @property
    def name(self) -> str:
        return "local"

    def _doc_path(self, user_key: str) -> Path:
        source, user_id = _split_user_key(user_key)
        safe_id = user_id.replace("/", "--").replace("\\", "--")
        return self.root / f"{source}--{safe_id}.json"

    def read(self, user_key: str) -> Optional[CloudRecord]:
        path = self._doc_path(user_key)
        if not path.exists():
            return None
        try:
            return CloudRecord.model_validate(
                json.loads(path.read_text(encoding="utf-8"))
            )
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            raise CloudStoreError(f"Unreadable record {path.name}: {exc}") from exc

    def write(self, user_key: str, fields: dict[str, Any]) -> bool:
        fields = _check_fields(fields)
        record = self.read(user_key)
        if record is None:
            record = CloudRecord(
                profile=CloudProfile(id=str(uuid.uuid4()), user_key=user_key),
            )
            logger.info("Created cloud profile for %s", user_key)

        progress = record.progress.to_record()
        progress.update(fields)
        record.progress = ProgressSnapshot.model_validate(progress)
        if "has_completed_gate" in fields:
            record.profile.has_completed_gate = bool(fields["has_completed_gate"])
        record.updated_at = datetime.now(timezone.utc)

        path = self._doc_path(user_key)
        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
            tmp_path.replace(path)
        except OSError as exc:
            raise CloudStoreError(f"Local cloud write failed: {exc}") from exc
        logger.debug("Wrote %s to %s", sorted(fields), path.name)
        return True

    def available(self) -> bool:
        return True


class RestCloudStore(CloudStore):
    """PostgREST-style HTTP store (hosted Postgres behind a REST gateway).

    Profiles are found by the sign-in backend's id column (see
    PROFILE_ID_COLUMNS); progress rows hang off
    ``user_progress.user_id``. Power-ups travel as the
    ``unlocked_powerups`` id list.
    """

    def __init__(self, config: CloudConfig) -> None:
        self.config = config
        self._url = (config.url or "").rstrip("/")
        self._key = config.api_key

    @property
    def name(self) -> str:
        return "rest"

    def available(self) -> bool:
        return bool(self._url and self._key)

    def _api_call(
        self,
        method: str,
        table: str,
        params: Optional[dict[str, str]] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        """Make an authenticated call against one table.

        Returns:
            The rows in the response body (empty when there is none).

        Raises:
            CloudStoreError: On missing configuration, transport failure
                or an HTTP error status.
        """
        try:
            import requests
        except ImportError:
            raise CloudStoreError(
                "REST cloud store requires 'requests': pip install requests"
            )

        if not self.available():
            raise CloudStoreError(
                "REST cloud store not configured. Set the url and "
                f"{self.config.api_key_env}."
            )

        headers = {
            "apikey": self._key,
            "Authorization": f"Bearer {self._key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        try:
            resp = requests.request(
                method,
                f"{self._url}/rest/v1/{table}",
                headers=headers,
                params=params,
                json=data,
                timeout=self.config.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise CloudStoreError(f"{method} {table}: {exc}") from exc

        if resp.status_code >= 400:
            raise CloudStoreError(
                f"{method} {table}: {resp.status_code} {resp.text}"
            )
        if not resp.content:
            return []
        body = resp.json()
        return body if isinstance(body, list) else [body]

    def _find_profile(self, user_key: str) -> Optional[dict[str, Any]]:
        source, user_id = _split_user_key(user_key)
        rows = self._api_call(
            "GET", "user_profiles",
            params={_profile_column(source): f"eq.{user_id}", "select": "*"},
        )
        return rows[0] if rows else None

    def _create_profile(self, user_key: str) -> dict[str, Any]:
        source, user_id = _split_user_key(user_key)
        rows = self._api_call(
            "POST", "user_profiles", data={_profile_column(source): user_id},
        )
        if not rows:
            raise CloudStoreError(f"Profile insert for {user_key} returned nothing")
        profile = rows[0]
        self._insert_progress(profile["id"], {})
        logger.info("Created cloud profile for %s", user_key)
        return profile

    def _insert_progress(self, profile_id: Any, values: dict[str, Any]) -> None:
        """Insert a user_progress row: defaults overlaid with ``values``."""
        initial = ProgressSnapshot().to_record()
        row = {
            "user_id": profile_id,
            "coins": initial["coins"],
            "total_earned": initial["total_earned"],
            "high_score": initial["high_score"],
            "unlocked_themes": initial["unlocked_themes"],
            "unlocked_powerups": initial["owned_power_ups"],
        }
        row.update(values)
        rows = self._api_call("POST", "user_progress", data=row)
        if not rows:
            raise CloudStoreError(
                f"Progress insert for profile {profile_id} returned nothing"
            )

    def read(self, user_key: str) -> Optional[CloudRecord]:
        profile_row = self._find_profile(user_key)
        if profile_row is None:
            return None

        rows = self._api_call(
            "GET", "user_progress",
            params={"user_id": f"eq.{profile_row['id']}", "select": "*"},
        )
        progress_row = dict(rows[0]) if rows else {}
        progress_row["has_completed_gate"] = profile_row.get("has_completed_gate")
        try:
            return CloudRecord(
                profile=CloudProfile(
                    id=str(profile_row["id"]),
                    user_key=user_key,
                    username=profile_row.get("username"),
                    has_completed_gate=bool(profile_row.get("has_completed_gate")),
                    created_at=profile_row.get("created_at")
                    or datetime.now(timezone.utc),
                ),
                progress=ProgressSnapshot.model_validate(progress_row),
                updated_at=progress_row.get("updated_at"),
            )
        except (KeyError, ValidationError) as exc:
            raise CloudStoreError(f"Malformed cloud record for {user_key}: {exc}") from exc

    def write(self, user_key: str, fields: dict[str, Any]) -> bool:
        fields = _check_fields(fields)
        profile = self._find_profile(user_key) or self._create_profile(user_key)
        row_filter = {"id": f"eq.{profile['id']}"}

        if "has_completed_gate" in fields:
            patched = self._api_call(
                "PATCH", "user_profiles", params=row_filter,
                data={"has_completed_gate": fields["has_completed_gate"]},
            )
            if not patched:
                raise CloudStoreError(
                    f"Profile {profile['id']} for {user_key} vanished mid-write"
                )

        update: dict[str, Any] = {
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        for key in ("coins", "total_earned", "high_score", "unlocked_themes"):
            if key in fields:
                update[key] = fields[key]
        if "owned_power_ups" in fields:
            update["unlocked_powerups"] = fields["owned_power_ups"]

        patched = self._api_call(
            "PATCH", "user_progress",
            params={"user_id": f"eq.{profile['id']}"}, data=update,
        )
        if not patched:
            # Profile without a progress row (an insert lost mid-creation).
            logger.warning("No progress row for %s; inserting one", user_key)
            self._insert_progress(profile["id"], update)
        return True


def is_cloud_configured(config: CloudConfig) -> bool:
    """True if the configured backend has what it needs to run."""
    if config.backend == CloudBackendType.REST:
        return bool(config.url and config.api_key)
    return True


def create_cloud_store(config: CloudConfig, home: Path) -> CloudStore:
    """Factory function to create the configured cloud store.

    Args:
        config: Cloud configuration.
        home: Progress home directory (for the local backend default path).

    Raises:
        ValueError: If the backend type is not supported.
    """
    if config.backend == CloudBackendType.LOCAL:
        return LocalCloudStore(config.local_path or home / "cloud")
    if config.backend == CloudBackendType.REST:
        return RestCloudStore(config)
    raise ValueError(f"Unsupported cloud backend: {config.backend}")
