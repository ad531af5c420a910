from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from teamboard.errors import InvalidInput, PermissionsUnavailable, StoreUnavailable, Unauthorized
from teamboard.feed import ChangeFeed
from teamboard.models.enums import Role
from teamboard.models.permission_config import PERMISSIONS_KEY, PermissionConfig
from teamboard.rbac.perms import CAPABILITIES, DEFAULT_ROLE_PERMISSIONS, normalize_role_permissions, role_key

logger = logging.getLogger(__name__)

class EngineState(str, Enum):
    uninitialized = "uninitialized"
    loading = "loading"
    ready = "ready"
    unavailable = "unavailable"

class Decision(str, Enum):
    allowed = "allowed"
    denied = "denied"
    unavailable = "unavailable"

@dataclass(frozen=True)
class PermissionSnapshot:
    version: int
    grants: Mapping[str, frozenset[str]]

    @classmethod
    def build(cls, version: int, role_permissions: Mapping[str, Iterable[str]]) -> PermissionSnapshot:
        grants = {role_key(role): frozenset(caps) for role, caps in role_permissions.items()}
        return cls(version=version, grants=MappingProxyType(grants))

    def capabilities_for(self, role: Role | str) -> frozenset[str]:
        return self.grants.get(role_key(role), frozenset())

    def as_dict(self) -> dict[str, list[str]]:
        return {role: sorted(caps) for role, caps in self.grants.items()}

@dataclass(frozen=True)
class StoredPermissions:
    version: int
    role_permissions: dict[str, list[str]]

class SqlPermissionStore:
    """Reads and writes the single ``permission_config`` row."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def load(self) -> StoredPermissions | None:
        try:
            with self._session_factory() as db:
                row = db.get(PermissionConfig, PERMISSIONS_KEY)
                if row is None:
                    return None
                return StoredPermissions(version=row.version, role_permissions=dict(row.role_permissions))
        except SQLAlchemyError as e:
            raise StoreUnavailable("permissions_store_unavailable") from e

    def seed(self, role_permissions: dict[str, list[str]]) -> StoredPermissions:
        try:
            with self._session_factory() as db:
                db.add(PermissionConfig(key=PERMISSIONS_KEY, role_permissions=role_permissions, version=1))
                try:
                    db.commit()
                except IntegrityError:
                    # another process seeded first; its row wins
                    db.rollback()
                    logger.info("permission configuration seeded concurrently, re-reading")
                else:
                    return StoredPermissions(version=1, role_permissions=role_permissions)
        except SQLAlchemyError as e:
            raise StoreUnavailable("permissions_store_unavailable") from e

        stored = self.load()
        if stored is None:
            raise StoreUnavailable("permissions_store_unavailable")
        return stored

    def save(
        self,
        role_permissions: dict[str, list[str]],
        updated_by: uuid.UUID | None = None,
    ) -> StoredPermissions:
        try:
            with self._session_factory() as db:
                res = db.execute(
                    update(PermissionConfig)
                    .where(PermissionConfig.key == PERMISSIONS_KEY)
                    .values(
                        role_permissions=role_permissions,
                        version=PermissionConfig.version + 1,
                        updated_by=updated_by,
                    )
                )
                if res.rowcount == 0:
                    db.add(
                        PermissionConfig(
                            key=PERMISSIONS_KEY,
                            role_permissions=role_permissions,
                            version=1,
                            updated_by=updated_by,
                        )
                    )
                    db.flush()
                version = db.scalar(
                    select(PermissionConfig.version).where(PermissionConfig.key == PERMISSIONS_KEY)
                )
                db.commit()
                return StoredPermissions(version=int(version), role_permissions=role_permissions)
        except SQLAlchemyError as e:
            raise StoreUnavailable("permissions_store_unavailable") from e

class PermissionEngine:
    def __init__(self, store: SqlPermissionStore, feed: ChangeFeed, channel: str):
        self._store = store
        self._feed = feed
        self._channel = channel

        self._lock = threading.Lock()
        self._snapshot: PermissionSnapshot | None = None
        self._state = EngineState.uninitialized
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def snapshot(self) -> PermissionSnapshot | None:
        return self._snapshot

    @property
    def channel(self) -> str:
        return self._channel

    def start(self) -> EngineState:
        with self._lock:
            if self._state is EngineState.ready:
                return self._state
            self._state = EngineState.loading
        logger.debug("loading permission configuration")

        try:
            if self._unsubscribe is None:
                # subscribe before reading so no push between the two is lost
                self._unsubscribe = self._feed.subscribe(
                    self._channel, self.apply, on_resync=self._resync
                )
            stored = self._store.load()
            if stored is None:
                logger.info("no permission configuration stored, seeding defaults")
                stored = self._store.seed(normalize_role_permissions(DEFAULT_ROLE_PERMISSIONS))
        except StoreUnavailable as e:
            with self._lock:
                if self._snapshot is None:
                    self._state = EngineState.unavailable
            logger.error("permission configuration unavailable: %s", e.__cause__ or e)
            return self._state

        self._install(PermissionSnapshot.build(stored.version, stored.role_permissions))
        return self._state

    def stop(self) -> None:
        with self._lock:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
            self._snapshot = None
            self._state = EngineState.uninitialized
        if unsubscribe is not None:
            unsubscribe()

    def ensure_ready(self) -> PermissionSnapshot:
        snap = self._snapshot
        if snap is None:
            self.start()
            snap = self._snapshot
        if snap is None:
            raise PermissionsUnavailable()
        return snap

    def apply(self, payload: dict[str, Any]) -> None:
        """Change-feed handler: replace the live map with a pushed one."""
        try:
            version = int(payload["version"])
            role_permissions = normalize_role_permissions(payload["role_permissions"])
        except (KeyError, TypeError, ValueError, InvalidInput) as e:
            logger.warning("ignoring malformed permission push: %s", e)
            return
        self._install(PermissionSnapshot.build(version, role_permissions))

    def _resync(self) -> None:
        # pushes sent while the feed was down are gone; read the stored map instead
        try:
            stored = self._store.load()
        except StoreUnavailable as e:
            logger.error("permission resync failed: %s", e.__cause__ or e)
            return
        if stored is None:
            return
        self._install(PermissionSnapshot.build(stored.version, stored.role_permissions))

    def _install(self, snap: PermissionSnapshot) -> None:
        with self._lock:
            current = self._snapshot
            if current is not None and snap.version < current.version:
                logger.debug("ignoring stale permission map v%s (have v%s)", snap.version, current.version)
                return
            self._snapshot = snap
            self._state = EngineState.ready
        logger.info("permission map v%s installed", snap.version)

    def check(self, role: Role | str, capability: str) -> Decision:
        if role_key(role) == Role.admin.value:
            return Decision.allowed

        snap = self._snapshot
        if snap is None:
            return Decision.unavailable
        if capability in snap.capabilities_for(role):
            return Decision.allowed
        return Decision.denied

    def has_permission(self, role: Role | str, capability: str) -> bool:
        return self.check(role, capability) is Decision.allowed

    def capabilities_for(self, role: Role | str) -> list[str]:
        if role_key(role) == Role.admin.value:
            return list(CAPABILITIES)
        snap = self.ensure_ready()
        return sorted(snap.capabilities_for(role))

    def update_permissions(
        self,
        actor_role: Role | str,
        new_map: Mapping[str, Iterable[str]],
        actor_id: uuid.UUID | None = None,
    ) -> PermissionSnapshot:
        # authority is enforced here, at the point of mutation
        if role_key(actor_role) != Role.admin.value:
            logger.warning("refused permission update from role %s", role_key(actor_role))
            raise Unauthorized()

        normalized = normalize_role_permissions(new_map)
        stored = self._store.save(normalized, updated_by=actor_id)
        snap = PermissionSnapshot.build(stored.version, stored.role_permissions)
        self._install(snap)

        self._feed.publish(self._channel, {"version": snap.version, "role_permissions": snap.as_dict()})
        logger.info("permission map updated to v%s by %s", snap.version, actor_id or "admin")
        return snap
