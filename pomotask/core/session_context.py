from __future__ import annotations

"""Identity providers and the context object passed to every core call."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Protocol

from loguru import logger

from pomotask.core import config
from pomotask.core.errors import StoreError, UnauthenticatedError
from pomotask.data.storage import LocalStorage, RecordStore


class IdentityProvider(Protocol):
    def get_current_owner_id(self) -> str | None: ...


class StaticIdentity:
    def __init__(self, owner_id: str | None) -> None:
        self._owner_id = owner_id

    def get_current_owner_id(self) -> str | None:
        return self._owner_id


class LocalIdentity:
    """Device-bound identity: a uuid minted on first use and kept locally."""

    def __init__(self, local: LocalStorage) -> None:
        self._local = local

    def get_current_owner_id(self) -> str | None:
        try:
            owner_id = self._local.get(config.OWNER_ID_KEY)
            if not owner_id:
                owner_id = uuid.uuid4().hex
                self._local.set(config.OWNER_ID_KEY, owner_id)
                logger.info(f"[AUTH] Created local identity {owner_id}")
        except StoreError as exc:
            logger.warning(f"[AUTH] Identity unavailable: {exc}")
            return None
        return str(owner_id)

    def sign_out(self) -> None:
        self._local.remove(config.OWNER_ID_KEY)


@dataclass
class SessionContext:
    identity: IdentityProvider
    store: RecordStore
    local: LocalStorage
    clock: Callable[[], datetime] = field(default=datetime.now)

    def require_owner(self) -> str:
        owner_id = self.identity.get_current_owner_id()
        if not owner_id:
            raise UnauthenticatedError()
        return owner_id

    def now(self) -> datetime:
        return self.clock()
