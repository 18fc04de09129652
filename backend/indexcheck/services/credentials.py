import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from indexcheck.models.campaign import Setting


class CredentialsError(RuntimeError):
    """Stored credentials exist but cannot be read."""


@dataclass(frozen=True)
class Credentials:
    api_key: str
    engine_id: str


class CredentialStore:
    def get_credentials(self, user_id: uuid.UUID) -> Optional[Credentials]:
        raise NotImplementedError

    def save_credentials(self, user_id: uuid.UUID, api_key: Optional[str], engine_id: Optional[str]) -> None:
        raise NotImplementedError

    def has_credentials(self, user_id: uuid.UUID) -> bool:
        try:
            return self.get_credentials(user_id) is not None
        except CredentialsError:
            return False


class SqlCredentialStore(CredentialStore):
    """Credentials kept on the ``settings`` table, one row per user."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get_credentials(self, user_id):
        with self.session_factory() as db:
            row = db.get(Setting, user_id)
            if row is None:
                return None
            key, engine_id = row.search_api_key, row.search_engine_id
        if not key or not engine_id:
            return None
        return Credentials(api_key=key.strip(), engine_id=engine_id.strip())

    def save_credentials(self, user_id, api_key, engine_id):
        with self.session_factory() as db:
            row = db.get(Setting, user_id) or Setting(user_id=user_id)
            row.search_api_key = (api_key or "").strip() or None
            row.search_engine_id = (engine_id or "").strip() or None
            db.add(row)
            db.commit()
