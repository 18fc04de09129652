import os
import tempfile
import uuid

_tmp = tempfile.mkdtemp(prefix="indexcheck-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_tmp}/test.sqlite3"
os.environ["REDIS_URL"] = ""

import pytest

from indexcheck.db.base import Base
from indexcheck.db.session import SessionLocal, engine, init_db
from indexcheck.models.campaign import Campaign, CampaignStatus, ItemStatus, UrlItem
from indexcheck.services.credentials import Credentials, CredentialsError, CredentialStore


class MemoryCredentialStore(CredentialStore):
    def __init__(self):
        self.rows = {}
        self.broken = set()

    def get_credentials(self, user_id):
        if user_id in self.broken:
            raise CredentialsError("bad ciphertext")
        return self.rows.get(user_id)

    def save_credentials(self, user_id, api_key, engine_id):
        if api_key and engine_id:
            self.rows[user_id] = Credentials(api_key=api_key, engine_id=engine_id)
        else:
            self.rows.pop(user_id, None)


@pytest.fixture
def session_factory():
    Base.metadata.drop_all(bind=engine)
    init_db()
    return SessionLocal


@pytest.fixture
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def credentials():
    return MemoryCredentialStore()


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def make_campaign(db, user_id):
    def _make(statuses, status=CampaignStatus.READY.value):
        campaign = Campaign(user_id=user_id, name="test", status=status)
        campaign.items = [
            UrlItem(url=f"https://example.com/page-{i}", status=ItemStatus(s).value)
            for i, s in enumerate(statuses)
        ]
        db.add(campaign)
        db.commit()
        db.refresh(campaign)
        return campaign

    return _make
