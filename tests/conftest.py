"""Shared pytest fixtures for contacts-sync tests."""

from __future__ import annotations

import pytest
from dotenv import load_dotenv

from contacts_sync.config import Settings
from contacts_sync.notices import CollectingNoticeSink
from contacts_sync.store import FileSystemDocumentStore
from contacts_sync.sync.engine import SyncEngine
from contacts_sync.sync.models import RemoteRecord

load_dotenv()


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live CardDAV account",
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------


def make_vcard(*lines: str, fn: str | None = None, uid: str | None = None) -> str:
    """Build vCard 3.0 text from content lines."""
    body = ["BEGIN:VCARD", "VERSION:3.0"]
    if fn is not None:
        body.append(f"FN:{fn}")
    if uid is not None:
        body.append(f"UID:{uid}")
    body.extend(lines)
    body.append("END:VCARD")
    return "\r\n".join(body) + "\r\n"


def make_record(
    name: str, *lines: str, etag: str = "e1", url: str | None = None, uid: str | None = None
) -> RemoteRecord:
    """A contact record named *name*; the URL defaults to one derived from it."""
    return RemoteRecord(
        url=url or f"https://dav.example.com/card/{name.replace(' ', '-')}.vcf",
        etag=etag,
        data=make_vcard(*lines, fn=name, uid=uid),
    )


def make_group(uid: str, *members: str) -> RemoteRecord:
    lines = ["X-ADDRESSBOOKSERVER-KIND:group"] + [
        f"X-ADDRESSBOOKSERVER-MEMBER:urn:uuid:{m}" for m in members
    ]
    return RemoteRecord(
        url=f"https://dav.example.com/card/{uid}.vcf",
        etag="g1",
        data=make_vcard(*lines, fn=f"Group {uid}", uid=uid),
    )


NORDMANN_VCARD = make_vcard(
    "EMAIL:test@test.test", "TEL:87654321", fn="Test Nordmann"
)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeFetcher:
    """RemoteFetcher returning a mutable list of records."""

    def __init__(self, records: list[RemoteRecord] | None = None, error: Exception | None = None):
        self.records = list(records or [])
        self.error = error
        self.calls: list[tuple[str, str, str]] = []

    async def __call__(self, username: str, password: str, server_url: str) -> list[RemoteRecord]:
        self.calls.append((username, password, server_url))
        if self.error is not None:
            raise self.error
        return list(self.records)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(username="user@example.com", password="app-password")


@pytest.fixture
def store(tmp_path) -> FileSystemDocumentStore:
    return FileSystemDocumentStore(tmp_path)


@pytest.fixture
def notices() -> CollectingNoticeSink:
    return CollectingNoticeSink()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def make_engine(store, fetcher, notices):
    """Factory building a SyncEngine over the tmp_path store."""

    def _make(settings: Settings, **kwargs) -> SyncEngine:
        return SyncEngine(
            store=store,
            fetcher=fetcher,
            notices=notices,
            settings=settings,
            progress_interval=0.01,
            **kwargs,
        )

    return _make
