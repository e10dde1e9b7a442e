# tests/conftest.py
from __future__ import annotations

import os
import tempfile
from collections.abc import Callable, Generator, Iterator
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["FORK_SYNC_ENABLED"] = "false"
os.environ.setdefault("STORAGE_ROOT", tempfile.mkdtemp(prefix="pack-review-files-"))

from pack_review.api.v1.endpoints import fork as fork_endpoints
from pack_review.core.errors import ExternalSyncError
from pack_review.core.identity import Actor
from pack_review.core.security import create_access_token
from pack_review.db.session import Base
from pack_review.db.session import engine as app_engine
from pack_review.db.session import get_db as app_get_session
from pack_review.main import app as fastapi_app
from pack_review.models import Resolution, User, UserRole
from pack_review.services.content_store import ContentStore
from pack_review.services.fork_reconciler import ForkReconciler
from pack_review.services.git_gateway import (
    ExternalFileRecord,
    ForkOwner,
    ForkStatus,
    GitForkGateway,
)
from pack_review.utils.hash import git_blob_hexdigest

RAW_URL = "https://raw.example.test"


class FakeGitForkGateway(GitForkGateway):
    """In-memory git host: one file tree per (login, branch)."""

    def __init__(self) -> None:
        self.forks: set[str] = set()
        self.trees: dict[tuple[str, str], list[ExternalFileRecord]] = {}
        self.fail_list_tree = False
        self.list_calls = 0
        self.created: list[str] = []

    def set_files(self, login: str, branch: str, files: dict[str, bytes]) -> list[ExternalFileRecord]:
        """Replace the content of a branch with ``{path: bytes}``."""
        self.forks.add(login)
        records = [
            ExternalFileRecord(
                path=path,
                hash=git_blob_hexdigest(data),
                size=len(data),
                url=f"{RAW_URL}/{login}/repo/commit/{path}",
            )
            for path, data in files.items()
        ]
        self.trees[(login, branch)] = records
        return records

    async def create_fork(self, owner: ForkOwner) -> None:
        self.created.append(owner.login)
        self.forks.add(owner.login)
        for resolution in Resolution:
            self.trees.setdefault((owner.login, resolution.value), [])

    async def fork_status(self, owner: ForkOwner) -> ForkStatus:
        return ForkStatus.READY if owner.login in self.forks else ForkStatus.ABSENT

    async def list_tree(self, owner: ForkOwner, branch: str) -> list[ExternalFileRecord]:
        self.list_calls += 1
        if self.fail_list_tree:
            raise ExternalSyncError("simulated git host outage")
        if (owner.login, branch) not in self.trees:
            raise ExternalSyncError(f"Branch '{branch}' not found")
        return list(self.trees[(owner.login, branch)])

    async def delete_fork(self, owner: ForkOwner) -> None:
        self.forks.discard(owner.login)
        for resolution in Resolution:
            self.trees.pop((owner.login, resolution.value), None)

    def fork_url(self, owner: ForkOwner) -> str:
        return f"https://git.example.test/{owner.login}/repo"


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    # DATABASE_URL is set above, so the application engine is in-memory SQLite.
    Base.metadata.create_all(bind=app_engine)
    try:
        yield app_engine
    finally:
        Base.metadata.drop_all(bind=app_engine)


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session(engine: Engine, session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()
        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def store(tmp_path) -> ContentStore:
    return ContentStore(tmp_path / "files")


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory creating committed users."""
    counter = count(1)

    def _make(role: UserRole = UserRole.USER, github_login: str | None = None) -> User:
        n = next(counter)
        user = User(
            name=f"user-{n}",
            role=role,
            github_login=github_login,
            github_token=f"token-{n}" if github_login else None,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture()
def owner(make_user: Callable[..., User]) -> User:
    return make_user(github_login="alice")


@pytest.fixture()
def other_user(make_user: Callable[..., User]) -> User:
    return make_user(github_login="bob")


@pytest.fixture()
def admin(make_user: Callable[..., User]) -> User:
    return make_user(role=UserRole.ADMIN)


@pytest.fixture()
def council(make_user: Callable[..., User]) -> list[User]:
    """Four council members."""
    return [make_user(role=UserRole.COUNCIL) for _ in range(4)]


@pytest.fixture()
def owner_actor(owner: User) -> Actor:
    return Actor.from_user(owner)


@pytest.fixture()
def fake_gateway() -> FakeGitForkGateway:
    return FakeGitForkGateway()


@pytest.fixture()
def reconciler(
    fake_gateway: FakeGitForkGateway,
    session_factory: sessionmaker[Session],
    store: ContentStore,
) -> ForkReconciler:
    return ForkReconciler(gateway=fake_gateway, session_factory=session_factory, store=store)


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    fake_gateway: FakeGitForkGateway,
    reconciler: ForkReconciler,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    overrides = {
        app_get_session: _get_session_override,
        fork_endpoints.get_git_gateway_dep: lambda: fake_gateway,
        fork_endpoints.get_fork_reconciler_dep: lambda: reconciler,
    }
    app.dependency_overrides.update(overrides)
    try:
        yield
    finally:
        for dependency in overrides:
            app.dependency_overrides.pop(dependency, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


def auth_headers(user: User) -> dict[str, str]:
    """Return authorization headers for ``user``."""
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def headers_for() -> Callable[[User], dict[str, str]]:
    return auth_headers
