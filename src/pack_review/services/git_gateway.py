"""Access to contributors' forks on the git hosting service.

The rest of the pipeline only sees :class:`GitForkGateway`. The GitHub
implementation below talks to the REST API with ``httpx`` and converts every
failure into :class:`ExternalSyncError`, retrying transient ones with
exponential backoff.
"""

from __future__ import annotations

import abc
import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from pack_review.core.errors import ExternalSyncError
from pack_review.core.settings import settings
from pack_review.models.contribution import Resolution

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_NO_CONTENT = 204
HTTP_NOT_FOUND = 404
HTTP_INTERNAL_SERVER_ERROR = 500

# Object id of the empty tree, identical in every git repository.
SHA1_EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"


class ForkStatus(str, enum.Enum):
    """State of a contributor's fork on the host."""

    READY = "ready"
    PENDING = "pending"
    ABSENT = "absent"


@dataclass(frozen=True)
class ForkOwner:
    """Who owns a fork and the credential used to act on it."""

    login: str
    token: str | None = None


@dataclass(frozen=True)
class ExternalFileRecord:
    """One file present in a fork branch."""

    path: str
    hash: str
    size: int
    url: str

    @property
    def filename(self) -> str:
        return self.path.rsplit("/", 1)[-1]


class GitForkGateway(abc.ABC):
    """Capabilities the pipeline needs from the git host."""

    @abc.abstractmethod
    async def create_fork(self, owner: ForkOwner) -> None:
        """Fork the shared repository for ``owner`` and wait until it is usable."""

    @abc.abstractmethod
    async def fork_status(self, owner: ForkOwner) -> ForkStatus:
        """Return whether ``owner``'s fork is ready, still being created, or absent."""

    @abc.abstractmethod
    async def list_tree(self, owner: ForkOwner, branch: str) -> list[ExternalFileRecord]:
        """Return every file of ``branch`` in ``owner``'s fork."""

    @abc.abstractmethod
    async def delete_fork(self, owner: ForkOwner) -> None:
        """Delete ``owner``'s fork; deleting a missing fork succeeds."""

    def fork_url(self, owner: ForkOwner) -> str | None:
        """Return a browsable URL of the fork, if the host has one."""
        return None

    async def close(self) -> None:  # noqa: B027 - optional hook
        """Release network resources."""


class CircuitState(enum.Enum):
    """Circuit breaker states for fault tolerance."""

    CLOSED = "closed"      # Normal operation - requests allowed
    OPEN = "open"          # Circuit is open - requests blocked
    HALF_OPEN = "half_open"  # Testing if service is back - limited requests allowed


@dataclass
class CircuitBreaker:
    """Stop calling the host for a while after repeated failures."""

    failure_threshold: int = 5
    recovery_timeout: float = 60.0
    success_threshold: int = 2

    _state: CircuitState = CircuitState.CLOSED
    _failure_count: int = 0
    _success_count: int = 0
    _last_failure_time: float = 0.0

    def is_open(self) -> bool:
        """Check if circuit is open."""
        if self._state == CircuitState.OPEN:
            if time.monotonic() - self._last_failure_time > self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                self._success_count = 0
            return self._state == CircuitState.OPEN
        return False

    def record_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.success_threshold:
                self._state = CircuitState.CLOSED
                self._failure_count = 0
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()
        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN

    @property
    def state(self) -> CircuitState:
        return self._state


class GitHubForkGateway(GitForkGateway):
    """GitHub REST implementation of :class:`GitForkGateway`."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        raw_url: str | None = None,
        org: str | None = None,
        repo: str | None = None,
        timeout_seconds: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        poll_interval_seconds: float | None = None,
        poll_max_attempts: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or settings.github_api_url
        self.raw_url = (raw_url or settings.github_raw_url).rstrip("/")
        self.org = org or settings.github_org_name
        self.repo = repo or settings.github_repo_name
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.github_http_timeout_seconds
        )
        self.max_retries = max_retries if max_retries is not None else settings.github_max_retries
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.github_backoff_seconds
        )
        self.poll_interval_seconds = (
            poll_interval_seconds
            if poll_interval_seconds is not None
            else settings.fork_poll_interval_seconds
        )
        self.poll_max_attempts = (
            poll_max_attempts if poll_max_attempts is not None else settings.fork_poll_max_attempts
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()
        self._circuit_breaker = CircuitBreaker()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.base_url,
                    timeout=httpx.Timeout(self.timeout_seconds),
                    transport=self._transport,
                    headers={
                        "Accept": "application/vnd.github+json",
                        "X-GitHub-Api-Version": "2022-11-28",
                    },
                )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        owner: ForkOwner,
        *,
        json_data: Any | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send one request, retrying network errors and 5xx responses.

        Responses below 500 are returned as-is; callers decide what a 404
        means for them.
        """
        if self._circuit_breaker.is_open():
            raise ExternalSyncError("Git host circuit breaker is open")

        client = await self._ensure_client()
        headers = {"Authorization": f"Bearer {owner.token}"} if owner.token else {}
        last_error = ""

        for attempt in range(self.max_retries + 1):
            if attempt:
                delay = self.backoff_seconds * (2 ** (attempt - 1))
                logger.warning(
                    "Retrying %s %s in %.2fs (attempt %d/%d): %s",
                    method,
                    path,
                    delay,
                    attempt + 1,
                    self.max_retries + 1,
                    last_error,
                )
                await asyncio.sleep(delay)
            try:
                response = await client.request(
                    method,
                    path,
                    json=json_data,
                    params=params,
                    headers=headers,
                )
            except httpx.TransportError as exc:
                self._circuit_breaker.record_failure()
                last_error = f"network error: {exc}"
                continue

            if response.status_code >= HTTP_INTERNAL_SERVER_ERROR:
                self._circuit_breaker.record_failure()
                last_error = f"status {response.status_code}"
                continue

            self._circuit_breaker.record_success()
            return response

        raise ExternalSyncError(
            f"{method} {path} failed after {self.max_retries + 1} attempts: {last_error}"
        )

    @staticmethod
    def _expect(response: httpx.Response, *codes: int) -> httpx.Response:
        if response.status_code not in codes:
            raise ExternalSyncError(
                f"Unexpected git host response ({response.status_code}) "
                f"for {response.request.method} {response.request.url.path}"
            )
        return response

    @classmethod
    def _payload(cls, response: httpx.Response, *codes: int) -> Any:
        cls._expect(response, *codes)
        try:
            return response.json()
        except ValueError as e:
            raise ExternalSyncError(
                f"Malformed git host response for {response.request.method} "
                f"{response.request.url.path}"
            ) from e

    def _fork_path(self, owner: ForkOwner) -> str:
        return f"/repos/{owner.login}/{self.repo}"

    def fork_url(self, owner: ForkOwner) -> str:
        return f"https://github.com/{owner.login}/{self.repo}"

    async def create_fork(self, owner: ForkOwner) -> None:
        """Fork the upstream repository and give it one empty branch per resolution.

        Fork creation is asynchronous on GitHub; the fork is polled at most
        ``poll_max_attempts`` times before giving up.
        """
        response = await self._request("POST", f"/repos/{self.org}/{self.repo}/forks", owner)
        self._expect(response, 200, 202)

        for attempt in range(1, self.poll_max_attempts + 1):
            status = await self.fork_status(owner)
            if status != ForkStatus.ABSENT:
                break
            logger.debug("Fork for %s not ready yet (attempt %d)", owner.login, attempt)
            await asyncio.sleep(self.poll_interval_seconds)
        else:
            raise ExternalSyncError(
                f"Fork for {owner.login} was not ready after {self.poll_max_attempts} checks"
            )

        await self._create_resolution_branches(owner)
        logger.info("Fork ready for %s", owner.login)

    async def _create_resolution_branches(self, owner: ForkOwner) -> None:
        fork = self._fork_path(owner)
        response = await self._request(
            "POST",
            f"{fork}/git/commits",
            owner,
            json_data={"message": "initial commit", "tree": SHA1_EMPTY_TREE, "parents": []},
        )
        try:
            commit_sha = self._payload(response, 200, 201)["sha"]
        except (KeyError, TypeError) as e:
            raise ExternalSyncError(f"Initial commit for {owner.login} returned no sha") from e

        for resolution in Resolution:
            response = await self._request(
                "POST",
                f"{fork}/git/refs",
                owner,
                json_data={"ref": f"refs/heads/{resolution.value}", "sha": commit_sha},
            )
            # 422 means the branch already exists from an earlier attempt.
            self._expect(response, 200, 201, 422)

        response = await self._request(
            "PATCH",
            fork,
            owner,
            json_data={"default_branch": Resolution.x32.value},
        )
        self._expect(response, 200)

    async def fork_status(self, owner: ForkOwner) -> ForkStatus:
        response = await self._request("GET", self._fork_path(owner), owner)
        if response.status_code == HTTP_NOT_FOUND:
            return ForkStatus.ABSENT
        self._expect(response, HTTP_OK)

        branch = await self._request(
            "GET",
            f"{self._fork_path(owner)}/git/ref/heads/{Resolution.x32.value}",
            owner,
        )
        if branch.status_code == HTTP_NOT_FOUND:
            return ForkStatus.PENDING
        self._expect(branch, HTTP_OK)
        return ForkStatus.READY

    async def list_tree(self, owner: ForkOwner, branch: str) -> list[ExternalFileRecord]:
        """List the blobs of ``branch``.

        A missing branch or a truncated listing raises instead of returning a
        partial result, since reconciliation would read missing files as
        deletions.
        """
        fork = self._fork_path(owner)
        ref = await self._request("GET", f"{fork}/git/ref/heads/{branch}", owner)
        if ref.status_code == HTTP_NOT_FOUND:
            raise ExternalSyncError(f"Branch '{branch}' not found in {owner.login}'s fork")
        try:
            commit_sha = self._payload(ref, HTTP_OK)["object"]["sha"]
        except (KeyError, TypeError) as e:
            raise ExternalSyncError(f"Branch '{branch}' of {owner.login} has no commit") from e

        tree = await self._request(
            "GET",
            f"{fork}/git/trees/{commit_sha}",
            owner,
            params={"recursive": "true"},
        )
        payload = self._payload(tree, HTTP_OK)
        if not isinstance(payload, dict):
            raise ExternalSyncError(f"Tree listing of {owner.login}/{branch} is malformed")
        if payload.get("truncated"):
            raise ExternalSyncError(f"Tree listing of {owner.login}/{branch} was truncated")

        try:
            return [
                ExternalFileRecord(
                    path=item["path"],
                    hash=item["sha"],
                    size=int(item.get("size") or 0),
                    url=f"{self.raw_url}/{owner.login}/{self.repo}/{commit_sha}/{item['path']}",
                )
                for item in payload.get("tree", [])
                if item.get("type") == "blob"
            ]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ExternalSyncError(f"Tree listing of {owner.login}/{branch} is malformed") from e

    async def delete_fork(self, owner: ForkOwner) -> None:
        response = await self._request("DELETE", self._fork_path(owner), owner)
        self._expect(response, HTTP_NO_CONTENT, HTTP_NOT_FOUND)
        logger.info("Deleted fork of %s", owner.login)


_gateway: GitForkGateway | None = None


def get_git_gateway() -> GitForkGateway:
    """Return the shared git gateway instance."""
    global _gateway
    if _gateway is None:
        _gateway = GitHubForkGateway()
    return _gateway

