"""Tests for the GitHub fork gateway against a mocked HTTP transport."""

import json
from collections.abc import Callable

import httpx
import pytest

from pack_review.core.errors import ExternalSyncError
from pack_review.services.git_gateway import (
    SHA1_EMPTY_TREE,
    ForkOwner,
    ForkStatus,
    GitHubForkGateway,
)

OWNER = ForkOwner(login="alice", token="gho_test")

Handler = Callable[[httpx.Request], httpx.Response]


class Recorder:
    """Route requests by (method, path) and remember what was sent."""

    def __init__(self, routes: dict[tuple[str, str], list[httpx.Response] | httpx.Response]):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if isinstance(route, list):
            # Replay responses in order, repeating the last one.
            route = route.pop(0) if len(route) > 1 else route[0]
        # A fresh response per call; the client takes ownership of what it receives.
        return httpx.Response(route.status_code, headers=route.headers, content=route.content)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]


def make_gateway(handler: Handler, **overrides) -> GitHubForkGateway:
    options = {
        "base_url": "https://api.example.test",
        "raw_url": "https://raw.example.test/",
        "org": "upstream",
        "repo": "pack",
        "timeout_seconds": 5,
        "max_retries": 2,
        "backoff_seconds": 0,
        "poll_interval_seconds": 0,
        "poll_max_attempts": 3,
    }
    options.update(overrides)
    return GitHubForkGateway(transport=httpx.MockTransport(handler), **options)


REPO = "/repos/alice/pack"
REF_X32 = f"{REPO}/git/ref/heads/x32"


@pytest.mark.asyncio
async def test_transient_errors_are_retried() -> None:
    recorder = Recorder(
        {
            ("GET", REPO): [httpx.Response(502), httpx.Response(200, json={})],
            ("GET", REF_X32): httpx.Response(200, json={"object": {"sha": "c0"}}),
        }
    )
    gateway = make_gateway(recorder)

    assert await gateway.fork_status(OWNER) == ForkStatus.READY
    assert len(recorder.calls("GET", REPO)) == 2
    assert recorder.requests[0].headers["Authorization"] == "Bearer gho_test"
    await gateway.close()


@pytest.mark.asyncio
async def test_network_errors_are_retried() -> None:
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(204)

    gateway = make_gateway(handler)

    await gateway.delete_fork(OWNER)
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_exhausted_retries_raise() -> None:
    recorder = Recorder({("GET", REPO): httpx.Response(503)})
    gateway = make_gateway(recorder)

    with pytest.raises(ExternalSyncError, match="after 3 attempts"):
        await gateway.fork_status(OWNER)
    assert len(recorder.requests) == 3


@pytest.mark.asyncio
async def test_circuit_opens_after_repeated_failures() -> None:
    recorder = Recorder({("GET", REPO): httpx.Response(500)})
    gateway = make_gateway(recorder, max_retries=4)

    with pytest.raises(ExternalSyncError):
        await gateway.fork_status(OWNER)
    with pytest.raises(ExternalSyncError, match="circuit breaker"):
        await gateway.fork_status(OWNER)

    assert len(recorder.requests) == 5


@pytest.mark.asyncio
async def test_fork_status_absent_and_pending() -> None:
    gateway = make_gateway(Recorder({}))
    assert await gateway.fork_status(OWNER) == ForkStatus.ABSENT

    gateway = make_gateway(Recorder({("GET", REPO): httpx.Response(200, json={})}))
    assert await gateway.fork_status(OWNER) == ForkStatus.PENDING


@pytest.mark.asyncio
async def test_create_fork_sets_up_resolution_branches() -> None:
    recorder = Recorder(
        {
            ("POST", "/repos/upstream/pack/forks"): httpx.Response(202, json={}),
            ("GET", REPO): [httpx.Response(404), httpx.Response(200, json={})],
            ("POST", f"{REPO}/git/commits"): httpx.Response(201, json={"sha": "root"}),
            ("POST", f"{REPO}/git/refs"): [
                httpx.Response(201, json={}),
                httpx.Response(422, json={"message": "Reference already exists"}),
            ],
            ("PATCH", REPO): httpx.Response(200, json={}),
        }
    )
    gateway = make_gateway(recorder)

    await gateway.create_fork(OWNER)

    (commit,) = recorder.calls("POST", f"{REPO}/git/commits")
    assert json.loads(commit.content) == {
        "message": "initial commit",
        "tree": SHA1_EMPTY_TREE,
        "parents": [],
    }
    refs = [json.loads(r.content) for r in recorder.calls("POST", f"{REPO}/git/refs")]
    assert refs == [
        {"ref": "refs/heads/x32", "sha": "root"},
        {"ref": "refs/heads/x64", "sha": "root"},
    ]
    (patch,) = recorder.calls("PATCH", REPO)
    assert json.loads(patch.content) == {"default_branch": "x32"}


@pytest.mark.asyncio
async def test_create_fork_gives_up_after_poll_limit() -> None:
    recorder = Recorder({("POST", "/repos/upstream/pack/forks"): httpx.Response(202, json={})})
    gateway = make_gateway(recorder, poll_max_attempts=3)

    with pytest.raises(ExternalSyncError, match="not ready after 3 checks"):
        await gateway.create_fork(OWNER)

    assert len(recorder.calls("GET", REPO)) == 3
    assert recorder.calls("POST", f"{REPO}/git/commits") == []


@pytest.mark.asyncio
async def test_list_tree_returns_blobs_only() -> None:
    recorder = Recorder(
        {
            ("GET", REF_X32): httpx.Response(200, json={"object": {"sha": "c1"}}),
            ("GET", f"{REPO}/git/trees/c1"): httpx.Response(
                200,
                json={
                    "truncated": False,
                    "tree": [
                        {"path": "assets", "type": "tree", "sha": "t1"},
                        {
                            "path": "assets/minecraft/textures/block/stone.png",
                            "type": "blob",
                            "sha": "b1",
                            "size": 120,
                        },
                    ],
                },
            ),
        }
    )
    gateway = make_gateway(recorder)

    (record,) = await gateway.list_tree(OWNER, "x32")

    assert record.hash == "b1"
    assert record.size == 120
    assert record.filename == "stone.png"
    assert record.url == (
        "https://raw.example.test/alice/pack/c1/assets/minecraft/textures/block/stone.png"
    )
    (tree_request,) = recorder.calls("GET", f"{REPO}/git/trees/c1")
    assert tree_request.url.params["recursive"] == "true"


@pytest.mark.asyncio
async def test_list_tree_missing_branch_raises() -> None:
    gateway = make_gateway(Recorder({}))

    with pytest.raises(ExternalSyncError, match="not found"):
        await gateway.list_tree(OWNER, "x64")


@pytest.mark.asyncio
async def test_list_tree_truncated_raises() -> None:
    recorder = Recorder(
        {
            ("GET", REF_X32): httpx.Response(200, json={"object": {"sha": "c1"}}),
            ("GET", f"{REPO}/git/trees/c1"): httpx.Response(
                200, json={"truncated": True, "tree": []}
            ),
        }
    )
    gateway = make_gateway(recorder)

    with pytest.raises(ExternalSyncError, match="truncated"):
        await gateway.list_tree(OWNER, "x32")


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [204, 404])
async def test_delete_fork_accepts_missing_fork(status_code: int) -> None:
    gateway = make_gateway(Recorder({("DELETE", REPO): httpx.Response(status_code)}))

    await gateway.delete_fork(OWNER)


@pytest.mark.asyncio
async def test_delete_fork_rejects_unexpected_status() -> None:
    gateway = make_gateway(Recorder({("DELETE", REPO): httpx.Response(403)}))

    with pytest.raises(ExternalSyncError, match="403"):
        await gateway.delete_fork(OWNER)


def test_fork_url() -> None:
    gateway = make_gateway(Recorder({}))
    assert gateway.fork_url(OWNER) == "https://github.com/alice/pack"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("commit_response", "message"),
    [
        (httpx.Response(201, content=b"<html>bad gateway</html>"), "Malformed"),
        (httpx.Response(201, json={"message": "created"}), "returned no sha"),
    ],
)
async def test_create_fork_rejects_malformed_commit_response(
    commit_response: httpx.Response, message: str
) -> None:
    recorder = Recorder(
        {
            ("POST", "/repos/upstream/pack/forks"): httpx.Response(202, json={}),
            ("GET", REPO): httpx.Response(200, json={}),
            ("GET", REF_X32): httpx.Response(200, json={"object": {"sha": "c0"}}),
            ("POST", f"{REPO}/git/commits"): commit_response,
        }
    )
    gateway = make_gateway(recorder)

    with pytest.raises(ExternalSyncError, match=message):
        await gateway.create_fork(OWNER)
    assert recorder.calls("POST", f"{REPO}/git/refs") == []


@pytest.mark.asyncio
async def test_list_tree_malformed_listing_raises() -> None:
    recorder = Recorder(
        {
            ("GET", REF_X32): httpx.Response(200, json={"object": {"sha": "c1"}}),
            ("GET", f"{REPO}/git/trees/c1"): httpx.Response(
                200, json={"truncated": False, "tree": [{"type": "blob", "sha": "b1"}]}
            ),
        }
    )
    gateway = make_gateway(recorder)

    with pytest.raises(ExternalSyncError, match="malformed"):
        await gateway.list_tree(OWNER, "x32")
