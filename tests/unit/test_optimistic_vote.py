from __future__ import annotations

from concurrent.futures import Future

from src.application.optimistic_vote import GalleryVoteState, submit_vote
from src.application.use_cases.vote_image import VoteState


def _pending_sender(futures: list[Future]):
    def send(image_id: str) -> Future:
        fut: Future = Future()
        futures.append(fut)
        return fut

    return send


def test_vote_is_applied_before_server_answers():
    state = GalleryVoteState()
    state.load("img_1", votes=4, voted=False)
    futures: list[Future] = []

    command = submit_vote(state, "img_1", _pending_sender(futures))

    assert command is not None
    assert state.votes["img_1"] == 5
    assert state.voted["img_1"] is True
    assert state.is_pending("img_1")


def test_server_state_is_adopted():
    state = GalleryVoteState()
    state.load("img_1", votes=4, voted=False)
    futures: list[Future] = []
    submit_vote(state, "img_1", _pending_sender(futures))

    # another voter landed in between
    futures[0].set_result(VoteState(image_id="img_1", voted=True, votes=6))

    assert state.votes["img_1"] == 6
    assert state.voted["img_1"] is True
    assert not state.is_pending("img_1")


def test_failure_restores_previous_state():
    state = GalleryVoteState()
    state.load("img_1", votes=4, voted=True)
    futures: list[Future] = []
    submit_vote(state, "img_1", _pending_sender(futures))
    assert state.votes["img_1"] == 3

    futures[0].set_exception(ConnectionError("offline"))

    assert state.votes["img_1"] == 4
    assert state.voted["img_1"] is True
    assert not state.is_pending("img_1")


def test_second_click_is_ignored_while_pending():
    state = GalleryVoteState()
    state.load("img_1", votes=0, voted=False)
    futures: list[Future] = []
    send = _pending_sender(futures)

    assert submit_vote(state, "img_1", send) is not None
    assert submit_vote(state, "img_1", send) is None
    assert len(futures) == 1
    assert state.votes["img_1"] == 1


def test_sender_raising_is_reverted():
    state = GalleryVoteState()
    state.load("img_1", votes=2, voted=False)

    def broken(image_id: str) -> Future:
        raise RuntimeError("no connection")

    command = submit_vote(state, "img_1", broken)

    assert command is not None
    assert state.votes["img_1"] == 2
    assert state.voted["img_1"] is False
    assert not state.is_pending("img_1")


def test_vote_client_drives_the_command():
    import httpx

    from src.infrastructure.client.vote_client import VoteClient

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer token-1"
        assert request.url.path == "/images/img_1/vote"
        return httpx.Response(200, json={"image_id": "img_1", "voted": True, "votes": 7})

    http = httpx.Client(base_url="http://testserver", transport=httpx.MockTransport(handler))
    client = VoteClient("http://testserver", "token-1", http=http)
    state = GalleryVoteState()
    state.load("img_1", votes=5, voted=False)

    command = submit_vote(state, "img_1", client.send)
    command.request.result(timeout=5)
    client.close()

    assert state.votes["img_1"] == 7
    assert state.voted["img_1"] is True
    assert not state.is_pending("img_1")
