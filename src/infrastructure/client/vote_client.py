from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor

import httpx

from src.application.use_cases.vote_image import VoteState


class VoteClient:
    """Sends vote toggles to the API in the background.

    ``send`` matches the sender expected by ``submit_vote``: it returns at once
    with a future that resolves to the server's vote state.
    """

    def __init__(self, base_url: str, token: str, http: httpx.Client | None = None) -> None:
        self._http = http or httpx.Client(base_url=base_url)
        self._headers = {"Authorization": f"Bearer {token}"}
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="vote")

    def _post_vote(self, image_id: str) -> VoteState:
        response = self._http.post(f"/images/{image_id}/vote", headers=self._headers)
        response.raise_for_status()
        body = response.json()
        return VoteState(image_id=body["image_id"], voted=body["voted"], votes=body["votes"])

    def send(self, image_id: str) -> Future[VoteState]:
        return self._executor.submit(self._post_vote, image_id)

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        self._http.close()
