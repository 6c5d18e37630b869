import base64
import io
import uuid

import numpy as np
from PIL import Image

from src.domain.entities.user import Role
from src.infrastructure.database.repositories.user_repository import UserRepository


def make_png_bytes(w=4, h=4, color=(128, 64, 32)) -> bytes:
    arr = np.zeros((h, w, 3), dtype=np.uint8)
    arr[:, :] = color
    img = Image.fromarray(arr)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def generate_and_save(client, headers, prompt, parent_id=None) -> dict:
    r = client.post("/images/generate", headers=headers, json={"prompt": prompt})
    assert r.status_code == 200, r.text
    body = {"prompt": prompt, "image_url": r.json()["image_url"]}
    if parent_id:
        body["parent_id"] = parent_id
    r2 = client.post("/images", headers=headers, json=body)
    assert r2.status_code == 201, r2.text
    return r2.json()


def make_admin(client, token: str) -> str:
    r = client.post("/auth/session", headers=bearer(token))
    uid = r.json()["user_id"]
    UserRepository(None).set_role(uid, Role.ADMIN)
    return uid


def test_root_and_health(client):
    assert client.get("/").json()["service"] == "astra-labs"
    assert client.get("/health").json() == {"status": "healthy"}


def test_sign_in_creates_designer_once(client, auth_header):
    r = client.post("/auth/session", headers=auth_header)
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["role"] == "designer"
    assert data["created"] is True

    r2 = client.post("/auth/session", headers=auth_header)
    assert r2.json()["created"] is False

    me = client.get("/auth/me", headers=auth_header).json()
    assert me["user_id"] == data["user_id"]
    assert me["profile"]["uid"] == data["user_id"]


def test_missing_token_is_rejected(client):
    assert client.post("/auth/session").status_code == 401
    assert client.post("/images/generate", json={"prompt": "x"}).status_code == 401


def test_sign_out_revokes_token(client):
    headers = bearer(f"signout-{uuid.uuid4().hex}")
    assert client.get("/auth/me", headers=headers).status_code == 200
    r = client.post("/auth/signout", headers=headers)
    assert r.status_code == 200
    assert client.get("/auth/me", headers=headers).status_code == 401


def test_generate_save_and_list(client, auth_header):
    saved = generate_and_save(client, auth_header, "a lighthouse at dusk")
    assert saved["version"] == 1
    assert saved["owner_name"] == "Anonymous"
    assert saved["owner_email"] == "No email"
    assert saved["image_url"].startswith("/local-storage/astra-images/")

    r = client.get("/images")
    assert r.status_code == 200
    assert [img["id"] for img in r.json()["images"]] == [saved["id"]]

    r2 = client.get(f"/images/{saved['id']}")
    assert r2.status_code == 200
    assert r2.json()["prompt"] == "a lighthouse at dusk"

    stored = client.get(saved["image_url"])
    assert stored.status_code == 200


def test_generate_rejects_empty_prompt(client, auth_header):
    r = client.post("/images/generate", headers=auth_header, json={"prompt": ""})
    assert r.status_code == 422


def test_gallery_pagination(client, auth_header):
    ids = [generate_and_save(client, auth_header, f"image {i}")["id"] for i in range(3)]
    r = client.get("/images", params={"limit": 2, "offset": 1})
    data = r.json()
    assert data["total"] == 3
    assert len(data["images"]) == 2
    assert set(img["id"] for img in data["images"]) <= set(ids)


def test_versions_and_ancestors(client, auth_header):
    root = generate_and_save(client, auth_header, "a lighthouse")
    child = generate_and_save(client, auth_header, "a lighthouse at dusk", parent_id=root["id"])
    grandchild = generate_and_save(client, auth_header, "a lighthouse at dusk, watercolor", parent_id=child["id"])

    assert child["version"] == 2
    assert grandchild["version"] == 3
    assert grandchild["version_history"] == [root["id"], child["id"]]
    assert client.get(f"/images/{root['id']}").json()["is_latest_version"] is False

    ancestors = client.get(f"/images/{grandchild['id']}/ancestors").json()
    assert [img["id"] for img in ancestors["images"]] == [root["id"], child["id"], grandchild["id"]]
    assert ancestors["truncated"] is False

    versions = client.get(f"/images/{grandchild['id']}/versions").json()
    assert [img["id"] for img in versions["images"]] == [root["id"], child["id"]]

    # deleting a middle version leaves the chain cut
    assert client.delete(f"/images/{child['id']}", headers=auth_header).status_code == 200
    cut = client.get(f"/images/{grandchild['id']}/ancestors").json()
    assert [img["id"] for img in cut["images"]] == [grandchild["id"]]
    assert cut["truncated"] is True


def test_save_with_unknown_parent(client, auth_header):
    r = client.post("/images/generate", headers=auth_header, json={"prompt": "x"})
    body = {"prompt": "x", "image_url": r.json()["image_url"], "parent_id": "missing"}
    assert client.post("/images", headers=auth_header, json=body).status_code == 404


def test_unknown_image(client, auth_header):
    assert client.get("/images/missing").status_code == 404
    assert client.get("/images/missing/versions").status_code == 404
    assert client.get("/images/missing/ancestors").json()["images"] == []
    assert client.post("/images/missing/vote", headers=auth_header).status_code == 404


def test_vote_toggle(client, auth_header):
    image = generate_and_save(client, auth_header, "a fluffy cat")
    url = f"/images/{image['id']}/vote"

    first = client.post(url, headers=auth_header).json()
    assert first == {"image_id": image["id"], "voted": True, "votes": 1}

    other = bearer("second-voter")
    assert client.post(url, headers=other).json()["votes"] == 2

    second = client.post(url, headers=auth_header).json()
    assert second["voted"] is False
    assert second["votes"] == 1

    status = client.get(url, headers=other).json()
    assert status["voted"] is True


def test_search_by_prompt(client, auth_header):
    for prompt in ["a fluffy cat", "a dog", "cat in a hat"]:
        generate_and_save(client, auth_header, prompt)

    r = client.get("/images/search", params={"q": "cat"})
    prompts = [img["prompt"] for img in r.json()["images"]]
    assert sorted(prompts) == ["a fluffy cat", "cat in a hat"]

    everything = client.get("/images/search", params={"q": " "}).json()
    assert everything["total"] == 3


def test_search_by_image(client, auth_header):
    generate_and_save(client, auth_header, "calm blue water")
    generate_and_save(client, auth_header, "a red car")
    files = {"image": ("blue.png", make_png_bytes(16, 16, (20, 60, 200)), "image/png")}
    r = client.post("/images/search/similar", files=files)
    assert r.status_code == 200, r.text
    data = r.json()
    assert "water" in data["keywords"]
    assert [img["prompt"] for img in data["images"]] == ["calm blue water"]


def test_leaderboard(client, auth_header):
    a = generate_and_save(client, auth_header, "first")
    b = generate_and_save(client, bearer("designer-b"), "second")
    generate_and_save(client, auth_header, "unvoted")
    client.post(f"/images/{a['id']}/vote", headers=auth_header)
    client.post(f"/images/{b['id']}/vote", headers=auth_header)
    client.post(f"/images/{b['id']}/vote", headers=bearer("designer-b"))

    top = client.get("/leaderboard/images", params={"limit": 5}).json()["images"]
    assert [img["id"] for img in top] == [b["id"], a["id"]]

    designers = client.get("/leaderboard/designers").json()["designers"]
    assert designers[0]["total_votes"] == 2
    assert designers[0]["image_count"] == 1
    assert designers[1]["total_votes"] == 1
    assert designers[1]["image_count"] == 2


def test_delete_requires_owner_or_admin(client, auth_header):
    image = generate_and_save(client, auth_header, "mine")
    assert client.delete(f"/images/{image['id']}", headers=bearer("stranger")).status_code == 403

    make_admin(client, "admin-deleter")
    r = client.delete(f"/images/{image['id']}", headers=bearer("admin-deleter"))
    assert r.status_code == 200
    assert client.get(f"/images/{image['id']}").status_code == 404


def test_protected_prefixes_need_bearer(client):
    for path in ["/dashboard/images", "/admin/images"]:
        r = client.get(path)
        assert r.status_code == 401
        assert r.json() == {"detail": "Missing bearer token"}
    assert client.get("/dashboard/images", headers={"Authorization": "Bearer "}).status_code == 401


def test_dashboard_shows_own_images(client, auth_header):
    mine = generate_and_save(client, auth_header, "my cat")
    generate_and_save(client, bearer("someone-else"), "their cat")

    data = client.get("/dashboard/images", headers=auth_header).json()
    assert [img["id"] for img in data["images"]] == [mine["id"]]

    filtered = client.get("/dashboard/images", headers=auth_header, params={"q": "dog"}).json()
    assert filtered["total"] == 0

    files = {"image": ("gray.png", make_png_bytes(), "image/png")}
    r = client.post("/dashboard/images/search/similar", headers=auth_header, files=files)
    assert r.status_code == 200


def test_admin_routes(client, auth_header):
    assert client.get("/admin/images", headers=auth_header).status_code == 403

    designer = client.post("/auth/session", headers=auth_header).json()["user_id"]
    generate_and_save(client, auth_header, "a fluffy cat")
    generate_and_save(client, bearer("designer-b"), "a dog")
    admin = bearer("the-admin")
    make_admin(client, "the-admin")

    all_images = client.get("/admin/images", headers=admin).json()
    assert all_images["total"] == 2

    scoped = client.get("/admin/images", headers=admin, params={"designer_id": designer}).json()
    assert [img["prompt"] for img in scoped["images"]] == ["a fluffy cat"]

    details = client.get(f"/admin/designers/{designer}", headers=admin)
    assert details.status_code == 200
    assert details.json()["role"] == "designer"
    assert client.get("/admin/designers/nobody", headers=admin).status_code == 404

    promoted = client.post(f"/admin/users/{designer}/promote", headers=admin)
    assert promoted.json()["role"] == "admin"
    assert client.get("/admin/images", headers=auth_header).status_code == 200

    files = {"image": ("gray.png", make_png_bytes(), "image/png")}
    assert client.post("/admin/images/search/similar", headers=admin, files=files).status_code == 200


def test_upload_proxy(client, auth_header):
    encoded = base64.b64encode(make_png_bytes()).decode("ascii")
    r = client.post("/api/upload", headers=auth_header, json={"imageData": encoded, "folder": "astra-images/u1"})
    assert r.status_code == 200, r.text
    assert r.json()["imageUrl"].startswith("/local-storage/astra-images/u1/")

    missing = client.post("/api/upload", headers=auth_header, json={})
    assert missing.status_code == 400
    assert missing.json()["error"] == "No image data provided"

    bad = client.post("/api/upload", headers=auth_header, json={"imageData": "!!!"})
    assert bad.status_code == 400
    assert "details" in bad.json()


def test_image_analysis(client, auth_header):
    files = {"image": ("green.png", make_png_bytes(16, 16, (30, 160, 40)), "image/png")}
    r = client.post("/api/image-analysis", headers=auth_header, files=files)
    assert r.status_code == 200, r.text
    assert "nature" in r.json()["keywords"]

    bad = {"image": ("bad.png", b"not an image", "image/png")}
    assert client.post("/api/image-analysis", headers=auth_header, files=bad).status_code == 400
    assert client.post("/api/image-analysis", headers=auth_header).status_code == 400


def test_oversized_image_is_a_bad_request(client, auth_header, oversized_png):
    encoded = base64.b64encode(oversized_png).decode("ascii")
    r = client.post("/api/upload", headers=auth_header, json={"imageData": encoded})
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid image data"

    files = {"image": ("huge.png", oversized_png, "image/png")}
    r2 = client.post("/api/image-analysis", headers=auth_header, files=files)
    assert r2.status_code == 400
    assert r2.json()["error"] == "Invalid image file"


def test_upload_refuses_internal_urls(client, auth_header):
    for url in ("http://127.0.0.1:8000/health", "http://169.254.169.254/latest/meta-data"):
        r = client.post("/api/upload", headers=auth_header, json={"imageData": url})
        assert r.status_code == 400, url
        assert "public address" in r.json()["details"]

    r = client.post("/images", headers=auth_header, json={"prompt": "cat", "image_url": "http://10.0.0.1/a.png"})
    assert r.status_code == 400


def test_upload_rejects_absolute_folder(client, auth_header):
    encoded = base64.b64encode(make_png_bytes()).decode("ascii")
    r = client.post("/api/upload", headers=auth_header, json={"imageData": encoded, "folder": "/etc"})
    assert r.status_code == 400
    assert "Invalid folder" in r.json()["details"]


def test_upload_storage_failure(client, auth_header):
    from unittest.mock import Mock

    from src.infrastructure.api.dependencies import get_storage

    storage = Mock()
    storage.upload.side_effect = RuntimeError("Storage upload failed: bucket missing")
    client.app.dependency_overrides[get_storage] = lambda: storage
    try:
        encoded = base64.b64encode(make_png_bytes()).decode("ascii")
        r = client.post("/api/upload", headers=auth_header, json={"imageData": encoded})
    finally:
        client.app.dependency_overrides.pop(get_storage, None)
    assert r.status_code == 500
    assert r.json() == {"error": "Failed to upload image", "details": "Storage upload failed: bucket missing"}


def test_store_failure_is_bad_gateway(client, auth_header):
    from unittest.mock import Mock

    from src.infrastructure.api.dependencies import get_image_repo

    images = Mock()
    images.get.side_effect = RuntimeError("database unavailable")
    client.app.dependency_overrides[get_image_repo] = lambda: images
    try:
        deleted = client.delete("/images/x", headers=auth_header)
        vote = client.get("/images/x/vote", headers=auth_header)
    finally:
        client.app.dependency_overrides.pop(get_image_repo, None)
    assert deleted.status_code == 502
    assert vote.status_code == 502
