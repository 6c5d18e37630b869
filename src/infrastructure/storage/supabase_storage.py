from __future__ import annotations

import base64
import binascii
import ipaddress
import logging
import os
import socket
import time
import uuid
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path

import httpx
from PIL import Image, UnidentifiedImageError
from supabase import Client

logger = logging.getLogger(__name__)

DEFAULT_FOLDER = "astra-images"
LOCAL_URL_PREFIX = "/local-storage"

_EXTENSIONS = {"JPEG": "jpg", "PNG": "png", "WEBP": "webp", "GIF": "gif", "BMP": "bmp"}


@dataclass
class StoredMedia:
    path: str
    url: str
    content_type: str
    size: int
    width: int
    height: int


MAX_IMAGE_BYTES = 20 * 1024 * 1024


def _max_image_bytes() -> int:
    return int(os.getenv("UPLOAD_MAX_BYTES", str(MAX_IMAGE_BYTES)))


def _allowed_hosts() -> set[str]:
    raw = os.getenv("UPLOAD_ALLOWED_HOSTS", "")
    return {host.strip().lower() for host in raw.split(",") if host.strip()}


def _resolve_addresses(host: str) -> list[str]:
    try:
        infos = socket.getaddrinfo(host, None, proto=socket.IPPROTO_TCP)
    except socket.gaierror as exc:
        raise ValueError(f"Cannot resolve image host {host!r}") from exc
    return [info[4][0] for info in infos]


def check_fetch_url(url: str) -> httpx.URL:
    """Validate a remote image URL before anything is requested from it.

    With ``UPLOAD_ALLOWED_HOSTS`` set, only those hosts are accepted. Otherwise
    the host must resolve to public addresses only.

    Raises:
        ValueError: If the URL is malformed or points somewhere not allowed.
    """
    try:
        target = httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise ValueError(f"Invalid image URL: {exc}") from exc
    host = (target.host or "").lower()
    if target.scheme not in ("http", "https") or not host:
        raise ValueError("Image URL must be an absolute http(s) URL")

    allowed = _allowed_hosts()
    if allowed:
        if host not in allowed:
            raise ValueError(f"Image host {host!r} is not allowed")
        return target

    for address in _resolve_addresses(host):
        ip = ipaddress.ip_address(address.split("%")[0])
        if not ip.is_global or ip.is_multicast:
            raise ValueError(f"Image host {host!r} is not a public address")
    return target


def fetch_image(url: str, timeout: float = 30.0, client: httpx.Client | None = None) -> bytes:
    """Download a remote image, refusing redirects and bodies over the size limit."""
    target = check_fetch_url(url)
    limit = _max_image_bytes()
    http = client or httpx.Client(timeout=timeout)
    chunks: list[bytes] = []
    try:
        with http.stream("GET", target, follow_redirects=False) as response:
            if response.is_redirect:
                raise ValueError("Image URL redirects elsewhere; pass the final URL")
            if response.status_code >= 400:
                raise RuntimeError(f"Could not fetch image: HTTP {response.status_code}")
            declared = response.headers.get("content-length", "")
            if declared.isdigit() and int(declared) > limit:
                raise ValueError(f"Image exceeds the {limit} byte limit")
            total = 0
            for chunk in response.iter_bytes():
                total += len(chunk)
                if total > limit:
                    raise ValueError(f"Image exceeds the {limit} byte limit")
                chunks.append(chunk)
    except httpx.HTTPError as exc:
        # transport details stay in the log, not in the response
        logger.warning("Fetching image from %s failed: %s", target.host, exc)
        raise RuntimeError("Could not fetch image from URL") from exc
    finally:
        if client is None:
            http.close()
    return b"".join(chunks)


def decode_image_data(image_data: str, timeout: float = 30.0, client: httpx.Client | None = None) -> bytes:
    """Turn an upload payload into raw bytes.

    Accepts a ``data:`` URL, an http(s) URL to fetch, or bare base64.
    """
    payload = image_data.strip()
    if payload.startswith(("http://", "https://")):
        return fetch_image(payload, timeout=timeout, client=client)
    if payload.startswith("data:"):
        header, _, payload = payload.partition(",")
        if ";base64" not in header:
            raise ValueError("Only base64 data URLs are supported")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Image data is neither a URL nor valid base64") from exc


class SupabaseStorage:
    """Media hosting on Supabase Storage with a local directory in disabled mode."""

    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.bucket = os.getenv("SUPABASE_STORAGE_BUCKET", DEFAULT_FOLDER)
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.local_dir = Path(os.getenv("SUPABASE_STORAGE_LOCAL_DIR", ".local_storage"))
        if self.disabled:
            self.local_dir.mkdir(parents=True, exist_ok=True)

    def _inspect(self, data: bytes) -> tuple[str, str, int, int]:
        try:
            with Image.open(BytesIO(data)) as img:
                fmt = img.format or "PNG"
                width, height = img.size
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as exc:
            raise ValueError(f"Invalid image file: {exc}") from exc
        except Image.DecompressionBombError as exc:
            raise ValueError(f"Image is too large: {exc}") from exc
        ext = _EXTENSIONS.get(fmt, "png")
        content_type = Image.MIME.get(fmt, "image/png")
        return ext, content_type, width, height

    def upload(self, image_data: str, folder: str | None = None) -> StoredMedia:
        """Store an image payload and return where it can be fetched from."""
        raw_folder = folder or DEFAULT_FOLDER
        folder = raw_folder.rstrip("/")
        if not folder or folder.startswith("/") or ".." in folder.split("/"):
            raise ValueError(f"Invalid folder: {raw_folder!r}")

        data = decode_image_data(image_data)
        ext, content_type, width, height = self._inspect(data)
        file_name = f"image_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}.{ext}"
        storage_path = f"{folder}/{file_name}"

        if self.disabled:
            full_path = self.local_dir / storage_path
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_bytes(data)
            url = f"{LOCAL_URL_PREFIX}/{storage_path}"
        elif self.client is None:
            raise RuntimeError("Supabase storage is not configured. Set SUPABASE_URL and SUPABASE_ANON_KEY.")
        else:
            try:  # pragma: no cover - network
                bucket = self.client.storage.from_(self.bucket)
                bucket.upload(
                    path=storage_path,
                    file=data,
                    file_options={"content-type": content_type, "upsert": "false"},
                )
                url = bucket.get_public_url(storage_path)
            except Exception as exc:  # pragma: no cover
                raise RuntimeError(f"Storage upload failed: {exc}") from exc

        logger.info("Stored %s (%d bytes) at %s", content_type, len(data), storage_path)
        return StoredMedia(
            path=storage_path,
            url=url,
            content_type=content_type,
            size=len(data),
            width=width,
            height=height,
        )
