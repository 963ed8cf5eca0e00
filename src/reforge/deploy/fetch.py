"""Fetch utilities for downloading template packs to a local cache."""

from __future__ import annotations

import hashlib
import os
import time
from pathlib import Path
from typing import Iterable, Optional

import httpx
import structlog

from reforge.core.exceptions import FetchError

logger = structlog.get_logger()


def _write_stream_to_file(stream_iter: Iterable[bytes], dest_path: Path, max_size_bytes: int) -> int:
    """Write streaming bytes to file with max-size enforcement.

    Returns number of bytes written.
    """
    tmp_file = dest_path.with_suffix(dest_path.suffix + ".downloading")
    bytes_written = 0
    try:
        with open(tmp_file, "wb") as f:
            for chunk in stream_iter:
                if not chunk:
                    continue
                bytes_written += len(chunk)
                if bytes_written > max_size_bytes:
                    raise FetchError("Template pack exceeds maximum allowed size")
                f.write(chunk)
        os.replace(tmp_file, dest_path)
    finally:
        if tmp_file.exists():
            tmp_file.unlink()
    return bytes_written


def _sha256_of(path: Path) -> str:
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(8192), b""):
            hasher.update(block)
    return hasher.hexdigest()


def cache_path_for(url: str, cache_dir: Path) -> Path:
    digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]
    return cache_dir / f"pack-{digest}.zip"


def fetch_pack(
    url: str,
    dest_path: Path,
    *,
    max_size_bytes: int = 50 * 1024 * 1024,
    total_timeout_sec: float = 30.0,
    max_retries: int = 3,
    backoff_base: float = 0.3,
    sha256: Optional[str] = None,
) -> Path:
    """Download a template pack over http(s) to dest_path.

    Enforces a maximum size and a total timeout across retries.
    Optionally validates SHA256 if provided.
    """
    if not url.startswith(("https://", "http://")):
        raise FetchError(f"Unsupported template pack URL: {url}")
    dest_path.parent.mkdir(parents=True, exist_ok=True)

    start = time.time()
    attempt = 0
    last_error: Optional[Exception] = None

    while attempt < max_retries and (time.time() - start) < total_timeout_sec:
        attempt += 1
        try:
            logger.info("Downloading template pack", url=url, dest=str(dest_path), attempt=attempt)
            timeout = httpx.Timeout(total_timeout_sec - (time.time() - start))
            with httpx.Client(timeout=timeout) as client:
                with client.stream("GET", url, follow_redirects=True) as resp:
                    resp.raise_for_status()
                    bytes_written = _write_stream_to_file(resp.iter_bytes(), dest_path, max_size_bytes)
            logger.info("Downloaded template pack", bytes=bytes_written)

            if sha256:
                actual = _sha256_of(dest_path)
                if actual != sha256.lower():
                    dest_path.unlink()
                    raise FetchError(f"SHA256 mismatch. expected={sha256} actual={actual}")

            return dest_path
        except FetchError:
            raise
        except (httpx.HTTPError, OSError) as e:
            last_error = e
            elapsed = time.time() - start
            remaining = total_timeout_sec - elapsed
            logger.warning("Fetch attempt failed", attempt=attempt, error=str(e), remaining_time_sec=max(0.0, remaining))
            if attempt >= max_retries or remaining <= 0:
                break
            sleep_for = min(backoff_base * (2 ** (attempt - 1)), max(0.0, remaining))
            time.sleep(sleep_for)

    raise FetchError(f"Failed to fetch template pack after {attempt} attempts: {last_error}")
