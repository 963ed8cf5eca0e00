import hashlib
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest

from reforge.core.exceptions import FetchError
from reforge.deploy.fetch import cache_path_for, fetch_pack


class Resp:
    def __init__(self, content: bytes, chunk: int = 4):
        self.content = content
        self.chunk = chunk

    def raise_for_status(self):
        return None

    def iter_bytes(self):
        for i in range(0, len(self.content), self.chunk):
            yield self.content[i:i + self.chunk]


def _mock_client(Client, *responses):
    client = MagicMock()
    streams = []
    for r in responses:
        cm = MagicMock()
        if isinstance(r, Exception):
            cm.__enter__.side_effect = r
        else:
            cm.__enter__.return_value = r
        streams.append(cm)
    client.stream.side_effect = streams
    Client.return_value.__enter__.return_value = client
    return client


def test_https_download(tmp_path: Path):
    dest = tmp_path / "pack.zip"
    data = b"hello world"

    with patch("httpx.Client") as Client:
        client = _mock_client(Client, Resp(data))
        out = fetch_pack("https://example.com/p.zip", dest)

    assert out == dest
    assert out.read_bytes() == data
    client.stream.assert_called_once_with("GET", "https://example.com/p.zip", follow_redirects=True)
    assert not dest.with_suffix(".zip.downloading").exists()


def test_sha256_match_and_mismatch(tmp_path: Path):
    data = b"abc"
    digest = hashlib.sha256(data).hexdigest()

    with patch("httpx.Client") as Client:
        _mock_client(Client, Resp(data))
        assert fetch_pack("https://example.com/p.zip", tmp_path / "ok.zip", sha256=digest).exists()

    with patch("httpx.Client") as Client:
        _mock_client(Client, Resp(data))
        with pytest.raises(FetchError):
            fetch_pack("https://example.com/p.zip", tmp_path / "bad.zip", sha256="deadbeef")
    assert not (tmp_path / "bad.zip").exists()


def test_download_size_limit(tmp_path: Path):
    dest = tmp_path / "pack.zip"
    with patch("httpx.Client") as Client:
        _mock_client(Client, Resp(b"a" * 1024))
        with pytest.raises(FetchError):
            fetch_pack("https://example.com/large", dest, max_size_bytes=10)
    assert not dest.exists()
    assert not dest.with_suffix(".zip.downloading").exists()


def test_retry_then_success(tmp_path: Path):
    dest = tmp_path / "pack.zip"
    with patch("httpx.Client") as Client, patch("reforge.deploy.fetch.time.sleep") as sleep:
        client = _mock_client(Client, httpx.ConnectError("boom"), Resp(b"ok"))
        out = fetch_pack("https://example.com/p.zip", dest, backoff_base=0.01)

    assert out.read_bytes() == b"ok"
    assert client.stream.call_count == 2
    sleep.assert_called_once()


def test_gives_up_after_max_retries(tmp_path: Path):
    with patch("httpx.Client") as Client, patch("reforge.deploy.fetch.time.sleep"):
        client = _mock_client(Client, *[httpx.ConnectError("down")] * 3)
        with pytest.raises(FetchError) as exc_info:
            fetch_pack("https://example.com/p.zip", tmp_path / "pack.zip", max_retries=3)

    assert "after 3 attempts" in str(exc_info.value)
    assert client.stream.call_count == 3


def test_rejects_non_http_url(tmp_path: Path):
    with pytest.raises(FetchError):
        fetch_pack("s3://bucket/key", tmp_path / "pack.zip")


def test_cache_path_is_stable(tmp_path: Path):
    a = cache_path_for("https://example.com/p.zip", tmp_path)
    assert a == cache_path_for("https://example.com/p.zip", tmp_path)
    assert a != cache_path_for("https://example.com/q.zip", tmp_path)
    assert a.parent == tmp_path
