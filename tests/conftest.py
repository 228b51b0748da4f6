import io
import struct
import zipfile
import zlib

import pytest

from ro_subtitles.errors import NetworkError
from ro_subtitles.sources.titrari import SearchPage


def make_zip(files):
    bio = io.BytesIO()
    with zipfile.ZipFile(bio, mode="w") as z:
        for name, content in files.items():
            z.writestr(name, content)
    return bio.getvalue()


def _patch_zip_headers(payload, local_offset, central_offset, update):
    data = bytearray(payload)
    for signature, offset in ((b"PK\x03\x04", local_offset), (b"PK\x01\x02", central_offset)):
        pos = data.find(signature)
        while pos != -1:
            value = struct.unpack_from("<H", data, pos + offset)[0]
            struct.pack_into("<H", data, pos + offset, update(value))
            pos = data.find(signature, pos + 4)
    return bytes(data)


def mark_zip_encrypted(payload):
    """Set the traditional-encryption bit on every entry."""
    return _patch_zip_headers(payload, 6, 8, lambda flags: flags | 0x1)


def set_zip_method(payload, method):
    """Claim a compression method (9 is Deflate64) zipfile cannot decode."""
    return _patch_zip_headers(payload, 8, 10, lambda _old: method)


# 2020-01-01 00:00:00 in MS-DOS format
RAR_DOS_TIME = (40 << 25) | (1 << 21) | (1 << 16)


def _rar_block(head_type, flags, body):
    header = struct.pack("<BHH", head_type, flags, 7 + len(body)) + body
    return struct.pack("<H", zlib.crc32(header) & 0xFFFF) + header


def make_rar(files):
    """RAR 2.9 archive with stored (uncompressed) entries.

    Stored entries are read by rarfile itself, so no unrar binary is needed.
    """
    blocks = [b"Rar!\x1a\x07\x00", _rar_block(0x73, 0, b"\x00" * 6)]
    for name, content in files.items():
        data = content.encode("utf-8") if isinstance(content, str) else content
        raw_name = name.encode("ascii")
        body = struct.pack(
            "<IIBIIBBHI",
            len(data),
            len(data),
            2,
            zlib.crc32(data) & 0xFFFFFFFF,
            RAR_DOS_TIME,
            29,
            0x30,
            len(raw_name),
            0x20,
        )
        blocks.append(_rar_block(0x74, 0x8000, body + raw_name) + data)
    blocks.append(_rar_block(0x7B, 0x4000, b""))
    return b"".join(blocks)


SEARCH_HTML = """
<html><body><table>
<tr>
  <td><h1><a href="index.php?page=numaicautamcaneiesepenas&z7=1">Show S01E01 Pilot</a></h1></td>
  <td>Traducator: ion | Descarcari: 120</td>
  <td><a href="get.php?id=111"><img src="down.png"></a></td>
</tr>
<tr>
  <td><h1><a href="x">Show 1x01 HDTV</a></h1></td>
  <td>Descarcari: 900</td>
  <td><a href="get.php?id=222">download</a></td>
</tr>
<tr>
  <td><h1><a href="x">Show S01E02 Second</a></h1></td>
  <td>Descarcari: 5000</td>
  <td><a href="get.php?id=333">download</a></td>
</tr>
<tr>
  <td><h1><a href="x">Show Sezon 1 complet</a></h1></td>
  <td>Descarcari: 40</td>
  <td><a href="get.php?id=444">download</a> <a href="get.php?id=444&amp;mirror=1">mirror</a></td>
</tr>
</table></body></html>
"""


class FakeSource:
    """Stands in for TitrariClient and counts network calls."""

    def __init__(self, payloads=None, page=None, fail=False):
        self.payloads = payloads or {}
        self.page = page
        self.fail = fail
        self.download_calls = 0
        self.search_calls = 0

    async def download(self, subtitle_id):
        self.download_calls += 1
        if self.fail or subtitle_id not in self.payloads:
            raise NetworkError(f"no payload for {subtitle_id}")
        return self.payloads[subtitle_id]

    async def search_page(self, imdb_number):
        self.search_calls += 1
        if self.fail or self.page is None:
            raise NetworkError("search unavailable")
        return self.page


@pytest.fixture
def search_page():
    return SearchPage(body=SEARCH_HTML, content_type="text/html; charset=utf-8")
