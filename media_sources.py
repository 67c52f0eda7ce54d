"""
Media normalisation: uploads and remote videos become inline parts for Gemini.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx
from fastapi import HTTPException, UploadFile
from google.genai import types

import config

DEFAULT_MIME_TYPE = "application/octet-stream"


class SourceKind(str, Enum):
    FILE = "file"
    REMOTE_URL = "remote_url"
    YOUTUBE_ID = "youtube_id"
    TEXT_ONLY = "text_only"


@dataclass(frozen=True)
class InlineMedia:
    mime_type: str
    data: bytes

    def to_part(self) -> types.Part:
        return types.Part.from_bytes(data=self.data, mime_type=self.mime_type)


@dataclass
class MediaRequest:
    """
    One analysis request, tagged by where its media comes from. FILE carries
    the bytes, REMOTE_URL and YOUTUBE_ID carry a reference resolved later,
    TEXT_ONLY carries nothing but the prompt.
    """
    source_kind: SourceKind
    prompt: str
    media: Optional[InlineMedia] = None
    url: Optional[str] = None
    video_id: Optional[str] = None

    def __post_init__(self):
        required = {
            SourceKind.FILE: self.media,
            SourceKind.REMOTE_URL: self.url,
            SourceKind.YOUTUBE_ID: self.video_id,
        }
        if self.source_kind in required and not required[self.source_kind]:
            raise ValueError(f"{self.source_kind.value} request is missing its source")


def _too_large(max_size: int) -> HTTPException:
    return HTTPException(status_code=413, detail=f"File too large. Max: {max_size // (1024 * 1024)}MB")


async def read_upload(upload: UploadFile, max_size: Optional[int] = None) -> InlineMedia:
    """
    Read a multipart upload into memory in chunks, enforcing the size cap.
    The upload's spooled temp file is always closed, even when reading fails.
    """
    max_size = max_size or config.MAX_FILE_SIZE
    buffer = bytearray()
    print(f"📥 Reading upload: {upload.filename}")

    try:
        while True:
            chunk = await upload.read(config.UPLOAD_CHUNK_SIZE)
            if not chunk:
                break
            buffer.extend(chunk)
            if len(buffer) > max_size:
                raise _too_large(max_size)
    finally:
        await upload.close()

    mime_type = upload.content_type or DEFAULT_MIME_TYPE
    print(f"✅ Upload read: {upload.filename}, {len(buffer)} bytes, type: {mime_type}")
    return InlineMedia(mime_type=mime_type, data=bytes(buffer))


async def fetch_remote_video(
    url: str,
    client: httpx.AsyncClient,
    max_size: Optional[int] = None,
) -> InlineMedia:
    """
    Download a remote video. Anything whose Content-Type is not video/* is
    rejected with a 400 before the body is read.
    """
    max_size = max_size or config.MAX_REMOTE_FETCH_SIZE
    async with client.stream("GET", url) as response:
        response.raise_for_status()

        content_type = response.headers.get("content-type", "")
        if not content_type.startswith("video/"):
            raise HTTPException(status_code=400, detail="URL does not point to a video file")

        declared = response.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > max_size:
            raise _too_large(max_size)

        buffer = bytearray()
        async for chunk in response.aiter_bytes():
            buffer.extend(chunk)
            if len(buffer) > max_size:
                raise _too_large(max_size)

    mime_type = content_type.split(";", 1)[0].strip()
    print(f"✅ Remote video fetched: {url}, {len(buffer)} bytes, type: {mime_type}")
    return InlineMedia(mime_type=mime_type, data=bytes(buffer))
