"""
YouTube metadata resolution for /process-youtube.

Three tiers are tried in order, each one a fallback for the previous one
failing:

1. structured lookup through yt-dlp (plus an optional thumbnail image)
2. scrape of the watch page <title>
3. the bare video ID with a disclaimer

Whatever tier wins produces the prompt text sent to Gemini. Tier 3 cannot fail.
"""

import asyncio
import html
import re
import traceback
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import httpx
from yt_dlp import YoutubeDL

import config
from media_sources import InlineMedia

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"

_VIDEO_ID_RE = re.compile(r'^[A-Za-z0-9_-]{11}$')
_TITLE_RE = re.compile(r'<title>([^<]*)</title>', re.IGNORECASE)
_PATH_PREFIXES = ("/shorts/", "/embed/", "/live/", "/v/")

InfoProvider = Callable[[str], Dict[str, Any]]


@dataclass
class VideoMetadata:
    title: str = "Unknown Title"
    description: str = "No description available"
    channel: str = "Unknown Channel"
    publish_date: str = "Unknown Date"
    view_count: str = "Unknown"
    like_count: str = "Unknown"
    duration: str = "Unknown Duration"
    keywords: str = "None"
    category: str = "Unknown Category"
    is_live: str = "No"
    thumbnail_url: str = "No thumbnail"

    @property
    def has_thumbnail(self) -> bool:
        return self.thumbnail_url != "No thumbnail"

    @classmethod
    def from_info(cls, info: Dict[str, Any]) -> "VideoMetadata":
        """Build metadata from a yt-dlp info dict; every field falls back on its own."""
        meta = cls()
        if info.get("title"):
            meta.title = str(info["title"])
        if info.get("description"):
            meta.description = str(info["description"])
        channel = info.get("channel") or info.get("uploader")
        if channel:
            meta.channel = str(channel)
        if info.get("upload_date"):
            meta.publish_date = _format_upload_date(str(info["upload_date"]))
        if info.get("view_count") is not None:
            meta.view_count = str(info["view_count"])
        if info.get("like_count") is not None:
            meta.like_count = str(info["like_count"])
        if info.get("duration") is not None:
            meta.duration = f"{int(info['duration'])} seconds"
        if info.get("tags"):
            meta.keywords = ", ".join(str(tag) for tag in info["tags"])
        if info.get("categories"):
            meta.category = str(info["categories"][0])
        if info.get("is_live") or info.get("was_live"):
            meta.is_live = "Yes"
        thumbnails = info.get("thumbnails") or []
        if thumbnails and thumbnails[0].get("url"):
            meta.thumbnail_url = thumbnails[0]["url"]
        elif info.get("thumbnail"):
            meta.thumbnail_url = info["thumbnail"]
        return meta


@dataclass
class ResolvedPrompt:
    tier: str
    text: str
    image: Optional[InlineMedia] = None


def _format_upload_date(value: str) -> str:
    if len(value) == 8 and value.isdigit():
        return f"{value[:4]}-{value[4:6]}-{value[6:]}"
    return value


def extract_video_id(value: str) -> str:
    """Accept a bare ID or any of the usual YouTube URL shapes."""
    value = (value or "").strip()
    if not value or _VIDEO_ID_RE.match(value):
        return value

    parsed = urlparse(value if "://" in value else f"https://{value}")
    host = (parsed.hostname or "").lower()
    if host.endswith("youtu.be"):
        candidate = parsed.path.lstrip("/").split("/")[0]
        return candidate or value
    if host.endswith("youtube.com"):
        query_id = parse_qs(parsed.query).get("v")
        if query_id:
            return query_id[0]
        for prefix in _PATH_PREFIXES:
            if parsed.path.startswith(prefix):
                return parsed.path[len(prefix):].split("/")[0]
    return value


def fetch_video_info(video_id: str) -> Dict[str, Any]:
    """Blocking yt-dlp lookup, metadata only."""
    ydl_opts = {
        'quiet': True,
        'no_warnings': True,
        'skip_download': True,
        'http_headers': {
            'User-Agent': config.BROWSER_USER_AGENT,
            'Accept-Language': config.ACCEPT_LANGUAGE,
        },
    }
    with YoutubeDL(ydl_opts) as ydl:
        info = ydl.extract_info(WATCH_URL.format(video_id=video_id), download=False)
    if not info:
        raise ValueError(f"No video info returned for {video_id}")
    return info


async def fetch_thumbnail(url: str, client: httpx.AsyncClient) -> Optional[InlineMedia]:
    """Thumbnail download never fails the lookup; errors only cost us the image."""
    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPError as e:
        print(f"⚠️ Thumbnail fetch failed: {e}")
        return None
    mime_type = response.headers.get("content-type", "").split(";", 1)[0].strip()
    if not mime_type.startswith("image/"):
        mime_type = "image/jpeg"
    print("🖼️ Thumbnail retrieved")
    return InlineMedia(mime_type=mime_type, data=response.content)


def build_metadata_prompt(prompt: str, meta: VideoMetadata) -> str:
    return (
        f"{prompt}\n\n"
        f"Video Title: {meta.title}\n"
        f"Description: {meta.description}\n"
        f"Channel: {meta.channel}\n"
        f"Published: {meta.publish_date}\n"
        f"Category: {meta.category}\n"
        f"Keywords: {meta.keywords}\n"
        f"Duration: {meta.duration}\n"
        f"Views: {meta.view_count}\n"
        f"Likes: {meta.like_count}\n"
        f"Is Live Content: {meta.is_live}\n\n"
        "Please provide a detailed analysis of this YouTube video based on the metadata above. "
        "Consider the title, description, channel, category, and other details to infer what the "
        "video might be about. If possible, analyze the tone, target audience, and potential "
        "content of the video."
    )


def build_title_prompt(prompt: str, video_id: str, title: str) -> str:
    return (
        f"{prompt}\n\n"
        f"YouTube Video ID: {video_id}\n"
        f"Video Title: {title}\n"
        f"URL: {WATCH_URL.format(video_id=video_id)}\n\n"
        "Please provide an analysis of this YouTube video based on the limited information "
        "available. Consider what the title might suggest about the content and purpose of the video."
    )


def build_id_only_prompt(prompt: str, video_id: str) -> str:
    return (
        f"{prompt}\n\n"
        f"I'm analyzing YouTube video with ID: {video_id}.\n\n"
        "Please note that I cannot access the actual video content, but I can provide some general "
        "information about YouTube videos and what might be in this one based on the video ID."
    )


class YouTubeResolver:
    """Ordered fallback chain over the three resolution tiers."""

    def __init__(self, http_client: httpx.AsyncClient, info_provider: Optional[InfoProvider] = None):
        self.http_client = http_client
        self.info_provider = info_provider or fetch_video_info

    @property
    def tiers(self) -> List[Callable[[str, str], Awaitable[ResolvedPrompt]]]:
        return [self.structured_lookup, self.watch_page_scrape, self.id_only]

    async def structured_lookup(self, video_id: str, prompt: str) -> ResolvedPrompt:
        info = await asyncio.to_thread(self.info_provider, video_id)
        meta = VideoMetadata.from_info(info)
        print(f"📺 Video details extracted: {meta.title}")

        image = None
        if meta.has_thumbnail:
            image = await fetch_thumbnail(meta.thumbnail_url, self.http_client)

        return ResolvedPrompt(tier="structured", text=build_metadata_prompt(prompt, meta), image=image)

    async def watch_page_scrape(self, video_id: str, prompt: str) -> ResolvedPrompt:
        response = await self.http_client.get(WATCH_URL.format(video_id=video_id))
        response.raise_for_status()

        title = "Unknown Title"
        match = _TITLE_RE.search(response.text)
        if match and match.group(1).strip():
            title = html.unescape(match.group(1)).replace(" - YouTube", "").strip()
        print(f"📄 Basic video info retrieved: {title}")

        return ResolvedPrompt(tier="watch_page", text=build_title_prompt(prompt, video_id, title))

    async def id_only(self, video_id: str, prompt: str) -> ResolvedPrompt:
        return ResolvedPrompt(tier="id_only", text=build_id_only_prompt(prompt, video_id))

    async def resolve(self, video_id: str, prompt: str) -> ResolvedPrompt:
        *fallible, last_resort = self.tiers
        for tier in fallible:
            try:
                print(f"🔎 Resolving {video_id} via {tier.__name__}...")
                return await tier(video_id, prompt)
            except Exception as e:
                print(f"⚠️ {tier.__name__} failed for {video_id}: {e}\n{traceback.format_exc()}")
        print(f"🔎 Falling back to {last_resort.__name__} for {video_id}")
        return await last_resort(video_id, prompt)
