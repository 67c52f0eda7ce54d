"""
Runtime configuration for the media proxy, read once from the environment.
A local .env file is honoured for development.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Gemini
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("REACT_APP_GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

# Size limits
MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB
MAX_REMOTE_FETCH_SIZE = int(os.getenv("MAX_REMOTE_FETCH_MB", "50")) * 1024 * 1024
UPLOAD_CHUNK_SIZE = 8192

# Outbound HTTP (remote videos, thumbnails, watch pages)
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))
BROWSER_USER_AGENT = os.getenv(
    "BROWSER_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
)
ACCEPT_LANGUAGE = "en-US,en;q=0.9"

# Response handling
MARKDOWN_RESHAPE = _env_bool("MARKDOWN_RESHAPE", True)
UPSTREAM_ERROR_RULES_FILE = os.getenv("UPSTREAM_ERROR_RULES_FILE")

# Server
CORS_ALLOW_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if origin.strip()]
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3030"))
PORT_FALLBACK_ATTEMPTS = int(os.getenv("PORT_FALLBACK_ATTEMPTS", "10"))

# Default prompts per route
DEFAULT_VIDEO_PROMPT = (
    "Analyze this video. Identify key frames, objects, people, and provide a scene "
    "classification. Transcribe any speech."
)
DEFAULT_VIDEO_URL_PROMPT = "Analyze this video"
DEFAULT_AUDIO_PROMPT = "Transcribe this audio. Identify the speaker and any background noises."
DEFAULT_YOUTUBE_PROMPT = "Analyze this YouTube video"
HEALTH_CHECK_PROMPT = "Say hello and confirm that you are working correctly."

# Media routes ask for plain text so the Markdown reshaper has something to work on
MEDIA_GENERATION_CONFIG = {"response_mime_type": "text/plain"}
