"""
Gemini Media Proxy
Routes uploaded media, remote videos, YouTube IDs and chat payloads to Gemini
and hands the model's response back to the browser.
"""

import errno
import socket
import traceback
from typing import Any, Dict, List, Optional, Union

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
import gemini_gateway
from gemini_gateway import GatewayError
from http_client import build_async_client
from media_sources import MediaRequest, SourceKind, fetch_remote_video, read_upload
from youtube_resolver import YouTubeResolver, extract_video_id

app = FastAPI(title="Gemini Media Proxy", description="Multimodal media analysis proxy for Gemini")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Shared outbound HTTP client
http_client = None


def get_http_client():
    global http_client
    if http_client is None:
        http_client = build_async_client()
    return http_client


@app.on_event("startup")
async def startup_event():
    get_http_client()
    if config.GEMINI_API_KEY:
        gemini_gateway.get_client()


@app.on_event("shutdown")
async def shutdown_event():
    global http_client
    if http_client is not None:
        await http_client.aclose()
        http_client = None


# Error rendering: every error body is a JSON object with an "error" key

@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.payload))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request format", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    print(f"Unhandled error on {request.url.path}: {exc}\n{traceback.format_exc()}")
    return JSONResponse(status_code=500, content={"error": str(exc)})


# Request/Response Models
class StatusResponse(BaseModel):
    status: str
    message: str


class GeminiTextRequest(BaseModel):
    contents: Union[List[Any], Dict[str, Any], str]
    generationConfig: Optional[Dict[str, Any]] = None


async def read_payload(request: Request) -> Dict[str, Any]:
    """Routes that take a URL or an ID accept either JSON or form bodies."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            data = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid JSON body")
        return data if isinstance(data, dict) else {}
    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


def text_field(payload: Dict[str, Any], name: str) -> str:
    """Optional string field from a JSON or form payload; other types are a 400."""
    value = payload.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise HTTPException(status_code=400, detail=f"{name} must be a string")
    return value.strip()


async def build_parts(media_request: MediaRequest) -> List[Any]:
    """Ordered message parts: prompt text first, then the inline media if any."""
    if media_request.source_kind == SourceKind.YOUTUBE_ID:
        resolved = await YouTubeResolver(get_http_client()).resolve(media_request.video_id, media_request.prompt)
        print(f"📺 YouTube prompt built from tier: {resolved.tier}")
        parts: List[Any] = [resolved.text]
        if resolved.image is not None:
            parts.append(resolved.image.to_part())
        return parts

    media = media_request.media
    if media_request.source_kind == SourceKind.REMOTE_URL:
        media = await fetch_remote_video(media_request.url, get_http_client())

    parts = [media_request.prompt]
    if media is not None:
        parts.append(media.to_part())
    return parts


async def call_gateway(contents: Any, generation_config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    try:
        return await gemini_gateway.generate_content(contents, generation_config)
    except (HTTPException, GatewayError):
        raise
    except ValidationError as e:
        raise HTTPException(status_code=400, detail={"error": "Invalid request format", "details": str(e)})
    except Exception as e:
        print(f"Gemini call failed: {e}\n{traceback.format_exc()}")
        raise HTTPException(status_code=500, detail=str(e))


async def analyze(media_request: MediaRequest, reshape: Optional[bool] = None) -> Dict[str, Any]:
    if reshape is None:
        reshape = config.MARKDOWN_RESHAPE

    try:
        parts = await build_parts(media_request)
    except HTTPException:
        raise
    except Exception as e:
        print(f"Preparing {media_request.source_kind.value} request failed: {e}\n{traceback.format_exc()}")
        raise HTTPException(status_code=500, detail=str(e))

    response = await call_gateway(parts, dict(config.MEDIA_GENERATION_CONFIG))
    if gemini_gateway.extract_text(response) == gemini_gateway.UNEXPECTED_FORMAT_TEXT:
        print(f"⚠️ Gemini returned no text part for {media_request.source_kind.value} request")
    if reshape:
        gemini_gateway.reshape_response(response)
    return response


# Endpoints

@app.get("/test", response_model=StatusResponse)
async def test():
    print("Test endpoint called")
    return StatusResponse(status="ok", message="Server is running")


@app.get("/api/health", response_model=StatusResponse)
async def health():
    return StatusResponse(status="ok", message="Media proxy is running")


@app.get("/test-gemini")
async def test_gemini():
    print("Testing Gemini API connection...")
    try:
        response = await analyze(MediaRequest(SourceKind.TEXT_ONLY, config.HEALTH_CHECK_PROMPT), reshape=False)
    except GatewayError as e:
        error: Any = e.payload
    except HTTPException as e:
        error = e.detail
    except Exception as e:
        print(f"Gemini API test failed: {e}\n{traceback.format_exc()}")
        error = str(e)
    else:
        return {
            "status": "success",
            "message": "Gemini API is working correctly",
            "text": gemini_gateway.extract_text(response),
            "response": response,
        }

    return JSONResponse(
        status_code=500,
        content=jsonable_encoder({"status": "error", "message": "Gemini API test failed", "error": error}),
    )


@app.post("/process-video")
async def process_video(video: Optional[UploadFile] = File(None), prompt: Optional[str] = Form(None)):
    if video is None:
        raise HTTPException(status_code=400, detail="No video file provided")

    media = await read_upload(video)
    prompt = prompt or config.DEFAULT_VIDEO_PROMPT
    print(f"🎬 Processing video file: {video.filename}, prompt: {prompt}")
    return await analyze(MediaRequest(SourceKind.FILE, prompt, media=media))


@app.post("/process-video-url")
async def process_video_url(request: Request):
    payload = await read_payload(request)
    video_url = text_field(payload, "videoUrl")
    if not video_url:
        raise HTTPException(status_code=400, detail="No video URL provided")

    prompt = text_field(payload, "prompt") or config.DEFAULT_VIDEO_URL_PROMPT
    print(f"🌐 Processing video URL: {video_url}, prompt: {prompt}")
    return await analyze(MediaRequest(SourceKind.REMOTE_URL, prompt, url=video_url))


@app.post("/process-audio")
async def process_audio(audio: Optional[UploadFile] = File(None), prompt: Optional[str] = Form(None)):
    if audio is None:
        raise HTTPException(status_code=400, detail="No audio file provided")

    media = await read_upload(audio)
    prompt = prompt or config.DEFAULT_AUDIO_PROMPT
    print(f"🎙️ Processing audio file: {audio.filename}, prompt: {prompt}")
    return await analyze(MediaRequest(SourceKind.FILE, prompt, media=media))


@app.post("/process-youtube")
async def process_youtube(request: Request):
    payload = await read_payload(request)
    video_id = extract_video_id(text_field(payload, "videoId"))
    if not video_id:
        raise HTTPException(status_code=400, detail="No YouTube video ID provided")

    prompt = text_field(payload, "prompt") or config.DEFAULT_YOUTUBE_PROMPT
    print(f"📺 Processing YouTube video ID: {video_id}")
    return await analyze(MediaRequest(SourceKind.YOUTUBE_ID, prompt, video_id=video_id))


@app.post("/gemini-text")
async def gemini_text(request: GeminiTextRequest):
    if not request.contents:
        raise HTTPException(status_code=400, detail="Invalid request format")

    print("💬 Processing text query with Gemini...")
    return await call_gateway(request.contents, request.generationConfig)


def find_available_port(host: str, port: int, attempts: int) -> int:
    """First port at or above `port` that can be bound, trying `attempts` ports."""
    for candidate in range(port, port + max(attempts, 1)):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            # Match uvicorn, which can reuse ports left in TIME_WAIT
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            try:
                sock.bind((host, candidate))
            except OSError as e:
                if e.errno != errno.EADDRINUSE:
                    raise
                print(f"Port {candidate} is already in use. Trying port {candidate + 1}...")
                continue
        return candidate
    raise RuntimeError(f"No free port between {port} and {port + attempts - 1}")


def run():
    import uvicorn

    port = find_available_port(config.HOST, config.PORT, config.PORT_FALLBACK_ATTEMPTS)
    print(f"🚀 Media proxy running on port {port}")
    print(f"   Test the server by visiting: http://localhost:{port}/test")
    uvicorn.run(app, host=config.HOST, port=port)


if __name__ == "__main__":
    run()
