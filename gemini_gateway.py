"""
Single-call gateway to Gemini generate_content plus upstream error mapping.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from google import genai
from google.genai import errors as genai_errors

import config
from markdown_format import format_as_markdown

UNEXPECTED_FORMAT_TEXT = "Unexpected response format from Gemini API"

client = None


class GatewayError(Exception):
    """Upstream failure already translated into the response we send back."""

    def __init__(self, status_code: int, payload: Dict[str, Any]):
        super().__init__(payload.get("error"))
        self.status_code = status_code
        self.payload = payload


@dataclass(frozen=True)
class UpstreamErrorRule:
    upstream_status: int
    response_status: int
    error: str
    message: str
    body_pattern: Optional[str] = None

    def matches(self, status: int, body_text: str) -> bool:
        if status != self.upstream_status:
            return False
        if self.body_pattern is None:
            return True
        return self.body_pattern.lower() in body_text.lower()


@dataclass(frozen=True)
class UpstreamErrorRules:
    version: str
    rules: List[UpstreamErrorRule]

    def match(self, status: int, body_text: str) -> Optional[UpstreamErrorRule]:
        for rule in self.rules:
            if rule.matches(status, body_text):
                return rule
        return None


DEFAULT_ERROR_RULES = UpstreamErrorRules(
    version="2025-04",
    rules=[
        UpstreamErrorRule(
            upstream_status=503,
            body_pattern="overloaded",
            response_status=503,
            error="The Gemini model is currently overloaded with requests. This is a temporary issue.",
            message=(
                "Please try again in a few minutes. This is a common issue with popular AI models "
                "during peak usage times."
            ),
        ),
        UpstreamErrorRule(
            upstream_status=429,
            response_status=429,
            error="API quota exceeded. The Gemini API has rate limits for free usage.",
            message="Please try again later or consider upgrading to a paid tier for higher quotas.",
        ),
    ],
)


def load_error_rules(path: Optional[str]) -> UpstreamErrorRules:
    """
    Load the rule table from a JSON file shaped like
    {"version": "...", "rules": [{"upstream_status": 503, "body_pattern": "...", ...}]}.
    Without a path the built-in table is used.
    """
    if not path:
        return DEFAULT_ERROR_RULES
    with open(path, encoding="utf-8") as fh:
        raw = json.load(fh)
    rules = [UpstreamErrorRule(**entry) for entry in raw.get("rules", [])]
    return UpstreamErrorRules(version=str(raw.get("version", "custom")), rules=rules)


error_rules = load_error_rules(config.UPSTREAM_ERROR_RULES_FILE)


def _body_text(body: Any) -> str:
    if isinstance(body, str):
        return body
    try:
        return json.dumps(body)
    except (TypeError, ValueError):
        return str(body)


def classify_upstream_error(status: Optional[int], body: Any,
                            rules: Optional[UpstreamErrorRules] = None) -> GatewayError:
    rules = rules or error_rules
    status = status or 500
    rule = rules.match(status, _body_text(body))
    if rule:
        return GatewayError(rule.response_status, {
            "error": rule.error,
            "message": rule.message,
            "originalError": body,
        })
    # Unclassified: pass the upstream status through when it is an error status
    response_status = status if 400 <= status < 600 else 500
    return GatewayError(response_status, {"error": body})


def get_client():
    global client
    if client is None:
        if not config.GEMINI_API_KEY:
            raise HTTPException(status_code=500, detail="GEMINI_API_KEY not set")
        client = genai.Client(api_key=config.GEMINI_API_KEY)
    return client


async def generate_content(contents: Any, generation_config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Send one request and return the response in the REST JSON shape."""
    cli = get_client()
    print(f"🤖 Calling Gemini ({config.GEMINI_MODEL})...")

    try:
        response = await asyncio.to_thread(
            cli.models.generate_content,
            model=config.GEMINI_MODEL,
            contents=contents,
            config=generation_config,
        )
    except genai_errors.APIError as e:
        body = e.details if e.details is not None else e.message
        print(f"❌ Gemini returned {e.code}: {e.message}")
        raise classify_upstream_error(e.code, body) from e

    print("✅ Received response from Gemini")
    # Upstream HTTP headers stay server side
    return response.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"sdk_http_response"})


def _first_part(response: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    try:
        part = response["candidates"][0]["content"]["parts"][0]
    except (KeyError, IndexError, TypeError):
        return None
    return part if isinstance(part, dict) else None


def extract_text(response: Dict[str, Any]) -> str:
    part = _first_part(response)
    if part is None or not isinstance(part.get("text"), str):
        return UNEXPECTED_FORMAT_TEXT
    return part["text"]


def reshape_response(response: Dict[str, Any]) -> Dict[str, Any]:
    """Rewrite the first text part as Markdown in place when it has none."""
    part = _first_part(response)
    if part is not None and isinstance(part.get("text"), str) and part["text"]:
        part["text"] = format_as_markdown(part["text"])
    return response
