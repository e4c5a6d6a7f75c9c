"""
Protocol-agnostic image locator.

Proxies implementing the "same" protocol route image bytes through different
JSON shapes, or wrap them in assistant prose. extract_image() applies a fixed,
ordered list of pure rules to a decoded body (dict/list) or raw text and
returns the first match, or None when nothing looks like an image.
"""
import re
from typing import Any, Callable, Iterator

from visionlab.services.image_generation.base import (
    DEFAULT_RESULT_MIME,
    ImagePayload,
)

# Terminates at whitespace, quotes or a closing parenthesis (markdown image links)
DATA_URI_PATTERN = re.compile(r"data:image/[\w.+-]+;base64,[^\s\"')]+")
# The extension (plus optional query) must end the URL; trailing sentence punctuation is dropped
IMAGE_URL_PATTERN = re.compile(
    r"https?://[^\s\"')<>]+\.(?:jpe?g|png|webp|gif)(?:\?[^\s\"')<>]*)?"
    r"(?=[\s\"')<>,.;!]*(?:[\s\"')<>]|$))",
    re.IGNORECASE,
)
URL_FIELDS = ("url", "image_url")

ExtractionRule = Callable[[Any], ImagePayload | None]


def _iter_strings(value: Any) -> Iterator[str]:
    """Depth-first walk over every string in a decoded JSON value."""
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from _iter_strings(item)
    elif isinstance(value, list):
        for item in value:
            yield from _iter_strings(item)


def _first_data_item(payload: Any) -> dict | None:
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if isinstance(data, list) and data and isinstance(data[0], dict):
        return data[0]
    return None


def _is_http_url(value: Any) -> bool:
    return isinstance(value, str) and value.strip().lower().startswith(("http://", "https://"))


def inline_bytes_rule(payload: Any) -> ImagePayload | None:
    """Native candidates -> content -> parts -> inlineData, or image-endpoint data[0].b64_json."""
    if not isinstance(payload, dict):
        return None

    candidates = payload.get("candidates")
    if isinstance(candidates, list):
        for candidate in candidates:
            if not isinstance(candidate, dict):
                continue
            content = candidate.get("content") or {}
            parts = content.get("parts") if isinstance(content, dict) else None
            for part in parts or []:
                if not isinstance(part, dict):
                    continue
                inline = part.get("inlineData") or part.get("inline_data")
                if isinstance(inline, dict) and isinstance(inline.get("data"), str) and inline["data"]:
                    mime = inline.get("mimeType") or inline.get("mime_type") or DEFAULT_RESULT_MIME
                    return ImagePayload(mime_type=mime, data=inline["data"])

    item = _first_data_item(payload)
    if item is not None:
        b64 = item.get("b64_json")
        if isinstance(b64, str) and b64:
            if b64.startswith("data:") and ";base64," in b64:
                return ImagePayload.from_data_uri(b64)
            return ImagePayload(mime_type=DEFAULT_RESULT_MIME, data=b64)
    return None


def data_uri_text_rule(payload: Any) -> ImagePayload | None:
    """A literal data:image/...;base64,... anywhere inside any text field."""
    for text in _iter_strings(payload):
        match = DATA_URI_PATTERN.search(text)
        if match:
            return ImagePayload.from_data_uri(match.group(0))
    return None


def image_url_text_rule(payload: Any) -> ImagePayload | None:
    """A literal http(s) URL ending in a common image extension inside any text field."""
    for text in _iter_strings(payload):
        match = IMAGE_URL_PATTERN.search(text)
        if match:
            return ImagePayload.from_url(match.group(0))
    return None


def url_field_rule(payload: Any) -> ImagePayload | None:
    """A direct URL field: top-level url/image_url, or data[0].url."""
    if not isinstance(payload, dict):
        return None
    for key in URL_FIELDS:
        if _is_http_url(payload.get(key)):
            return ImagePayload.from_url(payload[key])
    item = _first_data_item(payload)
    if item is not None and _is_http_url(item.get("url")):
        return ImagePayload.from_url(item["url"])
    return None


# Priority order; first rule returning a payload wins
EXTRACTION_RULES: tuple[ExtractionRule, ...] = (
    inline_bytes_rule,
    data_uri_text_rule,
    image_url_text_rule,
    url_field_rule,
)


def extract_image(payload: Any) -> ImagePayload | None:
    """Return the first image found in an upstream body, or None (NotFound)."""
    if payload is None:
        return None
    for rule in EXTRACTION_RULES:
        found = rule(payload)
        if found is not None:
            return found
    return None


def extract_text(payload: Any) -> str:
    """Concatenated text parts of a native or chat response (for error messages)."""
    texts: list[str] = []
    if isinstance(payload, dict):
        for candidate in payload.get("candidates") or []:
            content = candidate.get("content") if isinstance(candidate, dict) else None
            for part in (content.get("parts") if isinstance(content, dict) else None) or []:
                if isinstance(part, dict) and isinstance(part.get("text"), str):
                    texts.append(part["text"])
        for choice in payload.get("choices") or []:
            message = choice.get("message") if isinstance(choice, dict) else None
            if isinstance(message, dict) and isinstance(message.get("content"), str):
                texts.append(message["content"])
    elif isinstance(payload, str):
        texts.append(payload)
    return " ".join(t.strip() for t in texts if t.strip())
