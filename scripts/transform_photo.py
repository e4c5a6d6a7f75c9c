#!/usr/bin/env python3
"""
Transform a photo with the configured provider and save the result.
Run from the project root: python -m scripts.transform_photo photo.jpg "oil painting" -o out.png
Provider settings: --settings settings.json ({useCustomProvider, apiKey, baseUrl, selectedModel})
or the individual flags; without either the managed provider is used.
"""
import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

import httpx

# project root on PYTHONPATH
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from visionlab.core.config import settings
from visionlab.core.logging import configure_logging
from visionlab.schemas.provider import ProviderConfig
from visionlab.services.image_generation import (
    CredentialRequiredError,
    GenerationClient,
    ImageGenerationError,
    ImagePayload,
)

MIME_BY_SUFFIX = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
}


def _build_config(args: argparse.Namespace) -> ProviderConfig:
    if args.settings:
        data = json.loads(Path(args.settings).read_text())
        return ProviderConfig.model_validate(data)
    defaults = ProviderConfig.defaults(settings)
    return ProviderConfig(
        use_custom_provider=bool(args.api_key),
        api_key=args.api_key or "",
        base_url=args.base_url or defaults.base_url,
        selected_model=args.model or defaults.selected_model,
    )


async def _save(image: ImagePayload, output: Path) -> None:
    if image.is_inline:
        output.write_bytes(image.decode())
        return
    async with httpx.AsyncClient(timeout=settings.attempt_timeout_seconds) as client:
        resp = await client.get(image.url)
        resp.raise_for_status()
        output.write_bytes(resp.content)


async def run(args: argparse.Namespace) -> int:
    source = Path(args.image)
    mime = MIME_BY_SUFFIX.get(source.suffix.lower(), "image/jpeg")
    payload = ImagePayload.from_bytes(source.read_bytes(), mime)

    client = GenerationClient(settings)
    try:
        result = await client.transform_image(payload, args.prompt, _build_config(args))
    except CredentialRequiredError as e:
        print(f"Select a paid API key: {e}", file=sys.stderr)
        return 2
    except ImageGenerationError as e:
        print(f"Generation failed: {e}", file=sys.stderr)
        return 1

    output = Path(args.output)
    await _save(result, output)
    print(f"Saved: {output}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="AI style transformation of a photo")
    parser.add_argument("image", help="Source photo")
    parser.add_argument("prompt", nargs="?", default="", help="Style prompt (empty = default)")
    parser.add_argument("-o", "--output", default="transformed.png")
    parser.add_argument("--settings", help="JSON file with provider settings")
    parser.add_argument("--api-key", help="Custom provider API key (enables custom provider)")
    parser.add_argument("--base-url", help="Custom provider base URL")
    parser.add_argument("--model", help="Model identifier")
    args = parser.parse_args()

    configure_logging(settings)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
