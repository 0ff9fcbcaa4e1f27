"""
catalog_scanner.py — Extract products from a catalog page image.

One call to an OpenAI-compatible chat completions endpoint with the image
URL and a fixed prompt. The reply's outermost {...} block is parsed and
validated against CatalogScanResult. Anything short of a valid result
raises EXTERNAL_SERVICE_ERROR; nothing partial is returned.

Admin-only: used to pre-fill bulk product uploads.
"""

import re
import json
import logging
from typing import List, Optional

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from supplyhub.core.errors import ServiceError, external
from supplyhub.core.identity import Identity, require_admin
from supplyhub.core.secrets import get_key, mask

log = logging.getLogger("supplyhub.scanner")

MAX_TOKENS = 4096
TEMPERATURE = 0.2
TIMEOUT = 60

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

SCAN_PROMPT = """You are a medical equipment catalog scanner. Analyze this catalog page and extract ALL products visible.

For each product, provide:
- name: Full product name
- description: Detailed description (2-3 sentences)
- category: Medical equipment category (e.g., "Diagnostic Equipment", "Laboratory Equipment", "Surgical Instruments")
- specifications: Technical specifications and features
- price: Price if visible (number only, no currency)
- sku: Product code/SKU if visible
- brand: Brand/manufacturer if visible
- image: Set to "catalog" if product has an image

Return ONLY a valid JSON object with this structure:
{
  "products": [
    {
      "name": "Product Name",
      "description": "Description here",
      "category": "Category Name",
      "specifications": "Specs here",
      "price": 0,
      "sku": "SKU123",
      "brand": "Brand Name",
      "image": "catalog"
    }
  ]
}

Extract ALL products you can see. Be thorough. If a product doesn't have all fields, omit the missing ones."""


class ScannedProduct(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = Field(..., min_length=1)
    description: str
    category: str
    specifications: str
    price: Optional[float] = Field(None, ge=0)
    sku: Optional[str] = None
    brand: Optional[str] = None
    image: Optional[str] = None


class CatalogScanResult(BaseModel):
    products: List[ScannedProduct]


def build_messages(image_url: str, context: str = None) -> list:
    prompt = SCAN_PROMPT
    if context:
        prompt += f"\n\nAdditional context from the uploader: {context}"
    return [{
        "role": "user",
        "content": [
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": image_url, "detail": "high"}},
        ],
    }]


def parse_scan_reply(content: str) -> dict:
    """Validate the model's text reply. Returns {"products": [...]} or raises EXTERNAL_SERVICE_ERROR."""
    if not content:
        raise external("No response from AI")
    match = _JSON_BLOCK.search(content)
    if not match:
        raise external("Could not parse AI response. The image may not contain clear product information.")
    try:
        result = CatalogScanResult.model_validate(json.loads(match.group(0)))
    except json.JSONDecodeError as e:
        raise external(f"AI response was not valid JSON: {e}") from e
    except ValidationError as e:
        log.warning("Scan reply failed schema validation: %s", e)
        raise external(f"AI response did not match the product schema ({e.error_count()} errors)") from e
    return result.model_dump(exclude_unset=True)


def scan_catalog_image(identity: Identity | None, image_url: str, context: str = None,
                       timeout: float = TIMEOUT) -> dict:
    """Admin uploads a catalog page; returns {"products": [...]} extracted by the vision model."""
    require_admin(identity, "Only admins can scan catalogs")
    if not (image_url or "").strip():
        raise external("No image URL supplied")

    api_key = get_key("openai")
    if not api_key:
        raise external("OpenAI API key not configured. Please add OPENAI_API_KEY to environment variables.")

    try:
        resp = requests.post(
            f"{get_key('openai_base_url').rstrip('/')}/chat/completions",
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            json={
                "model": get_key("openai_model"),
                "messages": build_messages(image_url, context),
                "max_tokens": MAX_TOKENS,
                "temperature": TEMPERATURE,
            },
            timeout=timeout,
        )
        resp.raise_for_status()
        data = resp.json()
        content = data["choices"][0]["message"]["content"]
    except requests.RequestException as e:
        log.error("OpenAI API error (key %s): %s", mask(api_key), e)
        raise external(f"Failed to scan catalog: {e}") from e
    except (ValueError, KeyError, IndexError, TypeError) as e:
        log.error("Unexpected OpenAI response shape: %s", e)
        raise external(f"Failed to scan catalog: unexpected response ({e})") from e

    try:
        result = parse_scan_reply(content)
    except ServiceError:
        log.warning("Catalog scan of %s rejected", image_url)
        raise
    log.info("Catalog scan of %s: %d products", image_url, len(result["products"]))
    return result
