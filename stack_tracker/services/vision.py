"""Receipt and stack-photo field extraction using the Anthropic Messages API.

Images stay in memory for the duration of one request and are never logged.
"""
from __future__ import annotations

import base64
import json

import anthropic
import structlog

log = structlog.get_logger()

ALLOWED_MEDIA_TYPES = ("image/jpeg", "image/png", "image/webp", "image/heic")

RECEIPT_PROMPT = """\
Analyze this precious metals purchase receipt or screenshot and extract the \
following data. Return ONLY a JSON object with these fields (use null for any \
field you cannot determine):

{
  "productName": "Full product name (e.g., '2023 American Silver Eagle 1 oz BU')",
  "source": "Dealer name (e.g., 'APMEX', 'JM Bullion', 'SD Bullion')",
  "datePurchased": "Date in YYYY-MM-DD format",
  "metal": "silver" or "gold",
  "ozt": "Troy ounces per unit as a number",
  "quantity": "Number of items as an integer",
  "unitPrice": "Price per unit as a number (no $ symbol)",
  "taxes": "Tax amount as a number (0 if none)",
  "shipping": "Shipping cost as a number (0 if none)",
  "spotPrice": "Spot price at time of purchase if shown, otherwise null",
  "orderNumber": "Order/invoice number if visible",
  "notes": "Any handwritten notes or relevant details"
}

Rules:
- Receipts, packing slips, order confirmations and screenshots are all valid input.
- Read handwritten notes if present.
- For stack photos (not receipts), identify the coins/bars and estimate quantities.
- Return ONLY valid JSON, no additional text.
"""

STACK_PROMPT = """\
Analyze this photo of precious metals (coins, bars, rounds) and identify what \
you see. Return ONLY a JSON object:

{
  "items": [
    {
      "productName": "Identified product (e.g., 'American Silver Eagle')",
      "metal": "silver" or "gold",
      "ozt": "Troy ounces per piece",
      "estimatedCount": "How many you can see/count",
      "confidence": "high", "medium", or "low",
      "notes": "Any identifying features (year, mint mark, condition)"
    }
  ],
  "totalSilverOzt": "Estimated total silver troy ounces",
  "totalGoldOzt": "Estimated total gold troy ounces",
  "analysisNotes": "General observations about the stack"
}

Be conservative with counts - only count what you can clearly see.
"""


class VisionError(Exception):
    pass


def strip_code_fences(text: str) -> str:
    out = text.strip()
    if out.startswith("```json"):
        out = out[7:]
    elif out.startswith("```"):
        out = out[3:]
    if out.endswith("```"):
        out = out[:-3]
    return out.strip()


def parse_model_json(text: str) -> dict:
    try:
        data = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as e:
        raise VisionError("model returned invalid JSON") from e
    if not isinstance(data, dict):
        raise VisionError("model returned a non-object JSON value")
    return data


class VisionExtractor:
    def __init__(self, api_key: str | None, model: str = "claude-sonnet-4-20250514", client: anthropic.AsyncAnthropic | None = None):
        self.model = model
        self.client = client
        if self.client is None and api_key:
            self.client = anthropic.AsyncAnthropic(api_key=api_key)

    async def _ask(self, image: bytes, media_type: str, prompt: str, max_tokens: int, kind: str) -> dict:
        if self.client is None:
            log.error("vision_not_configured", kind=kind)
            raise VisionError("vision API key not configured")
        if media_type not in ALLOWED_MEDIA_TYPES:
            raise VisionError(f"unsupported media type {media_type}")
        try:
            message = await self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "image",
                                "source": {
                                    "type": "base64",
                                    "media_type": media_type,
                                    "data": base64.b64encode(image).decode("ascii"),
                                },
                            },
                            {"type": "text", "text": prompt},
                        ],
                    }
                ],
            )
        except anthropic.APIError as e:
            log.error("vision_api_error", kind=kind, error_type=type(e).__name__)
            raise VisionError("vision API request failed") from e

        block = message.content[0] if message.content else None
        if block is None or getattr(block, "type", None) != "text":
            log.error("vision_unexpected_content", kind=kind)
            raise VisionError("unexpected response format")
        try:
            return parse_model_json(block.text)
        except VisionError:
            log.error("vision_parse_failed", kind=kind)
            raise

    async def scan_receipt(self, image: bytes, media_type: str) -> dict:
        return await self._ask(image, media_type, RECEIPT_PROMPT, 1024, "receipt")

    async def analyze_stack(self, image: bytes, media_type: str) -> dict:
        return await self._ask(image, media_type, STACK_PROMPT, 2048, "stack")
