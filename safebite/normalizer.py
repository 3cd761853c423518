# safebite/normalizer.py
"""
Turns whatever the model sent back into a fully-defaulted analysis result.

The pipeline never raises: every field of the returned dict is present and
type-correct, and only ``error``/``message`` tell the caller that the model
output could not be used as-is.
"""
import copy
import json
import re
import traceback
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from .schemas import BRAND_SCHEMA, ResultSchema

DEFAULT_REASON = "AI parsing/validation failed"
NO_TEXT_REASON = "No candidate text found"
NO_JSON_REASON = "No JSON object found in model output"

FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def _get(obj, *keys):
    # SDKs disagree on camelCase vs snake_case, so callers pass both spellings
    if not isinstance(obj, dict):
        return None
    for key in keys:
        if obj.get(key) is not None:
            return obj[key]
    return None


def _as_response(response) -> dict:
    if response is None:
        return {}
    if isinstance(response, str):
        return {"candidates": [{"content": {"parts": [{"text": response}]}}]}
    if isinstance(response, dict):
        return response
    if hasattr(response, "model_dump"):
        return response.model_dump()
    if hasattr(response, "to_dict"):
        return response.to_dict()
    return {}


def _first_candidate(response: dict):
    candidates = _get(response, "candidates", "choices")
    if isinstance(candidates, list) and candidates:
        return candidates[0]
    return None


def _content_elements(candidate) -> list:
    content = _get(candidate, "content")
    if isinstance(content, list):
        return content
    parts = _get(content, "parts")
    return parts if isinstance(parts, list) else []


def _looks_like(item: dict, markers) -> bool:
    return any(key in item for key in markers)


# --- Text extraction ---

def _text_from_parts(candidate):
    parts = _get(_get(candidate, "content"), "parts")
    if isinstance(parts, list) and parts:
        return _get(parts[0], "text")
    return None


def _text_from_content_list(candidate):
    content = _get(candidate, "content")
    if isinstance(content, list) and content:
        return _get(content[0], "text")
    return None


def _text_from_message(candidate):
    content = _get(_get(candidate, "message"), "content")
    if isinstance(content, list) and content:
        return _get(content[0], "text")
    return content


def _serialized_part(candidate):
    elements = _content_elements(candidate)
    if elements and isinstance(elements[0], dict) and "text" not in elements[0]:
        return json.dumps(elements[0], default=str)
    return None


def _serialized_candidate(candidate):
    return json.dumps(candidate, default=str)


# Tried in order; the first non-empty string wins
TEXT_EXTRACTORS = (
    _text_from_parts,
    _text_from_content_list,
    _text_from_message,
    _serialized_part,
    _serialized_candidate,
)


def extract_text(candidate) -> Optional[str]:
    if candidate is None:
        return None
    for extractor in TEXT_EXTRACTORS:
        text = extractor(candidate)
        if isinstance(text, str) and text.strip():
            return text
    return None


def strip_fences(text: str) -> str:
    return FENCE_RE.sub("", text).strip()


def detect_block_reason(response: dict, candidate) -> Optional[str]:
    feedback = _get(response, "promptFeedback", "prompt_feedback")
    block_reason = _get(feedback, "blockReason", "block_reason")
    if block_reason:
        return f"Response blocked by promptFeedback: {block_reason}"
    ratings = _get(feedback, "safetyRatings", "safety_ratings")
    if ratings:
        categories = ", ".join(str(_get(r, "category") or r) for r in ratings)
        return f"promptFeedback safety ratings: {categories}"
    finish_reason = _get(candidate, "finishReason", "finish_reason")
    if finish_reason and str(finish_reason).upper() != "STOP":
        return f"Generation stopped early: finishReason={finish_reason}"
    return None


# --- Structured parse ---

def _parse_direct(text: str):
    if text.startswith(("{", "[")):
        return json.loads(text)
    return None


def _parse_embedded(text: str):
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return json.loads(text[start:end + 1])
    return None


PARSERS = (_parse_direct, _parse_embedded)


def _as_payload(parsed, schema: ResultSchema) -> Optional[dict]:
    if isinstance(parsed, dict):
        return parsed
    if isinstance(parsed, list):
        objects = [item for item in parsed if isinstance(item, dict)]
        for item in objects:
            if _looks_like(item, schema.markers):
                return item
        return objects[0] if objects else None
    return None


def parse_payload(text: str, schema: ResultSchema = BRAND_SCHEMA) -> Tuple[Optional[dict], Optional[str]]:
    """Returns ``(payload, reason)``; ``reason`` is only set when nothing parsed."""
    reason = None
    for parser in PARSERS:
        try:
            payload = _as_payload(parser(text), schema)
        except ValueError as e:
            reason = reason or f"AI returned malformed JSON: {e}"
            continue
        if payload is not None:
            return payload, None
    return None, reason or NO_JSON_REASON


def structural_fallback(candidate, schema: ResultSchema = BRAND_SCHEMA) -> Optional[dict]:
    elements = _content_elements(candidate)
    for element in elements:
        if isinstance(element, dict) and _looks_like(element, schema.markers):
            return element
    if elements and isinstance(elements[0], dict) and elements[0]:
        return elements[0]
    return None


# --- Validation & recovery ---

def validate_payload(payload, schema: ResultSchema = BRAND_SCHEMA) -> Tuple[Optional[dict], List[Dict[str, Any]]]:
    """
    Strict check of ``payload`` against the schema's model.

    Returns ``(validated, [])`` on success, ``(None, errors)`` otherwise where
    each error names the offending top-level ``field`` (None when the payload
    itself is unusable) and a human-readable ``message``.
    """
    if not isinstance(payload, dict):
        return None, [{"field": None, "message": "payload is not a JSON object"}]
    try:
        validated = schema.model.model_validate(payload)
    except ValidationError as e:
        errors = []
        for err in e.errors():
            field = str(err["loc"][0]) if err["loc"] else None
            errors.append({"field": field, "message": err["msg"]})
        return None, errors
    return validated.model_dump(), []


def describe_errors(errors: List[Dict[str, Any]]) -> str:
    details = "; ".join(
        f"{err['field']} ({err['message']})" if err["field"] else err["message"]
        for err in errors
    )
    return f"Schema validation failed: {details}"


def recover_result(payload, schema: ResultSchema = BRAND_SCHEMA, message: str = DEFAULT_REASON) -> dict:
    """Keeps every independently valid field of ``payload``, defaults the rest."""
    result = copy.deepcopy(schema.defaults)
    if isinstance(payload, dict):
        _, errors = validate_payload(payload, schema)
        invalid = {err["field"] for err in errors}
        for field in result:
            value = payload.get(field)
            if value is not None and field not in invalid:
                result[field] = copy.deepcopy(value)
    result["error"] = True
    result["message"] = message
    return result


def success_result(validated: dict, schema: ResultSchema = BRAND_SCHEMA) -> dict:
    result = copy.deepcopy(schema.defaults)
    result.update({k: v for k, v in validated.items() if v is not None})
    result["error"] = False
    result["message"] = None
    return result


def failure_result(schema: ResultSchema = BRAND_SCHEMA, message: str = DEFAULT_REASON) -> dict:
    return recover_result(None, schema, message)


# --- Pipeline ---

def _normalize(response, schema: ResultSchema) -> dict:
    response = _as_response(response)
    candidate = _first_candidate(response)
    reasons = []

    text = extract_text(candidate)

    block_reason = detect_block_reason(response, candidate)
    if block_reason:
        reasons.append(block_reason)

    payload = None
    if text is not None:
        payload, parse_reason = parse_payload(strip_fences(text), schema)
        if parse_reason:
            reasons.append(parse_reason)

    if payload is None and candidate is not None:
        payload = structural_fallback(candidate, schema)

    if payload is not None:
        validated, errors = validate_payload(payload, schema)
        if validated is not None:
            return success_result(validated, schema)
        reasons.append(describe_errors(errors))
    elif text is None:
        reasons.append(NO_TEXT_REASON)

    return recover_result(payload, schema, reasons[0] if reasons else DEFAULT_REASON)


def normalize_response(response, schema: ResultSchema = BRAND_SCHEMA) -> dict:
    try:
        return _normalize(response, schema)
    except Exception as e:
        print(f"❌ Normalizer failure ({schema.name}): {e}")
        traceback.print_exc()
        return failure_result(schema, f"{DEFAULT_REASON}: {e}")
