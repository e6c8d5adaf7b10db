"""
analysis_engine.py — Turn raw AI model text into a typed analysis record.

Pipeline:
1. extract_json_object(): find the JSON object embedded in the model's
   reply (the model may wrap it in prose or code fences).
2. normalize_record(): decode the object into a NonPlantResult or an
   AnalysisResult, defaulting and clamping field by field.

Policy: fail closed on structure, fail open on content. Only a reply with
no parseable JSON object raises (MalformedResponse); a wrong or missing
field is replaced by its fallback, never rejected.

Known limitation: extraction takes the span from the first '{' to the last
'}'. A reply holding two sibling objects produces one span that does not
parse, and is reported as malformed.
"""

import json
from datetime import datetime
from typing import Any, Dict, Optional, Union

import structlog

from models import AnalysisResult, NonPlantResult
from utils.validators import is_explicit_false

logger = structlog.get_logger(__name__)

_PREVIEW_CHARS = 200


class MalformedResponse(ValueError):
    """The model reply contained no parseable JSON object."""


def extract_json_object(raw_text: Any) -> Dict[str, Any]:
    """
    Parse the outermost {...} span of raw_text.

    Raises:
        MalformedResponse: no braces, or the span is not valid JSON.
    """
    if not isinstance(raw_text, str):
        raise MalformedResponse(f"Expected text, got {type(raw_text).__name__}")

    start = raw_text.find('{')
    end = raw_text.rfind('}')
    if start == -1 or end == -1 or end < start:
        logger.warning("no_json_in_response", preview=raw_text[:_PREVIEW_CHARS])
        raise MalformedResponse("No JSON object found in response")

    candidate = raw_text[start:end + 1]
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.warning("json_parse_failed", error=str(e), preview=candidate[:_PREVIEW_CHARS])
        raise MalformedResponse(f"Invalid JSON in response: {e.msg}") from e
    except RecursionError as e:
        logger.warning("json_too_deep", preview=candidate[:_PREVIEW_CHARS])
        raise MalformedResponse("JSON in response is nested too deeply") from e

    # A balanced {...} span can only decode to an object; kept as a guard.
    if not isinstance(parsed, dict):
        raise MalformedResponse("Response JSON is not an object")
    return parsed


def normalize_record(
    data: Dict[str, Any],
    now: Optional[datetime] = None
) -> Union[AnalysisResult, NonPlantResult]:
    """
    Decode a parsed payload into one of the two canonical shapes.

    isPlant explicitly false -> NonPlantResult. Anything else, including a
    missing isPlant, is treated as a plant analysis.

    Args:
        data: Parsed JSON object from the model.
        now: Clock reading used for identificationId and timestamp.

    Returns:
        NonPlantResult or AnalysisResult. Never raises for content.
    """
    if not isinstance(data, dict):
        data = {}

    if is_explicit_false(data.get('isPlant')):
        result = NonPlantResult.from_dict(data)
        logger.info("non_plant_classified", object_type=result.object_type)
        return result

    if 'isPlant' not in data:
        # Permissive default; may hide a prompt-contract mismatch upstream.
        logger.debug("is_plant_missing_assuming_plant")

    result = AnalysisResult.from_dict(data, now=now)
    logger.info(
        "plant_analysis_normalized",
        identification_id=result.identification_id,
        confidence=result.confidence,
        health_score=result.health_score,
    )
    return result


def extract_and_normalize(
    raw_text: Any,
    now: Optional[datetime] = None
) -> Union[AnalysisResult, NonPlantResult]:
    """
    Full pipeline from model reply to typed record.

    Raises:
        MalformedResponse: the reply holds no parseable JSON object.
    """
    return normalize_record(extract_json_object(raw_text), now=now)
