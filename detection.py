"""Request normalization, detection and result shaping.

- normalize(): validate and trim raw input before it reaches the engine
- detect_one(): single text -> DetectionResult, or a deferral when the engine is absent
- detect_batch(): ordered fold over a list, isolating per-item failures
- deferral(): the success-shaped "detect in the browser instead" payload
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

import config
from engine_loader import EngineRuntime
from models import BatchDetectionResponse, BatchItemResult, DeferralPayload, DetectionResult

logger = logging.getLogger(__name__)

ENGINE_UNKNOWN = "unknown"
UNKNOWN_LABEL = "UNKNOWN"


class RejectionReason(str, Enum):
    """Why a request was rejected before reaching the engine."""

    MISSING_OR_INVALID = "missing_or_invalid"
    EMPTY = "empty"
    NOT_AN_ARRAY = "not_an_array"


class OriginKind(str, Enum):
    BODY = "body"
    QUERY = "query"
    BATCH = "batch"


@dataclass(frozen=True)
class Origin:
    """Where a text came from; drives error wording and preview length."""

    kind: OriginKind = OriginKind.BODY
    index: int | None = None

    @classmethod
    def batch(cls, index: int) -> "Origin":
        return cls(kind=OriginKind.BATCH, index=index)

    @property
    def preview_limit(self) -> int:
        if self.kind is OriginKind.BATCH:
            return config.BATCH_PREVIEW_LENGTH
        return config.SINGLE_PREVIEW_LENGTH


class TextValidationError(ValueError):
    """Client-caused rejection; never retried."""

    def __init__(self, reason: RejectionReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason


class EngineInvocationError(RuntimeError):
    """The loaded engine failed on a specific call."""


def _rejection_message(reason: RejectionReason, origin: Origin) -> str:
    if origin.kind is OriginKind.BATCH:
        prefix = "Empty" if reason is RejectionReason.EMPTY else "Invalid"
        return f"{prefix} text at index {origin.index}"
    if reason is RejectionReason.EMPTY:
        return "Text cannot be empty"
    if origin.kind is OriginKind.QUERY:
        return "Missing text parameter. Use ?text=your_text or ?q=your_text"
    return "Missing or invalid text parameter"


def normalize(raw: Any, origin: Origin = Origin()) -> str:
    """Validate and trim raw input.

    No case folding or truncation happens here; previews are cut during
    result shaping.

    Args:
        raw: Value taken from the request
        origin: Where the value came from

    Returns:
        Trimmed text

    Raises:
        TextValidationError: If raw is not a string or is blank
    """
    if not isinstance(raw, str):
        reason = RejectionReason.MISSING_OR_INVALID
        raise TextValidationError(reason, _rejection_message(reason, origin))

    text = raw.strip()
    if not text:
        reason = RejectionReason.EMPTY
        raise TextValidationError(reason, _rejection_message(reason, origin))
    return text


def shape_label(label: str) -> str:
    """Map an engine label to its wire form."""
    if label == ENGINE_UNKNOWN:
        return UNKNOWN_LABEL
    return label.upper()


def classify(text: str, runtime: EngineRuntime) -> str:
    """Run the engine on normalized text and shape the label.

    Raises:
        EngineInvocationError: If the engine raises or returns a non-string
    """
    try:
        label = runtime.detect_language(text)
        if not isinstance(label, str):
            raise TypeError(f"Engine returned {type(label).__name__}, expected str")
    except Exception as e:
        raise EngineInvocationError(str(e)) from e
    return shape_label(label)


def deferral(text: str | None = None, input_count: int | None = None) -> DeferralPayload:
    """Build the payload telling the caller to run detection in the browser."""
    return DeferralPayload(
        message="Language detection is processed client-side in the browser using WebAssembly",
        instructions=f"Open {config.PUBLIC_URL} in your browser and use the web interface to detect languages",
        note="The CLD3 WASM module runs in a sandboxed browser environment that is not available on this server",
        text=text,
        input_texts=input_count,
    )


def detect_one(raw: Any, runtime: EngineRuntime, origin: Origin = Origin()) -> DetectionResult | DeferralPayload:
    """Detect the language of a single text.

    Args:
        raw: Value taken from the request body or query string
        runtime: Process engine runtime
        origin: BODY or QUERY; QUERY results carry a confidence field

    Returns:
        DetectionResult when the engine is loaded, DeferralPayload otherwise

    Raises:
        TextValidationError: If the text is missing, not a string, or blank
        EngineInvocationError: If the engine fails on this text
    """
    text = normalize(raw, origin)
    preview = text[: origin.preview_limit]

    if not runtime.is_loaded:
        return deferral(text=preview)

    language = classify(text, runtime)
    logger.debug(f"Detected {language} for text (length={len(text)})")
    return DetectionResult(
        language=language,
        confidence="high" if origin.kind is OriginKind.QUERY else None,
        text=preview,
    )


def _detect_item(index: int, raw: Any, runtime: EngineRuntime) -> BatchItemResult:
    origin = Origin.batch(index)
    try:
        text = normalize(raw, origin)
        language = classify(text, runtime)
    except TextValidationError as e:
        return BatchItemResult(index=index, success=False, error=str(e))
    except EngineInvocationError as e:
        logger.warning(f"Batch detection failed at index {index}: {e}")
        return BatchItemResult(index=index, success=False, error=str(e))

    return BatchItemResult(index=index, success=True, language=language, text=text[: origin.preview_limit])


def detect_batch(raw_list: Any, runtime: EngineRuntime) -> BatchDetectionResponse | DeferralPayload:
    """Detect languages for an ordered list of texts.

    Each element is processed independently; a bad element yields a failure
    entry at its index and processing continues.

    Args:
        raw_list: Value of the request's `texts` field
        runtime: Process engine runtime

    Returns:
        BatchDetectionResponse when the engine is loaded, one DeferralPayload otherwise

    Raises:
        TextValidationError: If raw_list is not a list
    """
    if not isinstance(raw_list, list):
        raise TextValidationError(RejectionReason.NOT_AN_ARRAY, "texts parameter must be an array")

    if not runtime.is_loaded:
        return deferral(input_count=len(raw_list))

    results = [_detect_item(index, raw, runtime) for index, raw in enumerate(raw_list)]
    logger.debug(f"Processed batch of {len(results)} texts")
    return BatchDetectionResponse(count=len(raw_list), results=results)
