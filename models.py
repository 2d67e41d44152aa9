"""Pydantic models for the language detection API requests and responses."""

from typing import Any

from pydantic import BaseModel, Field


# Request Models
class DetectRequest(BaseModel):
    """Request model for single-text detection.

    `text` is left untyped so that missing or non-string values reach the
    request normalizer and get the service's own error shape.
    """

    text: Any = Field(default=None, description="Text to detect the language of")

    class Config:
        json_schema_extra = {"example": {"text": "Bonjour tout le monde"}}


class BatchDetectRequest(BaseModel):
    """Request model for batch detection."""

    texts: Any = Field(default=None, description="Ordered list of texts to detect")

    class Config:
        json_schema_extra = {"example": {"texts": ["Hello", "Bonjour", "Hola"]}}


# Response Models
class DetectionResult(BaseModel):
    """Successful single-text detection."""

    success: bool = Field(default=True, description="Always true for a detection result")
    language: str = Field(..., description="Upper-cased language label, or UNKNOWN")
    confidence: str | None = Field(default=None, description="Fixed to 'high' for query-string requests")
    text: str = Field(..., description="Preview of the trimmed input text")
    processed_on: str = Field(default="server", alias="processedOn", description="Where detection ran")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "success": True,
                "language": "FR",
                "text": "Bonjour tout le monde",
                "processedOn": "server",
            }
        }


class BatchItemResult(BaseModel):
    """Outcome for one batch element, tagged with its input index."""

    index: int = Field(..., description="Position of the text in the request")
    success: bool = Field(..., description="Whether this element was detected")
    language: str | None = Field(default=None, description="Upper-cased language label, or UNKNOWN")
    text: str | None = Field(default=None, description="Preview of the trimmed input text")
    error: str | None = Field(default=None, description="Failure description for this element")


class BatchDetectionResponse(BaseModel):
    """Batch detection response; results[i] corresponds to texts[i]."""

    success: bool = Field(default=True)
    count: int = Field(..., description="Number of texts received")
    results: list[BatchItemResult] = Field(..., description="Per-index outcomes, in input order")
    processed_on: str = Field(default="server", alias="processedOn")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "success": True,
                "count": 2,
                "results": [
                    {"index": 0, "success": True, "language": "EN", "text": "Hello"},
                    {"index": 1, "success": False, "error": "Empty text at index 1"},
                ],
                "processedOn": "server",
            }
        }


class DeferralPayload(BaseModel):
    """Returned with HTTP 200 when the engine is not loaded on this host.

    Callers must check `success`, not the status code.
    """

    success: bool = Field(default=False)
    message: str
    instructions: str
    note: str
    text: str | None = Field(default=None, description="Preview of the submitted text")
    input_texts: int | None = Field(default=None, alias="inputTexts", description="Number of texts submitted")

    class Config:
        populate_by_name = True


class ErrorResponse(BaseModel):
    """Error response model."""

    success: bool = Field(default=False)
    error: str = Field(..., description="Error description")

    class Config:
        json_schema_extra = {"example": {"success": False, "error": "Text cannot be empty"}}


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    wasm_loaded: bool = Field(..., alias="wasmLoaded", description="True iff the engine is loaded")
    engine_state: str = Field(..., alias="engineState", description="Engine lifecycle state")
    message: str

    class Config:
        populate_by_name = True


class LanguagesResponse(BaseModel):
    """Supported language metadata."""

    supported: str
    major_languages: list[str]
    note: str


class EndpointDoc(BaseModel):
    """Documentation entry for one endpoint."""

    description: str
    example: str
    response: str


class InfoResponse(BaseModel):
    """API information and documentation."""

    name: str
    version: str
    description: str
    endpoints: dict[str, EndpointDoc]
    usage: dict[str, str]
