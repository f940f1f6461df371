"""Model tier and raw model response models."""

from pydantic import BaseModel, Field


class ModelTier(BaseModel):
    """One model endpoint in the ordered fallback cascade."""

    model_id: str = Field(..., min_length=1, description="Gemini model identifier")
    supports_vision: bool = Field(default=False, description="Accepts inline image attachments")
    supports_json_mode: bool = Field(default=False, description="Honors responseMimeType=application/json")

    class Config:
        frozen = True
        protected_namespaces = ()


class RawModelResponse(BaseModel):
    """Text returned by a model tier. Discarded after normalization."""

    text: str = Field(..., description="Candidate text payload")
    status_code: int = Field(..., description="HTTP status of the successful call")
    latency_ms: int = Field(default=0, ge=0, description="Latency of the successful call")
    model_id: str = Field(default="", description="Tier that produced the text")
    vision_used: bool = Field(default=False, description="Images were attached to the successful call")
    attempts: int = Field(default=1, ge=0, description="Transport attempts across the whole cascade")

    class Config:
        protected_namespaces = ()
