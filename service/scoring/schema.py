from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ScoreRequest(BaseModel):
    """Single scoring request"""

    model_config = ConfigDict(populate_by_name=True)

    target_image: str = Field(
        ...,
        description="Target image URL or identifier",
        validation_alias=AliasChoices("target_image", "targetImageUrl"),
    )
    generated_image: str = Field(
        ...,
        description="Generated image URL or identifier",
        validation_alias=AliasChoices("generated_image", "generatedImageUrl"),
    )

    @field_validator("target_image", "generated_image")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Validate that required string fields are not empty"""
        if not v or not v.strip():
            raise ValueError("Field cannot be empty")
        return v.strip()


class BatchScoreRequest(BaseModel):
    """Batch scoring request"""

    scorings: list[ScoreRequest] = Field(..., description="Image pairs to score", max_length=128)


class ScoreResponse(BaseModel):
    """Single scoring response; components is omitted on the low-confidence path"""

    target_image: str = Field(..., description="Original target image")
    generated_image: str = Field(..., description="Original generated image")
    similarity: float = Field(..., ge=0.0, le=1.0, description="Combined similarity before scaling")
    final: int = Field(..., ge=0, le=100, description="Final score (0-100)")
    components: dict[str, float] | None = Field(None, description="Per-metric similarities (0-1)")
    processing_time_ms: float = Field(..., description="Processing time in milliseconds")
    error: str | None = Field(None, description="Error message if scoring failed")


class BatchScoreResponse(BaseModel):
    """Batch scoring response"""

    results: list[ScoreResponse] = Field(..., description="Individual scoring results")
    total_processed: int = Field(..., description="Total number of pairs processed")
    total_successful: int = Field(..., description="Number of pairs scored with full confidence")
    total_low_confidence: int = Field(..., description="Number of pairs answered by the fallback")
    total_processing_time_ms: float = Field(..., description="Total processing time in milliseconds")


class SemanticRequest(BaseModel):
    """Direct pairwise semantic comparison request"""

    target_url: str = Field(..., validation_alias=AliasChoices("target_url", "targetUrl"))
    generated_url: str = Field(..., validation_alias=AliasChoices("generated_url", "generatedUrl"))

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("target_url", "generated_url")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Field cannot be empty")
        return v.strip()


class SemanticResponse(BaseModel):
    """Direct pairwise semantic comparison response"""

    similarity: float = Field(..., ge=0.0, le=1.0, description="CLIP similarity (0-1)")
    success: bool = Field(..., description="False when the neutral fallback was returned")


class HealthResponse(BaseModel):
    """Health check response"""

    status: str = Field(..., description="Service status")
    prediction_configured: bool = Field(..., description="Whether the prediction API credential is set")
    available_capabilities: list[str] = Field(..., description="Enabled remote capabilities")
    weights: dict[str, float] = Field(..., description="Active metric weights")
