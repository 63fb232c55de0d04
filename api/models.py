"""
API models and schemas for the FastAPI application.
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_serializer


class ErrorResponse(BaseModel):
    """Body returned for every failed request."""
    status: int = Field(..., description="HTTP status code")
    error: str = Field(..., description="HTTP reason phrase")
    message: str = Field(..., description="What went wrong")
    timestamp: datetime = Field(default_factory=datetime.now, description="When the error occurred")

    @field_serializer("timestamp")
    def serialize_timestamp(self, v: datetime) -> str:
        return v.isoformat()


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
    media_store_configured: bool = Field(..., description="Whether media store credentials are set")
