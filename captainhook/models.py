from typing import Any
from pydantic import BaseModel, Field


class WebhookResponse(BaseModel):
    """Response model for the webhook endpoint"""
    status: str = Field("success", description="Always 'success' for accepted deliveries")
    message: str = Field("Webhook received successfully", description="Human readable status")
    received_data: Any = Field(default_factory=dict, description="The JSON payload exactly as received")


class ErrorResponse(BaseModel):
    """Error body returned for rejected or failed requests"""
    status: str = Field("error")
    message: str


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str
