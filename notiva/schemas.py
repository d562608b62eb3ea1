"""
Pydantic schemas for request/response validation.

Request fields are optional at the schema level: missing values are reported
by the service as a 400 with the same message for every missing field,
instead of FastAPI's per-field 422.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Pydantic Request Models
# =============================================================================

class SendMessageRequest(BaseModel):
    """Body of POST /api/messages/send."""
    # 'from' is a reserved word in Python, so we use alias
    from_user: Optional[str] = Field(None, alias="from", description="Sender identifier")
    to: Optional[str] = Field(None, description="Recipient identifier")
    message: Optional[str] = Field(None, description="Plaintext message body")

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "examples": [
                {"from": "alice", "to": "bob", "message": "Hello"}
            ]
        }
    }


class DecryptMessageRequest(BaseModel):
    """Body of POST /api/messages/decrypt."""
    username: Optional[str] = Field(None, description="Owner of the inbox")
    messageId: Optional[str] = Field(None, description="Id of the message to read")


# =============================================================================
# Pydantic Response Models
# =============================================================================

class StatusResponse(BaseModel):
    """Generic {success, message} body, used for errors and the probe."""
    success: bool
    message: str


class SendMessageResponse(BaseModel):
    success: bool = True
    messageId: str = Field(..., description="Identifier of the stored message")
    encrypted: str = Field(..., description="Ciphertext as stored")
    timestamp: str = Field(..., description="UTC send time, YYYY-MM-DD HH:MM:SS")


class MessagesListResponse(BaseModel):
    """
    Response model for GET /api/messages/{username}.

    Records are returned as stored, so extra keys on older records survive.
    """
    success: bool = True
    messages: List[Dict[str, Any]] = Field(default_factory=list)


class DecryptMessageResponse(BaseModel):
    success: bool = True
    message: Dict[str, Any] = Field(..., description="Stored record plus decryptedMessage")


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")
