from app.schemas.auth import LoginRequest, RegisterRequest, TokenResponse
from app.schemas.whatsapp import InboundMessage, WebhookPayload

__all__ = ["LoginRequest", "RegisterRequest", "TokenResponse", "InboundMessage", "WebhookPayload"]
