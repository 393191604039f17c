from typing import Optional

import httpx

from app.errors import DependencyUnavailable, MediaFetchError
from app.logging_config import get_logger, mask_phone
from app.services.result import Result

logger = get_logger("whatsapp_service")

GRAPH_BASE_URL = "https://graph.facebook.com"


def format_recipient(phone: str) -> str:
    """Graph API wants bare digits: strip ``whatsapp:`` prefixes, ``+`` and spaces."""
    value = phone.replace("whatsapp:", "").strip()
    return "".join(ch for ch in value if ch.isdigit())


def build_text_payload(to: str, body: str) -> dict:
    return {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": format_recipient(to),
        "type": "text",
        "text": {"body": body},
    }


def build_template_payload(to: str, template_id: str, language: str, parameters: list[str]) -> dict:
    components = []
    if parameters:
        components.append(
            {
                "type": "body",
                "parameters": [{"type": "text", "text": str(value)} for value in parameters],
            }
        )
    return {
        "messaging_product": "whatsapp",
        "to": format_recipient(to),
        "type": "template",
        "template": {
            "name": template_id,
            "language": {"code": language},
            "components": components,
        },
    }


class WhatsAppClient:
    """Meta WhatsApp Cloud API transport."""

    def __init__(
        self,
        token: Optional[str],
        phone_number_id: Optional[str],
        api_version: str = "v22.0",
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.phone_number_id = phone_number_id
        self.api_version = api_version
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def messages_url(self) -> str:
        return f"{GRAPH_BASE_URL}/{self.api_version}/{self.phone_number_id}/messages"

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}", "Content-Type": "application/json"}

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout or self.timeout_seconds, transport=self._transport)

    async def send_text(self, to: str, body: str) -> Result[str]:
        return await self._post_message(build_text_payload(to, body), kind="text")

    async def send_template(
        self, to: str, template_id: str, language: str, parameters: list[str]
    ) -> Result[str]:
        payload = build_template_payload(to, template_id, language, parameters)
        return await self._post_message(payload, kind="template")

    async def _post_message(self, payload: dict, kind: str) -> Result[str]:
        if not (self.token and self.phone_number_id):
            logger.error("WhatsApp credentials are missing")
            return Result.failure("WhatsApp is not configured", code="dependency_unavailable")

        recipient = mask_phone(payload.get("to"))
        try:
            async with self._client() as client:
                response = await client.post(self.messages_url, headers=self._headers(), json=payload)
        except httpx.TimeoutException:
            logger.warning("WhatsApp send timed out", extra={"context": {"to": recipient, "kind": kind}})
            return Result.failure("WhatsApp send timed out", code="timeout")
        except httpx.HTTPError as exc:
            logger.error("WhatsApp transport error", extra={"context": {"to": recipient, "error": str(exc)}})
            return Result.failure(str(exc), code="provider_rejected")

        if response.status_code >= 400:
            logger.error(
                "WhatsApp send rejected",
                extra={"context": {"to": recipient, "kind": kind, "status": response.status_code, "body": response.text[:500]}},
            )
            return Result.failure(f"WhatsApp API error: {response.status_code}", code="provider_rejected")

        try:
            message_id = ((response.json().get("messages") or [{}])[0]).get("id", "")
        except (ValueError, AttributeError):
            logger.error("WhatsApp send returned an unreadable body", extra={"context": {"to": recipient, "kind": kind}})
            return Result.failure("WhatsApp API returned an unreadable body", code="provider_rejected")
        logger.info("WhatsApp message sent", extra={"context": {"to": recipient, "kind": kind, "message_id": message_id}})
        return Result.success(message_id)

    async def get_media_url(self, media_id: str) -> str:
        """Resolve a media id to its short-lived download URL."""
        if not self.token:
            raise DependencyUnavailable("WhatsApp is not configured")
        url = f"{GRAPH_BASE_URL}/{self.api_version}/{media_id}"
        try:
            async with self._client() as client:
                response = await client.get(url, headers={"Authorization": f"Bearer {self.token}"})
        except httpx.HTTPError as exc:
            raise MediaFetchError(f"Media lookup failed: {exc}") from exc
        if response.status_code != 200:
            raise MediaFetchError(f"Media lookup failed: {response.status_code}")
        try:
            media_url = response.json().get("url")
        except (ValueError, AttributeError) as exc:
            raise MediaFetchError("Media lookup returned an unreadable body") from exc
        if not media_url:
            raise MediaFetchError("Media lookup returned no url")
        return media_url

    async def download_media(self, media_url: str) -> bytes:
        if not self.token:
            raise DependencyUnavailable("WhatsApp is not configured")
        try:
            async with self._client() as client:
                response = await client.get(media_url, headers={"Authorization": f"Bearer {self.token}"})
        except httpx.HTTPError as exc:
            raise MediaFetchError(f"Media download failed: {exc}") from exc
        if response.status_code != 200:
            raise MediaFetchError(f"Media download failed: {response.status_code}")
        return response.content
