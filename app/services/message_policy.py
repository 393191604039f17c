"""Outbound WhatsApp policy: free-form text inside the 24h window, templates outside it."""

import re
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.logging_config import get_logger, mask_phone
from app.models import User
from app.services.conversation_service import in_service_window
from app.services.result import Result
from app.services.whatsapp_service import WhatsAppClient
from app.services.whatsapp_settings_service import get_whatsapp_settings

logger = get_logger("message_policy")

DEFAULT_LANGUAGE = "en"
PLACEHOLDER_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")


@dataclass
class TemplateSpec:
    name: str
    parameters: list[str]
    languages: dict[str, str]

    def resolve(self, preferred_language: Optional[str]) -> Optional[tuple[str, str]]:
        """Return ``(language_code, provider_template_id)``, falling back to English."""
        base = (preferred_language or DEFAULT_LANGUAGE).split("-")[0].split("_")[0].lower()
        for code in (base, DEFAULT_LANGUAGE):
            template_id = self.languages.get(code)
            if template_id:
                return code, template_id
        return None

    def positional(self, slots: dict) -> list[str]:
        return [str(slots.get(name, "")) for name in self.parameters]


def parse_templates(raw: dict) -> dict[str, TemplateSpec]:
    specs = {}
    for name, entry in (raw or {}).items():
        if not isinstance(entry, dict):
            continue
        specs[name] = TemplateSpec(
            name=name,
            parameters=list(entry.get("parameters") or []),
            languages=dict(entry.get("languages") or {}),
        )
    return specs


def load_templates(db: Session) -> dict[str, TemplateSpec]:
    return parse_templates(get_whatsapp_settings(db).templates)


class TemplateRegistry:
    """Process-wide template snapshot; may be stale and is reloaded once on a miss."""

    def __init__(self, loader: Callable[[Session], dict[str, TemplateSpec]] = load_templates):
        self._loader = loader
        self._snapshot: Optional[dict[str, TemplateSpec]] = None
        self._lock = threading.Lock()

    def _reload(self, db: Session) -> dict[str, TemplateSpec]:
        snapshot = self._loader(db)
        with self._lock:
            self._snapshot = snapshot
        return snapshot

    def get(self, db: Session, name: str) -> Optional[TemplateSpec]:
        snapshot = self._snapshot if self._snapshot is not None else self._reload(db)
        spec = snapshot.get(name)
        if spec is None:
            spec = self._reload(db).get(name)
        return spec

    def invalidate(self) -> None:
        with self._lock:
            self._snapshot = None


def render_text_template(template: str, slots: dict) -> str:
    return PLACEHOLDER_RE.sub(lambda match: str(slots.get(match.group(1), "")), template)


def render_template_body(spec: TemplateSpec, body: str, slots: dict) -> str:
    """Render a provider body that uses positional ``{{1}}`` placeholders."""
    values = spec.positional(slots)

    def _slot(match: re.Match) -> str:
        key = match.group(1)
        if key.isdigit() and 1 <= int(key) <= len(values):
            return values[int(key) - 1]
        return match.group(0)

    return PLACEHOLDER_RE.sub(_slot, body)


@dataclass
class OutboundMessage:
    to: str
    mode: str  # text, template
    body: Optional[str] = None
    template_id: Optional[str] = None
    language: Optional[str] = None
    parameters: list[str] = field(default_factory=list)
    fallback: bool = False


def plan_message(
    db: Session,
    recipient: User,
    text: str,
    registry: TemplateRegistry,
    template_name: Optional[str] = None,
    slots: Optional[dict] = None,
    now: Optional[datetime] = None,
) -> OutboundMessage:
    """Choose how a message to ``recipient`` has to be shaped right now."""
    slots = slots or {}
    if in_service_window(db, recipient.id, now=now) or not template_name:
        return OutboundMessage(to=recipient.phone, mode="text", body=text)

    spec = registry.get(db, template_name)
    resolved = spec.resolve(recipient.preferred_language) if spec else None
    if spec is None or resolved is None:
        logger.error(
            "Template lookup failed, falling back to text",
            extra={
                "context": {
                    "template": template_name,
                    "language": recipient.preferred_language,
                    "to": mask_phone(recipient.phone),
                }
            },
        )
        legacy = (get_whatsapp_settings(db).text_templates or {}).get(template_name)
        body = render_text_template(legacy, slots) if legacy else text
        return OutboundMessage(to=recipient.phone, mode="text", body=body, fallback=True)

    language, template_id = resolved
    return OutboundMessage(
        to=recipient.phone,
        mode="template",
        template_id=template_id,
        language=language,
        parameters=spec.positional(slots),
    )


async def deliver(whatsapp: WhatsAppClient, message: OutboundMessage) -> Result[str]:
    if message.mode == "template":
        return await whatsapp.send_template(
            message.to, message.template_id, message.language, message.parameters
        )
    return await whatsapp.send_text(message.to, message.body or "")
