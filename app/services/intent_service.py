import time
from enum import Enum

from app.errors import AppError
from app.logging_config import get_logger
from app.services.llm import LLMProvider

logger = get_logger("intent_service")

INTENT_TEMPERATURE = 0.3
INTENT_MAX_TOKENS = 20

GREETINGS = {"hi", "hello", "hey", "good morning", "good evening"}


class Intent(str, Enum):
    SCHEDULE_QUERY = "schedule_query"
    TRAFFIC_QUERY = "traffic_query"
    ROUTE_QUERY = "route_query"
    ABSENCE_REQUEST = "absence_request"
    ADMIN_COMMAND = "admin_command"
    GENERAL_QUESTION = "general_question"


FALLBACK_INTENT = Intent.GENERAL_QUESTION

CLASSIFY_PROMPT = """You are an intent classifier for an Employee Scheduling System.
Classify the user message into exactly one of these intents:

- schedule_query: questions about work schedules, shifts, or when/where the user works
  ("What's my schedule today?", "When am I working this week?", "Show me my shifts")
- traffic_query: questions about traffic, commute times, or travel conditions
  ("How's the traffic to work?", "Is there traffic on my route?")
- route_query: questions about route options, directions, or the best way to travel
  ("What's the best way to get to work?", "Show me alternative routes")
- absence_request: requests for time off, sick leave, or absence notifications
  ("I need to take tomorrow off", "I'm sick and can't come in")
- admin_command: administrative actions such as managing users or schedules, broadcasting,
  notifying someone, or approving/rejecting absences, with or without an /admin prefix
  ("Show me all users", "List today's schedules", "broadcast Office closed", "approve absence")
- general_question: anything else about the company, policies, or work

Respond ONLY with the intent name, nothing else."""


def is_greeting(message: str) -> bool:
    return (message or "").strip().lower().rstrip("!.") in GREETINGS


def parse_intent_label(raw: str) -> Intent:
    label = (raw or "").strip().lower().strip("`'\".")
    try:
        return Intent(label)
    except ValueError:
        return FALLBACK_INTENT


async def classify_intent(message: str, llm: LLMProvider) -> Intent:
    """Map one utterance to an intent. Never raises; falls back to general_question."""
    messages = [
        {"role": "system", "content": CLASSIFY_PROMPT},
        {"role": "user", "content": message},
    ]
    started = time.monotonic()
    try:
        response = await llm.generate(
            messages,
            temperature=INTENT_TEMPERATURE,
            max_tokens=INTENT_MAX_TOKENS,
        )
    except AppError as exc:
        logger.warning(
            "Intent classification failed",
            extra={"context": {"error_code": exc.code, "error": exc.message}},
        )
        return FALLBACK_INTENT
    except Exception as exc:
        logger.error("Intent classification crashed", extra={"context": {"error": str(exc)}})
        return FALLBACK_INTENT

    intent = parse_intent_label(response.content)
    logger.info(
        "Timing",
        extra={
            "context": {
                "stage": "intent_llm_ms",
                "elapsed_ms": round((time.monotonic() - started) * 1000, 2),
                "raw_label": (response.content or "")[:40],
                "intent": intent.value,
            }
        },
    )
    return intent
