from app.errors import AppError
from app.logging_config import get_logger
from app.models import Conversation, User
from app.services.conversation_service import recent_messages
from app.services.handlers.base import HandlerResult, Turn

logger = get_logger("handlers.general")

HISTORY_TURNS = 10
AI_DISABLED = "AI assistance is currently turned off. Please contact your administrator for help."
LLM_UNAVAILABLE = "Sorry, I couldn't answer that right now. Please try again later or contact your administrator."
EMPTY_ANSWER = "I'm not sure how to help with that. Please contact your administrator."


def build_system_prompt(user: User, instructions: str = "") -> str:
    prompt = (
        "You are an assistant for the Employee Scheduling System. "
        f"The employee is {user.name}, a {user.position or 'staff member'} in {user.department or 'company'}. "
        "Be helpful, concise, and friendly. Avoid technical jargon."
    )
    if instructions and instructions.strip():
        prompt += "\n\n" + instructions.strip()
    return prompt


async def handle_general_question(
    utterance: str, user: User, conversation: Conversation, turn: Turn
) -> HandlerResult:
    if not turn.settings.ai_processing:
        return HandlerResult(AI_DISABLED)

    # The current utterance is already the newest log entry.
    history = recent_messages(turn.db, conversation, limit=HISTORY_TURNS + 1)[:-1][-HISTORY_TURNS:]
    messages = [{"role": "system", "content": build_system_prompt(user, turn.settings.ai_system_instructions)}]
    for entry in history:
        messages.append({"role": "user" if entry.sender == "user" else "assistant", "content": entry.content})
    messages.append({"role": "user", "content": utterance})

    try:
        response = await turn.collaborators.llm.generate(messages, temperature=0.7, max_tokens=500)
    except AppError as exc:
        logger.warning("General answer failed", extra={"context": {"user_id": user.id, "error_code": exc.code}})
        return HandlerResult(LLM_UNAVAILABLE)

    return HandlerResult((response.content or "").strip() or EMPTY_ANSWER)
