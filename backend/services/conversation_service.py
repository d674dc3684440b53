# ========================================
# services/conversation_service.py - Open-ended interview with a persona
# ========================================

from dataclasses import dataclass
from typing import Any, List, Optional

from models.interview import Message, Sender
from models.session import SessionContext
from services.gemini_service import LanguageModel
from services.prompts import START_TRIGGER, build_conversation_feedback_prompt, build_persona_instruction
from utils.errors import GenerationError
from utils.logger import get_logger

logger = get_logger("ConversationCoordinator")

END_COMMAND = "end interview"


def is_end_command(text: str) -> bool:
    return text.strip().lower() == END_COMMAND


@dataclass
class TurnOutcome:
    messages: List[Message]
    feedback_report: Optional[str] = None

    @property
    def ended(self) -> bool:
        return self.feedback_report is not None


class ConversationCoordinator:
    """Drives one multi-turn interview against a hiring-manager persona.

    The coordinator reads the setup fields from, and appends to the transcript
    of, the ``SessionContext`` it is given; it never creates or persists the
    session itself.
    """

    def __init__(self, llm: LanguageModel, context: SessionContext):
        self.llm = llm
        self.context = context
        self._chat: Any = None

    @property
    def transcript(self) -> List[Message]:
        session = self.context.session
        return session.messages if session is not None and session.messages is not None else []

    async def begin(self) -> str:
        """Open the persona chat and return the interviewer's first question."""
        ctx = self.context
        persona = build_persona_instruction(ctx.company, ctx.job_role, ctx.company_url, ctx.language)
        chat = self.llm.start_persona_conversation(persona)
        first_question = await self.llm.send_message(chat, START_TRIGGER)
        if not first_question or not first_question.strip():
            raise GenerationError("AI did not provide an initial question.")

        self._chat = chat
        logger.info(f"Conversation started for {ctx.job_role} at {ctx.company}")
        return first_question

    async def send_turn(self, user_text: str) -> TurnOutcome:
        """
        Append the candidate's message and the interviewer's reply.

        The end command never reaches the chat; it is kept in the transcript
        and the feedback report is generated over everything so far instead.
        A failed call removes the candidate message again so a retry appends
        it exactly once.
        """
        if self._chat is None:
            raise GenerationError("The interview has not started yet.")

        transcript = self.transcript
        user_message = Message(sender=Sender.USER, text=user_text)
        transcript.append(user_message)

        try:
            if is_end_command(user_text):
                logger.info("End command received, generating feedback")
                report = await self.produce_feedback()
                return TurnOutcome(messages=transcript, feedback_report=report)

            reply = await self.llm.send_message(self._chat, user_text)
        except GenerationError:
            transcript.pop()
            raise

        transcript.append(Message(sender=Sender.AI, text=reply))
        return TurnOutcome(messages=transcript)

    async def produce_feedback(self) -> str:
        ctx = self.context
        prompt = build_conversation_feedback_prompt(self.transcript, ctx.company, ctx.job_role, ctx.language)
        report = await self.llm.generate_text(prompt)
        if not report or not report.strip():
            raise GenerationError("AI did not provide feedback.")
        logger.info(f"Feedback generated over {len(self.transcript)} messages")
        return report
