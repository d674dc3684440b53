# ========================================
# services/question_batch_service.py - Fixed question list interview
# ========================================

from typing import Any, List

from pydantic import ValidationError as PydanticValidationError

from models.interview import Answer, Question, QuestionBatch
from models.session import SessionContext
from services.gemini_service import LanguageModel
from services.prompts import QUESTION_SCHEMA, build_batch_feedback_prompt, build_question_batch_prompt
from utils.errors import GenerationError, SchemaMismatchError
from utils.logger import get_logger

logger = get_logger("QuestionBatchCoordinator")


def _parse_questions(payload: Any) -> List[Question]:
    try:
        batch = QuestionBatch.model_validate(payload)
    except PydanticValidationError as e:
        logger.error(f"AI response did not match expected format: {e.error_count()} error(s)")
        raise SchemaMismatchError("AI response did not match expected format.", detail=str(e)) from e

    if not batch.questions:
        raise SchemaMismatchError("AI response contained no questions.")

    ids = [q.id for q in batch.questions]
    if len(set(ids)) != len(ids):
        raise SchemaMismatchError("AI response repeated a question id.", detail=", ".join(ids))

    return list(batch.questions)


class QuestionBatchCoordinator:
    def __init__(self, llm: LanguageModel, context: SessionContext, question_count: int = 5):
        self.llm = llm
        self.context = context
        self.question_count = question_count

    @property
    def answers(self) -> List[Answer]:
        session = self.context.session
        if session is None or session.questions_and_answers is None:
            return []
        return session.questions_and_answers

    async def fetch_questions(self) -> List[Question]:
        """Request the question list; nothing is kept unless the whole payload is valid."""
        ctx = self.context
        prompt = build_question_batch_prompt(ctx.job_role, ctx.language, self.question_count)
        payload = await self.llm.generate_structured(prompt, QUESTION_SCHEMA)
        questions = _parse_questions(payload)

        if len(questions) != self.question_count:
            logger.warning(f"Asked for {self.question_count} questions, received {len(questions)}")

        ctx.questions = questions
        ctx.question_index = 0
        logger.info(f"Loaded {len(questions)} questions for {ctx.job_role}")
        return questions

    def record_answer(self, question: Question, answer_text: str) -> bool:
        """
        Store the answer and move to the next question.

        Returns True once the last question has been answered, which is the
        caller's cue to ask for feedback.
        """
        ctx = self.context
        self.answers.append(
            Answer(question_id=question.id, question_text=question.text, answer_text=answer_text)
        )
        ctx.question_index += 1
        return ctx.question_index >= len(ctx.questions)

    async def produce_feedback(self) -> str:
        ctx = self.context
        prompt = build_batch_feedback_prompt(self.answers, ctx.job_role, ctx.language)
        report = await self.llm.generate_text(prompt)
        if not report or not report.strip():
            raise GenerationError("AI did not provide feedback.")
        logger.info(f"Feedback generated over {len(self.answers)} answers")
        return report
