# ========================================
# services/interview_service.py - Interview session state machine
# ========================================

from typing import Awaitable, Callable, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from models.feedback import FeedbackSection
from models.interview import GENERAL_PRACTICE, InterviewSession, Message, Modality, Sender
from models.request import BatchSetup, ConversationSetup
from models.session import FailureDescription, InterviewPhase, MachineSnapshot, SessionContext
from services.conversation_service import ConversationCoordinator, is_end_command
from services.feedback_formatter import FeedbackFormatter
from services.gemini_service import LanguageModel
from services.history_service import SessionStore
from services.question_batch_service import QuestionBatchCoordinator
from services.transcription_service import AnswerBuffer, TranscriptSource
from utils.errors import InterviewError, ValidationError
from utils.logger import get_logger

logger = get_logger("InterviewService")

CANCEL_PROMPT = "Are you sure you want to cancel this interview? Your progress will be lost."

Confirm = Callable[[str], bool]
Coordinator = Union[ConversationCoordinator, QuestionBatchCoordinator]


class SessionStateMachine:
    """
    Lifecycle of one interview: setup → loading → active ⇄ loading → feedback,
    with error reachable from loading/active and cancel back to setup.

    Every operation returns a ``MachineSnapshot``. Collaborator failures never
    escape: they move the machine to ``error`` with a ``FailureDescription``
    and remember how to retry the failed step. Only one model call is in
    flight at a time, and a result that arrives after ``cancel`` is dropped.
    """

    def __init__(
        self,
        llm: LanguageModel,
        store: SessionStore,
        language: str = "en",
        question_count: int = 5,
        formatter: Optional[FeedbackFormatter] = None,
    ):
        self.llm = llm
        self.store = store
        self.language = language
        self.question_count = question_count
        self.formatter = formatter or FeedbackFormatter()
        self.answer_buffer = AnswerBuffer()
        self._reset()
        self._epoch = 0

    def _reset(self) -> None:
        self.phase = InterviewPhase.SETUP
        self.context: Optional[SessionContext] = None
        self.failure: Optional[FailureDescription] = None
        self.completed_session_id: Optional[str] = None
        self.feedback_sections: List[FeedbackSection] = []
        self.answer_buffer.clear()
        self._coordinator: Optional[Coordinator] = None
        self._in_flight = False
        self._retry: Optional[Callable[[], Awaitable[MachineSnapshot]]] = None

    # ------------------------------------------------------------------ #
    # Rendering
    # ------------------------------------------------------------------ #

    def snapshot(self) -> MachineSnapshot:
        ctx = self.context
        return MachineSnapshot(
            phase=self.phase,
            modality=ctx.modality if ctx else None,
            session=ctx.session if ctx else None,
            current_question=ctx.current_question if ctx else None,
            question_index=ctx.question_index if ctx else 0,
            question_count=len(ctx.questions) if ctx else 0,
            pending_input=self.answer_buffer.text,
            failure=self.failure,
            completed_session_id=self.completed_session_id,
        )

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def attach_transcript_source(self, source: TranscriptSource) -> None:
        self.answer_buffer.bind(source)

    # ------------------------------------------------------------------ #
    # Transition helpers
    # ------------------------------------------------------------------ #

    def _enter(self, phase: InterviewPhase) -> int:
        self.phase = phase
        self.failure = None
        self._in_flight = True
        return self._epoch

    def _is_stale(self, epoch: int) -> bool:
        if epoch != self._epoch:
            logger.info("Discarding result of a call made before the interview was cancelled")
            return True
        return False

    def _settle(self, phase: InterviewPhase) -> MachineSnapshot:
        self.phase = phase
        self._in_flight = False
        self._retry = None
        return self.snapshot()

    def _fail(self, epoch: int, error: InterviewError, retry) -> MachineSnapshot:
        if self._is_stale(epoch):
            return self.snapshot()
        logger.warning(f"{error.kind} failure in phase {self.phase.value}: {error.message}")
        self.phase = InterviewPhase.ERROR
        self.failure = FailureDescription(kind=error.kind, message=error.message)
        self._in_flight = False
        self._retry = retry
        return self.snapshot()

    def _invalid(self, message: str) -> MachineSnapshot:
        error = ValidationError(message)
        self.failure = FailureDescription(kind=error.kind, message=error.message)
        return self.snapshot()

    def _can_start(self) -> bool:
        if self._in_flight:
            return False
        if self.phase == InterviewPhase.SETUP:
            return True
        return self.phase == InterviewPhase.ERROR and (self.context is None or self.context.session is None)

    def _accepts_input(self, modality: Modality) -> bool:
        ctx = self.context
        return (
            not self._in_flight
            and self.phase in (InterviewPhase.ACTIVE, InterviewPhase.ERROR)
            and ctx is not None
            and ctx.modality == modality
            and ctx.session is not None
        )

    # ------------------------------------------------------------------ #
    # Setup
    # ------------------------------------------------------------------ #

    async def start_conversation(
        self, company: str, job_role: str, company_url: str, language: Optional[str] = None
    ) -> MachineSnapshot:
        if not self._can_start():
            return self.snapshot()
        try:
            setup = ConversationSetup(
                company=company, job_role=job_role, company_url=company_url, language=language or self.language
            )
        except PydanticValidationError:
            return self._invalid("Please fill in all fields.")

        ctx = SessionContext(
            modality=Modality.CONVERSATION,
            language=setup.language,
            job_role=setup.job_role,
            company=setup.company,
            company_url=setup.company_url,
        )
        coordinator = ConversationCoordinator(self.llm, ctx)
        self.context, self._coordinator = ctx, coordinator

        epoch = self._enter(InterviewPhase.LOADING)
        try:
            first_question = await coordinator.begin()
        except InterviewError as e:
            return self._fail(epoch, e, lambda: self.start_conversation(company, job_role, company_url, language))
        if self._is_stale(epoch):
            return self.snapshot()

        ctx.session = InterviewSession(
            company=ctx.company,
            company_url=ctx.company_url,
            job_role=ctx.job_role,
            language=ctx.language,
            messages=[Message(sender=Sender.AI, text=first_question)],
        )
        logger.info(f"Session {ctx.session.id} active (conversation)")
        return self._settle(InterviewPhase.ACTIVE)

    async def start_batch(self, job_role: str, language: Optional[str] = None) -> MachineSnapshot:
        if not self._can_start():
            return self.snapshot()
        try:
            setup = BatchSetup(job_role=job_role, language=language or self.language)
        except PydanticValidationError:
            return self._invalid("Please choose a job role.")

        ctx = SessionContext(
            modality=Modality.BATCH,
            language=setup.language,
            job_role=setup.job_role,
            company=GENERAL_PRACTICE,
        )
        coordinator = QuestionBatchCoordinator(self.llm, ctx, self.question_count)
        self.context, self._coordinator = ctx, coordinator

        epoch = self._enter(InterviewPhase.LOADING)
        try:
            await coordinator.fetch_questions()
        except InterviewError as e:
            return self._fail(epoch, e, lambda: self.start_batch(job_role, language))
        if self._is_stale(epoch):
            return self.snapshot()

        ctx.session = InterviewSession(
            company=ctx.company,
            job_role=ctx.job_role,
            language=ctx.language,
            questions_and_answers=[],
        )
        logger.info(f"Session {ctx.session.id} active (batch, {len(ctx.questions)} questions)")
        return self._settle(InterviewPhase.ACTIVE)

    # ------------------------------------------------------------------ #
    # Active interview
    # ------------------------------------------------------------------ #

    async def submit_turn(self, user_text: Optional[str] = None) -> MachineSnapshot:
        """Send a conversation turn; the end command concludes the interview instead."""
        if not self._accepts_input(Modality.CONVERSATION):
            return self.snapshot()
        text = self.answer_buffer.text if user_text is None else user_text
        if not text or not text.strip():
            return self._invalid("Please enter a message.")

        coordinator = self._coordinator
        self.answer_buffer.clear()
        ending = is_end_command(text)
        epoch = self._enter(InterviewPhase.FEEDBACK if ending else InterviewPhase.LOADING)
        try:
            outcome = await coordinator.send_turn(text)
        except InterviewError as e:
            if not self._is_stale(epoch):
                self.answer_buffer.set(text)
            return self._fail(epoch, e, lambda: self.submit_turn(text))
        if self._is_stale(epoch):
            return self.snapshot()

        if outcome.ended:
            return await self._conclude(outcome.feedback_report)
        return self._settle(InterviewPhase.ACTIVE)

    async def record_answer(self, answer_text: Optional[str] = None) -> MachineSnapshot:
        """Store the answer to the current question; the last answer triggers feedback."""
        if not self._accepts_input(Modality.BATCH):
            return self.snapshot()
        ctx = self.context
        question = ctx.current_question
        if question is None:
            return self.snapshot()
        text = self.answer_buffer.text if answer_text is None else answer_text
        if not text or not text.strip():
            return self._invalid("Please enter an answer.")

        finished = self._coordinator.record_answer(question, text)
        self.answer_buffer.clear()
        self.failure = None
        if finished:
            return await self.finish()
        return self._settle(InterviewPhase.ACTIVE)

    async def finish(self) -> MachineSnapshot:
        """Generate the report and persist the session.

        Without a started session or job role this does nothing, and a batch
        interview only finishes once every question is answered.
        """
        ctx = self.context
        if ctx is None or ctx.session is None or not ctx.job_role:
            return self.snapshot()
        if ctx.modality == Modality.BATCH and ctx.current_question is not None:
            return self.snapshot()
        if self._in_flight or self.phase not in (InterviewPhase.ACTIVE, InterviewPhase.ERROR):
            return self.snapshot()

        coordinator = self._coordinator
        epoch = self._enter(InterviewPhase.FEEDBACK)
        try:
            report = await coordinator.produce_feedback()
        except InterviewError as e:
            return self._fail(epoch, e, self.finish)
        if self._is_stale(epoch):
            return self.snapshot()
        return await self._conclude(report)

    async def _conclude(self, report: str) -> MachineSnapshot:
        session = self.context.session
        session.feedback_report = report
        self.feedback_sections = self.formatter.parse(report)

        saved = await self.store.upsert(session)
        if not saved:
            logger.warning(f"Session {session.id} was not saved; showing feedback anyway")

        self.completed_session_id = session.id
        logger.info(f"Session {session.id} complete")
        return self._settle(InterviewPhase.FEEDBACK)

    # ------------------------------------------------------------------ #
    # Recovery
    # ------------------------------------------------------------------ #

    async def retry(self) -> MachineSnapshot:
        """Re-run the step that failed, with the inputs it failed with."""
        if self.phase != InterviewPhase.ERROR or self._retry is None or self._in_flight:
            return self.snapshot()
        retry, self._retry = self._retry, None
        return await retry()

    def cancel(self, confirm: Confirm) -> MachineSnapshot:
        """Discard the interview after the user confirms. Nothing is persisted."""
        if self.phase == InterviewPhase.FEEDBACK:
            return self.snapshot()
        if not confirm(CANCEL_PROMPT):
            return self.snapshot()

        self._epoch += 1
        session_id = self.context.session.id if self.context and self.context.session else None
        self._reset()
        logger.info(f"Interview cancelled (session={session_id})")
        return self.snapshot()
