from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from models.interview import InterviewSession, Modality, Question


class InterviewPhase(str, Enum):
    SETUP = "setup"
    LOADING = "loading"
    ACTIVE = "active"
    FEEDBACK = "feedback"
    ERROR = "error"


class SessionContext(BaseModel):
    """The in-progress interview, passed by reference to the owning coordinator.

    Setup fields survive failures so a retry never needs re-entry. ``session``
    stays ``None`` until the coordinator's opening call succeeds.
    """

    modality: Modality
    language: str
    job_role: str
    company: str = ""
    company_url: str = ""
    session: Optional[InterviewSession] = None
    questions: List[Question] = Field(default_factory=list)
    question_index: int = 0

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.question_index < len(self.questions):
            return self.questions[self.question_index]
        return None


class FailureDescription(BaseModel):
    kind: str
    message: str


class MachineSnapshot(BaseModel):
    """What the presentation layer renders after every operation."""

    phase: InterviewPhase
    modality: Optional[Modality] = None
    session: Optional[InterviewSession] = None
    current_question: Optional[Question] = None
    question_index: int = 0
    question_count: int = 0
    pending_input: str = ""
    failure: Optional[FailureDescription] = None
    completed_session_id: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.completed_session_id is not None
