# ========================================
# models/interview.py - Interview records
# ========================================

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel


LANGUAGES = {
    "en": "English",
    "es": "Español",
    "fr": "Français",
    "de": "Deutsch",
    "pt": "Português",
    "ru": "Русский",
    "ar": "العربية",
    "zh-CN": "简体中文",
    "ja": "日本語",
    "hi": "हिन्दी",
    "bn": "বাংলা",
    "id": "Bahasa Indonesia",
    "sw": "Kiswahili",
    "rw": "Kinyarwanda",
    "ur": "اردو",
}

JOB_CATEGORIES = {
    "Tech": ["Software Engineer", "Data Scientist", "UX/UI Designer", "Product Manager", "DevOps Engineer", "Cybersecurity Analyst"],
    "Education": ["High School Teacher", "University Professor", "Academic Advisor", "Librarian", "Instructional Designer"],
    "Tourism & Hospitality": ["Tour Guide", "Hotel Manager", "Travel Agent", "Event Coordinator", "Chef"],
    "Healthcare": ["Registered Nurse", "Doctor", "Medical Assistant", "Pharmacist", "Physical Therapist"],
    "Business & Finance": ["Accountant", "Financial Analyst", "Management Consultant", "Marketing Manager", "Human Resources Manager"],
}

# Company label stored for batch sessions, which have no company
GENERAL_PRACTICE = "General Practice"


def language_name(code: str) -> str:
    """Display name for a language code; raises KeyError for unknown codes."""
    return LANGUAGES[code]


def new_session_id() -> str:
    return f"session-{uuid4().hex}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class _Record(BaseModel):
    """Records persist with camelCase keys so history blobs stay portable."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Sender(str, Enum):
    USER = "user"
    AI = "ai"


class Modality(str, Enum):
    CONVERSATION = "conversation"
    BATCH = "batch"


class Message(_Record):
    sender: Sender
    text: str


class Question(_Record):
    id: str
    text: str
    category: str


class QuestionBatch(_Record):
    questions: List[Question]


class Answer(_Record):
    question_id: str
    question_text: str
    answer_text: str


_timestamp = TypeAdapter(datetime)


class InterviewSession(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=new_session_id)
    company: str
    company_url: str = ""
    job_role: str
    language: str
    date: str = Field(default_factory=utc_now_iso, frozen=True)
    messages: Optional[List[Message]] = None
    questions_and_answers: Optional[List[Answer]] = None
    feedback_report: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one_transcript(self):
        if (self.messages is None) == (self.questions_and_answers is None):
            raise ValueError("a session holds either messages or questionsAndAnswers, not both or neither")
        return self

    @property
    def modality(self) -> Modality:
        return Modality.CONVERSATION if self.messages is not None else Modality.BATCH

    @property
    def created_at(self) -> datetime:
        stamp = _timestamp.validate_python(self.date)
        if stamp.tzinfo is None:
            stamp = stamp.replace(tzinfo=timezone.utc)
        return stamp
