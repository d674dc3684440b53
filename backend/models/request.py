from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.interview import LANGUAGES


class _Setup(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    language: str = "en"

    @field_validator("language")
    @classmethod
    def _known_language(cls, v: str) -> str:
        if v not in LANGUAGES:
            raise ValueError(f"unsupported language '{v}'")
        return v


class ConversationSetup(_Setup):
    company: str = Field(..., min_length=1, examples=["Acme"])
    job_role: str = Field(..., min_length=1, examples=["Software Engineer"])
    company_url: str = Field(..., min_length=1, examples=["https://acme.example"])


class BatchSetup(_Setup):
    job_role: str = Field(..., min_length=1, examples=["Software Engineer"])
