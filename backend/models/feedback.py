from pydantic import BaseModel


class FeedbackSection(BaseModel):
    title: str
    content: str
