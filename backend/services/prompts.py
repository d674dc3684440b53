"""
Prompt templates for the interviewer persona and the feedback reports.

Both report prompts ask for the same three plain-text headings that
``FeedbackFormatter`` splits on.
"""
from typing import List

from models.interview import Answer, Message, Sender, language_name

START_TRIGGER = "Start the interview."

REPORT_HEADINGS = ("Overall Assessment", "Key Strengths", "Areas for Improvement")

QUESTION_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "questions": {
            "type": "ARRAY",
            "description": "List of interview questions.",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "id": {
                        "type": "STRING",
                        "description": 'A unique identifier for the question (e.g., "q1").',
                    },
                    "text": {
                        "type": "STRING",
                        "description": "The text of the interview question.",
                    },
                    "category": {
                        "type": "STRING",
                        "description": 'The category of the question (e.g., "Behavioral", "Technical", "Situational").',
                    },
                },
                "required": ["id", "text", "category"],
            },
        }
    },
    "required": ["questions"],
}


def _report_instructions(language: str, grounding: str) -> str:
    headings = ", ".join(f'"{h}"' for h in REPORT_HEADINGS[:-1]) + f', and "{REPORT_HEADINGS[-1]}"'
    return (
        f"The report must be written in {language_name(language)} in a professional and encouraging tone. "
        f"It must include the following sections, using these exact headings: {headings}. "
        f"For strengths and improvements, you must refer to specific examples from {grounding}. "
        "Do not use any markdown formatting like bolding or italics. Just return the plain text report."
    )


def build_persona_instruction(company: str, job_role: str, company_url: str, language: str) -> str:
    return (
        f"You are a senior hiring manager at {company} with 10 years of experience, "
        f"interviewing a candidate for the {job_role} position. "
        f"First, analyze the content of the provided company URL ({company_url}) to understand the company's "
        "core values, mission, recent news, and product lineup. You must embody the company's characteristics, "
        "which you've learned from the URL, in your persona. You prefer to ask deep, probing questions that connect "
        "a candidate's skills and problem-solving abilities to the company's actual business. "
        "Your tone should be professional but approachable. "
        f"All your questions and responses must be in {language_name(language)}. "
        "Start the interview now with your first question, and do not add any conversational filler before it. "
        "Just ask the question."
    )


def format_transcript(messages: List[Message]) -> str:
    return "\n\n".join(
        f"{'Interviewer' if m.sender == Sender.AI else 'Candidate'}: {m.text}" for m in messages
    )


def build_conversation_feedback_prompt(messages: List[Message], company: str, job_role: str, language: str) -> str:
    return f"""The interview is now over. Based on the entire conversation below, write a feedback report for the candidate. The interview was for a {job_role} role at {company}. {_report_instructions(language, "our conversation")}

<CONVERSATION_HISTORY>
{format_transcript(messages)}
</CONVERSATION_HISTORY>
"""


def format_answers(answers: List[Answer]) -> str:
    return "\n\n---\n\n".join(f"Question: {a.question_text}\nAnswer: {a.answer_text}" for a in answers)


def build_batch_feedback_prompt(answers: List[Answer], job_role: str, language: str) -> str:
    return f"""The interview is now over. Based on the candidate's answers below, write a feedback report. The interview was for a {job_role} role. {_report_instructions(language, "the provided answers")}

<CANDIDATE_ANSWERS>
{format_answers(answers)}
</CANDIDATE_ANSWERS>
"""


def build_question_batch_prompt(job_role: str, language: str, count: int = 5) -> str:
    return (
        f"Generate a list of {count} diverse interview questions for a '{job_role}' position. "
        "The questions should cover categories like Behavioral, Technical, and Situational. "
        f"Provide the response in {language_name(language)}. "
        'Each question must have a unique string id you generate (e.g., "q1").'
    )
