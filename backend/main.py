# backend/main.py
"""
Terminal front end for the PrepIQ interview coach.

Renders machine snapshots and collects input; every decision about the
interview lifecycle is left to ``SessionStateMachine``.
"""
import argparse
import asyncio
import sys
from datetime import date
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from config import get_settings
from models.feedback import FeedbackSection
from models.interview import JOB_CATEGORIES, LANGUAGES, InterviewSession, Modality, Sender
from models.session import InterviewPhase, MachineSnapshot
from services.feedback_formatter import FeedbackFormatter
from services.gemini_service import GeminiService
from services.history_service import filter_history, open_session_store
from services.interview_service import SessionStateMachine
from utils.errors import ConfigurationError
from utils.logger import get_logger, setup_logging

setup_logging()
log = get_logger(__name__)
console = Console()

CANCEL_COMMAND = "/cancel"
RETRY_COMMAND = "/retry"


def _confirm(message: str) -> bool:
    return Confirm.ask(message, default=False)


def _render_feedback(sections: List[FeedbackSection], session: InterviewSession) -> None:
    console.print(Panel.fit(f"Your Interview Feedback\nFor the {session.job_role} role at {session.company}"))
    for section in sections:
        console.rule(section.title)
        console.print(section.content)


def _render_failure(snap: MachineSnapshot) -> None:
    if snap.failure:
        console.print(f"[red]{snap.failure.message}[/red]")


async def _build_machine(language: str) -> SessionStateMachine:
    settings = get_settings()
    llm = GeminiService(settings)
    return SessionStateMachine(
        llm,
        await open_session_store(settings),
        language=language,
        question_count=settings.question_count,
    )


async def _await_setup(machine: SessionStateMachine, start) -> Optional[MachineSnapshot]:
    """Run a start call until it reaches active, or the user gives up."""
    with console.status("Preparing your interview..."):
        snap = await start()
    while snap.phase != InterviewPhase.ACTIVE:
        _render_failure(snap)
        if snap.phase == InterviewPhase.SETUP:
            return None
        if not Confirm.ask("Try again?", default=True):
            machine.cancel(lambda _: True)
            return None
        with console.status("Retrying..."):
            snap = await machine.retry()
    return snap


async def run_conversation(args) -> int:
    machine = await _build_machine(args.language)
    company = args.company or Prompt.ask("Company")
    job_role = args.role or Prompt.ask("Job role")
    company_url = args.url or Prompt.ask("Company URL")

    snap = await _await_setup(
        machine, lambda: machine.start_conversation(company, job_role, company_url, args.language)
    )
    if snap is None:
        return 1
    console.print(f'Type "End interview" to finish and get feedback, {CANCEL_COMMAND} to abandon.')

    shown = 0
    while not snap.is_complete:
        messages = snap.session.messages if snap.session else []
        for message in messages[shown:]:
            if message.sender == Sender.AI:
                console.print(Panel(message.text, title="Interviewer"))
        shown = len(messages)

        if snap.phase == InterviewPhase.ERROR:
            _render_failure(snap)
            console.print(f'You can {RETRY_COMMAND} your message or type "End interview" to finish.')

        text = Prompt.ask("You", default=snap.pending_input or None, show_default=False) or ""
        if text.strip() == CANCEL_COMMAND:
            snap = machine.cancel(_confirm)
            if snap.phase == InterviewPhase.SETUP:
                console.print("Interview cancelled.")
                return 0
            continue
        with console.status("Thinking..."):
            snap = await (machine.retry() if text.strip() == RETRY_COMMAND else machine.submit_turn(text))
        if snap.failure and snap.failure.kind == "validation":
            _render_failure(snap)

    _render_feedback(machine.feedback_sections, snap.session)
    console.print(f"Saved as {snap.completed_session_id}")
    return 0


async def run_batch(args) -> int:
    machine = await _build_machine(args.language)
    job_role = args.role or _pick_role()

    snap = await _await_setup(machine, lambda: machine.start_batch(job_role, args.language))
    if snap is None:
        return 1

    while not snap.is_complete:
        if snap.phase == InterviewPhase.ERROR:
            _render_failure(snap)
            if not Confirm.ask("Retry getting feedback?", default=True):
                snap = machine.cancel(_confirm)
                if snap.phase == InterviewPhase.SETUP:
                    return 1
                continue
            with console.status("Analyzing your responses. This may take a moment..."):
                snap = await machine.retry()
            continue

        question = snap.current_question
        console.print(
            Panel(question.text, title=f"{question.category} · Question {snap.question_index + 1} of {snap.question_count}")
        )
        text = Prompt.ask("Your answer", default=snap.pending_input or None, show_default=False) or ""
        if text.strip() == CANCEL_COMMAND:
            snap = machine.cancel(_confirm)
            if snap.phase == InterviewPhase.SETUP:
                console.print("Interview cancelled.")
                return 0
            continue
        last = snap.question_index + 1 == snap.question_count
        if last:
            with console.status("Analyzing your responses. This may take a moment..."):
                snap = await machine.record_answer(text)
        else:
            snap = await machine.record_answer(text)
        if snap.failure and snap.failure.kind == "validation":
            _render_failure(snap)

    _render_feedback(machine.feedback_sections, snap.session)
    console.print(f"Saved as {snap.completed_session_id}")
    return 0


def _pick_role() -> str:
    roles = [role for group in JOB_CATEGORIES.values() for role in group]
    for category, group in JOB_CATEGORIES.items():
        console.print(f"[bold]{category}[/bold]: {', '.join(group)}")
    return Prompt.ask("Job role", default=roles[0])


async def run_history(args) -> int:
    store = await open_session_store()
    on_date = date.fromisoformat(args.date) if args.date else None
    sessions = filter_history(await store.get_all(), job_role=args.role, on_date=on_date)
    if not sessions:
        console.print("No interviews found.")
        return 0

    table = Table("Id", "Date", "Role", "Company", "Mode")
    for s in sessions:
        mode = "Conversation" if s.modality == Modality.CONVERSATION else "Questions"
        table.add_row(s.id, s.created_at.strftime("%Y-%m-%d %H:%M"), s.job_role, s.company, mode)
    console.print(table)
    return 0


async def run_show(args) -> int:
    store = await open_session_store()
    session = await store.get_by_id(args.session_id)
    if session is None or not session.feedback_report:
        console.print("[red]Could not find the feedback for this session.[/red]")
        return 1
    _render_feedback(FeedbackFormatter().parse(session.feedback_report), session)
    return 0


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(prog="prepiq", description="AI mock-interview coach")
    sub = parser.add_subparsers(dest="command", required=True)

    chat = sub.add_parser("chat", help="open-ended interview with a hiring-manager persona")
    chat.add_argument("--company")
    chat.add_argument("--role")
    chat.add_argument("--url")
    chat.set_defaults(handler=run_conversation)

    batch = sub.add_parser("batch", help="answer a fixed set of questions for a role")
    batch.add_argument("--role")
    batch.set_defaults(handler=run_batch)

    for p in (chat, batch):
        p.add_argument("--language", default=settings.default_language, choices=sorted(LANGUAGES))

    history = sub.add_parser("history", help="list completed interviews")
    history.add_argument("--role")
    history.add_argument("--date", help="YYYY-MM-DD")
    history.set_defaults(handler=run_history)

    show = sub.add_parser("show", help="show the feedback of a completed interview")
    show.add_argument("session_id")
    show.set_defaults(handler=run_show)
    return parser


def run(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(args.handler(args))
    except ConfigurationError as e:
        log.error(e.message)
        console.print(f"[red]{e.message}[/red]")
        return 1
    except KeyboardInterrupt:
        console.print("\nBye.")
        return 130


if __name__ == "__main__":
    sys.exit(run())
