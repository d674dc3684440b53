import asyncio

import pytest

from models.interview import Modality, Sender
from models.session import InterviewPhase
from services.history_service import SessionStore
from services.interview_service import CANCEL_PROMPT, SessionStateMachine
from services.prompts import START_TRIGGER
from tests.fakes import FEEDBACK_TEXT, FakeLanguageModel, MemorySlot, question_payload
from utils.errors import GenerationError


def _machine(llm, store, **kwargs) -> SessionStateMachine:
    return SessionStateMachine(llm, store, **kwargs)


async def _active_conversation(llm, store) -> SessionStateMachine:
    machine = _machine(llm, store)
    snap = await machine.start_conversation("Acme", "Engineer", "https://acme.example")
    assert snap.phase == InterviewPhase.ACTIVE
    return machine


class FakeTranscriptSource:
    def __init__(self):
        self.callbacks = []
        self.is_listening = False

    def start(self):
        self.is_listening = True

    def stop(self):
        self.is_listening = False

    def on_final(self, callback):
        self.callbacks.append(callback)

    def emit(self, text):
        for callback in self.callbacks:
            callback(text)


# ---------------------------- #
# Setup
# ---------------------------- #


async def test_start_conversation_seeds_session(store):
    llm = FakeLanguageModel(chat_replies=["Why Acme?"])
    machine = _machine(llm, store, language="de")

    snap = await machine.start_conversation("Acme", "Engineer", "https://acme.example")

    assert snap.phase == InterviewPhase.ACTIVE
    assert snap.modality == Modality.CONVERSATION
    session = snap.session
    assert session.id.startswith("session-")
    assert session.language == "de"
    assert session.date
    assert session.feedback_report is None
    assert session.questions_and_answers is None
    assert [(m.sender, m.text) for m in session.messages] == [(Sender.AI, "Why Acme?")]


@pytest.mark.parametrize("company,role,url", [("", "Engineer", "https://a"), ("Acme", "   ", "https://a"), ("Acme", "Engineer", "")])
async def test_missing_setup_field_is_validation_failure(store, company, role, url):
    llm = FakeLanguageModel()
    machine = _machine(llm, store)

    snap = await machine.start_conversation(company, role, url)

    assert snap.phase == InterviewPhase.SETUP
    assert snap.failure.kind == "validation"
    assert llm.chats == []


async def test_unknown_language_is_validation_failure(store):
    snap = await _machine(FakeLanguageModel(), store).start_batch("Chef", language="xx")

    assert snap.phase == InterviewPhase.SETUP
    assert snap.failure.kind == "validation"


async def test_empty_first_question_reaches_error_and_retry_reuses_inputs(store):
    llm = FakeLanguageModel(chat_replies=["", "Why Acme?"])
    machine = _machine(llm, store)

    snap = await machine.start_conversation("Acme", "Engineer", "https://acme.example")

    assert snap.phase == InterviewPhase.ERROR
    assert snap.failure.kind == "generation"
    assert snap.session is None
    assert machine.context.company == "Acme"
    assert await store.get_all() == []

    snap = await machine.retry()

    assert snap.phase == InterviewPhase.ACTIVE
    assert snap.session.company == "Acme"
    assert snap.session.company_url == "https://acme.example"
    assert "Engineer" in llm.chats[-1].persona


async def test_start_again_after_failed_start(store):
    llm = FakeLanguageModel(chat_replies=[GenerationError("down"), "Hello"])
    machine = _machine(llm, store)
    await machine.start_conversation("Acme", "Engineer", "https://acme.example")

    snap = await machine.start_conversation("Acme", "Engineer", "https://acme.example")

    assert snap.phase == InterviewPhase.ACTIVE


# ---------------------------- #
# Conversation turns
# ---------------------------- #


async def test_blank_turn_is_rejected(store):
    llm = FakeLanguageModel(chat_replies=["Q1"])
    machine = await _active_conversation(llm, store)

    snap = await machine.submit_turn("   ")

    assert snap.phase == InterviewPhase.ACTIVE
    assert snap.failure.kind == "validation"
    assert llm.sent_messages == [START_TRIGGER]
    assert len(snap.session.messages) == 1


async def test_failed_turn_keeps_input_and_retry_sends_it_once(store):
    llm = FakeLanguageModel(chat_replies=["Q1", GenerationError("timeout"), "Q2"])
    machine = await _active_conversation(llm, store)

    snap = await machine.submit_turn("My answer")

    assert snap.phase == InterviewPhase.ERROR
    assert snap.pending_input == "My answer"
    assert [m.text for m in snap.session.messages] == ["Q1"]

    snap = await machine.retry()

    assert snap.phase == InterviewPhase.ACTIVE
    assert snap.pending_input == ""
    assert [m.text for m in snap.session.messages] == ["Q1", "My answer", "Q2"]


async def test_turn_submitted_from_error_state(store):
    llm = FakeLanguageModel(chat_replies=["Q1", GenerationError("timeout"), "Q2"])
    machine = await _active_conversation(llm, store)
    await machine.submit_turn("Lost answer")

    snap = await machine.submit_turn("Rephrased answer")

    assert snap.phase == InterviewPhase.ACTIVE
    assert snap.failure is None
    assert [m.text for m in snap.session.messages] == ["Q1", "Rephrased answer", "Q2"]


async def test_second_turn_rejected_while_first_in_flight(store):
    gate = asyncio.get_running_loop().create_future()
    llm = FakeLanguageModel(chat_replies=["Q1", gate])
    machine = await _active_conversation(llm, store)

    first = asyncio.create_task(machine.submit_turn("first"))
    await asyncio.sleep(0)
    assert machine.snapshot().phase == InterviewPhase.LOADING
    assert machine.in_flight

    snap = await machine.submit_turn("second")

    assert snap.phase == InterviewPhase.LOADING
    assert llm.sent_messages == [START_TRIGGER, "first"]

    gate.set_result("Q2")
    snap = await first
    assert snap.phase == InterviewPhase.ACTIVE
    assert [m.text for m in snap.session.messages] == ["Q1", "first", "Q2"]


# ---------------------------- #
# Finishing
# ---------------------------- #


@pytest.mark.parametrize("command", ["End interview", "end interview", "END INTERVIEW"])
async def test_end_command_concludes_and_persists(store, command):
    llm = FakeLanguageModel(chat_replies=["Q1"], text_replies=[FEEDBACK_TEXT])
    machine = await _active_conversation(llm, store)

    snap = await machine.submit_turn(command)

    assert snap.phase == InterviewPhase.FEEDBACK
    assert snap.is_complete
    assert llm.sent_messages == [START_TRIGGER]
    assert len(llm.text_prompts) == 1
    stored = await store.get_by_id(snap.completed_session_id)
    assert stored.feedback_report == FEEDBACK_TEXT
    assert stored.messages is not None
    assert stored.questions_and_answers is None
    assert [s.title for s in machine.feedback_sections] == ["Overall Assessment", "Key Strengths", "Areas for Improvement"]


async def test_failed_finish_is_not_persisted_and_can_be_retried(store):
    llm = FakeLanguageModel(chat_replies=["Q1", "Q2"], text_replies=["", FEEDBACK_TEXT])
    machine = await _active_conversation(llm, store)
    await machine.submit_turn("An answer")

    snap = await machine.finish()

    assert snap.phase == InterviewPhase.ERROR
    assert snap.session.feedback_report is None
    assert len(snap.session.messages) == 3
    assert await store.get_all() == []

    snap = await machine.retry()

    assert snap.phase == InterviewPhase.FEEDBACK
    assert [s.id for s in await store.get_all()] == [snap.session.id]


async def test_failed_end_command_retry_does_not_duplicate_it(store):
    llm = FakeLanguageModel(chat_replies=["Q1"], text_replies=[GenerationError("down"), FEEDBACK_TEXT])
    machine = await _active_conversation(llm, store)

    snap = await machine.submit_turn("End interview")
    assert snap.phase == InterviewPhase.ERROR

    snap = await machine.retry()

    assert snap.phase == InterviewPhase.FEEDBACK
    assert [m.text for m in snap.session.messages] == ["Q1", "End interview"]


async def test_finish_without_session_is_noop(store):
    llm = FakeLanguageModel()
    machine = _machine(llm, store)

    snap = await machine.finish()

    assert snap.phase == InterviewPhase.SETUP
    assert snap.failure is None
    assert llm.text_prompts == []


async def test_completed_machine_ignores_further_input(store):
    llm = FakeLanguageModel(chat_replies=["Q1"], text_replies=[FEEDBACK_TEXT])
    machine = await _active_conversation(llm, store)
    await machine.finish()

    await machine.submit_turn("one more thing")
    await machine.finish()

    assert len(llm.text_prompts) == 1
    assert len(await store.get_all()) == 1


async def test_storage_failure_still_shows_feedback():
    store = SessionStore(MemorySlot(fail_writes=True))
    llm = FakeLanguageModel(chat_replies=["Q1"], text_replies=[FEEDBACK_TEXT])
    machine = await _active_conversation(llm, store)

    snap = await machine.finish()

    assert snap.phase == InterviewPhase.FEEDBACK
    assert snap.session.feedback_report == FEEDBACK_TEXT
    assert machine.feedback_sections


# ---------------------------- #
# Cancel
# ---------------------------- #


async def test_cancel_requires_confirmation(store):
    llm = FakeLanguageModel(chat_replies=["Q1"])
    machine = await _active_conversation(llm, store)
    prompts = []

    snap = machine.cancel(lambda message: prompts.append(message) or False)

    assert prompts == [CANCEL_PROMPT]
    assert snap.phase == InterviewPhase.ACTIVE
    assert snap.session is not None

    snap = machine.cancel(lambda message: True)

    assert snap.phase == InterviewPhase.SETUP
    assert snap.session is None
    assert await store.get_all() == []


async def test_result_arriving_after_cancel_is_discarded(store):
    gate = asyncio.get_running_loop().create_future()
    llm = FakeLanguageModel(chat_replies=[gate])
    machine = _machine(llm, store)

    task = asyncio.create_task(machine.start_conversation("Acme", "Engineer", "https://acme.example"))
    await asyncio.sleep(0)
    assert machine.snapshot().phase == InterviewPhase.LOADING

    machine.cancel(lambda message: True)
    gate.set_result("Late question")
    snap = await task

    assert snap.phase == InterviewPhase.SETUP
    assert machine.context is None
    assert snap.session is None


# ---------------------------- #
# Question batch
# ---------------------------- #


async def test_batch_interview_end_to_end(store):
    llm = FakeLanguageModel(structured_replies=[question_payload(5)], text_replies=[FEEDBACK_TEXT])
    machine = _machine(llm, store)

    snap = await machine.start_batch("Software Engineer")
    assert snap.phase == InterviewPhase.ACTIVE
    assert snap.question_count == 5
    assert snap.session.company == "General Practice"

    for i in range(5):
        assert snap.current_question.id == f"q{i + 1}"
        snap = await machine.record_answer(f"Answer {i + 1}")

    assert snap.phase == InterviewPhase.FEEDBACK
    assert len(llm.text_prompts) == 1
    answers = snap.session.questions_and_answers
    assert [(a.question_id, a.answer_text) for a in answers] == [(f"q{i}", f"Answer {i}") for i in range(1, 6)]
    assert snap.session.messages is None
    assert snap.session.feedback_report is not None
    stored = await store.get_by_id(snap.session.id)
    assert len(stored.questions_and_answers) == 5


async def test_blank_answer_does_not_advance(store):
    llm = FakeLanguageModel(structured_replies=[question_payload(2)])
    machine = _machine(llm, store, question_count=2)
    await machine.start_batch("Chef")

    snap = await machine.record_answer("")

    assert snap.failure.kind == "validation"
    assert snap.question_index == 0
    assert snap.session.questions_and_answers == []


async def test_batch_cannot_finish_early(store):
    llm = FakeLanguageModel(structured_replies=[question_payload(2)], text_replies=[FEEDBACK_TEXT])
    machine = _machine(llm, store, question_count=2)
    await machine.start_batch("Chef")
    await machine.record_answer("Only one")

    snap = await machine.finish()

    assert snap.phase == InterviewPhase.ACTIVE
    assert llm.text_prompts == []


async def test_batch_schema_mismatch_then_retry(store):
    llm = FakeLanguageModel(structured_replies=[{"questions": "nope"}, question_payload(5)])
    machine = _machine(llm, store)

    snap = await machine.start_batch("Nurse")

    assert snap.phase == InterviewPhase.ERROR
    assert snap.failure.kind == "schema_mismatch"
    assert snap.question_count == 0

    snap = await machine.retry()

    assert snap.phase == InterviewPhase.ACTIVE
    assert snap.question_count == 5


async def test_batch_feedback_failure_keeps_answers(store):
    llm = FakeLanguageModel(structured_replies=[question_payload(1)], text_replies=[GenerationError("down"), FEEDBACK_TEXT])
    machine = _machine(llm, store, question_count=1)
    await machine.start_batch("Chef")

    snap = await machine.record_answer("Mise en place")

    assert snap.phase == InterviewPhase.ERROR
    assert [a.answer_text for a in snap.session.questions_and_answers] == ["Mise en place"]
    assert await store.get_all() == []

    snap = await machine.retry()

    assert snap.phase == InterviewPhase.FEEDBACK
    assert len(snap.session.questions_and_answers) == 1


async def test_dictated_fragments_fill_the_answer(store):
    llm = FakeLanguageModel(structured_replies=[question_payload(2)])
    machine = _machine(llm, store, question_count=2)
    source = FakeTranscriptSource()
    machine.attach_transcript_source(source)
    await machine.start_batch("Chef")

    source.emit("I plan the menu")
    source.emit(" around the season. ")
    assert machine.snapshot().pending_input == "I plan the menu around the season."

    snap = await machine.record_answer()

    assert snap.session.questions_and_answers[0].answer_text == "I plan the menu around the season."
    assert snap.pending_input == ""
