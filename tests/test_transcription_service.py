from services.transcription_service import AnswerBuffer


def test_fragments_are_joined_with_single_spaces():
    buffer = AnswerBuffer()

    buffer.append_fragment("Hello")
    buffer.append_fragment("  world ")
    buffer.append_fragment("   ")

    assert buffer.text == "Hello world"


def test_fragment_after_typed_text():
    buffer = AnswerBuffer("I typed this   ")

    buffer.append_fragment("then spoke")

    assert buffer.text == "I typed this then spoke"

