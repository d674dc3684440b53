# ========================================
# services/transcription_service.py
# Speech capture seam and the pending-answer buffer
# ========================================

from typing import Callable, Protocol

from utils.logger import get_logger

logger = get_logger("TranscriptionService")


class TranscriptSource(Protocol):
    """Anything that turns speech into finalized text fragments.

    Capture is started and stopped by the presentation layer; the core only
    subscribes to finalized fragments.
    """

    @property
    def is_listening(self) -> bool: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def on_final(self, callback: Callable[[str], None]) -> None: ...


class AnswerBuffer:
    """The candidate's not-yet-submitted input, typed or dictated."""

    def __init__(self, text: str = ""):
        self._text = text

    @property
    def text(self) -> str:
        return self._text

    def set(self, text: str) -> None:
        self._text = text

    def append_fragment(self, fragment: str) -> None:
        fragment = fragment.strip()
        if not fragment:
            return
        existing = self._text.strip()
        self._text = f"{existing} {fragment}" if existing else fragment

    def clear(self) -> None:
        self._text = ""

    def bind(self, source: TranscriptSource) -> None:
        source.on_final(self.append_fragment)
        logger.info("Transcript source attached to answer buffer")
