import re
from typing import List, Optional, Sequence

from models.feedback import FeedbackSection
from services.prompts import REPORT_HEADINGS

FALLBACK_TITLE = "Feedback Report"


class FeedbackFormatter:
    """Splits a plain-text feedback report into titled sections.

    Headings come from a fixed vocabulary and may appear in any order or not
    at all. A heading counts only when it stands on its own line, optionally
    followed by a colon. Text before the first heading is dropped, as is a
    heading with nothing after it. When no heading carries content the whole
    report comes back as one "Feedback Report" section.
    """

    def __init__(self, headings: Sequence[str] = REPORT_HEADINGS):
        self.headings = tuple(headings)
        alternatives = "|".join(re.escape(h) for h in self.headings)
        self._splitter = re.compile(r"^[ \t]*(" + alternatives + r")[ \t]*:?[ \t]*$", re.MULTILINE)

    def parse(self, raw_text: Optional[str]) -> List[FeedbackSection]:
        raw_text = raw_text or ""
        fragments = [f for f in self._splitter.split(raw_text) if f.strip()]

        sections: List[FeedbackSection] = []
        title = None
        for fragment in fragments:
            if fragment in self.headings:
                title = fragment
                continue
            if title is None:
                continue  # preamble
            sections.append(FeedbackSection(title=title, content=fragment.strip()))
            title = None

        if not sections:
            return [FeedbackSection(title=FALLBACK_TITLE, content=raw_text)]
        return sections


_default = FeedbackFormatter()


def parse_feedback(raw_text: Optional[str]) -> List[FeedbackSection]:
    return _default.parse(raw_text)
