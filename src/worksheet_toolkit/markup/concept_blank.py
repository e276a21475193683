"""
Module: markup.concept_blank

Purpose:
    Sequential numbering of concept blanks across a whole document and the
    derived answer-key block built from the recorded answers.

    The tracker is reset once per full reparse and then mutated in document
    order, so the same document always yields the same indices and answers.

Key Classes:
    - ConceptBlankTracker: counter + answers + is_math flags

Key Functions:
    - concept_answer_text(): Answer recorded for a raw label and body
    - format_answer_key(): "(1) a  (2) $b$" answer key markup
    - sync_answer_block(): Create / update / remove the derived answer block

Dependencies:
    - markup.html_text: Tag stripping for answers

Used By:
    - markup.tokenizer: Records blanks as they are scanned
    - session.EditorSession: Reset per reparse, sync after reparse
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from worksheet_toolkit.core.models import Block, BlockType, Document, CONCEPT_ANSWERS_TAG, new_block_id

from .html_text import strip_html

logger = logging.getLogger(__name__)

ANSWER_BLOCK_LABEL = "개념 빈칸 정답"
ANSWER_SEPARATOR = "  "


def _label_prefix(raw_label: str) -> str:
    """Answer text carried by the label, or "" for numbering placeholders."""
    label = raw_label.strip().lstrip(":_").strip()
    if not label or label == "#" or label.isdigit():
        return ""
    return label


def concept_answer_text(raw_label: str, body: str) -> str:
    """
    Answer recorded for a concept blank.

    A label that is not a numbering placeholder ("#", digits, empty) is
    part of the answer and precedes the body text.

    Example:
        >>> concept_answer_text("_답", "본문")
        '답본문'
        >>> concept_answer_text("#", "<b>x</b>")
        'x'
    """
    return f"{_label_prefix(raw_label)}{strip_html(body)}"


@dataclass
class ConceptBlankTracker:
    """
    Document-wide concept blank counter.

    Attributes:
        counter: Index of the last recorded blank (0 when none)
        answers: Normalized answers, answers[i] belongs to index i + 1
        answers_is_math: Whether each blank was written inside math
    """

    counter: int = 0
    answers: List[str] = field(default_factory=list)
    answers_is_math: List[bool] = field(default_factory=list)

    def reset(self) -> None:
        """Clear all state before a full reparse."""
        self.counter = 0
        self.answers = []
        self.answers_is_math = []

    def record(self, answer: str, *, is_math: bool = False) -> int:
        """
        Record a blank's answer and return its 1-based index.

        Example:
            >>> tracker = ConceptBlankTracker()
            >>> tracker.record("a"), tracker.record("b", is_math=True)
            (1, 2)
        """
        normalized = strip_html(answer)
        self.counter += 1
        self.answers.append(normalized)
        self.answers_is_math.append(is_math)
        return self.counter

    def fingerprint(self) -> str:
        """Stable string used to detect answer changes between reparses."""
        return json.dumps(
            {"answers": self.answers, "isMath": self.answers_is_math},
            ensure_ascii=False,
        )


def _normalize_answer(value: str) -> str:
    return value.replace("\r\n", "\n").replace("\n", " ").strip()


def _wrap_math_answer(value: str, is_math: bool) -> str:
    normalized = _normalize_answer(value)
    if not is_math or not normalized or "$" in normalized:
        return normalized
    return f"${normalized}$"


def format_answer_key(answers: Sequence[str], answers_is_math: Sequence[bool] = ()) -> str:
    """
    Build the answer key markup.

    Example:
        >>> format_answer_key(["a", "x^2"], [False, True])
        '(1) a  (2) $x^2$'
    """
    items = []
    for idx, answer in enumerate(answers):
        is_math = idx < len(answers_is_math) and answers_is_math[idx]
        items.append(f"({idx + 1}) {_wrap_math_answer(answer, is_math)}")
    return ANSWER_SEPARATOR.join(items)


def sync_answer_block(document: Document, tracker: ConceptBlankTracker) -> bool:
    """
    Bring the derived answer block in line with the tracker.

    No answers removes every derived block; otherwise exactly one derived
    block is kept (appended when missing) and its content replaced.

    Returns:
        True if the block list or the answer content changed
    """
    derived = [b for b in document.blocks if b.derived == CONCEPT_ANSWERS_TAG]

    if not tracker.answers:
        if not derived:
            return False
        document.blocks = [b for b in document.blocks if b.derived != CONCEPT_ANSWERS_TAG]
        logger.debug(f"Removed {len(derived)} concept answer block(s)")
        return True

    changed = False
    if len(derived) > 1:
        keep = derived[0]
        document.blocks = [
            b for b in document.blocks if b.derived != CONCEPT_ANSWERS_TAG or b is keep
        ]
        derived = [keep]
        changed = True

    if not derived:
        block = Block(
            id=new_block_id("concept"),
            type=BlockType.ANSWER,
            label=ANSWER_BLOCK_LABEL,
            bg_gray=True,
            derived=CONCEPT_ANSWERS_TAG,
        )
        document.blocks.append(block)
        derived = [block]
        changed = True

    content = format_answer_key(tracker.answers, tracker.answers_is_math)
    block = derived[0]
    if block.content != content:
        block.content = content
        changed = True
    return changed
