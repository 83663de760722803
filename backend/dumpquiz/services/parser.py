"""PDF parser for extracting questions from exam-dump PDFs.

Dumps follow a loose layout::

    NO.12 Which service ... ?
    A. First option
    B. Second option
    Answer: A B
    Explanation: ...

Text is pulled page by page, page furniture is stripped, and the result is
cut into one block per ``NO.<n>`` marker. Blocks that cannot be turned into a
valid question are dropped instead of failing the whole document.
"""
import io
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from ..config import PAGE_BOILERPLATE_PATTERN
from ..models import Choice, Question

logger = logging.getLogger(__name__)

# Standalone page number at the very end of a page
PAGE_NUMBER_PATTERN = re.compile(r'\s+\d+\s*\Z')

MAX_CHOICES = 6


def normalize_page(text: str, boilerplate: Optional[re.Pattern] = None) -> str:
    """Remove repeating header text and the trailing page number of one page."""
    pattern = boilerplate or PDFParser.BOILERPLATE
    text = pattern.sub('', text)
    return PAGE_NUMBER_PATTERN.sub(' ', text)


def normalize_pages(pages: Iterable[str], boilerplate: Optional[re.Pattern] = None) -> str:
    """Normalize every page and join them into one logical document."""
    return "\n".join(normalize_page(page, boilerplate) for page in pages)


def collapse_whitespace(text: str) -> str:
    return re.sub(r'\s+', ' ', text).strip()


@dataclass
class ParseReport:
    """Report of document parsing results."""
    filename: str = ""
    total_blocks: int = 0
    questions: List[Question] = field(default_factory=list)
    dropped: Counter = field(default_factory=Counter)

    @property
    def valid_questions(self) -> int:
        return len(self.questions)

    @property
    def dropped_blocks(self) -> int:
        return sum(self.dropped.values())

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "total_blocks": self.total_blocks,
            "valid_questions": self.valid_questions,
            "dropped_blocks": self.dropped_blocks,
            "drop_reasons": dict(self.dropped),
        }


class PDFParser:
    """Parser for exam dumps using the ``NO.<n>`` question layout."""

    BOILERPLATE = re.compile(PAGE_BOILERPLATE_PATTERN, re.IGNORECASE)

    # Lookahead split keeps the marker at the start of each block
    BLOCK_SPLIT = re.compile(r'(?=NO\.\d+\s)')
    QUESTION_START = re.compile(r'^NO\.(\d+)\s')
    ANSWER_PATTERN = re.compile(
        r'Answer:\s*([A-F](?:\s+[A-F])*)\s*(?:Explanation|\Z)',
        re.IGNORECASE
    )
    ANSWER_LABEL = re.compile(r'Answer:', re.IGNORECASE)
    EXPLANATION_PATTERN = re.compile(
        r'Explanation:\s*(.*?)(?=NO\.\d+|\Z)',
        re.IGNORECASE | re.DOTALL
    )
    # Choice letters are upper-case only, answer letters may be either case
    CHOICE_PATTERN = re.compile(
        r'\b([A-F])\.\s+(.*?)(?=\b[A-F]\.\s|Answer:|Explanation:|\Z)',
        re.DOTALL
    )
    QUESTION_TEXT_PATTERN = re.compile(
        r'^NO\.\d+\s+(.*?)(?=\b[A-F]\.\s)',
        re.DOTALL
    )

    def __init__(self, boilerplate: Optional[str] = None):
        if boilerplate is not None:
            self.boilerplate = re.compile(boilerplate, re.IGNORECASE)
        else:
            self.boilerplate = self.BOILERPLATE

    def parse_pdf(self, data: bytes, filename: str = "") -> ParseReport:
        """Extract text from PDF bytes and parse it into questions."""
        pages = self.extract_pages(data)
        report = self.parse_pages(pages)
        report.filename = filename
        logger.info(
            f"Parsed {filename or 'document'}: {report.valid_questions} questions, "
            f"{report.dropped_blocks} blocks dropped"
        )
        return report

    def parse_pages(self, pages: Iterable[str]) -> ParseReport:
        return self.parse_document(normalize_pages(pages, self.boilerplate))

    def extract_pages(self, data: bytes) -> List[str]:
        """Extract plain text per page using PyMuPDF, falling back to pdfplumber."""
        try:
            import fitz  # PyMuPDF
            with fitz.open(stream=data, filetype="pdf") as doc:
                return [page.get_text("text", sort=True) for page in doc]
        except Exception as e:
            logger.warning(f"PyMuPDF failed: {e}, trying pdfplumber")

        import pdfplumber
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            return [page.extract_text(x_tolerance=3, y_tolerance=3) or "" for page in pdf.pages]

    def split_into_blocks(self, text: str) -> List[str]:
        """Split the document at every question marker."""
        return [b for b in self.BLOCK_SPLIT.split(text) if b]

    def parse_document(self, text: str) -> ParseReport:
        """Parse normalized document text. Never raises on malformed blocks."""
        report = ParseReport()

        for block in self.split_into_blocks(text):
            if not self.QUESTION_START.match(block):
                # Preamble before the first marker
                continue
            report.total_blocks += 1

            question, reason = self.parse_block(block)
            if question is None:
                report.dropped[reason] += 1
                continue
            report.questions.append(question)

        # sorted() is stable, so duplicate numbers keep document order
        report.questions = sorted(report.questions, key=lambda q: q.number)
        return report

    def parse_block(self, block: str):
        """Parse one block into ``(question, None)`` or ``(None, drop_reason)``."""
        start = self.QUESTION_START.match(block)
        if not start:
            return None, "no_marker"
        number = int(start.group(1))

        answer = self._extract_answers(block)
        if not answer:
            return None, "missing_answer"

        pre_answer = self.ANSWER_LABEL.split(block, maxsplit=1)[0]
        choices = self._extract_choices(pre_answer)
        text = self._extract_question_text(pre_answer)

        if not text:
            return None, "missing_text"
        if len(choices) < 2:
            return None, "broken_choices"

        letters = [c.letter for c in choices]
        if len(letters) > MAX_CHOICES:
            return None, "too_many_choices"
        if len(set(letters)) != len(letters):
            return None, "duplicate_choices"
        if not set(answer) <= set(letters):
            return None, "answer_not_in_choices"

        return Question(
            number=number,
            text=text,
            choices=tuple(choices),
            answer=tuple(answer),
            explanation=self._extract_explanation(block),
        ), None

    def _extract_answers(self, block: str) -> List[str]:
        """Extract correct answer letters, uppercased and de-duplicated."""
        match = self.ANSWER_PATTERN.search(block)
        if not match:
            return []
        letters = [a.upper() for a in match.group(1).split()]
        return list(dict.fromkeys(letters))

    def _extract_explanation(self, block: str) -> str:
        match = self.EXPLANATION_PATTERN.search(block)
        return match.group(1).strip() if match else ""

    def _extract_choices(self, pre_answer: str) -> List[Choice]:
        return [
            Choice(letter=m.group(1), text=collapse_whitespace(m.group(2)))
            for m in self.CHOICE_PATTERN.finditer(pre_answer)
        ]

    def _extract_question_text(self, pre_answer: str) -> str:
        match = self.QUESTION_TEXT_PATTERN.search(pre_answer)
        return collapse_whitespace(match.group(1)) if match else ""


def parse_questions(text: str) -> List[Question]:
    """Parse normalized document text into questions sorted by number."""
    return PDFParser().parse_document(text).questions

