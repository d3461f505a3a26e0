"""Clause Segmentation - first stage of the analysis pipeline.

This module slices raw contract text into candidate clause units with
character offsets, ready for independent classification.

Structure detection is a heuristic layer, not a grammar:
1. Section headers (numbered, lettered, ARTICLE/SECTION, all-caps lines)
   delimit sections.
2. Each section, and any text before the first header, is split on blank
   lines into paragraphs. The first paragraph of a section keeps its
   number and title.
3. Heading-only and very short fragments attach to the following clause.
   A numbered line with its own terms ("1. Payment: Net 90.") is a clause.
4. Page markers and separator lines are dropped as boilerplate.
"""

import logging
import re
from dataclasses import dataclass

from app.models.clause import ClauseType
from core.errors import EmptyDocumentError
from core.utils.risk_taxonomy import guess_clause_type

logger = logging.getLogger("clauseguard.segmenter")


@dataclass(frozen=True)
class RawClause:
    """A clause span cut from the source document."""
    text: str
    position: int
    section_number: str = ""
    title: str = ""
    type_hint: ClauseType = ClauseType.OTHER

    @property
    def end_position(self) -> int:
        return self.position + len(self.text)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "text": self.text,
            "position": self.position,
            "end_position": self.end_position,
            "section_number": self.section_number,
            "title": self.title,
            "type_hint": self.type_hint.value,
        }


@dataclass
class _Fragment:
    start: int
    end: int
    section_number: str = ""
    title: str = ""


class ClauseSegmenter:
    """Detects clause boundaries in contract text."""

    # (pattern, flags). Group 1 is the section marker, group 2 the title.
    SECTION_PATTERNS = [
        # Numbered sections: "1.", "2)", "2.1", "10.3.2"
        (r'^[ \t]*(\d{1,3}(?:\.\d{1,3})+\.?|\d{1,3}[\.\)])[ \t]+(\S.*)$', 0),
        # Lettered sections: "A.", "B)"
        (r'^[ \t]*([A-Z])[\.\)][ \t]+(\S.*)$', 0),
        # ARTICLE / SECTION / CLAUSE format
        (r'^[ \t]*((?:ARTICLE|SECTION|CLAUSE)[ \t]+[IVXLC\d]+(?:\.\d+)*)[ \t]*[:\.\-]?[ \t]*(.*)$', re.IGNORECASE),
        # All caps headings on their own line
        (r'^[ \t]*()([A-Z][A-Z0-9&,/\- ]{3,60}[A-Z0-9])[ \t]*:?[ \t]*$', 0),
    ]

    BOILERPLATE_PATTERNS = [
        r'^-*\s*page\s+\d+(\s+of\s+\d+)?\s*-*$',
        r'^[\-_=\*\s]+$',
    ]

    PARAGRAPH_BREAK = re.compile(r'\n[ \t]*\n\s*')

    # Title followed by body text on the same line: "Payment: Net 90."
    INLINE_TERMS = re.compile(r'[.;:][ \t]+\S')

    def __init__(self, min_clause_chars: int = 15) -> None:
        """Initialize the clause segmenter.

        Args:
            min_clause_chars: Fragments shorter than this attach to a neighbour.
        """
        self.min_clause_chars = min_clause_chars
        self._compiled_patterns = [
            re.compile(p, re.MULTILINE | flags) for p, flags in self.SECTION_PATTERNS
        ]
        self._boilerplate = [re.compile(p, re.IGNORECASE) for p in self.BOILERPLATE_PATTERNS]

    def segment(self, text: str) -> list[RawClause]:
        """Split contract text into ordered clause spans.

        Args:
            text: Full contract text.

        Returns:
            Clauses with strictly increasing positions and non-empty text.

        Raises:
            EmptyDocumentError: If the text is empty or whitespace-only.
        """
        if not text or not text.strip():
            raise EmptyDocumentError("Contract text is empty")

        headers = self._find_section_headers(text)
        fragments: list[_Fragment] = []

        if not headers:
            fragments.extend(self._split_paragraphs(text, 0, len(text)))
        else:
            first_start = headers[0][0]
            if text[:first_start].strip():
                fragments.extend(self._split_paragraphs(text, 0, first_start))

            for i, (start, section_num, title) in enumerate(headers):
                end = headers[i + 1][0] if i + 1 < len(headers) else len(text)
                paragraphs = self._split_paragraphs(text, start, end)
                for paragraph in paragraphs:
                    paragraph.section_number = section_num
                paragraphs[0].title = title
                fragments.extend(paragraphs)

        fragments = [f for f in (self._trim(text, f) for f in fragments) if f is not None]
        fragments = self._attach_headings(text, fragments)

        clauses = []
        for fragment in fragments:
            clause_text = text[fragment.start:fragment.end]
            clauses.append(RawClause(
                text=clause_text,
                position=fragment.start,
                section_number=fragment.section_number,
                title=fragment.title,
                type_hint=guess_clause_type(fragment.title, clause_text),
            ))

        logger.debug(f"Segmented {len(text)} chars into {len(clauses)} clauses")
        return clauses

    def _find_section_headers(self, text: str) -> list[tuple[int, str, str]]:
        """Find all section headers in the text.

        Returns:
            List of (line_start, section_number, title) tuples, by position.
        """
        by_start: dict[int, tuple[int, str, str]] = {}

        for pattern in self._compiled_patterns:
            for match in pattern.finditer(text):
                # Anchor at the first non-blank character of the header line
                start = match.start(1) if match.group(1) else match.start(2)
                if start in by_start:
                    continue
                section_num = match.group(1).strip()
                title = (match.group(2) or "").strip()
                if self._is_boilerplate(text[match.start():match.end()].strip()):
                    continue
                by_start[start] = (start, section_num, title)

        return [by_start[k] for k in sorted(by_start)]

    def _split_paragraphs(self, text: str, start: int, end: int) -> list[_Fragment]:
        """Split ``text[start:end]`` on blank lines."""
        fragments = []
        cursor = start
        for match in self.PARAGRAPH_BREAK.finditer(text, start, end):
            fragments.append(_Fragment(start=cursor, end=match.start()))
            cursor = match.end()
        fragments.append(_Fragment(start=cursor, end=end))
        return fragments

    def _trim(self, text: str, fragment: _Fragment) -> _Fragment | None:
        """Strip surrounding whitespace, dropping empty and boilerplate spans."""
        span = text[fragment.start:fragment.end]
        stripped = span.strip()
        if not stripped or not any(ch.isalnum() for ch in stripped):
            return None
        if self._is_boilerplate(stripped):
            return None
        lead = len(span) - len(span.lstrip())
        fragment.start += lead
        fragment.end = fragment.start + len(stripped)
        return fragment

    def _is_boilerplate(self, text: str) -> bool:
        return any(p.match(text) for p in self._boilerplate)

    def _is_heading_only(self, text: str, title: str = "") -> bool:
        """A single short line that introduces the following text."""
        if "\n" in text:
            return False
        if len(text) < self.min_clause_chars:
            return True
        if title and self.INLINE_TERMS.search(title):
            return False
        words = text.split()
        if len(words) > 8:
            return False
        return not text.endswith((".", ";", "!", "?")) or len(words) <= 4

    def _attach_headings(self, text: str, fragments: list[_Fragment]) -> list[_Fragment]:
        """Merge heading-only or tiny fragments into their neighbour."""
        result: list[_Fragment] = []
        pending: _Fragment | None = None

        for fragment in fragments:
            if pending is not None:
                fragment = _Fragment(
                    start=pending.start,
                    end=fragment.end,
                    section_number=pending.section_number or fragment.section_number,
                    title=pending.title or fragment.title,
                )
                pending = None

            if self._is_heading_only(text[fragment.start:fragment.end], fragment.title):
                pending = fragment
                continue
            result.append(fragment)

        if pending is not None:
            if result:
                last = result[-1]
                result[-1] = _Fragment(
                    start=last.start,
                    end=pending.end,
                    section_number=last.section_number,
                    title=last.title,
                )
            else:
                result.append(pending)

        return result

    def extract_to_json(self, text: str) -> dict:
        """Segment and return a JSON-serializable structure."""
        clauses = self.segment(text)

        return {
            "total_clauses": len(clauses),
            "clause_types": sorted({c.type_hint.value for c in clauses}),
            "clauses": [c.to_dict() for c in clauses],
        }


# Global instance for dependency injection
clause_segmenter = ClauseSegmenter()
