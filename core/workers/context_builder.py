"""Context Builder - minimal clause text for classification backends.

Clause text is cleaned before it reaches a language model: page markers,
draft stamps and template placeholders are dropped and cross-references
are masked, so the judge scores the clause itself rather than pointers to
text it cannot see.
"""

import re
from dataclasses import dataclass
from typing import Optional


@dataclass
class ContextConfig:
    """Configuration for context building."""
    max_text_length: int = 2000  # ~500 tokens
    strip_page_numbers: bool = True
    strip_cross_references: bool = True
    strip_headers_footers: bool = True
    strip_placeholders: bool = True
    normalize_whitespace: bool = True


@dataclass(frozen=True)
class _Rule:
    option: str
    pattern: re.Pattern
    replacement: str


class ContextBuilder:
    """Applies the enabled cleaning rules in order, then truncates."""

    # (config option, pattern, flags, replacement)
    RULES = [
        ("strip_page_numbers", r'-*\s*Page\s*\d+\s*(of\s*\d+)?\s*-*', re.IGNORECASE, ' '),
        ("strip_cross_references", r'(?:[Ss]ee|[Aa]s\s+defined\s+in|[Pp]ursuant\s+to)\s+'
                                   r'(?:[Ss]ection|[Aa]rticle|[Cc]lause)\s+[\d\.]*\d', 0, '[REF]'),
        ("strip_headers_footers", r'^\s*(?:-{3,}|(?:DRAFT|CONFIDENTIAL)\s*-*)\s*$',
                                  re.MULTILINE | re.IGNORECASE, ''),
        # Unfilled template blanks: "[●]", "[insert date]", "____"
        ("strip_placeholders", r'\[(?:●|•|\.{3}|insert[^\]]*)\]|_{4,}', re.IGNORECASE, '[BLANK]'),
    ]

    def __init__(self, config: Optional[ContextConfig] = None):
        self.config = config or ContextConfig()
        self._rules = [
            _Rule(option, re.compile(pattern, flags), replacement)
            for option, pattern, flags, replacement in self.RULES
        ]

    def build_text(self, text: str) -> str:
        """Sanitize and truncate clause text.

        Falls back to the whitespace-normalised original if sanitizing
        removes everything.
        """
        clean_text = self._sanitize(text) or " ".join(text.split())
        return self._truncate(clean_text, self.config.max_text_length)

    def _sanitize(self, text: str) -> str:
        result = text
        for rule in self._rules:
            if getattr(self.config, rule.option):
                result = rule.pattern.sub(rule.replacement, result)

        if self.config.normalize_whitespace:
            result = re.sub(r'\n{3,}', '\n\n', result)
            result = re.sub(r'[ \t]+', ' ', result)
        return result.strip()

    def _truncate(self, text: str, max_length: int) -> str:
        """Cut at a word boundary when one is close to the limit."""
        if len(text) <= max_length:
            return text

        truncated = text[:max_length]
        last_space = truncated.rfind(' ')
        if last_space > max_length * 0.8:
            truncated = truncated[:last_space]
        return truncated + "..."


context_builder = ContextBuilder()
