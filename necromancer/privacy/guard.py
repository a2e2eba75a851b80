"""Result de-identification guard.

Runs on the raw analysis text *before* any JSON parsing:

1. Restore every known token to its real identifier.
2. Redact every remaining domain-like string that is not provably part of
   this run's mapping (allow-list filter, not NLP).

Only label characters delimit a domain-like match, so ``_``, ``.`` and ``@``
never shield one. Characters of a match that fall inside a restored
identifier are kept as they are. Each remaining segment is kept only if it
equals a known identifier (or the host/domain part of one); otherwise it
becomes the marker. Token-shaped strings contain no dot and never match.
"""

from __future__ import annotations

import re
from typing import ClassVar

from necromancer.logging.logger import Log
from necromancer.privacy.tokenizer import Tokenizer


class DeidentificationGuard:
    """Detokenizes analysis output and redacts unknown domain-like strings."""

    DEFAULT_MARKER: ClassVar[str] = "[REDACTED]"

    _LABEL: ClassVar[str] = r"[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?"
    _DOMAIN_RE: ClassVar[re.Pattern[str]] = re.compile(
        rf"(?<![a-z0-9-]){_LABEL}(?:\.{_LABEL})*\.[a-z]{{2,}}(?![a-z0-9-])",
        re.IGNORECASE,
    )

    def __init__(self, tokenizer: Tokenizer, marker: str = DEFAULT_MARKER) -> None:
        self._tokenizer = tokenizer
        self._marker = marker

    def deidentify(self, raw_text: str | None) -> str:
        """Return *raw_text* with tokens restored and unknown domains redacted.

        Never raises. On an internal failure every domain-like string in the
        input is redacted and tokens are left unresolved.
        """
        if not raw_text:
            return ""
        try:
            return self._run(raw_text)
        except Exception as exc:
            Log.error(f"De-identification failed, redacting conservatively: {exc}")
            return self._DOMAIN_RE.sub(lambda _: self._marker, raw_text)

    def _run(self, raw_text: str) -> str:
        restored, spans = self._tokenizer.detokenize_with_spans(raw_text)
        allowed = self._allowed_values()

        redactions = 0

        def _replace(match: re.Match[str]) -> str:
            nonlocal redactions
            cleaned, count = self._clean_match(match, spans, allowed)
            redactions += count
            return cleaned

        cleaned = self._DOMAIN_RE.sub(_replace, restored)
        if redactions:
            Log.warning(f"Redacted {redactions} unknown domain-like strings from analysis output")
        return cleaned

    def _clean_match(
        self,
        match: re.Match[str],
        spans: list[tuple[int, int]],
        allowed: frozenset[str],
    ) -> tuple[str, int]:
        """Keep restored characters; vet every segment outside them."""
        text = match.string
        start, end = match.span()
        pieces: list[str] = []
        redactions = 0
        cursor = start
        # spans are ascending and disjoint
        for span_start, span_end in spans:
            if span_end <= cursor or span_start >= end:
                continue
            if span_start > cursor:
                piece, count = self._vet_segment(text[cursor:span_start], allowed)
                pieces.append(piece)
                redactions += count
            inner_end = min(span_end, end)
            pieces.append(text[max(span_start, cursor):inner_end])
            cursor = inner_end
        if cursor < end:
            piece, count = self._vet_segment(text[cursor:end], allowed)
            pieces.append(piece)
            redactions += count
        return "".join(pieces), redactions

    def _vet_segment(self, segment: str, allowed: frozenset[str]) -> tuple[str, int]:
        core = segment.strip(".")
        if not core or Tokenizer.normalize(core) in allowed:
            return segment, 0
        lead = segment[: len(segment) - len(segment.lstrip("."))]
        trail = segment[len(segment.rstrip(".")):]
        return f"{lead}{self._marker}{trail}", 1

    def _allowed_values(self) -> frozenset[str]:
        """Known identifiers plus the host / domain suffixes they contain."""
        allowed: set[str] = set()
        for value in self._tokenizer.known_values():
            allowed.add(value)
            host = value.rsplit("@", 1)[-1]
            labels = host.split(".")
            for i in range(len(labels) - 1):
                allowed.add(".".join(labels[i:]))
        return frozenset(allowed)
