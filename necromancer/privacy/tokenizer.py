"""Deterministic, salted, bidirectional tokenizer for directory identifiers.

Token layout: ``<kind prefix><upper-case hex suffix>``.

1. Normalize the identifier (NFC, trim, casefold) so case variants collapse.
2. Suffix = first 4 hex chars of sha256(normalized + salt).
3. If that token already belongs to another identifier, retry with a
   counter appended to the salt; every 4 retries the suffix grows by one
   hex char. Two identifiers never share a token.
4. Store ``normalized -> token`` and ``token -> first-seen spelling``.

One instance per run. The tables are guarded by a readers-writer lock;
no I/O happens while it is held.
"""

from __future__ import annotations

import hashlib
import re
import secrets
import threading
import unicodedata
from contextlib import contextmanager
from typing import ClassVar, Iterator

from necromancer.graph.models import IdentifierKind
from necromancer.privacy.exceptions import MappingRestoreError
from necromancer.privacy.models import MappingSnapshot


class _ReadWriteLock:
    """Shared readers or one exclusive writer; waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class Tokenizer:
    """Run-scoped bijection between real identifiers and opaque tokens."""

    _SUFFIX_LEN: ClassVar[int] = 4
    _MAX_SUFFIX_LEN: ClassVar[int] = 64
    _RETRIES_PER_LENGTH: ClassVar[int] = 4

    _PREFIXES: ClassVar[dict[IdentifierKind, str]] = {
        IdentifierKind.USER: "ID_U_",
        IdentifierKind.GROUP: "ID_G_",
        IdentifierKind.DOMAIN: "DOM_",
        IdentifierKind.OU: "OU_",
        IdentifierKind.GPO: "GPO_",
        IdentifierKind.SID: "SID_",
        IdentifierKind.CERT_TEMPLATE: "TMPL_",
        IdentifierKind.ENTERPRISE_CA: "CA_",
    }
    _COMPUTER_PREFIXES: ClassVar[dict[int, str]] = {0: "H_T0_", 1: "H_T1_"}
    _COMPUTER_DEFAULT_PREFIX: ClassVar[str] = "H_"

    _ALL_PREFIXES: ClassVar[tuple[str, ...]] = tuple(
        sorted(
            {*_PREFIXES.values(), *_COMPUTER_PREFIXES.values(), _COMPUTER_DEFAULT_PREFIX},
            key=lambda prefix: (-len(prefix), prefix),
        )
    )
    _TOKEN_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"\b(?:"
        + "|".join(re.escape(p) for p in _ALL_PREFIXES)
        + r")[0-9A-F]{4,64}\b"
    )

    def __init__(self, salt: str | None = None) -> None:
        self._salt = salt if salt else secrets.token_hex(16)
        self._forward: dict[str, str] = {}  # normalized real -> token
        self._reverse: dict[str, str] = {}  # token -> first-seen real
        self._collisions = 0
        self._lock = _ReadWriteLock()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def salt(self) -> str:
        with self._lock.read():
            return self._salt

    @property
    def mapping_count(self) -> int:
        with self._lock.read():
            return len(self._forward)

    @property
    def collision_count(self) -> int:
        """Number of suffix collisions resolved so far in this run."""
        with self._lock.read():
            return self._collisions

    def __len__(self) -> int:
        return self.mapping_count

    @classmethod
    def token_prefixes(cls) -> tuple[str, ...]:
        return cls._ALL_PREFIXES

    @staticmethod
    def normalize(identifier: str) -> str:
        """Canonical form used for hashing and identity."""
        if not identifier:
            return ""
        return unicodedata.normalize("NFC", identifier).strip().casefold()

    def lookup(self, token: str) -> str | None:
        """Return the real identifier behind *token*, if known."""
        with self._lock.read():
            return self._reverse.get(token)

    def token_for(self, identifier: str) -> str | None:
        """Return the token already assigned to *identifier*, if any."""
        normalized = self.normalize(identifier)
        with self._lock.read():
            return self._forward.get(normalized)

    def known_values(self) -> frozenset[str]:
        """Normalized forms of every identifier tokenized in this run."""
        with self._lock.read():
            return frozenset(self._forward)

    # ------------------------------------------------------------------
    # Tokenization
    # ------------------------------------------------------------------

    @classmethod
    def prefix_for(cls, kind: IdentifierKind, tier: int | None = None) -> str:
        if kind is IdentifierKind.COMPUTER:
            if tier is None:
                return cls._COMPUTER_DEFAULT_PREFIX
            return cls._COMPUTER_PREFIXES.get(tier, cls._COMPUTER_DEFAULT_PREFIX)
        return cls._PREFIXES[kind]

    def tokenize(
        self,
        identifier: str,
        kind: IdentifierKind,
        tier: int | None = None,
    ) -> str:
        """Return the token for *identifier*, assigning one on first sight.

        Empty identifiers return ``""`` and are not recorded.
        """
        normalized = self.normalize(identifier)
        if not normalized:
            return ""

        with self._lock.read():
            existing = self._forward.get(normalized)
        if existing is not None:
            return existing

        prefix = self.prefix_for(kind, tier)
        display = unicodedata.normalize("NFC", identifier).strip()
        with self._lock.write():
            # Another writer may have assigned it between the two locks.
            existing = self._forward.get(normalized)
            if existing is not None:
                return existing
            token = self._generate(normalized, prefix)
            self._forward[normalized] = token
            self._reverse[token] = display
            return token

    def tokenize_user(self, username: str) -> str:
        return self.tokenize(username, IdentifierKind.USER)

    def tokenize_group(self, group_name: str) -> str:
        return self.tokenize(group_name, IdentifierKind.GROUP)

    def tokenize_computer(self, hostname: str, tier: int | None = None) -> str:
        """Tokenize a hostname; tier 0 and 1 get distinct prefixes."""
        return self.tokenize(hostname, IdentifierKind.COMPUTER, tier)

    def tokenize_domain(self, domain: str) -> str:
        return self.tokenize(domain, IdentifierKind.DOMAIN)

    def tokenize_ou(self, distinguished_name: str) -> str:
        return self.tokenize(distinguished_name, IdentifierKind.OU)

    def tokenize_gpo(self, gpo_name: str) -> str:
        return self.tokenize(gpo_name, IdentifierKind.GPO)

    def tokenize_sid(self, sid: str) -> str:
        return self.tokenize(sid, IdentifierKind.SID)

    def tokenize_template(self, template_name: str) -> str:
        return self.tokenize(template_name, IdentifierKind.CERT_TEMPLATE)

    def tokenize_ca(self, ca_name: str) -> str:
        return self.tokenize(ca_name, IdentifierKind.ENTERPRISE_CA)

    def _generate(self, normalized: str, prefix: str) -> str:
        # Caller holds the write lock.
        attempt = 0
        while True:
            if attempt == 0:
                material = normalized + self._salt
            else:
                material = f"{normalized}{self._salt}:{attempt}"
            length = min(
                self._MAX_SUFFIX_LEN,
                self._SUFFIX_LEN + attempt // self._RETRIES_PER_LENGTH,
            )
            digest = hashlib.sha256(material.encode("utf-8")).hexdigest()
            token = prefix + digest[:length].upper()
            if token not in self._reverse:
                return token
            self._collisions += 1
            attempt += 1

    # ------------------------------------------------------------------
    # Reversal and free-text scrubbing
    # ------------------------------------------------------------------

    def detokenize(self, text: str) -> str:
        """Replace every known token in *text* with its real identifier."""
        restored, _ = self.detokenize_with_spans(text)
        return restored

    def detokenize_with_spans(self, text: str) -> tuple[str, list[tuple[int, int]]]:
        """Detokenize and report ``(start, end)`` of each restored value.

        Single left-to-right pass over token-shaped substrings, so a short
        token can never match inside a longer one and replacement order is
        irrelevant. Unknown token-shaped strings are left as they are.
        """
        if not text:
            return "", []

        parts: list[str] = []
        spans: list[tuple[int, int]] = []
        cursor = 0
        out_len = 0
        with self._lock.read():
            for match in self._TOKEN_RE.finditer(text):
                real = self._reverse.get(match.group(0))
                if real is None:
                    continue
                head = text[cursor:match.start()]
                parts.append(head)
                out_len += len(head)
                parts.append(real)
                spans.append((out_len, out_len + len(real)))
                out_len += len(real)
                cursor = match.end()
        parts.append(text[cursor:])
        return "".join(parts), spans

    def tokenize_text(self, text: str) -> str:
        """Replace every known real identifier in free *text* with its token.

        Case-insensitive, longest value first, whole words only.
        """
        if not text:
            return text
        with self._lock.read():
            forward = dict(self._forward)
            reals = list(self._reverse.values())
        if not forward:
            return text

        alternatives = "|".join(
            re.escape(real) for real in sorted(reals, key=len, reverse=True)
        )
        pattern = re.compile(rf"(?<!\w)(?:{alternatives})(?!\w)", re.IGNORECASE)
        return pattern.sub(
            lambda m: forward.get(self.normalize(m.group(0)), m.group(0)),
            text,
        )

    # ------------------------------------------------------------------
    # Snapshot / restore (used by mapping persistence)
    # ------------------------------------------------------------------

    def snapshot(self) -> MappingSnapshot:
        """Copy salt and ``real -> token`` table out under the read lock."""
        with self._lock.read():
            return MappingSnapshot(
                salt=self._salt,
                mappings={real: token for token, real in self._reverse.items()},
            )

    def restore(self, snapshot: MappingSnapshot) -> None:
        """Replace salt and both tables with *snapshot*, all or nothing.

        Raises:
            MappingRestoreError: if the snapshot is not a valid bijection.
        """
        forward, reverse = self._build_tables(snapshot)
        with self._lock.write():
            self._salt = snapshot.salt
            self._forward = forward
            self._reverse = reverse
            self._collisions = 0

    def _build_tables(
        self, snapshot: MappingSnapshot
    ) -> tuple[dict[str, str], dict[str, str]]:
        if not isinstance(snapshot.salt, str) or not snapshot.salt:
            raise MappingRestoreError("Snapshot salt must be a non-empty string")

        forward: dict[str, str] = {}
        reverse: dict[str, str] = {}
        for real, token in snapshot.mappings.items():
            if not isinstance(real, str) or not isinstance(token, str):
                raise MappingRestoreError("Snapshot entries must be strings")
            normalized = self.normalize(real)
            if not normalized:
                raise MappingRestoreError("Snapshot contains an empty identifier")
            if not self._TOKEN_RE.fullmatch(token):
                raise MappingRestoreError(f"Snapshot contains a malformed token: {token!r}")
            if normalized in forward:
                raise MappingRestoreError("Snapshot maps one identifier to several tokens")
            if token in reverse:
                raise MappingRestoreError(f"Snapshot assigns token {token} twice")
            forward[normalized] = token
            reverse[token] = real
        return forward, reverse
