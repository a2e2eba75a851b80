"""Builds the compact, de-identified payload sent to the analysis service."""

from __future__ import annotations

import time
from typing import Callable, ClassVar

from necromancer.graph.models import Entity, GraphData, IdentifierKind
from necromancer.logging.logger import Log
from necromancer.privacy.models import (
    DataSummary,
    SanitizedEdge,
    SanitizedEntity,
    SanitizedPayload,
)
from necromancer.privacy.sampler import Sampler
from necromancer.privacy.tokenizer import Tokenizer

_SECONDS_PER_DAY = 86400

CONTROL_RIGHTS = frozenset({
    "GenericAll",
    "GenericWrite",
    "WriteDacl",
    "WriteOwner",
    "Owns",
    "ForceChangePassword",
    "AddMember",
    "AddSelf",
    "AllExtendedRights",
    "AddKeyCredentialLink",
    "WriteSPN",
    "AddAllowedToAct",
    "ReadLAPSPassword",
    "ReadGMSAPassword",
    "DCSync",
    "GetChanges",
    "GetChangesAll",
})


def format_relative_age(epoch_seconds: int, now: float | None = None) -> str:
    """Coarse age bucket for a timestamp; the raw value never leaves here."""
    if epoch_seconds <= 0:
        return "never"
    current = int(now if now is not None else time.time())
    diff = current - epoch_seconds
    if diff < 0:
        return "future"

    days = diff // _SECONDS_PER_DAY
    if days == 0:
        return "today"
    if days == 1:
        return "~1 day"
    if days < 30:
        return f"~{days} days"
    if days < 365:
        return f"~{days // 30} months"
    return f"~{days // 365} years"


def computer_tier(entity: Entity) -> int:
    """Privilege tier of a host: explicit tier, else derived from flags/DN."""
    if entity.tier is not None:
        return entity.tier
    if entity.high_value or "OU=DOMAIN CONTROLLERS" in entity.distinguished_name.upper():
        return 0
    if entity.admin_count:
        return 1
    return 2


class Sanitizer:
    """Composes Sampler and Tokenizer into a de-identified payload."""

    _DEFAULT_MAX_RELATIONSHIPS: ClassVar[int] = 200

    def __init__(self, tokenizer: Tokenizer, sampler: Sampler | None = None) -> None:
        self._tokenizer = tokenizer
        self._sampler = sampler if sampler is not None else Sampler()
        self._tokenizers: dict[IdentifierKind, Callable[[str], str]] = {
            IdentifierKind.USER: tokenizer.tokenize_user,
            IdentifierKind.GROUP: tokenizer.tokenize_group,
            IdentifierKind.DOMAIN: tokenizer.tokenize_domain,
            IdentifierKind.GPO: tokenizer.tokenize_gpo,
            IdentifierKind.OU: tokenizer.tokenize_ou,
            IdentifierKind.CERT_TEMPLATE: tokenizer.tokenize_template,
            IdentifierKind.ENTERPRISE_CA: tokenizer.tokenize_ca,
        }

    def sanitize(
        self,
        graph: GraphData,
        cap: int,
        *,
        max_relationships: int | None = None,
        now: float | None = None,
    ) -> tuple[SanitizedPayload, DataSummary]:
        """Sample, tokenize and summarize *graph*.

        Args:
            graph: Raw kind-partitioned entities (not mutated).
            cap: Maximum entities forwarded per kind.
            max_relationships: Edge limit; defaults to 200.
            now: Reference epoch seconds for age buckets (tests).

        Returns:
            (payload, summary); ``payload.summary`` is the same summary.
        """
        if max_relationships is None:
            max_relationships = self._DEFAULT_MAX_RELATIONSHIPS

        entities: list[SanitizedEntity] = []
        selected: list[tuple[Entity, str]] = []
        counts: dict[IdentifierKind, int] = {}

        for kind in graph.kinds():
            sampled = self._sampler.sample(graph.entities(kind), cap)
            kind_count = 0
            for entity in sampled:
                sanitized = self._sanitize_entity(entity, now)
                if not sanitized.token:
                    continue
                entities.append(sanitized)
                selected.append((entity, sanitized.token))
                kind_count += 1
            counts[kind] = kind_count

        relationships = self._sanitize_edges(selected, max_relationships)
        summary = DataSummary(
            total_entities=len(entities),
            counts=counts,
            edge_count=len(relationships),
        )
        Log.info(
            f"Sanitized {summary.total_entities} of {graph.total()} entities, "
            f"{summary.edge_count} relationships"
        )
        payload = SanitizedPayload(
            entities=entities,
            relationships=relationships,
            summary=summary,
        )
        return payload, summary

    def _sanitize_entity(self, entity: Entity, now: float | None) -> SanitizedEntity:
        tier: int | None = None
        if entity.kind is IdentifierKind.COMPUTER:
            tier = computer_tier(entity)
            token = self._tokenizer.tokenize_computer(entity.name, tier)
        else:
            token = self._tokenizers[entity.kind](entity.name)

        age = None
        if entity.last_changed is not None:
            age = format_relative_age(entity.last_changed, now)

        return SanitizedEntity(
            token=token,
            type=entity.kind.value,
            tier=tier,
            high_value=entity.high_value,
            admin_count=entity.admin_count,
            enabled=entity.enabled,
            age=age,
        )

    def _sanitize_edges(
        self,
        selected: list[tuple[Entity, str]],
        limit: int,
    ) -> list[SanitizedEdge]:
        by_sid = {
            Tokenizer.normalize(entity.object_identifier): token
            for entity, token in selected
            if entity.object_identifier
        }
        edges: list[SanitizedEdge] = []
        for entity, target in selected:
            for ace in entity.aces:
                if len(edges) >= limit:
                    return edges
                if ace.right_name not in CONTROL_RIGHTS or not ace.principal_sid:
                    continue
                source = by_sid.get(Tokenizer.normalize(ace.principal_sid))
                if source is None:
                    source = self._tokenizer.tokenize_sid(ace.principal_sid)
                edges.append(
                    SanitizedEdge(source=source, target=target, relationship=ace.right_name)
                )
        return edges


def build_raw_payload(
    graph: GraphData,
    cap: int,
    sampler: Sampler | None = None,
) -> dict[str, object]:
    """Sampled payload with real names, for on-premise backends (cloak off)."""
    sampler = sampler if sampler is not None else Sampler()
    payload: dict[str, object] = {}
    for kind in graph.kinds():
        payload[kind.value.lower()] = [
            {
                "name": entity.name,
                "objectid": entity.object_identifier,
                "highvalue": entity.high_value,
                "admincount": entity.admin_count,
                "enabled": entity.enabled,
                "pwdlastset": entity.last_changed,
            }
            for entity in sampler.sample(graph.entities(kind), cap)
        ]
    return payload
