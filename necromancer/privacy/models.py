from dataclasses import dataclass, field

from necromancer.graph.models import IdentifierKind


@dataclass(frozen=True)
class MappingSnapshot:
    """Point-in-time copy of a tokenizer's salt and ``real -> token`` table."""

    salt: str
    mappings: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SanitizedEntity:
    """De-identified entity summary; never carries a raw name, SID or timestamp."""

    token: str
    type: str
    tier: int | None = None
    high_value: bool = False
    admin_count: bool = False
    enabled: bool | None = None
    age: str | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"token": self.token, "type": self.type}
        if self.tier is not None:
            data["tier"] = self.tier
        if self.high_value:
            data["highvalue"] = True
        if self.admin_count:
            data["admincount"] = True
        if self.enabled is not None:
            data["enabled"] = self.enabled
        if self.age is not None:
            data["age"] = self.age
        return data


@dataclass(frozen=True)
class SanitizedEdge:
    """Control relationship between two tokens."""

    source: str
    target: str
    relationship: str

    def to_dict(self) -> dict[str, object]:
        return {
            "source": self.source,
            "target": self.target,
            "relationship": self.relationship,
        }


@dataclass(frozen=True)
class DataSummary:
    """Aggregate counts of what was forwarded."""

    total_entities: int = 0
    counts: dict[IdentifierKind, int] = field(default_factory=dict)
    edge_count: int = 0

    def count(self, kind: IdentifierKind) -> int:
        return self.counts.get(kind, 0)

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"total_entities": self.total_entities}
        for kind, count in self.counts.items():
            data[f"{kind.value.lower()}_count"] = count
        data["edge_count"] = self.edge_count
        return data


@dataclass(frozen=True)
class SanitizedPayload:
    """Document sent to the external analysis service."""

    entities: list[SanitizedEntity] = field(default_factory=list)
    relationships: list[SanitizedEdge] = field(default_factory=list)
    summary: DataSummary = field(default_factory=DataSummary)

    def to_dict(self) -> dict[str, object]:
        return {
            "entities": [e.to_dict() for e in self.entities],
            "relationships": [r.to_dict() for r in self.relationships],
            "summary": self.summary.to_dict(),
        }
