import json

import pytest

from necromancer.graph.models import Ace, Entity, GraphData, IdentifierKind
from necromancer.privacy.sanitizer import (
    Sanitizer,
    build_raw_payload,
    computer_tier,
    format_relative_age,
)
from necromancer.privacy.tokenizer import Tokenizer

NOW = 1_700_000_000
DAY = 86400


class TestFormatRelativeAge:
    @pytest.mark.parametrize(
        ("epoch", "expected"),
        [
            (0, "never"),
            (-5, "never"),
            (NOW + 10, "future"),
            (NOW - 60, "today"),
            (NOW - DAY, "~1 day"),
            (NOW - 5 * DAY, "~5 days"),
            (NOW - 29 * DAY, "~29 days"),
            (NOW - 30 * DAY, "~1 months"),
            (NOW - 200 * DAY, "~6 months"),
            (NOW - 365 * DAY, "~1 years"),
            (NOW - 3 * 365 * DAY, "~3 years"),
        ],
    )
    def test_buckets(self, epoch: int, expected: str) -> None:
        assert format_relative_age(epoch, now=NOW) == expected


class TestComputerTier:
    def test_explicit_tier_wins(self) -> None:
        entity = Entity(kind=IdentifierKind.COMPUTER, name="x", high_value=True, tier=2)
        assert computer_tier(entity) == 2

    def test_domain_controller_ou(self) -> None:
        entity = Entity(
            kind=IdentifierKind.COMPUTER,
            name="dc02",
            distinguished_name="CN=DC02,OU=Domain Controllers,DC=corp,DC=local",
        )
        assert computer_tier(entity) == 0

    def test_high_value(self) -> None:
        assert computer_tier(Entity(kind=IdentifierKind.COMPUTER, name="x", high_value=True)) == 0

    def test_admin_count(self) -> None:
        assert computer_tier(Entity(kind=IdentifierKind.COMPUTER, name="x", admin_count=True)) == 1

    def test_workstation(self) -> None:
        assert computer_tier(Entity(kind=IdentifierKind.COMPUTER, name="x")) == 2


class TestSanitize:
    def test_payload_contains_no_raw_identifiers(
        self, tokenizer: Tokenizer, sample_graph: GraphData
    ) -> None:
        payload, _ = Sanitizer(tokenizer).sanitize(sample_graph, 20, now=NOW)
        serialized = json.dumps(payload.to_dict())
        for raw in (
            "SVC_BACKUP",
            "JDOE",
            "CORP.LOCAL",
            "DC01",
            "WS042",
            "DOMAIN ADMINS",
            "S-1-5-21",
            "1600000000",
        ):
            assert raw.casefold() not in serialized.casefold()

    def test_entity_tokens_and_flags(self, tokenizer: Tokenizer, sample_graph: GraphData) -> None:
        payload, _ = Sanitizer(tokenizer).sanitize(sample_graph, 20, now=NOW)
        by_type: dict[str, list[dict[str, object]]] = {}
        for entity in payload.to_dict()["entities"]:  # type: ignore[union-attr]
            by_type.setdefault(entity["type"], []).append(entity)

        svc = by_type["User"][0]
        assert svc["token"] == tokenizer.token_for("svc_backup@corp.local")
        assert svc["admincount"] is True
        assert svc["enabled"] is False
        assert svc["age"] == "~3 years"
        assert by_type["User"][1]["age"] == "never"

        dc, ws = by_type["Computer"]
        assert dc["token"].startswith("H_T0_")
        assert dc["tier"] == 0
        assert ws["token"].startswith("H_") and not ws["token"].startswith("H_T")
        assert ws["tier"] == 2
        assert by_type["Domain"][0]["token"].startswith("DOM_")
        assert by_type["GPO"][0]["token"].startswith("GPO_")

    def test_tokens_reverse_to_originals(self, tokenizer: Tokenizer, sample_graph: GraphData) -> None:
        payload, _ = Sanitizer(tokenizer).sanitize(sample_graph, 20, now=NOW)
        names = {tokenizer.lookup(e.token) for e in payload.entities}
        assert "DC01.CORP.LOCAL" in names
        assert "DEFAULT DOMAIN POLICY@CORP.LOCAL" in names

    def test_summary_counts(self, tokenizer: Tokenizer, sample_graph: GraphData) -> None:
        payload, summary = Sanitizer(tokenizer).sanitize(sample_graph, 20, now=NOW)
        assert payload.summary is summary
        assert summary.total_entities == 7
        assert summary.count(IdentifierKind.USER) == 2
        assert summary.count(IdentifierKind.COMPUTER) == 2
        assert summary.count(IdentifierKind.OU) == 0
        data = summary.to_dict()
        assert data["user_count"] == 2
        assert data["certtemplate_count"] == 0
        assert data["edge_count"] == 2

    def test_cap_applies_per_kind(self, tokenizer: Tokenizer) -> None:
        graph = GraphData(
            users=tuple(Entity(kind=IdentifierKind.USER, name=f"u{i}@corp.local") for i in range(30)),
            groups=tuple(Entity(kind=IdentifierKind.GROUP, name=f"g{i}@corp.local") for i in range(3)),
        )
        _, summary = Sanitizer(tokenizer).sanitize(graph, 20)
        assert summary.count(IdentifierKind.USER) == 20
        assert summary.count(IdentifierKind.GROUP) == 3

    def test_empty_names_are_skipped(self, tokenizer: Tokenizer) -> None:
        graph = GraphData(users=(Entity(kind=IdentifierKind.USER, name=""),))
        payload, summary = Sanitizer(tokenizer).sanitize(graph, 20)
        assert payload.entities == []
        assert summary.total_entities == 0

    def test_graph_is_not_mutated(self, tokenizer: Tokenizer, sample_graph: GraphData) -> None:
        before = sample_graph.users
        Sanitizer(tokenizer).sanitize(sample_graph, 1)
        assert sample_graph.users == before


class TestRelationships:
    def test_control_edges_use_tokens(self, tokenizer: Tokenizer, sample_graph: GraphData) -> None:
        payload, _ = Sanitizer(tokenizer).sanitize(sample_graph, 20, now=NOW)
        edges = [e.to_dict() for e in payload.relationships]
        group_token = tokenizer.token_for("DOMAIN ADMINS@CORP.LOCAL")
        assert edges == [
            {
                "source": tokenizer.token_for("SVC_BACKUP@CORP.LOCAL"),
                "target": group_token,
                "relationship": "AddMember",
            },
            {
                "source": tokenizer.token_for("S-1-5-21-1000-2000-3000-9999"),
                "target": group_token,
                "relationship": "GenericAll",
            },
        ]
        assert edges[1]["source"].startswith("SID_")

    def test_non_control_rights_are_dropped(
        self, tokenizer: Tokenizer, sample_graph: GraphData
    ) -> None:
        payload, _ = Sanitizer(tokenizer).sanitize(sample_graph, 20)
        assert all(e.relationship != "ReadProperty" for e in payload.relationships)

    def test_relationship_limit(self, tokenizer: Tokenizer) -> None:
        aces = tuple(Ace(principal_sid=f"S-1-5-21-9-{i}", right_name="GenericAll") for i in range(10))
        graph = GraphData(groups=(Entity(kind=IdentifierKind.GROUP, name="ops", aces=aces),))
        payload, summary = Sanitizer(tokenizer).sanitize(graph, 20, max_relationships=4)
        assert len(payload.relationships) == 4
        assert summary.edge_count == 4


class TestBuildRawPayload:
    def test_keeps_real_names(self, sample_graph: GraphData) -> None:
        payload = build_raw_payload(sample_graph, 20)
        assert payload["user"][0]["name"] == "SVC_BACKUP@CORP.LOCAL"  # type: ignore[index]
        assert payload["user"][0]["pwdlastset"] == 1_600_000_000  # type: ignore[index]
        assert payload["computer"][1]["name"] == "WS042.CORP.LOCAL"  # type: ignore[index]
        assert payload["certtemplate"] == []

    def test_respects_cap(self, sample_graph: GraphData) -> None:
        payload = build_raw_payload(sample_graph, 1)
        assert len(payload["user"]) == 1  # type: ignore[arg-type]
