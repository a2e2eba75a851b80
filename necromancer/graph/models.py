"""Read-only input model for a directory-security graph.

Entities arrive already parsed from the collector export; nothing in this
package reads files.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator


class IdentifierKind(str, Enum):
    """Kind of a sensitive identifier; selects the token prefix."""

    USER = "User"
    GROUP = "Group"
    COMPUTER = "Computer"
    DOMAIN = "Domain"
    GPO = "GPO"
    OU = "OU"
    CERT_TEMPLATE = "CertTemplate"
    ENTERPRISE_CA = "EnterpriseCA"
    SID = "SID"


ENTITY_KINDS: tuple[IdentifierKind, ...] = (
    IdentifierKind.USER,
    IdentifierKind.GROUP,
    IdentifierKind.COMPUTER,
    IdentifierKind.DOMAIN,
    IdentifierKind.GPO,
    IdentifierKind.OU,
    IdentifierKind.CERT_TEMPLATE,
    IdentifierKind.ENTERPRISE_CA,
)


@dataclass(frozen=True)
class Ace:
    """Single access-control entry granting *right_name* to a principal."""

    principal_sid: str
    right_name: str
    principal_type: str = ""
    is_inherited: bool = False


@dataclass(frozen=True)
class Entity:
    """A graph node: identifying name plus the flags used for prioritization."""

    kind: IdentifierKind
    name: str
    object_identifier: str = ""
    domain: str = ""
    distinguished_name: str = ""
    high_value: bool = False
    admin_count: bool = False
    enabled: bool | None = None  # None for kinds without an enabled flag
    last_changed: int | None = None  # epoch seconds
    tier: int | None = None  # None = derive from flags
    aces: tuple[Ace, ...] = ()

    @property
    def is_privileged(self) -> bool:
        return self.high_value or self.admin_count

    @classmethod
    def from_node(cls, kind: IdentifierKind, node: dict[str, Any]) -> "Entity":
        """Build an entity from one collector node dictionary.

        Missing keys fall back to defaults; ``pwdlastset`` becomes
        ``last_changed``.
        """
        props = node.get("Properties") or {}
        enabled = props.get("enabled")
        last_changed = props.get("pwdlastset")
        aces = tuple(
            Ace(
                principal_sid=str(ace.get("PrincipalSID", "")),
                right_name=str(ace.get("RightName", "")),
                principal_type=str(ace.get("PrincipalType", "")),
                is_inherited=bool(ace.get("IsInherited", False)),
            )
            for ace in node.get("Aces") or []
            if isinstance(ace, dict)
        )
        return cls(
            kind=kind,
            name=str(props.get("name") or ""),
            object_identifier=str(node.get("ObjectIdentifier") or ""),
            domain=str(props.get("domain") or ""),
            distinguished_name=str(props.get("distinguishedname") or ""),
            high_value=bool(props.get("highvalue", False)),
            admin_count=bool(props.get("admincount", False)),
            enabled=bool(enabled) if enabled is not None else None,
            last_changed=int(last_changed) if last_changed is not None else None,
            aces=aces,
        )


_KIND_FIELDS: dict[IdentifierKind, str] = {
    IdentifierKind.USER: "users",
    IdentifierKind.GROUP: "groups",
    IdentifierKind.COMPUTER: "computers",
    IdentifierKind.DOMAIN: "domains",
    IdentifierKind.GPO: "gpos",
    IdentifierKind.OU: "ous",
    IdentifierKind.CERT_TEMPLATE: "cert_templates",
    IdentifierKind.ENTERPRISE_CA: "enterprise_cas",
}


@dataclass(frozen=True)
class GraphData:
    """Kind-partitioned entity lists as produced by the ingestion component."""

    users: tuple[Entity, ...] = ()
    groups: tuple[Entity, ...] = ()
    computers: tuple[Entity, ...] = ()
    domains: tuple[Entity, ...] = ()
    gpos: tuple[Entity, ...] = ()
    ous: tuple[Entity, ...] = ()
    cert_templates: tuple[Entity, ...] = ()
    enterprise_cas: tuple[Entity, ...] = ()

    def entities(self, kind: IdentifierKind) -> tuple[Entity, ...]:
        """Return the entity list for *kind* (empty for SID)."""
        attr = _KIND_FIELDS.get(kind)
        if attr is None:
            return ()
        return getattr(self, attr)

    def kinds(self) -> Iterator[IdentifierKind]:
        """Yield the entity kinds in fixed payload order."""
        yield from ENTITY_KINDS

    def total(self) -> int:
        return sum(len(self.entities(kind)) for kind in ENTITY_KINDS)
