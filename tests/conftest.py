import pytest

from necromancer.graph.models import Ace, Entity, GraphData, IdentifierKind
from necromancer.privacy.tokenizer import Tokenizer

FIXED_SALT = "1737234000"


@pytest.fixture()
def tokenizer() -> Tokenizer:
    """Tokenizer with a fixed salt so token values are reproducible."""
    return Tokenizer(salt=FIXED_SALT)


@pytest.fixture()
def sample_graph() -> GraphData:
    """Small graph with one entity of each interesting shape."""
    return GraphData(
        users=(
            Entity(
                kind=IdentifierKind.USER,
                name="SVC_BACKUP@CORP.LOCAL",
                object_identifier="S-1-5-21-1000-2000-3000-1105",
                admin_count=True,
                enabled=False,
                last_changed=1_600_000_000,
            ),
            Entity(
                kind=IdentifierKind.USER,
                name="JDOE@CORP.LOCAL",
                object_identifier="S-1-5-21-1000-2000-3000-1106",
                enabled=True,
                last_changed=0,
            ),
        ),
        groups=(
            Entity(
                kind=IdentifierKind.GROUP,
                name="DOMAIN ADMINS@CORP.LOCAL",
                object_identifier="S-1-5-21-1000-2000-3000-512",
                high_value=True,
                admin_count=True,
                aces=(
                    Ace(
                        principal_sid="S-1-5-21-1000-2000-3000-1105",
                        right_name="AddMember",
                    ),
                    Ace(
                        principal_sid="S-1-5-21-1000-2000-3000-9999",
                        right_name="GenericAll",
                    ),
                    Ace(
                        principal_sid="S-1-5-21-1000-2000-3000-1106",
                        right_name="ReadProperty",
                    ),
                ),
            ),
        ),
        computers=(
            Entity(
                kind=IdentifierKind.COMPUTER,
                name="DC01.CORP.LOCAL",
                distinguished_name="CN=DC01,OU=Domain Controllers,DC=CORP,DC=LOCAL",
            ),
            Entity(
                kind=IdentifierKind.COMPUTER,
                name="WS042.CORP.LOCAL",
            ),
        ),
        domains=(Entity(kind=IdentifierKind.DOMAIN, name="CORP.LOCAL", high_value=True),),
        gpos=(Entity(kind=IdentifierKind.GPO, name="DEFAULT DOMAIN POLICY@CORP.LOCAL"),),
    )
