"""Bounded, priority-ordered entity selection.

The analysis service has a hard payload limit, so at most ``cap`` entities
per kind are forwarded. Selection is a stable partition into four buckets
concatenated in priority order:

1. control-bearing (service / admin / delegation / policy naming, or
   disabled while still privileged)
2. high-value (privileged, not control-bearing, not built-in admin)
3. regular
4. built-in administrator accounts

No randomization: the same input always yields the same selection.
"""

from dataclasses import dataclass, field
from typing import ClassVar, Sequence

from necromancer.graph.models import Entity


@dataclass
class Partition:
    """Priority buckets, each preserving input order."""

    control: list[Entity] = field(default_factory=list)
    high_value: list[Entity] = field(default_factory=list)
    regular: list[Entity] = field(default_factory=list)
    builtin_admins: list[Entity] = field(default_factory=list)

    def ordered(self) -> list[Entity]:
        return [*self.control, *self.high_value, *self.regular, *self.builtin_admins]


class Sampler:
    """Selects a capped subset of entities favoring control-bearing ones."""

    _CONTROL_MARKERS: ClassVar[tuple[str, ...]] = (
        "svc_",
        "svc-",
        "service",
        "admin",
        "deleg",
        "gpo",
        "policy",
    )
    _BUILTIN_ADMIN_MARKER: ClassVar[str] = "administrator@"
    _BUILTIN_ADMIN_EXCLUSION: ClassVar[str] = "domain admins"

    def sample(self, entities: Sequence[Entity], cap: int) -> list[Entity]:
        """Return at most *cap* entities in priority order.

        When everything fits, the input is returned as-is (same order).

        Raises:
            ValueError: if *cap* is negative.
        """
        if cap < 0:
            raise ValueError(f"cap must be >= 0, got {cap}")
        if len(entities) <= cap:
            return list(entities)
        return self.partition(entities).ordered()[:cap]

    def partition(self, entities: Sequence[Entity]) -> Partition:
        buckets = Partition()
        for entity in entities:
            if self.is_builtin_admin(entity):
                buckets.builtin_admins.append(entity)
            elif self.is_control_bearing(entity):
                buckets.control.append(entity)
            elif entity.is_privileged:
                buckets.high_value.append(entity)
            else:
                buckets.regular.append(entity)
        return buckets

    @classmethod
    def is_builtin_admin(cls, entity: Entity) -> bool:
        name = entity.name.casefold()
        return cls._BUILTIN_ADMIN_MARKER in name and cls._BUILTIN_ADMIN_EXCLUSION not in name

    @classmethod
    def is_control_bearing(cls, entity: Entity) -> bool:
        name = entity.name.casefold()
        if any(marker in name for marker in cls._CONTROL_MARKERS):
            return True
        # disabled but still holding elevated flags
        return entity.enabled is False and entity.is_privileged
