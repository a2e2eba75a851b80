from dataclasses import dataclass, field
from pathlib import Path

from necromancer.privacy.models import DataSummary


@dataclass(frozen=True)
class Finding:
    """A single forgotten control path reported by the analysis service."""

    title: str
    category: str = ""
    artifact: str = ""
    reasoning: str = ""
    mutation: str = ""
    resurrected_chain: str = ""
    execution_vectors: list[str] = field(default_factory=list)
    visual_path: str = ""
    human_blind_spot: list[str] = field(default_factory=list)
    impact: list[str] = field(default_factory=list)
    why_this_exists: str = ""
    probability: str = "Unknown"
    risk_justification: str = ""
    detection_rules: list[str] = field(default_factory=list)
    mitigation: str = ""
    entity_name: str = ""
    entity_type: str = ""
    entity_status: str = ""
    entity_origin: str = ""
    mitre_attack: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AnalysisReport:
    """Output of one analysis run."""

    run_id: str
    findings: list[Finding] = field(default_factory=list)
    summary: DataSummary | None = None
    cloak_enabled: bool = True
    mapping_path: Path | None = None
