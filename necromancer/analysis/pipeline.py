from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

from necromancer.analysis.models import Finding
from necromancer.graph.models import GraphData
from necromancer.privacy.models import DataSummary


@dataclass(slots=True)
class AnalysisContext:
    graph: GraphData
    run_id: str
    cloak_enabled: bool = True
    payload_json: str = ""
    summary: DataSummary | None = None
    user_prompt: str = ""
    raw_response: str = ""
    response_text: str = ""
    findings: list[Finding] = field(default_factory=list)
    mapping_path: Path | None = None


class PipelineStep(ABC):
    @abstractmethod
    def run(self, context: AnalysisContext) -> AnalysisContext:
        raise NotImplementedError
