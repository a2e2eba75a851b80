import json

from necromancer.analysis.client_base import BaseAnalysisClient
from necromancer.analysis.findings import parse_findings, sort_by_risk
from necromancer.analysis.pipeline import AnalysisContext, PipelineStep
from necromancer.graph.models import IdentifierKind
from necromancer.logging.logger import Log
from necromancer.privacy.exceptions import PersistenceError
from necromancer.privacy.guard import DeidentificationGuard
from necromancer.privacy.persistence import MappingStore
from necromancer.privacy.sampler import Sampler
from necromancer.privacy.sanitizer import Sanitizer, build_raw_payload
from necromancer.privacy.tokenizer import Tokenizer


class SanitizeStep(PipelineStep):
    def __init__(self, sanitizer: Sanitizer, sample_size: int, max_relationships: int) -> None:
        self._sanitizer = sanitizer
        self._sample_size = sample_size
        self._max_relationships = max_relationships

    def run(self, context: AnalysisContext) -> AnalysisContext:
        payload, summary = self._sanitizer.sanitize(
            context.graph,
            self._sample_size,
            max_relationships=self._max_relationships,
        )
        context.payload_json = json.dumps(payload.to_dict(), indent=2)
        context.summary = summary
        return context


class RawPayloadStep(PipelineStep):
    """Cloak disabled: sampled entities are sent with their real names."""

    def __init__(self, sampler: Sampler, sample_size: int) -> None:
        self._sampler = sampler
        self._sample_size = sample_size

    def run(self, context: AnalysisContext) -> AnalysisContext:
        payload = build_raw_payload(context.graph, self._sample_size, self._sampler)
        context.payload_json = json.dumps(payload, indent=2)
        Log.warning("Privacy cloak disabled: sending real identifiers to the analysis backend")
        return context


class BuildPromptStep(PipelineStep):
    def __init__(
        self,
        template: str,
        notes: str = "",
        tokenizer: Tokenizer | None = None,
    ) -> None:
        self._template = template
        self._notes = notes
        self._tokenizer = tokenizer

    def run(self, context: AnalysisContext) -> AnalysisContext:
        if not context.payload_json:
            raise ValueError("AnalysisContext.payload_json must be set before building the prompt")
        notes = self._notes.strip()
        if notes and self._tokenizer is not None:
            notes = self._tokenizer.tokenize_text(notes)
        graph = context.graph
        context.user_prompt = self._template.format(
            user_count=len(graph.entities(IdentifierKind.USER)),
            group_count=len(graph.entities(IdentifierKind.GROUP)),
            computer_count=len(graph.entities(IdentifierKind.COMPUTER)),
            domain_count=len(graph.entities(IdentifierKind.DOMAIN)),
            gpo_count=len(graph.entities(IdentifierKind.GPO)),
            ou_count=len(graph.entities(IdentifierKind.OU)),
            certtemplate_count=len(graph.entities(IdentifierKind.CERT_TEMPLATE)),
            enterpriseca_count=len(graph.entities(IdentifierKind.ENTERPRISE_CA)),
            notes=f"\nAnalyst notes: {notes}\n" if notes else "",
            payload=context.payload_json,
        )
        return context


class SummonStep(PipelineStep):
    def __init__(
        self,
        client: BaseAnalysisClient,
        model: str,
        temperature: float,
        system_prompt: str,
    ) -> None:
        self._client = client
        self._model = model
        self._temperature = temperature
        self._system_prompt = system_prompt

    def run(self, context: AnalysisContext) -> AnalysisContext:
        Log.info(f"Sending {len(context.user_prompt)} prompt chars to model {self._model}")
        context.raw_response = self._client.create_chat_completion(
            model=self._model,
            temperature=self._temperature,
            system_prompt=self._system_prompt,
            user_prompt=context.user_prompt,
        )
        context.response_text = context.raw_response
        return context


class DeidentifyStep(PipelineStep):
    """Restores tokens and redacts unknown domains before any JSON parsing."""

    def __init__(self, guard: DeidentificationGuard) -> None:
        self._guard = guard

    def run(self, context: AnalysisContext) -> AnalysisContext:
        context.response_text = self._guard.deidentify(context.raw_response)
        return context


class ParseFindingsStep(PipelineStep):
    def run(self, context: AnalysisContext) -> AnalysisContext:
        context.findings = sort_by_risk(parse_findings(context.response_text))
        Log.info(f"Parsed {len(context.findings)} findings")
        return context


class SaveMappingStep(PipelineStep):
    """Best-effort: a failed save is logged and the run still completes."""

    def __init__(self, store: MappingStore, tokenizer: Tokenizer) -> None:
        self._store = store
        self._tokenizer = tokenizer

    def run(self, context: AnalysisContext) -> AnalysisContext:
        try:
            context.mapping_path = self._store.save(self._tokenizer, context.run_id)
        except PersistenceError as exc:
            Log.warning(f"Mapping for run {context.run_id} was not saved: {exc}")
        return context
