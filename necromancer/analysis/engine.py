from pathlib import Path

from necromancer.analysis.exceptions import AnalysisError
from necromancer.analysis.factory import AnalysisClientFactory
from necromancer.analysis.models import AnalysisReport
from necromancer.analysis.pipeline import AnalysisContext, PipelineStep
from necromancer.analysis.prompt_loader import load_prompt_template, load_system_prompt
from necromancer.analysis.steps import (
    BuildPromptStep,
    DeidentifyStep,
    ParseFindingsStep,
    RawPayloadStep,
    SanitizeStep,
    SaveMappingStep,
    SummonStep,
)
from necromancer.config.settings import Settings
from necromancer.graph.models import GraphData
from necromancer.logging.logger import Log
from necromancer.privacy.exceptions import PrivacyError
from necromancer.privacy.guard import DeidentificationGuard
from necromancer.privacy.persistence import MappingStore, generate_run_id
from necromancer.privacy.sampler import Sampler
from necromancer.privacy.sanitizer import Sanitizer
from necromancer.privacy.tokenizer import Tokenizer


class Engine:
    """Orchestrates one analysis run.

    Cloaked pipeline: sanitize -> prompt -> summon -> de-identify -> parse
    -> (optional) save mapping. Uncloaked runs skip tokenization and
    de-identification.
    """

    def __init__(
        self,
        steps: list[PipelineStep],
        *,
        run_id: str,
        cloak_enabled: bool,
        tokenizer: Tokenizer | None = None,
    ) -> None:
        self._steps = steps
        self._run_id = run_id
        self._cloak_enabled = cloak_enabled
        self._tokenizer = tokenizer

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def tokenizer(self) -> Tokenizer | None:
        """The run's tokenizer (None when the cloak is off)."""
        return self._tokenizer

    def run(self, graph: GraphData) -> AnalysisReport:
        """Analyze *graph* and return de-identified, risk-sorted findings.

        Raises:
            AnalysisError: on provider, prompt or parsing failures.
            PrivacyError: on tokenization failures.
        """
        with Log.run_scope(self._run_id):
            Log.info(
                f"Analyzing {graph.total()} entities "
                f"(privacy cloak {'enabled' if self._cloak_enabled else 'disabled'})"
            )
            context = AnalysisContext(
                graph=graph,
                run_id=self._run_id,
                cloak_enabled=self._cloak_enabled,
            )
            try:
                for step in self._steps:
                    context = step.run(context)
            except (AnalysisError, PrivacyError):
                raise
            except Exception as exc:
                raise AnalysisError(f"Analysis failed: {exc}") from exc

        return AnalysisReport(
            run_id=context.run_id,
            findings=context.findings,
            summary=context.summary,
            cloak_enabled=context.cloak_enabled,
            mapping_path=context.mapping_path,
        )


def build_engine(
    settings: Settings,
    *,
    notes: str = "",
    mapping_dir: Path | None = None,
) -> Engine:
    """Build an Engine with a fresh per-run tokenizer and all adapters."""
    run_id = generate_run_id()
    cloak_enabled = settings.cloak_enabled()

    client = AnalysisClientFactory.create(settings)
    sampler = Sampler()
    summon = SummonStep(
        client,
        model=AnalysisClientFactory.model_name(settings),
        temperature=settings.analysis_temperature,
        system_prompt=load_system_prompt(),
    )
    template = load_prompt_template()

    if not cloak_enabled:
        steps: list[PipelineStep] = [
            RawPayloadStep(sampler, settings.sample_size),
            BuildPromptStep(template, notes=notes),
            summon,
            ParseFindingsStep(),
        ]
        return Engine(steps, run_id=run_id, cloak_enabled=False)

    tokenizer = Tokenizer()
    steps = [
        SanitizeStep(
            Sanitizer(tokenizer, sampler),
            settings.sample_size,
            settings.max_relationships,
        ),
        BuildPromptStep(template, notes=notes, tokenizer=tokenizer),
        summon,
        DeidentifyStep(DeidentificationGuard(tokenizer, settings.redaction_marker)),
        ParseFindingsStep(),
    ]
    if settings.save_mapping:
        store = MappingStore(mapping_dir if mapping_dir is not None else Path(settings.mapping_dir))
        steps.append(SaveMappingStep(store, tokenizer))
    return Engine(steps, run_id=run_id, cloak_enabled=True, tokenizer=tokenizer)
