"""Staged return analysis pipeline."""

import asyncio
import logging
import time
from dataclasses import replace
from typing import Awaitable, Callable, List, Optional, Tuple

from ..models.claim import AnalysisRequest, ClaimStatus
from ..models.decision import ReturnAnalysisState
from ..plugins.correspondence import CorrespondenceDrafter
from ..plugins.defect_analyst import DefectAnalyst, KeywordWatermarkDetector
from ..plugins.defect_extractor import StructuredExtractor
from ..plugins.duplicate_detector import DuplicateEvidenceDetector
from ..plugins.image_authenticity import AuthenticityClassifier
from ..plugins.policy_resolver import PolicyResolver
from ..storage.database import Database
from ..storage.outcome import OutcomePersister
from ..storage.repositories import ClaimRepository
from ..utils.errors import ClaimValidationError
from .rules import evaluate

logger = logging.getLogger(__name__)

Stage = Callable[[ReturnAnalysisState], Awaitable[ReturnAnalysisState]]


class ReturnPipeline:
    """
    Runs one analysis of a return claim through an ordered list of stages.

    Each stage takes the immutable state and returns a new one. Once the
    duplicate check short-circuits, every stage up to persistence is skipped.

    With parallel_screening the authenticity and defect analysis calls run
    concurrently; they write disjoint fields of the state.
    """

    def __init__(
        self,
        database: Database,
        duplicate_detector: DuplicateEvidenceDetector,
        authenticity: AuthenticityClassifier,
        analyst: DefectAnalyst,
        extractor: StructuredExtractor,
        policy_resolver: PolicyResolver,
        drafter: CorrespondenceDrafter,
        persister: OutcomePersister,
        parallel_screening: bool = False
    ):
        self.database = database
        self.duplicate_detector = duplicate_detector
        self.authenticity = authenticity
        self.analyst = analyst
        self.extractor = extractor
        self.policy_resolver = policy_resolver
        self.drafter = drafter
        self.persister = persister
        self.parallel_screening = parallel_screening

        self.stages: List[Tuple[str, Stage]] = self._build_stages()

        logger.info(
            f"Initialized ReturnPipeline with {len(self.stages)} stages "
            f"(parallel_screening={parallel_screening})"
        )

    def _build_stages(self) -> List[Tuple[str, Stage]]:
        if self.parallel_screening:
            screening = [("screening", self._screen_concurrently)]
        else:
            screening = [
                ("authenticity", self._classify_authenticity),
                ("analysis", self._analyze_defect),
            ]
        return [
            ("load_claim", self._load_claim),
            ("duplicate_check", self._check_duplicate),
            *screening,
            ("extraction", self._extract_defect),
            ("policy", self._resolve_policy),
            ("decision", self._decide),
            ("drafting", self._draft_message),
            ("persistence", self._persist),
        ]

    async def run(self, request: AnalysisRequest) -> ReturnAnalysisState:
        """
        Analyse a claim end to end.

        Args:
            request: Claim id, description, image locator and language

        Returns:
            Final state with outcome, email draft and decision id

        Raises:
            ClaimNotFoundError: If the claim does not exist
            UpstreamModelError: If analysis, extraction or drafting fails
            PersistenceError: If a store read or write fails
        """
        state = ReturnAnalysisState(request=request, started_at=time.monotonic())
        logger.info(f"Starting return analysis for claim {request.claim_id}")

        for name, stage in self.stages:
            if state.short_circuited and name != "persistence":
                logger.debug(f"Skipping stage {name} after short-circuit")
                continue
            stage_start = time.monotonic()
            state = await stage(state)
            logger.debug(f"Stage {name} finished in {time.monotonic() - stage_start:.3f}s")

        logger.info(
            f"Return analysis complete for claim {request.claim_id}: "
            f"{state.outcome.disposition.value if state.outcome else 'no outcome'} "
            f"in {time.monotonic() - state.started_at:.2f}s"
        )
        return state

    async def _load_claim(self, state: ReturnAnalysisState) -> ReturnAnalysisState:
        with self.database.session("load_claim") as session:
            claim = ClaimRepository(session).get_or_raise(state.claim_id)
            if claim.status != ClaimStatus.PROCESSING.value:
                # New evidence for a more_info_requested claim goes through resubmission first
                raise ClaimValidationError.invalid_transition(
                    state.claim_id, f"claim is {claim.status}, not awaiting analysis"
                )
            analysis_round = claim.analysis_round or 1
            original_image = claim.original_image_reference

        logger.info(f"Claim {state.claim_id} is on analysis round {analysis_round}")
        return replace(state, analysis_round=analysis_round, original_image_reference=original_image)

    async def _check_duplicate(self, state: ReturnAnalysisState) -> ReturnAnalysisState:
        return self.duplicate_detector.check(state)

    async def _classify_authenticity(self, state: ReturnAnalysisState) -> ReturnAnalysisState:
        result = await self.authenticity.classify(state.image_reference)
        return replace(state, authenticity=result)

    async def _analyze_defect(self, state: ReturnAnalysisState) -> ReturnAnalysisState:
        analysis = await self.analyst.analyze(
            state.request.description,
            state.image_reference,
            state.request.language,
        )
        return replace(state, analysis=analysis)

    async def _screen_concurrently(self, state: ReturnAnalysisState) -> ReturnAnalysisState:
        authenticity, analysis = await asyncio.gather(
            self.authenticity.classify(state.image_reference),
            self.analyst.analyze(
                state.request.description,
                state.image_reference,
                state.request.language,
            ),
        )
        return replace(state, authenticity=authenticity, analysis=analysis)

    async def _extract_defect(self, state: ReturnAnalysisState) -> ReturnAnalysisState:
        extraction = await self.extractor.extract(state.analysis.text)
        return replace(state, extraction=extraction)

    async def _resolve_policy(self, state: ReturnAnalysisState) -> ReturnAnalysisState:
        policy = self.policy_resolver.resolve(state.extraction.category.value)
        return replace(state, matched_policy=policy)

    async def _decide(self, state: ReturnAnalysisState) -> ReturnAnalysisState:
        outcome = evaluate(state.to_signals())
        logger.info(f"Decision for claim {state.claim_id}: {outcome.disposition.value} (rule {outcome.rule})")
        if outcome.escalation_reason:
            logger.info(f"Escalation reason: {outcome.escalation_reason}")
        return replace(state, outcome=outcome)

    async def _draft_message(self, state: ReturnAnalysisState) -> ReturnAnalysisState:
        draft = await self.drafter.draft(state.outcome.disposition, state.outcome.reason)
        return replace(state, email_draft=draft)

    async def _persist(self, state: ReturnAnalysisState) -> ReturnAnalysisState:
        return self.persister.persist(state)


def build_pipeline(
    database: Database,
    bedrock_client,
    parallel_screening: bool = False,
    watermark_keywords: Optional[List[str]] = None
) -> ReturnPipeline:
    """Wire a ReturnPipeline from a database and a Bedrock client."""
    return ReturnPipeline(
        database=database,
        duplicate_detector=DuplicateEvidenceDetector(database),
        authenticity=AuthenticityClassifier(bedrock_client),
        analyst=DefectAnalyst(bedrock_client, KeywordWatermarkDetector(watermark_keywords or None)),
        extractor=StructuredExtractor(bedrock_client),
        policy_resolver=PolicyResolver(database),
        drafter=CorrespondenceDrafter(bedrock_client),
        persister=OutcomePersister(database),
        parallel_screening=parallel_screening,
    )
