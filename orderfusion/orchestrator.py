from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, Union

from orderfusion.core.exceptions import BaseError, NoUsableInputError
from orderfusion.core.settings import AppSettings, get_settings
from orderfusion.errors.codes import make_error
from orderfusion.models.dto import (
    ExtractionResult,
    HeuristicStructure,
    LlmStructure,
    OcrVariant,
    SegmentedText,
    VoteResult,
)
from orderfusion.processors.article_extractor import extract_articles
from orderfusion.processors.catalog import ReferenceCatalog, load_catalog, parse_catalog
from orderfusion.processors.filter_llm_response import filter_llm_response
from orderfusion.processors.fusion_engine import fuse
from orderfusion.processors.identity_extractor import extract_delivery, extract_identity
from orderfusion.processors.reference_corrector import correct_references
from orderfusion.processors.segmenter import segment_text
from orderfusion.processors.totals_computer import compute_totals, extract_gain
from orderfusion.processors.variant_voter import (
    apply_vote_corrections,
    assess_text_quality,
    vote_variants,
)
from orderfusion.utils.timing import StageTimers

logger = logging.getLogger(__name__)

LlmInput = Union[LlmStructure, dict, str, None]
CatalogInput = Union[ReferenceCatalog, str, Path, list, None]


def _generate_run_id() -> str:
    return str(uuid.uuid4())


@dataclass
class PipelineContext:
    run_id: str
    raw_text: Optional[str] = None
    variants: Optional[list[OcrVariant]] = None
    llm_input: LlmInput = None
    catalog_input: CatalogInput = None
    ocr_confidence: Optional[float] = None

    # populated during run
    vote: Optional[VoteResult] = None
    segments: Optional[SegmentedText] = None
    heuristic: Optional[HeuristicStructure] = None
    llm: Optional[LlmStructure] = None
    catalog: Optional[ReferenceCatalog] = None
    result: Optional[ExtractionResult] = None
    timers: StageTimers = field(default_factory=StageTimers)

    @property
    def text(self) -> str:
        return self.raw_text or ""


def stage(name: str) -> Callable:
    """Decorator timing a pipeline stage under `name`."""

    def deco(
        fn: Callable[[Any, PipelineContext], Any],
    ) -> Callable[[Any, PipelineContext], Any]:
        def wrapper(self, ctx: PipelineContext) -> Any:
            with ctx.timers.timer(name):
                return fn(self, ctx)

        return wrapper

    return deco


class PipelineRunner:
    def __init__(self, settings: Optional[AppSettings] = None) -> None:
        self.settings = settings or get_settings()
        self.logger = logger

    @stage("input")
    def _stage_input(self, ctx: PipelineContext) -> None:
        if ctx.variants:
            ctx.vote = vote_variants(ctx.variants)
            ctx.raw_text = ctx.vote.text
            if ctx.ocr_confidence is None:
                ctx.ocr_confidence = ctx.vote.confidence
            self.logger.debug(
                f"Voted transcript:\n{ctx.vote.annotated_text}",
                extra={"run_id": ctx.run_id, "stage": "input", "variant": ctx.vote.best_label},
            )
        if not ctx.text.strip():
            raise NoUsableInputError("NO_OCR_TEXT")

        quality = assess_text_quality(ctx.text)
        self.logger.info(
            f"OCR text quality: {quality.quality} "
            f"({quality.word_count} words, {quality.special_char_ratio:.0%} symbols)",
            extra={"run_id": ctx.run_id, "stage": "input"},
        )

    @stage("heuristic")
    def _stage_heuristic(self, ctx: PipelineContext) -> None:
        try:
            ctx.segments = segment_text(ctx.text)
            identity = extract_identity(ctx.segments, ctx.text)
            delivery = extract_delivery(ctx.text)
            items, strategy = extract_articles(ctx.segments, ctx.text)
            totals = compute_totals(items, ctx.text)
            gain = extract_gain(ctx.segments.header.content)
        except Exception as exc:
            self.logger.warning(
                f"Heuristic extraction degraded to empty structure: {exc}",
                exc_info=True,
                extra={"run_id": ctx.run_id, "stage": "heuristic"},
            )
            ctx.heuristic = HeuristicStructure()
            return
        ctx.heuristic = HeuristicStructure(
            identity=identity,
            delivery=delivery,
            items=items,
            totals=totals,
            strategy=strategy,
            gain=gain,
        )
        self.logger.info(
            f"Heuristic extraction: {len(items)} item(s) via {strategy or 'no strategy'}",
            extra={"run_id": ctx.run_id, "stage": "heuristic", "strategy": strategy},
        )

    @stage("llm_normalize")
    def _stage_llm(self, ctx: PipelineContext) -> None:
        if ctx.llm_input is None or isinstance(ctx.llm_input, LlmStructure):
            ctx.llm = ctx.llm_input
        else:
            ctx.llm = filter_llm_response(ctx.llm_input)

    @stage("fusion")
    def _stage_fusion(self, ctx: PipelineContext) -> None:
        try:
            ctx.result = fuse(ctx.heuristic, ctx.llm, ctx.text, ctx.ocr_confidence)
        except Exception as exc:
            self.logger.warning(
                f"Fusion with LLM structure failed, heuristic only: {exc}",
                extra={"run_id": ctx.run_id, "stage": "fusion"},
            )
            ctx.result = fuse(ctx.heuristic, None, ctx.text, ctx.ocr_confidence)
        if ctx.vote is not None:
            ctx.result = apply_vote_corrections(ctx.result, ctx.vote)

    def _resolve_catalog(self, ctx: PipelineContext) -> Optional[ReferenceCatalog]:
        source = ctx.catalog_input
        if source is None:
            source = self.settings.catalog_path
        if source is None:
            return None
        if isinstance(source, ReferenceCatalog):
            return source
        if isinstance(source, (str, Path)):
            return load_catalog(source)
        return parse_catalog(source)

    @stage("reference_correction")
    def _stage_correct(self, ctx: PipelineContext) -> None:
        if not self.settings.ENABLE_REFERENCE_CORRECTION:
            return
        ctx.catalog = self._resolve_catalog(ctx)
        if ctx.catalog is None or not len(ctx.catalog):
            return
        ctx.result = correct_references(ctx.result, ctx.catalog)

    def run(self, ctx: PipelineContext) -> ExtractionResult:
        """Execute every stage in order and return the final result."""
        try:
            self._stage_input(ctx)
            self._stage_heuristic(ctx)
            self._stage_llm(ctx)
            self._stage_fusion(ctx)
            self._stage_correct(ctx)
        except BaseError as err:
            error = make_error(err.error_code, err.message, err.details.get("detail"))
            self.logger.error(
                f"Pipeline stage failed: {err.error_code} - {error['message']}",
                extra={"run_id": ctx.run_id, "error_code": err.error_code},
            )
            raise

        result = ctx.result
        self.logger.info(
            f"Extraction done: {len(result.items)} item(s), method={result.method}, "
            f"confidence={result.confidence}, {len(result.corrections)} correction(s), "
            f"timings_ms={ctx.timers.as_ms()}",
            extra={
                "run_id": ctx.run_id,
                "stage": "done",
                "duration_ms": int(round(ctx.timers.total_seconds * 1000)),
            },
        )
        return result


def run_extraction(
    raw_text: Optional[str] = None,
    *,
    variants: Optional[Sequence[Union[OcrVariant, dict]]] = None,
    llm_structure: LlmInput = None,
    catalog: CatalogInput = None,
    ocr_confidence: Optional[float] = None,
    run_id: Optional[str] = None,
    settings: Optional[AppSettings] = None,
) -> ExtractionResult:
    """
    Reconcile an OCR transcript and an LLM structure into one ExtractionResult.

    Args:
      raw_text: Primary OCR transcript; ignored when `variants` is given.
      variants: OCR transcripts of several renderings, merged by vote.
      llm_structure: LlmStructure, dict (either schema), raw reply string or None.
      catalog: ReferenceCatalog, path to a catalog JSON, decoded entries, or
        None to use CATALOG_PATH from the settings when configured.
      ocr_confidence: Average OCR confidence (ratio or percentage).
      run_id: Correlation id for the logs; generated when omitted.

    Raises:
      NoUsableInputError: no OCR text, or no variant with text.
      CatalogError: catalog path missing or catalog malformed.
    """
    ctx = PipelineContext(
        run_id=run_id or _generate_run_id(),
        raw_text=raw_text,
        variants=(
            [OcrVariant.model_validate(v) if isinstance(v, dict) else v for v in variants]
            if variants is not None
            else None
        ),
        llm_input=llm_structure,
        catalog_input=catalog,
        ocr_confidence=ocr_confidence,
    )
    return PipelineRunner(settings).run(ctx)
