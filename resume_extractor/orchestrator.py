"""Multi-strategy extraction: select, run, evaluate, fall back, recover."""

import contextvars
from collections import OrderedDict, deque
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Iterable, Optional

from resume_extractor.classification import ClassifiedError, ErrorClassifier
from resume_extractor.config import ParserConfig
from resume_extractor.error_log import ErrorLogger
from resume_extractor.exceptions import NoCompatibleStrategyError
from resume_extractor.logger import Timer, document_context, get_logger
from resume_extractor.models import (
    Document,
    ParseMetadata,
    ParseResult,
    ParseStatus,
    ParseWarning,
    StrategyAttempt,
    WarningKind,
)
from resume_extractor.recovery import RecoveryContext, RecoveryManager
from resume_extractor.registry import StrategyRegistry, default_registry
from resume_extractor.strategies import ParsingStrategy, ProgressCallback

logger = get_logger(__name__)


@dataclass
class _Run:
    """Mutable bookkeeping for one document."""

    document: Document
    queue: deque
    ranked: tuple[str, ...]
    tried: list[str] = field(default_factory=list)
    attempts: list[StrategyAttempt] = field(default_factory=list)
    errors: list[ClassifiedError] = field(default_factory=list)
    retained: list[ParseResult] = field(default_factory=list)
    partials: list[ParseResult] = field(default_factory=list)
    warnings: list[ParseWarning] = field(default_factory=list)
    scheduled_fallbacks: set[str] = field(default_factory=set)
    fallbacks_used: list[str] = field(default_factory=list)
    retries: dict[str, int] = field(default_factory=dict)

    @property
    def strategies_tried(self) -> tuple[str, ...]:
        return tuple(OrderedDict.fromkeys(self.tried))

    @property
    def salvaged(self) -> dict[str, str]:
        """Distinct partial text per strategy, longest first."""
        salvaged: dict[str, str] = {}
        for result in sorted(self.partials, key=lambda result: len(result.content), reverse=True):
            if result.content not in salvaged.values():
                salvaged.setdefault(result.strategy_used, result.content)
        return salvaged

    @property
    def salvaged_content(self) -> str:
        salvaged = self.salvaged
        if len(salvaged) == 1:
            return next(iter(salvaged.values()))
        return "\n\n".join(f"[{strategy}]\n{content}" for strategy, content in salvaged.items())


class MultiStrategyParser:
    """Extracts text from a document by trying strategies until one is trusted.

    Strategies run one at a time in ranked order, each under a timeout. A
    result at or above ``accept_confidence`` ends the run. Weaker results and
    failures that still produced text are kept; when nothing is accepted the
    best kept result is returned as a partial success. Failures steer the
    queue through the registry's fallback rules and the recovery manager.

    Args:
        registry: Strategies and fallback rules; the defaults when None
        recovery: Recovery manager; a fresh one when None
        error_logger: Sink for classified errors and outcomes
        config: Parser configuration
    """

    def __init__(
        self,
        registry: Optional[StrategyRegistry] = None,
        recovery: Optional[RecoveryManager] = None,
        error_logger: Optional[ErrorLogger] = None,
        config: Optional[ParserConfig] = None,
        classifier: Optional[ErrorClassifier] = None,
    ):
        self.config = config or ParserConfig()
        self.classifier = classifier or ErrorClassifier()
        self.registry = registry or default_registry(self.config, classifier=self.classifier)
        self.recovery = recovery or RecoveryManager()
        self.error_logger = error_logger or ErrorLogger()

    def parse(
        self, document: Optional[Document], on_progress: Optional[ProgressCallback] = None
    ) -> ParseResult:
        """Extract the best possible text from a document.

        Never raises for problems with the document itself; every failure is
        reported through the returned result's classified errors.

        Args:
            document: The uploaded document
            on_progress: Optional callback ``(progress, total, status)`` passed to strategies

        Returns:
            ParseResult with status SUCCESS, PARTIAL_SUCCESS or FAILURE
        """
        with document_context(document.identity if document is not None else None):
            with Timer("multi_strategy_parse") as timer:
                result = self._parse(document, on_progress, timer)
            self.error_logger.record_outcome(document, result)

            logger.info(
                "Document parsing finished",
                extra_data={
                    "status": result.status.value,
                    "strategy": result.strategy_used,
                    "confidence": result.confidence,
                    "strategies_tried": list(result.metadata.strategies_tried),
                    "processing_time_ms": round(timer.get_elapsed_ms(), 1),
                },
            )
            return result

    def get_diagnostics(self) -> dict[str, Any]:
        is_valid, problems = self.registry.validate_configuration()
        return {
            "strategies": [strategy.describe() for strategy in self.registry.strategies],
            "fallback_rules": [
                {"name": rule.name, "strategy": rule.strategy.value, "priority": rule.priority}
                for rule in self.registry.fallback_rules
            ],
            "registry_valid": is_valid,
            "registry_problems": problems,
            "configuration": asdict(self.config),
            "recovery": self.recovery.get_recovery_stats(),
        }

    def _parse(
        self, document: Optional[Document], on_progress: Optional[ProgressCallback], timer: Timer
    ) -> ParseResult:
        rejection = self._check_input(document)
        if rejection is not None:
            return self._rejected(document, rejection, timer)

        try:
            self.registry.select_strategy(document)
        except NoCompatibleStrategyError as exc:
            return self._rejected(document, exc.error, timer)

        ranked = self.registry.rank(document)
        run = _Run(document=document, queue=deque(ranked), ranked=tuple(s.id for s in ranked))
        logger.info(
            "Starting multi-strategy parse",
            extra_data={
                "file_name": document.filename,
                "media_type": document.media_type,
                "file_size_bytes": document.size,
                "candidates": list(run.ranked),
            },
        )

        while run.queue:
            strategy = run.queue.popleft()
            if strategy.id in run.scheduled_fallbacks and strategy.id not in run.fallbacks_used:
                run.fallbacks_used.append(strategy.id)
            run.tried.append(strategy.id)

            result, outcome = self._run_with_timeout(strategy, document, on_progress)

            if result.success and result.confidence >= self.config.accept_confidence:
                run.attempts.append(_attempt(strategy, result, "accepted"))
                return self._accepted(run, result, timer)

            if result.success and result.confidence >= self.config.retain_confidence:
                outcome = "retained"
                run.retained.append(result)
            elif len(result.content) > self.config.partial_content_min_chars:
                outcome = "partial"
                run.partials.append(result)

            errors = list(result.errors)
            if result.success and not errors and outcome != "retained":
                errors.append(
                    self.classifier.classify(
                        f"Insufficient text extracted by {strategy.id} "
                        f"(confidence {result.confidence})",
                        {"strategy": strategy.id, "file_name": document.filename},
                    )
                )
            run.attempts.append(_attempt(strategy, result, outcome, errors))
            logger.info(
                "Strategy attempt not accepted",
                extra_data={
                    "strategy": strategy.id,
                    "outcome": outcome,
                    "confidence": result.confidence,
                    "characters": len(result.content),
                    "error_codes": [error.code for error in errors],
                },
            )

            for error in errors:
                run.errors.append(error)
                error_id = self.error_logger.log_error(
                    error, {"strategy": strategy.id, "file_name": document.filename, "outcome": outcome}
                )
                self._schedule_fallbacks(run, error)
                if self.config.enable_recovery:
                    self._recover(run, strategy, error, error_id)

        return self._finish(run, timer)

    def _check_input(self, document: Optional[Document]) -> Optional[ClassifiedError]:
        if document is None:
            return self.classifier.classify(None)
        if document.size == 0:
            return self.classifier.classify(
                "File is empty (0 bytes)", {"file_name": document.filename}
            )
        if document.size > self.config.max_file_size_bytes:
            limit_mb = self.config.max_file_size_bytes / (1024 * 1024)
            return self.classifier.classify(
                f"File too large: exceeds maximum size of {limit_mb:g} MB",
                {"file_name": document.filename, "file_size_bytes": document.size},
            )
        return None

    def _run_with_timeout(
        self,
        strategy: ParsingStrategy,
        document: Document,
        on_progress: Optional[ProgressCallback],
    ) -> tuple[ParseResult, str]:
        """Run one strategy on a worker thread, abandoning it after the timeout."""
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"strategy-{strategy.id}")
        context = contextvars.copy_context()
        with Timer(f"strategy_{strategy.id}") as timer:
            future = executor.submit(context.run, strategy.parse, document, on_progress)
            try:
                done, _ = wait([future], timeout=self.config.timeout_seconds)
            finally:
                # a stuck engine keeps its thread; the parse moves on without it
                executor.shutdown(wait=False, cancel_futures=True)

        if future not in done:
            logger.warning(
                "Strategy timed out",
                extra_data={"strategy": strategy.id, "timeout_seconds": self.config.timeout_seconds},
            )
            error = self.classifier.classify(
                f"Strategy {strategy.id} timed out after {self.config.timeout_seconds:g}s",
                {"strategy": strategy.id, "file_name": document.filename},
            )
            return self._attempt_failure(strategy, document, error, timer), "timeout"

        exc = future.exception()
        if exc is not None:
            logger.error(
                "Strategy raised an exception",
                extra_data={
                    "strategy": strategy.id,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
                exc_info=exc,
            )
            error = self.classifier.classify(
                exc, {"strategy": strategy.id, "file_name": document.filename}
            )
            return self._attempt_failure(strategy, document, error, timer), "exception"

        return future.result(), "failed"

    @staticmethod
    def _attempt_failure(
        strategy: ParsingStrategy, document: Document, error: ClassifiedError, timer: Timer
    ) -> ParseResult:
        return ParseResult(
            success=False,
            content="",
            confidence=0,
            strategy_used=strategy.id,
            metadata=ParseMetadata(
                file_size=document.size,
                file_type=document.media_type,
                processing_time_ms=timer.get_elapsed_ms(),
            ),
            errors=(error,),
            status=ParseStatus.FAILURE,
        )

    def _schedule_fallbacks(self, run: _Run, error: ClassifiedError):
        fallbacks = self.registry.get_fallback_strategies(error, run.document, excluded=run.tried)
        # highest priority ends up first
        for strategy in reversed(fallbacks):
            self._move_to_front(run, strategy)

    def _recover(self, run: _Run, strategy: ParsingStrategy, error: ClassifiedError, error_id: str):
        if not error.retryable:
            return

        context = RecoveryContext(
            document=run.document,
            original_strategy=strategy.id,
            attempt_count=run.retries.get(strategy.id, 0),
            max_attempts=self.config.max_retries,
            previous_errors=tuple(run.errors),
        )
        if not self.recovery.should_retry(error, context):
            logger.debug(
                "Recovery skipped",
                extra_data={"strategy": strategy.id, "error_code": error.code},
            )
            return

        attempt = self.recovery.attempt_recovery(error, context)
        self.error_logger.log_recovery_attempt(error_id, attempt)
        if not attempt.success:
            return

        outcome = attempt.result
        if outcome.get("retry_requested"):
            if run.retries.get(strategy.id, 0) < self.config.max_retries:
                run.retries[strategy.id] = run.retries.get(strategy.id, 0) + 1
                self._move_to_front(run, strategy, retry=True)
        elif outcome.get("fallback_strategy"):
            target = self.registry.get_strategy(outcome["fallback_strategy"])
            if target is not None and target.can_handle(run.document):
                self._move_to_front(run, target)
        elif outcome.get("alternative_strategy"):
            # chosen by document type, so a mislabelled file may still be read
            target = self.registry.get_strategy(outcome["alternative_strategy"])
            if target is not None:
                self._move_to_front(run, target)
        elif outcome.get("message"):
            message = outcome["message"]
            if outcome.get("recommended_formats"):
                message = f"{message}: {', '.join(outcome['recommended_formats'])}"
            warning = ParseWarning(kind=WarningKind.RECOVERY, message=message, impact="low")
            if warning not in run.warnings:
                run.warnings.append(warning)

    @staticmethod
    def _move_to_front(run: _Run, strategy: ParsingStrategy, retry: bool = False):
        if not retry and strategy.id in run.tried:
            return
        if strategy in run.queue:
            run.queue.remove(strategy)
        run.queue.appendleft(strategy)
        if not retry and strategy.id not in run.ranked[:1]:
            run.scheduled_fallbacks.add(strategy.id)

    def _accepted(self, run: _Run, result: ParseResult, timer: Timer) -> ParseResult:
        skipped = tuple(OrderedDict.fromkeys(s.id for s in run.queue if s.id not in run.tried))
        return replace(
            result,
            status=ParseStatus.SUCCESS,
            warnings=result.warnings + tuple(run.warnings),
            metadata=self._annotate(run, result.metadata, timer, fallbacks_skipped=skipped),
            salvaged_content=run.salvaged_content,
        )

    def _finish(self, run: _Run, timer: Timer) -> ParseResult:
        errors = consolidate_errors(run.errors)

        if run.retained or run.partials:
            if run.retained:
                best = max(run.retained, key=lambda result: result.confidence)
                note = "Best result below the acceptance threshold"
            else:
                best = max(run.partials, key=lambda result: len(result.content))
                note = "Text salvaged from a failed extraction"

            warning = ParseWarning(
                kind=WarningKind.PARTIAL_EXTRACTION,
                message=f"{note} (confidence {best.confidence}); please review the extracted text",
                impact="high" if best in run.partials else "medium",
            )
            logger.warning(
                "Returning partial result",
                extra_data={"strategy": best.strategy_used, "confidence": best.confidence},
            )
            return replace(
                best,
                success=True,
                status=ParseStatus.PARTIAL_SUCCESS,
                errors=errors,
                warnings=best.warnings + tuple(run.warnings) + (warning,),
                metadata=self._annotate(run, best.metadata, timer, note=note),
                salvaged_content=run.salvaged_content,
            )

        if not errors:
            errors = (self.classifier.classify("No text extracted from file"),)
        logger.error(
            "All parsing strategies failed",
            extra_data={
                "file_name": run.document.filename,
                "strategies_tried": list(run.strategies_tried),
                "error_codes": [error.code for error in errors],
            },
        )
        return ParseResult(
            success=False,
            content="",
            confidence=0,
            strategy_used=run.tried[-1] if run.tried else "none",
            metadata=self._annotate(
                run,
                ParseMetadata(
                    file_size=run.document.size,
                    file_type=run.document.media_type,
                    processing_time_ms=0.0,
                ),
                timer,
                note="All parsing strategies failed",
            ),
            errors=errors,
            warnings=tuple(run.warnings),
            status=ParseStatus.FAILURE,
            salvaged_content=run.salvaged_content,
        )

    @staticmethod
    def _annotate(
        run: _Run,
        metadata: ParseMetadata,
        timer: Timer,
        fallbacks_skipped: tuple[str, ...] = (),
        note: str = "",
    ) -> ParseMetadata:
        details = metadata.details
        if run.partials:
            details = {**details, "salvaged": run.salvaged}
        return replace(
            metadata,
            details=details,
            processing_time_ms=timer.get_elapsed_ms(),
            strategies_tried=run.strategies_tried,
            fallbacks_used=tuple(run.fallbacks_used),
            fallbacks_skipped=fallbacks_skipped,
            attempts=tuple(run.attempts),
            note=note or metadata.note,
        )

    def _rejected(
        self, document: Optional[Document], error: ClassifiedError, timer: Timer
    ) -> ParseResult:
        self.error_logger.log_error(
            error, {"file_name": document.filename if document is not None else None}
        )
        return ParseResult(
            success=False,
            content="",
            confidence=0,
            strategy_used="none",
            metadata=ParseMetadata(
                file_size=document.size if document is not None else 0,
                file_type=document.media_type if document is not None else "",
                processing_time_ms=timer.get_elapsed_ms(),
                note="Document rejected before extraction",
            ),
            errors=(error,),
            status=ParseStatus.FAILURE,
        )


def consolidate_errors(errors: Iterable[ClassifiedError]) -> tuple[ClassifiedError, ...]:
    """Group errors by code, merging suggestions and joining diagnostics."""
    groups: "OrderedDict[str, list[ClassifiedError]]" = OrderedDict()
    for error in errors:
        groups.setdefault(error.code, []).append(error)

    consolidated = []
    for group in groups.values():
        first = group[0]
        if len(group) == 1:
            consolidated.append(first)
            continue

        merged = first
        for other in group[1:]:
            merged = merged.with_suggestions(other.suggestions)
        diagnostics = [error.diagnostic_info for error in group if error.diagnostic_info]
        strategies = [error.context.get("strategy") for error in group if error.context.get("strategy")]
        consolidated.append(
            replace(
                merged,
                message=f"{first.message} ({len(group)} attempts)",
                context={
                    **first.context,
                    "attempts": len(group),
                    "strategies": list(OrderedDict.fromkeys(strategies)),
                    "diagnostic_info": "; ".join(OrderedDict.fromkeys(diagnostics)),
                },
            )
        )
    return tuple(consolidated)


def _attempt(
    strategy: ParsingStrategy,
    result: ParseResult,
    outcome: str,
    errors: Optional[list[ClassifiedError]] = None,
) -> StrategyAttempt:
    return StrategyAttempt(
        strategy=strategy.id,
        success=result.success,
        confidence=result.confidence,
        text_length=len(result.content),
        processing_time_ms=result.metadata.processing_time_ms,
        outcome=outcome,
        error_codes=tuple(error.code for error in (errors if errors is not None else result.errors)),
    )
