"""Candle input pipeline.

Sole public entry point of the library. A form travels through
sanitize -> screen -> structural validation -> business rules -> commit
callback, after which the record is indexed and pushed onto the session's
undo history. Every public method returns data; no exception escapes.
"""

import logging
from datetime import datetime
from typing import Callable, Iterable, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from candleguard.config import PipelineConfig
from candleguard.engine.cache import ValidationCache
from candleguard.engine.history import HistoryManager
from candleguard.engine.index import CandleIndex
from candleguard.errors import ErrorCode, ErrorKind, NoOperation
from candleguard.models import (
    BusinessViolation,
    CandleField,
    CandleRecord,
    FieldError,
    FormInput,
    HistoryEntry,
    HistoryResult,
    Predictions,
    SubmitResult,
    Suggestion,
    ValidationOutcome,
)
from candleguard.security import RateLimiter, ThreatScreener, make_identifier, sanitize_form
from candleguard.security.sanitizer import parse_number
from candleguard.suggestions import autofill as autofill_form
from candleguard.suggestions import suggest as suggest_field
from candleguard.validation import BusinessRuleAnalyzer, StructuralValidator

logger = logging.getLogger(__name__)

RawForm = Union[FormInput, Mapping[str, object]]
CommitCallback = Callable[[CandleRecord], bool]
RevertCallback = Callable[[CandleRecord], bool]

# (form, candle_index, timestamp) triples accepted by submit_batch
BatchEntry = tuple[RawForm, int, datetime]


def _raw_form(form: RawForm) -> FormInput:
    """The form as supplied, with values coerced to text but not sanitized."""
    if isinstance(form, FormInput):
        return form
    return FormInput(**{
        field.value: "" if form.get(field.value) is None else str(form.get(field.value))
        for field in CandleField
    })


def _security_outcome(message: str) -> ValidationOutcome:
    return ValidationOutcome.from_issues([
        FieldError(field="security", message=message, code=ErrorCode.SECURITY_ERROR.value)
    ])


def _critical_outcome(message: str = "Critical validation error") -> ValidationOutcome:
    return ValidationOutcome.from_issues([
        FieldError(field="unknown", message=message, code=ErrorCode.CRITICAL_ERROR.value)
    ])


def build_record(
    fields: FormInput,
    session_id: str,
    candle_index: int,
    timestamp: datetime,
    predictions: Optional[Predictions] = None,
) -> CandleRecord:
    """Build a record from structurally valid, sanitized fields.

    Raises:
        pydantic.ValidationError: If the session, index or timestamp is invalid.
    """
    high = parse_number(fields.high)
    low = parse_number(fields.low)
    predictions = predictions or Predictions()
    return CandleRecord(
        session_id=session_id,
        candle_index=candle_index,
        open=parse_number(fields.open),
        high=high,
        low=low,
        close=parse_number(fields.close),
        volume=int(parse_number(fields.volume)),
        timestamp=timestamp,
        spread=high - low,
        prediction_direction=predictions.direction,
        prediction_probability=predictions.probability,
        prediction_confidence=predictions.confidence,
    )


class CandlePipeline:
    """Validates, commits and tracks manually entered candles."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        *,
        rate_limiter: Optional[RateLimiter] = None,
        cache: Optional[ValidationCache] = None,
        index: Optional[CandleIndex] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize the pipeline.

        Args:
            config: Thresholds and limits. Defaults are used if not provided.
            rate_limiter: Quota tracker shared across pipelines, if any.
            cache: Validation cache. One is created from ``config`` if not provided.
            index: Index over committed candles. An empty one is created if not provided.
            clock: Time source (seconds) for the limiter and cache created here.
        """
        self.config = config or PipelineConfig()
        cfg = self.config

        if rate_limiter is None:
            limiter_kwargs = {"clock": clock} if clock is not None else {}
            rate_limiter = RateLimiter(
                window_seconds=cfg.rate_limit_window_seconds,
                max_requests=cfg.rate_limit_max_requests,
                cleanup_seconds=cfg.rate_limit_cleanup_seconds,
                **limiter_kwargs,
            )
        if cache is None:
            cache_kwargs = {"clock": clock} if clock is not None else {}
            cache = ValidationCache(
                ttl_seconds=cfg.cache_ttl_seconds,
                max_size=cfg.cache_max_size,
                **cache_kwargs,
            )

        self.rate_limiter = rate_limiter
        self.cache = cache
        self.index = index if index is not None else CandleIndex()
        self.screener = ThreatScreener(self.rate_limiter)
        self.validator = StructuralValidator(cfg)
        self.analyzer = BusinessRuleAnalyzer(cfg)

        self._histories: dict[str, HistoryManager] = {}
        self.operation_count = 0
        self.last_operation: Optional[str] = None

    def _history(self, session_id: str) -> HistoryManager:
        history = self._histories.get(session_id)
        if history is None:
            history = HistoryManager(self.config.history_max_depth)
            self._histories[session_id] = history
        return history

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def sanitize(self, form: RawForm) -> FormInput:
        """Sanitize every field of a form."""
        return sanitize_form(form)

    def validate(
        self,
        form: RawForm,
        session_id: str,
        user_id: Optional[str] = None,
    ) -> ValidationOutcome:
        """Sanitize, screen and structurally validate a form.

        Args:
            form: Raw form fields.
            session_id: Editing session, used for rate limiting.
            user_id: Caller identity, preferred over the session for rate limiting.

        Returns:
            The outcome. A security rejection is reported as a single
            ``security`` field error.
        """
        self.last_operation = "validate"
        try:
            raw = _raw_form(form)
            trusted = sanitize_form(form)

            screen = self.screener.screen(trusted, make_identifier(session_id, user_id), raw=raw)
            if not screen.passed:
                return _security_outcome(screen.reason or "Input rejected")

            cached = self.cache.get(trusted)
            if cached is not None:
                logger.debug("Validation cache hit")
                return cached

            outcome = self.validator.validate(trusted)
            self.cache.set(trusted, outcome)
            return outcome
        except Exception:
            logger.exception("Critical error during validation")
            return _critical_outcome()

    def validate_field(self, field: Union[CandleField, str], value: str) -> Optional[FieldError]:
        """Validate a single field in isolation (no cross-field rules)."""
        try:
            return self.validator.validate_field(CandleField(field), value)
        except Exception:
            logger.exception("Error validating field %s", field)
            return FieldError(
                field=str(getattr(field, "value", field)),
                message="Validation error",
                code=ErrorCode.CRITICAL_ERROR.value,
            )

    def analyze(
        self, record: CandleRecord, history: Sequence[CandleRecord]
    ) -> list[BusinessViolation]:
        """Business-rule advisories for a record against its history."""
        return self.analyzer.analyze(record, history)

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def submit(
        self,
        form: RawForm,
        session_id: str,
        candle_index: int,
        timestamp: datetime,
        history: Sequence[CandleRecord],
        commit: CommitCallback,
        *,
        user_id: Optional[str] = None,
        predictions: Optional[Predictions] = None,
    ) -> SubmitResult:
        """Validate a form and commit it as a new candle.

        Args:
            form: Raw form fields.
            session_id: Owning session.
            candle_index: Sequence index of the candle within the session.
            timestamp: Candle instant.
            history: Prior candles of the session, oldest first.
            commit: Persistence callback; must return True on success.
            user_id: Caller identity for rate limiting.
            predictions: Optional annotations stored with the record.

        Returns:
            The submit result. History and index are only updated when
            ``commit`` succeeds.
        """
        self.last_operation = "save"
        self.operation_count += 1
        logger.info(
            "Saving candle %s for session %s (operation %d)",
            candle_index, session_id, self.operation_count,
        )

        try:
            outcome = self.validate(form, session_id, user_id)
            self.last_operation = "save"
            if not outcome.is_valid:
                security = outcome.errors_for("security")
                kind = ErrorKind.SECURITY_REJECTED if security else ErrorKind.STRUCTURAL_INVALID
                if outcome.errors_for("unknown"):
                    kind = ErrorKind.CRITICAL_ERROR
                return SubmitResult(
                    success=False,
                    outcome=outcome,
                    error_kind=kind,
                    message=outcome.errors[0].message,
                )

            try:
                record = build_record(
                    sanitize_form(form), session_id, candle_index, timestamp, predictions
                )
            except ValidationError as e:
                first = e.errors()[0]
                message = first["msg"]
                field = str(first["loc"][0]) if first["loc"] else "unknown"
                logger.warning("Rejected candle %s: %s", candle_index, message)
                return SubmitResult(
                    success=False,
                    outcome=ValidationOutcome.from_issues([
                        FieldError(field=field, message=message, code=ErrorCode.INVALID_RECORD.value)
                    ]),
                    error_kind=ErrorKind.STRUCTURAL_INVALID,
                    message=message,
                )

            violations = self.analyzer.analyze(record, history)

            if not self._run_callback(commit, record):
                logger.warning("Commit failed for candle %d in session %s", candle_index, session_id)
                return SubmitResult(
                    success=False,
                    outcome=outcome,
                    violations=violations,
                    error_kind=ErrorKind.COMMIT_FAILED,
                    message="Failed to save candle",
                )

            self.index.add(record)
            self._history(session_id).commit(HistoryEntry(record=record, session_id=session_id))
            logger.info("Candle %d saved for session %s", candle_index, session_id)
            return SubmitResult(success=True, outcome=outcome, violations=violations, record=record)
        except Exception:
            logger.exception("Critical error while saving candle")
            return SubmitResult(
                success=False,
                outcome=_critical_outcome("Critical error while saving candle"),
                error_kind=ErrorKind.CRITICAL_ERROR,
                message="Critical error while saving candle",
            )

    def submit_batch(
        self,
        entries: Iterable[BatchEntry],
        session_id: str,
        history: Sequence[CandleRecord],
        commit: CommitCallback,
    ) -> list[SubmitResult]:
        """Submit several forms in order.

        Each committed record joins the history window of the entries after it.
        """
        window = list(history)
        results = []
        for form, candle_index, timestamp in entries:
            result = self.submit(form, session_id, candle_index, timestamp, window, commit)
            if result.success and result.record is not None:
                window.append(result.record)
            results.append(result)

        saved = sum(1 for r in results if r.success)
        logger.info("Batch for session %s: %d/%d saved", session_id, saved, len(results))
        return results

    @staticmethod
    def _run_callback(callback: Optional[Callable[[CandleRecord], bool]], record: CandleRecord) -> bool:
        if callback is None:
            return True
        try:
            return bool(callback(record))
        except Exception:
            logger.exception("Persistence callback raised for candle %s", record.id)
            return False

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def undo(self, session_id: str, revert: Optional[RevertCallback] = None) -> HistoryResult:
        """Undo the latest commit of a session.

        Args:
            session_id: Session whose history to use.
            revert: Optional callback removing the record from storage. If it
                fails, history is left untouched.
        """
        self.last_operation = "undo"
        self.operation_count += 1
        try:
            history = self._history(session_id)
            entry = history.peek_undo()
            if entry is None:
                raise NoOperation("Nothing to undo")

            if not self._run_callback(revert, entry.record):
                logger.warning("Undo revert failed for candle %s", entry.record.id)
                return HistoryResult(
                    success=False,
                    record=entry.record,
                    error_kind=ErrorKind.COMMIT_FAILED,
                    message="Failed to revert candle",
                )

            history.undo()
            self.index.remove(entry.record.id)
            logger.info("Undo: candle %d in session %s", entry.record.candle_index, session_id)
            return HistoryResult(success=True, record=entry.record)
        except NoOperation as e:
            return HistoryResult(success=False, error_kind=e.kind, message=str(e))
        except Exception:
            logger.exception("Critical error during undo")
            return HistoryResult(
                success=False, error_kind=ErrorKind.CRITICAL_ERROR, message="Critical error during undo"
            )

    def redo(self, session_id: str, commit: Optional[CommitCallback] = None) -> HistoryResult:
        """Redo the latest undone commit of a session.

        Args:
            session_id: Session whose history to use.
            commit: Optional callback restoring the record in storage. If it
                fails, history is left untouched.
        """
        self.last_operation = "redo"
        self.operation_count += 1
        try:
            history = self._history(session_id)
            entry = history.peek_redo()
            if entry is None:
                raise NoOperation("Nothing to redo")

            if not self._run_callback(commit, entry.record):
                logger.warning("Redo commit failed for candle %s", entry.record.id)
                return HistoryResult(
                    success=False,
                    record=entry.record,
                    error_kind=ErrorKind.COMMIT_FAILED,
                    message="Failed to restore candle",
                )

            history.redo()
            self.index.add(entry.record)
            logger.info("Redo: candle %d in session %s", entry.record.candle_index, session_id)
            return HistoryResult(success=True, record=entry.record)
        except NoOperation as e:
            return HistoryResult(success=False, error_kind=e.kind, message=str(e))
        except Exception:
            logger.exception("Critical error during redo")
            return HistoryResult(
                success=False, error_kind=ErrorKind.CRITICAL_ERROR, message="Critical error during redo"
            )

    def can_undo(self, session_id: str) -> bool:
        history = self._histories.get(session_id)
        return history is not None and history.can_undo()

    def can_redo(self, session_id: str) -> bool:
        history = self._histories.get(session_id)
        return history is not None and history.can_redo()

    def clear_history(self, session_id: str) -> None:
        """Forget the undo/redo history of a session."""
        history = self._histories.pop(session_id, None)
        if history is not None:
            history.clear()
        self.operation_count = 0
        self.last_operation = None
        logger.info("History cleared for session %s", session_id)

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------

    def suggest(
        self,
        field: Union[CandleField, str],
        partial_form: RawForm,
        history: Sequence[CandleRecord],
    ) -> list[Suggestion]:
        """Ranked suggestions for one field. Unknown fields get none."""
        try:
            candle_field = CandleField(field)
        except ValueError:
            logger.warning("No suggestions for unknown field %r", field)
            return []
        return suggest_field(candle_field, partial_form, history)

    def autofill(self, history: Sequence[CandleRecord]) -> Optional[FormInput]:
        """A complete proposed form derived from history."""
        return autofill_form(history)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def status(self, session_id: str) -> dict:
        """Snapshot of the pipeline state for a session."""
        history = self._histories.get(session_id)
        return {
            "session_id": session_id,
            "can_undo": self.can_undo(session_id),
            "can_redo": self.can_redo(session_id),
            "undo_depth": history.undo_depth if history else 0,
            "redo_depth": history.redo_depth if history else 0,
            "operation_count": self.operation_count,
            "last_operation": self.last_operation,
            "index": self.index.stats(),
            "cache": self.cache.stats(),
        }

    def start_cleanup(self) -> None:
        """Start the periodic sweep of expired rate-limit windows."""
        self.rate_limiter.start_cleanup_timer()

    def close(self) -> None:
        """Stop background work."""
        self.rate_limiter.stop_cleanup_timer()

    def __enter__(self) -> "CandlePipeline":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

