"""
Unit tests for the error taxonomy, error collection and run-scoped logging.

Tests:
- EmbeddingError context (provider, slot, chunk) and retryability
- ErrorCollector records and summarizes recovered failures
- log_on_exception logs without swallowing
- PipelineLogger prefixes run id and stage
"""

import logging

import pytest

from leadrank.common.error_handling import ErrorCollector, PipelineError, log_on_exception
from leadrank.common.exceptions import (
    EmbeddingCountMismatch,
    EmbeddingDimensionMismatch,
    EmbeddingError,
    EmbeddingFormatError,
    EmbeddingQuotaExceeded,
    EmbeddingTimeout,
    EmbeddingUnavailable,
    EmptyProfile,
    EvalSetTooSmall,
    LeadRankError,
    OptimizerUnavailable,
)
from leadrank.common.logger import get_logger, new_run_id


class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_everything_is_lead_rank_error(self):
        for error in (
            EmptyProfile(),
            EvalSetTooSmall(3, 5),
            OptimizerUnavailable(),
            EmbeddingUnavailable("x"),
            EmbeddingCountMismatch(3, 2),
            EmbeddingDimensionMismatch(3, 2),
        ):
            assert isinstance(error, LeadRankError)

    def test_default_messages(self):
        assert str(EmptyProfile()) == "Profile cannot be empty."
        assert "Need at least 5" in str(EvalSetTooSmall(3, 5))
        assert "GEMINI_API_KEY" in str(OptimizerUnavailable())

    def test_embedding_error_context(self):
        error = EmbeddingError("boom", provider="gemini", slot="avoid", batch_index=2)

        assert str(error) == "boom (provider=gemini, slot=avoid, batch=2)"

    def test_embedding_error_without_context(self):
        assert str(EmbeddingError("boom")) == "boom"

    def test_retryable(self):
        assert EmbeddingQuotaExceeded("q", attempts=6).retryable
        assert EmbeddingTimeout("t").retryable
        assert not EmbeddingFormatError("f").retryable
        assert not EmbeddingUnavailable("u").retryable

    def test_quota_keeps_context_kwargs(self):
        error = EmbeddingQuotaExceeded("q", attempts=6, provider="openai")

        assert error.attempts == 6
        assert error.provider == "openai"

    def test_count_mismatch(self):
        error = EmbeddingCountMismatch(5, 4)

        assert (error.expected, error.actual) == (5, 4)
        assert "Expected 5 lead embeddings, got 4" in str(error)


class TestErrorCollector:
    """Tests for ErrorCollector."""

    def test_add_error(self):
        collector = ErrorCollector()

        error = collector.add_error(
            layer="optimizer",
            operation="propose",
            message="provider down",
            exception=RuntimeError("provider down"),
            iteration=2,
        )

        assert isinstance(error, PipelineError)
        assert collector.to_dicts() == [error.to_dict()]
        data = error.to_dict()
        assert data["exception_type"] == "RuntimeError"
        assert data["iteration"] == 2
        assert data["severity"] == "medium"
        assert data["recoverable"] is True

    def test_summary(self):
        collector = ErrorCollector()
        collector.add_error("optimizer", "propose", "a", severity="medium")
        collector.add_error("optimizer", "evaluate", "b", severity="high")

        assert collector.summary()["total"] == 2
        assert collector.summary()["by_severity"]["high"] == 1

        collector.add_error("embeddings", "embed", "c", severity="critical", recoverable=False)
        summary = collector.summary()
        assert summary["by_severity"]["critical"] == 1
        assert summary["recoverable"] == 2


class TestLogOnException:
    """Tests for log_on_exception()."""

    def test_logs_and_reraises(self, caplog):
        logger = logging.getLogger("leadrank.test")

        with caplog.at_level(logging.WARNING, logger="leadrank.test"):
            with pytest.raises(ValueError):
                with log_on_exception(logger, "embed persona"):
                    raise ValueError("bad")

        assert "[embed persona] Failed: bad" in caplog.text

    def test_silent_on_success(self, caplog):
        logger = logging.getLogger("leadrank.test")

        with caplog.at_level(logging.WARNING, logger="leadrank.test"):
            with log_on_exception(logger, "noop"):
                pass

        assert caplog.text == ""


class TestPipelineLogger:
    """Tests for run-scoped logging."""

    def test_prefix(self, caplog):
        run_id = new_run_id()
        log = get_logger("leadrank.test.run", run_id=run_id, layer="scoring")

        with caplog.at_level(logging.INFO, logger="leadrank.test.run"):
            log.info("scored 3 leads")

        assert f"[run:{run_id[:8]}] [scoring] scored 3 leads" in caplog.text

    def test_run_ids_unique(self):
        assert new_run_id() != new_run_id()
