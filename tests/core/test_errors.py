"""Tests for the schemaspine error hierarchy."""

from __future__ import annotations

from schemaspine.core.errors import (
    ApplyFailure,
    BootstrapError,
    DatabaseError,
    DuplicateIdentifierError,
    ErrorCategory,
    ErrorContext,
    HistoryWriteFailure,
    InvalidConfigError,
    MigrationError,
    MigrationLockError,
    SchemaSpineError,
)


class TestErrorContext:
    def test_to_dict_skips_unset_fields(self):
        ctx = ErrorContext(migration="003", store="sqlite", metadata={"holder": "web-1"})
        assert ctx.to_dict() == {"migration": "003", "store": "sqlite", "holder": "web-1"}

    def test_with_context_sets_fields_and_metadata(self):
        err = BootstrapError("no history").with_context(store="postgresql", attempt=2)
        assert err.context.store == "postgresql"
        assert err.context.metadata == {"attempt": 2}


class TestMigrationErrors:
    def test_categories(self):
        assert BootstrapError("x").category == ErrorCategory.MIGRATION
        assert MigrationLockError("x").category == ErrorCategory.CONCURRENCY
        assert DatabaseError("x").category == ErrorCategory.DATABASE
        assert InvalidConfigError("k", "v").category == ErrorCategory.CONFIG

    def test_only_lock_error_is_retryable(self):
        assert MigrationLockError("held").retryable is True
        assert ApplyFailure("001").retryable is False
        assert HistoryWriteFailure("001").retryable is False
        assert BootstrapError("x").retryable is False

    def test_apply_failure_carries_progress_and_cause(self):
        cause = RuntimeError("no such table: users")
        err = ApplyFailure("003", cause, executed=["002"], skipped=["001"])

        assert err.identifier == "003"
        assert err.executed == ["002"]
        assert err.skipped == ["001"]
        assert err.__cause__ is cause
        assert "no such table" in err.message
        assert err.context.migration == "003"

        data = err.to_dict()
        assert data["error_type"] == "ApplyFailure"
        assert data["category"] == "MIGRATION"
        assert data["identifier"] == "003"
        assert data["executed"] == ["002"]
        assert data["cause"] == "no such table: users"

    def test_progress_lists_are_copied(self):
        executed = ["001"]
        err = ApplyFailure("002", executed=executed)
        executed.append("002")
        assert err.executed == ["001"]

    def test_history_write_failure_is_not_apply_failure(self):
        err = HistoryWriteFailure("002", OSError("disk full"))
        assert isinstance(err, MigrationError)
        assert not isinstance(err, ApplyFailure)
        assert "manual intervention" in err.message

    def test_lock_error_holder(self):
        err = MigrationLockError("held", holder="web-1")
        assert err.holder == "web-1"
        assert err.to_dict()["context"] == {"holder": "web-1"}

    def test_duplicate_identifier_message(self):
        err = DuplicateIdentifierError("003")
        assert str(err) == "Duplicate migration identifier: '003'"


class TestRepr:
    def test_repr(self):
        assert repr(SchemaSpineError("boom")) == "SchemaSpineError('boom', category=INTERNAL)"
