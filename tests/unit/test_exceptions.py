"""Unit tests for the batcher exception hierarchy."""

from firestore_batcher.exceptions import BatcherConfigurationError
from firestore_batcher.exceptions import BatcherError
from firestore_batcher.exceptions import BatchSizeCollapsedError
from firestore_batcher.exceptions import BulkDriverRoundLimitError
from firestore_batcher.exceptions import DocumentStoreError


class TestBatcherError:
    """Test the base exception."""

    def test_defaults(self):
        error = BatcherError("Something failed")

        assert str(error) == "Something failed"
        assert error.error_code == "UNKNOWN_ERROR"
        assert error.details == {}
        assert error.user_message == "Something failed"

    def test_to_dict(self):
        error = BatcherError("Internal", error_code="X", details={"k": 1}, user_message="Friendly")

        assert error.to_dict() == {
            "error_type": "BatcherError",
            "error_code": "X",
            "message": "Internal",
            "user_message": "Friendly",
            "details": {"k": 1},
        }


class TestSubclasses:
    """Test the specific error types."""

    def test_configuration_error(self):
        error = BatcherConfigurationError("max_size", "must be positive", 0)

        assert isinstance(error, BatcherError)
        assert error.error_code == "CONFIGURATION_ERROR"
        assert error.details == {"setting": "max_size", "invalid_value": 0}
        assert "max_size" in error.message

    def test_batch_size_collapsed(self):
        error = BatchSizeCollapsedError(operations_queued=3, document_path="items/a")

        assert error.error_code == "BATCH_SIZE_COLLAPSED"
        assert error.details == {"operations_queued": 3, "document_path": "items/a"}
        assert error.user_message == "An operation is too large to be committed"

    def test_round_limit(self):
        error = BulkDriverRoundLimitError(max_rounds=5, operations_processed=40)

        assert error.error_code == "ROUND_LIMIT_EXCEEDED"
        assert error.details == {"max_rounds": 5, "operations_processed": 40}

    def test_document_store_error(self):
        error = DocumentStoreError(3, "Transaction too big. Decrease transaction size.")

        assert error.code == 3
        assert error.store_details == "Transaction too big. Decrease transaction size."
        assert str(error) == "3 Transaction too big. Decrease transaction size."
        assert error.to_dict()["details"]["code"] == 3
