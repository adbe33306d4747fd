"""Unit tests for the exception hierarchy."""

from docquery.core import (
    ConfigurationError,
    DocQueryError,
    InvalidContinuationError,
    PartialResultsError,
    PartitionUnavailableError,
    StorageError,
)


def test_partition_unavailable_error_carries_partition_and_attempts():
    """Test PartitionUnavailableError keeps partition context."""
    error = PartitionUnavailableError("down", partition_id="3", attempts=4)
    assert str(error) == "down"
    assert error.partition_id == "3"
    assert error.attempts == 4
    assert isinstance(error, DocQueryError)


def test_partition_unavailable_error_defaults_to_one_attempt():
    error = PartitionUnavailableError("down", partition_id="0")
    assert error.attempts == 1


def test_partial_results_error_freezes_partition_sets():
    """Test PartialResultsError exposes what was and was not covered."""
    error = PartialResultsError(
        "2 of 5 partitions unreachable",
        documents=[],
        unavailable_partitions=["1", "3"],
        covered_partitions=iter(["0", "2", "4"]),
        cost=12.5,
        continuation="token",
    )
    assert error.unavailable_partitions == frozenset({"1", "3"})
    assert error.covered_partitions == frozenset({"0", "2", "4"})
    assert error.documents == []
    assert error.cost == 12.5
    assert error.continuation == "token"


def test_invalid_continuation_is_a_configuration_error():
    """Test bad tokens can be handled alongside bad options."""
    assert issubclass(InvalidContinuationError, ConfigurationError)
    assert issubclass(ConfigurationError, DocQueryError)


def test_storage_error_with_status_code():
    error = StorageError("rejected", status_code=400)
    assert error.status_code == 400
    assert StorageError("rejected").status_code is None
