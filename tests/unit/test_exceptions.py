"""Tests for the callcov exception hierarchy."""

import pickle
from pathlib import Path

import pytest

from callcov.exceptions import (
    CallCovError,
    ConfigurationError,
    DecodeError,
    InputFileError,
    InvariantError,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "error_class", [ConfigurationError, InputFileError, DecodeError, InvariantError]
    )
    def test_all_derive_from_base(self, error_class):
        assert issubclass(error_class, CallCovError)


class TestInputFileError:
    def test_path_appended_to_message(self):
        error = InputFileError("Alignment index not found", "/data/sample.bam")
        assert str(error) == "Alignment index not found: /data/sample.bam"
        assert error.path == Path("/data/sample.bam")

    def test_path_not_duplicated(self):
        error = InputFileError("Cannot open /data/x.fa", "/data/x.fa")
        assert str(error) == "Cannot open /data/x.fa"

    def test_pickle_round_trip(self):
        error = pickle.loads(pickle.dumps(InputFileError("missing", "/tmp/a.bam")))
        assert str(error) == "missing: /tmp/a.bam"
        assert error.path == Path("/tmp/a.bam")


class TestDecodeError:
    """Test cases for DecodeError."""

    def test_message_includes_last_locus(self):
        error = DecodeError("truncated block", contig="chr7", position=1234)
        assert "chr7:1234" in str(error)
        assert "pileup" in str(error)
        assert error.detail == "truncated block"

    def test_message_without_locus(self):
        error = DecodeError("bad header", pass_name="reads")
        assert "start of input" in str(error)
        assert error.contig is None
        assert error.position == 0

    def test_pickle_keeps_fields(self):
        """Errors raised in worker processes survive the trip to the parent."""
        original = DecodeError("truncated block", contig="chr7", position=99, pass_name="pileup")
        error = pickle.loads(pickle.dumps(original))
        assert str(error) == str(original)
        assert error.contig == "chr7"
        assert error.position == 99
        assert error.pass_name == "pileup"
