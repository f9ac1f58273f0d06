# tests/unit/test_archival/test_payloads.py
"""Unit tests for the full/stub payload variant."""

from app.services.archival.payloads import FullPayload, StubPayload, is_stub, read_payload


class TestReadPayload:

    def test_stub_round_trip(self):
        stub = StubPayload(storage_key="datasets/proj-1/abc.json")
        assert read_payload(stub.to_column()) == stub

    def test_stub_column_shape(self):
        assert StubPayload(storage_key="k").to_column() == {"archived": True, "storage_key": "k"}

    def test_bulk_data_is_full(self):
        value = {"rows": [{"plot": 1}]}
        assert read_payload(value) == FullPayload(data=value)

    def test_none_is_full(self):
        assert read_payload(None) == FullPayload(data=None)

    def test_lookalike_with_extra_keys_is_full(self):
        """A user payload that happens to carry the marker keys is not a stub."""
        value = {"archived": True, "storage_key": "k", "rows": []}
        assert isinstance(read_payload(value), FullPayload)

    def test_archived_flag_must_be_true(self):
        assert not is_stub({"archived": "yes", "storage_key": "k"})
        assert not is_stub({"archived": False, "storage_key": "k"})

    def test_is_stub(self):
        assert is_stub({"archived": True, "storage_key": "k"})
        assert not is_stub([1, 2, 3])
