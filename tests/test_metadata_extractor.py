"""
Tests for receipt metadata and transaction reference extraction.
"""

import pytest

from receipt_engine.models.receipt import ReceiptType
from receipt_engine.services.metadata_extractor import (
    MetadataExtractor,
    matches_transaction_hint,
    score_transaction_id,
)


@pytest.fixture
def extractor():
    return MetadataExtractor()


class TestMetadata:
    def test_full_bank_transfer(self, extractor):
        text = "Maybank2u Transfer TXN: ABC12345 12/05/2024 10:31 TOTAL RM 50.00"

        metadata = extractor.extract_metadata(text)

        assert metadata.has_bank_info
        assert metadata.bank_detected == "MAYBANK"
        assert metadata.has_total_indicator
        assert metadata.has_date
        assert metadata.has_time
        assert metadata.has_transaction_id
        assert metadata.receipt_type == ReceiptType.ONLINE_BANKING

    def test_plain_text(self, extractor):
        metadata = extractor.extract_metadata("hello world")

        assert not metadata.has_bank_info
        assert metadata.bank_detected is None
        assert not metadata.has_total_indicator
        assert not metadata.has_date
        assert not metadata.has_transaction_id
        assert metadata.receipt_type == ReceiptType.UNKNOWN

    @pytest.mark.parametrize(
        "text, receipt_type",
        [
            ("ATM WITHDRAWAL RM 50.00", ReceiptType.ATM),
            ("DEBIT CARD RM 12.00", ReceiptType.CARD_PAYMENT),
            ("DuitNow QR RM 8.00", ReceiptType.QR_PAYMENT),
            ("IBFT RM 8.00 ATM", ReceiptType.ONLINE_BANKING),
        ],
    )
    def test_receipt_type(self, extractor, text, receipt_type):
        assert extractor.extract_metadata(text).receipt_type == receipt_type

    def test_reference_detection_can_be_disabled(self, extractor):
        metadata = extractor.extract_metadata(
            "TXN: ABC12345", detect_transaction_id=False
        )
        assert not metadata.has_transaction_id


class TestTransactionId:
    def test_labelled_reference_beats_weaker_candidates(self, extractor):
        text = "REF NO 12345678 TXN: ABC12345 completed"

        candidates = extractor.transaction_id_candidates(text)

        assert [c.text for c in candidates] == ["12345678", "ABC12345"]
        assert extractor.extract_transaction_id(text) == "ABC12345"

    def test_bank_prefixed_format(self, extractor):
        assert extractor.extract_transaction_id("Paid MB123456789 ok") == "MB123456789"

    def test_reference_label_not_matched_inside_reference(self, extractor):
        text = "REFERENCE: 55667788"
        assert extractor.extract_transaction_id(text) == "55667788"

    def test_short_ids_ignored(self, extractor):
        assert extractor.extract_transaction_id("REF: AB12") is None

    def test_no_reference(self, extractor):
        assert extractor.extract_transaction_id("TOTAL RM 10.00") is None

    def test_score_components(self):
        text = "TXN: ABC12345"
        # preferred length + alphanumeric + transaction label
        assert score_transaction_id("ABC12345", text) == 10 + 8 + 20
        # acceptable length + bank format, no label context
        assert score_transaction_id("MB1234567890123", "x MB1234567890123") == 5 + 15

    def test_tie_goes_to_earlier_pattern(self, extractor):
        # Same score; the labelled pattern runs before the numeric fallback
        text = "TRACE 98765432 11223344 SUCCESS"
        candidates = extractor.transaction_id_candidates(text)

        assert candidates[0].score == candidates[1].score
        assert extractor.extract_transaction_id(text) == "98765432"


class TestTransactionHint:
    def test_hint_matches_ignoring_punctuation(self):
        assert matches_transaction_hint("TXN: ABC12345 done", "abc-12345")

    def test_hint_missing(self):
        assert not matches_transaction_hint("TXN: ABC12345", "XYZ999")

    def test_empty_hint_matches(self):
        assert matches_transaction_hint("anything", "")
        assert matches_transaction_hint("anything", None)

    def test_punctuation_only_hint_never_matches(self):
        assert not matches_transaction_hint("TXN: ABC12345", "---")
        assert not matches_transaction_hint("TXN: ABC12345", " / ")
