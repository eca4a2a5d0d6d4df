#!/usr/bin/env python3
"""
Validate one receipt against an expected amount using the environment's
settings (OCR_API_KEY etc.) and report whether it would be auto-approved.

Usage: python scripts/validate_receipt.py <receipt_path> <amount> [options]
"""

import argparse
import json
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path

from pydantic import ValidationError

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from receipt_engine.config import get_settings  # noqa: E402
from receipt_engine.logging_config import setup_logging_from_settings  # noqa: E402
from receipt_engine.models.receipt import ReceiptValidationRequest  # noqa: E402
from receipt_engine.services.validation_engine import ReceiptValidationEngine  # noqa: E402


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run OCR validation on a payment receipt."
    )
    parser.add_argument("receipt_path", type=Path, help="Receipt image or PDF")
    parser.add_argument("amount", help="Expected amount, e.g. 25.50")
    parser.add_argument(
        "--transaction-id", dest="transaction_id", help="Reference given by the customer"
    )
    parser.add_argument(
        "--temporary",
        action="store_true",
        help="Treat the file as a temporary upload (signature checks)",
    )
    parser.add_argument("--json", action="store_true", help="Print the raw result as JSON")
    return parser.parse_args(argv)


def print_report(result, approval) -> None:
    print("=" * 80)
    print("RECEIPT VALIDATION RESULT")
    print("=" * 80)
    icon = "✅" if result.is_amount_valid else "❌"
    print(f"{icon} Status: {result.status.value}")
    print(f"   Confidence: {result.confidence}%")
    print(f"   Message: {result.message}")
    print(f"   Expected: RM{result.expected_amount:.2f}")
    if result.matched_amount is not None:
        print(f"   Matched: RM{result.matched_amount:.2f}")
    if result.amounts_found:
        amounts = ", ".join(f"RM{a:.2f}" for a in result.amounts_found)
        print(f"   Amounts found: {amounts}")
    print(f"   Transaction ID: {result.extracted_transaction_id or 'not found'}")
    if result.transaction_match is not None:
        print(f"   Reference matched: {result.transaction_match}")
    if result.metadata.bank_detected:
        print(f"   Bank: {result.metadata.bank_detected}")
    print(f"   Receipt type: {result.metadata.receipt_type.value}")
    if result.engine_used is not None:
        print(f"   OCR engine: {result.engine_used}")

    report = result.file_report
    if report is not None:
        print()
        print("File details:")
        print(f"   Size: {report.size_bytes:,} bytes")
        print(f"   MIME type: {report.primary_mime_type or 'unknown'}")
        print(f"   PDF: {report.is_pdf}")
        print(f"   Temporary upload: {report.is_temporary_upload}")
        if report.error:
            print(f"   Error: {report.error}")

    print()
    verdict = "✅ AUTO-APPROVE" if approval.auto_approve else "⏸  MANUAL REVIEW"
    print(f"{verdict}: {approval.reason}")
    print("=" * 80)


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        amount = Decimal(args.amount)
    except InvalidOperation:
        print(f"❌ Error: Invalid amount: {args.amount}")
        return 2

    try:
        request = ReceiptValidationRequest(
            file_path=args.receipt_path,
            expected_amount=amount,
            transaction_hint=args.transaction_id,
            is_temporary_upload=True if args.temporary else None,
        )
    except ValidationError as e:
        print(f"❌ Error: {e}")
        return 2

    settings = get_settings()
    setup_logging_from_settings(settings)

    with ReceiptValidationEngine(settings) as engine:
        result = engine.validate(request)
        approval = engine.approval_policy().evaluate(result, args.transaction_id)

    if args.json:
        print(
            json.dumps(
                {
                    "result": result.model_dump(mode="json"),
                    "approval": approval.model_dump(mode="json"),
                },
                indent=2,
            )
        )
    else:
        print_report(result, approval)

    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
