import argparse
import json
import logging
import os
import sys

import dotenv

from cargo_extractor.core.config import settings
from cargo_extractor.errors import ExtractionPipelineError
from cargo_extractor.logging_config import setup_logging
from cargo_extractor.services.pipeline import run_extraction


def print_summary(data: dict, document_type: str) -> None:
    keys = data.get("shipment_keys") or {}
    routing = data.get("routing") or {}
    financials = data.get("financials") or {}
    bl_number = (
        data.get("mbl_number") or data.get("hbl_number")
        or keys.get("bl_number_raw") or keys.get("hbl_number") or keys.get("mbl_number")
    )

    print("=" * 60)
    print("EXTRACTION SUMMARY")
    print("=" * 60)
    print(f"Document Type:      {document_type}")
    print(f"BL Number:          {bl_number or 'N/A'}")
    if keys:
        print(f"Invoice Number:     {keys.get('invoice_number') or 'N/A'}")
    print(f"Port of Loading:    {routing.get('port_of_loading') or 'N/A'}")
    print(f"Port of Discharge:  {routing.get('port_of_discharge') or 'N/A'}")
    if financials:
        print(f"Invoice Total:      {financials.get('currency') or ''} {financials.get('invoice_total') or 'N/A'}")
    if "line_items" in data:
        print(f"Line Items:         {len(data['line_items'])}")
    if "containers" in data:
        print(f"Containers:         {len(data['containers'])}")
    print(f"Confidence:         {(data.get('extraction_confidence') or {}).get('overall')}")
    print(f"Missing Fields:     {', '.join(data.get('missing_fields') or []) or 'None'}")
    print("=" * 60)


def main(argv=None) -> int:
    dotenv.load_dotenv()

    parser = argparse.ArgumentParser(description="Extract structured data from shipping documents.")
    parser.add_argument("files", nargs="+", help="PDF or image files, in page order")
    parser.add_argument("--document-type", default=settings.DEFAULT_DOCUMENT_TYPE,
                        help="COMMERCIAL_INVOICE, INVOICE, HBL or MBL (default: %(default)s)")
    parser.add_argument("--batch-size", type=int, default=settings.DEFAULT_BATCH_SIZE,
                        help="Pages per model call (default: %(default)s)")
    parser.add_argument("--output", default="extracted.json", help="Where to write the merged JSON")
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args(argv)

    setup_logging(level=logging.DEBUG if args.debug else logging.WARNING)

    try:
        outcome = run_extraction(args.files, batch_size=args.batch_size, document_type=args.document_type)
    except ExtractionPipelineError as e:
        print(f"Extraction failed: {e.message}", file=sys.stderr)
        return 1

    print_summary(outcome.data, outcome.document_type)
    with open(args.output, "w") as f:
        json.dump(outcome.data, f, indent=2)
    print(f"Extracted data saved to: {os.path.abspath(args.output)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
