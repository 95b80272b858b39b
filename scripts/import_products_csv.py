"""
Import a catalog CSV from the command line.

Usage:
    # Product import
    python scripts/import_products_csv.py data/products.csv

    # Serial numbers under a parent product
    python scripts/import_products_csv.py data/serials.csv --serial-parent <parent-uuid>

    # Print a template
    python scripts/import_products_csv.py --template products
    python scripts/import_products_csv.py --template serials --serial-parent <parent-uuid>

Exits with 1 when the import ends in error.
"""

import argparse
import os
import sys

# Allow imports from the project root when running as a script
_root_dir = os.path.join(os.path.dirname(__file__), "..")
sys.path.insert(0, _root_dir)

from dotenv import load_dotenv
load_dotenv(os.path.join(_root_dir, ".env"))

from config import settings
from exceptions import AppError
from models.import_session import ImportEvent, ImportEventType, ImportSession, ImportStatus
from utils.text_utils import decode_upload


def print_progress(event: ImportEvent) -> None:
    """Progress listener: one line per failed row, a counter every 50 rows."""
    if event.type == ImportEventType.ROW_FAILED and event.error:
        print(f"  ✗ ligne {event.error.line}: {event.error.message}")
    elif event.type == ImportEventType.ROW_DONE and (
        event.current % 50 == 0 or event.current == event.total
    ):
        print(f"  {event.current}/{event.total}")


def print_summary(session: ImportSession) -> None:
    print()
    print("=" * 60)
    print(f"Session {session.id}: {session.status.value.upper()}")
    print(f"  Lignes traitées: {session.current}/{session.total}")
    print(f"  Erreurs: {session.error_count}")
    if session.success_message:
        print(f"  {session.success_message}")
    for error in session.error_preview(settings.import_error_preview_limit):
        print(f"  - ligne {error.line}: {error.message}")
    hidden = session.error_count - settings.import_error_preview_limit
    if hidden > 0:
        print(f"  ... et {hidden} autres erreurs")
    print("=" * 60)


def run_template(kind: str, parent_id: str) -> int:
    from services.template_service import TemplateService

    service = TemplateService()
    if kind == "serials":
        if not parent_id:
            print("ERROR: --serial-parent is required for the serial template.")
            return 1
        text, _ = service.serial_template(parent_id)
    else:
        text = service.product_template()
    sys.stdout.write(text)
    return 0


def run_import(path: str, parent_id: str) -> int:
    if not os.path.isfile(path):
        print(f"ERROR: File not found: {path}")
        return 1

    with open(path, "rb") as f:
        text = decode_upload(f.read(), settings.import_file_encoding)

    if parent_id:
        from services.serial_import_service import SerialImportService
        print(f"Import numéros de série: {path} -> parent {parent_id}")
        session = SerialImportService(listeners=[print_progress]).import_csv(parent_id, text)
    else:
        from services.product_import_service import ProductImportService
        print(f"Import produits: {path}")
        session = ProductImportService(listeners=[print_progress]).import_csv(text)

    print_summary(session)
    return 0 if session.status == ImportStatus.SUCCESS else 1


def main():
    parser = argparse.ArgumentParser(
        description="Import products or serial numbers from a CSV file."
    )
    parser.add_argument(
        "file",
        nargs="?",
        default="",
        help="Path to the CSV file",
    )
    parser.add_argument(
        "--serial-parent",
        default="",
        help="Parent product UUID: import serial-numbered children under it",
    )
    parser.add_argument(
        "--template",
        choices=["products", "serials"],
        help="Print a CSV template instead of importing",
    )

    args = parser.parse_args()

    try:
        if args.template:
            sys.exit(run_template(args.template, args.serial_parent))

        if not args.file:
            print("ERROR: a CSV file is required for import mode.")
            sys.exit(1)

        sys.exit(run_import(args.file, args.serial_parent))

    except AppError as e:
        print(f"ERROR: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
