import argparse
import json
import logging
import sys
from typing import List, Optional

from isomapper.bond import CamtToBondMapper
from isomapper.camt.camt053 import CashManagementEndOfDayReport
from isomapper.database.repository import MessageRepository
from isomapper.errors import Iso20022Error
from isomapper.integrations.pydantic import from_dataclass
from isomapper.registry import from_json, from_xml
from isomapper.validator import Validator


def _read(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _is_xml(raw_data: bytes) -> bool:
    return raw_data.lstrip().startswith(b"<")


def handle_parse(args):
    """Handles the 'parse' subcommand: prints the typed content of a message as JSON."""
    try:
        raw_data = _read(args.file)
        msg = from_xml(raw_data) if _is_xml(raw_data) else from_json(raw_data)
        print(from_dataclass(msg).model_dump_json(indent=2))
    except (Iso20022Error, OSError) as e:
        print(f"Error parsing file: {e}", file=sys.stderr)
        sys.exit(1)


def handle_validate(args):
    """Handles the 'validate' subcommand: structural mapping plus identifier checks."""
    try:
        raw_data = _read(args.file)
    except OSError as e:
        print(f"Error validating file: {e}", file=sys.stderr)
        sys.exit(1)

    report = Validator.validate_payload(raw_data)
    if not report.is_valid:
        print("Validation Failed:")
        for err in report.errors:
            print(f"  - {err}")
        sys.exit(1)
    print("Validation Successful: message is well formed and its identifiers are valid.")


def handle_convert(args):
    """
    Handles the 'convert' subcommand: XML to the JSON document tree, or a
    JSON document tree back to XML.
    """
    try:
        raw_data = _read(args.file)
        target = args.format or ("json" if _is_xml(raw_data) else "xml")
        msg = from_xml(raw_data) if _is_xml(raw_data) else from_json(raw_data)
        if target == "json":
            print(json.dumps(msg.to_document_json(), indent=2))
        else:
            print(msg.serialize())
    except (Iso20022Error, OSError) as e:
        print(f"Error converting file: {e}", file=sys.stderr)
        sys.exit(1)


def handle_bond(args):
    """Handles the 'bond' subcommand: prints analytics records of a camt.053 statement."""
    try:
        raw_data = _read(args.file)
        accounts = CamtToBondMapper().parse(raw_data)
        print(json.dumps([account.model_dump(mode="json") for account in accounts], indent=2))
    except (Iso20022Error, OSError) as e:
        print(f"Error mapping file: {e}", file=sys.stderr)
        sys.exit(1)


def handle_persist(args):
    """Handles the 'persist' subcommand: saves camt.053 statements to a database."""
    from sqlalchemy import create_engine
    from sqlalchemy.exc import SQLAlchemyError
    from sqlalchemy.orm import sessionmaker

    try:
        report = CashManagementEndOfDayReport.from_xml(_read(args.file))

        engine = create_engine(args.db_url)
        MessageRepository.create_schema(engine)
        Session = sessionmaker(bind=engine)

        with Session() as session:
            repo = MessageRepository(session)
            records = repo.save(report)
            session.commit()
            print(f"Persisted {len(records)} statement(s) of message {report.message_id} to database.")
    except (Iso20022Error, OSError, SQLAlchemyError) as e:
        print(f"Error persisting message: {e}", file=sys.stderr)
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="isomapper",
        description="isomapper CLI - map ISO 20022 cash management and payment initiation messages."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Subcommand: parse
    parse_parser = subparsers.add_parser("parse", help="Parse a file and output its typed content as JSON.")
    parse_parser.add_argument("file", help="Path to the ISO 20022 XML or JSON file.")
    parse_parser.set_defaults(func=handle_parse)

    # Subcommand: validate
    validate_parser = subparsers.add_parser("validate", help="Check structure and identifiers.")
    validate_parser.add_argument("file", help="Path to the file to validate.")
    validate_parser.set_defaults(func=handle_validate)

    # Subcommand: convert
    convert_parser = subparsers.add_parser("convert", help="Convert between XML and the JSON document tree.")
    convert_parser.add_argument("file", help="Path to the XML or JSON file.")
    convert_parser.add_argument(
        "--format", choices=["json", "xml"], default=None,
        help="Output format (default: the other one)."
    )
    convert_parser.set_defaults(func=handle_convert)

    # Subcommand: bond
    bond_parser = subparsers.add_parser("bond", help="Map a camt.053 statement to analytics records.")
    bond_parser.add_argument("file", help="Path to the camt.053 file.")
    bond_parser.set_defaults(func=handle_bond)

    # Subcommand: persist
    persist_parser = subparsers.add_parser("persist", help="Parse and save a camt.053 file to a database.")
    persist_parser.add_argument("file", help="Path to the camt.053 file to persist.")
    persist_parser.add_argument("--db-url", required=True, help="SQLAlchemy database URL (e.g. sqlite:///test.db).")
    persist_parser.set_defaults(func=handle_persist)

    return parser


def main(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    args.func(args)


if __name__ == "__main__":
    main()
