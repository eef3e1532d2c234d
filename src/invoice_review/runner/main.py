"""
CLI main entry point.
"""

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path

import yaml

from ..config import Config, ConfigValidationError, create_default_config, load_config
from ..extractors import BaseExtractor, FieldMapExtractor, OllamaExtractor
from ..insights import RecurringExpenseDetector, summarize_vat
from ..review import ReviewAnswerInvalid
from ..schemas.document_record import DocumentRecord, RecordStatus
from ..schemas.field_values import to_json_value
from ..services import build_pipeline, build_review_workflow
from ..state_store import ConcurrentModification, RecordNotFound, StateStore

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFLICT = 2


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not a YYYY-MM-DD date: {value}") from e


def _answer(value: str) -> tuple[str, str]:
    field_name, sep, answer = value.partition("=")
    if not sep or not field_name.strip():
        raise argparse.ArgumentTypeError(f"expected field=value, got {value!r}")
    return field_name.strip(), answer.strip()


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="invoice-review",
        description="Extract, reconcile and review UAE invoices",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # init-config command
    init_parser = subparsers.add_parser("init-config", help="Write a default config file")
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing config file",
    )

    # ingest command
    ingest_parser = subparsers.add_parser("ingest", help="Ingest one document")
    source = ingest_parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--fields",
        type=Path,
        help="JSON field map produced by an upstream extractor",
    )
    source.add_argument(
        "--text",
        type=Path,
        help="Document text (OCR output) to extract with the local LLM",
    )
    ingest_parser.add_argument(
        "--source",
        type=str,
        help="Source reference for the document (default: the input path)",
    )

    # list command
    list_parser = subparsers.add_parser("list", help="List document records")
    list_parser.add_argument(
        "--status",
        choices=[s.value for s in RecordStatus],
        help="Only records with this status",
    )

    # show command
    show_parser = subparsers.add_parser("show", help="Show one record and its questions")
    show_parser.add_argument("record_id", type=int)
    show_parser.add_argument("--json", action="store_true", help="Print the record as JSON")

    # resolve command
    resolve_parser = subparsers.add_parser("resolve", help="Answer review questions")
    resolve_parser.add_argument("record_id", type=int)
    resolve_parser.add_argument(
        "-a",
        "--answer",
        type=_answer,
        action="append",
        default=[],
        metavar="FIELD=VALUE",
        help="Answer for one question (repeatable)",
    )
    resolve_parser.add_argument(
        "--expected-version",
        type=int,
        help="Record version the answers were given against",
    )

    # approve command
    approve_parser = subparsers.add_parser("approve", help="Approve a record as-is")
    approve_parser.add_argument("record_id", type=int)
    approve_parser.add_argument("--expected-version", type=int)

    # mark-paid command
    paid_parser = subparsers.add_parser("mark-paid", help="Set the payment status")
    paid_parser.add_argument("record_id", type=int)
    paid_group = paid_parser.add_mutually_exclusive_group(required=True)
    paid_group.add_argument("--paid", dest="is_paid", action="store_const", const=True)
    paid_group.add_argument("--unpaid", dest="is_paid", action="store_const", const=False)
    paid_group.add_argument("--unknown", dest="is_paid", action="store_const", const=None)
    paid_parser.add_argument("--expected-version", type=int)

    # recurring command
    recurring_parser = subparsers.add_parser("recurring", help="Detect recurring expenses")
    recurring_parser.add_argument(
        "--today",
        type=_iso_date,
        help="Reference date YYYY-MM-DD (default: today)",
    )

    # vat-summary command
    vat_parser = subparsers.add_parser("vat-summary", help="VAT totals for a year")
    vat_parser.add_argument(
        "--year",
        type=int,
        default=date.today().year,
        help="Calendar year (default: current year)",
    )

    # status command
    subparsers.add_parser("status", help="Show pipeline status and statistics")

    return parser


def _print_record(record: DocumentRecord) -> None:
    icon = "✓" if record.status == RecordStatus.OK else "⚠️ "
    print(f"\n{icon} Record #{record.id} (version {record.version}) [{record.status.value}]")
    print(f"  Vendor:      {record.vendor or '-'}")
    print(f"  Date:        {record.date.isoformat() if record.date else '-'}")
    print(f"  Amount:      {record.amount if record.amount is not None else '-'} {record.currency}")
    print(f"  VAT:         {record.tax_amount if record.tax_amount is not None else '-'}")
    if record.gross_amount is not None:
        print(f"  Gross:       {record.gross_amount}")
    print(f"  Category:    {record.category.value if record.category else '-'}")
    paid = {True: "paid", False: "unpaid", None: "unknown"}[record.is_paid]
    print(f"  Payment:     {paid}")
    if record.source_ref:
        print(f"  Source:      {record.source_ref}")

    if record.review_questions:
        print(f"\n  Needs review: {record.review_reason}")
        for question in record.review_questions:
            print(f"   ❓ [{question.field_name}] {question.question}")
            if question.current_value is not None:
                print(f"      current: {to_json_value(question.current_value)}")
            if question.options:
                choices = ", ".join(f"{to_json_value(o.value)}={o.label}" for o in question.options)
                print(f"      options: {choices}")
            if question.hint:
                print(f"      hint: {question.hint}")


def cmd_init_config(config_path: Path, force: bool) -> int:
    """Write the default configuration file."""
    if config_path.exists() and not force:
        print(f"❌ {config_path} already exists (use --force to overwrite)")
        return EXIT_ERROR
    create_default_config(config_path)
    print(f"✓ Wrote default config to {config_path}")
    return EXIT_OK


def cmd_ingest(
    config: Config,
    fields_path: Path | None,
    text_path: Path | None,
    source_ref: str | None,
) -> int:
    """Run one document through the ingest pipeline and store it."""
    input_path = fields_path or text_path
    try:
        content = input_path.read_text(encoding="utf-8")
    except OSError as e:
        print(f"❌ Cannot read {input_path}: {e}")
        return EXIT_ERROR

    extractor: BaseExtractor
    if fields_path:
        extractor = FieldMapExtractor()
    else:
        extractor = OllamaExtractor(config.llm)

    try:
        pipeline = build_pipeline(config)
    except ValueError as e:
        print(f"❌ Invalid rule tables: {e}")
        return EXIT_ERROR

    print(f"📊 Ingesting {input_path} ({extractor.name})...")
    try:
        draft = pipeline.run(extractor, content, source_ref=source_ref or str(input_path))
    finally:
        if isinstance(extractor, OllamaExtractor):
            extractor.close()

    store = StateStore(config.state_db_path)
    record = store.upsert_record_for_source(draft)
    _print_record(record)
    return EXIT_OK


def cmd_list(config: Config, status: str | None) -> int:
    """List stored records."""
    store = StateStore(config.state_db_path)
    records = store.list_records(status=RecordStatus(status) if status else None)

    if not records:
        print("No records")
        return EXIT_OK

    for record in records:
        icon = "✓" if record.status == RecordStatus.OK else "⚠️ "
        amount = f"{record.amount} {record.currency}" if record.amount is not None else "-"
        day = record.date.isoformat() if record.date else "----------"
        print(f"  {icon} [{record.id}] {day}  {record.vendor or '(unknown vendor)'}  {amount}")
    print(f"\n✓ {len(records)} record(s)")
    return EXIT_OK


def cmd_show(config: Config, record_id: int, as_json: bool) -> int:
    """Show one record."""
    store = StateStore(config.state_db_path)
    try:
        record = store.get_record(record_id)
    except RecordNotFound as e:
        print(f"❌ {e}")
        return EXIT_ERROR

    if as_json:
        print(json.dumps(record.to_dict(), indent=2, ensure_ascii=False))
    else:
        _print_record(record)
    return EXIT_OK


def cmd_resolve(
    config: Config,
    record_id: int,
    answers: list[tuple[str, str]],
    expected_version: int | None,
) -> int:
    """Answer review questions (no answers approves as-is)."""
    store = StateStore(config.state_db_path)
    workflow = build_review_workflow(config, store)

    try:
        result = workflow.resolve(record_id, dict(answers), expected_version=expected_version)
    except RecordNotFound as e:
        print(f"❌ {e}")
        return EXIT_ERROR
    except ReviewAnswerInvalid as e:
        print("❌ Answers rejected, nothing was changed:")
        for field_name, reason in sorted(e.errors.items()):
            print(f"   - {field_name}: {reason}")
        return EXIT_ERROR
    except ConcurrentModification as e:
        print(f"❌ {e}. Reload the record and answer again.")
        return EXIT_CONFLICT

    _print_record(result.record)
    if result.changes_made:
        print(f"\n  Changed: {', '.join(result.changes_made)}")
    return EXIT_OK


def cmd_mark_paid(
    config: Config, record_id: int, is_paid: bool | None, expected_version: int | None
) -> int:
    """Set the payment flag."""
    store = StateStore(config.state_db_path)
    workflow = build_review_workflow(config, store)
    try:
        record = workflow.set_paid(record_id, is_paid, expected_version=expected_version)
    except RecordNotFound as e:
        print(f"❌ {e}")
        return EXIT_ERROR
    except ConcurrentModification as e:
        print(f"❌ {e}")
        return EXIT_CONFLICT

    label = {True: "paid", False: "unpaid", None: "unknown"}[record.is_paid]
    print(f"✓ Record #{record.id} marked {label} (version {record.version})")
    return EXIT_OK


def cmd_recurring(config: Config, today: date | None) -> int:
    """Detect recurring expenses."""
    store = StateStore(config.state_db_path)
    detector = RecurringExpenseDetector(config.recurring)
    candidates = detector.detect(store.list_records(), today=today)

    if not candidates:
        print("Not enough data yet to detect recurring patterns")
        return EXIT_OK

    print("\n🔁 Recurring Expenses")
    print("=" * 40)
    for c in candidates:
        label = f" ({c.inferred_type})" if c.inferred_type else ""
        print(
            f"  {c.vendor}{label}: ~{c.average_amount} {c.currency} on day {c.day_of_month}, "
            f"{c.occurrence_count}x, next {c.next_expected_date.isoformat()}"
        )
    print()
    return EXIT_OK


def cmd_vat_summary(config: Config, year: int) -> int:
    """Show VAT totals for a year."""
    store = StateStore(config.state_db_path)
    summary = summarize_vat(
        store.list_records(),
        year=year,
        rate=config.vat.rate,
        currency=config.normalization.default_currency,
    )

    print(f"\n🧾 VAT Summary {summary.year}")
    print("=" * 40)
    print(f"  VAT total:              {summary.vat_total} {summary.currency}")
    print(f"  Invoices:               {summary.invoice_count}")
    print(f"  With VAT:               {summary.invoices_with_vat_count}")
    print(f"  Missing VAT:            {summary.missing_vat_count}")
    print(f"  Estimated missing VAT:  {summary.estimated_missing_vat_total} {summary.currency}")
    print()
    return EXIT_OK


def cmd_status(config: Config) -> int:
    """Show pipeline status."""
    store = StateStore(config.state_db_path)
    stats = store.get_stats()

    print("\n📊 Pipeline Status")
    print("=" * 40)
    print(f"  Records total:          {stats['records_total']}")
    print(f"  Needs review:           {stats['needs_review']}")
    print(f"  OK:                     {stats['ok']}")
    print(f"  Jobs pending:           {stats['jobs_pending']}")
    print(f"  Jobs processing:        {stats['jobs_processing']}")
    print(f"  Jobs failed:            {stats['jobs_failed']}")
    print()

    return EXIT_OK


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return EXIT_ERROR

    if parsed.command == "init-config":
        return cmd_init_config(parsed.config, parsed.force)

    # Load config
    try:
        config = load_config(parsed.config, validate=True)
    except ConfigValidationError as e:
        print("❌ Invalid configuration:")
        for error in e.errors:
            print(f"   - {error}")
        return EXIT_ERROR
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"❌ Failed to load config: {e}")
        return EXIT_ERROR

    # Route to command
    if parsed.command == "ingest":
        return cmd_ingest(config, parsed.fields, parsed.text, parsed.source)
    elif parsed.command == "list":
        return cmd_list(config, parsed.status)
    elif parsed.command == "show":
        return cmd_show(config, parsed.record_id, parsed.json)
    elif parsed.command == "resolve":
        return cmd_resolve(config, parsed.record_id, parsed.answer, parsed.expected_version)
    elif parsed.command == "approve":
        return cmd_resolve(config, parsed.record_id, [], parsed.expected_version)
    elif parsed.command == "mark-paid":
        return cmd_mark_paid(config, parsed.record_id, parsed.is_paid, parsed.expected_version)
    elif parsed.command == "recurring":
        return cmd_recurring(config, parsed.today)
    elif parsed.command == "vat-summary":
        return cmd_vat_summary(config, parsed.year)
    elif parsed.command == "status":
        return cmd_status(config)
    else:
        parser.print_help()
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
