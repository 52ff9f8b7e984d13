"""
Command-line interface for the Peppol QC Service.

Provides four commands:
- analyze: Extract, validate and score an invoice document, optionally writing UBL XML
- validate: Validate and score an invoice record stored as JSON
- rules: List the validation rules
- version: Show version information
"""

import json
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from .config import setup_logging
from .exceptions import PeppolQCError
from .pipeline import analyze_document, analyze_record
from .schemas import AnalysisResult, InvoiceRecord
from .validator import describe_rules, format_findings_text


# Create Typer app
app = typer.Typer(
    name="peppol-qc",
    help="Peppol invoice extraction, validation and UBL generation CLI",
    add_completion=False,
)


@app.callback()
def _configure() -> None:
    setup_logging()


def _report_result(
    result: AnalysisResult,
    xml_out: Optional[Path],
    report: Optional[Path],
    fail_on_incomplete: bool,
) -> None:
    """Print a result, write the requested files and set the exit status."""
    typer.echo("\n" + format_findings_text(result.findings, result.score))

    if result.completeness_errors:
        typer.echo("\nIncomplete invoice, no XML generated:")
        for error in result.completeness_errors:
            typer.echo(f"  - {error.field}: {error.message}")

    if report:
        with open(report, "w", encoding="utf-8") as f:
            json.dump(result.model_dump(mode="json"), f, indent=2, ensure_ascii=False)
        typer.echo(f"\n[OK] Analysis report saved to: {report}")

    if xml_out:
        if result.xml is not None:
            xml_out.write_text(result.xml, encoding="utf-8")
            typer.echo(f"[OK] UBL invoice saved to: {xml_out}")
        else:
            typer.echo(f"[SKIP] UBL invoice not written to {xml_out}: record is incomplete", err=True)

    if fail_on_incomplete and not result.is_complete:
        raise typer.Exit(code=1)


@app.command()
def analyze(
    file: Path = typer.Argument(
        ...,
        help="Invoice document (.pdf, .xlsx or .xlsm)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    mime_type: Optional[str] = typer.Option(
        None,
        "--mime-type",
        "-m",
        help="Declared MIME type; defaults to detection by file extension",
    ),
    xml_out: Optional[Path] = typer.Option(
        None,
        "--xml-out",
        "-x",
        help="Write the UBL invoice to this file when the record is complete",
    ),
    report: Optional[Path] = typer.Option(
        None,
        "--report",
        "-r",
        help="Write the full analysis result as JSON to this file",
    ),
    fail_on_incomplete: bool = typer.Option(
        False,
        "--fail-on-incomplete",
        help="Exit with non-zero status if the record is incomplete",
    ),
) -> None:
    """
    Analyze an invoice document.

    Extracts the invoice fields, runs the Peppol rules, computes the
    conformity score and renders UBL XML when enough data was found.
    """
    typer.echo(f"Analyzing invoice: {file}")

    try:
        result = analyze_document(file, mime_type=mime_type, filename=file.name)
    except PeppolQCError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    record = result.record
    typer.echo(
        f"  Invoice {record.invoice_number or '<none>'} | {record.seller.name or '<no seller>'} | "
        f"{record.totals.gross_amount} {record.currency}"
    )
    _report_result(result, xml_out, report, fail_on_incomplete)


@app.command()
def validate(
    input_file: Path = typer.Option(
        ...,
        "--input",
        "-i",
        help="Input JSON file containing one invoice record",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    xml_out: Optional[Path] = typer.Option(
        None,
        "--xml-out",
        "-x",
        help="Write the UBL invoice to this file when the record is complete",
    ),
    report: Optional[Path] = typer.Option(
        None,
        "--report",
        "-r",
        help="Write the full analysis result as JSON to this file",
    ),
    fail_on_incomplete: bool = typer.Option(
        False,
        "--fail-on-incomplete",
        help="Exit with non-zero status if the record is incomplete",
    ),
) -> None:
    """
    Validate an invoice record from a JSON file.

    The record is normalized, checked and scored exactly like an extracted one.
    """
    typer.echo(f"Validating invoice record from: {input_file}")

    try:
        with open(input_file, "r", encoding="utf-8") as f:
            record = InvoiceRecord.model_validate(json.load(f))
        result = analyze_record(record)
    except json.JSONDecodeError as e:
        typer.echo(f"Error: Invalid JSON in input file: {e}", err=True)
        raise typer.Exit(code=1)
    except ValidationError as e:
        typer.echo(f"Error: Input is not a valid invoice record:\n{e}", err=True)
        raise typer.Exit(code=1)
    except PeppolQCError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    _report_result(result, xml_out, report, fail_on_incomplete)


@app.command()
def rules() -> None:
    """List the validation rules and the codes they emit."""
    for rule in describe_rules():
        typer.echo(f"{rule.name} [{rule.severity.value}] {', '.join(rule.codes)}")
        typer.echo(f"    {rule.description}")


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__
    typer.echo(f"Peppol QC Service v{__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
