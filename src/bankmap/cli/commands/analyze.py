"""Column analysis command."""

from pathlib import Path

import click
from bankmap.cli.helpers import handle_domain_error
from bankmap.cli.mapping_options import describe_mapping
from bankmap.domain.column_analysis import ColumnAnalyzer
from bankmap.domain.entities import CSVAnalysisResult
from bankmap.domain.mapping_template import MappingTemplateService, generate_mapping_name
from bankmap.domain.transaction_parser import mapping_from_analysis
from bankmap.utils.csv_reader import read_csv_rows


def print_analysis(analysis: CSVAnalysisResult) -> None:
    """Print one line per column with its detected role and samples."""
    click.echo(f"\nColumns ({'header row detected' if analysis.has_headers else 'no header row'}):")
    click.echo("-" * 100)
    click.echo(f"{'#':<3} {'Header':<24} {'Field':<12} {'Conf':<6} {'Method':<8} Samples")
    click.echo("-" * 100)
    for column in analysis.columns:
        samples = ", ".join(column.sample_values)
        click.echo(
            f"{column.column_index:<3} {column.header_name[:24]:<24} {column.field_type.value:<12} "
            f"{column.confidence:<6.2f} {column.detection_method.value:<8} {samples[:40]}"
        )


@click.command("analyze")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def analyze_csv(ctx, csv_file: str):
    """Detect the column layout of a CSV export without importing it."""
    analyzer = ColumnAnalyzer()
    templates = MappingTemplateService(ctx.obj["db"])

    try:
        rows = read_csv_rows(csv_file)
        analysis = analyzer.analyze(rows)
    except (ValueError, FileNotFoundError) as e:
        handle_domain_error(ctx, e)
        return

    print_analysis(analysis)
    headers = list(rows[0]) if analysis.has_headers else None
    click.echo("\nSuggested mapping:")
    for line in describe_mapping(mapping_from_analysis(analysis, rows), headers):
        click.echo(line)

    click.echo(f"\nFingerprint: {analysis.fingerprint}")
    click.echo(f"Suggested name: {generate_mapping_name(analysis, Path(csv_file).name)}")
    template = templates.lookup(analysis.fingerprint)
    if template is not None:
        click.echo(f"Saved template: {template.name} (ID: {template.id}, used {template.usage_count} times)")
    verdict = "yes" if analyzer.is_auto_acceptable(analysis) else "no, manual mapping required"
    click.echo(f"Auto-accept: {verdict}")


def register_commands(cli):
    """Register analyze command with main CLI."""
    cli.add_command(analyze_csv)
