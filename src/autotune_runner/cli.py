"""CLI entrypoint for the tuned job runner."""

from pathlib import Path

import click
from dotenv import load_dotenv

from autotune_runner.config import ConfigError, load_config
from autotune_runner.job_definition import JobDefinitionError, load_job_definition
from autotune_runner.patterns import PatternRegistryError, load_registry

# Load .env file on CLI startup
load_dotenv()

# Exit code of `classify` when the log shows a tuning failure
TUNING_FAILURE_EXIT_CODE = 3


@click.group()
@click.version_option(package_name="autotune-runner")
def cli():
    """Autotune runner - run batch jobs with tuned parameters and fallback retries."""
    pass


@cli.command("run")
@click.argument("job_file", type=click.Path(exists=True))
@click.option(
    "--graph",
    is_flag=True,
    help="Run attempts through the LangGraph wrapper for tracing",
)
def run_command(job_file: str, graph: bool):
    """Run a job with auto tuning and fallback retries.

    JOB_FILE: Path to job definition (YAML or JSON)

    Job definition format:

    \b
        job_id: daily-aggregation
        command: ["pig", "-f", "aggregate.pig"]
        props:
          tuning.job.retry.count: 2
    """
    from autotune_runner.job_runner import finish, run_job

    job_path = Path(job_file).resolve()
    click.echo(f"Running job: {job_path}")
    if graph:
        click.echo("  (LangGraph tracing enabled)")
    click.echo()

    try:
        outcome = run_job(job_path, use_graph=graph)
    except (JobDefinitionError, ConfigError, PatternRegistryError) as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    try:
        finish(outcome)
    except Exception as e:
        click.echo(f"Job failed: {e}", err=True)
        raise SystemExit(1)


@cli.command("classify")
@click.argument("log_file", type=click.Path())
@click.option(
    "--patterns-file",
    type=click.Path(exists=True),
    default=None,
    help="YAML file with additional tuning error patterns",
)
def classify_command(log_file: str, patterns_file: str):
    """Check whether a job log shows a tuning-parameter failure.

    LOG_FILE: Path to the job log

    Exits 0 when the failure is not tuning-caused, 3 when it is.
    """
    from autotune_runner.classifier import FailureClassifier

    try:
        registry = load_registry(Path(patterns_file) if patterns_file else None)
    except PatternRegistryError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    result = FailureClassifier(registry=registry).classify(Path(log_file))

    click.echo()
    if not result.artifact_available:
        click.echo("Log file unavailable - not tuning-caused")
    elif result.is_tuning_caused:
        click.echo(f"Tuning-caused failure ({result.lines_scanned} lines scanned)")
        click.echo(f"  Pattern: {result.matched_pattern}")
        click.echo(f"  Line:    {result.matched_line}")
        raise SystemExit(TUNING_FAILURE_EXIT_CODE)
    else:
        click.echo(f"No tuning error pattern found ({result.lines_scanned} lines scanned)")


@cli.command("patterns")
@click.option(
    "--patterns-file",
    type=click.Path(exists=True),
    default=None,
    help="YAML file with additional tuning error patterns",
)
def patterns_command(patterns_file: str):
    """List the tuning error patterns in effect."""
    try:
        registry = load_registry(Path(patterns_file) if patterns_file else None)
    except PatternRegistryError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    for i, pattern in enumerate(registry.patterns, start=1):
        click.echo(f"{i:3d}. {pattern}")


@cli.command("check-config")
@click.argument("job_file", type=click.Path(exists=True))
def check_config(job_file: str):
    """Check a job definition and the configuration it resolves to."""
    try:
        job = load_job_definition(Path(job_file))
        config = load_config(job.props)
    except (JobDefinitionError, ConfigError) as e:
        click.echo(f"Configuration error:\n{e}", err=True)
        raise SystemExit(1)

    click.echo("Configuration loaded successfully!")
    click.echo(f"  Job: {job.job_id}")
    click.echo(f"  Command: {' '.join(job.command)}")
    click.echo(f"  Max attempts: {config.retry_policy.max_attempts}")
    click.echo(f"  Working dir: {config.working_dir}")
    click.echo(f"  Log file: {config.log_file or '[not set]'}")
    click.echo(f"  Tuning endpoint: {config.tuning_endpoint or '[disabled]'}")
    click.echo(f"  Proxy user: {config.identity.user if config.identity else '[none]'}")
    click.echo(f"  Patterns file: {config.patterns_file or '[defaults]'}")


if __name__ == "__main__":
    cli()
