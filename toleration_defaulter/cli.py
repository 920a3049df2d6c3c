"""Main CLI entry point for the toleration defaulter."""

import json
import sys
from pathlib import Path

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from toleration_defaulter.admission import DefaultTolerationSecondsPlugin
from toleration_defaulter.codec import TolerationSource, decode_pod_tolerations
from toleration_defaulter.config import Settings, load_settings
from toleration_defaulter.exceptions import ConfigurationError, TolerationDefaulterError
from toleration_defaulter.logging_config import get_logger, quiet_kubernetes_client, setup_logging
from toleration_defaulter.reconciler import NODE_HEALTH_TAINTS, tolerates

app = typer.Typer(
    name="toleration-defaulter",
    help="Default node-health tolerations on pods at admission time",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: str | None = typer.Option(None, "--log-file", help="Path to log file"),
):
    """Global options for all commands."""
    log_path = Path(log_file) if log_file else None
    setup_logging(verbose=verbose, log_file=log_path)
    logger.debug("Logging initialized")


def _build_settings(
    config_path: str | None,
    default_seconds: int | None = None,
    storage: str | None = None,
) -> Settings:
    """Load settings and apply command line overrides."""
    settings = load_settings(config_path)

    overrides = {}
    if default_seconds is not None:
        overrides["default_toleration_seconds"] = default_seconds
    if storage is not None:
        overrides["tolerations_storage"] = storage
    if not overrides:
        return settings

    try:
        return Settings.model_validate({**settings.model_dump(), **overrides})
    except ValidationError as e:
        raise ConfigurationError("Invalid command line settings", str(e)) from e


def _read_document(path: str) -> dict:
    """Read a YAML or JSON document from a file, or stdin for '-'."""
    if path == "-":
        text = sys.stdin.read()
    else:
        file_path = Path(path)
        if not file_path.exists():
            raise TolerationDefaulterError(
                f"File not found: {path}", f"Expected location: {file_path.absolute()}"
            )
        text = file_path.read_text()

    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise TolerationDefaulterError(f"Failed to parse {path}", str(e)) from e

    if not isinstance(document, dict):
        raise TolerationDefaulterError(
            f"Expected an object in {path}", f"Got {type(document).__name__}"
        )
    return document


def _report_error(e: TolerationDefaulterError) -> None:
    logger.error(e.message)
    console.print(f"[red]Error:[/red] {e.message}")
    if e.details:
        console.print(f"\n{e.details}")


def _report_unexpected(action: str, e: Exception) -> None:
    logger.error(f"Unexpected error during {action}: {e}", exc_info=True)
    console.print(f"[red]Unexpected error:[/red] {e}")
    console.print("\nRun with --verbose --log-file debug.log for more details")


@app.command()
def version() -> None:
    """Show version information."""
    from toleration_defaulter import __version__

    typer.echo(f"toleration-defaulter version {__version__}")


@app.command()
def reconcile(
    pod_file: str = typer.Argument(..., help="Pod manifest (YAML or JSON), '-' for stdin"),
    default_seconds: int | None = typer.Option(
        None, "--default-seconds", "-s", help="Grace period for defaulted tolerations"
    ),
    storage: str | None = typer.Option(
        None, "--storage", help="Where new tolerations go: spec or annotation"
    ),
    config_path: str | None = typer.Option(None, "--config", "-c", help="Settings file"),
    output: str = typer.Option("yaml", "--output", "-o", help="Output format: yaml or json"),
) -> None:
    """
    Print a pod with default node-health tolerations applied.

    Examples:
        # Default tolerations with a 120 second grace period
        toleration-defaulter reconcile pod.yaml --default-seconds 120

        # Read from stdin and print JSON
        kubectl get pod web -o json | toleration-defaulter reconcile - -o json
    """
    if output not in ("yaml", "json"):
        console.print(f"[red]Error:[/red] Unknown output format: {output}")
        raise typer.Exit(code=1)

    try:
        settings = _build_settings(config_path, default_seconds, storage)
        pod = _read_document(pod_file)
        plugin = DefaultTolerationSecondsPlugin(settings)
        updated, patch = plugin.mutate(pod)
    except TolerationDefaulterError as e:
        _report_error(e)
        raise typer.Exit(code=1)
    except Exception as e:
        _report_unexpected("reconcile", e)
        raise typer.Exit(code=1)

    if patch:
        logger.info(f"Applied {len(patch)} patch operation(s)")
    else:
        logger.info("Pod already tolerates node-health taints")

    if output == "json":
        typer.echo(json.dumps(updated, indent=2))
    else:
        typer.echo(yaml.safe_dump(updated, sort_keys=False), nl=False)


@app.command()
def review(
    review_file: str = typer.Argument(..., help="AdmissionReview document, '-' for stdin"),
    config_path: str | None = typer.Option(None, "--config", "-c", help="Settings file"),
) -> None:
    """
    Answer an AdmissionReview request and print the response review.
    """
    try:
        settings = _build_settings(config_path)
        document = _read_document(review_file)
        response = DefaultTolerationSecondsPlugin(settings).review(document)
    except TolerationDefaulterError as e:
        _report_error(e)
        raise typer.Exit(code=1)
    except Exception as e:
        _report_unexpected("review", e)
        raise typer.Exit(code=1)

    typer.echo(json.dumps(response, indent=2))


@app.command()
def check(
    pod_file: str = typer.Argument(..., help="Pod manifest (YAML or JSON), '-' for stdin"),
    default_seconds: int | None = typer.Option(
        None, "--default-seconds", "-s", help="Grace period for defaulted tolerations"
    ),
    config_path: str | None = typer.Option(None, "--config", "-c", help="Settings file"),
) -> None:
    """
    Show which node-health taints a pod tolerates and what would be added.
    """
    try:
        settings = _build_settings(config_path, default_seconds)
        pod = _read_document(pod_file)
        source, current, elsewhere = decode_pod_tolerations(pod, settings.tolerations_storage)
    except TolerationDefaulterError as e:
        _report_error(e)
        raise typer.Exit(code=1)
    except Exception as e:
        _report_unexpected("check", e)
        raise typer.Exit(code=1)

    tolerations = elsewhere + current

    table = Table(title="Node-health tolerations")
    table.add_column("Taint", style="cyan")
    table.add_column("Tolerated by", style="green")
    table.add_column("Action", style="yellow")

    missing = 0
    for taint in NODE_HEALTH_TAINTS:
        matching = [str(t) for t in tolerations if tolerates(t, taint)]
        if matching:
            table.add_row(str(taint), "\n".join(matching), "keep")
        else:
            missing += 1
            table.add_row(
                str(taint), "-", f"add Exists for {settings.default_toleration_seconds}s"
            )

    console.print(table)
    location = "spec.tolerations" if source is TolerationSource.SPEC else "annotation"
    console.print(f"\n[bold]Tolerations stored in:[/bold] {location}")
    console.print(f"[bold]Tolerations to add:[/bold] {missing}")


@app.command()
def audit(
    namespace: str | None = typer.Option(
        None, "--namespace", "-n", help="Only audit pods in this namespace"
    ),
    default_seconds: int | None = typer.Option(
        None, "--default-seconds", "-s", help="Grace period for defaulted tolerations"
    ),
    config_path: str | None = typer.Option(None, "--config", "-c", help="Settings file"),
) -> None:
    """
    Report running pods that lack node-health tolerations.

    Pods are read from the cluster in the current kubeconfig context.
    """
    from kubernetes import client, config
    from kubernetes.client.rest import ApiException

    try:
        settings = _build_settings(config_path, default_seconds)
    except TolerationDefaulterError as e:
        _report_error(e)
        raise typer.Exit(code=1)

    quiet_kubernetes_client()
    try:
        config.load_kube_config()
    except Exception as e:
        logger.error(f"Failed to load kubeconfig: {e}")
        console.print(f"[red]Error:[/red] Failed to load kubeconfig: {e}")
        console.print("\nMake sure a kubeconfig is available at ~/.kube/config or $KUBECONFIG")
        raise typer.Exit(code=1)

    v1 = client.CoreV1Api()
    try:
        if namespace:
            pods = v1.list_namespaced_pod(namespace=namespace)
        else:
            pods = v1.list_pod_for_all_namespaces()
    except ApiException as e:
        logger.error(f"Failed to list pods: {e}")
        console.print(f"[red]Error:[/red] Failed to list pods: {e.reason}")
        raise typer.Exit(code=1)

    plugin = DefaultTolerationSecondsPlugin(settings)
    table = Table(title="Pods without node-health tolerations")
    table.add_column("Namespace", style="cyan")
    table.add_column("Pod", style="magenta")
    table.add_column("Would add", style="yellow")

    flagged = 0
    invalid = 0
    for pod in sorted(pods.items, key=lambda p: (p.metadata.namespace, p.metadata.name)):
        try:
            result = plugin.reconcile_v1_pod(pod)
        except TolerationDefaulterError as e:
            invalid += 1
            pod_ref = f"{pod.metadata.namespace}/{pod.metadata.name}"
            logger.warning(f"Skipping pod {pod_ref}: {e.message}")
            continue

        if not result.changed:
            continue

        flagged += 1
        existing = len(pod.spec.tolerations or []) if pod.spec else 0
        added = ", ".join(t.key for t in result.tolerations[existing:])
        table.add_row(pod.metadata.namespace, pod.metadata.name, added)

    if flagged:
        console.print(table)
    else:
        console.print("[green]All pods tolerate node-health taints[/green]")

    console.print(f"\n[bold]Pods checked:[/bold] {len(pods.items)}")
    console.print(f"[bold]Pods missing tolerations:[/bold] {flagged}")
    if invalid:
        console.print(f"[bold]Pods with invalid tolerations:[/bold] {invalid}")
