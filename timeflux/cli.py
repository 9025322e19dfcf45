import typer
from pathlib import Path
from typing import Optional
import yaml
from importlib.resources import files

from timeflux.utils.errors import TimefluxError

app = typer.Typer(help="timeflux: expression-index clustering of time-series gene expression")


def _load_config(config: Path) -> dict:
    if config is None or not config.exists():
        raise typer.BadParameter(f"Config file not found: {config}")
    return yaml.safe_load(config.read_text()) or {}


@app.command()
def init(path: Path = Path("timeflux_config.yaml")):
    """
    Generate a config scaffold (basic template) at given path.
    """
    default_yaml = files("timeflux.templates").joinpath("user_template.yaml").read_text()

    path.write_text(default_yaml)
    typer.echo(f"Template written to {path}")


@app.command()
def run(
    config: Path = typer.Option(None, help="Path to YAML config file"),
):
    """
    Run the full pipeline: index every gene, cluster every index, export tables and report.
    """
    from timeflux.utils.cli_setup import configure_cli_display
    from timeflux.main import run_pipeline

    configure_cli_display()
    config_data = _load_config(config)

    try:
        run_pipeline(config=config_data)
    except TimefluxError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


@app.command()
def cluster(
    config: Path = typer.Option(None, help="Path to YAML config file"),
    index: str = typer.Option(..., "--index", help="Index key to cluster, e.g. '1-10'"),
    k: Optional[int] = typer.Option(None, "--k", help="Explicit number of clusters (skips the elbow heuristic)"),
    output: Optional[str] = typer.Option(None, help="Prefix for per-cluster TSV files"),
):
    """
    Cluster a single index group and print (or write) one table per cluster.
    """
    from timeflux.utils.cli_setup import configure_cli_display
    from timeflux.main import run_single_index

    configure_cli_display()
    config_data = _load_config(config)

    try:
        tables = run_single_index(config_data, index, k=k, output_path=output)
    except TimefluxError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    if output is None:
        for cluster_id, df in tables.items():
            typer.echo(f"Cluster {cluster_id} ({df.height} genes)")
            typer.echo(str(df))


if __name__ == "__main__":
    app()
