from typing import Optional

from timeflux.workflow.dataset import Dataset
from timeflux.analysis.index_pipeline import analysis_settings, run_index_pipeline
from timeflux.dataset.session import AnalysisSession
from timeflux.export.pdf_report_exporter import ReportPlotter
from timeflux.export.index_exporter import IndexExporter
from timeflux.utils.utils import log_time, log_info


@log_time("Timeflux Pipeline")
def run_pipeline(config: dict):
    dataset = Dataset(**config)
    matrix = dataset.get_matrix()
    session, clustering = run_index_pipeline(matrix, config)

    analysis_config = config.get("analysis", {}) or {}
    export_config = analysis_config.get("exports", {}) or {}

    if analysis_config.get("export_plot", True):
        plotter = ReportPlotter(session, clustering, config)
        plotter.plot_all()

    exporter = IndexExporter(session, clustering,
                             output_path=export_config.get("path_table", "timeflux_results"),
                             use_xlsx=export_config.get("table_use_xlsx", False),
                             )
    if analysis_config.get("export_table", True):
        exporter.export()

    if export_config.get("path_h5ad"):
        exporter.export_adata(export_config.get("path_h5ad"))

    return session, clustering


@log_time("Single index clustering")
def run_single_index(config: dict, index_key: str, k: Optional[int] = None,
                     output_path: Optional[str] = None):
    """Cluster one index group and optionally write one delimited table per cluster."""
    dataset = Dataset(**config)
    settings = analysis_settings(config)

    session = AnalysisSession.create(
        dataset.get_matrix(),
        scaling_method=settings["scaling_method"],
        cutoff=settings["cutoff"],
        min_cutoff=settings["min_cutoff"],
        max_cutoff=settings["max_cutoff"],
        step=settings["step"],
    )
    tables = session.cluster_one(
        index_key,
        k=k,
        scaling=settings["scaling"],
        max_k=settings["max_k"],
        ratio_threshold=settings["ratio_threshold"],
        random_state=settings["random_state"],
    )

    if output_path is not None:
        for cluster, df in tables.items():
            fname = f"{output_path}_cluster{cluster}.tsv"
            df.write_csv(fname, separator="\t")
            log_info(f"Cluster {cluster}: {df.height} genes → {fname}")
    return tables
