"""PDF report exporter for timeflux results.

Generates a multi-page PDF containing:
  1) Title/summary page (settings, gene and index counts, package versions)
  2) Cutoff search curve (chi-squared per cutoff) and index group sizes
  3) Per index group (largest first): the elbow curve and per-cluster expression profiles

Plotting consumes the session and clustering tables; only the per-cluster
tables and the elbow curves of the plotted groups are recomputed.
"""

import platform
import textwrap
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import polars
import sklearn
import scipy
from matplotlib.backends.backend_pdf import PdfPages

import timeflux
from timeflux.analysis.elbow import elbow_curve
from timeflux.analysis.index_clustering import IndexClusteringResult, cluster_expression_tables, group_values
from timeflux.analysis.index_pipeline import analysis_settings
from timeflux.dataset.session import AnalysisSession
from timeflux.utils.semantics import COL_CHI_SQUARED, COL_CLUSTER, COL_CUTOFF, COL_INDEX_KEY, COL_K, COL_N_GENES
from timeflux.utils.utils import log_time


def get_color_map(labels: List, palette: Optional[List[str]] = None) -> Dict:
    """Return a stable mapping label→color from Matplotlib's cycle."""
    palette = palette or plt.rcParams["axes.prop_cycle"].by_key()["color"]
    return {lbl: palette[i % len(palette)] for i, lbl in enumerate(labels)}


class ReportPlotter:
    """Prepare plotting context from an analysis session and config dict."""
    def __init__(
        self,
        session: AnalysisSession,
        clustering: Optional[IndexClusteringResult],
        config: Dict,
    ):
        self.config = config
        self.analysis_config = config.get("analysis", {}) or {}
        self.export_config = self.analysis_config.get("exports", {}) or {}
        self.session = session
        self.clustering = clustering
        self.max_groups = int(self.export_config.get("plot_max_groups", 12))

    @log_time("Preparing Pdf Report")
    def plot_all(self, path=None):
        """Create the full PDF report to `path` (default: the configured path_plot)."""
        path = Path(path or self.export_config.get("path_plot", "timeflux_report.pdf"))
        path.parent.mkdir(parents=True, exist_ok=True)
        with PdfPages(path) as pdf:
            self.pdf = pdf
            self._plot_title_page()
            self._plot_cutoff_and_groups()
            if self.clustering is not None:
                self._plot_cluster_profiles()
        return path

    def _plot_title_page(self):
        fig = plt.figure(figsize=(8.27, 11.69))
        s = self.session
        title = self.analysis_config.get("title", "timeflux: expression index report")
        lines = [
            f"Genes: {s.matrix.n_genes}",
            f"Time points: {s.matrix.n_timepoints} ({', '.join(s.matrix.timepoints)})",
            f"Scaling method: {s.scaling_method}",
            f"Cutoff: {s.cutoff}" + (" (searched)" if s.cutoff_selection is not None else " (fixed)"),
            f"Distinct indices: {len(s.groups)}",
        ]
        if self.clustering is not None:
            lines.append(f"Total clusters: {sum(self.clustering.optimal_k.values())}")
        versions = (
            f"timeflux {getattr(timeflux, '__version__', '?')} | polars {polars.__version__} | "
            f"scikit-learn {sklearn.__version__} | scipy {scipy.__version__} | "
            f"matplotlib {matplotlib.__version__} | Python {platform.python_version()}"
        )

        fig.text(0.05, 0.95, title, fontsize=18, weight="bold", va="top")
        y = 0.88
        for line in lines:
            for wrapped in textwrap.wrap(line, 90):
                fig.text(0.05, y, wrapped, fontsize=11, va="top")
                y -= 0.025
        fig.text(0.05, 0.05, versions, fontsize=8, color="gray")
        fig.text(0.05, 0.03, datetime.now().strftime("%Y-%m-%d %H:%M"), fontsize=8, color="gray")
        self.pdf.savefig(fig)
        plt.close(fig)

    def _plot_cutoff_and_groups(self):
        fig, (ax_curve, ax_bar) = plt.subplots(2, 1, figsize=(8.27, 11.69))
        selection = self.session.cutoff_selection

        if selection is not None and selection.curve.height:
            curve = selection.curve
            ax_curve.plot(curve[COL_CUTOFF].to_numpy(), curve[COL_CHI_SQUARED].to_numpy(), marker="o")
            ax_curve.axvline(selection.cutoff, color="red", linestyle="--", label=f"best = {selection.cutoff}")
            ax_curve.legend()
        else:
            ax_curve.text(0.5, 0.5, f"Fixed cutoff {self.session.cutoff}: no search",
                          ha="center", va="center", transform=ax_curve.transAxes)
        ax_curve.set_xlabel("Cutoff")
        ax_curve.set_ylabel("Chi-squared (uniform group sizes)")
        ax_curve.set_title("Cutoff search")

        summary = self.session.index_summary().head(30)
        keys = summary[COL_INDEX_KEY].to_list()
        ax_bar.barh(np.arange(len(keys)), summary[COL_N_GENES].to_numpy())
        ax_bar.set_yticks(np.arange(len(keys)))
        ax_bar.set_yticklabels(keys, fontsize=7)
        ax_bar.invert_yaxis()
        ax_bar.set_xlabel("Genes")
        ax_bar.set_title("Largest index groups")

        fig.tight_layout()
        self.pdf.savefig(fig)
        plt.close(fig)

    def _plot_elbow(self, ax, index_key: str):
        settings = analysis_settings(self.config)
        values = group_values(self.session.standardized, self.session.groups[index_key], settings["scaling"])
        curve = elbow_curve(values, max_k=settings["max_k"], random_state=settings["random_state"])
        ax.plot(curve[COL_K].to_numpy(), curve["RATIO"].to_numpy(), marker="o")
        ax.axhline(settings["ratio_threshold"], color="red", linestyle="--", linewidth=0.8)
        ax.set_xlabel("k")
        ax.set_ylabel("WSS / TSS")
        ax.set_title("Elbow curve", fontsize=9)

    def _plot_cluster_profiles(self):
        summary = self.session.index_summary().head(self.max_groups)
        timepoints = list(self.session.matrix.timepoints)
        x = np.arange(len(timepoints))

        for index_key in summary[COL_INDEX_KEY].to_list():
            assign = self.clustering.assignments.filter(
                polars.col(COL_INDEX_KEY) == index_key
            )
            tables = cluster_expression_tables(assign, self.session.matrix)
            colors = get_color_map(sorted(tables))

            fig, axes = plt.subplots(len(tables) + 1, 1, figsize=(8.27, 2.5 * (len(tables) + 1) + 1),
                                     squeeze=False)
            self._plot_elbow(axes[0, 0], index_key)
            for ax, cluster in zip(axes[1:, 0], sorted(tables)):
                values = tables[cluster].select(timepoints).to_numpy()
                for row in values:
                    ax.plot(x, row, color=colors[cluster], alpha=0.3, linewidth=0.8)
                ax.plot(x, values.mean(axis=0), color="black", linewidth=2)
                ax.set_ylabel("Expression")
                ax.set_title(f"{COL_CLUSTER.lower()} {cluster} (n={len(values)})", fontsize=9)
                ax.set_xticks(x)
                ax.set_xticklabels(timepoints, rotation=45, ha="right", fontsize=7)
            fig.suptitle(f"Index {index_key}: k={self.clustering.optimal_k.get(index_key)}")
            fig.tight_layout()
            self.pdf.savefig(fig)
            plt.close(fig)
