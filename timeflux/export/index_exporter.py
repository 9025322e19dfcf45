"""Export expression-index results to Excel/CSV and write an .h5ad.

Tables: the per-gene index, the index summary, the cutoff curve, the optimal k
per index, the cluster assignments with expression values, and the
standardized matrix. The .h5ad stores time points as observations and genes
as variables, so the matrix orientation matches the usual AnnData layout.
"""
import anndata as ad
import numpy as np
import pandas as pd
from pathlib import Path
from datetime import datetime
from typing import Dict, Optional
from importlib.metadata import version as _pkg_version, PackageNotFoundError

from timeflux.analysis.index_clustering import IndexClusteringResult
from timeflux.dataset.session import AnalysisSession
from timeflux.utils.semantics import COL_ANNOTATION, COL_CLUSTER, COL_GENE, COL_INDEX_KEY
from timeflux.utils.utils import log_time, log_info


class IndexExporter:
    def __init__(
        self,
        session: AnalysisSession,
        clustering: Optional[IndexClusteringResult],
        output_path,
        use_xlsx: bool = False,
        separator: str = "\t",
    ):
        """Excel/delimited-text and .h5ad exporter for an analysis session."""
        self.session = session
        self.clustering = clustering
        self.output_path = Path(output_path)
        self.use_xlsx = use_xlsx
        self.separator = separator

    def _cluster_table(self) -> Optional[pd.DataFrame]:
        """(GENE, INDEX_KEY, CLUSTER, raw values per time point), or None without clustering."""
        if self.clustering is None:
            return None
        assign = self.clustering.assignments.to_pandas().set_index(COL_GENE)
        expr = self.session.matrix.to_pandas()
        return assign.join(expr, how="left")

    def tables(self) -> Dict[str, Optional[pd.DataFrame]]:
        session = self.session
        selection = session.cutoff_selection
        return {
            "Index": session.index_table().to_pandas().set_index(COL_GENE),
            "Index summary": session.index_summary().to_pandas().set_index(COL_INDEX_KEY),
            "Cutoff curve": (selection.curve.to_pandas()
                             if selection is not None and selection.curve.height else None),
            "Optimal k": (self.clustering.optimal_k_table().to_pandas().set_index(COL_INDEX_KEY)
                          if self.clustering is not None else None),
            "Clusters": self._cluster_table(),
            "Standardized": session.standardized.to_pandas(),
        }

    def _readme(self) -> str:
        s = self.session
        lines = [
            "timeflux expression-index export",
            f"Created: {datetime.now().isoformat(timespec='seconds')}",
            f"Genes: {s.matrix.n_genes}, time points: {s.matrix.n_timepoints}",
            f"Scaling method: {s.scaling_method}",
            f"Cutoff: {s.cutoff}",
            f"Distinct indices: {len(s.groups)}",
            "INDEX_KEY: one code per time point, 1 = up, -1 = down, 0 = flat.",
            "CLUSTER: numbered within each index; the same number in two indices is unrelated.",
        ]
        return "\n".join(lines)

    def _export_excel(self, tables: Dict[str, Optional[pd.DataFrame]], readme: str) -> Path:
        """Write selected tables to a single XLSX with a README sheet."""
        out_file = self.output_path.with_suffix(".xlsx")
        with pd.ExcelWriter(out_file, engine="xlsxwriter") as writer:
            pd.DataFrame({"README": readme.split("\n")}).to_excel(
                writer, index=False, sheet_name="README"
            )
            for name, df in tables.items():
                if df is None:
                    continue
                df_out = df.reset_index() if df.index.name is not None else df
                df_out.to_excel(writer, sheet_name=name, index=False)
                writer.sheets[name].set_column(0, len(df_out.columns) - 1, 14)
        return out_file

    def _export_delimited(self, tables: Dict[str, Optional[pd.DataFrame]]) -> Path:
        """Write each table to a separate delimited file with a shared filename prefix."""
        prefix = self.output_path.with_suffix("")
        ext = ".tsv" if self.separator == "\t" else ".csv"
        for name, df in tables.items():
            if df is None:
                continue
            fname = f"{prefix}_{name.lower().replace(' ', '_')}{ext}"
            df.to_csv(fname, sep=self.separator, index=df.index.name is not None)
        return prefix

    @log_time("Exporting tables")
    def export(self) -> Path:
        """Export every table as xlsx (or delimited text)."""
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        tables = self.tables()
        if self.use_xlsx:
            out = self._export_excel(tables, self._readme())
        else:
            out = self._export_delimited(tables)
        log_info(f"Tables written to {out}")
        return out

    def to_anndata(self) -> ad.AnnData:
        """Time points × genes AnnData with index keys, clusters and the standardized layer."""
        s = self.session
        var = pd.DataFrame(index=pd.Index(list(s.matrix.genes), name=COL_GENE))
        var[COL_INDEX_KEY] = pd.Categorical([s.index[g] for g in s.matrix.genes])
        if s.matrix.annotations:
            var[COL_ANNOTATION] = [s.matrix.annotations.get(g, "") for g in s.matrix.genes]
        if self.clustering is not None:
            clusters = dict(zip(self.clustering.assignments.get_column(COL_GENE).to_list(),
                                self.clustering.assignments.get_column(COL_CLUSTER).to_list()))
            var[COL_CLUSTER] = [int(clusters.get(g, 0)) for g in s.matrix.genes]

        obs = pd.DataFrame(index=pd.Index(list(s.matrix.timepoints), name="TIMEPOINT"))
        adata = ad.AnnData(X=np.asarray(s.matrix.values).T.copy(), obs=obs, var=var)
        adata.layers["standardized"] = np.asarray(s.standardized.values).T.copy()

        try:
            tf_version = _pkg_version("timeflux")
        except PackageNotFoundError:
            tf_version = "0+unknown"

        uns = {
            "tf_version": tf_version,
            "created_at": datetime.now().isoformat(timespec="seconds") + "Z",
            "scaling_method": s.scaling_method,
            "cutoff": float(s.cutoff),
        }
        if s.cutoff_selection is not None and s.cutoff_selection.curve.height:
            uns["cutoff_curve"] = s.cutoff_selection.curve.to_pandas()
        if self.clustering is not None:
            uns["optimal_k"] = {k: int(v) for k, v in self.clustering.optimal_k.items()}
        adata.uns["timeflux"] = uns
        return adata

    @log_time("Exporting .h5ad")
    def export_adata(self, h5ad_path) -> None:
        """Write a compressed .h5ad of the session."""
        h5ad_path = Path(h5ad_path)
        h5ad_path.parent.mkdir(parents=True, exist_ok=True)
        self.to_anndata().write_h5ad(h5ad_path, compression="gzip")
