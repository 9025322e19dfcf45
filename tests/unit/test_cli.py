"""
Tests for the command line interface.
"""

import yaml
from typer.testing import CliRunner

from timeflux.cli import app

runner = CliRunner()


def _write_config(tmp_path, config):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(config))
    return path


def test_init_writes_template(tmp_path):
    path = tmp_path / "timeflux_config.yaml"
    result = runner.invoke(app, ["init", str(path)])
    assert result.exit_code == 0
    template = yaml.safe_load(path.read_text())
    assert template["analysis"]["min_cutoff"] == 0.5
    assert template["analysis"]["clustering"]["ratio_threshold"] == 0.2


def test_run_writes_outputs(tmp_path, config):
    path = _write_config(tmp_path, config)
    result = runner.invoke(app, ["run", "--config", str(path)])
    assert result.exit_code == 0, result.output
    out = tmp_path / "out"
    assert (out / "timeflux_index.tsv").exists()
    assert (out / "report.pdf").exists()
    assert (out / "timeflux.h5ad").exists()


def test_run_reports_invalid_range(tmp_path, config):
    config["analysis"]["min_cutoff"] = 0.9
    path = _write_config(tmp_path, config)
    result = runner.invoke(app, ["run", "--config", str(path)])
    assert result.exit_code == 1


def test_cluster_unknown_index(tmp_path, config):
    path = _write_config(tmp_path, config)
    result = runner.invoke(app, ["cluster", "--config", str(path), "--index", "9-9"])
    assert result.exit_code == 1
