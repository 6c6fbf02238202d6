"""
Unit tests for CLI commands.
"""

import numpy as np
import pytest

from difgrid.cli.main import app


class TestCLIHelp:
    """Test help messages and basic CLI functionality."""

    def test_main_help(self, cli_runner):
        result = cli_runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "run" in result.stdout

    def test_run_help(self, cli_runner):
        result = cli_runner.invoke(app, ["run", "--help"])
        assert result.exit_code == 0
        assert "--alignment" in result.stdout
        assert "--tag" in result.stdout
        assert "--strategy" in result.stdout


class TestCLIRun:
    """Test 'run' command functionality."""

    def test_text_output(self, cli_runner, fasta_file, tree_file):
        result = cli_runner.invoke(app, [
            "run",
            "-s", str(fasta_file),
            "-t", str(tree_file),
            "--tag", "{G1}",
            "--tag", "{G2}",
            "--foreground-grid", "1",
            "--strategy", "direct",
            "--quiet",
        ])

        assert result.exit_code == 0, result.output
        assert "DIFGRID CONDITIONAL LIKELIHOOD GRID" in result.stdout
        assert "Grid points:          8" in result.stdout

    @pytest.mark.parametrize("strategy", ["direct", "parallel", "memoized", "memoized-parallel"])
    def test_npz_output(self, cli_runner, phylip_file, tree_file, tmp_path, strategy):
        output = tmp_path / "grid.npz"
        result = cli_runner.invoke(app, [
            "run",
            "-s", str(phylip_file),
            "-t", str(tree_file),
            "--tag", "{G1}",
            "--tag", "{G2}",
            "--foreground-grid", "1",
            "--strategy", strategy,
            "--workers", "2",
            "-o", str(output),
            "-q",
        ])

        assert result.exit_code == 0, result.output
        with np.load(output) as data:
            assert data["log_con_lik_matrix"].shape == (8, 6)
            np.testing.assert_array_equal(data["con_lik_matrix"].max(axis=0), 1.0)
            assert data["param_kinds"].tolist() == ["Alpha", "OmegaG1", "OmegaG2"]

    def test_verbose_progress(self, cli_runner, fasta_file, tree_file):
        result = cli_runner.invoke(app, [
            "run",
            "-s", str(fasta_file),
            "-t", str(tree_file),
            "--tag", "{G1}",
            "--tag", "{G2}",
            "--foreground-grid", "1",
            "--strategy", "memoized",
            "-v",
        ])

        assert result.exit_code == 0, result.output
        assert "Calculating grid of 8-by-6" in result.stdout

    def test_unknown_strategy(self, cli_runner, fasta_file, tree_file):
        result = cli_runner.invoke(app, [
            "run", "-s", str(fasta_file), "-t", str(tree_file),
            "--tag", "{G1}", "--strategy", "fastest",
        ])
        assert result.exit_code != 0

    def test_missing_tag(self, cli_runner, fasta_file, tree_file):
        result = cli_runner.invoke(app, ["run", "-s", str(fasta_file), "-t", str(tree_file)])
        assert result.exit_code != 0

    def test_leaf_without_sequence(self, cli_runner, fasta_file, tmp_path):
        tree = tmp_path / "bad_tree.nwk"
        tree.write_text("((A{G1}:0.1,B{G1}:0.1){G1}:0.1,(C{G2}:0.1,E{G2}:0.1){G2}:0.1);\n")
        result = cli_runner.invoke(app, [
            "run", "-s", str(fasta_file), "-t", str(tree),
            "--tag", "{G1}", "--tag", "{G2}", "--foreground-grid", "1", "-q",
        ])

        assert result.exit_code == 1
        assert "Error: Grid computation failed" in result.output

    def test_unreadable_alignment(self, cli_runner, tree_file, tmp_path):
        bad = tmp_path / "bad.fasta"
        bad.write_text("this is not an alignment\n")
        result = cli_runner.invoke(app, [
            "run", "-s", str(bad), "-t", str(tree_file), "--tag", "{G1}",
        ])

        assert result.exit_code == 1
        assert "Error: Could not load alignment" in result.output

    def test_bad_tree(self, cli_runner, fasta_file, tmp_path):
        bad = tmp_path / "bad.nwk"
        bad.write_text("((A,B),C\n")
        result = cli_runner.invoke(app, [
            "run", "-s", str(fasta_file), "-t", str(bad), "--tag", "{G1}",
        ])

        assert result.exit_code == 1
        assert "Error: Could not load tree" in result.output

    def test_empty_phylip_alignment(self, cli_runner, tree_file, tmp_path):
        empty = tmp_path / "empty.phy"
        empty.write_text("\n   \n")
        result = cli_runner.invoke(app, [
            "run", "-s", str(empty), "-t", str(tree_file), "--tag", "{G1}",
        ])

        assert result.exit_code == 1
        assert "Error: Could not load alignment" in result.output
        assert "Empty PHYLIP file" in result.output
