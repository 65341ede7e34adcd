"""Tests for wgd_load.cli — the wgd-load command."""

import pytest
import yaml

from wgd_load import cli
from wgd_load.errors import ConsistencyError


@pytest.fixture
def small_yaml(tmp_path):
    path = tmp_path / "small.yaml"
    with open(path, 'w') as f:
        yaml.dump({
            'simulation': {'seed': 3, 'n_generations': 12, 'switch_generation': 6},
            'population': {'carrying_capacity': 20},
            'genome': {'sequence_length': 5000, 'mutation_rate': 1e-4},
            'output': {'directory': str(tmp_path), 'sample_interval': 3},
        }, f)
    return path


class TestCli:
    def test_runs_and_writes_stats(self, small_yaml, tmp_path, capsys):
        out = tmp_path / "cli_stats.txt"
        code = cli.main([str(small_yaml), "--output", str(out), "--log-level", "WARNING"])
        assert code == 0
        lines = out.read_text().splitlines()
        assert lines[0].startswith("gen n ploidy")
        assert len(lines) == 1 + 4
        captured = capsys.readouterr().out
        assert "WGD-Load" in captured
        assert "Done: 12 generations" in captured

    def test_overrides(self, small_yaml, tmp_path):
        out = tmp_path / "override.txt"
        code = cli.main([str(small_yaml), "--generations", "6", "--switch", "3",
                         "--seed", "9", "--output", str(out), "--log-level", "ERROR"])
        assert code == 0
        gens = [line.split()[0] for line in out.read_text().splitlines()[1:]]
        assert gens == ["3", "6"]

    def test_fatal_error_exit_code(self, small_yaml, monkeypatch, capsys):
        def _broken(config, output_path=None):
            raise ConsistencyError(0, 1.0, 0, 2.0)

        monkeypatch.setattr(cli, "run_simulation", _broken)
        assert cli.main([str(small_yaml), "--log-level", "ERROR"]) == 2
        assert "FATAL: Pairing tag mismatch" in capsys.readouterr().err

    def test_missing_config(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            cli.main([str(tmp_path / "nope.yaml")])
