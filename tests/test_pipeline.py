from __future__ import annotations

from pathlib import Path

import matplotlib.pyplot as plt
import pandas as pd

from GiantClamIsotopes import main, run_pipeline

ARTIFACTS = [
    "summary_by_dataset.csv",
    "anova_temperature.csv",
    "anova_d13C.csv",
    "tukey_temperature.csv",
    "assumption_checks.csv",
    "boxplots_temperature_d13C.png",
]


def test_run_pipeline_writes_artifacts(samples_csv: Path, tmp_path: Path, capsys) -> None:
    out_dir = tmp_path / "results"

    results = run_pipeline(str(samples_csv), str(out_dir))

    for name in ARTIFACTS:
        assert (out_dir / name).exists(), name
    summary = pd.read_csv(out_dir / "summary_by_dataset.csv")
    assert len(summary) == 24
    assert "temperature" in results["data"].columns
    assert len(results["tukey_temperature"]) == 3

    out = capsys.readouterr().out
    assert "One-way ANOVA: temperature ~ species" in out
    assert "Tukey HSD" in out
    plt.close(results["figure"])


def test_main_cli(samples_csv: Path, tmp_path: Path) -> None:
    out_dir = tmp_path / "cli_out"

    main(["--data", str(samples_csv), "--out", str(out_dir)])

    assert (out_dir / "anova_d13C.csv").exists()
    plt.close("all")


def test_run_pipeline_closes_figure(samples_csv: Path, tmp_path: Path) -> None:
    plt.close("all")

    results = run_pipeline(str(samples_csv), str(tmp_path / "results"))

    assert plt.get_fignums() == []
    assert results["figure"] is not None
