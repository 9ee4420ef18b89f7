# tests/conftest.py
from __future__ import annotations

import sys
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest


def pytest_configure() -> None:
    # Make the root-level analysis module importable when running from the repo root.
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root))


def make_samples(n_per_group: int = 4, seed: int = 0) -> pd.DataFrame:
    """Synthetic shell table: every layer × species cell plus two undetermined rows."""
    rng = np.random.default_rng(seed)
    offsets = {"squamosina": -0.6, "squamosa": -0.2, "maxima": 0.3}
    rows = []
    for layer in ("outer", "inner"):
        for species, off in offsets.items():
            for i in range(n_per_group):
                rows.append({
                    "specimen": f"{species[:3]}-{layer}-{i}",
                    "location": "Red Sea",
                    "species": species,
                    "layer": layer,
                    "d13C": 1.5 + off + rng.normal(0, 0.2),
                    "d18O": -1.2 + off + rng.normal(0, 0.15),
                })
        rows.append({
            "specimen": f"und-{layer}",
            "location": "Red Sea",
            "species": "undetermined",
            "layer": layer,
            "d13C": 5.0,
            "d18O": 2.0,
        })
    return pd.DataFrame(rows)


@pytest.fixture
def samples() -> pd.DataFrame:
    return make_samples()


@pytest.fixture
def samples_csv(tmp_path: Path, samples: pd.DataFrame) -> Path:
    path = tmp_path / "giant_clam_isotopes.csv"
    samples.to_csv(path, index=False)
    return path
