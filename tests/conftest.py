from __future__ import annotations

import os

import numpy as np
import pandas as pd
import pytest

# Recent MLflow releases reject the file-based tracking store used by the tests
# unless explicitly opted in.
os.environ.setdefault("MLFLOW_ALLOW_FILE_STORE", "true")


def _ames_like_frame(n_rows: int = 40) -> pd.DataFrame:
    neighborhoods = ["North_Ames"] * 18 + ["College_Creek"] * 14 + ["Old_Town"] * 6 + ["Veenker"] * 2
    building_types = ["OneFam"] * 30 + ["TwnhsE"] * 6 + ["Duplex"] * 4
    rows = []
    for i in range(n_rows):
        rows.append(
            {
                "Sale_Price": 100000.0 + i * 2500.0,
                "Neighborhood": neighborhoods[(i * 7) % 40],
                "Gr_Liv_Area": 800 + i * 37,
                "Year_Built": 1950 + i,
                "Bldg_Type": building_types[(i * 11) % 40],
                "Latitude": 42.0 + i * 0.001,
                "Longitude": -93.6 - ((i * 7) % 40) * 0.001,
            }
        )
    return pd.DataFrame(rows)


@pytest.fixture
def ames_frame() -> pd.DataFrame:
    return _ames_like_frame()


@pytest.fixture
def lumping_frame() -> pd.DataFrame:
    # training frequencies A: 0.50, B: 0.48, C: 0.02
    return pd.DataFrame(
        {
            "price": np.arange(1, 101, dtype=float),
            "grade": ["A"] * 50 + ["B"] * 48 + ["C"] * 2,
        }
    )
