import matplotlib
matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from credit_preprocessing import ID_COL, NUMERIC_COLUMNS

MONEY_COLUMNS = [
    "BALANCE", "PURCHASES", "ONEOFF_PURCHASES", "INSTALLMENTS_PURCHASES", "CASH_ADVANCE",
    "CREDIT_LIMIT", "PAYMENTS", "MINIMUM_PAYMENTS",
]
FREQUENCY_COLUMNS = [
    "BALANCE_FREQUENCY", "PURCHASES_FREQUENCY", "ONEOFF_PURCHASES_FREQUENCY",
    "PURCHASES_INSTALLMENTS_FREQUENCY", "CASH_ADVANCE_FREQUENCY", "PRC_FULL_PAYMENT",
]
COUNT_COLUMNS = ["CASH_ADVANCE_TRX", "PURCHASES_TRX"]


@pytest.fixture
def four_row_dataset():
    """Two near-identical middle rows, a zero row, and one extreme outlier."""
    return pd.DataFrame({
        ID_COL: ["C1", "C2", "C3", "C4"],
        "BALANCE": [0.0, 100.0, 105.0, 10000.0],
        "PURCHASES": [0.0, 50.0, 55.0, 9000.0],
    })


@pytest.fixture
def credit_dataset():
    """Synthetic full-schema dataset: three spending profiles, a few missing values."""
    rng = np.random.default_rng(0)
    profiles = [
        # (log-mean of money columns, frequency range)
        (5.0, (0.0, 0.3)),
        (7.0, (0.3, 0.7)),
        (9.0, (0.7, 1.0)),
    ]
    n_per_profile = 40
    frames = []
    for p, (log_mean, (lo, hi)) in enumerate(profiles):
        data = {}
        for col in MONEY_COLUMNS:
            data[col] = rng.lognormal(mean=log_mean, sigma=0.4, size=n_per_profile)
        for col in FREQUENCY_COLUMNS:
            data[col] = rng.uniform(lo, hi, size=n_per_profile)
        for col in COUNT_COLUMNS:
            data[col] = rng.poisson(lam=3 * (p + 1), size=n_per_profile)
        data["TENURE"] = rng.choice([6, 8, 10, 12], size=n_per_profile)
        frames.append(pd.DataFrame(data))

    df = pd.concat(frames, ignore_index=True)
    df.insert(0, ID_COL, [f"C{10000 + i}" for i in range(len(df))])
    df = df[[ID_COL] + NUMERIC_COLUMNS]
    df.loc[[3, 50], "MINIMUM_PAYMENTS"] = np.nan
    df.loc[90, "CREDIT_LIMIT"] = np.nan
    return df


@pytest.fixture
def write_csv(tmp_path):
    """Write a DataFrame to a CSV under tmp_path and return the path."""
    def _write(df, name="cc_general.csv"):
        path = tmp_path / name
        df.to_csv(path, index=False)
        return path
    return _write
