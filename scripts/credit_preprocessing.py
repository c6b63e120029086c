"""
credit_preprocessing.py
-----------------------------------
Loads the credit-card account dataset, removes incomplete records, and builds
the transformed numeric matrix used by the PCA and clustering stages.

Steps:
1. Load raw CSV (comma-separated, header row)
2. Validate schema: identifier column plus 17 numeric measures
3. Listwise deletion of rows with any missing numeric value (once, upfront)
4. Apply log(1 + x) to every numeric measure
5. Optionally standardize each column (z-score, sample standard deviation)
6. Save transformed matrix to data/cc-general-clustering.csv
"""

import os
from pathlib import Path

import numpy as np
import pandas as pd
from pandas.api.types import is_numeric_dtype

from segmentation_errors import DataFormatError, DegenerateColumnError

# -------------------------
# CONFIG
# -------------------------
BASE_DIR = Path(__file__).resolve().parent.parent
DATA_PATH = Path(os.environ.get("CC_DATA_PATH", BASE_DIR / "data" / "CC GENERAL.csv"))
OUTPUT_PATH = BASE_DIR / "data" / "cc-general-clustering.csv"

ID_COL = "CUST_ID"

NUMERIC_COLUMNS = [
    "BALANCE",
    "BALANCE_FREQUENCY",
    "PURCHASES",
    "ONEOFF_PURCHASES",
    "INSTALLMENTS_PURCHASES",
    "CASH_ADVANCE",
    "PURCHASES_FREQUENCY",
    "ONEOFF_PURCHASES_FREQUENCY",
    "PURCHASES_INSTALLMENTS_FREQUENCY",
    "CASH_ADVANCE_FREQUENCY",
    "CASH_ADVANCE_TRX",
    "PURCHASES_TRX",
    "CREDIT_LIMIT",
    "PAYMENTS",
    "MINIMUM_PAYMENTS",
    "PRC_FULL_PAYMENT",
    "TENURE",
]

# Relative tolerance below which a column's standard deviation counts as zero
DEGENERATE_TOL = 1e-12


# -------------------------
# FUNCTIONS
# -------------------------
def numeric_columns(df: pd.DataFrame) -> list:
    """All columns except the identifier."""
    return [c for c in df.columns if c != ID_COL]


def validate_schema(df: pd.DataFrame, expected_columns=NUMERIC_COLUMNS) -> pd.DataFrame:
    """
    Check the identifier and expected numeric columns, coercing measures to numbers.

    Columns outside the expected schema are dropped with a warning.

    Raises:
        DataFormatError: identifier column missing or blank, expected columns
            absent, non-numeric values in a measure, or duplicate identifiers
    """
    if ID_COL not in df.columns:
        raise DataFormatError(f"Identifier column '{ID_COL}' is missing", columns=[ID_COL])

    missing_cols = [c for c in expected_columns if c not in df.columns]
    if missing_cols:
        raise DataFormatError(
            f"Expected {len(expected_columns) + 1} columns; missing {missing_cols}",
            columns=missing_cols,
        )

    extra_cols = [c for c in df.columns if c != ID_COL and c not in expected_columns]
    if extra_cols:
        print(f"⚠️  Warning: Ignoring unexpected columns: {extra_cols}")

    df_valid = df[[ID_COL] + list(expected_columns)].copy()
    blank_ids = df_valid[ID_COL].isna()
    if blank_ids.any():
        raise DataFormatError(f"{int(blank_ids.sum())} rows have a blank identifier",
                              columns=[ID_COL])
    df_valid[ID_COL] = df_valid[ID_COL].astype(str)

    for col in expected_columns:
        if is_numeric_dtype(df_valid[col]):
            continue
        coerced = pd.to_numeric(df_valid[col], errors="coerce")
        bad = coerced.isna() & df_valid[col].notna()
        if bad.any():
            sample = df_valid.loc[bad, col].head(3).tolist()
            raise DataFormatError(
                f"Column '{col}' has non-numeric values, e.g. {sample}",
                columns=[col],
            )
        df_valid[col] = coerced

    duplicated = df_valid[ID_COL].duplicated()
    if duplicated.any():
        dupes = df_valid.loc[duplicated, ID_COL].unique()[:5].tolist()
        raise DataFormatError(f"Duplicate identifiers found, e.g. {dupes}", columns=[ID_COL])

    return df_valid


def load_data(path: Path, expected_columns=NUMERIC_COLUMNS) -> pd.DataFrame:
    """Load raw dataset from CSV and validate its schema."""
    print(f"\n🔄 Loading dataset from: {path}")
    df = pd.read_csv(path)
    df = validate_schema(df, expected_columns)
    print(f"✅ Loaded {df.shape[0]} rows and {df.shape[1]} columns")
    return df


def check_missing_values(df: pd.DataFrame) -> pd.Series:
    """Check and report missing values per column."""
    missing = df.isnull().sum()
    if missing.sum() > 0:
        print(f"\n⚠️  Missing values detected:")
        print(missing[missing > 0])
    else:
        print("\n✅ No missing values detected")
    return missing


def drop_incomplete_rows(df: pd.DataFrame) -> pd.DataFrame:
    """
    Listwise deletion: drop every row with a missing numeric value.

    Done once, before any downstream stage, so all stages share one row set
    and identifiers stay joinable.
    """
    cols = numeric_columns(df)
    complete = df[cols].notna().all(axis=1)
    n_dropped = int((~complete).sum())
    df_clean = df.loc[complete].reset_index(drop=True)
    print(f"✅ Dropped {n_dropped} incomplete rows; {len(df_clean)} of {len(df)} retained")
    return df_clean


def numeric_matrix(dataset: pd.DataFrame) -> pd.DataFrame:
    """Numeric measures as floats, indexed by identifier."""
    return dataset.set_index(ID_COL)[numeric_columns(dataset)].astype(float)


def log_transform(matrix: pd.DataFrame) -> pd.DataFrame:
    """Apply x -> ln(1 + x) elementwise."""
    negative = (matrix < 0).sum()
    if negative.any():
        print(f"⚠️  Warning: Negative values present (kept as-is): {negative[negative > 0].to_dict()}")

    logged = np.log1p(matrix)
    undefined = ~np.isfinite(logged).all()
    if undefined.any():
        cols = undefined[undefined].index.tolist()
        raise DataFormatError(
            f"log1p undefined for values <= -1 in {cols}", columns=cols, stage="transform"
        )
    return logged


def find_degenerate_columns(matrix: pd.DataFrame) -> list:
    """Columns whose sample standard deviation is zero (or undefined)."""
    stds = matrix.std(ddof=1)
    scale = 1.0 + matrix.mean().abs()
    degenerate = stds.isna() | (stds <= DEGENERATE_TOL * scale)
    return degenerate[degenerate].index.tolist()


def standardize_columns(matrix: pd.DataFrame, drop_degenerate: bool = False) -> pd.DataFrame:
    """
    Center each column to zero mean and scale to unit sample variance.

    Raises:
        DegenerateColumnError: a column has zero variance and drop_degenerate is False
    """
    degenerate = find_degenerate_columns(matrix)
    if degenerate:
        if not drop_degenerate:
            raise DegenerateColumnError(degenerate)
        print(f"⚠️  Warning: Excluding zero-variance columns: {degenerate}")
        matrix = matrix.drop(columns=degenerate)

    return (matrix - matrix.mean()) / matrix.std(ddof=1)


def transform(dataset: pd.DataFrame, standardize: bool = True,
              drop_degenerate: bool = False) -> pd.DataFrame:
    """
    Build the TransformedMatrix: log1p of every measure, optionally z-scored.

    Args:
        dataset: Cleaned dataset with the identifier column
        standardize: Center and scale each column after the log transform
        drop_degenerate: Exclude zero-variance columns instead of raising

    Returns:
        Float DataFrame indexed by identifier
    """
    matrix = log_transform(numeric_matrix(dataset))
    if standardize:
        matrix = standardize_columns(matrix, drop_degenerate=drop_degenerate)
    label = "log1p + z-score" if standardize else "log1p"
    print(f"✅ Transformed {matrix.shape[1]} columns ({label}) for {matrix.shape[0]} rows")
    return matrix


def save_data(df: pd.DataFrame, output_path: Path) -> None:
    """Save transformed matrix to CSV, identifier included."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=True)
    print(f"\n✅ Saved transformed dataset to: {output_path}")


def main(data_path: Path = None):
    """Standalone preprocessing run."""
    print("="*60)
    print("CREDIT CARD DATA PREPROCESSING")
    print("="*60)

    df = load_data(data_path or DATA_PATH)
    check_missing_values(df)
    df_clean = drop_incomplete_rows(df)
    matrix = transform(df_clean, standardize=True)
    save_data(matrix, OUTPUT_PATH)

    print("\n" + "="*60)
    print("PREPROCESSING COMPLETE")
    print("="*60)
    print(f"Final shape: {matrix.shape}")


if __name__ == "__main__":
    main()
