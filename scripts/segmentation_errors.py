"""
segmentation_errors.py
-----------------------------------
Error taxonomy for the credit-card segmentation pipeline.

Every error is terminal: stages either return a valid result or raise one of
these, carrying the stage name (and column names where relevant) so the
operator can diagnose the failure from the run log.
"""


class SegmentationError(Exception):
    """Base error for all pipeline stages."""

    def __init__(self, message, stage=None):
        self.stage = stage
        self.message = message
        super().__init__(f"[{stage}] {message}" if stage else message)


class DataFormatError(SegmentationError):
    """Input file is malformed: missing identifier, missing or non-numeric columns."""

    def __init__(self, message, columns=(), stage="load"):
        self.columns = list(columns)
        super().__init__(message, stage=stage)


class DegenerateColumnError(SegmentationError):
    """One or more columns have zero variance and cannot be standardized."""

    def __init__(self, columns, stage="transform"):
        self.columns = list(columns)
        super().__init__(
            f"Zero-variance column(s) after log transform: {self.columns}",
            stage=stage,
        )


class ClusteringConvergenceError(SegmentationError):
    """K-means used its full iteration budget without assignments settling."""

    def __init__(self, k, max_iter, stage="kmeans"):
        self.k = k
        self.max_iter = max_iter
        super().__init__(
            f"k-means with k={k} did not converge within {max_iter} iterations",
            stage=stage,
        )
