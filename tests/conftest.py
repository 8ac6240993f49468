"""
Pytest configuration and shared fixtures.

Provides small synthetic assays (probe annotations with coordinates, TCGA-like
sample barcodes) and a fake BigQuery client that answers the queries the
remote backend issues from an in-memory long table.
"""

import re
import numpy as np
import pandas as pd
import pytest

from assayview.backends.memory import InMemoryBackend
from assayview.core.view import AssayView
from assayview.io.loaders import load


SAMPLE_IDS = [
    "TCGA-A1-A0SB-01A-11D-A142-05",
    "TCGA-A1-A0SD-01A-11D-A10P-05",
    "TCGA-A2-A04P-01A-31D-A128-05",
]


def make_row_annotation(n_rows: int) -> pd.DataFrame:
    """Probe-like feature annotation with hg19 coordinates."""
    ids = pd.Index([f"cg{i:08d}" for i in range(n_rows)], name="probe_id")
    return pd.DataFrame({
        'seqname': ['chr17' if i % 2 == 0 else 'chr13' for i in range(n_rows)],
        'start': [7_500_000 + 100_000 * i for i in range(n_rows)],
        'end': [7_500_050 + 100_000 * i for i in range(n_rows)],
        'strand': ['+' if i % 3 else '-' for i in range(n_rows)],
        'biotype': ['protein_coding' if i % 2 == 0 else 'lncRNA' for i in range(n_rows)],
    }, index=ids)


def make_col_annotation(sample_ids=SAMPLE_IDS) -> pd.DataFrame:
    """Sample annotation keyed by aliquot barcodes."""
    return pd.DataFrame({
        'sample_type': ['tumor', 'normal', 'tumor'][:len(sample_ids)],
        'age': [52, 61, 47][:len(sample_ids)],
    }, index=pd.Index(sample_ids, name="barcode"))


def generate_synthetic_assay(n_rows: int, n_cols: int, seed: int = 42) -> AssayView:
    """
    In-memory assay of beta-like values in [0, 1].

    Sample ids are synthetic TCGA barcodes so alignment tests can truncate
    them to participant barcodes.
    """
    rng = np.random.RandomState(seed)
    data = rng.beta(2, 5, size=(n_rows, n_cols))
    sample_ids = [f"TCGA-ZZ-{j:04d}-01A-11D-A000-05" for j in range(n_cols)]
    col_annotation = pd.DataFrame({
        'sample_type': ['tumor' if j % 2 == 0 else 'normal' for j in range(n_cols)],
    }, index=pd.Index(sample_ids, name="barcode"))
    return load(InMemoryBackend(data, make_row_annotation(n_rows), col_annotation))


@pytest.fixture
def small_view():
    """5 features x 3 samples, values 0..14 row-major."""
    data = np.arange(15, dtype=float).reshape(5, 3)
    return load(InMemoryBackend(data, make_row_annotation(5), make_col_annotation()))


@pytest.fixture
def medium_view():
    """200 features x 12 samples."""
    return generate_synthetic_assay(200, 12)


def to_long(view: AssayView) -> pd.DataFrame:
    """Long (feature, sample, value) table as stored in BigQuery."""
    frame = view.to_frame()
    frame.index.name = "feature_id"
    return frame.reset_index().melt(id_vars="feature_id", var_name="sample_id", value_name="value")


class FakeJob:
    """Query job whose result is a fixed list of rows."""

    def __init__(self, rows, error=None):
        self._rows = rows
        self._error = error
        self.result_kwargs = None

    def result(self, timeout=None, retry="default", job_retry="default"):
        self.result_kwargs = {"timeout": timeout, "retry": retry, "job_retry": job_retry}
        if self._error is not None:
            raise self._error
        return iter(self._rows)


class FakeBigQueryClient:
    """
    Answers DISTINCT and slice queries from a long DataFrame.

    Records every query so tests can assert what (and how much) was asked.
    """

    _distinct = re.compile(r"SELECT DISTINCT (\w+) AS id")
    _select = re.compile(r"SELECT (\w+) AS feature, (\w+) AS sample, (\w+) AS value")

    def __init__(self, long: pd.DataFrame, project=None, error=None):
        self.long = long
        self.project = project
        self.error = error
        self.queries = []
        self.jobs = []

    def query(self, sql, job_config=None, timeout=None, retry="default", job_retry="default"):
        params = {p.name: list(p.values) for p in (job_config.query_parameters if job_config else [])}
        self.queries.append({"sql": sql, "params": params, "timeout": timeout,
                             "retry": retry, "job_retry": job_retry})
        self.jobs.append(self._answer(sql, params))
        return self.jobs[-1]

    def _answer(self, sql, params):
        if self.error is not None:
            return FakeJob([], error=self.error)

        match = self._distinct.search(sql)
        if match:
            values = sorted(self.long[match.group(1)].unique())
            return FakeJob([{"id": v} for v in values])

        feature_col, sample_col, value_col = self._select.search(sql).groups()
        hits = self.long[
            self.long[feature_col].isin(params["features"])
            & self.long[sample_col].isin(params["samples"])
        ]
        return FakeJob([
            {"feature": r[feature_col], "sample": r[sample_col], "value": r[value_col]}
            for _, r in hits.iterrows()
        ])


@pytest.fixture
def billing_project(monkeypatch):
    """Set the default billing environment variable."""
    monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "test-billing-project")
    return "test-billing-project"
