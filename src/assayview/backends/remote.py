"""
Remote backend: an assay stored as a long table in Google BigQuery.

The table holds one row per measured cell::

    feature_id    sample_id       value
    cg00000029    TCGA-A1-A0SB    0.412
    cg00000029    TCGA-A1-A0SD    0.377

Queries are billed to a project named by an environment variable (by default
GOOGLE_CLOUD_PROJECT). The variable is checked before any client is built, so
a missing credential fails fast with AuthenticationRequired and no network
traffic.

Policy for remote calls:
    - every query waits at most ``timeout`` seconds (constructor argument,
      else ASSAYVIEW_REMOTE_TIMEOUT, else 60)
    - failures and timeouts raise BackendUnavailable immediately; there are
      no automatic retries
    - a slice read is a single query; a failed read returns nothing

Examples:
    >>> backend = RemoteServiceBackend(
    ...     "isb-cgc.TCGA_hg38_data_v0.DNA_Methylation",
    ...     feature_column="probe_id",
    ...     sample_column="case_barcode",
    ...     value_column="beta_value",
    ...     row_annotation=probe_annotation,
    ... )
    >>> view = load(backend)          # two DISTINCT queries, no payload
    >>> view.subset(rows=probes).materialize()   # one query for the slice
"""

from __future__ import annotations

from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable
import logging
import os
import re
import numpy as np
import pandas as pd

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import DefaultCredentialsError
from google.cloud import bigquery

from assayview.backends.base import AssayBackend, as_annotation
from assayview.core.errors import AuthenticationRequired, BackendUnavailable, ShapeMismatch

__all__ = [
    'RemoteServiceBackend',
    'DEFAULT_BILLING_ENV',
    'DEFAULT_TIMEOUT',
    'TIMEOUT_ENV',
    'resolve_timeout',
]

logger = logging.getLogger(__name__)

DEFAULT_BILLING_ENV = "GOOGLE_CLOUD_PROJECT"
TIMEOUT_ENV = "ASSAYVIEW_REMOTE_TIMEOUT"
DEFAULT_TIMEOUT = 60.0

# [project.]dataset.table; project ids may contain '-' and a 'domain:' prefix
_TABLE_PATTERN = re.compile(r'^(?:[A-Za-z0-9_\-:]+\.)?[A-Za-z0-9_]+\.[A-Za-z0-9_\-$]+$')
_COLUMN_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


def resolve_timeout(timeout: float | None = None) -> float:
    """
    Pick the remote query timeout.

    Priority: explicit argument, then the ASSAYVIEW_REMOTE_TIMEOUT
    environment variable, then DEFAULT_TIMEOUT.

    Raises:
        ValueError: If the resolved timeout is not a positive number
    """
    if timeout is None:
        raw = os.environ.get(TIMEOUT_ENV)
        if raw is None or not raw.strip():
            return DEFAULT_TIMEOUT
        try:
            timeout = float(raw)
        except ValueError as e:
            raise ValueError(f"{TIMEOUT_ENV} must be a number, got {raw!r}") from e
    if timeout <= 0:
        raise ValueError(f"Remote timeout must be positive, got {timeout}")
    return float(timeout)


class RemoteServiceBackend(AssayBackend):
    """
    Backend over a long-format BigQuery table.

    Args:
        table: Fully qualified table, ``project.dataset.table`` or ``dataset.table``
        feature_column: Column holding feature identifiers
        sample_column: Column holding sample identifiers
        value_column: Column holding numeric values
        billing_env: Name of the environment variable holding the billing
            project (the value is never stored in config files)
        row_annotation: Optional feature annotation; its order defines view
            row order and its identifiers must match the table's features
        col_annotation: Optional sample annotation, same rules as rows
        timeout: Seconds to wait for each query (see ``resolve_timeout``)
        client_factory: Callable ``(project=...) -> client``; defaults to
            ``google.cloud.bigquery.Client``

    Raises:
        ValueError: If table or column names are not valid identifiers
    """

    name = "remote"
    is_lazy = True

    def __init__(
        self,
        table: str,
        feature_column: str = "feature_id",
        sample_column: str = "sample_id",
        value_column: str = "value",
        billing_env: str = DEFAULT_BILLING_ENV,
        row_annotation: Any = None,
        col_annotation: Any = None,
        timeout: float | None = None,
        client_factory: Callable[..., Any] | None = None,
    ):
        if not _TABLE_PATTERN.match(table):
            raise ValueError(f"Invalid BigQuery table name: {table!r}")
        for column in (feature_column, sample_column, value_column):
            if not _COLUMN_PATTERN.match(column):
                raise ValueError(f"Invalid column name: {column!r}")

        self.table = table
        self.feature_column = feature_column
        self.sample_column = sample_column
        self.value_column = value_column
        self.billing_env = billing_env
        self.timeout = resolve_timeout(timeout)
        self._client_factory = client_factory
        self._client = None

        self._declared_rows = None if row_annotation is None else as_annotation(row_annotation, "rows")
        self._declared_cols = None if col_annotation is None else as_annotation(col_annotation, "columns")
        self._row_annotation: pd.DataFrame | None = None
        self._col_annotation: pd.DataFrame | None = None

    def credential(self) -> str:
        """
        Billing project from the configured environment variable.

        Raises:
            AuthenticationRequired: If the variable is unset or blank
        """
        project = os.environ.get(self.billing_env, "").strip()
        if not project:
            raise AuthenticationRequired(self.billing_env)
        return project

    def connect(self):
        """
        Return the query client, building it on first use.

        Raises:
            AuthenticationRequired: Missing billing project or Google credentials
            BackendUnavailable: Client construction failed
        """
        project = self.credential()
        if self._client is not None:
            return self._client

        factory = self._client_factory or bigquery.Client
        try:
            self._client = factory(project=project)
        except DefaultCredentialsError as e:
            raise AuthenticationRequired(
                self.billing_env,
                f"No Google credentials available for project {project}: {e}",
            ) from e
        except GoogleAPIError as e:
            raise BackendUnavailable(f"Cannot create BigQuery client: {e}") from e

        logger.info(f"Connected to BigQuery (billing project {project})")
        return self._client

    def check(self) -> None:
        self.credential()
        self._resolve_annotations()

    @property
    def shape(self) -> tuple[int, int]:
        rows, cols = self._resolve_annotations()
        return len(rows), len(cols)

    def annotations(self) -> tuple[pd.DataFrame, pd.DataFrame]:
        return self._resolve_annotations()

    def read(self, rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
        row_annotation, col_annotation = self._resolve_annotations()
        features = row_annotation.index[rows]
        samples = col_annotation.index[cols]

        sql = (
            f"SELECT {self.feature_column} AS feature, "
            f"{self.sample_column} AS sample, "
            f"{self.value_column} AS value\n"
            f"FROM `{self.table}`\n"
            f"WHERE {self.feature_column} IN UNNEST(@features)\n"
            f"  AND {self.sample_column} IN UNNEST(@samples)"
        )
        params = [
            _array_parameter("features", features),
            _array_parameter("samples", samples),
        ]
        result = self._run_query(sql, params)

        records = [(row["feature"], row["sample"], row["value"]) for row in result]
        logger.info(
            f"Fetched {len(records):,} cells for {len(features)} x {len(samples)} slice of {self.table}"
        )
        if not records:
            return np.full((len(features), len(samples)), np.nan)

        long = pd.DataFrame.from_records(records, columns=["feature", "sample", "value"])
        if long.duplicated(subset=["feature", "sample"]).any():
            n_dup = int(long.duplicated(subset=["feature", "sample"]).sum())
            raise ShapeMismatch(f"{self.table} has {n_dup} duplicate (feature, sample) cells")

        wide = long.pivot(index="feature", columns="sample", values="value")
        wide = wide.reindex(index=features, columns=samples)
        return wide.to_numpy(dtype=float)

    def describe(self) -> dict[str, Any]:
        info = super().describe()
        info.update({
            "table": self.table,
            "columns": [self.feature_column, self.sample_column, self.value_column],
            "billing_env": self.billing_env,
            "timeout": self.timeout,
        })
        return info

    def _resolve_annotations(self) -> tuple[pd.DataFrame, pd.DataFrame]:
        if self._row_annotation is None or self._col_annotation is None:
            self.credential()
            self._row_annotation = self._align(
                self._declared_rows, self._distinct(self.feature_column), "rows"
            )
            self._col_annotation = self._align(
                self._declared_cols, self._distinct(self.sample_column), "columns"
            )
        return self._row_annotation, self._col_annotation

    def _distinct(self, column: str) -> pd.Index:
        sql = f"SELECT DISTINCT {column} AS id FROM `{self.table}` ORDER BY id"
        ids = pd.Index([row["id"] for row in self._run_query(sql)])
        logger.info(f"Discovered {len(ids):,} distinct {column} values in {self.table}")
        return ids

    def _align(self, declared: pd.DataFrame | None, found: pd.Index, axis: str) -> pd.DataFrame:
        if declared is None:
            return pd.DataFrame(index=found)

        if len(declared) != len(found):
            raise ShapeMismatch(
                f"{axis} annotation has {len(declared)} entries but {self.table} "
                f"has {len(found)} distinct {axis}"
            )
        unknown = declared.index.difference(found)
        if len(unknown):
            raise ShapeMismatch(
                f"{len(unknown)} {axis} annotation identifiers not in {self.table}: "
                f"{list(unknown[:5])}"
            )
        return declared

    def _run_query(self, sql: str, params: list | None = None) -> list:
        client = self.connect()
        job_config = bigquery.QueryJobConfig(query_parameters=params or [])
        logger.debug(f"BigQuery SQL:\n{sql}")
        try:
            # No client-side retries: a failure surfaces after at most one timeout
            job = client.query(sql, job_config=job_config, timeout=self.timeout,
                               retry=None, job_retry=None)
            return list(job.result(timeout=self.timeout, retry=None, job_retry=None))
        except (FutureTimeoutError, TimeoutError) as e:
            raise BackendUnavailable(
                f"BigQuery query on {self.table} timed out after {self.timeout:g}s"
            ) from e
        except GoogleAPIError as e:
            raise BackendUnavailable(f"BigQuery query on {self.table} failed: {e}") from e

    def __repr__(self) -> str:
        return f"RemoteServiceBackend({self.table})"


def _array_parameter(name: str, values: pd.Index) -> bigquery.ArrayQueryParameter:
    kind = "INT64" if values.dtype.kind in 'iu' else "STRING"
    items = [int(v) for v in values] if kind == "INT64" else [str(v) for v in values]
    return bigquery.ArrayQueryParameter(name, kind, items)
