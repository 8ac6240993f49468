"""
Tests for the BigQuery-backed remote backend.

A FakeBigQueryClient (see conftest) stands in for google.cloud.bigquery.Client
so these run offline. Real query parameter objects are still built, so the
tests also cover the parameter plumbing.
"""

from concurrent.futures import TimeoutError as FutureTimeoutError

import numpy as np
import pandas as pd
import pytest
from google.api_core.exceptions import ServiceUnavailable
from google.auth.exceptions import DefaultCredentialsError

from assayview import load
from assayview.backends.remote import (
    DEFAULT_TIMEOUT,
    TIMEOUT_ENV,
    RemoteServiceBackend,
    resolve_timeout,
)
from assayview.core.compare import compare_views
from assayview.core.errors import AuthenticationRequired, BackendUnavailable, ShapeMismatch

from conftest import FakeBigQueryClient, to_long

TABLE = "isb-cgc.TCGA_hg38_data_v0.DNA_Methylation"


def make_backend(long, clients=None, error=None, **kwargs):
    """Remote backend whose client factory hands out FakeBigQueryClients."""
    clients = clients if clients is not None else []

    def factory(project=None):
        client = FakeBigQueryClient(long, project=project, error=error)
        clients.append(client)
        return client

    return RemoteServiceBackend(TABLE, client_factory=factory, **kwargs)


@pytest.fixture
def long_table(medium_view):
    return to_long(medium_view)


@pytest.fixture(autouse=True)
def no_timeout_override(monkeypatch):
    monkeypatch.delenv(TIMEOUT_ENV, raising=False)


class TestCredential:

    def test_missing_credential_fails_before_any_client(self, monkeypatch, long_table):
        monkeypatch.delenv("GOOGLE_CLOUD_PROJECT", raising=False)
        clients = []
        backend = make_backend(long_table, clients)

        with pytest.raises(AuthenticationRequired) as excinfo:
            load(backend)

        assert excinfo.value.env_var == "GOOGLE_CLOUD_PROJECT"
        assert "GOOGLE_CLOUD_PROJECT" in str(excinfo.value)
        assert clients == []

    def test_blank_credential_rejected(self, monkeypatch, long_table):
        monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "   ")
        with pytest.raises(AuthenticationRequired):
            make_backend(long_table).credential()

    def test_custom_billing_variable(self, monkeypatch, long_table, billing_project):
        monkeypatch.delenv("ISB_BILLING", raising=False)
        backend = make_backend(long_table, billing_env="ISB_BILLING")
        with pytest.raises(AuthenticationRequired) as excinfo:
            backend.connect()
        assert excinfo.value.env_var == "ISB_BILLING"

    def test_client_billed_to_configured_project(self, long_table, billing_project):
        clients = []
        load(make_backend(long_table, clients))
        assert len(clients) == 1
        assert clients[0].project == billing_project

    def test_missing_google_credentials(self, billing_project):
        def factory(project=None):
            raise DefaultCredentialsError("Could not automatically determine credentials")

        backend = RemoteServiceBackend(TABLE, client_factory=factory)
        with pytest.raises(AuthenticationRequired, match="No Google credentials"):
            backend.connect()


class TestDiscovery:

    def test_load_issues_only_distinct_queries(self, long_table, billing_project):
        clients = []
        view = load(make_backend(long_table, clients))

        assert view.shape == (200, 12)
        sql = [q["sql"] for q in clients[0].queries]
        assert len(sql) == 2
        assert all("SELECT DISTINCT" in s for s in sql)

    def test_declared_annotations_define_order(self, long_table, medium_view, billing_project):
        reversed_rows = medium_view.row_annotation.iloc[::-1]
        view = load(make_backend(long_table, row_annotation=reversed_rows,
                                 col_annotation=medium_view.col_annotation))

        assert list(view.row_ids) == list(reversed_rows.index)
        assert list(view.col_annotation['sample_type'][:2]) == ['tumor', 'normal']

    def test_annotation_count_mismatch(self, long_table, medium_view, billing_project):
        backend = make_backend(long_table, row_annotation=medium_view.row_annotation.iloc[:10])
        with pytest.raises(ShapeMismatch, match="10 entries"):
            load(backend)

    def test_annotation_unknown_identifiers(self, long_table, medium_view, billing_project):
        annotation = medium_view.row_annotation.rename(index={"cg00000000": "cg99999999"})
        with pytest.raises(ShapeMismatch, match="cg99999999"):
            load(make_backend(long_table, row_annotation=annotation))


class TestRead:

    def test_matches_in_memory_view(self, long_table, medium_view, billing_project):
        view = load(make_backend(long_table, row_annotation=medium_view.row_annotation,
                                 col_annotation=medium_view.col_annotation))
        assert compare_views(view, medium_view).equal

    def test_slice_query_parameters(self, long_table, medium_view, billing_project):
        clients = []
        view = load(make_backend(long_table, clients, timeout=15))
        ids = list(view.row_ids[[7, 3]])
        samples = list(view.col_ids[[0, 5]])

        result = view.subset(rows=ids, cols=samples).materialize()

        query = clients[0].queries[-1]
        assert query["params"]["features"] == ids
        assert query["params"]["samples"] == samples
        assert query["timeout"] == 15
        np.testing.assert_allclose(
            result, medium_view.subset(rows=ids, cols=samples).materialize()
        )

    def test_missing_cells_are_nan(self, long_table, billing_project):
        dropped = long_table.drop(index=long_table.index[0])
        view = load(make_backend(dropped))
        feature, sample = long_table.iloc[0][["feature_id", "sample_id"]]

        result = view.subset(rows=[feature], cols=[sample, view.col_ids[1]]).materialize()
        assert np.isnan(result[0, 0])
        assert not np.isnan(result[0, 1])

    def test_duplicate_cells_rejected(self, long_table, billing_project):
        doubled = pd.concat([long_table, long_table.iloc[[0]]], ignore_index=True)
        view = load(make_backend(doubled))
        feature, sample = long_table.iloc[0][["feature_id", "sample_id"]]
        with pytest.raises(ShapeMismatch, match="duplicate"):
            view.subset(rows=[feature], cols=[sample]).materialize()


class TestFailures:

    def test_client_retries_disabled(self, long_table, billing_project):
        clients = []
        view = load(make_backend(long_table, clients))
        view.subset(rows=[0], cols=[0]).materialize()

        for query in clients[0].queries:
            assert query["retry"] is None
            assert query["job_retry"] is None
        for job in clients[0].jobs:
            assert job.result_kwargs["retry"] is None
            assert job.result_kwargs["job_retry"] is None

    def test_failed_query_sent_once(self, long_table, billing_project):
        clients = []
        backend = make_backend(long_table, clients, error=ServiceUnavailable("backend error"))
        with pytest.raises(BackendUnavailable):
            load(backend)
        assert len(clients[0].queries) == 1

    def test_query_timeout(self, long_table, billing_project):
        backend = make_backend(long_table, error=FutureTimeoutError(), timeout=5)
        with pytest.raises(BackendUnavailable, match="timed out after 5s"):
            load(backend)

    def test_service_error(self, long_table, billing_project):
        backend = make_backend(long_table, error=ServiceUnavailable("backend error"))
        with pytest.raises(BackendUnavailable, match="failed"):
            load(backend)

    def test_failed_read_returns_nothing(self, long_table, billing_project):
        clients = []
        view = load(make_backend(long_table, clients))
        clients[0].error = ServiceUnavailable("backend error")

        result = None
        with pytest.raises(BackendUnavailable):
            result = view.subset(rows=[0]).materialize()
        assert result is None

    def test_invalid_table_name(self):
        with pytest.raises(ValueError, match="Invalid BigQuery table"):
            RemoteServiceBackend("dataset; DROP TABLE x")

    def test_invalid_column_name(self):
        with pytest.raises(ValueError, match="Invalid column"):
            RemoteServiceBackend(TABLE, value_column="beta value")


class TestResolveTimeout:

    def test_default(self):
        assert resolve_timeout() == DEFAULT_TIMEOUT

    def test_environment(self, monkeypatch):
        monkeypatch.setenv(TIMEOUT_ENV, "12.5")
        assert resolve_timeout() == 12.5

    def test_argument_wins(self, monkeypatch):
        monkeypatch.setenv(TIMEOUT_ENV, "12.5")
        assert resolve_timeout(3) == 3.0

    def test_invalid_environment(self, monkeypatch):
        monkeypatch.setenv(TIMEOUT_ENV, "soon")
        with pytest.raises(ValueError, match=TIMEOUT_ENV):
            resolve_timeout()

    def test_non_positive(self):
        with pytest.raises(ValueError, match="positive"):
            resolve_timeout(0)
