"""
Integration tests for the shell + HDF5 directory backend.

Uses real files under tmp_path: writes with save_local, reads back through
LocalFileBackend, and checks failures for incomplete directories.
"""

import json
import logging

import h5py
import numpy as np
import pandas as pd
import pytest

from assayview import load
from assayview.backends.local import (
    ASSAY_NAME,
    SHELL_NAME,
    LocalFileBackend,
    save_local,
)
from assayview.core.compare import compare_views
from assayview.core.errors import BackendUnavailable, ShapeMismatch
from assayview.io.loaders import from_arrays


@pytest.fixture
def saved_dir(tmp_path, medium_view):
    directory = tmp_path / "methylation_h5"
    save_local(medium_view, directory, chunks=(16, 4))
    return directory


class TestSaveLocal:

    def test_writes_both_members(self, saved_dir):
        assert (saved_dir / SHELL_NAME).is_file()
        assert (saved_dir / ASSAY_NAME).is_file()

    def test_shell_records_shape(self, saved_dir):
        with open(saved_dir / SHELL_NAME) as f:
            shell = json.load(f)
        assert shell["shape"] == [200, 12]
        assert shell["format"] == "assayview-hdf5"

    def test_dataset_is_chunked(self, saved_dir):
        with h5py.File(saved_dir / ASSAY_NAME, 'r') as f:
            assert f["assay"].chunks == (16, 4)

    def test_refuses_overwrite(self, saved_dir, medium_view):
        with pytest.raises(FileExistsError):
            save_local(medium_view, saved_dir)
        save_local(medium_view.subset(rows=[0, 1]), saved_dir, overwrite=True)
        assert load(LocalFileBackend(saved_dir)).shape == (2, 12)

    def test_saves_only_the_view_slice(self, tmp_path, medium_view):
        narrowed = medium_view.subset(rows=[5, 3, 9], cols=[0, 11])
        backend = save_local(narrowed, tmp_path / "slice")
        view = load(backend)

        assert view.shape == (3, 2)
        assert list(view.row_ids) == list(narrowed.row_ids)
        np.testing.assert_array_equal(view.materialize(), narrowed.materialize())


class TestLocalFileBackend:

    def test_roundtrip_matches_memory(self, saved_dir, medium_view):
        view = load(LocalFileBackend(saved_dir))
        assert compare_views(view, medium_view).equal

    def test_annotations_roundtrip(self, saved_dir, medium_view):
        view = load(LocalFileBackend(saved_dir))
        pd.testing.assert_frame_equal(view.row_annotation, medium_view.row_annotation)
        pd.testing.assert_frame_equal(view.col_annotation, medium_view.col_annotation)

    def test_unsorted_slice(self, saved_dir, medium_view):
        view = load(LocalFileBackend(saved_dir))
        rows, cols = [150, 2, 77], [9, 1, 4]
        np.testing.assert_array_equal(
            view.subset(rows=rows, cols=cols).materialize(),
            medium_view.subset(rows=rows, cols=cols).materialize(),
        )

    def test_predicate_subset_then_materialize(self, saved_dir, medium_view):
        view = load(LocalFileBackend(saved_dir))
        chr17 = view.subset(rows=lambda r: r['seqname'] == 'chr17',
                            cols=lambda c: c['sample_type'] == 'tumor')
        assert chr17.materialize().shape == (100, 6)

    def test_members(self, saved_dir):
        members = LocalFileBackend(saved_dir).members()
        assert set(members) == {"shell", "assay"}

    def test_describe(self, saved_dir):
        info = LocalFileBackend(saved_dir).describe()
        assert info["backend"] == "local"
        assert info["n_rows"] == 200


class TestLocalFileFailures:

    def test_missing_directory(self, tmp_path):
        with pytest.raises(BackendUnavailable, match="not found"):
            load(LocalFileBackend(tmp_path / "nope"))

    def test_missing_array_file(self, saved_dir):
        (saved_dir / ASSAY_NAME).unlink()
        view = None
        with pytest.raises(BackendUnavailable, match="assay"):
            view = load(LocalFileBackend(saved_dir))
        assert view is None

    def test_missing_shell(self, saved_dir):
        (saved_dir / SHELL_NAME).unlink()
        with pytest.raises(BackendUnavailable, match="shell"):
            load(LocalFileBackend(saved_dir))

    def test_corrupt_array_file(self, saved_dir):
        (saved_dir / ASSAY_NAME).write_bytes(b"not an hdf5 file")
        with pytest.raises(BackendUnavailable, match="Cannot open HDF5"):
            load(LocalFileBackend(saved_dir))

    def test_foreign_shell(self, saved_dir):
        (saved_dir / SHELL_NAME).write_text(json.dumps({"format": "something-else"}))
        with pytest.raises(BackendUnavailable, match="not an assayview shell"):
            load(LocalFileBackend(saved_dir))

    def test_dataset_shape_disagrees_with_shell(self, saved_dir):
        with h5py.File(saved_dir / ASSAY_NAME, 'w') as f:
            f.create_dataset("assay", data=np.zeros((3, 3)))
        with pytest.raises(ShapeMismatch, match="does not match shell shape"):
            load(LocalFileBackend(saved_dir))

    @pytest.mark.parametrize("key", ["shape", "row_annotation", "col_annotation"])
    def test_shell_missing_required_key(self, saved_dir, key):
        shell_path = saved_dir / SHELL_NAME
        shell = json.loads(shell_path.read_text())
        del shell[key]
        shell_path.write_text(json.dumps(shell))
        with pytest.raises(BackendUnavailable, match=key):
            load(LocalFileBackend(saved_dir))

    def test_shell_with_invalid_shape(self, saved_dir):
        shell_path = saved_dir / SHELL_NAME
        shell = json.loads(shell_path.read_text())
        shell["shape"] = [200]
        shell_path.write_text(json.dumps(shell))
        with pytest.raises(BackendUnavailable, match="invalid shape"):
            load(LocalFileBackend(saved_dir))

    def test_assay_file_named_by_shell(self, saved_dir, medium_view):
        (saved_dir / ASSAY_NAME).rename(saved_dir / "renamed.h5")
        shell_path = saved_dir / SHELL_NAME
        shell = json.loads(shell_path.read_text())
        shell["assay_file"] = "renamed.h5"
        shell_path.write_text(json.dumps(shell))

        view = load(LocalFileBackend(saved_dir))
        assert compare_views(view, medium_view).equal

    def test_missing_assay_file_named_by_shell(self, saved_dir):
        shell_path = saved_dir / SHELL_NAME
        shell = json.loads(shell_path.read_text())
        shell["assay_file"] = "renamed.h5"
        shell_path.write_text(json.dumps(shell))
        with pytest.raises(BackendUnavailable, match="renamed.h5"):
            load(LocalFileBackend(saved_dir))


class TestPartialReads:
    """Reads cover the requested columns only, not the span between them."""

    @pytest.fixture
    def wide_view(self, tmp_path):
        data = np.arange(2 * 1000, dtype=float).reshape(2, 1000)
        memory = from_arrays(data, ["g0", "g1"], [f"s{j}" for j in range(1000)])
        return load(save_local(memory, tmp_path / "wide"))

    def test_far_apart_columns(self, wide_view, caplog):
        with caplog.at_level(logging.INFO, logger="assayview.backends.local"):
            result = wide_view.subset(cols=["s999", "s0"]).materialize()

        np.testing.assert_array_equal(result, [[999, 0], [1999, 1000]])
        assert "Read 32 bytes (2 x 2, 2 column runs)" in caplog.text

    def test_adjacent_columns_form_one_run(self, wide_view, caplog):
        with caplog.at_level(logging.INFO, logger="assayview.backends.local"):
            result = wide_view.subset(rows=["g1"], cols=["s12", "s10", "s11", "s500"]).materialize()

        np.testing.assert_array_equal(result, [[1012, 1010, 1011, 1500]])
        assert "Read 32 bytes (1 x 4, 2 column runs)" in caplog.text
