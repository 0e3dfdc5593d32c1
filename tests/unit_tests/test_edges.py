"""Tests for the Haar edge detector and island collapsing."""

import numpy as np
import pytest

from alphafeatures.config import EdgeParams
from alphafeatures.peaks import (
    collapse_islands,
    detect_edges,
    dilate_marks,
    haar_transform,
    median_abs,
    zero_indexes,
)


class TestHaarTransform:
    """Test the box difference filter."""

    def test_step(self):
        """A step gives a positive response just before it."""
        x = np.array([0.0, 0.0, 0.0, 0.0, 1.0, 1.0, 1.0, 1.0])

        out = haar_transform(x, 4)

        assert out[4] == pytest.approx(0.5)
        assert np.argmax(out) in (3, 4)
        assert out[0] == 0.0

    def test_constant_interior(self):
        """The interior of a constant gives zero."""
        out = haar_transform(np.full(10, 3.0), 4)

        np.testing.assert_allclose(out[2:8], 0.0)


class TestMedianAbs:
    """Test the robust scale estimate."""

    def test_odd(self):
        """Middle element of |x|."""
        assert median_abs(np.array([-5.0, 1.0, 2.0])) == 2.0

    def test_even_takes_lower(self):
        """Lower middle element for even lengths."""
        assert median_abs(np.array([4.0, -1.0, 3.0, 2.0])) == 2.0

    def test_empty(self):
        """Empty input gives zero."""
        assert median_abs(np.zeros(0)) == 0.0


class TestZeroIndexes:
    """Test apex marking."""

    def test_marks_first_non_positive_after_rise(self):
        """One mark per lobe, at the first sample <= 0."""
        signal = np.array([-1.0, 1.0, 2.0, 1.0, -0.5, -1.0, 3.0, 0.0])

        marks = zero_indexes(signal, 0.5)

        np.testing.assert_array_equal(np.nonzero(marks)[0], [4, 7])

    def test_min_filter(self):
        """Low lobes are not marked."""
        signal = np.array([-1.0, 0.3, -1.0])

        assert not zero_indexes(signal, 0.5).any()


class TestDilateMarks:
    """Test windowed mark counting."""

    def test_single_mark(self):
        """A mark is counted in every window covering it."""
        marks = np.zeros((7, 7), dtype=np.bool_)
        marks[3, 3] = True

        counts = dilate_marks(marks, 3, 3)

        assert counts.sum() == 9
        assert counts[2:5, 2:5].min() == 1

    def test_counts_add(self):
        """Neighbouring marks add up."""
        marks = np.zeros((5, 5), dtype=np.bool_)
        marks[2, 1:4] = True

        counts = dilate_marks(marks, 3, 1)

        assert counts[2, 2] == 3
        assert counts[1, 2] == 0


class TestCollapseIslands:
    """Test one-point-per-island reduction."""

    def test_three_by_three_block(self):
        """A 3x3 island collapses to its maximum."""
        values = np.zeros((6, 6), dtype=np.int64)
        values[1:4, 2:5] = 2
        values[2, 3] = 7

        out = collapse_islands(values)

        assert np.count_nonzero(out) == 1
        assert out[2, 3] == 7

    def test_ties_keep_first_visited(self):
        """Equal values keep the first cell in scan order."""
        values = np.zeros((5, 5), dtype=np.int64)
        values[1:4, 1:4] = 3

        out = collapse_islands(values)

        assert np.count_nonzero(out) == 1
        assert out[1, 1] == 3

    def test_diagonal_connectivity(self):
        """Diagonal neighbours belong to the same island; separate islands survive."""
        values = np.zeros((6, 6), dtype=np.int64)
        values[0, 0] = 1
        values[1, 1] = 4
        values[4, 4] = 2

        out = collapse_islands(values)

        assert np.count_nonzero(out) == 2
        assert out[1, 1] == 4
        assert out[4, 4] == 2


class TestDetectEdges:
    """Test the full edge detector."""

    def test_blob_found(self):
        """A 2D Gaussian blob gives one gross feature near its centre."""
        s = np.arange(40)[:, None]
        m = np.arange(60)[None, :]
        spectra = 100.0 * np.exp(-0.5 * (((s - 20) / 3.0) ** 2 + ((m - 30) / 2.0) ** 2))

        result = detect_edges(spectra, EdgeParams())

        assert len(result.scan_idx) == 1
        assert abs(result.scan_idx[0] - 20) <= 4
        assert abs(result.bin_idx[0] - 30) <= 4
        assert result.intensity[0] > 0
        assert result.vertical.shape == spectra.shape

    def test_empty_matrix(self):
        """Flat input has no gross features."""
        result = detect_edges(np.zeros((10, 10)), EdgeParams())

        assert len(result.scan_idx) == 0
