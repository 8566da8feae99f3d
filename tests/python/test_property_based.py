# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Property-based tests using Hypothesis.

Checks that converting a host value to a tensor and back gives the same
values, shape and element type, for every element type numpy can hold.

These tests require:
    - hypothesis library: pip install hypothesis

conftest.py skips this module when hypothesis is not installed.
"""

import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from hypothesis.extra.numpy import array_shapes, arrays

from inferra.core.types import ElementType, element_type_to_numpy
from inferra.runtime.marshal import TensorMarshal

NUMERIC_TYPES = [
    ElementType.Float32,
    ElementType.Float16,
    ElementType.Float64,
    ElementType.Int8,
    ElementType.Int16,
    ElementType.Int32,
    ElementType.Int64,
    ElementType.UInt8,
    ElementType.UInt16,
    ElementType.UInt32,
    ElementType.UInt64,
    ElementType.Bool,
    ElementType.Complex64,
    ElementType.Complex128,
]

# 0-d and empty shapes included
SHAPES = array_shapes(min_dims=0, max_dims=3, min_side=0, max_side=4)

TEXT = st.text(
    alphabet=st.characters(blacklist_categories=("Cs",), blacklist_characters="\x00"),
    max_size=6,
)


def numeric_arrays(element_type, shapes=SHAPES):
    return arrays(element_type_to_numpy(element_type), shapes)


def round_trip(value, element_type):
    marshal = TensorMarshal()
    tensor = marshal.to_native(value, element_type)
    assert tensor.element_type is element_type
    return marshal.to_host(tensor)


class TestNumericRoundTrip:
    """to_host(to_native(v)) == v for numpy arrays."""

    @pytest.mark.parametrize("element_type", NUMERIC_TYPES, ids=lambda t: t.name)
    @given(data=st.data())
    @settings(max_examples=30, deadline=None)
    def test_contiguous(self, element_type, data):
        array = data.draw(numeric_arrays(element_type))
        back = round_trip(array, element_type)

        assert back.dtype == array.dtype
        assert back.shape == array.shape
        np.testing.assert_array_equal(back, array)

    @pytest.mark.parametrize("element_type", NUMERIC_TYPES, ids=lambda t: t.name)
    @given(data=st.data())
    @settings(max_examples=30, deadline=None)
    def test_non_contiguous(self, element_type, data):
        """Strided views are copied but keep their values."""
        base = data.draw(
            numeric_arrays(element_type, array_shapes(min_dims=1, max_dims=3, max_side=6))
        )
        view = base[..., ::2]
        back = round_trip(view, element_type)

        assert back.flags.c_contiguous
        assert back.dtype == view.dtype
        assert back.shape == view.shape
        np.testing.assert_array_equal(back, view)

    @pytest.mark.parametrize("element_type", NUMERIC_TYPES, ids=lambda t: t.name)
    @given(data=st.data())
    @settings(max_examples=30, deadline=None)
    def test_python_lists(self, element_type, data):
        """Nested lists of values the type can hold convert exactly."""
        array = data.draw(
            numeric_arrays(element_type, array_shapes(min_dims=0, max_dims=3, max_side=4))
        )
        back = round_trip(array.tolist(), element_type)

        assert back.dtype == array.dtype
        assert back.shape == array.shape
        np.testing.assert_array_equal(back, array)


class TestStringRoundTrip:
    """String tensors come back as object arrays of str."""

    @given(array=arrays(np.dtype("U6"), SHAPES, elements=TEXT))
    @settings(max_examples=50, deadline=None)
    def test_unicode_arrays(self, array):
        back = round_trip(array, ElementType.String)

        assert back.dtype == object
        assert back.shape == array.shape
        assert back.tolist() == array.tolist()

    @given(items=st.lists(TEXT, min_size=1, max_size=8))
    @settings(max_examples=50, deadline=None)
    def test_python_lists(self, items):
        back = round_trip(items, ElementType.String)

        assert back.shape == (len(items),)
        assert back.tolist() == items

    @given(items=st.lists(TEXT, min_size=1, max_size=8))
    @settings(max_examples=50, deadline=None)
    def test_utf8_bytes(self, items):
        """bytes elements decode to the same str."""
        back = round_trip([item.encode("utf-8") for item in items], ElementType.String)
        assert back.tolist() == items


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
