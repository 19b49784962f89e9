"""
Complex arithmetic shared by the filter analyzer and the nodal solver.

Everything works on Python complex scalars and on numpy complex arrays
(elementwise), so a whole frequency grid can be pushed through at once.
Division by a zero-magnitude divisor yields 0 instead of raising or
producing inf/nan.
"""

import numpy as np


def complex_add(a, b):
    return np.add(a, b)


def complex_multiply(a, b):
    return np.multiply(a, b)


def complex_divide(a, b):
    """
    Divide a by b, returning 0 wherever |b| == 0.

    Scalars in, scalar out; arrays in, array out.
    """
    a_arr = np.asarray(a, dtype=complex)
    b_arr = np.asarray(b, dtype=complex)
    a_arr, b_arr = np.broadcast_arrays(a_arr, b_arr)

    out = np.zeros(a_arr.shape, dtype=complex)
    np.divide(a_arr, b_arr, out=out, where=(b_arr != 0))

    if out.ndim == 0:
        return complex(out)
    return out


def magnitude(z):
    return np.abs(z)


def phase(z):
    """Phase angle in radians, in (-π, π]."""
    return np.angle(z)
