"""Sparse triplet helpers shared by the problem and the solver adapters."""

from typing import Optional
import numpy as np
import scipy.sparse
from numpy.typing import NDArray

from latopt.errors import CallbackContractError


def check_length(name: str, array: NDArray, expected: int) -> NDArray:
    """
    Validate a 1-D buffer handed across the solver boundary.

    Args:
        name: Buffer name for the error message
        array: Buffer to check
        expected: Required number of entries

    Returns:
        The buffer as a float array
    """
    array = np.asarray(array, dtype=float)
    if array.ndim != 1 or array.shape[0] != expected:
        raise CallbackContractError(
            f"{name} has shape {array.shape}, expected ({expected},)"
        )
    return array


def output_buffer(out: Optional[NDArray], nnz: int) -> NDArray:
    """Return ``out`` after a type and size check, or a fresh zero buffer."""
    if out is None:
        return np.zeros(nnz)
    if not isinstance(out, np.ndarray) or not np.issubdtype(out.dtype, np.floating):
        raise CallbackContractError(
            f"Value buffer must be a floating-point ndarray, got "
            f"{type(out).__name__} of dtype {getattr(out, 'dtype', None)}"
        )
    if out.ndim != 1 or out.shape[0] != nnz:
        raise CallbackContractError(
            f"Value buffer has shape {out.shape}, expected ({nnz},)"
        )
    return out


def triplets_to_csr(
    rows: NDArray, cols: NDArray, values: NDArray, shape: tuple[int, int]
) -> scipy.sparse.csr_matrix:
    """
    Assemble a CSR matrix from (row, col, value) triplets.

    Duplicate entries are summed.

    Args:
        rows: Row indices (nnz,)
        cols: Column indices (nnz,)
        values: Nonzero values (nnz,)
        shape: Matrix shape

    Returns:
        Sparse matrix of the given shape
    """
    if not (len(rows) == len(cols) == len(values)):
        raise CallbackContractError(
            f"Triplet lengths differ: {len(rows)}, {len(cols)}, {len(values)}"
        )
    return scipy.sparse.coo_matrix((values, (rows, cols)), shape=shape).tocsr()


def symmetric_from_triangle(
    rows: NDArray, cols: NDArray, values: NDArray, n: int
) -> scipy.sparse.csr_matrix:
    """
    Full symmetric matrix from triplets covering one triangle.

    Hessian patterns list each off-diagonal pair once; the mirror is added
    here and the diagonal is kept single.
    """
    triangle = triplets_to_csr(rows, cols, values, (n, n))
    diagonal = scipy.sparse.diags(triangle.diagonal())
    return (triangle + triangle.T - diagonal).tocsr()
