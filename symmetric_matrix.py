import numpy as np
from typing import Tuple


class MatrixError(Exception):
    """Base class for symmetric matrix errors."""


class DimensionMismatch(MatrixError, ValueError):
    def __init__(self, rc_a: int, rc_b: int):
        super().__init__(f"Matrix dimensions differ: {rc_a} vs {rc_b}")
        self.rc_a = rc_a
        self.rc_b = rc_b


class SubscriptBounds(MatrixError, IndexError):
    def __init__(self, row: int, col: int, rc: int):
        super().__init__(f"Subscript ({row}, {col}) out of bounds for a {rc}x{rc} matrix")
        self.row = row
        self.col = col
        self.rc = rc


class CountOverflow(MatrixError, OverflowError):
    def __init__(self, row: int, col: int, limit: int):
        super().__init__(f"Count at ({row}, {col}) would pass the {limit} limit of the matrix dtype")
        self.row = row
        self.col = col
        self.limit = limit


class SymmetricMatrix:
    """
    Square symmetric matrix that stores only the upper triangle.

    The backing array is flat, length rc*(rc+1)/2, in row-major order over
    the cells with row <= col (the same order as np.triu_indices(rc)).
    (r, c) and (c, r) are one logical cell.
    """
    def __init__(self, rc: int, dtype=np.int16):
        if rc < 0:
            raise ValueError(f"Matrix dimension must be non-negative, got {rc}")
        self.rc = int(rc)
        self.values = np.zeros(self.rc * (self.rc + 1) // 2, dtype=dtype)

    @property
    def dtype(self):
        return self.values.dtype

    def is_valid(self, row: int, col: int) -> bool:
        return 0 <= row < self.rc and 0 <= col < self.rc

    def position(self, row: int, col: int) -> int:
        if not self.is_valid(row, col):
            raise SubscriptBounds(row, col, self.rc)
        r, c = (row, col) if row <= col else (col, row)
        return r * self.rc - r * (r - 1) // 2 + c - r

    def __getitem__(self, rc_pair: Tuple[int, int]):
        row, col = rc_pair
        return self.values[self.position(row, col)]

    def __setitem__(self, rc_pair: Tuple[int, int], value):
        row, col = rc_pair
        self.values[self.position(row, col)] = value

    def __len__(self):
        return self.rc

    def __eq__(self, other):
        if not isinstance(other, SymmetricMatrix):
            return NotImplemented
        return self.rc == other.rc and np.array_equal(self.values, other.values)

    def __str__(self):
        return f"SymmetricMatrix(rc={self.rc}, dtype={self.values.dtype})\n{self.to_dense()}"

    def clear(self):
        self.values.fill(0)

    def add(self, other: "SymmetricMatrix"):
        if self.rc != other.rc:
            raise DimensionMismatch(self.rc, other.rc)
        self.values[:] = self._in_range(self._wide(self.values) + self._wide(other.values))

    def subtract(self, other: "SymmetricMatrix"):
        if self.rc != other.rc:
            raise DimensionMismatch(self.rc, other.rc)
        self.values[:] = self._in_range(self._wide(self.values) - self._wide(other.values))

    @property
    def max_value(self):
        """Largest value an integer matrix can hold; None for float matrices."""
        if np.issubdtype(self.values.dtype, np.integer):
            return int(np.iinfo(self.values.dtype).max)
        return None

    def _wide(self, values: np.ndarray) -> np.ndarray:
        if np.issubdtype(self.values.dtype, np.integer):
            return values.astype(np.int64)
        return values.astype(self.values.dtype)

    def _in_range(self, result: np.ndarray) -> np.ndarray:
        """Raise CountOverflow instead of letting an integer cell wrap."""
        if np.issubdtype(self.values.dtype, np.integer):
            info = np.iinfo(self.values.dtype)
            bad = np.flatnonzero((result > info.max) | (result < info.min))
            if len(bad):
                rows, cols = np.triu_indices(self.rc)
                limit = info.max if result[bad[0]] > info.max else info.min
                raise CountOverflow(int(rows[bad[0]]), int(cols[bad[0]]), int(limit))
        return result

    def copy(self) -> "SymmetricMatrix":
        out = SymmetricMatrix(self.rc, dtype=self.values.dtype)
        out.values[:] = self.values
        return out

    def to_dense(self) -> np.ndarray:
        """Full rc x rc array with both triangles filled."""
        dense = np.zeros((self.rc, self.rc), dtype=self.values.dtype)
        iu = np.triu_indices(self.rc)
        dense[iu] = self.values
        dense.T[iu] = self.values
        return dense

    def set_from_dense(self, dense: np.ndarray):
        """Load the upper triangle of a square array (the lower triangle is ignored)."""
        dense = np.asarray(dense)
        if dense.shape != (self.rc, self.rc):
            raise DimensionMismatch(self.rc, dense.shape[0] if dense.ndim else 0)
        self.values[:] = dense[np.triu_indices(self.rc)]

    @classmethod
    def from_dense(cls, dense: np.ndarray, dtype=None) -> "SymmetricMatrix":
        dense = np.asarray(dense)
        if dense.ndim != 2 or dense.shape[0] != dense.shape[1]:
            raise ValueError(f"Expected a square array, got shape {dense.shape}")
        out = cls(dense.shape[0], dtype=dtype if dtype is not None else dense.dtype)
        out.set_from_dense(dense)
        return out
