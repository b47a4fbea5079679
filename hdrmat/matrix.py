"""Dense real matrices: LU inversion, SVD and homography estimation."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

TINY = 1.0e-20
_MAX_SVD_ITERATIONS = 30


def pythag(a: float, b: float) -> float:
    """Return sqrt(a*a + b*b) without destructive underflow or overflow."""
    absa = abs(a)
    absb = abs(b)
    if absa > absb:
        ratio = absb / absa
        return absa * math.sqrt(1.0 + (0.0 if ratio == 0.0 else ratio * ratio))
    if absb == 0.0:
        return 0.0
    ratio = absa / absb
    return absb * math.sqrt(1.0 + (0.0 if ratio == 0.0 else ratio * ratio))


def sign_follow(a: float, b: float) -> float:
    """Return ``|a|`` carrying the sign of ``b`` (zero counts as positive)."""
    return abs(a) if b >= 0.0 else -abs(a)


def _lu_in_place(a: list[list[float]]) -> list[int]:
    """Crout LU decomposition with implicit partial pivoting, in place."""
    n = len(a)
    scaling: list[float] = []
    for row in a:
        big = max((abs(value) for value in row), default=0.0)
        if big == 0.0:
            raise ValueError("matrix is singular: it has a row of zeros")
        scaling.append(1.0 / big)

    pivots = [0] * n
    for j in range(n):
        for i in range(j):
            total = a[i][j]
            for k in range(i):
                total -= a[i][k] * a[k][j]
            a[i][j] = total
        big = 0.0
        imax = j
        for i in range(j, n):
            total = a[i][j]
            for k in range(j):
                total -= a[i][k] * a[k][j]
            a[i][j] = total
            dum = scaling[i] * abs(total)
            if dum >= big:
                big = dum
                imax = i
        if j != imax:
            a[imax], a[j] = a[j], a[imax]
            scaling[imax] = scaling[j]
        pivots[j] = imax
        if a[j][j] == 0.0:
            a[j][j] = TINY
        factor = 1.0 / a[j][j]
        for i in range(j + 1, n):
            a[i][j] *= factor
    return pivots


class Matrix:
    """A ``rows`` x ``cols`` matrix of doubles; ``m[i]`` is a writable row."""

    def __init__(self, rows: int = 0, cols: int = 0) -> None:
        if rows < 0 or cols < 0:
            raise ValueError("matrix dimensions must not be negative")
        self._data = np.zeros((rows, cols), dtype=np.float64)

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[float]]) -> "Matrix":
        """Build a matrix from a nested sequence of values."""
        values = np.array(rows, dtype=np.float64)
        if values.ndim != 2:
            raise ValueError("rows must form a two-dimensional table")
        matrix = cls(*values.shape)
        matrix._data[:] = values
        return matrix

    @property
    def rows(self) -> int:
        return self._data.shape[0]

    @property
    def cols(self) -> int:
        return self._data.shape[1]

    @property
    def data(self) -> np.ndarray:
        """The underlying array; changes to it change the matrix."""
        return self._data

    def __getitem__(self, index):
        return self._data[index]

    def __setitem__(self, index, value) -> None:
        self._data[index] = value

    def __array__(self, dtype=None, copy=None):
        return np.array(self._data, dtype=dtype)

    def __repr__(self) -> str:
        return f"Matrix({self._data.tolist()!r})"

    def _require_square(self) -> int:
        if self.rows != self.cols:
            raise ValueError("matrix must be square")
        return self.rows

    def lu_decomposition(self) -> list[int]:
        """Replace the matrix by its LU factors; return the row pivots.

        The strict lower part holds L (unit diagonal implied), the upper part
        holds U.  ``pivots[j]`` is the row swapped with row ``j`` at step ``j``.
        """
        self._require_square()
        rows = self._data.tolist()
        pivots = _lu_in_place(rows)
        self._data[:] = rows
        return pivots

    def inversed(self) -> None:
        """Replace the matrix by its inverse."""
        n = self._require_square()
        lu = self._data.tolist()
        pivots = _lu_in_place(lu)
        inverse = [[0.0] * n for _ in range(n)]
        for j in range(n):
            column = [0.0] * n
            column[j] = 1.0
            first = -1
            for ii in range(n):
                ip = pivots[ii]
                total = column[ip]
                column[ip] = column[ii]
                if first >= 0:
                    for jj in range(first, ii):
                        total -= lu[ii][jj] * column[jj]
                elif total:
                    first = ii
                column[ii] = total
            for ii in range(n - 1, -1, -1):
                total = column[ii]
                for jj in range(ii + 1, n):
                    total -= lu[ii][jj] * column[jj]
                column[ii] = total / lu[ii][ii]
            for i, value in enumerate(column):
                inverse[i][j] = value
        self._data[:] = inverse

    def format_rows(self, fmt: str) -> str:
        """Format every value with ``fmt``, one line per row."""
        return "".join(
            "".join(fmt % value for value in row) + "\n" for row in self._data.tolist()
        )


def singular_value_decomposition(a) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Decompose an m x n matrix as ``u @ diag(w) @ v.T``.

    Returns ``(u, w, v)``: ``u`` is m x n, ``w`` holds n non-negative singular
    values in no particular order, ``v`` is n x n orthogonal.  The input is
    left unchanged.
    """
    values = np.array(a, dtype=np.float64)
    if values.ndim != 2:
        raise ValueError("expected a two-dimensional matrix")
    m, n = values.shape
    A = values.tolist()
    w = [0.0] * n
    v = [[0.0] * n for _ in range(n)]
    rv1 = [0.0] * n

    g = scale = anorm = 0.0
    l = 0
    for i in range(n):
        l = i + 1
        rv1[i] = scale * g
        g = s = scale = 0.0
        if i < m:
            for k in range(i, m):
                scale += abs(A[k][i])
            if scale:
                for k in range(i, m):
                    A[k][i] /= scale
                    s += A[k][i] * A[k][i]
                f = A[i][i]
                g = -sign_follow(math.sqrt(s), f)
                h = f * g - s
                A[i][i] = f - g
                for j in range(l, n):
                    s = 0.0
                    for k in range(i, m):
                        s += A[k][i] * A[k][j]
                    f = s / h
                    for k in range(i, m):
                        A[k][j] += f * A[k][i]
                for k in range(i, m):
                    A[k][i] *= scale
        w[i] = scale * g
        g = s = scale = 0.0
        if i < m and i != n - 1:
            for k in range(l, n):
                scale += abs(A[i][k])
            if scale:
                for k in range(l, n):
                    A[i][k] /= scale
                    s += A[i][k] * A[i][k]
                f = A[i][l]
                g = -sign_follow(math.sqrt(s), f)
                h = f * g - s
                A[i][l] = f - g
                for k in range(l, n):
                    rv1[k] = A[i][k] / h
                for j in range(l, m):
                    s = 0.0
                    for k in range(l, n):
                        s += A[j][k] * A[i][k]
                    for k in range(l, n):
                        A[j][k] += s * rv1[k]
                for k in range(l, n):
                    A[i][k] *= scale
        anorm = max(anorm, abs(w[i]) + abs(rv1[i]))

    for i in range(n - 1, -1, -1):
        if i < n - 1:
            if g:
                for j in range(l, n):
                    v[j][i] = (A[i][j] / A[i][l]) / g
                for j in range(l, n):
                    s = 0.0
                    for k in range(l, n):
                        s += A[i][k] * v[k][j]
                    for k in range(l, n):
                        v[k][j] += s * v[k][i]
            for j in range(l, n):
                v[i][j] = v[j][i] = 0.0
        v[i][i] = 1.0
        g = rv1[i]
        l = i

    for i in range(min(m, n) - 1, -1, -1):
        l = i + 1
        g = w[i]
        for j in range(l, n):
            A[i][j] = 0.0
        if g:
            g = 1.0 / g
            for j in range(l, n):
                s = 0.0
                for k in range(l, m):
                    s += A[k][i] * A[k][j]
                f = (s / A[i][i]) * g
                for k in range(i, m):
                    A[k][j] += f * A[k][i]
            for j in range(i, m):
                A[j][i] *= g
        else:
            for j in range(i, m):
                A[j][i] = 0.0
        A[i][i] += 1.0

    for k in range(n - 1, -1, -1):
        for its in range(1, _MAX_SVD_ITERATIONS + 1):
            flag = True
            nm = k - 1
            l = k
            while l >= 0:
                nm = l - 1
                if abs(rv1[l]) + anorm == anorm:
                    flag = False
                    break
                if abs(w[nm]) + anorm == anorm:
                    break
                l -= 1
            if flag:
                c = 0.0
                s = 1.0
                for i in range(l, k + 1):
                    f = s * rv1[i]
                    rv1[i] = c * rv1[i]
                    if abs(f) + anorm == anorm:
                        break
                    g = w[i]
                    h = pythag(f, g)
                    w[i] = h
                    h = 1.0 / h
                    c = g * h
                    s = -f * h
                    for row in A:
                        y = row[nm]
                        z = row[i]
                        row[nm] = y * c + z * s
                        row[i] = z * c - y * s
            z = w[k]
            if l == k:
                if z < 0.0:
                    w[k] = -z
                    for row in v:
                        row[k] = -row[k]
                break
            if its == _MAX_SVD_ITERATIONS:
                raise ArithmeticError(
                    f"no convergence in {_MAX_SVD_ITERATIONS} SVD iterations"
                )
            x = w[l]
            nm = k - 1
            y = w[nm]
            g = rv1[nm]
            h = rv1[k]
            f = ((y - z) * (y + z) + (g - h) * (g + h)) / (2.0 * h * y)
            g = pythag(f, 1.0)
            f = ((x - z) * (x + z) + h * ((y / (f + sign_follow(g, f))) - h)) / x
            c = s = 1.0
            for j in range(l, nm + 1):
                i = j + 1
                g = rv1[i]
                y = w[i]
                h = s * g
                g = c * g
                z = pythag(f, h)
                rv1[j] = z
                c = f / z
                s = h / z
                f = x * c + g * s
                g = g * c - x * s
                h = y * s
                y *= c
                for row in v:
                    x = row[j]
                    z = row[i]
                    row[j] = x * c + z * s
                    row[i] = z * c - x * s
                z = pythag(f, h)
                w[j] = z
                if z:
                    z = 1.0 / z
                    c = f * z
                    s = h * z
                f = c * g + s * y
                x = c * y - s * g
                for row in A:
                    y = row[j]
                    z = row[i]
                    row[j] = y * c + z * s
                    row[i] = z * c - y * s
            rv1[l] = 0.0
            rv1[k] = f
            w[k] = x

    return (
        np.array(A, dtype=np.float64).reshape(m, n),
        np.array(w, dtype=np.float64),
        np.array(v, dtype=np.float64).reshape(n, n),
    )


def _as_points(points) -> np.ndarray:
    arr = np.asarray(points, dtype=np.float32)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValueError("points must be a sequence of (x, y) pairs")
    return arr


def dlt_to_h(ref_points, debug_points) -> Matrix:
    """Estimate the homography taking ``debug_points`` onto ``ref_points``.

    Uses the normalised direct linear transform; at least four point pairs
    are needed.  The result is scaled so that ``H[2][2]`` is 1 when possible.
    """
    ref = _as_points(ref_points)
    deb = _as_points(debug_points)
    if len(ref) != len(deb):
        raise ValueError("both point lists must have the same length")
    count = len(ref)
    if count < 4:
        raise ValueError("at least four points are required")

    csqrt2 = np.float32(math.sqrt(2.0))
    n32 = np.float32(count)
    avg_ref = ref.sum(axis=0, dtype=np.float32) / n32
    avg_deb = deb.sum(axis=0, dtype=np.float32) / n32
    d_ref = ref - avg_ref
    d_deb = deb - avg_deb
    ref_spread = np.sqrt((d_ref * d_ref).sum(axis=1)).sum(dtype=np.float32) / n32
    deb_spread = np.sqrt((d_deb * d_deb).sum(axis=1)).sum(dtype=np.float32) / n32
    if ref_spread == 0 or deb_spread == 0:
        raise ValueError("points must not all coincide")

    def normaliser(avg: np.ndarray, spread: np.float32) -> Matrix:
        t = Matrix(3, 3)
        factor = float(csqrt2 / spread)
        t[0][0] = factor
        t[0][2] = float(-avg[0] * csqrt2 / spread)
        t[1][1] = factor
        t[1][2] = float(-avg[1] * csqrt2 / spread)
        t[2][2] = 1.0
        return t

    t1 = normaliser(avg_ref, ref_spread)
    t1.inversed()
    t2 = normaliser(avg_deb, deb_spread)

    n_ref = (d_ref * csqrt2) / ref_spread
    n_deb = (d_deb * csqrt2) / deb_spread
    system = np.zeros((2 * count, 9), dtype=np.float64)
    for n, ((x1, y1), (x2, y2)) in enumerate(zip(n_ref, n_deb)):
        system[2 * n] = (0, 0, 0, -x2, -y2, -1.0, y1 * x2, y1 * y2, y1)
        system[2 * n + 1] = (x2, y2, 1.0, 0, 0, 0, -x1 * x2, -x1 * y2, -x1)

    _, w, v = singular_value_decomposition(system)
    smallest = int(np.argmin(w.astype(np.float32)))
    h = v[:, smallest].reshape(3, 3)
    h = (t1.data @ h) @ t2.data
    if h[2, 2] != 0:
        h = h / h[2, 2]

    result = Matrix(3, 3)
    result[:] = h
    return result