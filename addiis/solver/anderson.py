#!/usr/bin/env python3
## vi: tabstop=4 shiftwidth=4 softtabstop=4 expandtab
## ---------------------------------------------------------------------
##
## Copyright (C) 2026 by the addiis authors
##
## This file is part of addiis.
##
## addiis is free software: you can redistribute it and/or modify
## it under the terms of the GNU General Public License as published
## by the Free Software Foundation, either version 3 of the License, or
## (at your option) any later version.
##
## addiis is distributed in the hope that it will be useful,
## but WITHOUT ANY WARRANTY; without even the implied warranty of
## MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
## GNU General Public License for more details.
##
## You should have received a copy of the GNU General Public License
## along with addiis. If not, see <http://www.gnu.org/licenses/>.
##
## ---------------------------------------------------------------------
from typing import Deque, NamedTuple, Optional
from collections import deque
import logging

import numpy as np

from ..timings import Timer, timed_member_call

log = logging.getLogger(__name__)


class AndersonError(Exception):
    """is the base class of errors visible from this package."""
    pass


class AndersonConfigError(AndersonError):
    """is raised for invalid accelerator or solver parameters."""
    pass


class AndersonShapeError(AndersonError):
    """is raised if the passed arrays do not match in shape or size."""
    pass


class AndersonHistoryError(AndersonError):
    """is raised if the history is found in an inconsistent state."""
    pass


class HistoryEntry(NamedTuple):
    iterate: np.ndarray  # xᵢ (flattened)
    residual: np.ndarray  # Pf(xᵢ) (flattened)
    error_norm: float  # ||Pf(xᵢ)||


def to_cpu(array) -> np.ndarray:
    """
    Returns a host (numpy) copy of the array. Device arrays, which expose
    a `get` method (e.g. cupy), are copied out of device memory.
    """
    if hasattr(array, "get"):
        array = array.get()
    return np.asarray(array)


def _as_array(value):
    # keep array objects (also device arrays) untouched
    if hasattr(value, "reshape") and hasattr(value, "size"):
        return value
    return np.asarray(value)


class AndersonAcceleration:
    r"""
    Adaptive-depth Anderson acceleration.

    Accelerates the iterative solution of ``f(x) = 0`` according to the damped
    preconditioned scheme

        xₙ₊₁ = xₙ + αₙ P⁻¹ f(xₙ)

    where ``f(x)`` is the residual (e.g. ``g(x) - x`` for a fixed-point map g),
    ``Pf(x) = P⁻¹ f(x)`` the preconditioned residual and the damping ``αₙ``
    may vary between steps. The accelerated iterate is

        xₙ₊₁ = xₙ + αₙ Pf(xₙ) + ∑ᵢ βᵢ [(xᵢ - xₙ) + αₙ (Pf(xᵢ) - Pf(xₙ))]

    where the coefficients β minimise ``|Pf(xₙ) + ∑ᵢ βᵢ (Pf(xᵢ) - Pf(xₙ))|²``.

    The history never holds more than `m` entries. On top, two measures
    keep the mixing problem well-posed:

    - Entries with ``|Pf(xᵢ)| > errorfactor * minⱼ |Pf(xⱼ)|`` are dropped
      (adaptive Anderson acceleration, Chupin, Dupuy, Legendre, Séré,
      Math. Model. Num. Anal. 55, 2785 (2021), with ``errorfactor = 1/δ``).
      Reducing `errorfactor` to 1e3 or 100 reduces the effective history
      size and is therefore the best way to save memory.
    - The oldest entries are dropped as long as the condition number of
      the mixing system exceeds `maxcond`.

    Setting ``m = 0``, ``errorfactor <= 1`` or ``maxcond <= 1`` disables
    the acceleration, i.e. plain damped steps are performed.

    Parameters
    ----------
    m: int, optional
        Maximal history size (default: 10). Ideally the largest value
        fitting into memory.
    maxcond: float, optional
        Maximal condition number of the mixing system (default: 1e6).
    errorfactor: float, optional
        Maximal ratio of the error norm of a history entry to the
        smallest error norm for the entry to be kept (default: 1e4).
    """
    def __init__(self, m: int = 10, maxcond: float = 1e6,
                 errorfactor: float = 1e4):
        if isinstance(m, bool) or not isinstance(m, (int, np.integer)):
            raise AndersonConfigError(f"The history size ({m=}) has to be "
                                      "an integer.")
        if m < 0:
            raise AndersonConfigError(f"The history size ({m=}) can not be "
                                      "negative.")
        # written as negation to also catch NaN
        if not maxcond > 0:
            raise AndersonConfigError(f"The maximal condition number "
                                      f"({maxcond=}) has to be positive.")
        if not errorfactor > 0:
            raise AndersonConfigError(f"The error factor ({errorfactor=}) has "
                                      "to be positive.")
        self.m: int = int(m)
        self.maxcond: float = float(maxcond)
        self.errorfactor: float = float(errorfactor)
        self.timer: Timer = Timer()
        self.reset()

    def reset(self) -> None:
        """Drops the complete history and all diagnostics."""
        self._history: Deque[HistoryEntry] = deque()
        self.dimension: Optional[int] = None
        self.condition_number: Optional[float] = None
        self.n_mixed: int = 0
        self.step_info: Optional[str] = None

    @property
    def is_enabled(self) -> bool:
        return not (self.m == 0 or self.errorfactor <= 1 or self.maxcond <= 1)

    @property
    def depth(self) -> int:
        """Returns the current history size"""
        return len(self._history)

    @property
    def history(self) -> tuple[HistoryEntry, ...]:
        """The history entries, oldest first"""
        return tuple(self._history)

    @property
    def errors(self) -> list[float]:
        return [entry.error_norm for entry in self._history]

    def __call__(self, xn, alphan, Pfxn):
        return self.apply(xn, alphan, Pfxn)

    @timed_member_call(timer="timer", task="Anderson acceleration")
    def apply(self, xn, alphan, Pfxn):
        """
        Computes the next iterate xₙ₊₁ from the current iterate `xn`,
        the damping `alphan` and the preconditioned residual `Pfxn` and
        updates the history. The result has the shape of `xn`.
        """
        xn, Pfxn = _as_array(xn), _as_array(Pfxn)
        self._check_input(xn, alphan, Pfxn)
        if not self.is_enabled:
            self.step_info = "Anderson disabled"
            return xn + alphan * Pfxn

        xn_vec = xn.reshape(-1)
        Pfxn_vec = Pfxn.reshape(-1)
        error = float(np.linalg.norm(Pfxn_vec))

        # Adaptive depth: ensure |Pfxᵢ| ≤ errorfactor minᵢ |Pfxᵢ|
        self._prune_by_error(error)
        if not self._history:
            self._push(xn_vec, Pfxn_vec, error)
            self.n_mixed = 0
            self.step_info = "Damped step"
            return xn + alphan * Pfxn

        # Mᵢⱼ = (Pfxⱼ)ᵢ - (Pfxₙ)ᵢ, oldest entry in the first column
        M = np.stack([entry.residual for entry in self._history], axis=1)
        M = M - Pfxn_vec[:, None]
        Q, R = self._prune_by_condition(M)

        # 0 = M' Pfxₙ + M'M β  <=>  R β = -Q' Pfxₙ
        betas = np.linalg.lstsq(R, -(Q.conj().T @ Pfxn_vec), rcond=None)[0]
        betas = to_cpu(betas)  # iterated entry by entry below
        if len(betas) != len(self._history):
            raise AndersonHistoryError(f"Got {len(betas)} mixing coefficients "
                                       f"for {self.depth} history entries.")

        # accumulated out of place, integer input promotes to floating point
        xnext = xn_vec + alphan * Pfxn_vec
        for entry, beta in zip(self._history, betas):
            xnext = xnext + beta * (entry.iterate - xn_vec
                                    + alphan * (entry.residual - Pfxn_vec))

        self.n_mixed = len(betas)
        self.step_info = (f"Anderson step from {self.n_mixed} history "
                          f"entries, maximal size: {self.m}")
        self._push(xn_vec, Pfxn_vec, error)
        return xnext.reshape(xn.shape)

    def _check_input(self, xn, alphan, Pfxn) -> None:
        if np.ndim(alphan) != 0:
            raise AndersonShapeError("The damping factor has to be a scalar, "
                                     f"got an array of shape {np.shape(alphan)}.")
        if xn.shape != Pfxn.shape:
            raise AndersonShapeError(f"The iterate ({xn.shape=}) and the "
                                     f"residual ({Pfxn.shape=}) differ in shape.")
        if self.dimension is not None and xn.size != self.dimension:
            raise AndersonShapeError(f"Expected arrays with {self.dimension} "
                                     f"elements, got {xn.shape=}.")

    def _prune_by_error(self, error: float) -> None:
        """
        Drops all entries with an error norm larger than `errorfactor`
        times the minimal error norm of the history and the current
        residual norm `error`.
        """
        min_error = min(self.errors + [error])
        threshold = self.errorfactor * min_error
        # "not >" keeps all entries if the threshold is NaN (inf * 0)
        kept = deque(entry for entry in self._history
                     if not entry.error_norm > threshold)
        n_dropped = len(self._history) - len(kept)
        if n_dropped:
            log.debug(f"Dropping {n_dropped} history entries with error norm "
                      f"above {threshold:.3e} (minimal error norm "
                      f"{min_error:.3e}).")
        self._history = kept

    def _prune_by_condition(self, M: np.ndarray):
        """
        QR-factorises the difference matrix `M`, dropping the oldest
        history entry (first column) as long as the condition number
        of the triangular factor exceeds `maxcond`.
        Returns the Q and R factors of the pruned matrix.
        """
        Q, R = np.linalg.qr(M)
        cond = float(np.linalg.cond(R))
        while M.shape[1] > 1 and cond > self.maxcond:
            log.debug(f"Condition number {cond:.3e} exceeds {self.maxcond:.3e}, "
                      "dropping the oldest history entry.")
            M = M[:, 1:]
            self._history.popleft()
            Q, R = np.linalg.qr(M)
            cond = float(np.linalg.cond(R))
        self.condition_number = cond
        return Q, R

    def _push(self, xn_vec, Pfxn_vec, error: float) -> None:
        """
        Appends a new entry to the history, evicting the oldest entry
        if the history grows beyond `m` entries.
        """
        if self.dimension is None:
            self.dimension = xn_vec.size
        self._history.append(
            HistoryEntry(xn_vec.copy(), Pfxn_vec.copy(), error)
        )
        if len(self._history) > self.m:
            self._history.popleft()
        log.debug(f"Anderson depth: {self.depth}")
        self._check_history()

    def _check_history(self) -> None:
        if len(self._history) > self.m:
            raise AndersonHistoryError(f"History size ({self.depth}) exceeds "
                                       f"the maximal size ({self.m=}).")
        for entry in self._history:
            if entry.iterate.size != self.dimension or \
                    entry.residual.size != self.dimension:
                raise AndersonHistoryError(
                    "History entry with inconsistent size: "
                    f"{entry.iterate.size=}, {entry.residual.size=}, "
                    f"expected {self.dimension}."
                )
