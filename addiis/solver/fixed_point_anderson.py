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
from typing import Callable, Optional, Protocol, TextIO
import sys

import numpy as np

from .anderson import AndersonAcceleration, AndersonConfigError, AndersonError


class AndersonState:
    """
    Iteration state of a fixed-point solve accelerated by
    `AndersonAcceleration`.
    """
    def __init__(self, accelerator: AndersonAcceleration, guess):
        self.accelerator: AndersonAcceleration = accelerator
        self.solution = guess
        self.residual_norm: float = np.inf
        self.converged: bool = False
        self.n_iter: int = 0

    @property
    def step_info(self) -> Optional[str]:
        return self.accelerator.step_info

    def is_converged(self, conv_tol: float) -> bool:
        if self.residual_norm < conv_tol:
            self.converged = True
        return self.converged


class AndersonCallback(Protocol):
    def __call__(self, state: AndersonState, identifier: str,
                 file: TextIO = sys.stdout) -> None:
        ...


def default_print(state: AndersonState, identifier: str,
                  file: TextIO = sys.stdout):
    if identifier == "start":
        print("Niter      residual  depth  comment", file=file)
    elif identifier == "next_iter":
        fmt = "{n_iter:4d} {residual: >13.5E}  {depth:5d}  {step_info:s}"
        print(fmt.format(n_iter=state.n_iter,
                         residual=state.residual_norm,
                         depth=state.accelerator.depth,
                         step_info=state.step_info or ""), file=file)
    elif identifier == "is_converged":
        print("=== Converged ===", file=file)
        print(f"    Number of iterations: {state.n_iter}", file=file)


def _no_print(state: AndersonState, identifier: str, file: TextIO = sys.stdout):
    pass


def anderson_fixed_point(fixpoint_map: Callable, guess, damping: float = 0.8,
                         m: int = 10, maxcond: float = 1e6,
                         errorfactor: float = 1e4, conv_tol: float = 1e-9,
                         n_max_iterations: int = 100,
                         preconditioner: Optional[Callable] = None,
                         callback: Optional[AndersonCallback] = None
                         ) -> AndersonState:
    """
    Solves the fixed-point problem x = g(x) using damped, preconditioned
    iterations xₙ₊₁ = xₙ + α P⁻¹ (g(xₙ) - xₙ), accelerated by
    adaptive-depth Anderson acceleration.

    Parameters
    ----------
    fixpoint_map: callable
        The fixed-point map g, taking and returning an array.
    guess
        The initial guess x₀.
    damping: float, optional
        The damping factor α (default: 0.8).
    m: int, optional
        Maximal Anderson history size (default: 10).
    maxcond: float, optional
        Maximal condition number of the Anderson mixing system (default: 1e6).
    errorfactor: float, optional
        Maximal ratio of the error norm of a history entry to the
        smallest error norm (default: 1e4).
    conv_tol: float, optional
        The convergence tolerance on the norm of the residual
        g(x) - x (default: 1e-9).
    n_max_iterations: int, optional
        The maximum number of allowed iterations (default: 100).
    preconditioner: callable, optional
        Maps the residual f(x) to the preconditioned residual P⁻¹ f(x).
        By default no preconditioning is applied.
    callback: AndersonCallback, optional
        A callable that is called after each iteration, e.g., to produce
        printout.
    """
    if callback is None:
        callback = _no_print
    if preconditioner is None:
        preconditioner = _identity
    if n_max_iterations < 1:
        raise AndersonError(f"The maximum number of iterations ({n_max_iterations=}) "
                            "can not be smaller than 1.")
    if not damping > 0:
        raise AndersonConfigError(f"The damping ({damping=}) has to be positive.")

    state = AndersonState(
        AndersonAcceleration(m=m, maxcond=maxcond, errorfactor=errorfactor),
        guess
    )
    callback(state, "start")
    x = guess
    while True:
        residual = fixpoint_map(x) - x
        state.residual_norm = float(np.linalg.norm(residual))
        state.solution = x
        if state.is_converged(conv_tol):
            callback(state, "is_converged")
            return state
        if state.n_iter >= n_max_iterations:
            raise AndersonError(
                f"No convergence detected after {n_max_iterations} iterations"
            )
        x = state.accelerator.apply(x, damping, preconditioner(residual))
        state.n_iter += 1
        callback(state, "next_iter")


def _identity(residual):
    return residual
