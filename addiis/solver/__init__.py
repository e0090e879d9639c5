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
from .anderson import AndersonAcceleration
from .fixed_point_anderson import anderson_fixed_point

__all__ = ["AndersonAcceleration", "anderson_fixed_point"]
