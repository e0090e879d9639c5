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

"""Setup for addiis"""
import re
from pathlib import Path

from setuptools import find_packages, setup


def read_readme():
    with open("README.md") as fp:
        return "".join([line for line in fp if not line.startswith("<img")])


def read_version():
    init = Path("addiis") / "__init__.py"
    match = re.search(r'^__version__ = "([^"]+)"', init.read_text(), re.M)
    if match is None:
        raise RuntimeError(f"Could not determine the version from {init}.")
    return match.group(1)


if Path.cwd().resolve() != Path(__file__).resolve().parent or \
        not (Path("addiis") / "__init__.py").is_file():
    raise RuntimeError("Running setup.py is only supported "
                       "from top level of repository as './setup.py <command>'")

setup(
    name="addiis",
    version=read_version(),
    description="Adaptive-depth Anderson acceleration of damped, "
                "preconditioned fixed-point iterations",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    license="GPL-3.0-or-later",
    packages=find_packages(),
    python_requires=">=3.9",
    install_requires=["numpy>=1.22"],
    extras_require={"tests": ["pytest"]},
    zip_safe=False,
)
