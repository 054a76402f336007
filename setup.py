#!/usr/bin/env python3

# The MIT License (MIT)
# Copyright (c) 2025 by the geodap team and contributors
#
# Permission is hereby granted, free of charge, to any person obtaining a
# copy of this software and associated documentation files (the "Software"),
# to deal in the Software without restriction, including without limitation
# the rights to use, copy, modify, merge, publish, distribute, sublicense,
# and/or sell copies of the Software, and to permit persons to whom the
# Software is furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in
# all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING
# FROM, OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER
# DEALINGS IN THE SOFTWARE.

import os

from setuptools import setup, find_packages


requirements = [
    "affine>=2.3",
    "aiohttp>=3.8",
    "click>=8.2",
    "dask>=2021.6",
    "fsspec>=2021.6",
    "geopandas>=0.12",
    "jsonschema>=3.2",
    "netcdf4>=1.5",
    "numpy>=1.16",
    "pandas>=1.3",
    "pyproj>=3.0",
    "pyyaml>=5.4",
    "rasterio>=1.2",
    "rioxarray>=0.11",
    "s3fs>=2021.6",
    "setuptools>=41.0",
    "shapely>=2.0",
    "xarray>=2023.9",
    "zarr>=2.11"
]

test_requirements = [
    "pytest>=7.0",
    "pytest-cov>=4.0",
]

packages = find_packages(exclude=["test", "test.*"])

# Same effect as "from geodap import version", but avoids importing geodap:
version = None
with open('geodap/version.py') as f:
    exec(f.read())

# noinspection PyTypeChecker
setup(
    name=os.getenv("GEODAP_PYPI_NAME", "geodap"),
    version=version,
    description=('geodap is a Python package for fetching subsets of '
                 'tiled remote geospatial datasets powered by xarray and fsspec.'),
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    license='MIT',
    author='geodap Development Team',
    packages=packages,
    entry_points={
        'console_scripts': [
            # geodap's CLI
            'geodap = geodap.cli.main:main',
        ],
    },
    install_requires=requirements,
    extras_require={
        'test': test_requirements,
    },
    python_requires='>=3.9',
    # these classifiers will be shown in the left panel on PyPI
    # they to not interfer with pip install and are meta data for the user
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Science/Research',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Software Development',
        'Topic :: Scientific/Engineering',
        'Typing :: Typed',
        'Operating System :: Microsoft :: Windows',
        'Operating System :: POSIX',
        'Operating System :: Unix',
        'Operating System :: MacOS',
    ]
)
