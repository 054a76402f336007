# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

from .version import version

__version__ = version
