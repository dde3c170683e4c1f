# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Entry point for python -m event_provenance."""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
