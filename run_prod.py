#!/usr/bin/env python
"""Production server: no hot reload, INFO-level console logging."""

import os

os.environ["SERVER__RELOAD"] = "false"

from numbercall import main

if __name__ in {"__main__", "__mp_main__"}:
    main()
