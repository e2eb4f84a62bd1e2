# SPDX-License-Identifier: GPL-2.0
from .gui import main

main()
