# SPDX-License-Identifier: GPL-2.0
"""Scheduling trace viewer: wake-up latency and preemption of tasks."""

__version__ = "0.1.0"
