# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Trigger Jenkins jobs from a job list and wait for every build to finish."""

__version__ = "0.1.0"
