#!/usr/bin/env python3

"""
Unit tests for adreel_tui metrics helpers.
"""

# Standard Library
import os
import sys

import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

import adreel_tui

#============================================

def test_format_duration_boundaries() -> None:
	"""
	Ensure duration formatting switches at minute/hour boundaries.
	"""
	assert adreel_tui.format_duration(12.4) == "12.4s"
	assert adreel_tui.format_duration(60.0) == "1m 00.0s"
	assert adreel_tui.format_duration(3661.2) == "1h 01m 01.2s"

#============================================

def test_estimate_remaining_seconds() -> None:
	"""
	Ensure the estimate scales elapsed time by the encoded fraction.
	"""
	assert adreel_tui.estimate_remaining(10.0, None) is None
	assert adreel_tui.estimate_remaining(10.0, 0.0) is None
	assert adreel_tui.estimate_remaining(10.0, 0.25) == pytest.approx(30.0)
	assert adreel_tui.estimate_remaining(10.0, 1.0) == 0.0

#============================================

def test_progress_bar() -> None:
	assert adreel_tui.progress_bar(0.5, width=10) == "#####-----"
	assert adreel_tui.progress_bar(None, width=4) == "----"
	assert adreel_tui.progress_bar(1.7, width=4) == "####"
