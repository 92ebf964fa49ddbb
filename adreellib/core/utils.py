#!/usr/bin/env python3

import os
import re
import shlex
import sys
import time
from decimal import Decimal
from adreellib.core.errors import InputNotFound

#============================================

_QUIET_MODE = False
_COMMAND_REPORTER = None

#============================================

def set_quiet_mode(enabled: bool) -> None:
	global _QUIET_MODE
	_QUIET_MODE = bool(enabled)

#============================================

def message(text: str) -> None:
	if _QUIET_MODE:
		return
	print(text)

#============================================

def warn(text: str) -> None:
	# warnings are reported even in quiet mode
	print(f"WARNING: {text}", file=sys.stderr)
	report_command({'event': 'warning', 'message': text})

#============================================

def set_command_reporter(callback) -> None:
	global _COMMAND_REPORTER
	_COMMAND_REPORTER = callback

#============================================

def clear_command_reporter() -> None:
	global _COMMAND_REPORTER
	_COMMAND_REPORTER = None

#============================================

def report_command(event: dict) -> None:
	if _COMMAND_REPORTER is None:
		return
	_COMMAND_REPORTER(event)

#============================================

def command_to_text(args: list) -> str:
	return shlex.join([str(arg) for arg in args])

#============================================

def show_command(args: list) -> None:
	showcmd = command_to_text(args)
	showcmd = re.sub("  *", " ", showcmd)
	message(f"CMD: '{showcmd}'")

#============================================

def format_seconds(value: float) -> str:
	"""
	Format seconds for filter graph text, e.g. 2.5 -> '2.5', 3.0 -> '3'.
	"""
	text = f"{float(value):.3f}"
	text = text.rstrip('0').rstrip('.')
	if text in ('', '-0'):
		return '0'
	return text

#============================================

def parse_timecode(raw_time) -> float:
	"""
	Parse seconds given as a number or an [HH:]MM:SS[.ff] string.
	"""
	if raw_time is None:
		raise RuntimeError("time value is required")
	if isinstance(raw_time, bool):
		raise RuntimeError("time values must be numbers or timecode strings")
	if isinstance(raw_time, (int, float)):
		return float(raw_time)
	if isinstance(raw_time, str):
		value = raw_time.strip()
		if ':' not in value:
			return float(Decimal(value))
		parts = value.split(':')
		seconds = Decimal(parts.pop())
		minutes = Decimal(parts.pop())
		hours = Decimal(0)
		if len(parts) > 0:
			hours = Decimal(parts.pop())
		return float(hours * Decimal(3600) + minutes * Decimal(60) + seconds)
	raise RuntimeError("time values must be numbers or timecode strings")

#============================================

def ensure_file_exists(filepath: str, kind: str = "input") -> None:
	if filepath is None or not os.path.isfile(filepath):
		raise InputNotFound(filepath, kind)
	return

#============================================

def make_timestamp() -> str:
	datestamp = time.strftime("%y%b%d").lower()
	uppercase = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
	hourstamp = uppercase[(time.localtime()[3]) % 26]
	minstamp = f"{time.localtime()[4]:02d}"
	secstamp = uppercase[(time.localtime()[5]) % 26]
	timestamp = datestamp + hourstamp + minstamp + secstamp
	return timestamp
