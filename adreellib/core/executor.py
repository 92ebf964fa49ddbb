#!/usr/bin/env python3

"""
Run the encoder, follow its progress, bound its runtime and check its output.
"""

import collections
import concurrent.futures
import os
import re
import subprocess
import threading
import time
from adreellib.core import utils
from adreellib.core.errors import OutputVerificationFailed
from adreellib.core.errors import RenderCancelled
from adreellib.core.errors import RenderError
from adreellib.core.errors import RenderFailed
from adreellib.core.errors import RenderTimeout

#============================================

TIME_MARKER = re.compile(r"time=\s*(-?\d+):(\d{2}):(\d{2}(?:\.\d+)?)")

TAIL_LINES = 40
POLL_SECONDS = 0.2

#============================================

class RenderState():
	IDLE = 'idle'
	RUNNING = 'running'
	SUCCEEDED = 'succeeded'
	FAILED = 'failed'
	TIMED_OUT = 'timed_out'
	CANCELLED = 'cancelled'

#============================================

def compute_timeout(total_seconds: float, base_seconds: float = 60.0,
	per_second: float = 4.0, ceiling_seconds: float = 1800.0) -> float:
	"""
	Wall-clock bound for one render: base + per_second * length, capped.
	"""
	return min(float(ceiling_seconds), base_seconds + per_second * max(0.0, total_seconds))

#============================================

def parse_progress_seconds(line: str) -> float:
	"""
	Return the encoded position from a stats line, or None.

	'frame=  120 fps= 30 ... time=00:00:04.00 bitrate=...' -> 4.0
	"""
	match = TIME_MARKER.search(line)
	if match is None:
		return None
	hours = int(match.group(1))
	if hours < 0:
		return None
	minutes = int(match.group(2))
	seconds = float(match.group(3))
	return hours * 3600 + minutes * 60 + seconds

#============================================

def verify_output(output_path: str, min_bytes: int, tail: str = "") -> int:
	if not os.path.isfile(output_path):
		raise OutputVerificationFailed(output_path, "file was not created", tail)
	size = os.path.getsize(output_path)
	if size < min_bytes:
		raise OutputVerificationFailed(output_path,
			f"file is only {size} bytes (minimum {min_bytes})", tail)
	return size

#============================================

class RenderExecutor():
	"""
	Own one encoder process from spawn to verified output.

	on_progress(fraction, seconds) is called from the stderr reader thread as
	time markers arrive. Setting cancel_event terminates the process the same
	way a timeout does.
	"""
	def __init__(self, timeout_base_seconds: float = 60.0,
		timeout_per_second: float = 4.0, timeout_ceiling_seconds: float = 1800.0,
		min_output_bytes: int = 1024, on_progress=None, cancel_event=None,
		popen=subprocess.Popen, poll_seconds: float = POLL_SECONDS):
		self.timeout_base_seconds = timeout_base_seconds
		self.timeout_per_second = timeout_per_second
		self.timeout_ceiling_seconds = timeout_ceiling_seconds
		self.min_output_bytes = min_output_bytes
		self.on_progress = on_progress
		self.cancel_event = cancel_event
		self.popen = popen
		self.poll_seconds = poll_seconds
		self.state = RenderState.IDLE
		self.tail = collections.deque(maxlen=TAIL_LINES)
		self.progress_seconds = 0.0

	#============================
	@classmethod
	def from_options(cls, options, **kwargs):
		return cls(
			timeout_base_seconds=options.timeout_base_seconds,
			timeout_per_second=options.timeout_per_second,
			timeout_ceiling_seconds=options.timeout_ceiling_seconds,
			min_output_bytes=options.min_output_bytes,
			**kwargs
		)

	#============================
	def tail_text(self) -> str:
		return '\n'.join(self.tail)

	#============================
	def run(self, args: list, output_path: str, total_seconds: float,
		timeout_seconds: float = None) -> str:
		if self.state != RenderState.IDLE:
			raise RuntimeError("a RenderExecutor runs exactly one render")
		if timeout_seconds is None:
			timeout_seconds = compute_timeout(total_seconds, self.timeout_base_seconds,
				self.timeout_per_second, self.timeout_ceiling_seconds)
		utils.show_command(args)
		utils.report_command({'event': 'start', 'args': list(args),
			'total_seconds': total_seconds})
		t0 = time.monotonic()
		try:
			proc = self.popen(args, stdin=subprocess.DEVNULL,
				stdout=subprocess.DEVNULL, stderr=subprocess.PIPE, text=True,
				errors='replace')
		except OSError as exc:
			self._finish(RenderState.FAILED, t0)
			raise RenderError(f"could not start encoder {args[0]}: {exc}")
		self.state = RenderState.RUNNING
		reader = threading.Thread(target=self._read_stderr,
			args=(proc.stderr, total_seconds), daemon=True)
		reader.start()
		outcome = self._wait(proc, t0 + timeout_seconds)
		reader.join(timeout=5)
		tail = self.tail_text()
		if outcome == RenderState.TIMED_OUT:
			self._finish(outcome, t0)
			raise RenderTimeout(timeout_seconds, tail)
		if outcome == RenderState.CANCELLED:
			self._finish(outcome, t0)
			raise RenderCancelled(tail)
		if proc.returncode != 0:
			self._finish(RenderState.FAILED, t0)
			raise RenderFailed(proc.returncode, tail)
		try:
			size = verify_output(output_path, self.min_output_bytes, tail)
		except OutputVerificationFailed:
			self._finish(RenderState.FAILED, t0)
			raise
		self._emit_progress(total_seconds, total_seconds)
		self._finish(RenderState.SUCCEEDED, t0)
		utils.message(f"wrote {output_path} ({size} bytes) in {int(time.monotonic() - t0)} seconds")
		return output_path

	#============================
	def _wait(self, proc, deadline: float) -> str:
		while True:
			try:
				proc.wait(timeout=self.poll_seconds)
				return RenderState.SUCCEEDED
			except subprocess.TimeoutExpired:
				pass
			if self.cancel_event is not None and self.cancel_event.is_set():
				self._kill(proc)
				return RenderState.CANCELLED
			if time.monotonic() >= deadline:
				self._kill(proc)
				return RenderState.TIMED_OUT

	#============================
	def _kill(self, proc) -> None:
		proc.kill()
		try:
			proc.wait(timeout=5)
		except subprocess.TimeoutExpired:
			utils.warn(f"encoder process {getattr(proc, 'pid', '?')} did not exit after kill")

	#============================
	def _read_stderr(self, stream, total_seconds: float) -> None:
		for line in stream:
			line = line.rstrip()
			if line == '':
				continue
			self.tail.append(line)
			seconds = parse_progress_seconds(line)
			if seconds is not None:
				self._emit_progress(seconds, total_seconds)

	#============================
	def _emit_progress(self, seconds: float, total_seconds: float) -> None:
		self.progress_seconds = seconds
		fraction = 1.0
		if total_seconds > 0:
			fraction = max(0.0, min(1.0, seconds / total_seconds))
		utils.report_command({'event': 'progress', 'fraction': fraction,
			'seconds': seconds})
		if self.on_progress is not None:
			self.on_progress(fraction, seconds)

	#============================
	def _finish(self, state: str, t0: float) -> None:
		self.state = state
		utils.report_command({'event': 'end', 'state': state,
			'elapsed': time.monotonic() - t0})

#============================================

class RenderQueue():
	"""
	Run render jobs on a bounded worker pool, one encoder at a time by default.

	Each submitted job receives its own cancel_event keyword argument.
	"""
	def __init__(self, max_workers: int = 1):
		if max_workers < 1:
			raise RuntimeError("max_workers must be at least 1")
		self.pool = concurrent.futures.ThreadPoolExecutor(max_workers=max_workers)
		self.cancel_events = {}
		self.lock = threading.Lock()

	#============================
	def submit(self, func, *args, **kwargs) -> concurrent.futures.Future:
		cancel_event = threading.Event()
		kwargs['cancel_event'] = cancel_event
		future = self.pool.submit(func, *args, **kwargs)
		with self.lock:
			self.cancel_events[future] = cancel_event
		future.add_done_callback(self._forget)
		return future

	#============================
	def cancel(self, future: concurrent.futures.Future) -> None:
		if future.cancel():
			return
		with self.lock:
			cancel_event = self.cancel_events.get(future)
		if cancel_event is not None:
			cancel_event.set()

	#============================
	def cancel_all(self) -> None:
		with self.lock:
			futures = list(self.cancel_events)
		for future in futures:
			self.cancel(future)

	#============================
	def shutdown(self, wait: bool = True) -> None:
		self.pool.shutdown(wait=wait)

	#============================
	def _forget(self, future: concurrent.futures.Future) -> None:
		with self.lock:
			self.cancel_events.pop(future, None)

	#============================
	def __enter__(self):
		return self

	#============================
	def __exit__(self, exc_type, exc_value, traceback):
		if exc_type is not None:
			self.cancel_all()
		self.shutdown(wait=True)
		return False
