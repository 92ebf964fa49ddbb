#!/usr/bin/env python3

#python wrapper for ffprobe

import json
import math
import subprocess
from adreellib.core import utils
from adreellib.core.errors import DurationUnknown

#============================================

DEFAULT_DURATION_SECONDS = 30.0
PROBE_TIMEOUT_SECONDS = 30

#============================================

def _asset_path(asset) -> str:
	return getattr(asset, 'path', asset)

#============================================

def _run_ffprobe(args: list, runner, timeout: float) -> dict:
	try:
		proc = runner(args, stdout=subprocess.PIPE, stderr=subprocess.PIPE,
			timeout=timeout, check=False)
	except FileNotFoundError as exc:
		raise RuntimeError(f"ffprobe not available: {exc}")
	except subprocess.TimeoutExpired:
		raise RuntimeError(f"ffprobe timed out after {timeout} seconds")
	stdout = proc.stdout
	stderr = proc.stderr
	if isinstance(stdout, bytes):
		stdout = stdout.decode('utf-8', errors='replace')
	if isinstance(stderr, bytes):
		stderr = stderr.decode('utf-8', errors='replace')
	if proc.returncode != 0:
		raise RuntimeError(f"ffprobe exited with code {proc.returncode}: {stderr.strip()}")
	try:
		data = json.loads(stdout)
	except ValueError as exc:
		raise RuntimeError(f"ffprobe returned invalid json: {exc}")
	if not isinstance(data, dict):
		raise RuntimeError("ffprobe returned unexpected json")
	return data

#============================================

def probe_duration(asset, ffprobe_bin: str = "ffprobe", runner=subprocess.run,
	timeout: float = PROBE_TIMEOUT_SECONDS) -> float:
	"""
	Return the play duration of an asset (MediaAsset or path) in seconds.

	Raises DurationUnknown when ffprobe fails or reports no usable number.
	"""
	path = _asset_path(asset)
	args = [ffprobe_bin, '-v', 'error', '-show_entries', 'format=duration',
		'-of', 'json', path]
	try:
		data = _run_ffprobe(args, runner, timeout)
	except RuntimeError as exc:
		raise DurationUnknown(path, str(exc))
	raw_duration = data.get('format', {}).get('duration')
	try:
		duration = float(raw_duration)
	except (TypeError, ValueError):
		raise DurationUnknown(path, f"non-numeric duration {raw_duration!r}")
	if math.isnan(duration) or math.isinf(duration) or duration <= 0:
		raise DurationUnknown(path, f"unusable duration {raw_duration!r}")
	return duration

#============================================

def probe_duration_or_default(asset, default: float = DEFAULT_DURATION_SECONDS,
	ffprobe_bin: str = "ffprobe", runner=subprocess.run) -> float:
	try:
		return probe_duration(asset, ffprobe_bin=ffprobe_bin, runner=runner)
	except DurationUnknown as exc:
		utils.warn(f"{exc}; using {default:.1f}s default")
		return float(default)

#============================================

def probe_media_info(path: str, ffprobe_bin: str = "ffprobe",
	runner=subprocess.run) -> dict:
	"""
	Return container and first video/audio stream details for a media file.
	"""
	args = [ffprobe_bin, '-v', 'error', '-print_format', 'json',
		'-show_format', '-show_streams', path]
	data = _run_ffprobe(args, runner, PROBE_TIMEOUT_SECONDS)
	fmt = data.get('format', {})
	streams = data.get('streams', [])
	video_stream = None
	audio_stream = None
	for stream in streams:
		if stream.get('codec_type') == 'video' and video_stream is None:
			video_stream = stream
		if stream.get('codec_type') == 'audio' and audio_stream is None:
			audio_stream = stream
	info = {
		'duration': _to_float(fmt.get('duration')),
		'size': _to_int(fmt.get('size')),
		'bitrate': _to_int(fmt.get('bit_rate')),
		'video': None,
		'audio': None,
	}
	if video_stream is not None:
		info['video'] = {
			'codec': video_stream.get('codec_name'),
			'width': _to_int(video_stream.get('width')),
			'height': _to_int(video_stream.get('height')),
			'fps': video_stream.get('r_frame_rate'),
		}
	if audio_stream is not None:
		info['audio'] = {
			'codec': audio_stream.get('codec_name'),
			'sample_rate': _to_int(audio_stream.get('sample_rate')),
			'channels': _to_int(audio_stream.get('channels')),
		}
	return info

#============================================

def analyze_audio(path: str, ffprobe_bin: str = "ffprobe",
	runner=subprocess.run) -> dict:
	"""
	Flag narration files likely to sound poor after encoding.
	"""
	info = probe_media_info(path, ffprobe_bin=ffprobe_bin, runner=runner)
	audio = info.get('audio')
	if audio is None:
		raise RuntimeError(f"no audio stream found in {path}")
	issues = []
	if info['duration'] < 10:
		issues.append('file too short (< 10 seconds)')
	if audio['sample_rate'] < 44100:
		issues.append('low sample rate (< 44.1kHz)')
	if audio['channels'] > 2:
		issues.append('too many channels (> 2)')
	if info['bitrate'] < 128000:
		issues.append('low bitrate (< 128kbps)')
	if len(issues) == 0:
		quality = 'good'
	elif len(issues) <= 2:
		quality = 'acceptable'
	else:
		quality = 'poor'
	return {
		'duration': info['duration'],
		'sample_rate': audio['sample_rate'],
		'channels': audio['channels'],
		'bitrate': info['bitrate'],
		'codec': audio['codec'],
		'issues': issues,
		'quality': quality,
	}

#============================================

def _to_float(value) -> float:
	try:
		return float(value)
	except (TypeError, ValueError):
		return 0.0

#============================================

def _to_int(value) -> int:
	try:
		return int(value)
	except (TypeError, ValueError):
		return 0
