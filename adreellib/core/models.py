#!/usr/bin/env python3

"""
Immutable value types shared by the planner, synthesizer and command builder.

A RenderPlan is created fresh for every render call and never mutated; the
synthesizer and the command builder both read it, together with the single
ordered list of InputBinding values derived from it.
"""

import dataclasses
import math

#============================================

IMAGE = 'image'
AUDIO = 'audio'

# segment kinds
INTRO = 'intro'
MAIN_IMAGE = 'main_image'
OUTRO = 'outro'

# audio roles
NARRATION = 'narration'
INTRO_NARRATION = 'intro_narration'
INTRO_MUSIC = 'intro_music'
BACKGROUND = 'background'
OUTRO_MUSIC = 'outro_music'

# scaling policies
SCALE_CROP = 'crop'
SCALE_PAD = 'pad'

# timeline values are rounded to nanoseconds
TIME_DIGITS = 9

#============================================

@dataclasses.dataclass(frozen=True)
class MediaAsset():
	path: str
	kind: str
	duration_seconds: float = None

	def __post_init__(self):
		if self.kind not in (IMAGE, AUDIO):
			raise RuntimeError(f"unsupported asset kind: {self.kind}")
		if self.kind == IMAGE and self.duration_seconds is not None:
			raise RuntimeError("image assets have no intrinsic duration")

#============================================

@dataclasses.dataclass(frozen=True)
class AudioTrack():
	asset: MediaAsset
	role: str
	volume: float
	fade_in_seconds: float = 0.0
	fade_out_seconds: float = 0.0
	loop: bool = False

	def __post_init__(self):
		if self.role not in (NARRATION, INTRO_NARRATION, BACKGROUND):
			raise RuntimeError(f"unsupported audio track role: {self.role}")
		if self.loop and self.role != BACKGROUND:
			raise RuntimeError("only background music may loop")
		if self.volume < 0.0 or self.volume > 1.0:
			raise RuntimeError("track volume must be within [0, 1]")

#============================================

@dataclasses.dataclass(frozen=True)
class Segment():
	kind: str
	asset: MediaAsset
	start_seconds: float
	duration_seconds: float
	# extra input length consumed by a cross-fade into the next segment
	overlap_seconds: float = 0.0

	@property
	def end_seconds(self) -> float:
		return sum_seconds((self.start_seconds, self.duration_seconds))

	@property
	def input_seconds(self) -> float:
		return self.duration_seconds + self.overlap_seconds

#============================================

def sum_seconds(durations) -> float:
	"""
	Add durations without drift, so 5 + 3 x (20 / 3) is exactly 25.
	"""
	return round(math.fsum(durations), TIME_DIGITS)

#============================================

def layout_segments(drafts: list) -> tuple:
	"""
	Build contiguous segments from (kind, asset, duration, overlap) drafts.

	Start times are always derived here so segments never overlap or leave gaps.
	"""
	segments = []
	durations = []
	for kind, asset, duration, overlap in drafts:
		if duration <= 0:
			raise RuntimeError("segment duration must be positive")
		segments.append(Segment(kind=kind, asset=asset, start_seconds=sum_seconds(durations),
			duration_seconds=float(duration), overlap_seconds=float(overlap)))
		durations.append(float(duration))
	return tuple(segments)

#============================================

@dataclasses.dataclass(frozen=True)
class TransitionSpec():
	between_segment_index: int
	effect_name: str
	duration_seconds: float
	# offset inside the main image chain where the cross-fade starts
	offset_seconds: float

#============================================

@dataclasses.dataclass(frozen=True)
class TextOverlay():
	text: str
	position: str
	start_seconds: float
	duration_seconds: float
	font_size: int
	font_color: str
	box_color: str
	font_file: str = None

#============================================

@dataclasses.dataclass(frozen=True)
class ImageOverlay():
	asset: MediaAsset
	position: str
	height_fraction: float
	margin: int

#============================================

@dataclasses.dataclass(frozen=True)
class RenderPlan():
	width: int
	height: int
	fps: int
	quality: str
	crf: int
	segments: tuple
	audio_tracks: tuple
	transitions: tuple
	total_duration_seconds: float
	scale_mode: str
	# background bed gain while the intro and outro cards are on screen
	intro_music_volume: float = None
	outro_music_volume: float = None
	text_overlay: TextOverlay = None
	image_overlay: ImageOverlay = None

	#============================
	@property
	def resolution(self) -> tuple:
		return (self.width, self.height)

	#============================
	@property
	def main_segments(self) -> tuple:
		return tuple(seg for seg in self.segments if seg.kind == MAIN_IMAGE)

	#============================
	@property
	def intro_segment(self) -> Segment:
		for seg in self.segments:
			if seg.kind == INTRO:
				return seg
		return None

	#============================
	@property
	def outro_segment(self) -> Segment:
		for seg in self.segments:
			if seg.kind == OUTRO:
				return seg
		return None

	#============================
	@property
	def main_start_seconds(self) -> float:
		return self.main_segments[0].start_seconds

	#============================
	@property
	def main_end_seconds(self) -> float:
		return self.main_segments[-1].end_seconds

	#============================
	def track_for_role(self, role: str) -> AudioTrack:
		for track in self.audio_tracks:
			if track.role == role:
				return track
		return None

#============================================

@dataclasses.dataclass(frozen=True)
class InputBinding():
	index: int
	asset: MediaAsset
	role: str
	trim_seconds: float = None
	loop: bool = False
	segment_index: int = None

	@property
	def stream(self) -> str:
		if self.asset.kind == IMAGE:
			return f"[{self.index}:v]"
		return f"[{self.index}:a]"
