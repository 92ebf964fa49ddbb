#!/usr/bin/env python3

"""
Render options with documented defaults, plus a YAML loader for them.
"""

import dataclasses
import decimal
import os
import yaml
from adreellib.core import utils
from adreellib.core import models
from adreellib.core.errors import OptionsError

#============================================

QUALITY_CRF = {
	'low': 28,
	'medium': 23,
	'high': 18,
	'ultra': 15,
}

DEFAULT_CRF = 23

# xfade transition names the planner picks from
TRANSITION_EFFECTS = (
	'fade', 'fadeblack', 'fadewhite', 'distance', 'wipeleft', 'wiperight',
	'wipeup', 'wipedown', 'slideleft', 'slideright', 'slideup', 'slidedown',
	'circlecrop', 'rectcrop', 'circleopen', 'circleclose', 'vertopen',
	'vertclose', 'horzopen', 'horzclose', 'dissolve', 'pixelize', 'diagtl',
	'diagtr', 'diagbl', 'diagbr',
)

OVERLAY_POSITIONS = (
	'top', 'bottom', 'center', 'top-left', 'top-right', 'bottom-left',
	'bottom-right',
)

#============================================

def parse_resolution(value) -> tuple:
	"""
	Parse 'WxH' (or a [W, H] pair) into an (int, int) tuple.
	"""
	if isinstance(value, (list, tuple)):
		if len(value) != 2:
			raise OptionsError("resolution must be [width, height]")
		parts = [str(item) for item in value]
	elif isinstance(value, str):
		parts = value.lower().split('x')
	else:
		raise OptionsError("resolution must be a 'WxH' string")
	if len(parts) != 2:
		raise OptionsError(f"invalid resolution: {value}")
	try:
		width = int(parts[0])
		height = int(parts[1])
	except ValueError:
		raise OptionsError(f"invalid resolution: {value}")
	if width <= 0 or height <= 0:
		raise OptionsError(f"resolution must be positive: {value}")
	if width % 2 != 0 or height % 2 != 0:
		raise OptionsError("resolution must use even dimensions for yuv420p")
	return (width, height)

#============================================

def quality_to_crf(quality) -> int:
	"""
	Translate a quality name (low, medium, high, ultra) or a raw CRF.
	"""
	if isinstance(quality, bool):
		raise OptionsError("quality must be a name or an integer CRF")
	if isinstance(quality, int):
		if quality < 0 or quality > 51:
			raise OptionsError("CRF must be within [0, 51]")
		return quality
	if isinstance(quality, str):
		crf = QUALITY_CRF.get(quality.lower())
		if crf is None:
			raise OptionsError(
				f"unknown quality {quality}; expected one of {', '.join(QUALITY_CRF)}"
			)
		return crf
	raise OptionsError("quality must be a name or an integer CRF")

#============================================

@dataclasses.dataclass(frozen=True)
class AudioPolicy():
	"""
	Gain ceilings and fade bounds.

	The numbers were tuned by ear against one encoder; treat them as policy.
	"""
	narration_max: float = 1.0
	intro_narration_max: float = 1.0
	intro_music_max: float = 0.4
	background_max: float = 0.2
	outro_music_max: float = 0.4
	min_volume: float = 0.05
	min_fade: float = 1.0
	max_fade: float = 3.0
	recommended_fade: float = 2.0
	safe_mixing_threshold: float = 1.2
	recommendation_headroom: float = 0.95

	#============================
	def ceiling_for(self, role: str) -> float:
		ceilings = {
			models.NARRATION: self.narration_max,
			models.INTRO_NARRATION: self.intro_narration_max,
			models.INTRO_MUSIC: self.intro_music_max,
			models.BACKGROUND: self.background_max,
			models.OUTRO_MUSIC: self.outro_music_max,
		}
		if role not in ceilings:
			raise OptionsError(f"unknown audio role: {role}")
		return ceilings[role]

#============================================

@dataclasses.dataclass(frozen=True)
class IntroOptions():
	# None means: derive from the intro narration, else 5 seconds
	duration_seconds: float = None
	image_path: str = None
	title: str = None
	narration_text: str = None
	narration_path: str = None
	narration_volume: float = 1.0
	music_volume: float = 0.4
	background_color: str = "#101820"
	text_color: str = "#ffffff"
	font_file: str = None
	font_size: int = None

#============================================

@dataclasses.dataclass(frozen=True)
class OutroOptions():
	duration_seconds: float = 5.0
	image_path: str = None
	title: str = None
	music_volume: float = 0.4
	background_color: str = "#101820"
	text_color: str = "#ffffff"
	font_file: str = None
	font_size: int = None

#============================================

@dataclasses.dataclass(frozen=True)
class TextOverlayOptions():
	text: str
	position: str = 'bottom'
	start_seconds: float = 10.0
	duration_seconds: float = 5.0
	font_size: int = 24
	font_color: str = 'white'
	box_color: str = 'black@0.7'
	font_file: str = None

#============================================

@dataclasses.dataclass(frozen=True)
class ImageOverlayOptions():
	image_path: str
	position: str = 'bottom-right'
	height_fraction: float = 0.2
	margin: int = 10

#============================================

@dataclasses.dataclass(frozen=True)
class RenderOptions():
	resolution: str = "1920x1080"
	fps: int = 30
	quality: str = "high"
	# None picks crop for landscape targets and pad otherwise
	scale_mode: str = None
	narration_volume: float = 1.0
	enable_background_music: bool = True
	background_music_path: str = None
	media_dir: str = "./media"
	music_volume: float = 0.15
	music_fade_in_seconds: float = 2.0
	music_fade_out_seconds: float = 2.0
	enable_intro: bool = False
	intro: IntroOptions = IntroOptions()
	enable_outro: bool = False
	outro: OutroOptions = OutroOptions()
	enable_transitions: bool = True
	transition_duration_seconds: float = 0.5
	transition_effects: tuple = TRANSITION_EFFECTS
	seed: int = 0
	min_segment_seconds: float = 1.0
	default_duration_seconds: float = 30.0
	text_overlay: TextOverlayOptions = None
	image_overlay: ImageOverlayOptions = None
	audio_policy: AudioPolicy = AudioPolicy()
	ffmpeg_bin: str = "ffmpeg"
	ffprobe_bin: str = "ffprobe"
	timeout_base_seconds: float = 60.0
	timeout_per_second: float = 4.0
	timeout_ceiling_seconds: float = 1800.0
	min_output_bytes: int = 1024
	work_dir: str = None
	keep_temp: bool = False

	#============================
	def __post_init__(self):
		parse_resolution(self.resolution)
		quality_to_crf(self.quality)
		if not isinstance(self.fps, int) or isinstance(self.fps, bool) or self.fps <= 0:
			raise OptionsError("fps must be a positive integer")
		if self.scale_mode not in (None, models.SCALE_CROP, models.SCALE_PAD):
			raise OptionsError("scale_mode must be crop, pad, or unset")
		if self.transition_duration_seconds < 0:
			raise OptionsError("transition duration cannot be negative")
		if len(self.transition_effects) == 0:
			raise OptionsError("transition_effects must not be empty")
		if self.min_segment_seconds <= 0:
			raise OptionsError("min_segment_seconds must be positive")
		if self.default_duration_seconds <= 0:
			raise OptionsError("default_duration_seconds must be positive")
		if self.timeout_ceiling_seconds <= 0:
			raise OptionsError("timeout ceiling must be positive")
		if self.text_overlay is not None:
			if self.text_overlay.position not in OVERLAY_POSITIONS:
				raise OptionsError(f"unknown overlay position {self.text_overlay.position}")
		if self.image_overlay is not None:
			if self.image_overlay.position not in OVERLAY_POSITIONS:
				raise OptionsError(f"unknown overlay position {self.image_overlay.position}")
			if not 0.0 < self.image_overlay.height_fraction <= 1.0:
				raise OptionsError("image overlay height_fraction must be within (0, 1]")

	#============================
	@property
	def width(self) -> int:
		return parse_resolution(self.resolution)[0]

	#============================
	@property
	def height(self) -> int:
		return parse_resolution(self.resolution)[1]

	#============================
	@property
	def crf(self) -> int:
		return quality_to_crf(self.quality)

	#============================
	def replace(self, **changes):
		return dataclasses.replace(self, **changes)

#============================================

class OptionsLoader():
	"""
	Load RenderOptions from an adreel YAML options file.
	"""
	def __init__(self, yaml_file: str):
		self.yaml_file = yaml_file

	#============================
	def load(self) -> RenderOptions:
		data = self._load_yaml()
		return self.from_mapping(data)

	#============================
	def from_mapping(self, data: dict) -> RenderOptions:
		self._validate_required_keys(data)
		values = {}
		values.update(self._parse_video(data.get('video', {})))
		values.update(self._parse_audio(data.get('audio', {})))
		values.update(self._parse_transitions(data.get('transitions', {})))
		values.update(self._parse_intro(data.get('intro')))
		values.update(self._parse_outro(data.get('outro')))
		values.update(self._parse_overlay(data.get('overlay', {})))
		values.update(self._parse_policy(data.get('policy')))
		values.update(self._parse_render(data.get('render', {})))
		try:
			return RenderOptions(**values)
		except (TypeError, decimal.InvalidOperation) as exc:
			raise OptionsError(f"invalid options: {exc}")

	#============================
	def _load_yaml(self) -> dict:
		if not os.path.isfile(self.yaml_file):
			raise OptionsError(f"options file not found: {self.yaml_file}")
		file_size = os.path.getsize(self.yaml_file)
		if file_size > 10 ** 6:
			raise OptionsError("options file is larger than 1MB")
		with open(self.yaml_file, 'r') as data_file:
			try:
				data = yaml.safe_load(data_file)
			except yaml.YAMLError as exc:
				raise OptionsError(f"could not parse {self.yaml_file}: {exc}")
		if data is None:
			data = {'adreel': 1}
		return data

	#============================
	def _validate_required_keys(self, data) -> None:
		if not isinstance(data, dict):
			raise OptionsError("options yaml must be a mapping at the top level")
		if data.get('adreel') != 1:
			raise OptionsError("adreel must be set to 1 in options files")
		known = ('adreel', 'video', 'audio', 'transitions', 'intro', 'outro',
			'overlay', 'policy', 'render')
		for key in data:
			if key not in known:
				raise OptionsError(f"unknown options section: {key}")
			if key != 'adreel' and data[key] is not None and not isinstance(data[key], dict):
				raise OptionsError(f"{key} must be a mapping")

	#============================
	def _parse_video(self, video: dict) -> dict:
		values = {}
		if video is None:
			return values
		resolution = video.get('resolution')
		if resolution is not None:
			(width, height) = parse_resolution(resolution)
			values['resolution'] = f"{width}x{height}"
		if video.get('fps') is not None:
			values['fps'] = self._as_int(video.get('fps'), 'video.fps')
		if video.get('quality') is not None:
			quality = video.get('quality')
			quality_to_crf(quality)
			values['quality'] = quality
		scale_mode = video.get('scale_mode')
		if scale_mode is not None and scale_mode != 'auto':
			values['scale_mode'] = scale_mode
		return values

	#============================
	def _parse_audio(self, audio: dict) -> dict:
		values = {}
		if audio is None:
			return values
		if audio.get('narration_volume') is not None:
			values['narration_volume'] = self._as_float(audio.get('narration_volume'),
				'audio.narration_volume')
		music = audio.get('background_music')
		if music is None:
			return values
		if not isinstance(music, dict):
			raise OptionsError("audio.background_music must be a mapping")
		if music.get('enabled') is not None:
			values['enable_background_music'] = bool(music.get('enabled'))
		if music.get('file') is not None:
			values['background_music_path'] = str(music.get('file'))
		if music.get('media_dir') is not None:
			values['media_dir'] = str(music.get('media_dir'))
		if music.get('volume') is not None:
			values['music_volume'] = self._as_float(music.get('volume'),
				'audio.background_music.volume')
		if music.get('fade_in') is not None:
			values['music_fade_in_seconds'] = self._as_seconds(music.get('fade_in'),
				'audio.background_music.fade_in')
		if music.get('fade_out') is not None:
			values['music_fade_out_seconds'] = self._as_seconds(music.get('fade_out'),
				'audio.background_music.fade_out')
		return values

	#============================
	def _parse_transitions(self, transitions: dict) -> dict:
		values = {}
		if transitions is None:
			return values
		if transitions.get('enabled') is not None:
			values['enable_transitions'] = bool(transitions.get('enabled'))
		if transitions.get('duration') is not None:
			values['transition_duration_seconds'] = self._as_seconds(
				transitions.get('duration'), 'transitions.duration')
		effects = transitions.get('effects')
		if effects is not None:
			if not isinstance(effects, list) or len(effects) == 0:
				raise OptionsError("transitions.effects must be a non-empty list")
			values['transition_effects'] = tuple(str(effect) for effect in effects)
		if transitions.get('seed') is not None:
			values['seed'] = self._as_int(transitions.get('seed'), 'transitions.seed')
		return values

	#============================
	def _parse_intro(self, intro: dict) -> dict:
		if intro is None:
			return {}
		values = {'enable_intro': bool(intro.get('enabled', True))}
		fields = {}
		if intro.get('duration') is not None:
			fields['duration_seconds'] = self._as_seconds(intro.get('duration'),
				'intro.duration')
		if intro.get('image') is not None:
			fields['image_path'] = str(intro.get('image'))
		if intro.get('narration') is not None:
			fields['narration_path'] = str(intro.get('narration'))
		if intro.get('music_volume') is not None:
			fields['music_volume'] = self._as_float(intro.get('music_volume'),
				'intro.music_volume')
		if intro.get('narration_volume') is not None:
			fields['narration_volume'] = self._as_float(intro.get('narration_volume'),
				'intro.narration_volume')
		fields.update(self._parse_card_fields(intro, 'intro'))
		if intro.get('narration_text') is not None:
			fields['narration_text'] = str(intro.get('narration_text'))
		values['intro'] = IntroOptions(**fields)
		return values

	#============================
	def _parse_outro(self, outro: dict) -> dict:
		if outro is None:
			return {}
		values = {'enable_outro': bool(outro.get('enabled', True))}
		fields = {}
		if outro.get('duration') is not None:
			fields['duration_seconds'] = self._as_seconds(outro.get('duration'),
				'outro.duration')
		if outro.get('image') is not None:
			fields['image_path'] = str(outro.get('image'))
		if outro.get('music_volume') is not None:
			fields['music_volume'] = self._as_float(outro.get('music_volume'),
				'outro.music_volume')
		fields.update(self._parse_card_fields(outro, 'outro'))
		values['outro'] = OutroOptions(**fields)
		return values

	#============================
	def _parse_card_fields(self, section: dict, name: str) -> dict:
		fields = {}
		for key in ('title', 'background_color', 'text_color', 'font_file'):
			if section.get(key) is not None:
				fields[key] = str(section.get(key))
		if section.get('font_size') is not None:
			fields['font_size'] = self._as_int(section.get('font_size'),
				f"{name}.font_size")
		return fields

	#============================
	def _parse_overlay(self, overlay: dict) -> dict:
		values = {}
		if overlay is None:
			return values
		text = overlay.get('text')
		if text is not None:
			if not isinstance(text, dict) or not text.get('text'):
				raise OptionsError("overlay.text requires a text value")
			fields = {'text': str(text.get('text'))}
			if text.get('position') is not None:
				fields['position'] = str(text.get('position'))
			if text.get('start') is not None:
				fields['start_seconds'] = self._as_seconds(text.get('start'),
					'overlay.text.start')
			if text.get('duration') is not None:
				fields['duration_seconds'] = self._as_seconds(text.get('duration'),
					'overlay.text.duration')
			if text.get('font_size') is not None:
				fields['font_size'] = self._as_int(text.get('font_size'),
					'overlay.text.font_size')
			for key in ('font_color', 'box_color', 'font_file'):
				if text.get(key) is not None:
					fields[key] = str(text.get(key))
			values['text_overlay'] = TextOverlayOptions(**fields)
		image = overlay.get('image')
		if image is not None:
			if not isinstance(image, dict) or not image.get('file'):
				raise OptionsError("overlay.image requires a file value")
			fields = {'image_path': str(image.get('file'))}
			if image.get('position') is not None:
				fields['position'] = str(image.get('position'))
			if image.get('height_fraction') is not None:
				fields['height_fraction'] = self._as_float(image.get('height_fraction'),
					'overlay.image.height_fraction')
			if image.get('margin') is not None:
				fields['margin'] = self._as_int(image.get('margin'), 'overlay.image.margin')
			values['image_overlay'] = ImageOverlayOptions(**fields)
		return values

	#============================
	def _parse_policy(self, policy: dict) -> dict:
		if policy is None:
			return {}
		fields = {}
		ceilings = policy.get('ceilings', {}) or {}
		if not isinstance(ceilings, dict):
			raise OptionsError("policy.ceilings must be a mapping")
		role_fields = {
			models.NARRATION: 'narration_max',
			models.INTRO_NARRATION: 'intro_narration_max',
			models.INTRO_MUSIC: 'intro_music_max',
			models.BACKGROUND: 'background_max',
			models.OUTRO_MUSIC: 'outro_music_max',
		}
		for role, value in ceilings.items():
			if role not in role_fields:
				raise OptionsError(f"unknown audio role in policy.ceilings: {role}")
			ceiling = self._as_float(value, f"policy.ceilings.{role}")
			if ceiling <= 0 or ceiling > 1.0:
				raise OptionsError("volume ceilings must be within (0, 1]")
			fields[role_fields[role]] = ceiling
		if policy.get('min_volume') is not None:
			fields['min_volume'] = self._as_float(policy.get('min_volume'),
				'policy.min_volume')
		fade = policy.get('fade', {}) or {}
		if not isinstance(fade, dict):
			raise OptionsError("policy.fade must be a mapping")
		for key in ('min', 'max', 'recommended'):
			if fade.get(key) is not None:
				fade_field = 'recommended_fade' if key == 'recommended' else f"{key}_fade"
				fields[fade_field] = self._as_seconds(fade.get(key), f"policy.fade.{key}")
		if policy.get('safe_mixing_threshold') is not None:
			fields['safe_mixing_threshold'] = self._as_float(
				policy.get('safe_mixing_threshold'), 'policy.safe_mixing_threshold')
		audio_policy = AudioPolicy(**fields)
		if audio_policy.min_fade > audio_policy.max_fade:
			raise OptionsError("policy.fade.min must not exceed policy.fade.max")
		return {'audio_policy': audio_policy}

	#============================
	def _parse_render(self, render: dict) -> dict:
		values = {}
		if render is None:
			return values
		if render.get('seed') is not None:
			values['seed'] = self._as_int(render.get('seed'), 'render.seed')
		timeout = render.get('timeout', {}) or {}
		if not isinstance(timeout, dict):
			raise OptionsError("render.timeout must be a mapping")
		if timeout.get('base') is not None:
			values['timeout_base_seconds'] = self._as_seconds(timeout.get('base'),
				'render.timeout.base')
		if timeout.get('per_second') is not None:
			values['timeout_per_second'] = self._as_float(timeout.get('per_second'),
				'render.timeout.per_second')
		if timeout.get('ceiling') is not None:
			values['timeout_ceiling_seconds'] = self._as_seconds(timeout.get('ceiling'),
				'render.timeout.ceiling')
		if render.get('min_output_bytes') is not None:
			values['min_output_bytes'] = self._as_int(render.get('min_output_bytes'),
				'render.min_output_bytes')
		if render.get('default_duration') is not None:
			values['default_duration_seconds'] = self._as_seconds(
				render.get('default_duration'), 'render.default_duration')
		if render.get('min_segment') is not None:
			values['min_segment_seconds'] = self._as_seconds(render.get('min_segment'),
				'render.min_segment')
		for key, field_name in (('ffmpeg', 'ffmpeg_bin'), ('ffprobe', 'ffprobe_bin'),
			('work_dir', 'work_dir')):
			if render.get(key) is not None:
				values[field_name] = str(render.get(key))
		if render.get('keep_temp') is not None:
			values['keep_temp'] = bool(render.get('keep_temp'))
		return values

	#============================
	def _as_int(self, value, name: str) -> int:
		if isinstance(value, bool) or not isinstance(value, int):
			raise OptionsError(f"{name} must be an integer")
		return value

	#============================
	def _as_float(self, value, name: str) -> float:
		if isinstance(value, bool) or not isinstance(value, (int, float)):
			raise OptionsError(f"{name} must be a number")
		return float(value)

	#============================
	def _as_seconds(self, value, name: str) -> float:
		try:
			seconds = utils.parse_timecode(value)
		except (RuntimeError, decimal.InvalidOperation):
			raise OptionsError(f"{name} must be seconds or a timecode")
		if seconds < 0:
			raise OptionsError(f"{name} cannot be negative")
		return seconds
