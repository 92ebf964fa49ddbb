#!/usr/bin/env python3

import math
import random
from adreellib.core import models
from adreellib.core import utils
from adreellib.core.errors import OptionsError
from adreellib.core.options import RenderOptions
from adreellib.media import audio_safety

#============================================

DEFAULT_INTRO_SECONDS = 5.0
DURATION_TOLERANCE = 1e-6

#============================================

def choose_scale_mode(width: int, height: int) -> str:
	"""
	Landscape frames crop the source to fill; vertical and square frames pad.
	"""
	if width > height:
		return models.SCALE_CROP
	return models.SCALE_PAD

#============================================

class SegmentPlanner():
	"""
	Turn image paths, a narration length and RenderOptions into a RenderPlan.

	The planner does no I/O. Durations of audio files are probed by the
	caller and passed in; transition effects come from a Random seeded with
	options.seed so the same inputs always give the same plan.
	"""
	def __init__(self, options: RenderOptions = None):
		if options is None:
			options = RenderOptions()
		self.options = options
		# volume and fade adjustments made by the last plan() call
		self.clamps = []

	#============================
	def plan(self, images: list, narration_duration: float,
		options: RenderOptions = None, narration_path: str = None,
		intro_narration_duration: float = None) -> models.RenderPlan:
		if options is None:
			options = self.options
		if images is None or len(images) == 0:
			raise OptionsError("at least one image is required")
		if narration_path is None:
			raise OptionsError("a narration audio path is required")
		if narration_duration is None or narration_duration <= 0:
			raise OptionsError("narration duration must be positive")
		rng = random.Random(options.seed)
		clamps = []
		image_assets = [self._image_asset(image) for image in images]
		image_assets = self._fit_image_count(image_assets, narration_duration, options)
		per_image = narration_duration / len(image_assets)
		transitions, overlap = self._plan_transitions(len(image_assets), per_image,
			options, rng)
		drafts = []
		intro_track = None
		if options.enable_intro:
			(intro_draft, intro_track) = self._plan_intro(options,
				intro_narration_duration, clamps)
			drafts.append(intro_draft)
		for index, asset in enumerate(image_assets):
			seg_overlap = overlap if index < len(image_assets) - 1 else 0.0
			drafts.append((models.MAIN_IMAGE, asset, per_image, seg_overlap))
		if options.enable_outro:
			drafts.append(self._plan_outro(options))
		segments = models.layout_segments(drafts)
		total_duration = models.sum_seconds(seg.duration_seconds for seg in segments)
		(tracks, levels) = self._plan_audio(options, narration_path,
			narration_duration, intro_track, total_duration, clamps)
		self.clamps = clamps
		plan = models.RenderPlan(
			width=options.width,
			height=options.height,
			fps=options.fps,
			quality=str(options.quality),
			crf=options.crf,
			segments=segments,
			audio_tracks=tracks,
			transitions=tuple(transitions),
			total_duration_seconds=total_duration,
			scale_mode=options.scale_mode or choose_scale_mode(options.width,
				options.height),
			intro_music_volume=levels.get(models.INTRO_MUSIC),
			outro_music_volume=levels.get(models.OUTRO_MUSIC),
			text_overlay=self._plan_text_overlay(options, total_duration),
			image_overlay=self._plan_image_overlay(options),
		)
		self._check_plan(plan, narration_duration)
		return plan

	#============================
	def _image_asset(self, image) -> models.MediaAsset:
		if isinstance(image, models.MediaAsset):
			return image
		return models.MediaAsset(path=str(image), kind=models.IMAGE)

	#============================
	def _fit_image_count(self, image_assets: list, narration_duration: float,
		options: RenderOptions) -> list:
		# keep every segment at least min_segment_seconds long
		max_images = max(1, int(math.floor(
			narration_duration / options.min_segment_seconds + DURATION_TOLERANCE)))
		if len(image_assets) <= max_images:
			return image_assets
		utils.warn(
			f"{len(image_assets)} images for {narration_duration:.2f}s of narration; "
			f"using the first {max_images} to keep segments >= "
			f"{options.min_segment_seconds:.1f}s"
		)
		return image_assets[:max_images]

	#============================
	def _plan_transitions(self, image_count: int, per_image: float,
		options: RenderOptions, rng: random.Random) -> tuple:
		if image_count < 2 or not options.enable_transitions:
			return ([], 0.0)
		if options.transition_duration_seconds <= 0:
			return ([], 0.0)
		# a cross-fade may use at most half of a segment
		duration = min(options.transition_duration_seconds, per_image / 2.0)
		transitions = []
		for index in range(image_count - 1):
			effect = rng.choice(options.transition_effects)
			offset = (index + 1) * per_image
			transitions.append(models.TransitionSpec(
				between_segment_index=index,
				effect_name=effect,
				duration_seconds=duration,
				offset_seconds=offset,
			))
		return (transitions, duration)

	#============================
	def _plan_intro(self, options: RenderOptions, intro_narration_duration: float,
		clamps: list) -> tuple:
		intro = options.intro
		if intro.image_path is None:
			raise OptionsError("intro is enabled but has no image")
		if intro.duration_seconds is not None:
			duration = float(intro.duration_seconds)
		elif intro.narration_path is not None and intro_narration_duration:
			duration = float(intro_narration_duration)
		else:
			duration = DEFAULT_INTRO_SECONDS
		if duration <= 0:
			raise OptionsError("intro duration must be positive")
		asset = models.MediaAsset(path=intro.image_path, kind=models.IMAGE)
		track = None
		if intro.narration_path is not None:
			volume = audio_safety.normalize_volume(intro.narration_volume,
				models.INTRO_NARRATION, options.audio_policy, clamps)
			narration_asset = models.MediaAsset(path=intro.narration_path,
				kind=models.AUDIO, duration_seconds=intro_narration_duration)
			track = models.AudioTrack(asset=narration_asset,
				role=models.INTRO_NARRATION, volume=volume)
		return ((models.INTRO, asset, duration, 0.0), track)

	#============================
	def _plan_outro(self, options: RenderOptions) -> tuple:
		outro = options.outro
		if outro.image_path is None:
			raise OptionsError("outro is enabled but has no image")
		if outro.duration_seconds is None or outro.duration_seconds <= 0:
			raise OptionsError("outro duration must be positive")
		asset = models.MediaAsset(path=outro.image_path, kind=models.IMAGE)
		return (models.OUTRO, asset, float(outro.duration_seconds), 0.0)

	#============================
	def _plan_audio(self, options: RenderOptions, narration_path: str,
		narration_duration: float, intro_track: models.AudioTrack,
		total_duration: float, clamps: list) -> tuple:
		policy = options.audio_policy
		narration_asset = models.MediaAsset(path=narration_path, kind=models.AUDIO,
			duration_seconds=narration_duration)
		requested = {models.NARRATION: options.narration_volume}
		has_music = (options.enable_background_music
			and options.background_music_path is not None)
		if has_music:
			requested[models.BACKGROUND] = options.music_volume
		if intro_track is not None:
			requested[models.INTRO_NARRATION] = intro_track.volume
		if has_music and options.enable_intro:
			requested[models.INTRO_MUSIC] = options.intro.music_volume
		if has_music and options.enable_outro:
			requested[models.OUTRO_MUSIC] = options.outro.music_volume
		safe = audio_safety.safe_mix_volumes(requested, policy, clamps)
		tracks = []
		if intro_track is not None:
			tracks.append(models.AudioTrack(asset=intro_track.asset,
				role=models.INTRO_NARRATION, volume=safe[models.INTRO_NARRATION]))
		tracks.append(models.AudioTrack(asset=narration_asset, role=models.NARRATION,
			volume=safe[models.NARRATION]))
		if has_music:
			fade_in = audio_safety.validate_fade_duration(options.music_fade_in_seconds,
				policy, clamps)
			fade_out = audio_safety.validate_fade_duration(
				options.music_fade_out_seconds, policy, clamps)
			# short renders cannot fit both fades
			fade_in = min(fade_in, total_duration / 2.0)
			fade_out = min(fade_out, total_duration / 2.0)
			music_asset = models.MediaAsset(path=options.background_music_path,
				kind=models.AUDIO)
			tracks.append(models.AudioTrack(asset=music_asset, role=models.BACKGROUND,
				volume=safe[models.BACKGROUND], fade_in_seconds=fade_in,
				fade_out_seconds=fade_out, loop=True))
		return (tuple(tracks), safe)

	#============================
	def _plan_text_overlay(self, options: RenderOptions,
		total_duration: float) -> models.TextOverlay:
		overlay = options.text_overlay
		if overlay is None:
			return None
		duration = min(overlay.duration_seconds, total_duration)
		start = min(overlay.start_seconds, max(0.0, total_duration - duration))
		if start != overlay.start_seconds:
			utils.message(
				f"overlay start moved from {overlay.start_seconds:.1f}s to "
				f"{start:.1f}s to fit a {total_duration:.1f}s video"
			)
		return models.TextOverlay(text=overlay.text, position=overlay.position,
			start_seconds=start, duration_seconds=duration,
			font_size=overlay.font_size, font_color=overlay.font_color,
			box_color=overlay.box_color, font_file=overlay.font_file)

	#============================
	def _plan_image_overlay(self, options: RenderOptions) -> models.ImageOverlay:
		overlay = options.image_overlay
		if overlay is None:
			return None
		asset = models.MediaAsset(path=overlay.image_path, kind=models.IMAGE)
		return models.ImageOverlay(asset=asset, position=overlay.position,
			height_fraction=overlay.height_fraction, margin=overlay.margin)

	#============================
	def _check_plan(self, plan: models.RenderPlan, narration_duration: float) -> None:
		main_total = models.sum_seconds(seg.duration_seconds for seg in plan.main_segments)
		if abs(main_total - narration_duration) > DURATION_TOLERANCE:
			raise RuntimeError("main segments do not cover the narration")
		total = models.sum_seconds(seg.duration_seconds for seg in plan.segments)
		if abs(total - plan.total_duration_seconds) > DURATION_TOLERANCE:
			raise RuntimeError("segment durations do not sum to the total")
		main_count = len(plan.main_segments)
		if len(plan.transitions) not in (0, main_count - 1):
			raise RuntimeError("transition count does not match image count")
