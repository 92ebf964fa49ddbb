#!/usr/bin/env python3

import dataclasses
import os
import shutil
import subprocess
import tempfile
from adreellib.core import bindings as bindings_module
from adreellib.core import models
from adreellib.core import utils
from adreellib.core.command import CommandBuilder
from adreellib.core.errors import OptionsError
from adreellib.core.executor import RenderExecutor
from adreellib.core.filtergraph import FilterGraphSynthesizer
from adreellib.core.options import RenderOptions
from adreellib.core.planner import DEFAULT_INTRO_SECONDS
from adreellib.core.planner import SegmentPlanner
from adreellib.media import cards
from adreellib.media import ffprobe
from adreellib.media import music
import PIL.Image

#============================================

SHORT_FORM_RESOLUTION = "1080x1920"

#============================================

def validate_inputs(images: list, narration: str) -> None:
	"""
	Check every image exists and decodes, and the narration file exists.
	"""
	if images is None or len(images) == 0:
		raise OptionsError("at least one image is required")
	for image_file in images:
		utils.ensure_file_exists(image_file, "image")
		try:
			with PIL.Image.open(image_file) as image:
				image.verify()
		except (OSError, SyntaxError) as exc:
			raise OptionsError(f"image file is not decodable: {image_file}: {exc}")
	utils.ensure_file_exists(narration, "narration")

#============================================

class Renderer():
	"""
	Run the whole pipeline for one output file.

	narration_synthesizer(text, out_file) -> path is used for an intro whose
	narration is given as text only.
	"""
	def __init__(self, options: RenderOptions = None, on_progress=None,
		cancel_event=None, popen=subprocess.Popen, runner=subprocess.run,
		narration_synthesizer=None):
		if options is None:
			options = RenderOptions()
		self.options = options
		self.on_progress = on_progress
		self.cancel_event = cancel_event
		self.popen = popen
		self.runner = runner
		self.narration_synthesizer = narration_synthesizer
		self.work_dir = None
		self.temp_files = []

	#============================
	def prepare(self, images: list, narration: str, output_path: str) -> dict:
		"""
		Resolve inputs and build plan, bindings, graph and argument list.
		"""
		images = [os.path.abspath(image) for image in images or []]
		narration = os.path.abspath(narration)
		output_path = os.path.abspath(output_path)
		validate_inputs(images, narration)
		self._check_narration_quality(narration)
		narration_duration = self._probe(narration, self.options.default_duration_seconds)
		utils.message(f"narration duration: {narration_duration:.2f}s")
		options = self._resolve_music(self.options, narration)
		intro_duration = None
		if options.enable_intro:
			options = self._resolve_intro(options)
			if options.intro.narration_path is not None:
				intro_duration = self._probe(options.intro.narration_path,
					DEFAULT_INTRO_SECONDS)
		if options.enable_outro:
			options = self._resolve_outro(options)
		if options.image_overlay is not None:
			utils.ensure_file_exists(options.image_overlay.image_path, "overlay image")
		plan = SegmentPlanner(options).plan(images, narration_duration, options,
			narration, intro_duration)
		bindings = bindings_module.build_input_bindings(plan)
		graph = FilterGraphSynthesizer(plan, bindings).synthesize()
		args = CommandBuilder(options.ffmpeg_bin).build(plan, bindings, graph,
			output_path)
		return {
			'options': options,
			'plan': plan,
			'bindings': bindings,
			'graph': graph,
			'args': args,
			'output_path': output_path,
		}

	#============================
	def render(self, images: list, narration: str, output_path: str) -> str:
		try:
			prepared = self.prepare(images, narration, output_path)
			output_path = prepared['output_path']
			plan = prepared['plan']
			output_dir = os.path.dirname(output_path)
			if output_dir:
				os.makedirs(output_dir, exist_ok=True)
			utils.message(
				f"rendering {plan.total_duration_seconds:.1f}s video "
				f"({len(plan.main_segments)} images, {plan.width}x{plan.height}) "
				f"to {output_path}"
			)
			executor = RenderExecutor.from_options(self.options,
				on_progress=self.on_progress, cancel_event=self.cancel_event,
				popen=self.popen)
			return executor.run(prepared['args'], output_path,
				plan.total_duration_seconds)
		finally:
			if not self.options.keep_temp:
				self.cleanup_temp()

	#============================
	def _probe(self, path: str, default: float) -> float:
		return ffprobe.probe_duration_or_default(path, default=default,
			ffprobe_bin=self.options.ffprobe_bin, runner=self.runner)

	#============================
	def _check_narration_quality(self, narration: str) -> None:
		try:
			report = ffprobe.analyze_audio(narration,
				ffprobe_bin=self.options.ffprobe_bin, runner=self.runner)
		except RuntimeError as exc:
			utils.warn(f"could not analyze narration audio: {exc}")
			return
		for issue in report['issues']:
			utils.warn(f"narration audio: {issue}")

	#============================
	def _resolve_music(self, options: RenderOptions, narration: str) -> RenderOptions:
		if not options.enable_background_music:
			return options
		if options.background_music_path is not None:
			utils.ensure_file_exists(options.background_music_path, "background music")
			return options
		narration_files = [narration, options.intro.narration_path]
		selected = music.select_background_music(options.media_dir, options.seed,
			exclude=narration_files)
		if selected is None:
			return options.replace(enable_background_music=False)
		return options.replace(background_music_path=selected)

	#============================
	def _resolve_intro(self, options: RenderOptions) -> RenderOptions:
		intro = options.intro
		changes = {}
		if intro.image_path is None:
			if not intro.title:
				raise OptionsError("intro needs an image_path or a title")
			changes['image_path'] = self._render_card('intro', intro, options)
		else:
			utils.ensure_file_exists(intro.image_path, "intro image")
		if intro.narration_path is None and intro.narration_text:
			if self.narration_synthesizer is None:
				utils.warn("intro narration text given without a synthesizer; skipping it")
			else:
				out_file = self._make_temp_path("intro-narration.mp3")
				changes['narration_path'] = self.narration_synthesizer(
					intro.narration_text, out_file)
		narration_path = changes.get('narration_path', intro.narration_path)
		if narration_path is not None:
			utils.ensure_file_exists(narration_path, "intro narration")
		if len(changes) == 0:
			return options
		return options.replace(intro=_replace(intro, changes))

	#============================
	def _resolve_outro(self, options: RenderOptions) -> RenderOptions:
		outro = options.outro
		if outro.image_path is not None:
			utils.ensure_file_exists(outro.image_path, "outro image")
			return options
		if not outro.title:
			raise OptionsError("outro needs an image_path or a title")
		card_file = self._render_card('outro', outro, options)
		return options.replace(outro=_replace(outro, {'image_path': card_file}))

	#============================
	def _render_card(self, name: str, card_options, options: RenderOptions) -> str:
		out_file = self._make_temp_path(f"{name}-card.png")
		return cards.render_title_card(card_options.title, out_file,
			options.width, options.height,
			background_color=card_options.background_color,
			text_color=card_options.text_color,
			font_file=card_options.font_file,
			font_size=card_options.font_size)

	#============================
	def _make_temp_path(self, filename: str) -> str:
		if self.work_dir is None:
			if self.options.work_dir is not None:
				os.makedirs(self.options.work_dir, exist_ok=True)
				self.work_dir = self.options.work_dir
			else:
				self.work_dir = tempfile.mkdtemp(prefix="adreel-")
		stamp = utils.make_timestamp()
		path = os.path.join(self.work_dir, f"{stamp}-{filename}")
		self.temp_files.append(path)
		return path

	#============================
	def cleanup_temp(self) -> None:
		for temp_file in self.temp_files:
			if os.path.exists(temp_file):
				os.remove(temp_file)
		self.temp_files = []
		if self.work_dir is not None and self.options.work_dir is None:
			shutil.rmtree(self.work_dir, ignore_errors=True)
		self.work_dir = None

#============================================

def _replace(section, changes: dict):
	# section options are frozen dataclasses
	return dataclasses.replace(section, **changes)

#============================================

def render_slideshow(images: list, narration_audio: str, output_path: str,
	options: RenderOptions = None, **kwargs) -> str:
	"""
	Render a slideshow video from still images and a narration track.

	One image and many images are the same operation. Returns output_path.
	"""
	renderer = Renderer(options, **kwargs)
	return renderer.render(images, narration_audio, output_path)

#============================================

def short_form_options(options: RenderOptions = None) -> RenderOptions:
	if options is None:
		return RenderOptions(resolution=SHORT_FORM_RESOLUTION)
	if options.width > options.height:
		return options.replace(resolution=SHORT_FORM_RESOLUTION)
	return options

#============================================

def render_short_form(images: list, narration_audio: str, output_path: str,
	options: RenderOptions = None, **kwargs) -> str:
	"""
	Render a vertical (9:16) video; images are padded rather than cropped.
	"""
	renderer = Renderer(short_form_options(options), **kwargs)
	return renderer.render(images, narration_audio, output_path)

#============================================

def plan_summary(plan: models.RenderPlan) -> dict:
	"""
	Plain-data view of a plan for dumping as YAML.
	"""
	segments = []
	for segment in plan.segments:
		segments.append({
			'kind': segment.kind,
			'image': segment.asset.path,
			'start': round(segment.start_seconds, 3),
			'duration': round(segment.duration_seconds, 3),
		})
	tracks = []
	for track in plan.audio_tracks:
		tracks.append({
			'role': track.role,
			'file': track.asset.path,
			'volume': track.volume,
			'loop': track.loop,
		})
	transitions = []
	for transition in plan.transitions:
		transitions.append({
			'after_image': transition.between_segment_index,
			'effect': transition.effect_name,
			'duration': round(transition.duration_seconds, 3),
			'offset': round(transition.offset_seconds, 3),
		})
	return {
		'resolution': f"{plan.width}x{plan.height}",
		'fps': plan.fps,
		'crf': plan.crf,
		'scale_mode': plan.scale_mode,
		'total_duration': round(plan.total_duration_seconds, 3),
		'segments': segments,
		'audio_tracks': tracks,
		'transitions': transitions,
	}
