#!/usr/bin/env python3

"""
Build the -filter_complex text for a RenderPlan.

Every input stream is addressed through the InputBinding list, so the graph
only ever refers to indices the command line declares.
"""

import dataclasses
from adreellib.core import models
from adreellib.core import bindings as bindings_module
from adreellib.core import utils
from adreellib.media import overlay

#============================================

VIDEO_OUT = '[vout]'
AUDIO_OUT = '[aout]'
SAMPLE_RATE = 44100
# aloop needs a sample count; this covers any sane bed length
LOOP_SIZE = '2e+09'

#============================================

@dataclasses.dataclass(frozen=True)
class FilterGraph():
	chains: tuple
	video_pad: str = VIDEO_OUT
	audio_pad: str = AUDIO_OUT

	@property
	def text(self) -> str:
		return ';'.join(self.chains)

#============================================

def music_volume_expression(plan: models.RenderPlan, volume: float) -> str:
	"""
	Return the volume filter for the background bed.

	With intro or outro levels set, the gain steps per time window:
	volume='if(lt(t,5),0.4,if(lt(t,35),0.15,0.4))':eval=frame
	"""
	intro_volume = plan.intro_music_volume
	outro_volume = plan.outro_music_volume
	if plan.intro_segment is None:
		intro_volume = None
	if plan.outro_segment is None:
		outro_volume = None
	if intro_volume is None and outro_volume is None:
		return f"volume={volume:g}"
	expression = f"{volume:g}"
	if outro_volume is not None:
		main_end = utils.format_seconds(plan.main_end_seconds)
		expression = f"if(lt(t,{main_end}),{expression},{outro_volume:g})"
	if intro_volume is not None:
		main_start = utils.format_seconds(plan.main_start_seconds)
		expression = f"if(lt(t,{main_start}),{intro_volume:g},{expression})"
	return f"volume='{expression}':eval=frame"

#============================================

class FilterGraphSynthesizer():
	def __init__(self, plan: models.RenderPlan, bindings: tuple = None):
		self.plan = plan
		if bindings is None:
			bindings = bindings_module.build_input_bindings(plan)
		self.bindings = tuple(bindings)
		self.chains = []

	#============================
	def synthesize(self) -> FilterGraph:
		self.chains = []
		video_pad = self._video_chains()
		if video_pad != VIDEO_OUT:
			self.chains.append(f"{video_pad}null{VIDEO_OUT}")
		self._audio_chains()
		return FilterGraph(chains=tuple(self.chains))

	#============================
	def _scale_filters(self) -> str:
		width = self.plan.width
		height = self.plan.height
		if self.plan.scale_mode == models.SCALE_CROP:
			return (
				f"scale={width}:{height}:force_original_aspect_ratio=increase,"
				f"crop={width}:{height}"
			)
		return (
			f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
			f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2:color=black"
		)

	#============================
	def _image_chain(self, binding: models.InputBinding) -> str:
		label = f"[v{binding.index}]"
		duration = utils.format_seconds(binding.trim_seconds)
		chain = f"{binding.stream}{self._scale_filters()},setsar=1,"
		chain += f"fps={self.plan.fps},format=yuv420p,"
		chain += f"trim=duration={duration},setpts=PTS-STARTPTS{label}"
		self.chains.append(chain)
		return label

	#============================
	def _video_chains(self) -> str:
		intro_pad = None
		outro_pad = None
		main_pads = []
		for binding in bindings_module.image_bindings(self.bindings):
			label = self._image_chain(binding)
			if binding.role == bindings_module.INTRO_IMAGE:
				intro_pad = label
			elif binding.role == bindings_module.OUTRO_IMAGE:
				outro_pad = label
			else:
				main_pads.append(label)
		if len(main_pads) == 0:
			raise RuntimeError("render plan has no main image segments")
		main_pad = self._main_chain(main_pads)
		sequence = [pad for pad in (intro_pad, main_pad, outro_pad) if pad is not None]
		pad = main_pad
		if len(sequence) > 1:
			pad = '[vseq]'
			self.chains.append(
				''.join(sequence) + f"concat=n={len(sequence)}:v=1:a=0{pad}"
			)
		return self._post_chains(pad)

	#============================
	def _main_chain(self, main_pads: list) -> str:
		if len(main_pads) == 1:
			return main_pads[0]
		transitions = self.plan.transitions
		if len(transitions) == 0:
			pad = '[vmain]'
			self.chains.append(
				''.join(main_pads) + f"concat=n={len(main_pads)}:v=1:a=0{pad}"
			)
			return pad
		if len(transitions) != len(main_pads) - 1:
			raise RuntimeError("transition count does not match main segment count")
		pad = main_pads[0]
		for index, transition in enumerate(transitions):
			out_pad = f"[x{index}]"
			duration = utils.format_seconds(transition.duration_seconds)
			offset = utils.format_seconds(transition.offset_seconds)
			self.chains.append(
				f"{pad}{main_pads[index + 1]}xfade=transition={transition.effect_name}"
				f":duration={duration}:offset={offset}{out_pad}"
			)
			pad = out_pad
		return pad

	#============================
	def _post_chains(self, pad: str) -> str:
		text_overlay = self.plan.text_overlay
		image_overlay = self.plan.image_overlay
		if text_overlay is not None:
			out_pad = '[vtext]'
			self.chains.append(f"{pad}{overlay.build_drawtext_filter(text_overlay)}{out_pad}")
			pad = out_pad
		if image_overlay is not None:
			binding = bindings_module.find_binding(self.bindings,
				bindings_module.OVERLAY_IMAGE)
			self.chains.extend(overlay.build_image_overlay_filters(image_overlay,
				binding.stream, self.plan.height, pad, VIDEO_OUT))
			pad = VIDEO_OUT
		return pad

	#============================
	def _audio_chains(self) -> str:
		sources = []
		for role in bindings_module.AUDIO_ORDER:
			binding = bindings_module.find_binding(self.bindings, role)
			if binding is None:
				continue
			sources.append((binding, self.plan.track_for_role(role)))
		if len(sources) == 0:
			raise RuntimeError("render plan has no audio tracks")
		if len(sources) == 1:
			# a lone track feeds the output pad directly
			(binding, track) = sources[0]
			return self._audio_chain(binding, track, AUDIO_OUT)
		pads = []
		for binding, track in sources:
			pads.append(self._audio_chain(binding, track, f"[a{binding.index}]"))
		self.chains.append(
			''.join(pads)
			+ f"amix=inputs={len(pads)}:duration=longest:dropout_transition=2"
			+ f":normalize=0{AUDIO_OUT}"
		)
		return AUDIO_OUT

	#============================
	def _audio_chain(self, binding: models.InputBinding,
		track: models.AudioTrack, label: str) -> str:
		filters = [f"aformat=sample_rates={SAMPLE_RATE}:channel_layouts=stereo"]
		if track.role == models.INTRO_NARRATION:
			intro_end = utils.format_seconds(self.plan.intro_segment.end_seconds)
			filters.append(f"atrim=0:{intro_end}")
			filters.append("asetpts=PTS-STARTPTS")
			filters.append(f"volume={track.volume:g}")
		elif track.role == models.NARRATION:
			delay_ms = int(round(self.plan.main_start_seconds * 1000))
			if delay_ms > 0:
				filters.append(f"adelay=delays={delay_ms}:all=1")
			filters.append(f"volume={track.volume:g}")
		else:
			total = self.plan.total_duration_seconds
			filters.append(f"aloop=loop=-1:size={LOOP_SIZE}")
			filters.append(f"atrim=0:{utils.format_seconds(total)}")
			filters.append("asetpts=PTS-STARTPTS")
			filters.append(music_volume_expression(self.plan, track.volume))
			if track.fade_in_seconds > 0:
				fade_in = utils.format_seconds(track.fade_in_seconds)
				filters.append(f"afade=t=in:st=0:d={fade_in}")
			if track.fade_out_seconds > 0:
				fade_start = max(0.0, total - track.fade_out_seconds)
				fade_out = utils.format_seconds(track.fade_out_seconds)
				filters.append(
					f"afade=t=out:st={utils.format_seconds(fade_start)}:d={fade_out}"
				)
		self.chains.append(f"{binding.stream}{','.join(filters)}{label}")
		return label

#============================================

def synthesize(plan: models.RenderPlan, bindings: tuple = None) -> FilterGraph:
	synthesizer = FilterGraphSynthesizer(plan, bindings)
	return synthesizer.synthesize()
