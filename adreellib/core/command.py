#!/usr/bin/env python3

import re
from adreellib.core import models
from adreellib.core import utils
from adreellib.core.errors import GraphBindingMismatch
from adreellib.core.filtergraph import FilterGraph

#============================================

STREAM_REFERENCE = re.compile(r"\[(\d+):[va]\]")

AUDIO_BITRATE = '128k'
AUDIO_CHANNELS = 2
AUDIO_SAMPLE_RATE = 44100

#============================================

def referenced_input_indices(graph_text: str) -> set:
	"""
	Return every input index the graph reads from, e.g. '[3:a]' -> {3}.
	"""
	return set(int(match) for match in STREAM_REFERENCE.findall(graph_text))

#============================================

def check_bindings(bindings, graph: FilterGraph) -> None:
	declared = set(binding.index for binding in bindings)
	referenced = referenced_input_indices(graph.text)
	if declared != referenced:
		raise GraphBindingMismatch(list(declared), list(referenced))

#============================================

class CommandBuilder():
	"""
	Assemble the encoder argument list from a plan, its bindings and its graph.
	"""
	def __init__(self, ffmpeg_bin: str = "ffmpeg"):
		self.ffmpeg_bin = ffmpeg_bin

	#============================
	def build(self, plan: models.RenderPlan, bindings, graph: FilterGraph,
		output_path: str) -> list:
		check_bindings(bindings, graph)
		args = [self.ffmpeg_bin, '-hide_banner', '-nostdin', '-y']
		for position, binding in enumerate(bindings):
			if binding.index != position:
				raise GraphBindingMismatch(
					[item.index for item in bindings], list(range(len(bindings))))
			args.extend(self._input_args(binding))
		args.extend(['-filter_complex', graph.text])
		args.extend(['-map', graph.video_pad, '-map', graph.audio_pad])
		args.extend(self._encode_args(plan))
		args.append(output_path)
		return args

	#============================
	def _input_args(self, binding: models.InputBinding) -> list:
		if binding.asset.kind == models.IMAGE:
			args = []
			if binding.loop:
				args.extend(['-loop', '1'])
			if binding.trim_seconds is not None:
				args.extend(['-t', utils.format_seconds(binding.trim_seconds)])
			args.extend(['-i', binding.asset.path])
			return args
		# audio looping happens inside the graph with aloop
		return ['-i', binding.asset.path]

	#============================
	def _encode_args(self, plan: models.RenderPlan) -> list:
		return [
			'-c:v', 'libx264',
			'-preset', 'medium',
			'-crf', str(plan.crf),
			'-pix_fmt', 'yuv420p',
			'-r', str(plan.fps),
			'-s', f"{plan.width}x{plan.height}",
			'-c:a', 'aac',
			'-b:a', AUDIO_BITRATE,
			'-ar', str(AUDIO_SAMPLE_RATE),
			'-ac', str(AUDIO_CHANNELS),
			'-movflags', '+faststart',
			'-avoid_negative_ts', 'make_zero',
			'-t', utils.format_seconds(plan.total_duration_seconds),
		]
