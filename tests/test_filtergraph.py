#!/usr/bin/env python3

"""
Unit tests for input bindings and filter graph text.
"""

# Standard Library
import os
import re
import sys

# PIP3 modules
import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

# local repo modules
from adreellib.core import bindings
from adreellib.core import filtergraph
from adreellib.core import models
from adreellib.core import utils
from adreellib.core.options import ImageOverlayOptions
from adreellib.core.options import IntroOptions
from adreellib.core.options import OutroOptions
from adreellib.core.options import RenderOptions
from adreellib.core.options import TextOverlayOptions
from adreellib.core.planner import SegmentPlanner

#============================================

STREAM = re.compile(r"\[(\d+):[va]\]")

#============================================

@pytest.fixture(autouse=True)
def quiet_mode():
	utils.set_quiet_mode(True)
	yield
	utils.set_quiet_mode(False)

#============================================

def _build(count: int, narration: float, options: RenderOptions,
	intro_narration_duration: float = None) -> tuple:
	images = [f"/tmp/slide-{index}.jpg" for index in range(count)]
	plan = SegmentPlanner(options).plan(images, narration, options, "/tmp/voice.mp3",
		intro_narration_duration)
	input_bindings = bindings.build_input_bindings(plan)
	graph = filtergraph.FilterGraphSynthesizer(plan, input_bindings).synthesize()
	return (plan, input_bindings, graph)

#============================================

def _full_options() -> RenderOptions:
	return RenderOptions(
		background_music_path="/tmp/bed.wav",
		enable_intro=True,
		intro=IntroOptions(duration_seconds=5.0, image_path="/tmp/intro.png",
			narration_path="/tmp/intro.mp3"),
	)

#============================================

def test_binding_order_with_intro_and_music() -> None:
	(plan, input_bindings, graph) = _build(3, 20.0, _full_options(), 4.0)
	roles = [binding.role for binding in input_bindings]
	assert roles == [
		bindings.INTRO_IMAGE,
		bindings.MAIN_IMAGE, bindings.MAIN_IMAGE, bindings.MAIN_IMAGE,
		models.INTRO_NARRATION,
		models.NARRATION,
		models.BACKGROUND,
	]
	assert [binding.index for binding in input_bindings] == list(range(7))
	assert plan.total_duration_seconds == pytest.approx(25.0)

#============================================

def test_every_index_referenced_once() -> None:
	(plan, input_bindings, graph) = _build(3, 20.0, _full_options(), 4.0)
	referenced = [int(value) for value in STREAM.findall(graph.text)]
	assert sorted(referenced) == [binding.index for binding in input_bindings]

#============================================

def test_outro_binding_follows_main_images() -> None:
	options = RenderOptions(
		enable_background_music=False,
		enable_outro=True,
		outro=OutroOptions(image_path="/tmp/outro.png"),
	)
	(plan, input_bindings, graph) = _build(2, 6.0, options)
	assert [binding.role for binding in input_bindings] == [
		bindings.MAIN_IMAGE, bindings.MAIN_IMAGE, bindings.OUTRO_IMAGE,
		models.NARRATION,
	]
	assert "concat=n=2:v=1:a=0[vseq]" in graph.text

#============================================

def test_single_image_single_track() -> None:
	options = RenderOptions(enable_background_music=False)
	(plan, input_bindings, graph) = _build(1, 7.5, options)
	assert len(input_bindings) == 2
	assert "xfade" not in graph.text
	assert "amix" not in graph.text
	assert graph.chains[-1].startswith("[1:a]")
	assert graph.chains[-1].endswith("[aout]")
	assert "[v0]null[vout]" in graph.chains

#============================================

def test_xfade_chain_offsets() -> None:
	options = RenderOptions(enable_background_music=False, transition_effects=('fade',))
	(plan, input_bindings, graph) = _build(3, 9.0, options)
	assert "[v0][v1]xfade=transition=fade:duration=0.5:offset=3[x0]" in graph.chains
	assert "[x0][v2]xfade=transition=fade:duration=0.5:offset=6[x1]" in graph.chains
	assert "[x1]null[vout]" in graph.chains
	assert "trim=duration=3.5" in graph.chains[0]

#============================================

def test_concat_when_transitions_disabled() -> None:
	options = RenderOptions(enable_background_music=False, enable_transitions=False)
	(plan, input_bindings, graph) = _build(3, 9.0, options)
	assert "[v0][v1][v2]concat=n=3:v=1:a=0[vmain]" in graph.chains

#============================================

def test_scaling_policy_in_graph() -> None:
	landscape = RenderOptions(enable_background_music=False)
	graph = _build(1, 5.0, landscape)[2]
	assert "force_original_aspect_ratio=increase,crop=1920:1080" in graph.text
	vertical = landscape.replace(resolution="1080x1920")
	graph = _build(1, 5.0, vertical)[2]
	assert "force_original_aspect_ratio=decrease,pad=1080:1920" in graph.text
	assert "crop=" not in graph.text

#============================================

def test_audio_mix_chains() -> None:
	(plan, input_bindings, graph) = _build(3, 20.0, _full_options(), 4.0)
	text = graph.text
	assert "[4:a]aformat=sample_rates=44100:channel_layouts=stereo,atrim=0:5" in text
	assert "adelay=delays=5000:all=1" in text
	assert "aloop=loop=-1:size=2e+09,atrim=0:25" in text
	assert "afade=t=out:st=23:d=2" in text
	assert "amix=inputs=3:duration=longest:dropout_transition=2:normalize=0[aout]" in text
	assert "volume='if(lt(t,5),0.14,0.15)':eval=frame" in text

#============================================

def test_music_volume_expression_windows() -> None:
	options = _full_options().replace(
		enable_outro=True,
		outro=OutroOptions(duration_seconds=3.0, image_path="/tmp/outro.png"),
	)
	plan = _build(2, 10.0, options, 4.0)[0]
	expression = filtergraph.music_volume_expression(plan, 0.2)
	assert expression == "volume='if(lt(t,5),0.14,if(lt(t,15),0.2,0.4))':eval=frame"
	plain = _build(2, 10.0, RenderOptions(background_music_path="/tmp/bed.wav"))[0]
	assert filtergraph.music_volume_expression(plain, 0.2) == "volume=0.2"

#============================================

def test_overlays_end_in_output_pad() -> None:
	options = RenderOptions(
		enable_background_music=False,
		text_overlay=TextOverlayOptions(text="Buy now", start_seconds=1.0),
		image_overlay=ImageOverlayOptions(image_path="/tmp/qr.png"),
	)
	(plan, input_bindings, graph) = _build(2, 6.0, options)
	assert input_bindings[-1].role == bindings.OVERLAY_IMAGE
	overlay_index = input_bindings[-1].index
	assert any(chain.startswith(f"[{overlay_index}:v]scale=-2:216") for chain in graph.chains)
	assert graph.chains[-2].startswith("[vtext][ovl]overlay=")
	assert graph.chains[-2].endswith("[vout]")
	assert "enable='between(t,1,6)'" in graph.text
	referenced = sorted(int(value) for value in STREAM.findall(graph.text))
	assert referenced == [binding.index for binding in input_bindings]

#============================================

def test_find_binding() -> None:
	(plan, input_bindings, graph) = _build(3, 20.0, _full_options(), 4.0)
	narration = bindings.find_binding(input_bindings, models.NARRATION)
	assert narration.index == 5
	assert narration.stream == "[5:a]"
	second = bindings.find_binding(input_bindings, bindings.MAIN_IMAGE, segment_index=2)
	assert second.index == 2
	assert bindings.find_binding(input_bindings, bindings.OVERLAY_IMAGE) is None
