#!/usr/bin/env python3

"""
Pipeline tests for render_slideshow and render_short_form with faked
ffprobe and ffmpeg processes.
"""

# Standard Library
import io
import json
import os
import sys
import types

# PIP3 modules
import PIL.Image
import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

# local repo modules
from adreellib.core import bindings
from adreellib.core import models
from adreellib.core import renderer
from adreellib.core import utils
from adreellib.core.errors import InputNotFound
from adreellib.core.errors import OptionsError
from adreellib.core.errors import RenderFailed
from adreellib.core.options import IntroOptions
from adreellib.core.options import RenderOptions

#============================================

@pytest.fixture(autouse=True)
def quiet_mode():
	utils.set_quiet_mode(True)
	yield
	utils.set_quiet_mode(False)

#============================================

def fake_ffprobe(duration: float = 9.0):
	payload = {
		'format': {'duration': str(duration), 'size': '200000', 'bit_rate': '192000'},
		'streams': [
			{'codec_type': 'audio', 'codec_name': 'mp3', 'sample_rate': '48000',
				'channels': 2},
		],
	}

	def runner(args, **kwargs):
		return types.SimpleNamespace(returncode=0, stdout=json.dumps(payload), stderr="")

	return runner

#============================================

def fake_ffmpeg(returncode: int = 0):
	launched = []

	class FakePopen():
		def __init__(self, args, **kwargs):
			launched.append(args)
			self.pid = 101
			self.returncode = None
			self.stderr = io.StringIO("frame=  30 fps=30 time=00:00:01.00 bitrate=1k\n")
			with open(args[-1], 'wb') as handle:
				handle.write(b"\0" * 8192)

		def wait(self, timeout=None):
			self.returncode = returncode
			return returncode

		def kill(self):
			pass

	FakePopen.launched = launched
	return FakePopen

#============================================

@pytest.fixture
def inputs(tmp_path):
	images = []
	for index, color in enumerate(((200, 30, 30), (30, 200, 30), (30, 30, 200))):
		path = str(tmp_path / f"slide-{index}.png")
		PIL.Image.new("RGB", (640, 360), color=color).save(path)
		images.append(path)
	narration = str(tmp_path / "voice.mp3")
	with open(narration, 'wb') as handle:
		handle.write(b"ID3")
	return (images, narration)

#============================================

def test_render_slideshow_three_images(inputs, tmp_path) -> None:
	(images, narration) = inputs
	popen = fake_ffmpeg()
	output_path = str(tmp_path / "out" / "ad.mp4")
	progress = []
	result = renderer.render_slideshow(images, narration, output_path,
		RenderOptions(enable_background_music=False), popen=popen,
		runner=fake_ffprobe(9.0), on_progress=lambda f, s: progress.append(f))
	assert result == os.path.abspath(output_path)
	assert os.path.getsize(result) >= 1024
	assert progress[-1] == 1.0
	args = popen.launched[0]
	graph_text = args[args.index("-filter_complex") + 1]
	assert graph_text.count("xfade=") == 2
	assert "amix" not in graph_text
	assert "[3:a]aformat=" in graph_text
	assert graph_text.endswith("[aout]")
	assert args[-3:-1] == ["-t", "9"]

#============================================

def test_prepare_builds_even_segments(inputs, tmp_path) -> None:
	(images, narration) = inputs
	work = renderer.Renderer(RenderOptions(enable_background_music=False),
		runner=fake_ffprobe(9.0))
	prepared = work.prepare(images, narration, str(tmp_path / "ad.mp4"))
	plan = prepared['plan']
	assert [seg.duration_seconds for seg in plan.main_segments] == [3.0, 3.0, 3.0]
	assert len(plan.transitions) == 2
	assert len(prepared['bindings']) == 4
	summary = renderer.plan_summary(plan)
	assert summary['total_duration'] == 9.0
	assert summary['resolution'] == "1920x1080"
	assert [item['offset'] for item in summary['transitions']] == [3.0, 6.0]

#============================================

def test_render_short_form_pads_vertical(inputs, tmp_path) -> None:
	(images, narration) = inputs
	options = renderer.short_form_options(RenderOptions(enable_background_music=False))
	prepared = renderer.Renderer(options, runner=fake_ffprobe(9.0)).prepare(images,
		narration, str(tmp_path / "short.mp4"))
	plan = prepared['plan']
	assert (plan.width, plan.height) == (1080, 1920)
	assert plan.scale_mode == models.SCALE_PAD
	args = prepared['args']
	assert args[args.index("-s") + 1] == "1080x1920"
	assert "pad=1080:1920" in prepared['graph'].text
	popen = fake_ffmpeg()
	result = renderer.render_short_form(images, narration, str(tmp_path / "short.mp4"),
		RenderOptions(enable_background_music=False), popen=popen,
		runner=fake_ffprobe(9.0))
	assert os.path.isfile(result)

#============================================

def test_short_form_keeps_vertical_options() -> None:
	options = RenderOptions(resolution="720x1280")
	assert renderer.short_form_options(options) is options
	assert renderer.short_form_options().resolution == renderer.SHORT_FORM_RESOLUTION

#============================================

def test_missing_image_raises(inputs, tmp_path) -> None:
	(images, narration) = inputs
	missing = str(tmp_path / "nope.png")
	with pytest.raises(InputNotFound) as caught:
		renderer.render_slideshow(images + [missing], narration,
			str(tmp_path / "ad.mp4"), popen=fake_ffmpeg(), runner=fake_ffprobe())
	assert caught.value.path == missing

#============================================

def test_missing_narration_raises(inputs, tmp_path) -> None:
	(images, narration) = inputs
	with pytest.raises(InputNotFound):
		renderer.render_slideshow(images, str(tmp_path / "silent.mp3"),
			str(tmp_path / "ad.mp4"), popen=fake_ffmpeg(), runner=fake_ffprobe())

#============================================

def test_undecodable_image_raises(inputs, tmp_path) -> None:
	(images, narration) = inputs
	broken = tmp_path / "broken.png"
	broken.write_bytes(b"this is not a png")
	with pytest.raises(OptionsError):
		renderer.validate_inputs([str(broken)], narration)

#============================================

def test_intro_title_card_is_generated(inputs, tmp_path) -> None:
	(images, narration) = inputs
	options = RenderOptions(
		enable_background_music=False,
		enable_intro=True,
		intro=IntroOptions(title="Spring Sale", duration_seconds=2.0),
		work_dir=str(tmp_path / "work"),
	)
	work = renderer.Renderer(options, runner=fake_ffprobe(9.0))
	prepared = work.prepare(images, narration, str(tmp_path / "ad.mp4"))
	card_file = prepared['options'].intro.image_path
	assert os.path.isfile(card_file)
	assert prepared['bindings'][0].role == bindings.INTRO_IMAGE
	assert prepared['bindings'][0].asset.path == card_file
	assert prepared['plan'].total_duration_seconds == pytest.approx(11.0)
	work.cleanup_temp()
	assert not os.path.exists(card_file)

#============================================

def test_music_picked_from_media_dir(inputs, tmp_path) -> None:
	(images, narration) = inputs
	media_dir = tmp_path / "music"
	media_dir.mkdir()
	(media_dir / "bed.mp3").write_bytes(b"ID3")
	options = RenderOptions(media_dir=str(media_dir))
	prepared = renderer.Renderer(options, runner=fake_ffprobe(9.0)).prepare(images,
		narration, str(tmp_path / "ad.mp4"))
	track = prepared['plan'].track_for_role(models.BACKGROUND)
	assert track.asset.path == str(media_dir / "bed.mp3")
	assert "amix=inputs=2" in prepared['graph'].text

#============================================

def test_empty_media_dir_disables_music(inputs, tmp_path) -> None:
	(images, narration) = inputs
	options = RenderOptions(media_dir=str(tmp_path))
	prepared = renderer.Renderer(options, runner=fake_ffprobe(9.0)).prepare(images,
		narration, str(tmp_path / "ad.mp4"))
	assert prepared['options'].enable_background_music is False
	assert len(prepared['plan'].audio_tracks) == 1

#============================================

def test_encoder_failure_propagates(inputs, tmp_path) -> None:
	(images, narration) = inputs
	with pytest.raises(RenderFailed):
		renderer.render_slideshow(images, narration, str(tmp_path / "ad.mp4"),
			RenderOptions(enable_background_music=False), popen=fake_ffmpeg(1),
			runner=fake_ffprobe())

#============================================

def test_narration_next_to_music_is_not_the_bed(inputs, tmp_path) -> None:
	(images, narration) = inputs
	(tmp_path / "bed.wav").write_bytes(b"RIFF")
	options = RenderOptions(media_dir=str(tmp_path))
	for seed in range(4):
		prepared = renderer.Renderer(options.replace(seed=seed),
			runner=fake_ffprobe(9.0)).prepare(images, narration, str(tmp_path / "ad.mp4"))
		track = prepared['plan'].track_for_role(models.BACKGROUND)
		assert track.asset.path == str(tmp_path / "bed.wav")
		assert prepared['plan'].track_for_role(models.NARRATION).asset.path == narration
