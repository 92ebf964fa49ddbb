#!/usr/bin/env python3

"""
Unit tests for the adreel command-line front end.
"""

# Standard Library
import functools
import io
import json
import os
import sys
import types

# PIP3 modules
import PIL.Image
import pytest
import yaml

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

# local repo modules
import adreel_cli
from adreellib.core import errors
from adreellib.core import renderer
from adreellib.core import utils

#============================================

def fake_runner(args, **kwargs):
	payload = {
		'format': {'duration': '9.0', 'size': '200000', 'bit_rate': '192000'},
		'streams': [{'codec_type': 'audio', 'codec_name': 'mp3',
			'sample_rate': '44100', 'channels': 2}],
	}
	return types.SimpleNamespace(returncode=0, stdout=json.dumps(payload), stderr="")

#============================================

class FakePopen():
	def __init__(self, args, **kwargs):
		self.pid = 7
		self.returncode = None
		self.stderr = io.StringIO("")
		with open(args[-1], 'wb') as handle:
			handle.write(b"\0" * 2048)

	def wait(self, timeout=None):
		self.returncode = 0
		return 0

	def kill(self):
		pass

#============================================

@pytest.fixture(autouse=True)
def fake_tools(monkeypatch):
	real_renderer = renderer.Renderer
	monkeypatch.setattr(adreel_cli.renderer, "Renderer",
		functools.partial(real_renderer, runner=fake_runner, popen=FakePopen))
	yield
	utils.set_quiet_mode(False)

#============================================

@pytest.fixture
def inputs(tmp_path):
	images = []
	for index in range(2):
		path = str(tmp_path / f"slide-{index}.png")
		PIL.Image.new("RGB", (320, 180), color=(index * 100, 50, 50)).save(path)
		images.append(path)
	narration = str(tmp_path / "voice.mp3")
	with open(narration, 'wb') as handle:
		handle.write(b"ID3")
	return (images, narration)

#============================================

def _argv(images: list, narration: str, output: str, *extra) -> list:
	argv = []
	for image in images:
		argv += ["-i", image]
	argv += ["-a", narration, "-o", output, "-q"]
	argv += list(extra)
	return argv

#============================================

def test_parse_args_collects_images() -> None:
	args = adreel_cli.parse_args(["-i", "a.png", "-i", "b.png", "-a", "v.mp3",
		"-o", "out.mp4", "-s", "-r", "4"])
	assert args.images == ["a.png", "b.png"]
	assert args.short_form is True
	assert args.seed == 4
	assert args.keep_temp is False

#============================================

def test_load_options_overrides(tmp_path) -> None:
	args = adreel_cli.parse_args(["-i", "a.png", "-a", "v.mp3", "-o", "out.mp4",
		"-s", "-r", "9", "-k", "-c", str(tmp_path)])
	options = adreel_cli.load_options(args)
	assert options.seed == 9
	assert options.keep_temp is True
	assert options.work_dir == str(tmp_path)
	assert options.resolution == "1080x1920"

#============================================

def test_dry_run_prints_command(inputs, tmp_path, capsys) -> None:
	(images, narration) = inputs
	output = str(tmp_path / "ad.mp4")
	code = adreel_cli.main(_argv(images, narration, output, "-n"))
	assert code == adreel_cli.EXIT_OK
	stdout = capsys.readouterr().out
	assert stdout.startswith("ffmpeg ")
	assert "-filter_complex" in stdout
	assert not os.path.exists(output)

#============================================

def test_dump_plan_is_yaml(inputs, tmp_path, capsys) -> None:
	(images, narration) = inputs
	code = adreel_cli.main(_argv(images, narration, str(tmp_path / "ad.mp4"), "-p"))
	assert code == adreel_cli.EXIT_OK
	data = yaml.safe_load(capsys.readouterr().out)
	assert data['plan']['total_duration'] == 9.0
	assert [item['role'] for item in data['inputs']][:2] == ['main_image', 'main_image']
	assert data['filter_complex'][-1].endswith("[aout]")

#============================================

def test_render_writes_output(inputs, tmp_path) -> None:
	(images, narration) = inputs
	output = str(tmp_path / "ad.mp4")
	code = adreel_cli.main(_argv(images, narration, output))
	assert code == adreel_cli.EXIT_OK
	assert os.path.getsize(output) == 2048

#============================================

def test_missing_image_exit_code(inputs, tmp_path, capsys) -> None:
	(images, narration) = inputs
	missing = str(tmp_path / "missing.png")
	code = adreel_cli.main(_argv([missing], narration, str(tmp_path / "ad.mp4")))
	assert code == adreel_cli.EXIT_INPUT
	assert "ERROR: image file not found" in capsys.readouterr().err

#============================================

def test_exit_code_for() -> None:
	assert adreel_cli.exit_code_for(errors.InputNotFound("x.png")) == adreel_cli.EXIT_INPUT
	assert adreel_cli.exit_code_for(errors.OptionsError("bad")) == adreel_cli.EXIT_INPUT
	mismatch = errors.GraphBindingMismatch([0, 1], [0])
	assert adreel_cli.exit_code_for(mismatch) == adreel_cli.EXIT_PLANNING
	assert adreel_cli.exit_code_for(errors.RenderFailed(1)) == adreel_cli.EXIT_RENDER
	assert adreel_cli.exit_code_for(errors.RenderTimeout(60.0)) == adreel_cli.EXIT_TIMEOUT
	assert adreel_cli.exit_code_for(errors.RenderCancelled()) == adreel_cli.EXIT_TIMEOUT
