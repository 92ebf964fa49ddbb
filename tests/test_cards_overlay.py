#!/usr/bin/env python3

"""
Pytest coverage for title cards, music selection and overlay filters.
"""

# Standard Library
import os
import sys

# PIP3 modules
import PIL.Image
import PIL.ImageDraw
import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)
TESTS_DIR = os.path.dirname(__file__)
if TESTS_DIR not in sys.path:
	sys.path.insert(0, TESTS_DIR)

# local repo modules
import font_utils
from adreellib.core import models
from adreellib.core import utils
from adreellib.media import cards
from adreellib.media import music
from adreellib.media import overlay

#============================================

@pytest.fixture(autouse=True)
def quiet_mode():
	utils.set_quiet_mode(True)
	yield
	utils.set_quiet_mode(False)

#============================================

def test_title_card_plain_background(tmp_path) -> None:
	output_file = str(tmp_path / "card.png")
	result = cards.render_title_card("Spring Sale", output_file, 320, 180,
		font_file=font_utils.find_system_ttf())
	assert result == output_file
	with PIL.Image.open(output_file) as image:
		assert image.size == (320, 180)
		assert image.getpixel((0, 0)) == (16, 24, 32)

#============================================

def test_title_card_background_image(tmp_path) -> None:
	source = str(tmp_path / "photo.png")
	PIL.Image.new("RGB", (640, 480), color=(255, 0, 0)).save(source)
	output_file = str(tmp_path / "card.png")
	cards.render_title_card("", output_file, 320, 180, background_image=source)
	with PIL.Image.open(output_file) as image:
		assert image.size == (320, 180)
		assert image.getpixel((5, 5)) == (255, 0, 0)

#============================================

def test_title_card_missing_background(tmp_path) -> None:
	with pytest.raises(RuntimeError):
		cards.render_title_card("x", str(tmp_path / "card.png"), 320, 180,
			background_image=str(tmp_path / "missing.png"))

#============================================

def test_wrap_text_breaks_long_lines() -> None:
	image = PIL.Image.new("RGB", (200, 100))
	draw = PIL.ImageDraw.Draw(image)
	font = cards.load_font(font_utils.find_system_ttf(), 20)
	wrapped = cards.wrap_text(draw, "one two three four five six", font, 60)
	assert "\n" in wrapped
	assert wrapped.replace("\n", " ") == "one two three four five six"
	assert cards.wrap_text(draw, "supercalifragilistic", font, 5) == "supercalifragilistic"

#============================================

def test_parse_color() -> None:
	assert cards.parse_color("#ff0000") == (255, 0, 0)
	assert cards.parse_color([1, 2, 3]) == (1, 2, 3)
	assert cards.parse_color(None) == (255, 255, 255)
	with pytest.raises(RuntimeError):
		cards.parse_color("notacolor")

#============================================

def test_music_selection_is_seeded(tmp_path) -> None:
	for name in ("b.mp3", "a.wav", "notes.txt"):
		(tmp_path / name).write_bytes(b"\0")
	files = music.list_music_files(str(tmp_path))
	assert [os.path.basename(path) for path in files] == ["a.wav", "b.mp3"]
	first = music.select_background_music(str(tmp_path), seed=5)
	assert first in files
	assert music.select_background_music(str(tmp_path), seed=5) == first

#============================================

def test_music_selection_empty(tmp_path) -> None:
	assert music.select_background_music(str(tmp_path)) is None
	assert music.list_music_files(str(tmp_path / "missing")) == []

#============================================

def test_escape_drawtext() -> None:
	assert overlay.escape_drawtext("Buy now") == "Buy now"
	assert overlay.escape_drawtext("Buy now: 20% off") == "Buy now\\\\: 20% off"
	assert overlay.escape_drawtext("it's") == "it\\\\\\'s"
	assert overlay.escape_drawtext("a,b") == "a\\,b"
	assert overlay.escape_drawtext("two\nlines") == "two lines"

#============================================

def _text_overlay(position: str = 'top') -> models.TextOverlay:
	return models.TextOverlay(text="Buy now", position=position, start_seconds=1.0,
		duration_seconds=4.0, font_size=48, font_color="white", box_color="black@0.5")

#============================================

def test_drawtext_filter() -> None:
	text = overlay.build_drawtext_filter(_text_overlay())
	assert text.startswith("drawtext=text=Buy now:expansion=none:fontsize=48")
	assert "x=(w-text_w)/2:y=50" in text
	assert "boxcolor=black@0.5" in text
	assert text.endswith("enable='between(t,1,5)'")
	fallback = overlay.build_drawtext_filter(_text_overlay('sideways'))
	assert "y=h-text_h-50" in fallback

#============================================

def test_image_overlay_geometry() -> None:
	asset = models.MediaAsset(path="/tmp/qr.png", kind=models.IMAGE)
	image = models.ImageOverlay(asset=asset, position='top-left', height_fraction=0.1,
		margin=20)
	assert overlay.overlay_height(image, 1080) == 108
	assert overlay.overlay_height(image, 1070) == 106
	assert overlay.overlay_height(image, 4) == 2
	assert overlay.image_overlay_position('top-left', 20) == "20:20"
	assert overlay.image_overlay_position('elsewhere', 30) == \
		"main_w-overlay_w-30:main_h-overlay_h-30"
	chains = overlay.build_image_overlay_filters(image, "[7:v]", 1080, "[vseq]", "[vout]")
	assert chains[0] == "[7:v]scale=-2:108,format=rgba,setsar=1[ovl]"
	assert chains[1] == "[vseq][ovl]overlay=20:20:shortest=1:format=auto[vout]"

#============================================

def test_music_selection_skips_narration(tmp_path) -> None:
	(tmp_path / "voice.mp3").write_bytes(b"\0")
	narration = str(tmp_path / "voice.mp3")
	assert music.select_background_music(str(tmp_path), exclude=[narration, None]) is None
	(tmp_path / "bed.wav").write_bytes(b"\0")
	for seed in range(5):
		picked = music.select_background_music(str(tmp_path), seed=seed,
			exclude=[narration])
		assert picked == str(tmp_path / "bed.wav")
