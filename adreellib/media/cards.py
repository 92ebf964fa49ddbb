#!/usr/bin/env python3

"""
Still title cards for intro and outro segments, drawn with Pillow.
"""

import os
from adreellib.core import utils
import PIL.Image
import PIL.ImageColor
import PIL.ImageDraw
import PIL.ImageFont

#============================================

# share of the frame width a text line may use
TEXT_WIDTH_FRACTION = 0.85

#============================================

def parse_color(value) -> tuple:
	if value is None:
		return (255, 255, 255)
	if isinstance(value, (list, tuple)) and len(value) == 3:
		return tuple(int(channel) for channel in value)
	if isinstance(value, str):
		try:
			return PIL.ImageColor.getrgb(value)
		except ValueError as exc:
			raise RuntimeError(f"invalid card color {value!r}: {exc}")
	raise RuntimeError("invalid color value for card text")

#============================================

def default_font_size(width: int, height: int) -> int:
	return max(12, int(min(width, height) / 12))

#============================================

def load_font(font_file: str, font_size: int):
	if font_file is not None and os.path.exists(font_file):
		return PIL.ImageFont.truetype(font_file, font_size)
	for name in ("DejaVuSans-Bold.ttf", "DejaVuSans.ttf"):
		try:
			return PIL.ImageFont.truetype(name, font_size)
		except OSError:
			continue
	return PIL.ImageFont.load_default()

#============================================

def measure_text(draw, text: str, font) -> tuple:
	bbox = draw.multiline_textbbox((0, 0), text, font=font, align="center")
	return (bbox[2] - bbox[0], bbox[3] - bbox[1])

#============================================

def wrap_text(draw, text: str, font, max_width: float) -> str:
	"""
	Greedy word wrap; a single word wider than max_width keeps its own line.
	"""
	lines = []
	for paragraph in str(text).splitlines() or ['']:
		current = ''
		for word in paragraph.split():
			candidate = word if current == '' else f"{current} {word}"
			if current and measure_text(draw, candidate, font)[0] > max_width:
				lines.append(current)
				current = word
			else:
				current = candidate
		lines.append(current)
	return '\n'.join(lines)

#============================================

def fit_image(image, width: int, height: int):
	src_w, src_h = image.size
	if src_w <= 0 or src_h <= 0:
		raise RuntimeError("invalid background image size")
	scale = max(width / src_w, height / src_h)
	new_size = (int(round(src_w * scale)), int(round(src_h * scale)))
	image = image.resize(new_size, resample=PIL.Image.LANCZOS)
	left = max(0, int(round((new_size[0] - width) / 2.0)))
	top = max(0, int(round((new_size[1] - height) / 2.0)))
	return image.crop((left, top, left + width, top + height))

#============================================

def draw_card_text(image, text: str, font_file: str = None, font_size: int = None,
	text_color=None) -> None:
	width, height = image.size
	if font_size is None:
		font_size = default_font_size(width, height)
	draw = PIL.ImageDraw.Draw(image)
	font = load_font(font_file, int(font_size))
	wrapped = wrap_text(draw, text, font, width * TEXT_WIDTH_FRACTION)
	color = parse_color(text_color or "#ffffff")
	text_w, text_h = measure_text(draw, wrapped, font)
	x = (width - text_w) / 2.0
	y = (height - text_h) / 2.0
	draw.multiline_text((x, y), wrapped, font=font, fill=color, align="center")

#============================================

def render_title_card(text: str, output_file: str, width: int, height: int,
	background_color="#101820", text_color="#ffffff", font_file: str = None,
	font_size: int = None, background_image: str = None) -> str:
	"""
	Write a PNG card with centered, wrapped text and return its path.

	background_image, when given, is scaled to cover the frame instead of
	filling it with background_color.
	"""
	if background_image is not None:
		utils.ensure_file_exists(background_image, "card background")
		with PIL.Image.open(background_image) as source:
			image = fit_image(source.convert("RGB"), width, height)
	else:
		image = PIL.Image.new("RGB", (width, height), color=parse_color(background_color))
	if text:
		draw_card_text(image, text, font_file, font_size, text_color)
	image.save(output_file)
	utils.ensure_file_exists(output_file, "title card")
	utils.message(f"title card: {output_file}")
	return output_file
