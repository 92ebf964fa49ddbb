#!/usr/bin/env python3

"""
Filter snippets that draw on top of the finished slideshow: a timed text
banner (drawtext) and a corner image such as a QR code (overlay).
"""

from adreellib.core import models
from adreellib.core import utils

#============================================

TEXT_MARGIN = 50

TEXT_POSITIONS = {
	'top': f"x=(w-text_w)/2:y={TEXT_MARGIN}",
	'bottom': f"x=(w-text_w)/2:y=h-text_h-{TEXT_MARGIN}",
	'center': "x=(w-text_w)/2:y=(h-text_h)/2",
	'top-left': f"x={TEXT_MARGIN}:y={TEXT_MARGIN}",
	'top-right': f"x=w-text_w-{TEXT_MARGIN}:y={TEXT_MARGIN}",
	'bottom-left': f"x={TEXT_MARGIN}:y=h-text_h-{TEXT_MARGIN}",
	'bottom-right': f"x=w-text_w-{TEXT_MARGIN}:y=h-text_h-{TEXT_MARGIN}",
}

# characters with meaning to the option parser, then to the graph parser
OPTION_SPECIALS = "\\':"
GRAPH_SPECIALS = "\\'[],;"

#============================================

def _escape(text: str, specials: str) -> str:
	escaped = []
	for char in text:
		if char in specials:
			escaped.append('\\')
		escaped.append(char)
	return ''.join(escaped)

#============================================

def escape_drawtext(text: str) -> str:
	"""
	Escape free text for use as an unquoted drawtext value inside -filter_complex.
	"""
	flat = ' '.join(str(text).split())
	return _escape(_escape(flat, OPTION_SPECIALS), GRAPH_SPECIALS)

#============================================

def build_drawtext_filter(overlay: models.TextOverlay) -> str:
	"""
	Return a drawtext filter showing the overlay text for its time window.

	Example: drawtext=text=Buy now:expansion=none:fontsize=24:...
	"""
	position = TEXT_POSITIONS.get(overlay.position, TEXT_POSITIONS['bottom'])
	start = utils.format_seconds(overlay.start_seconds)
	end = utils.format_seconds(overlay.start_seconds + overlay.duration_seconds)
	parts = [f"drawtext=text={escape_drawtext(overlay.text)}", "expansion=none"]
	if overlay.font_file:
		parts.append(f"fontfile={_escape(overlay.font_file, OPTION_SPECIALS)}")
	parts.append(f"fontsize={int(overlay.font_size)}")
	parts.append(f"fontcolor={overlay.font_color}")
	parts.append(position)
	parts.append("box=1")
	parts.append(f"boxcolor={overlay.box_color}")
	parts.append("boxborderw=10")
	parts.append(f"enable='between(t,{start},{end})'")
	return ':'.join(parts)

#============================================

def image_overlay_position(position: str, margin: int) -> str:
	if position == 'center':
		return "(main_w-overlay_w)/2:(main_h-overlay_h)/2"
	if position == 'top':
		return f"(main_w-overlay_w)/2:{margin}"
	if position == 'bottom':
		return f"(main_w-overlay_w)/2:main_h-overlay_h-{margin}"
	if position == 'top-left':
		return f"{margin}:{margin}"
	if position == 'top-right':
		return f"main_w-overlay_w-{margin}:{margin}"
	if position == 'bottom-left':
		return f"{margin}:main_h-overlay_h-{margin}"
	return f"main_w-overlay_w-{margin}:main_h-overlay_h-{margin}"

#============================================

def overlay_height(overlay: models.ImageOverlay, frame_height: int) -> int:
	height = int(round(frame_height * overlay.height_fraction))
	# yuv420p needs even dimensions
	height -= height % 2
	return max(2, height)

#============================================

def build_image_overlay_filters(overlay: models.ImageOverlay, stream: str,
	frame_height: int, in_pad: str, out_pad: str) -> list:
	"""
	Scale the overlay image input and place it over in_pad.

	Returns two filter chains; the second ends in out_pad.
	"""
	height = overlay_height(overlay, frame_height)
	position = image_overlay_position(overlay.position, overlay.margin)
	scaled = "[ovl]"
	return [
		f"{stream}scale=-2:{height},format=rgba,setsar=1{scaled}",
		f"{in_pad}{scaled}overlay={position}:shortest=1:format=auto{out_pad}",
	]
