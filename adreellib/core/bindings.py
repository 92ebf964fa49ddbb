#!/usr/bin/env python3

"""
The ordered list of ffmpeg inputs for a plan.

Both the filter graph and the command line are built from the list returned
by build_input_bindings, so input index N always means the same file in both.
"""

from adreellib.core import models

#============================================

INTRO_IMAGE = 'intro_image'
MAIN_IMAGE = 'main_image'
OUTRO_IMAGE = 'outro_image'
OVERLAY_IMAGE = 'overlay_image'

SEGMENT_ROLES = {
	models.INTRO: INTRO_IMAGE,
	models.MAIN_IMAGE: MAIN_IMAGE,
	models.OUTRO: OUTRO_IMAGE,
}

# audio inputs follow every image input in this order
AUDIO_ORDER = (models.INTRO_NARRATION, models.NARRATION, models.BACKGROUND)

#============================================

def build_input_bindings(plan: models.RenderPlan) -> tuple:
	"""
	Assign ffmpeg input indices for every asset in the plan.

	Order: segment images in timeline order, then intro narration, narration
	and background music, then the corner overlay image.
	"""
	bindings = []
	for segment_index, segment in enumerate(plan.segments):
		bindings.append(models.InputBinding(
			index=len(bindings),
			asset=segment.asset,
			role=SEGMENT_ROLES[segment.kind],
			trim_seconds=segment.input_seconds,
			loop=True,
			segment_index=segment_index,
		))
	for role in AUDIO_ORDER:
		track = plan.track_for_role(role)
		if track is None:
			continue
		bindings.append(models.InputBinding(
			index=len(bindings),
			asset=track.asset,
			role=role,
			loop=track.loop,
		))
	if plan.image_overlay is not None:
		bindings.append(models.InputBinding(
			index=len(bindings),
			asset=plan.image_overlay.asset,
			role=OVERLAY_IMAGE,
			trim_seconds=plan.total_duration_seconds,
			loop=True,
		))
	return tuple(bindings)

#============================================

def find_binding(bindings, role: str, segment_index: int = None) -> models.InputBinding:
	for binding in bindings:
		if binding.role != role:
			continue
		if segment_index is not None and binding.segment_index != segment_index:
			continue
		return binding
	return None

#============================================

def image_bindings(bindings) -> list:
	return [binding for binding in bindings if binding.segment_index is not None]
