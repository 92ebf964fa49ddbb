#!/usr/bin/env python3

"""
Volume and fade bounds for the audio mix.

Everything here is pure: no files are touched and nothing is spawned. Every
clamp is printed and, when a list is passed as `clamps`, recorded there so
callers can see exactly which values were changed.
"""

import collections
import math
from adreellib.core import models
from adreellib.core import utils
from adreellib.core.errors import OptionsError
from adreellib.core.options import AudioPolicy

#============================================

DEFAULT_POLICY = AudioPolicy()

Clamp = collections.namedtuple('Clamp', ['name', 'requested', 'applied'])

ClippingReport = collections.namedtuple('ClippingReport',
	['total_volume', 'will_clip', 'safe_threshold', 'windows', 'recommendation'])

# tracks that can sound at the same instant
MIX_WINDOWS = (
	('intro', (models.INTRO_NARRATION, models.INTRO_MUSIC)),
	('main', (models.NARRATION, models.BACKGROUND)),
	('outro', (models.OUTRO_MUSIC,)),
)

MUSIC_ROLES = (models.INTRO_MUSIC, models.BACKGROUND, models.OUTRO_MUSIC)

#============================================

def _is_number(value) -> bool:
	if isinstance(value, bool):
		return False
	if not isinstance(value, (int, float)):
		return False
	return not math.isnan(value)

#============================================

def _record(clamps: list, name: str, requested, applied: float) -> None:
	utils.message(f"{name} adjusted: {requested} -> {applied}")
	if clamps is not None:
		clamps.append(Clamp(name, requested, applied))

#============================================

def normalize_volume(value, role: str, policy: AudioPolicy = None,
	clamps: list = None) -> float:
	"""
	Clamp a gain into [min_volume, ceiling(role)].

	Non-numeric input falls back to the role ceiling. A value already inside
	the window is returned unchanged.
	"""
	if policy is None:
		policy = DEFAULT_POLICY
	ceiling = policy.ceiling_for(role)
	if not _is_number(value):
		utils.warn(f"invalid volume value {value!r} for {role}, using {ceiling}")
		_record(clamps, f"{role} volume", value, ceiling)
		return ceiling
	safe_value = max(policy.min_volume, min(float(value), ceiling))
	if safe_value != value:
		_record(clamps, f"{role} volume", value, safe_value)
	return safe_value

#============================================

def validate_fade_duration(value, policy: AudioPolicy = None,
	clamps: list = None) -> float:
	"""
	Clamp a fade length into [min_fade, max_fade]; zero or negative becomes min_fade.
	"""
	if policy is None:
		policy = DEFAULT_POLICY
	if not _is_number(value):
		utils.warn(f"invalid fade duration {value!r}, using {policy.recommended_fade}")
		_record(clamps, "fade duration", value, policy.recommended_fade)
		return policy.recommended_fade
	safe_value = max(policy.min_fade, min(float(value), policy.max_fade))
	if safe_value != value:
		_record(clamps, "fade duration", value, safe_value)
	return safe_value

#============================================

def check_clipping(volumes_by_role: dict, policy: AudioPolicy = None) -> ClippingReport:
	"""
	Sum the gains that sound together and compare against the mixing threshold.

	The loudest window decides `total_volume`. When it is above the threshold
	the report carries a recommended set of gains whose every window sums
	below the threshold; music is turned down before narration is touched.
	"""
	if policy is None:
		policy = DEFAULT_POLICY
	volumes = {}
	for role, value in volumes_by_role.items():
		policy.ceiling_for(role)
		if not _is_number(value) or value < 0:
			raise OptionsError(f"invalid volume for {role}: {value!r}")
		volumes[role] = float(value)
	windows = {}
	for window_name, roles in MIX_WINDOWS:
		windows[window_name] = sum(volumes.get(role, 0.0) for role in roles)
	total_volume = max(windows.values())
	will_clip = total_volume > policy.safe_mixing_threshold
	recommendation = None
	if will_clip:
		recommendation = _recommend_volumes(volumes, policy)
		utils.warn(
			f"audio clipping risk: total {total_volume:.2f} > "
			f"{policy.safe_mixing_threshold:.2f}; recommended {recommendation}"
		)
	return ClippingReport(total_volume, will_clip, policy.safe_mixing_threshold,
		windows, recommendation)

#============================================

def _recommend_volumes(volumes: dict, policy: AudioPolicy) -> dict:
	target = policy.safe_mixing_threshold * policy.recommendation_headroom
	recommended = {}
	for role, value in volumes.items():
		recommended[role] = min(value, policy.ceiling_for(role))
	for window_name, roles in MIX_WINDOWS:
		present = [role for role in roles if role in recommended]
		window_sum = sum(recommended[role] for role in present)
		# windows already under the threshold keep their gains
		if window_sum < policy.safe_mixing_threshold:
			continue
		excess = window_sum - target
		for role in present:
			if role not in MUSIC_ROLES or excess <= 0:
				continue
			reducible = max(0.0, recommended[role] - policy.min_volume)
			cut = min(excess, reducible)
			recommended[role] -= cut
			excess -= cut
		if excess > 0:
			window_sum = sum(recommended[role] for role in present)
			scale = target / window_sum
			for role in present:
				recommended[role] *= scale
	for role in recommended:
		recommended[role] = round(recommended[role], 4)
	return recommended

#============================================

def safe_mix_volumes(volumes_by_role: dict, policy: AudioPolicy = None,
	clamps: list = None) -> dict:
	"""
	Normalize every role, then apply the clipping recommendation if needed.
	"""
	if policy is None:
		policy = DEFAULT_POLICY
	safe = {}
	for role, value in volumes_by_role.items():
		safe[role] = normalize_volume(value, role, policy, clamps)
	report = check_clipping(safe, policy)
	# a mix sitting exactly on the threshold is still pulled below it
	if report.total_volume >= policy.safe_mixing_threshold:
		recommendation = report.recommendation
		if recommendation is None:
			recommendation = _recommend_volumes(safe, policy)
		for role, value in recommendation.items():
			if value != safe[role]:
				_record(clamps, f"{role} volume", safe[role], value)
			safe[role] = value
	return safe
