#!/usr/bin/env python3

import glob
import os
import random
from adreellib.core import utils

#============================================

MUSIC_PATTERNS = ('*.wav', '*.mp3', '*.m4a', '*.ogg', '*.flac')

#============================================

def list_music_files(media_dir: str, exclude: list = None) -> list:
	"""
	Sorted audio files in media_dir, leaving out any path listed in exclude.
	"""
	if media_dir is None or not os.path.isdir(media_dir):
		return []
	skipped = set()
	for path in exclude or []:
		if path is not None:
			skipped.add(os.path.realpath(path))
	files = []
	for pattern in MUSIC_PATTERNS:
		files.extend(glob.glob(os.path.join(media_dir, pattern)))
	files = [path for path in files if os.path.realpath(path) not in skipped]
	return sorted(set(files))

#============================================

def select_background_music(media_dir: str, seed: int = 0, exclude: list = None) -> str:
	"""
	Pick one music file from media_dir, or None when there is none.

	The pick depends only on the sorted file list and the seed. Narration
	files passed in exclude are never picked, even when they share the folder.
	"""
	files = list_music_files(media_dir, exclude)
	if len(files) == 0:
		utils.message(f"no background music files found in {media_dir}")
		return None
	rng = random.Random(seed)
	selected = rng.choice(files)
	utils.message(f"background music: {os.path.basename(selected)}")
	return selected
