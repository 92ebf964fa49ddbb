#!/usr/bin/env python3

"""
Error types raised by the adreel render pipeline.
"""

#============================================

class AdreelError(RuntimeError):
	"""Base class for every error raised by adreellib."""

#============================================

class OptionsError(AdreelError):
	"""Invalid render options or options file."""

#============================================

class InputNotFound(AdreelError):
	def __init__(self, path: str, kind: str = "input"):
		self.path = path
		self.kind = kind
		super().__init__(f"{kind} file not found: {path}")

#============================================

class DurationUnknown(AdreelError):
	def __init__(self, path: str, reason: str):
		self.path = path
		self.reason = reason
		super().__init__(f"could not determine duration of {path}: {reason}")

#============================================

class GraphBindingMismatch(AdreelError):
	"""
	Declared inputs and filter graph references disagree.

	Raised before the encoder is spawned; it always means a planning bug.
	"""
	def __init__(self, declared: list, referenced: list):
		self.declared = sorted(declared)
		self.referenced = sorted(referenced)
		missing = sorted(set(self.referenced) - set(self.declared))
		unused = sorted(set(self.declared) - set(self.referenced))
		message = (
			f"filter graph references {len(self.referenced)} inputs "
			f"but {len(self.declared)} are declared"
		)
		if missing:
			message += f"; undeclared: {missing}"
		if unused:
			message += f"; unreferenced: {unused}"
		super().__init__(message)

#============================================

class RenderError(AdreelError):
	"""Base class for failures of the encoder process itself."""
	def __init__(self, message: str, tail: str = ""):
		self.tail = tail
		if tail:
			message = f"{message}\n{tail}"
		super().__init__(message)

#============================================

class RenderTimeout(RenderError):
	def __init__(self, seconds: float, tail: str = ""):
		self.seconds = seconds
		super().__init__(f"encoder timed out after {seconds:.1f} seconds", tail)

#============================================

class RenderCancelled(RenderError):
	def __init__(self, tail: str = ""):
		super().__init__("render cancelled", tail)

#============================================

class RenderFailed(RenderError):
	def __init__(self, returncode: int, tail: str = ""):
		self.returncode = returncode
		super().__init__(f"encoder exited with code {returncode}", tail)

#============================================

class OutputVerificationFailed(RenderError):
	def __init__(self, path: str, reason: str, tail: str = ""):
		self.path = path
		self.reason = reason
		super().__init__(f"output verification failed for {path}: {reason}", tail)
