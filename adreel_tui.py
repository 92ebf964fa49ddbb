#!/usr/bin/env python3

"""
Textual TUI wrapper for adreel renders.
"""

# Standard Library
import argparse
import os
import re
import sys
import threading
import time

script_dir = os.path.dirname(os.path.abspath(__file__))
if script_dir not in sys.path:
	sys.path.insert(0, script_dir)

# PIP3 modules
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import RichLog, Static
from rich.text import Text

# local repo modules
from adreellib.core import renderer
from adreellib.core import utils
from adreellib.core.options import OptionsLoader
from adreellib.core.options import RenderOptions

#============================================

NORD_COLORS = {
	'background': "#2E3440",
	'foreground': "#D8DEE9",
	'dim': "#4C566A",
	'header': "#88C0D0",
	'command': "#ECEFF4",
	'flags': "#81A1C1",
	'numbers': "#B48EAD",
	'paths': "#A3BE8C",
	'strings': "#EBCB8B",
	'warning': "#D08770",
	'error': "#BF616A",
}

BAR_WIDTH = 30

#============================================

def parse_args():
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(description="adreel TUI wrapper")
	parser.add_argument('-y', '--yaml', dest='yamlfile',
		help='render options yaml file')
	parser.add_argument('-i', '--image', dest='images', action='append', required=True,
		help='still image, repeat for each slide in order')
	parser.add_argument('-a', '--narration', dest='narration', required=True,
		help='narration audio file')
	parser.add_argument('-o', '--output', dest='output_file', required=True,
		help='output video file')
	parser.add_argument('-s', '--short-form', dest='short_form', action='store_true',
		help='render a vertical 9:16 video')
	args = parser.parse_args()
	return args

#============================================

def format_duration(seconds: float) -> str:
	if seconds < 60:
		return f"{seconds:.1f}s"
	minutes = int(seconds // 60)
	remaining = seconds - (minutes * 60)
	if minutes < 60:
		return f"{minutes}m {remaining:04.1f}s"
	hours = int(minutes // 60)
	minutes = minutes - (hours * 60)
	return f"{hours}h {minutes:02d}m {remaining:04.1f}s"

#============================================

def estimate_remaining(elapsed: float, fraction: float):
	"""
	Linear estimate from encoded fraction; None until there is progress.
	"""
	if fraction is None or fraction <= 0.0:
		return None
	if fraction >= 1.0:
		return 0.0
	return elapsed * (1.0 - fraction) / fraction

#============================================

def progress_bar(fraction: float, width: int = BAR_WIDTH) -> str:
	fraction = max(0.0, min(1.0, fraction or 0.0))
	filled = int(round(fraction * width))
	return "#" * filled + "-" * (width - filled)

#============================================

class AdreelTuiApp(App):
	BINDINGS = [
		("q", "quit", "Quit"),
	]

	CSS = """
	#root {
		height: 1fr;
	}

	#top_row {
		height: 30%;
		min-height: 8;
	}

	#left_panel {
		width: 40%;
		height: 1fr;
		border: solid gray;
	}

	#right_panel {
		width: 60%;
		height: 1fr;
		border: solid gray;
	}

	#metrics_title, #render_title {
		height: 1;
		color: #88C0D0;
	}

	#metrics, #render_info {
		height: 1fr;
	}

	#log {
		height: 1fr;
		border: solid gray;
	}
	"""

	def __init__(self, images: list, narration: str, output_file: str,
		options: RenderOptions = None, yaml_file: str = None):
		super().__init__()
		self.images = images
		self.narration = narration
		self.output_file = output_file
		self.options = options or RenderOptions()
		self.yaml_file = yaml_file
		self.fraction = 0.0
		self.encoded_seconds = 0.0
		self.total_seconds = None
		self.start_time = None
		self.finish_time = None
		self.error_text = None
		self.warning_count = 0
		self.finished = False
		self.cancel_event = threading.Event()
		self.metrics_widget = None
		self.render_widget = None
		self.log_widget = None
		self.command_styles = self._build_command_styles()

	#============================
	def compose(self) -> ComposeResult:
		yield Static("ADREEL TUI", id="header")
		with Vertical(id="root"):
			with Horizontal(id="top_row"):
				with Vertical(id="left_panel"):
					yield Static("Progress", id="metrics_title")
					yield Static("", id="metrics")
				with Vertical(id="right_panel"):
					yield Static("Render", id="render_title")
					yield Static("", id="render_info")
			yield RichLog(id="log", wrap=True, highlight=False)

	#============================
	def on_mount(self) -> None:
		self.metrics_widget = self.query_one("#metrics", Static)
		self.render_widget = self.query_one("#render_info", Static)
		self.log_widget = self.query_one(RichLog)
		self.start_time = time.time()
		self._update_render_info()
		thread = threading.Thread(target=self._run_render, daemon=True)
		thread.start()
		self.set_interval(0.5, self._update_metrics)

	#============================
	def action_quit(self) -> None:
		# stop the encoder before leaving
		self.cancel_event.set()
		self.exit()

	#============================
	def _run_render(self) -> None:
		utils.set_quiet_mode(True)
		utils.set_command_reporter(self._report_command)
		try:
			worker = renderer.Renderer(self.options, cancel_event=self.cancel_event)
			worker.render(self.images, self.narration, self.output_file)
		except Exception as exc:
			self.call_from_thread(self._set_error, str(exc))
		finally:
			utils.clear_command_reporter()
			utils.set_quiet_mode(False)
			self.call_from_thread(self._finish)

	#============================
	def _report_command(self, event: dict) -> None:
		self.call_from_thread(self._handle_event, event)

	#============================
	def _handle_event(self, event: dict) -> None:
		if self.log_widget is None:
			return
		event_type = event.get('event')
		if event_type == 'start':
			self.total_seconds = event.get('total_seconds')
			command = utils.command_to_text(event.get('args', []))
			self.log_widget.write(self._highlight_command(command))
		elif event_type == 'progress':
			self.fraction = event.get('fraction', self.fraction)
			self.encoded_seconds = event.get('seconds', self.encoded_seconds)
		elif event_type == 'warning':
			self.warning_count += 1
			self.log_widget.write(
				Text(f"warning: {event.get('message', '')}",
					style=NORD_COLORS['warning'])
			)
		elif event_type == 'end':
			state = event.get('state', '')
			self.log_widget.write(
				Text(f"encoder {state} after {format_duration(event.get('elapsed', 0.0))}",
					style=NORD_COLORS['dim'])
			)
		self._update_metrics()

	#============================
	def _set_error(self, text: str) -> None:
		self.error_text = text
		if self.log_widget is not None:
			self.log_widget.write(
				Text(f"error: {text}", style=f"bold {NORD_COLORS['error']}")
			)

	#============================
	def _finish(self) -> None:
		self.finished = True
		if self.start_time is not None and self.finish_time is None:
			self.finish_time = time.time() - self.start_time
		if self.log_widget is not None:
			if self.error_text is None:
				self.log_widget.write(
					Text(f"complete: {self.output_file}", style=f"bold {NORD_COLORS['paths']}")
				)
			else:
				self.log_widget.write("complete with errors")
		self._update_metrics()

	#============================
	def _update_metrics(self) -> None:
		if self.metrics_widget is None:
			return
		if self.start_time is None:
			elapsed = 0.0
		elif self.finished:
			elapsed = self.finish_time or (time.time() - self.start_time)
		else:
			elapsed = time.time() - self.start_time
		if self.error_text is not None:
			status, status_style = "failed", NORD_COLORS['error']
		elif self.finished:
			status, status_style = "done", NORD_COLORS['paths']
		else:
			status, status_style = "running", NORD_COLORS['foreground']
		metrics = Text()
		metrics.append("Status: ", style=NORD_COLORS['dim'])
		metrics.append(status, style=status_style)
		metrics.append("\n")
		metrics.append(f"[{progress_bar(self.fraction)}] ", style=NORD_COLORS['header'])
		metrics.append(f"{self.fraction * 100:.0f}%", style=NORD_COLORS['numbers'])
		metrics.append("\n")
		metrics.append("Encoded: ", style=NORD_COLORS['dim'])
		metrics.append(format_duration(self.encoded_seconds), style=NORD_COLORS['numbers'])
		if self.total_seconds:
			metrics.append(f" / {format_duration(self.total_seconds)}",
				style=NORD_COLORS['numbers'])
		metrics.append("\n")
		metrics.append("Elapsed: ", style=NORD_COLORS['dim'])
		metrics.append(format_duration(elapsed), style=NORD_COLORS['numbers'])
		remaining = None
		if not self.finished:
			remaining = estimate_remaining(elapsed, self.fraction)
		metrics.append(" | ETA: ", style=NORD_COLORS['dim'])
		if remaining is None:
			metrics.append("N/A", style=NORD_COLORS['dim'])
		else:
			metrics.append(format_duration(remaining), style=NORD_COLORS['numbers'])
		if self.warning_count:
			metrics.append("\n")
			metrics.append("Warnings: ", style=NORD_COLORS['dim'])
			metrics.append(str(self.warning_count), style=NORD_COLORS['warning'])
		self.metrics_widget.update(metrics)

	#============================
	def _update_render_info(self) -> None:
		if self.render_widget is None:
			return
		info = Text()
		info.append("Options: ", style=NORD_COLORS['dim'])
		info.append(self.yaml_file or "defaults",
			style=NORD_COLORS['paths'] if self.yaml_file else NORD_COLORS['dim'])
		info.append("\n")
		info.append("Images: ", style=NORD_COLORS['dim'])
		info.append(str(len(self.images)), style=NORD_COLORS['numbers'])
		info.append("\n")
		info.append("Narration: ", style=NORD_COLORS['dim'])
		info.append(self.narration, style=NORD_COLORS['paths'])
		info.append("\n")
		info.append("Output: ", style=NORD_COLORS['dim'])
		info.append(self.output_file, style=NORD_COLORS['paths'])
		info.append("\n")
		info.append("Resolution: ", style=NORD_COLORS['dim'])
		info.append(f"{self.options.width}x{self.options.height}",
			style=NORD_COLORS['numbers'])
		self.render_widget.update(info)

	#============================
	def _build_command_styles(self) -> list:
		return [
			(re.compile(r"\blibx264\b|\baac\b|\byuv420p\b"), NORD_COLORS['foreground']),
			(re.compile(r"--?[A-Za-z0-9][A-Za-z0-9_:-]*"), NORD_COLORS['flags']),
			(re.compile(r"\b\d+\.\d+\b"), NORD_COLORS['numbers']),
			(re.compile(r"\b\d+\b(?!\.\d)"), NORD_COLORS['numbers']),
			(re.compile(r"\[[A-Za-z0-9:]+\]"), NORD_COLORS['strings']),
			(re.compile(r"(?:/|~|\./|\.\./)[^\s'\"`]+"), NORD_COLORS['paths']),
		]

	#============================
	def _highlight_command(self, command: str):
		if command is None or command == "":
			return ""
		text = Text(command, style=f"bold {NORD_COLORS['command']}")
		for pattern, style in self.command_styles:
			for match in pattern.finditer(command):
				text.stylize(style, match.start(), match.end())
		return text

#============================================

def main():
	args = parse_args()
	if args.yamlfile:
		options = OptionsLoader(args.yamlfile).load()
	else:
		options = RenderOptions()
	if args.short_form:
		options = renderer.short_form_options(options)
	app = AdreelTuiApp(args.images, args.narration, args.output_file,
		options=options, yaml_file=args.yamlfile)
	app.run()

#============================================

if __name__ == '__main__':
	main()
