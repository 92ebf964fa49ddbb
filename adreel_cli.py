#!/usr/bin/env python3

import argparse
import sys
import yaml
from tqdm import tqdm
from adreellib.core import errors
from adreellib.core import renderer
from adreellib.core import utils
from adreellib.core.options import OptionsLoader
from adreellib.core.options import RenderOptions

#============================================

EXIT_OK = 0
EXIT_INPUT = 2
EXIT_PLANNING = 3
EXIT_RENDER = 4
EXIT_TIMEOUT = 5

#============================================

def parse_args(argv: list = None):
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(description="Narrated product slideshow renderer")
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
	parser.add_argument('-r', '--seed', dest='seed', type=int,
		help='override the transition and music seed')
	parser.add_argument('-n', '--dry-run', dest='dry_run', action='store_true',
		help='plan and print the encoder command, do not render')
	parser.add_argument('-p', '--dump-plan', dest='dump_plan', action='store_true',
		help='print the plan, inputs and filter graph as yaml')
	parser.add_argument('-c', '--cache-dir', dest='cache_dir',
		help='directory for temporary render files')
	parser.add_argument('-k', '--keep-temp', dest='keep_temp',
		help='keep temporary render files', action='store_true')
	parser.add_argument('-K', '--no-keep-temp', dest='keep_temp',
		help='remove temporary render files', action='store_false')
	parser.add_argument('-q', '--quiet', dest='quiet', action='store_true',
		help='only print warnings and errors')
	parser.set_defaults(keep_temp=False)
	args = parser.parse_args(argv)
	return args

#============================================

def load_options(args) -> RenderOptions:
	if args.yamlfile:
		options = OptionsLoader(args.yamlfile).load()
	else:
		options = RenderOptions()
	changes = {'keep_temp': args.keep_temp}
	if args.cache_dir:
		changes['work_dir'] = args.cache_dir
	if args.seed is not None:
		changes['seed'] = args.seed
	options = options.replace(**changes)
	if args.short_form:
		options = renderer.short_form_options(options)
	return options

#============================================

def exit_code_for(exc: Exception) -> int:
	if isinstance(exc, errors.GraphBindingMismatch):
		return EXIT_PLANNING
	if isinstance(exc, (errors.RenderTimeout, errors.RenderCancelled)):
		return EXIT_TIMEOUT
	if isinstance(exc, errors.RenderError):
		return EXIT_RENDER
	return EXIT_INPUT

#============================================

def dump_plan(prepared: dict) -> str:
	bindings = []
	for binding in prepared['bindings']:
		bindings.append({
			'index': binding.index,
			'role': binding.role,
			'file': binding.asset.path,
		})
	data = {
		'plan': renderer.plan_summary(prepared['plan']),
		'inputs': bindings,
		'filter_complex': list(prepared['graph'].chains),
		'command': utils.command_to_text(prepared['args']),
	}
	return yaml.safe_dump(data, sort_keys=False)

#============================================

def run(args) -> int:
	options = load_options(args)
	if args.dry_run or args.dump_plan:
		worker = renderer.Renderer(options)
		try:
			prepared = worker.prepare(args.images, args.narration, args.output_file)
		finally:
			worker.cleanup_temp()
		if args.dump_plan:
			print(dump_plan(prepared))
		else:
			print(utils.command_to_text(prepared['args']))
		return EXIT_OK
	progress = tqdm(total=100, unit='%', disable=args.quiet,
		bar_format='{l_bar}{bar}| {n:.0f}/{total:.0f}%')

	def on_progress(fraction: float, seconds: float) -> None:
		progress.n = round(fraction * 100, 1)
		progress.refresh()

	try:
		output = renderer.Renderer(options, on_progress=on_progress).render(
			args.images, args.narration, args.output_file)
	finally:
		progress.close()
	utils.message(f"done: {output}")
	return EXIT_OK

#============================================

def main(argv: list = None) -> int:
	args = parse_args(argv)
	utils.set_quiet_mode(args.quiet)
	try:
		return run(args)
	except errors.AdreelError as exc:
		print(f"ERROR: {exc}", file=sys.stderr)
		return exit_code_for(exc)


if __name__ == '__main__':
	sys.exit(main())
