import logging
import os
import sys

import click
import numpy as np

import trxread
from trxread.logging_config import setup_logging

def _label(src) -> str:
	return "<stdin>" if src == "-" else src

def _open(src):
	if src == "-":
		return sys.stdin.buffer
	return src

@click.command()
@click.option('-i', "--info", default=False, is_flag=True, help="Print the header for the file.", show_default=True)
@click.option('-t', "--test", default=False, is_flag=True, help="Decode the file and report inconsistencies.", show_default=True)
@click.option('-s', "--strict", default=False, is_flag=True, help="Treat truncated or oversized binary members as errors.", show_default=True)
@click.option("--defer/--no-defer", default=True, is_flag=True, help="Hold back members of unknown size until the header is read.", show_default=True)
@click.option('-p', "--progress", default=False, is_flag=True, help="Show a progress bar while building streamlines.", show_default=True)
@click.option("--npz", default=False, is_flag=True, help="Export offsets and positions to a numpy .npz next to the source.", show_default=True)
@click.option('-v', "--verbose", count=True, help="Log progress. Repeat for debug output.")
@click.argument("source", nargs=-1)
def main(info, test, strict, defer, progress, npz, verbose, source):
	"""
	Inspect TRX tractography files.

	Use "-" as a source to read a TRX archive from stdin.
	"""
	if verbose:
		setup_logging(logging.DEBUG if verbose > 1 else logging.INFO)
	else:
		setup_logging(logging.WARNING)

	for src in source:
		if info:
			print_header(src)
		elif test:
			check_file(src, strict, defer)
		else:
			print_summary(src, strict, defer, progress, npz)

def print_header(src):
	try:
		head = trxread.load_header(_open(src))
	except FileNotFoundError:
		print(f"trxread: File \"{src}\" does not exist.")
		return
	except trxread.TrxError as err:
		print("trxread:", err)
		return

	print(f"Filename: {_label(src)}")
	print(head.details())

def _load(src, **kwargs):
	try:
		return trxread.load(_open(src), **kwargs)
	except FileNotFoundError:
		print(f"trxread: File \"{src}\" does not exist.")
	except trxread.IncompleteInputError as err:
		print(f"trxread: {_label(src)} is incomplete, missing {', '.join(err.missing)}.")
	except trxread.TrxError as err:
		print("trxread:", err)
	return None

def print_summary(src, strict, defer, progress, npz):
	trx = _load(src, strict=strict, defer=defer, progress=progress)
	if trx is None:
		return

	lengths = trx.lengths()
	print(f"Filename: {_label(src)}")
	print(f"streamlines: {len(trx)}")
	print(f"vertices: {trx.nb_vertices}")
	if len(trx):
		print(f"points per streamline: min {int(lengths.min())} max {int(lengths.max())} mean {float(lengths.mean()):.2f}")
	print()

	if npz:
		if src == "-":
			print("trxread: --npz needs a file source, not stdin.")
			return
		dest = removesuffix(removesuffix(removesuffix(src, ".gz"), ".xz"), ".trx") + ".npz"
		trxread.save_numpy(trx, dest)

		try:
			stat = os.stat(dest)
			if stat.st_size == 0:
				raise ValueError("File is zero length.")
		except (FileNotFoundError, ValueError):
			print(f"trxread: Unable to write {dest}.")
			sys.exit(1)

def check_file(src, strict, defer):
	print(f"testing {_label(src)}...")
	trx = _load(src, strict=strict, defer=defer)
	if trx is None:
		print("damaged.")
		return

	head = trx.header
	empty = int(np.count_nonzero(trx.lengths() == 0))

	if trx.nb_vertices == head.vertex_count:
		print("vertex count ok.")
	else:
		print(f"vertex count mismatch. header: {head.vertex_count} streamlines: {trx.nb_vertices}")

	if empty == 0:
		print("streamlines ok.")
	else:
		print(f"{empty} empty streamlines.")

	print("done.")

def removesuffix(x:str, suffix:str) -> str:
	if x.endswith(suffix):
		x = x[:-len(suffix)]
	return x
