"""Main CLI entry point for cfile."""

import logging
import sys
from pathlib import Path
from typing import Tuple

import click

from .. import (SIZE_UNKNOWN, LineBuffer, __version__, clear_last_error, close, getline, last_error,
                open_path, read, size, write)
from ..config import configure, get_config

logger = logging.getLogger(__name__)


def _open_or_fail(path: str, mode: str):
    handle = open_path(path, mode)
    if handle is None:
        raise click.ClickException(f"Can't open {path}: {last_error()}")
    return handle


@click.group()
@click.version_option(version=__version__, prog_name='cfile')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def main(ctx, verbose: bool):
    """cfile - read and write compressed files through one interface.

    gzip, bzip2, xz and lzop files are recognised by extension, or by their
    leading bytes when read. Use '-' for standard input or output.
    """
    ctx.ensure_object(dict)
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO)


@main.command()
@click.argument('paths', nargs=-1, required=True)
def cat(paths: Tuple[str, ...]):
    """Write the decoded contents of each file to standard output.

    Examples:

    \b
    cfile cat access.log.gz access.log.1.xz
    """
    out = click.get_binary_stream('stdout')
    failed = False
    for path in paths:
        handle = _open_or_fail(path, 'r')
        line = LineBuffer()
        clear_last_error()
        while getline(handle, line):
            out.write(line.value)
        error = last_error()
        close(handle)
        if error is not None:
            click.echo(f"Error reading {path}: {error}", err=True)
            failed = True
    out.flush()
    if failed:
        sys.exit(1)


@main.command('size')
@click.argument('paths', nargs=-1, required=True)
def size_cmd(paths: Tuple[str, ...]):
    """Print the uncompressed size of each file.

    bzip2 files may have to be decoded in full the first time; the result
    is cached on the file when the filesystem allows it.
    """
    for path in paths:
        handle = _open_or_fail(path, 'r')
        raw_size = size(handle)
        close(handle)
        shown = 'unknown' if raw_size == SIZE_UNKNOWN else raw_size
        click.echo(f"Raw size of {path} = {shown}")


@main.command()
@click.argument('source')
@click.argument('dest', type=click.Path(dir_okay=False, path_type=Path))
@click.option('--level', '-l', type=click.IntRange(1, 9), default=None,
              help='Compression level for the destination codec')
def compress(source: str, dest: Path, level):
    """Copy SOURCE into DEST, compressed by DEST's extension.

    SOURCE may itself be compressed; it is decoded first.

    Examples:

    \b
    cfile compress data.csv data.csv.xz
    cfile compress --level 9 data.csv.gz data.csv.bz2
    """
    if level is not None:
        configure(gzip_level=level, bzip2_level=level, xz_preset=level,
                  lzo_level=9 if level >= 7 else 1)

    src = _open_or_fail(source, 'r')
    try:
        dst = _open_or_fail(str(dest), 'w')
    except click.ClickException:
        close(src)
        raise

    buffer = bytearray(get_config().read_chunk_size)
    total = 0
    clear_last_error()
    try:
        while True:
            count = read(src, buffer)
            if count == 0:
                break
            if write(dst, memoryview(buffer)[:count]) != count:
                raise click.ClickException(f"Error writing {dest}: {last_error()}")
            total += count
        if last_error() is not None:
            raise click.ClickException(f"Error reading {source}: {last_error()}")
    finally:
        close(src)
        if close(dst) != 0:
            raise click.ClickException(f"Error finishing {dest}: {last_error()}")

    logger.info(f"Wrote {total:,} bytes from {source} to {dest} ({dst.backend_name})")
    click.echo(f"{source} -> {dest}: {total:,} bytes")


if __name__ == '__main__':
    main()
