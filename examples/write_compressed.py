#!/usr/bin/env python3
"""
Writing example for cfile.

Writes the same report as plain text, gzip, bzip2 and xz, then prints the
uncompressed size each handle reports.
"""

from pathlib import Path

import cfile


def write_report(path: Path, rows: int) -> None:
    with cfile.open_path(path, 'w') as handle:
        cfile.printf(handle, "%-8s %10s\n", "row", "square")
        for row in range(rows):
            cfile.printf(handle, "%-8d %10d\n", row, row * row)


def main():
    output_dir = Path("cfile_example")
    output_dir.mkdir(exist_ok=True)

    for name in ("report.txt", "report.txt.gz", "report.txt.bz2", "report.txt.xz"):
        path = output_dir / name
        write_report(path, rows=10000)

        handle = cfile.open_path(path)
        size = cfile.size(handle)
        cfile.close(handle)
        print(f"📁 {path}: {path.stat().st_size:,} bytes on disk, {size:,} bytes of text")


if __name__ == "__main__":
    main()
