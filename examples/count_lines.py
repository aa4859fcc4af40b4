#!/usr/bin/env python3
"""
Line counting example for cfile.

This example demonstrates how to:
1. Open files whatever their compression
2. Read lines of any length with getline
3. Report failures through last_error
"""

import sys

import cfile


def count_lines(path: str) -> int:
    handle = cfile.open_path(path)
    if handle is None:
        raise OSError(f"Can't open {path}: {cfile.last_error()}")

    line = cfile.LineBuffer()
    count = 0
    longest = 0
    while cfile.getline(handle, line):
        count += 1
        longest = max(longest, line.length)
    error = cfile.last_error()
    cfile.close(handle)

    if error is not None:
        raise OSError(f"Error reading {path}: {error}")
    print(f"{path}: {count} lines, longest {longest} bytes ({handle.backend_name})")
    return count


def main():
    if len(sys.argv) < 2:
        print("Usage: count_lines.py FILE [FILE ...]")
        return 1

    for path in sys.argv[1:]:
        try:
            count_lines(path)
        except OSError as e:
            print(f"❌ {e}")
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
