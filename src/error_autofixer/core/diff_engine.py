"""Line-level diff between two code blocks.

The diff is computed with a Longest-Common-Subsequence alignment over lines
(O(m*n) dynamic programming). Lines are compared with trailing whitespace
removed, so trailing-whitespace-only edits show up as context.
"""

from __future__ import annotations

from collections.abc import Iterable

from error_autofixer.models.diff import DiffLine, DiffLineType


def split_lines(text: str | None) -> list[str]:
    """Normalize line endings and split into lines."""
    if not text:
        return []
    return text.replace("\r\n", "\n").replace("\r", "\n").split("\n")


def longest_common_subsequence(a: list[str], b: list[str]) -> list[tuple[int, int]]:
    """Align two line sequences.

    Args:
        a: Original lines
        b: Replacement lines

    Returns:
        Ordered (index_in_a, index_in_b) pairs of matching lines
    """
    keys_a = [line.rstrip() for line in a]
    keys_b = [line.rstrip() for line in b]
    m, n = len(a), len(b)

    dp = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(1, m + 1):
        for j in range(1, n + 1):
            if keys_a[i - 1] == keys_b[j - 1]:
                dp[i][j] = dp[i - 1][j - 1] + 1
            else:
                dp[i][j] = max(dp[i - 1][j], dp[i][j - 1])

    # Backtrack; a match is taken before either skip direction
    pairs: list[tuple[int, int]] = []
    i, j = m, n
    while i > 0 and j > 0:
        if keys_a[i - 1] == keys_b[j - 1]:
            pairs.append((i - 1, j - 1))
            i -= 1
            j -= 1
        elif dp[i - 1][j] >= dp[i][j - 1]:
            i -= 1
        else:
            j -= 1

    pairs.reverse()
    return pairs


def compute_diff(original: str | None, replacement: str | None, start_line: int = 0) -> list[DiffLine]:
    """Compute the edit script turning ``original`` into ``replacement``.

    Args:
        original: Code block before the change
        replacement: Code block after the change
        start_line: 1-based line of the first original line in its file;
            0 leaves all lines unnumbered

    Returns:
        DiffLines in display order. Removed lines of a gap come before the
        Added lines of the same gap.
    """
    orig_lines = split_lines(original)
    new_lines = split_lines(replacement)
    numbered = start_line > 0

    result: list[DiffLine] = []
    line_number = start_line if numbered else 1

    def removed(index: int) -> None:
        nonlocal line_number
        result.append(
            DiffLine(DiffLineType.REMOVED, orig_lines[index], line_number if numbered else None)
        )
        line_number += 1

    oi = fi = 0
    for orig_index, new_index in longest_common_subsequence(orig_lines, new_lines):
        while oi < orig_index:
            removed(oi)
            oi += 1

        while fi < new_index:
            result.append(DiffLine(DiffLineType.ADDED, new_lines[fi]))
            fi += 1

        result.append(
            DiffLine(DiffLineType.CONTEXT, orig_lines[orig_index], line_number if numbered else None)
        )
        line_number += 1
        oi = orig_index + 1
        fi = new_index + 1

    while oi < len(orig_lines):
        removed(oi)
        oi += 1

    while fi < len(new_lines):
        result.append(DiffLine(DiffLineType.ADDED, new_lines[fi]))
        fi += 1

    return result


def diff_stats(lines: Iterable[DiffLine]) -> tuple[int, int]:
    """Count (removed, added) lines of an edit script."""
    removed_count = added_count = 0
    for line in lines:
        if line.type == DiffLineType.REMOVED:
            removed_count += 1
        elif line.type == DiffLineType.ADDED:
            added_count += 1
    return removed_count, added_count


def render_diff(lines: Iterable[DiffLine]) -> str:
    """Render an edit script as text.

    Lines carrying an original line number get a right-aligned gutter;
    added lines get a blank one.
    """
    lines = list(lines)
    show_numbers = any(line.line_number is not None for line in lines)
    width = max((len(str(line.line_number)) for line in lines if line.line_number), default=0)

    rendered = []
    for line in lines:
        if show_numbers:
            gutter = str(line.line_number) if line.line_number is not None else ""
            rendered.append(f"{gutter:>{width}} {line.prefix}{line.text}")
        else:
            rendered.append(f"{line.prefix}{line.text}")
    return "\n".join(rendered)
