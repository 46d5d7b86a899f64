"""Set operations over ascending integer sequences (posting and position lists)."""

from collections.abc import Sequence


def intersect_sorted(a: Sequence[int], b: Sequence[int]) -> list[int]:
    """Values present in both ascending sequences, ascending. Linear time."""
    result: list[int] = []
    i = j = 0
    while i < len(a) and j < len(b):
        if a[i] == b[j]:
            result.append(a[i])
            i += 1
            j += 1
        elif a[i] < b[j]:
            i += 1
        else:
            j += 1
    return result


def intersect_all(lists: Sequence[Sequence[int]]) -> list[int]:
    """
    Intersect several ascending sequences, smallest first.

    Stops as soon as the running intersection becomes empty.
    """
    if not lists:
        return []

    ordered = sorted(lists, key=len)
    result = list(ordered[0])
    for other in ordered[1:]:
        if not result:
            break
        result = intersect_sorted(result, other)
    return result
