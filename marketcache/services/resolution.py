"""
Resolution helpers

Winning-spread selection following the distribution market contract:
values below the first spread resolve to the first spread, values above the
last spread resolve to the last one, otherwise the spread with
lower_bound < value <= upper_bound wins.
"""

from typing import Iterable, Optional, Tuple

# (spread_index, lower_bound, upper_bound)
SpreadRange = Tuple[int, Optional[int], Optional[int]]


def find_winning_spread(resolved_value: int, spreads: Iterable[SpreadRange]) -> Optional[int]:
    """
    Args:
        resolved_value: Value the market resolved to
        spreads: Spread ranges; entries without both bounds are ignored

    Returns:
        Winning spread index, or None if no spread contains the value
    """
    bounded = sorted(
        (s for s in spreads if s[1] is not None and s[2] is not None),
        key=lambda s: s[0],
    )
    if not bounded:
        return None

    first, last = bounded[0], bounded[-1]
    if resolved_value < first[1]:
        return first[0]
    if resolved_value > last[2]:
        return last[0]

    for index, lower, upper in bounded:
        if lower < resolved_value <= upper:
            return index

    return None
