"""Lossless allocation of an item's cost across weighted split ratios."""

import logging
from collections.abc import Sequence

logger = logging.getLogger(__name__)


def allocate(amount: int, weights: Sequence[int]) -> list[int]:
    """
    Split an amount in minor units across weights with nothing left over.

    Steps:
    1. Give each share the floor of amount * weight / total_weight
    2. Compute residual = amount - sum of floors
    3. Hand out the residual one unit at a time, largest remainder first,
       ties going to the lowest index

    Integer arithmetic only, so identical inputs always produce identical
    allocations.

    Args:
        amount: Amount to split, in minor units
        weights: Split ratios; negative weights count as 0

    Returns:
        One allocation per weight. All zeros when the weights sum to 0.
    """
    clamped = [max(int(weight), 0) for weight in weights]
    total_weight = sum(clamped)
    if total_weight == 0:
        return [0] * len(clamped)

    shares = []
    remainders = []
    for index, weight in enumerate(clamped):
        share, remainder = divmod(amount * weight, total_weight)
        shares.append(share)
        remainders.append((remainder, index))

    residual = amount - sum(shares)

    if residual:
        # Stable order: larger remainder wins, then lower index
        order = sorted(remainders, key=lambda pair: (-pair[0], pair[1]))
        for _remainder, index in order[:residual]:
            shares[index] += 1

        logger.debug(
            f"Distributed {residual} remainder unit(s) of {amount} "
            f"across {len(clamped)} shares"
        )

    assert sum(shares) == amount, "Allocation lost or invented a minor unit"

    return shares
