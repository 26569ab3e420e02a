"""Turn the gap between current and optimal weights into trades."""

from typing import Dict, List, Mapping, Optional, Sequence

from portfolio_optimizer.core.models import BUY, SELL, Holding, RebalanceAction


def current_weights(holdings: Sequence[Holding], total_value: float) -> Dict[str, float]:
    """Weight of each holding at cost basis: quantity * average_cost / total_value."""
    return {h.symbol: h.cost_basis / total_value for h in holdings}


def recommend_rebalance(
    current: Mapping[str, float],
    optimal: Mapping[str, float],
    total_value: float,
    threshold: float = 0.01,
    symbols: Optional[Sequence[str]] = None
) -> List[RebalanceAction]:
    """
    Buy/sell actions moving ``current`` weights to ``optimal``.

    A symbol missing from either mapping counts as weight 0. Only drifts
    larger than ``threshold`` produce an action; the result is ordered by
    absolute drift, largest first.

    Args:
        current: Symbol -> current weight
        optimal: Symbol -> target weight
        total_value: Portfolio value used to size the trades
        threshold: Minimum absolute drift to act on
        symbols: Symbols to consider (default: union of both mappings)

    Returns:
        Sorted list of RebalanceAction
    """
    if symbols is None:
        symbols = list(current) + [s for s in optimal if s not in current]

    actions = []
    for symbol in symbols:
        current_weight = current.get(symbol, 0.0)
        target_weight = optimal.get(symbol, 0.0)
        delta = target_weight - current_weight
        if abs(delta) <= threshold:
            continue
        actions.append(RebalanceAction(
            symbol=symbol,
            current_weight=current_weight,
            target_weight=target_weight,
            action=BUY if delta > 0 else SELL,
            amount=abs(delta) * total_value,
        ))

    actions.sort(key=lambda a: abs(a.delta), reverse=True)
    return actions
