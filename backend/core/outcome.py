"""Verification of an analysis against a later live price.

Rules:
- predicted_sign = sign(analysis.weighted_score)
- moved_up = spot_later > spot_at_analysis, only when both prices exist
- was_correct = moved_up == (predicted_sign > 0), only when predicted_sign != 0
- Anything else is indeterminate (was_correct = None)
"""

from datetime import datetime

from core.models import Analysis, Outcome, PriceTick


def evaluate_outcome(
    analysis: Analysis,
    tick: PriceTick | None,
    checked_at: datetime,
) -> Outcome:
    """
    Build the Outcome for ``analysis`` from the tick read at check time.

    Args:
        analysis: The analysis being verified
        tick: Live price at check time (None if nothing cached)
        checked_at: Check time (UTC)

    Returns:
        Outcome record
    """
    spot = analysis.spot_price_at_analysis
    spot_later = tick.price if tick else None
    predicted_sign = analysis.predicted_sign

    delta = None
    was_correct = None
    if spot is not None and spot_later is not None:
        delta = round(spot_later - spot, 6)
        moved_up = spot_later > spot
        if predicted_sign != 0:
            was_correct = moved_up == (predicted_sign > 0)

    return Outcome(
        analysis_id=analysis.id,
        check_timestamp=checked_at,
        instrument_id=analysis.instrument_id,
        pair_name=analysis.pair_name or (tick.pair_name if tick else None),
        spot_at_analysis=spot,
        spot_at_check_time=spot_later,
        delta=delta,
        predicted_sign=predicted_sign,
        was_correct=was_correct,
    )
