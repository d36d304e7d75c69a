"""Builders for gap signals with controlled geometry.

unit(a) and unit(b) have cosine similarity cos(a - b), which makes threshold
cases easy to construct: cos(18°) ≈ 0.951, cos(38°) ≈ 0.788, cos(45°) ≈ 0.707.
"""

import math
from itertools import count

from app.core.schemas_gaps import GapSignal, SignalKind

_ids = count(1)


def unit(degrees: float) -> list[float]:
    radians = math.radians(degrees)
    return [math.cos(radians), math.sin(radians), 0.0]


def question_signal(
    text: str = "How do I short pick?",
    embedding: list[float] | None = None,
    module: str | None = None,
    negative: bool = False,
) -> GapSignal:
    return GapSignal(
        kind=SignalKind.QUESTION,
        text=text,
        source_id=f"q-{next(_ids)}",
        embedding=embedding if embedding is not None else unit(0),
        module_hint=module,
        was_negatively_rated=negative,
    )


def feedback_signal(
    text: str = "Nobody showed us how to do cycle counts",
    embedding: list[float] | None = None,
    category: str | None = None,
    urgency: str | None = "normal",
    complaint: bool = False,
) -> GapSignal:
    return GapSignal(
        kind=SignalKind.FEEDBACK,
        text=text,
        source_id=f"f-{next(_ids)}",
        embedding=embedding if embedding is not None else unit(0),
        category_hint=category,
        urgency=urgency,
        is_complaint=complaint,
    )
