from __future__ import annotations  # Path-dependent completion percentage

import math
from typing import List

from .index import SchemaIndex
from .models import FlowState, latest_answers
from .resolver import branch_chain


def counted_field_ids(index: SchemaIndex, state: FlowState) -> List[str]:  # Main tree plus the active branch
    ids = index.tree_ids(index.flow)
    if state.active_sub_flow:
        answers = latest_answers(state.collected_answers)
        # a nested sub-flow also counts the branches it sits in, outermost first
        for choice, option in reversed(branch_chain(index, state.active_sub_flow, answers)):
            ids.extend(field_id for field_id in index.tree_ids(index.branch(choice, option)) if field_id not in ids)
    return ids


def completion_percentage(index: SchemaIndex, state: FlowState) -> int:  # Rounded half-up, 0..100
    counted = counted_field_ids(index, state)
    if not counted:
        return 100
    done = sum(1 for field_id in counted if field_id in state.completed_fields)
    return min(100, int(math.floor(100 * done / len(counted) + 0.5)))


__all__ = ["completion_percentage", "counted_field_ids"]
