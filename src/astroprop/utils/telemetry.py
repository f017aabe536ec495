"""
Solution telemetry export.

Flattens segment and sequence solutions into pandas DataFrames (one row
per state, one column per coordinate) and JSON documents.
"""

import json
import os
from datetime import datetime
from typing import Any, Dict, List, Union
import logging

import numpy as np
import pandas as pd

from ..core.state import State, states_to_matrix
from ..trajectory.segment import SegmentSolution
from ..trajectory.sequence import SequenceSolution

logger = logging.getLogger(__name__)


class NumpyEncoder(json.JSONEncoder):
    """JSON encoder for numpy types."""

    def default(self, obj):
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


def _coordinate_columns(state: State) -> List[str]:
    columns = []
    for subset in state.broker.subsets:
        if subset.size == 1:
            columns.append(subset.name)
        else:
            columns.extend(f"{subset.name}_{i}" for i in range(subset.size))
    return columns


def states_to_dataframe(states: List[State]) -> pd.DataFrame:
    """
    Tabulate states.

    Args:
        states: States sharing one broker and frame

    Returns:
        DataFrame with 'elapsed_s', 'seconds_since_j2000', 'frame' and one
        column per coordinate
    """
    if not states:
        return pd.DataFrame(columns=['elapsed_s', 'seconds_since_j2000', 'frame'])

    start = states[0].instant
    table = pd.DataFrame(
        states_to_matrix(states),
        columns=_coordinate_columns(states[0]),
    )
    table.insert(0, 'frame', [state.frame.name for state in states])
    table.insert(0, 'seconds_since_j2000', [state.instant.to_seconds_since_j2000() for state in states])
    table.insert(0, 'elapsed_s', [state.instant - start for state in states])

    return table


def solution_to_dataframe(solution: Union[SegmentSolution, SequenceSolution]) -> pd.DataFrame:
    """Tabulate a solution; sequence rows carry the segment name."""
    if isinstance(solution, SegmentSolution):
        table = states_to_dataframe(solution.states)
        table.insert(0, 'segment', solution.name)
        return table

    frames = [solution_to_dataframe(item) for item in solution.segment_solutions if item.states]
    if not frames:
        return states_to_dataframe([])

    return pd.concat(frames, ignore_index=True)


def solution_to_dict(solution: Union[SegmentSolution, SequenceSolution]) -> Dict[str, Any]:
    """Summary metrics plus per-state rows."""
    if isinstance(solution, SegmentSolution):
        data = {
            'name': solution.name,
            'segment_type': solution.segment_type.name,
            'condition_is_satisfied': solution.condition_is_satisfied,
            'dynamics': [item.name for item in solution.dynamics],
        }
        if solution.states:
            data['propagation_duration_s'] = solution.get_propagation_duration()
            data['start'] = solution.access_start_instant().to_seconds_since_j2000()
            data['end'] = solution.access_end_instant().to_seconds_since_j2000()
        data['states'] = states_to_dataframe(solution.states).to_dict(orient='records')
        return data

    return {
        'execution_is_complete': solution.execution_is_complete,
        'segments': [solution_to_dict(item) for item in solution.segment_solutions],
    }


def export_solution_json(solution: Union[SegmentSolution, SequenceSolution],
                         filepath: str = None, indent: int = 2) -> str:
    """
    Export a solution to JSON.

    Args:
        solution: Segment or sequence solution
        filepath: Optional file path to save JSON
        indent: Indentation level (default: 2)

    Returns:
        JSON string
    """
    json_str = json.dumps(solution_to_dict(solution), indent=indent, cls=NumpyEncoder)

    if filepath:
        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(filepath, 'w') as f:
            f.write(json_str)
        logger.info(f"✓ Solution saved to {filepath}")

    return json_str


def export_solution_csv(solution: Union[SegmentSolution, SequenceSolution], filepath: str) -> str:
    """Write the solution table to CSV and return the path."""
    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)

    solution_to_dataframe(solution).to_csv(filepath, index=False)
    logger.info(f"✓ Solution saved to {filepath}")

    return filepath
