"""
Snapshot serialization module.

Exports a stream of engine snapshots to a JSON document for offline
review, plotting or regression comparison.
"""

import json
import math
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from vocalscope.core.types import EngineState
from vocalscope.session import SessionSummary


@dataclass
class SnapshotMetadata:
    """Metadata header for an exported snapshot stream."""

    sample_rate: int
    frame_size: int
    n_frames: int
    duration: float
    scale_id: Optional[str] = None
    schema_version: str = "1.0"


class SnapshotExporter:
    """
    Exports engine snapshots to JSON.

    Absent fields are written as ``null`` so consumers keep the
    difference between "not measured" and a measured zero.
    """

    def __init__(self, precision: int = 4):
        """
        Initialize the exporter.

        Args:
            precision: Decimal places for floating point values.
        """
        self.precision = precision

    def _clean(self, value: Any) -> Any:
        """Round floats and map non-finite values to None, recursively."""
        if isinstance(value, bool) or value is None:
            return value
        if isinstance(value, float):
            if math.isnan(value) or math.isinf(value):
                return None
            return round(value, self.precision)
        if isinstance(value, dict):
            return {k: self._clean(v) for k, v in value.items()}
        return value

    def _build_frame(self, index: int, time_sec: float, state: EngineState) -> Dict[str, Any]:
        frame: Dict[str, Any] = {
            "frame_index": index,
            "time": round(float(time_sec), self.precision),
        }
        frame.update(self._clean(state.to_dict()))
        return frame

    def build_document(
        self,
        states: Sequence[EngineState],
        times: Sequence[float],
        metadata: SnapshotMetadata,
        summary: Optional[SessionSummary] = None,
    ) -> Dict[str, Any]:
        """
        Build the complete export document.

        Args:
            states: Snapshots in frame order.
            times: Frame start times in seconds, same length as *states*.
            metadata: Stream description.
            summary: Optional session aggregates.

        Returns:
            Dictionary ready for ``json.dump``.
        """
        if len(states) != len(times):
            raise ValueError(
                f"Got {len(states)} states but {len(times)} timestamps"
            )
        frames: List[Dict[str, Any]] = [
            self._build_frame(i, t, s) for i, (t, s) in enumerate(zip(times, states))
        ]
        document: Dict[str, Any] = {
            "metadata": asdict(metadata),
            "frames": frames,
        }
        if summary is not None:
            document["summary"] = self._clean(asdict(summary))
        return document

    def export(
        self,
        document: Dict[str, Any],
        output_path: Union[str, Path],
        indent: Optional[int] = None,
    ) -> Path:
        """Write a document built by :meth:`build_document` to disk."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w") as f:
            json.dump(document, f, indent=indent)
        return output_path
