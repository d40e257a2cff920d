"""
Offline analysis of an audio file through the streaming engine.

The file is sliced into back-to-back frames exactly as a capture device
would deliver them, and each frame is stamped with its stream time so
the rolling-window analyzers see the real timing.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import librosa
import numpy as np

from vocalscope.core.engine import AnalysisEngine
from vocalscope.core.scale import COMMON_SCALES
from vocalscope.core.types import EngineState
from vocalscope.io.exporter import SnapshotExporter, SnapshotMetadata
from vocalscope.session import SessionSummary, VoiceSession
from vocalscope.settings import PRESETS, ConfigurationError, SettingsStore

logger = logging.getLogger(__name__)


def iter_frames(y: np.ndarray, frame_size: int) -> np.ndarray:
    """Split a signal into non-overlapping frames, dropping the ragged tail."""
    n_frames = len(y) // frame_size
    if n_frames == 0:
        return np.zeros((0, frame_size), dtype=y.dtype)
    framed = librosa.util.frame(
        np.ascontiguousarray(y[: n_frames * frame_size]),
        frame_length=frame_size,
        hop_length=frame_size,
    )
    return framed.T


def analyze_file(
    audio_path: Path,
    frame_size: int = 2048,
    sr: Optional[int] = 44100,
    preset: Optional[str] = None,
    scale_id: Optional[str] = None,
    calibrate: bool = False,
) -> Tuple[List[EngineState], List[float], SessionSummary, int]:
    """
    Run an audio file through a fresh engine session.

    Args:
        audio_path: Input audio (wav, mp3, flac).
        frame_size: Samples per frame.
        sr: Resample to this rate; None keeps the file's rate.
        preset: Optional preset id applied before analysis.
        scale_id: Optional target scale id.
        calibrate: Treat the first seconds as room noise and calibrate
            the noise gate from them.

    Returns:
        Tuple of (states, frame_times, summary, sample_rate).
    """
    y, sample_rate = librosa.load(audio_path, sr=sr, mono=True)
    logger.info("Loaded %s: %.2fs at %d Hz", audio_path, len(y) / sample_rate, sample_rate)

    store = SettingsStore()
    if preset:
        store.apply_preset(preset)
    if scale_id:
        store.update(scale_id=scale_id)

    session = VoiceSession(AnalysisEngine(settings=store))
    session.start()
    if calibrate:
        session.engine.start_calibration(timestamp=0.0)

    states: List[EngineState] = []
    times: List[float] = []
    for i, frame in enumerate(iter_frames(y, frame_size)):
        t = i * frame_size / sample_rate
        states.append(session.process(frame, sample_rate, timestamp=t))
        times.append(t)

    summary = session.stop()
    return states, times, summary, sample_rate


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Analyze singing in an audio file frame by frame"
    )

    parser.add_argument(
        "audio",
        type=Path,
        help="Input audio file (wav, mp3, flac)",
    )

    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Write every per-frame snapshot to this JSON file",
    )

    parser.add_argument(
        "--frame-size",
        type=int,
        default=2048,
        help="Samples per analysis frame (default: 2048)",
    )

    parser.add_argument(
        "--sr",
        type=int,
        default=44100,
        help="Analysis sample rate (default: 44100)",
    )

    parser.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        default=None,
        help="Recording-situation preset",
    )

    parser.add_argument(
        "--scale",
        choices=[s.id for s in COMMON_SCALES],
        default=None,
        help="Target scale for in-key matching (default: c_major)",
    )

    parser.add_argument(
        "--calibrate",
        action="store_true",
        help="Calibrate the noise gate from the first two seconds",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log progress",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.audio.exists():
        print(f"Error: Audio file not found: {args.audio}", file=sys.stderr)
        sys.exit(1)
    if args.frame_size < 64:
        print(f"Error: frame size too small: {args.frame_size}", file=sys.stderr)
        sys.exit(1)

    try:
        states, times, summary, sample_rate = analyze_file(
            args.audio,
            frame_size=args.frame_size,
            sr=args.sr,
            preset=args.preset,
            scale_id=args.scale,
            calibrate=args.calibrate,
        )
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    final = states[-1] if states else EngineState()
    print(f"Frames analyzed:    {summary.n_frames}")
    print(f"Max sustain:        {summary.max_sustain_seconds:.2f} s")
    print(f"Average stability:  {summary.avg_stability * 100:.0f} %")
    print(f"Tuning accuracy:    {summary.tuning_accuracy * 100:.0f} %")
    print(f"In-scale accuracy:  {summary.scale_accuracy * 100:.0f} %")
    if final.range_low_note and final.range_high_note:
        print(f"Vocal range:        {final.range_low_note} - {final.range_high_note}")

    if args.output is not None:
        exporter = SnapshotExporter()
        metadata = SnapshotMetadata(
            sample_rate=sample_rate,
            frame_size=args.frame_size,
            n_frames=len(states),
            duration=len(states) * args.frame_size / sample_rate,
            scale_id=args.scale,
        )
        document = exporter.build_document(states, times, metadata, summary)
        path = exporter.export(document, args.output)
        print(f"Snapshots written to {path}")


if __name__ == "__main__":
    main()
