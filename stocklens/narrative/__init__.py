"""AI narrative analysis: prompts, generation, streaming and result parsing."""

from stocklens.narrative.client import NarrativeClient
from stocklens.narrative.generator import NarrativeGenerator
from stocklens.narrative.models import AnalysisResult, NarrativeResult, Stance, parse_narrative
from stocklens.narrative.streaming import StreamAccumulator, StreamEvent, format_sse, parse_sse

__all__ = [
    "NarrativeClient",
    "NarrativeGenerator",
    "AnalysisResult",
    "NarrativeResult",
    "Stance",
    "parse_narrative",
    "StreamAccumulator",
    "StreamEvent",
    "format_sse",
    "parse_sse",
]
