"""Prompt construction for the narrative analysis request."""

import json
from typing import Any

SYSTEM_PROMPT = (
    "You are a cautious, concise-but-thorough equities analyst. "
    "Provide clear caveats, quantify when possible, avoid certainty."
)

USER_PROMPT_TEMPLATE = """Analyze the following stock snapshot and return structured JSON.
Required:
- stance: "bullish" | "bearish" | "neutral"
- confidence: number (0..1)
- summary: 3-5 sentences
- highlights: string[]
- technical: {{ supports: string[], resistances: string[], signals: {{ name: string, status: string }}[] }}
- actions: string[] (1-5 bullets)
- risks: string[] (1-5 bullets)
- horizon: string
- disclaimers: string[]

Optional (include when useful to justify actions financially):
- rationale_long: string[] (2-6 short paragraphs; plain text, no markdown)
- scenarios: {{
    bull?: {{ prob?: number (0..1), target?: string, drivers?: string[] }},
    base?: {{ prob?: number, target?: string, drivers?: string[] }},
    bear?: {{ prob?: number, target?: string, drivers?: string[] }}
  }}
- valuation: {{
    multiples?: {{ name: string, value: string, peer_range?: string }}[],
    notes?: string[]
  }}
- playbook?: {{
    entry?: string, exits?: string[], invalidation?: string,
    position?: string, timeframe?: string
  }}
- watchlist?: string[]  // signals/events to monitor
- confidence_notes?: string[]
- data_used?: string[]  // what key inputs you used

Snapshot JSON:
{snapshot}"""

REQUIRED_FIELDS = (
    "stance",
    "confidence",
    "summary",
    "highlights",
    "technical",
    "actions",
    "risks",
    "horizon",
    "disclaimers",
)

OPTIONAL_FIELDS = (
    "rationale_long",
    "scenarios",
    "valuation",
    "playbook",
    "watchlist",
    "confidence_notes",
    "data_used",
)


def build_user_prompt(payload: dict[str, Any]) -> str:
    """Render the user instruction with the snapshot payload embedded as compact JSON."""
    snapshot = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    return USER_PROMPT_TEMPLATE.format(snapshot=snapshot)
