"""
Scene planning policy.

A scene plan splits the script into 3-5 scenes whose durations each fall in
[4, 8] seconds and together add up to the requested video length. The LLM's
draft only supplies text, prompts and relative weights; the durations are
always rebalanced here.
"""

import math
from dataclasses import dataclass, field
from typing import Any

MIN_SCENES = 3
MAX_SCENES = 5
MIN_SCENE_SECONDS = 4.0
MAX_SCENE_SECONDS = 8.0

# Default scene length used to pick a scene count when there is no usable draft
TYPICAL_SCENE_SECONDS = 6.0


@dataclass
class PlannedScene:
    index: int
    text: str
    prompt: str
    duration: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "text": self.text,
            "prompt": self.prompt,
            "duration": self.duration,
        }


@dataclass
class ScenePlan:
    """
    A rebalanced scene plan.

    Attributes:
        scenes: Planned scenes in order
        target_duration: Requested total length
        used_fallback: True when the draft was replaced by a script split
    """

    scenes: list[PlannedScene]
    target_duration: float
    used_fallback: bool = False
    notes: list[str] = field(default_factory=list)

    @property
    def total_duration(self) -> float:
        return round(sum(scene.duration for scene in self.scenes), 1)

    @property
    def shortfall(self) -> float:
        """Requested minus planned seconds; non-zero only when the target is out of reach."""
        return round(self.target_duration - self.total_duration, 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenes": [scene.to_dict() for scene in self.scenes],
            "target_duration": self.target_duration,
            "total_duration": self.total_duration,
            "used_fallback": self.used_fallback,
        }


def scene_count_bounds(target_duration: float) -> tuple[int, int]:
    """
    Scene counts that can hit ``target_duration`` inside the per-scene window.

    Targets below 3*4s or above 5*8s collapse to the nearest end.
    """
    low = max(MIN_SCENES, math.ceil(target_duration / MAX_SCENE_SECONDS))
    high = min(MAX_SCENES, math.floor(target_duration / MIN_SCENE_SECONDS))
    if low > high:
        count = MIN_SCENES if target_duration < MIN_SCENES * MIN_SCENE_SECONDS else MAX_SCENES
        return count, count
    return low, high


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def rebalance_durations(weights: list[float], target_duration: float) -> list[float]:
    """
    Scale relative scene weights to durations in [4, 8] summing to the target.

    Finds a common scale factor by bisection (the clamped sum is monotonic in
    it), rounds to tenths of a second and hands any rounding drift to scenes
    that still have room.
    """
    count = len(weights)
    if count == 0:
        return []

    safe = [w if w > 0 else 1.0 for w in weights]
    reachable = _clamp(target_duration, count * MIN_SCENE_SECONDS, count * MAX_SCENE_SECONDS)

    low, high = 0.0, MAX_SCENE_SECONDS / min(safe)
    for _ in range(100):
        mid = (low + high) / 2
        total = sum(_clamp(mid * w, MIN_SCENE_SECONDS, MAX_SCENE_SECONDS) for w in safe)
        if total < reachable:
            low = mid
        else:
            high = mid

    tenths = [round(_clamp(high * w, MIN_SCENE_SECONDS, MAX_SCENE_SECONDS) * 10) for w in safe]
    drift = round(reachable * 10) - sum(tenths)
    floor_tenths, ceil_tenths = int(MIN_SCENE_SECONDS * 10), int(MAX_SCENE_SECONDS * 10)

    while drift != 0:
        step = 1 if drift > 0 else -1
        candidates = [
            i for i, t in enumerate(tenths)
            if (step > 0 and t < ceil_tenths) or (step < 0 and t > floor_tenths)
        ]
        if not candidates:
            break
        # Longest scene absorbs additions last, shortest absorbs removals last
        pick = min(candidates, key=lambda i: tenths[i]) if step > 0 else max(candidates, key=lambda i: tenths[i])
        tenths[pick] += step
        drift -= step

    return [t / 10 for t in tenths]


def split_script(script: str, count: int) -> list[dict[str, Any]]:
    """Split script words into ``count`` contiguous, near-equal chunks."""
    words = script.split()
    chunks = []
    for i in range(count):
        start = round(i * len(words) / count)
        end = round((i + 1) * len(words) / count)
        text = " ".join(words[start:end])
        chunks.append({"text": text, "prompt": text or script.strip(), "weight": max(end - start, 1)})
    return chunks


def _draft_weight(draft: dict[str, Any]) -> float:
    try:
        duration = float(draft.get("duration") or 0)
    except (TypeError, ValueError):
        duration = 0.0
    if duration > 0:
        return duration
    return float(max(len(str(draft.get("text") or "").split()), 1))


def build_scene_plan(
    draft_scenes: list[dict[str, Any]] | None,
    script: str,
    target_duration: float,
) -> ScenePlan:
    """
    Produce the final scene plan from an LLM draft.

    Args:
        draft_scenes: Scenes proposed by the LLM (may be empty or malformed)
        script: Full voiceover script, used for the fallback split
        target_duration: Requested video length in seconds

    Returns:
        ScenePlan with 3-5 scenes each within [4, 8] seconds
    """
    low, high = scene_count_bounds(target_duration)
    drafts = [
        d for d in (draft_scenes or [])
        if isinstance(d, dict) and (d.get("prompt") or d.get("text"))
    ]
    notes: list[str] = []
    used_fallback = False

    if low <= len(drafts) <= high:
        entries = [
            {
                "text": str(d.get("text") or ""),
                "prompt": str(d.get("prompt") or d.get("text")),
                "weight": _draft_weight(d),
            }
            for d in drafts
        ]
    else:
        count = int(_clamp(round(target_duration / TYPICAL_SCENE_SECONDS), low, high))
        if drafts:
            notes.append(f"Draft had {len(drafts)} scenes, expected {low}-{high}; split script instead")
        entries = split_script(script, count)
        used_fallback = True

    durations = rebalance_durations([e["weight"] for e in entries], target_duration)
    scenes = [
        PlannedScene(index=i, text=e["text"], prompt=e["prompt"], duration=d)
        for i, (e, d) in enumerate(zip(entries, durations))
    ]

    plan = ScenePlan(scenes=scenes, target_duration=float(target_duration), used_fallback=used_fallback, notes=notes)
    if plan.shortfall:
        plan.notes.append(
            f"Requested {target_duration:g}s is outside the reachable range; planned {plan.total_duration:g}s"
        )
    return plan


def clip_seconds(scene_duration: float) -> int:
    """Whole-second clip length to request for a scene."""
    return int(_clamp(round(scene_duration), MIN_SCENE_SECONDS, MAX_SCENE_SECONDS))
