"""
Style Resolver

Maps a theme name, free keywords or a weighted blend of themes to a bias vector,
an avoid-list and room-specific hint tokens, and scores catalog text against them.
"""
import logging
from typing import Dict, List, Optional, Sequence

from homequote.config.style_definitions import STYLE_PROFILES, normalize_style
from .schemas import StyleProfile, StyleWeight

logger = logging.getLogger(__name__)

KEYWORD_WEIGHT = 2
LEAD_FEATURE_WEIGHT = 3
FEATURE_WEIGHT = 1
USER_KEYWORD_WEIGHT = 1
LEAD_FEATURE_COUNT = 3
MAX_ROOM_HINTS = 3
MAX_HINT_SCORE = 2
NEGATIVE_PENALTY = 2
BLEND_SCALE = 3


class StyleResolver:
    """Resolve style inputs to a StyleProfile"""

    def __init__(self, profiles: Optional[Dict[str, Dict]] = None):
        self.profiles = profiles or STYLE_PROFILES

    def resolve(
        self,
        theme: Optional[str] = None,
        style_keywords: Optional[Sequence[str]] = None,
        blend: Optional[Sequence[StyleWeight]] = None,
    ) -> Optional[StyleProfile]:
        """
        Build the style profile for a turn.

        Args:
            theme: Single theme name or alias
            style_keywords: Extra user keywords mixed in lightly
            blend: Weighted themes; takes precedence over theme

        Returns:
            StyleProfile, or None when nothing style-related was given
        """
        keywords = [k.lower() for k in (style_keywords or []) if k]
        if blend:
            return self.blend(blend, keywords)

        style_id = normalize_style(theme) if theme else None
        if style_id and style_id not in self.profiles:
            style_id = None
        if not style_id and not keywords:
            return None

        definition = self.profiles.get(style_id, {}) if style_id else {}
        return StyleProfile(
            styles=[style_id] if style_id else [],
            name=definition.get("name"),
            features=list(definition.get("features", []))[:LEAD_FEATURE_COUNT],
            weights=self.derive_weights(style_id, keywords),
            negatives=self.derive_negatives(style_id),
            room_hints={room: self.derive_room_hints(style_id, room) for room in ("living", "bedroom", "dining")},
        )

    def derive_weights(self, style_id: Optional[str], keywords: Sequence[str] = ()) -> Dict[str, float]:
        weights: Dict[str, float] = {}

        def add(token: str, weight: float):
            token = (token or "").lower().strip()
            if token:
                weights[token] = weights.get(token, 0) + weight

        definition = self.profiles.get(style_id) if style_id else None
        if definition:
            for keyword in definition.get("keywords", []):
                add(keyword, KEYWORD_WEIGHT)
            features = definition.get("features", [])
            for feature in features[:LEAD_FEATURE_COUNT]:
                add(feature, LEAD_FEATURE_WEIGHT)
            for feature in features[LEAD_FEATURE_COUNT:]:
                add(feature, FEATURE_WEIGHT)
        for keyword in keywords:
            add(keyword, USER_KEYWORD_WEIGHT)
        return weights

    def derive_negatives(self, style_id: Optional[str]) -> List[str]:
        definition = self.profiles.get(style_id) if style_id else None
        if not definition:
            return []
        return list(dict.fromkeys(n.lower() for n in definition.get("negatives", [])))

    def derive_room_hints(self, style_id: Optional[str], room: str) -> List[str]:
        definition = self.profiles.get(style_id) if style_id else None
        if not definition:
            return []
        return [h.lower() for h in definition.get("room_hints", {}).get(room, [])][:MAX_ROOM_HINTS]

    def blend(self, themes: Sequence[StyleWeight], keywords: Sequence[str] = ()) -> Optional[StyleProfile]:
        """Blend weighted themes: weights normalized, bias rescaled to 1..3, negatives and hints unioned"""
        resolved = []
        for theme in themes:
            style_id = normalize_style(theme.name)
            if style_id in self.profiles and theme.weight > 0:
                resolved.append((style_id, float(theme.weight)))
        if not resolved:
            logger.info(f"[STYLE] No known styles in blend {[t.name for t in themes]}")
            return None

        total = sum(weight for _, weight in resolved) or 1.0
        blended: Dict[str, float] = {}
        negatives: List[str] = []
        hints: Dict[str, List[str]] = {"living": [], "bedroom": [], "dining": []}

        for style_id, weight in resolved:
            share = weight / total
            for token, value in self.derive_weights(style_id, keywords).items():
                blended[token] = blended.get(token, 0) + value * share
            negatives.extend(self.derive_negatives(style_id))
            for room in hints:
                hints[room].extend(self.derive_room_hints(style_id, room))

        max_weight = max([1.0] + list(blended.values()))
        weights = {token: max(1, round(value / max_weight * BLEND_SCALE)) for token, value in blended.items()}
        primary = max(resolved, key=lambda pair: pair[1])[0]

        return StyleProfile(
            styles=[style_id for style_id, _ in resolved],
            name=" + ".join(self.profiles[s]["name"] for s, _ in resolved),
            features=list(self.profiles[primary].get("features", []))[:LEAD_FEATURE_COUNT],
            weights=weights,
            negatives=list(dict.fromkeys(negatives)),
            room_hints={room: list(dict.fromkeys(values))[:MAX_ROOM_HINTS] for room, values in hints.items()},
        )

    def score(self, text: str, profile: Optional[StyleProfile], room: Optional[str] = None) -> float:
        """
        Score free text against a profile.

        score = sum of matching bias weights + min(2, room hint hits) - 2 * negative hits
        """
        if not profile:
            return 0.0
        text = (text or "").lower()
        score = sum(weight for token, weight in profile.weights.items() if token in text)
        hint_hits = sum(1 for hint in profile.hints_for(room or "") if hint in text)
        score += min(MAX_HINT_SCORE, hint_hits)
        score -= NEGATIVE_PENALTY * sum(1 for negative in profile.negatives if negative in text)
        return score
