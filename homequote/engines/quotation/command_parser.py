"""
Command Parser

Extracts add/remove/replace/quantity/attribute commands and planning facts
(rooms, BHK, area, budget, theme, style commands) from one user utterance.

Commands are matched against an explicit precedence list. The first rule that
matches wins and is the only structural change applied for the utterance:

    replace > remove > quantity > update > add

Replace and remove are the most specific and most destructive verbs. Quantity
changes come before adds because "add chairs by 2" is a quantity increase,
and attribute updates come before adds because "make the sofa material leather"
carries no add semantics.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from homequote.config.catalog_taxonomy import (
    MATERIAL_ALIASES,
    ROOM_ALIASES,
    SHAPE_ALIASES,
    infer_room_for_type,
    is_bedroom,
    normalize_item_type,
    normalize_room,
)
from homequote.config.style_definitions import normalize_style, style_names

from .schemas import (
    AlternativesRequest,
    BudgetFact,
    BudgetScope,
    ChangeReason,
    ChangeRecord,
    LineSpecs,
    ParsedFacts,
    ReplaceRequest,
    RequestedLine,
    RequirementDelta,
    StyleWeight,
)

logger = logging.getLogger(__name__)

COMMAND_PRECEDENCE = ("replace", "remove", "quantity", "update", "add")

NUMBER_WORDS = {
    "a": 1,
    "an": 1,
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "both": 2,
    "couple": 2,
    "pair": 2,
    "few": 3,
    "several": 4,
}

STYLE_FINISH_WORDS = ["oak", "walnut", "velvet", "rattan", "cane", "marble", "brass", "linen", "teak", "sheesham"]

MAX_ITEM_WORDS = 4
MAX_DESCRIPTOR_WORDS = 2


@dataclass
class CommandOutcome:
    """Result of applying one command rule"""

    command: str
    lines: Tuple[RequestedLine, ...]
    changes: List[ChangeRecord] = field(default_factory=list)
    replace_request: Optional[ReplaceRequest] = None


class CommandParser:
    """Deterministic parser for quotation commands and planning facts"""

    def __init__(self):
        self.room_pattern = self._build_room_pattern()
        self.command_patterns = self._build_command_patterns()
        self.fact_patterns = self._build_fact_patterns()
        self.style_pattern = re.compile(r"\b(" + "|".join(re.escape(n) for n in style_names()) + r")\b")
        self.precedence = [(name, getattr(self, f"_apply_{name}")) for name in COMMAND_PRECEDENCE]

        logger.info("CommandParser initialized")

    def _build_room_pattern(self) -> str:
        """Alternation matching any room phrase, specific bedrooms first"""
        aliases = sorted({alias for values in ROOM_ALIASES.values() for alias in values}, key=len, reverse=True)
        specific = r"(?:master|guest|kids?)\s+bedroom(?:\s+\d+)?|bedroom\s+\d+"
        return specific + "|" + "|".join(re.escape(a) for a in aliases)

    def _build_command_patterns(self) -> Dict[str, re.Pattern]:
        """Command grammar; item phrases are captured loosely and resolved by _match_item"""
        num = r"\d+|" + "|".join(NUMBER_WORDS)
        stop = r"(?=\s+(?:from|in|into|to|for|with|and|please|now)\b|[,.;!?]|$)"
        room = self.room_pattern
        return {
            "replace_id": re.compile(r"\breplace\s+(?:the\s+)?(.+?)\s+with\s+(?:id|item\s+id|item|#)\s*#?\s*(\d+)\b"),
            "replace_name": re.compile(r"\breplace\s+(?:the\s+)?(.+?)\s+with\s+(?:a\s+|an\s+|the\s+|some\s+)?(.+?)(?=[,.;!?]|$)"),
            "replace_bare": re.compile(r"\b(?:replace|swap)\s+(?:the\s+|my\s+)?(.+?)(?=[,.;!?]|$)"),
            "remove_room": re.compile(rf"\b(?:remove|removing|delete|deleting|drop|dropping)\s+(?:the\s+|my\s+)?({room})\b(?!\s+(?:and\s+)?(?:{num}\s+)?[a-z]+\s+from)"),
            "exclude_room": re.compile(rf"\b(?:without|exclude|excluding|except|no)\s+(?:the\s+|a\s+|any\s+)?({room})\b"),
            "remove_bedroom_count": re.compile(rf"\b(?:remove|removing|delete|drop|exclude|excluding|without)\s+({num})\s+(?:of\s+the\s+)?bed\s*rooms?\b"),
            "remove_item": re.compile(rf"\b(?:remove|removing|delete|deleting|drop|dropping|exclude|excluding|without|no)\s+(?:the\s+|my\s+|any\s+)?(?:({num})\s+)?(.+?){stop}"),
            "set_qty": re.compile(r"\b(?:set|make|change|update)\s+(?:the\s+)?(.+?)\s+(?:qty|quantity|count)\s*(?:to|as|=)?\s*(\d+)\b"),
            "increase_qty": re.compile(r"\b(?:increase|add|raise)\s+(?:the\s+)?(.+?)\s+(?:(?:qty|quantity|count)\s+)?by\s+(\d+)\b"),
            "increase_to": re.compile(r"\b(?:increase|raise)\s+(?:the\s+)?(.+?)\s+(?:(?:qty|quantity|count)\s+)?to\s+(\d+)\b"),
            "decrease_qty": re.compile(r"\b(?:decrease|reduce|lower)\s+(?:the\s+)?(.+?)\s+(?:(?:qty|quantity|count)\s+)?by\s+(\d+)\b"),
            "decrease_to": re.compile(r"\b(?:decrease|reduce|lower)\s+(?:the\s+)?(.+?)\s+(?:(?:qty|quantity|count)\s+)?to\s+(\d+)\b"),
            "need_qty": re.compile(rf"\b(?:need|want)\s+({num})\s+(.+?){stop}"),
            "update_attr": re.compile(
                r"\b(?:change|update|set|make)\s+(?:the\s+)?(.+?)\s+(seater|seats|material|subtype|shape|size)\s*(?:to|as|into|=)?\s*([a-z0-9][a-z0-9\- ]*?)(?=\s+and\b|[,.;!?]|$)"
            ),
            "update_seater": re.compile(r"\b(?:change|make|update)\s+(?:the\s+)?(.+?)\s+(?:to\s+|into\s+)?(?:a\s+)?(\d+)\s*-?\s*seater\b"),
            "add_id": re.compile(r"\badd\s+(?:a\s+|an\s+|the\s+|another\s+)?(.+?)\s+with\s+(?:id|item\s+id|item|#)\s*#?\s*(\d+)\b"),
            "add": re.compile(rf"\badd\s+(?:another\s+|more\s+)?(?:({num})\s+)?(?:more\s+)?(.+?){stop}"),
            "alternatives": re.compile(r"\b(?:more|show|different|other|alternative|alternate)\b.*\b(?:options?|alternatives?|choices)\b"),
            "alternatives_for": re.compile(r"\b(?:for|of)\s+(?:the\s+|my\s+)?(.+?)(?=[,.;!?]|$)"),
            "modification_context": re.compile(
                r"\b(?:now|also|instead|remove|delete|drop|replace|swap|change|update|increase|decrease|reduce|add)\b"
            ),
        }

    def _build_fact_patterns(self) -> Dict[str, re.Pattern]:
        num = r"\d+|" + "|".join(NUMBER_WORDS)
        unit = r"lakhs?|lacs?|l|k|thousand|cr|crores?"
        return {
            "bhk": re.compile(r"\b(\d+)\s*-?\s*bhk\b"),
            "bedroom_count": re.compile(rf"\b({num})\s*-?\s*bed\s*rooms?\b"),
            "bedroom_target": re.compile(rf"\b(?:only|just|with|include|including|keep)\s+({num})\s+bed\s*rooms?\b"),
            "bedroom_removed": re.compile(rf"\b(?:exclude|excluding|remove|drop|without|minus)\s+({num})\s+(?:of\s+the\s+)?bed\s*rooms?\b"),
            "area_sqft": re.compile(r"\b(\d+(?:\.\d+)?)\s*(?:sq\.?\s*ft|sqft|sft|square\s*feet|sq\s*feet|square\s*foot)\b"),
            "area_sqm": re.compile(r"\b(\d+(?:\.\d+)?)\s*(?:sq\.?\s*m|sqm|square\s*met(?:er|re)s?)\b"),
            "budget_range": re.compile(
                rf"\b(\d+(?:\.\d+)?)\s*({unit})?\s*(?:-|to|and)\s*(?:rs\.?\s*|inr\s*)?(\d+(?:\.\d+)?)\s*({unit})\b"
            ),
            "budget_amount": re.compile(
                r"(?P<prefix>\b(?:budget|under|below|upto|up\s+to|within|less\s+than|max(?:imum)?|around|about|approx(?:imately)?|above|over|spend|rs\.?|inr)\b\s*(?:is\s+|of\s+|:\s*|=\s*)?(?:rs\.?\s*|inr\s*)?)?"
                rf"\b(?P<num>\d+(?:\.\d+)?)\s*(?P<unit>{unit})?\b"
            ),
            "budget_per_item": re.compile(r"\b(?:per[\s-]*(?:item|piece|product)|each)\b"),
            "budget_total": re.compile(r"\b(?:total|overall|entire|whole|all[\s-]*in(?:clusive)?)\b"),
            "only_rooms": re.compile(r"\b(?:only|just)\b"),
            "style_override": re.compile(
                r"\b(?:(?:set|change|switch)\s+(?:the\s+)?(?:style|theme)\s+(?:to|as)|use\s+(?:the\s+)?style|style\s*:)\s*([a-z][a-z\- ]*?)(?=[,.;!?]|\s+style\b|$)"
            ),
            "style_use": re.compile(r"\buse\s+(?:a\s+|the\s+)?([a-z][a-z\-]*(?:\s+[a-z\-]+)?)\s+(?:style|theme|look)\b"),
            "style_blend": re.compile(r"\b(?:styles\s*(?::|=|to)|(?:set|use)\s+styles(?:\s+to)?|mix(?:ture)?\s+of)\s*(.+?)(?=[.;!?]|$)"),
            "style_blend_entry": re.compile(r"([a-z][a-z\- ]*?)\s*(\d+(?:\.\d+)?)?\s*%?\s*(?:,|\band\b|\+|&|$)"),
        }

    # ==================== Public API ====================

    def parse(self, text: str, prior_lines: Sequence[RequestedLine] = ()) -> RequirementDelta:
        """
        Parse one utterance against the prior requested lines.

        Args:
            text: Raw user utterance
            prior_lines: Requested lines from the previous turn

        Returns:
            RequirementDelta with command effects applied to a copy of prior_lines
        """
        lower = self.normalize_text(text)
        prior_lines = tuple(prior_lines or ())
        is_modification = bool(prior_lines) or bool(self.command_patterns["modification_context"].search(lower))
        facts = self.extract_facts(lower, planning=not is_modification)

        outcome = self.apply_commands(lower, prior_lines, allow_room_exclusion_removal=is_modification)
        delta = RequirementDelta(
            lines=prior_lines,
            facts=facts,
            is_modification=is_modification,
            alternatives_request=self._parse_alternatives_request(lower),
        )
        if outcome:
            delta.lines = outcome.lines
            delta.changes = outcome.changes
            delta.command = outcome.command
            delta.replace_request = outcome.replace_request
            logger.info(f"[PARSER] Command '{outcome.command}' produced {len(outcome.changes)} change(s)")
        elif lower and not facts.has_planning_facts and not facts.budget and not facts.style_changed and not facts.theme:
            logger.info("[PARSER] No command or planning fact recognized; no structural change")
        return delta

    def apply_commands(
        self,
        text: str,
        lines: Sequence[RequestedLine],
        allow_room_exclusion_removal: bool = True,
    ) -> Optional[CommandOutcome]:
        """Apply the first matching command rule in precedence order"""
        lower = self.normalize_text(text)
        lines = tuple(lines)
        for name, rule in self.precedence:
            if name == "remove":
                outcome = rule(lower, lines, allow_room_exclusion_removal)
            else:
                outcome = rule(lower, lines)
            if outcome is not None:
                return outcome
        return None

    @staticmethod
    def normalize_text(text: str) -> str:
        lower = (text or "").lower().replace("₹", " rs ")
        lower = re.sub(r"(?<=\d),(?=\d)", "", lower)
        return re.sub(r"\s+", " ", lower).strip()

    # ==================== Command rules ====================

    def _apply_replace(self, text: str, lines: Tuple[RequestedLine, ...]) -> Optional[CommandOutcome]:
        patterns = self.command_patterns
        room_target = self._extract_room_target(text)

        match = patterns["replace_id"].search(text)
        if match:
            item = self._match_item(match.group(1), text)
            if not item:
                return None
            item_type, subtype = item
            idx = self._find_line(lines, item_type, subtype, room_target)
            if idx < 0:
                logger.info(f"[PARSER] replace: no {item_type} line to pin id {match.group(2)}")
                return CommandOutcome(command="replace", lines=lines)
            updated = list(lines)
            updated[idx] = lines[idx].with_changes(preferred_item_id=int(match.group(2)))
            change = ChangeRecord(
                item_type=item_type,
                reason=ChangeReason.REPLACED,
                signature_before=lines[idx].signature,
                signature_after=updated[idx].signature,
                room=lines[idx].room,
            )
            return CommandOutcome("replace", tuple(updated), [change])

        for key in ("replace_name", "replace_bare"):
            match = patterns[key].search(text)
            if not match:
                continue
            item = self._match_item(match.group(1), text)
            if not item:
                continue
            item_type, subtype = item
            idx = self._find_line(lines, item_type, subtype, room_target)
            if idx < 0:
                return CommandOutcome(command="replace", lines=lines)
            name_query = match.group(2).strip() if key == "replace_name" else None
            request = ReplaceRequest(item_type=item_type, subtype=lines[idx].subtype, room=lines[idx].room, name_query=name_query)
            change = ChangeRecord(
                item_type=item_type,
                reason=ChangeReason.REPLACED,
                signature_before=lines[idx].signature,
                signature_after=lines[idx].signature,
                room=lines[idx].room,
            )
            return CommandOutcome("replace", lines, [change], replace_request=request)
        return None

    def _apply_remove(
        self,
        text: str,
        lines: Tuple[RequestedLine, ...],
        allow_room_exclusion_removal: bool = True,
    ) -> Optional[CommandOutcome]:
        patterns = self.command_patterns

        match = patterns["remove_bedroom_count"].search(text)
        if match and allow_room_exclusion_removal:
            return self._remove_bedrooms_by_count(lines, self._to_int(match.group(1)))

        match = patterns["remove_room"].search(text)
        if not match and allow_room_exclusion_removal:
            match = patterns["exclude_room"].search(text)
        if match:
            room = normalize_room(match.group(1))
            if room:
                return self._remove_room(lines, room)

        for match in patterns["remove_item"].finditer(text):
            item = self._match_item(match.group(2), text)
            if not item:
                continue
            item_type, subtype = item
            qty = self._to_int(match.group(1)) if match.group(1) else None
            idx = self._find_line(lines, item_type, subtype, self._extract_room_target(text))
            if idx < 0:
                logger.info(f"[PARSER] remove: no {item_type} line present")
                return CommandOutcome(command="remove", lines=lines)
            line = lines[idx]
            updated = list(lines)
            if qty and line.quantity > qty:
                updated[idx] = line.with_changes(quantity=line.quantity - qty)
                change = ChangeRecord(item_type, ChangeReason.QTY, line.signature, line.signature, line.room)
            else:
                del updated[idx]
                change = ChangeRecord(item_type, ChangeReason.REMOVED, None, line.signature, line.room)
            return CommandOutcome("remove", tuple(updated), [change])
        return None

    def _apply_quantity(self, text: str, lines: Tuple[RequestedLine, ...]) -> Optional[CommandOutcome]:
        patterns = self.command_patterns
        room_target = self._extract_room_target(text)
        rules = [
            ("set_qty", lambda current, n: n),
            ("increase_qty", lambda current, n: current + n),
            ("increase_to", lambda current, n: n),
            ("decrease_qty", lambda current, n: current - n),
            ("decrease_to", lambda current, n: n),
        ]
        for key, compute in rules:
            match = patterns[key].search(text)
            if not match:
                continue
            item = self._match_item(match.group(1), text)
            if not item:
                continue
            item_type, subtype = item
            n = max(1, int(match.group(2)))
            idx = self._find_line(lines, item_type, subtype, room_target)
            if idx < 0:
                return CommandOutcome(command="quantity", lines=lines)
            return self._set_quantity(lines, idx, max(1, compute(lines[idx].quantity, n)))

        match = patterns["need_qty"].search(text)
        if match:
            item = self._match_item(match.group(2), text)
            if item:
                item_type, subtype = item
                n = max(1, self._to_int(match.group(1)))
                idx = self._find_line(lines, item_type, subtype, room_target)
                if idx >= 0:
                    return self._set_quantity(lines, idx, n)
                return self._append_line(lines, item_type, subtype, n, room_target, "quantity")
        return None

    def _apply_update(self, text: str, lines: Tuple[RequestedLine, ...]) -> Optional[CommandOutcome]:
        patterns = self.command_patterns
        room_target = self._extract_room_target(text)

        match = patterns["update_attr"].search(text)
        attr, value = (match.group(2), match.group(3).strip()) if match else (None, None)
        if not match:
            match = patterns["update_seater"].search(text)
            attr, value = ("seater", match.group(2)) if match else (None, None)
        if not match:
            return None

        item = self._match_item(match.group(1), text)
        if not item:
            return None
        item_type, subtype = item
        idx = self._find_line(lines, item_type, subtype, room_target)
        if idx < 0:
            return CommandOutcome(command="update", lines=lines)

        line = lines[idx]
        if attr in ("seater", "seats"):
            digits = re.search(r"\d+", value)
            if not digits:
                return None
            updated_line = line.with_specs(seater_count=int(digits.group()))
        elif attr == "material":
            updated_line = line.with_specs(material=self.normalize_material(value))
        elif attr == "shape":
            updated_line = line.with_specs(shape=self.normalize_shape(value))
        elif attr == "size":
            updated_line = line.with_specs(size=value)
        else:
            updated_line = line.with_specs(subtype=value.split()[0])

        updated = list(lines)
        updated[idx] = updated_line.with_changes(preferred_item_id=None)
        change = ChangeRecord(
            item_type,
            ChangeReason.MODIFIED,
            signature_after=updated_line.signature,
            signature_before=line.signature,
            room=line.room,
        )
        return CommandOutcome("update", tuple(updated), [change])

    def _apply_add(self, text: str, lines: Tuple[RequestedLine, ...]) -> Optional[CommandOutcome]:
        patterns = self.command_patterns
        room_target = self._extract_room_target(text)

        match = patterns["add_id"].search(text)
        if match:
            item = self._match_item(match.group(1), text)
            if item:
                item_type, subtype = item
                outcome = self._append_line(lines, item_type, subtype, 1, room_target, "add")
                new_line = outcome.lines[-1].with_changes(preferred_item_id=int(match.group(2)))
                outcome.lines = outcome.lines[:-1] + (new_line,)
                return outcome

        for match in patterns["add"].finditer(text):
            item = self._match_item(match.group(2), text)
            if not item:
                continue
            item_type, subtype = item
            n = self._to_int(match.group(1)) if match.group(1) else 1
            idx = self._find_line(lines, item_type, subtype, room_target)
            if idx >= 0:
                return self._set_quantity(lines, idx, lines[idx].quantity + n, command="add")
            return self._append_line(lines, item_type, subtype, n, room_target, "add")
        return None

    # ==================== Command helpers ====================

    def _set_quantity(self, lines: Tuple[RequestedLine, ...], idx: int, quantity: int, command: str = "quantity") -> CommandOutcome:
        line = lines[idx]
        updated = list(lines)
        updated[idx] = line.with_changes(quantity=max(1, quantity))
        change = ChangeRecord(line.item_type, ChangeReason.QTY, line.signature, line.signature, line.room)
        return CommandOutcome(command, tuple(updated), [change])

    def _append_line(
        self,
        lines: Tuple[RequestedLine, ...],
        item_type: str,
        subtype: Optional[str],
        quantity: int,
        room_target: Optional[str],
        command: str,
    ) -> CommandOutcome:
        rooms = list(dict.fromkeys(line.room for line in lines))
        room = room_target if room_target and room_target != "bedroom" else infer_room_for_type(item_type, subtype, rooms)
        new_line = RequestedLine(item_type=item_type, room=room, quantity=max(1, quantity), specs=LineSpecs(subtype=subtype))
        change = ChangeRecord(item_type, ChangeReason.ADDED, signature_after=new_line.signature, room=room)
        return CommandOutcome(command, tuple(lines) + (new_line,), [change])

    def _remove_room(self, lines: Tuple[RequestedLine, ...], room: str) -> CommandOutcome:
        kept, changes = [], []
        for line in lines:
            if self._room_matches(line.room, room):
                changes.append(ChangeRecord(line.item_type, ChangeReason.REMOVED, None, line.signature, line.room))
            else:
                kept.append(line)
        logger.info(f"[PARSER] Removing room '{room}': {len(changes)} line(s)")
        return CommandOutcome("remove", tuple(kept), changes)

    def _remove_bedrooms_by_count(self, lines: Tuple[RequestedLine, ...], count: int) -> CommandOutcome:
        bedrooms = [room for room in dict.fromkeys(line.room for line in lines) if is_bedroom(room)]
        doomed = set(bedrooms[-count:]) if count > 0 else set()
        kept, changes = [], []
        for line in lines:
            if line.room in doomed:
                changes.append(ChangeRecord(line.item_type, ChangeReason.REMOVED, None, line.signature, line.room))
            else:
                kept.append(line)
        return CommandOutcome("remove", tuple(kept), changes)

    def _match_item(self, phrase: str, full_text: str) -> Optional[Tuple[str, Optional[str]]]:
        """Resolve the item named at the start of a captured phrase, skipping up to two descriptors"""
        words = re.sub(r"[^a-z0-9_\- ]", " ", (phrase or "").lower()).split()
        while words and words[0] in ("the", "a", "an", "my", "some", "any"):
            words = words[1:]
        for start in range(0, min(len(words), MAX_DESCRIPTOR_WORDS + 1)):
            for length in range(min(MAX_ITEM_WORDS, len(words) - start), 0, -1):
                item_type, subtype = normalize_item_type(" ".join(words[start:start + length]))
                if item_type:
                    if item_type == "table" and not subtype:
                        subtype = self._table_subtype_from_context(full_text)
                    return item_type, subtype
        return None

    @staticmethod
    def _table_subtype_from_context(text: str) -> Optional[str]:
        for subtype in ("dining", "coffee", "bedside", "side"):
            if re.search(rf"\b{subtype}\b", text):
                return subtype
        return None

    def _extract_room_target(self, text: str) -> Optional[str]:
        match = re.search(r"\b((?:master|guest|kids?)\s+bedroom(?:\s+\d+)?)\b", text)
        if match:
            return normalize_room(match.group(1))
        match = re.search(r"\bbedroom\s+(\d+)\b", text)
        if match:
            return f"bedroom {match.group(1)}"
        match = re.search(rf"\b(?:from|in|into|to|for)\s+(?:the\s+|my\s+)?({self.room_pattern})\b", text)
        if match:
            return normalize_room(match.group(1))
        return None

    @staticmethod
    def _room_matches(line_room: str, target: str) -> bool:
        line_room = (line_room or "").lower()
        if target == "bedroom":
            return is_bedroom(line_room)
        return line_room == target or line_room.startswith(target + " ")

    def _find_line(
        self,
        lines: Sequence[RequestedLine],
        item_type: str,
        subtype: Optional[str],
        room_target: Optional[str] = None,
    ) -> int:
        for idx, line in enumerate(lines):
            if line.item_type != item_type:
                continue
            if subtype and line.subtype != subtype:
                continue
            if room_target and not self._room_matches(line.room, room_target):
                continue
            return idx
        return -1

    @staticmethod
    def _to_int(token: Optional[str]) -> int:
        if not token:
            return 0
        token = token.strip()
        if token.isdigit():
            return int(token)
        return NUMBER_WORDS.get(token, 0)

    @staticmethod
    def normalize_material(value: str) -> str:
        value = (value or "").lower()
        for canonical, aliases in MATERIAL_ALIASES.items():
            if any(re.search(rf"\b{re.escape(alias)}\b", value) for alias in aliases):
                return canonical
        return value.strip()

    @staticmethod
    def normalize_shape(value: str) -> str:
        value = (value or "").lower()
        for canonical, aliases in SHAPE_ALIASES.items():
            if any(alias in value for alias in aliases):
                return canonical
        return value.strip()

    # ==================== Facts ====================

    def extract_facts(self, text: str, planning: bool = True) -> ParsedFacts:
        """
        Extract planning facts from normalized text.

        Args:
            text: Normalized (lower-cased) utterance
            planning: True for an initial planning statement; room exclusions are
                only recorded as facts in that case

        Returns:
            ParsedFacts
        """
        patterns = self.fact_patterns
        facts = ParsedFacts()

        match = patterns["bhk"].search(text)
        if match:
            facts.bhk = int(match.group(1))

        match = patterns["bedroom_target"].search(text)
        if match:
            facts.bedroom_target = self._to_int(match.group(1))
        match = patterns["bedroom_removed"].search(text)
        if match:
            facts.bedrooms_removed = self._to_int(match.group(1))
        if facts.bhk is None and facts.bedroom_target is None and facts.bedrooms_removed is None:
            match = patterns["bedroom_count"].search(text)
            if match and self._to_int(match.group(1)) > 0:
                facts.bhk = self._to_int(match.group(1))

        match = patterns["area_sqft"].search(text)
        if match:
            facts.area_sqft = int(float(match.group(1)))
        else:
            match = patterns["area_sqm"].search(text)
            if match:
                facts.area_sqft = int(round(float(match.group(1)) * 10.7639))

        facts.budget = self._extract_budget(text)

        excluded, exclusion_spans = self._extract_exclusions(text) if planning else ([], [])
        facts.excluded_rooms = excluded
        facts.rooms = self._extract_rooms(text, exclusion_spans)
        facts.only_rooms = bool(facts.rooms) and bool(patterns["only_rooms"].search(text))

        facts.style_blend = self._extract_style_blend(text)
        if not facts.style_blend:
            facts.style_override = self._extract_style_override(text)
        if not facts.style_blend:
            match = self.style_pattern.search(text)
            if match:
                facts.theme = normalize_style(match.group(1))
        facts.style_keywords = [w for w in STYLE_FINISH_WORDS if re.search(rf"\b{w}\b", text)]
        return facts

    def _extract_budget(self, text: str) -> Optional[BudgetFact]:
        patterns = self.fact_patterns
        scope = None
        if patterns["budget_per_item"].search(text):
            scope = BudgetScope.PER_ITEM
        elif patterns["budget_total"].search(text):
            scope = BudgetScope.TOTAL

        match = patterns["budget_range"].search(text)
        if match:
            high_unit = match.group(4)
            amount = self._amount(match.group(3), high_unit)
            if amount:
                return BudgetFact(amount=amount, scope=scope)

        for match in patterns["budget_amount"].finditer(text):
            number, unit, prefix = match.group("num"), match.group("unit"), match.group("prefix")
            before = text[max(0, match.start("num") - 4):match.start("num")]
            after = text[match.end("num"):match.end("num") + 12]
            if re.search(r"(?:\bid\s*|#\s*)$", before):
                continue
            if re.search(r"^\s*-?\s*(?:sq|sft|square|bhk|seat|bed|chair|door|drawer|ft|feet|m\b|%)", after):
                continue
            if not unit and not prefix and (float(number) < 1000 or "." in number):
                continue
            amount = self._amount(number, unit)
            if amount:
                return BudgetFact(amount=amount, scope=scope)
        return None

    @staticmethod
    def _amount(number: str, unit: Optional[str]) -> int:
        value = float(number)
        unit = (unit or "").lower()
        if unit.startswith(("lakh", "lac")) or unit == "l":
            value *= 100000
        elif unit in ("k", "thousand"):
            value *= 1000
        elif unit.startswith("cr"):
            value *= 10000000
        return int(round(value))

    def _extract_exclusions(self, text: str) -> Tuple[List[str], List[Tuple[int, int]]]:
        excluded: List[str] = []
        spans: List[Tuple[int, int]] = []
        verb = re.compile(r"\b(?:without|except|exclude|excluding|not\s+including|no)\s+(?:the\s+|a\s+|any\s+)?")
        room = re.compile(rf"({self.room_pattern})\b(?:\s*(?:,|and|or)\s*(?:the\s+)?)?")
        for match in verb.finditer(text):
            pos = match.end()
            start = match.start()
            while True:
                room_match = room.match(text, pos)
                if not room_match:
                    break
                name = normalize_room(room_match.group(1))
                if name and name not in excluded:
                    excluded.append(name)
                pos = room_match.end()
            if pos > match.end():
                spans.append((start, pos))
        return excluded, spans

    def _extract_rooms(self, text: str, skip_spans: Sequence[Tuple[int, int]] = ()) -> List[str]:
        rooms: List[Tuple[int, str]] = []
        taken: List[Tuple[int, int]] = list(skip_spans)
        for match in re.finditer(rf"\b({self.room_pattern})\b", text):
            if any(start <= match.start() < end for start, end in taken):
                continue
            before = text[max(0, match.start() - 6):match.start()]
            # "3 bedrooms" is a count, not an explicit room
            if re.search(r"\d\s*-?\s*$", before) and match.group(1).startswith("bed"):
                continue
            name = normalize_room(match.group(1))
            if name:
                rooms.append((match.start(), name))
                taken.append((match.start(), match.end()))
        # "bedrooms" (plural) is still an explicit mention of the generic bedroom
        for match in re.finditer(r"\bbedrooms\b", text):
            if any(start <= match.start() < end for start, end in taken):
                continue
            before = text[max(0, match.start() - 12):match.start()]
            if not re.search(r"(?:\d|" + "|".join(NUMBER_WORDS) + r")\s*-?\s*$", before):
                rooms.append((match.start(), "bedroom"))
        ordered = [name for _, name in sorted(rooms)]
        return list(dict.fromkeys(ordered))

    def _extract_style_override(self, text: str) -> Optional[str]:
        for key in ("style_override", "style_use"):
            match = self.fact_patterns[key].search(text)
            if match:
                style = normalize_style(match.group(1).strip())
                if style:
                    return style
        return None

    def _extract_style_blend(self, text: str) -> List[StyleWeight]:
        match = self.fact_patterns["style_blend"].search(text)
        if not match:
            return []
        blend = []
        for entry in self.fact_patterns["style_blend_entry"].finditer(match.group(1).strip() + ","):
            name = entry.group(1).strip()
            style = normalize_style(name) if name else None
            if style:
                weight = float(entry.group(2)) if entry.group(2) else 1.0
                blend.append(StyleWeight(name=style, weight=weight))
        return blend if len(blend) >= 2 else []

    def _parse_alternatives_request(self, text: str) -> Optional[AlternativesRequest]:
        if not self.command_patterns["alternatives"].search(text):
            return None
        match = self.command_patterns["alternatives_for"].search(text)
        if match:
            item = self._match_item(match.group(1), text)
            if item:
                return AlternativesRequest(item_type=item[0], subtype=item[1])
        return AlternativesRequest()


# Global parser instance
command_parser = CommandParser()
