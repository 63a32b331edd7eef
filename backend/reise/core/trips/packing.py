"""
Packing list classification.

Any packing-list shape (JSON string, comma/newline text, list of strings,
list of {category, items}, map of category -> items) is first coerced into
``FlatPacking`` or ``GroupedPacking``. The classifier then produces exactly
four categories in fixed order, each with 3-10 clean, distinct items.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Tuple, Union

CATEGORIES = ("Klær", "Toalettsaker", "Elektronikk", "Annet")
MIN_ITEMS = 3
MAX_ITEMS = 10

STOPLIST = {"osv", "diverse", "annet", "ting", "greier"}

# Keywords wrapped in \b...\b; the rest match as substrings so Norwegian
# compounds ("fjellsko", "reiseforsikring") are caught.
WORD_ONLY = {"id", "kort", "visa", "pc", "mac", "card", "cash", "usb"}
# "strøm" (power) but not "strømper" (stockings)
TERM_PATTERNS = {"strøm": r"strøm(?!pe)"}

DOC_TERMS = [
    "pass", "id", "førerkort", "reiseforsikring", "forsikring", "kontanter", "kort", "visa",
    "passport", "insurance", "cash", "card",
]
ELECTRONICS_TERMS = [
    "lader", "kabel", "adapter", "powerbank", "power bank", "mobil", "telefon", "iphone",
    "android", "kamera", "gopro", "drone", "hodetelefon", "airpods", "pc", "laptop", "mac",
    "ipad", "nettbrett", "minnekort", "batteri", "usb", "strøm",
    "charger", "cable", "phone", "camera", "headphones",
]
TOILETRY_TERMS = [
    "tannbørste", "tannkrem", "tann", "deodor", "sjampo", "shampoo", "balsam", "såpe",
    "hudkrem", "fukt", "barber", "sminke", "linser", "kontaktlinser", "medisin", "plaster",
    "førstehjelp", "mygg", "insekt", "hånddesinf", "solkrem", "after sun",
    "toothbrush", "toothpaste", "deodorant", "sunscreen", "medication", "first aid",
]
CLOTHING_TERMS = [
    "t-skjorte", "skjorte", "genser", "bukse", "shorts", "undertøy", "sok", "strømpe", "jakke",
    "regnjakke", "vindjakke", "sko", "joggesko", "fjellsko", "sandaler", "caps", "hatt",
    "lue", "votter", "buff", "badetøy", "bikini", "badebukse", "badedrakt",
    "shirt", "jacket", "shoes", "underwear", "socks", "swimsuit", "swimwear",
]
SWIM_TERMS = ["badetøy", "bikini", "badebukse", "badedrakt", "swimsuit", "swimwear"]
GEAR_TERMS = [
    "dagstursekk", "ryggsekk", "sekk", "vannflaske", "drikkeflaske", "hodelykt", "kniv",
    "multiverktøy", "kart", "kompass", "pakkpose", "vanntett pose", "poncho", "myggnett",
    "telt", "sovepose",
    "backpack", "water bottle", "headlamp", "tent",
]

CONTEXT_PATTERNS = {
    "beach": r"strand|bade|snorkl|dykk|kyst|\bhav|surf|beach|swim|snorkel|diving|coast",
    "hike": r"\btur(?:er|en|ene)?\b|fottur|fjell|trek|\bstier?\b|vandring|\bhik(?:e|ing)\b|trail|mountain",
    "rainy": r"regn|monsun|tropisk|\bvåt|skurer|\brain|monsoon|tropical",
    "cold": r"kald|vinter|snø|frost|sibir|arktisk|\bcold\b|winter|\bsnow|arctic",
    "hot": r"varm|\bhete|tropisk|\bsol\b|\bsolrik|\bsør|ørken|\bhot\b|\bwarm|tropical|sunny|desert",
}

DEFAULT_FILLERS = {
    "Klær": ["Undertøy", "Sokker", "T-skjorter"],
    "Toalettsaker": ["Tannbørste", "Tannkrem", "Deodorant"],
    "Elektronikk": ["Mobil + lader", "Powerbank", "Hodetelefoner"],
    "Annet": ["Pass/ID-kort", "Reiseforsikring", "Liten dagstursekk"],
}

_LEADING_MARKER = re.compile(r"^(?:[-–—•*·]+|\d+[.)])\s*")
_TRAILING_PUNCT = re.compile(r"[\s;:.,\-–—]+$")
_SPLIT = re.compile(r"[\n,]")


def _compile(terms: Iterable[str]):
    parts = []
    for t in terms:
        if t in TERM_PATTERNS:
            parts.append(TERM_PATTERNS[t])
        elif t in WORD_ONLY:
            parts.append(rf"\b{re.escape(t)}\b")
        else:
            parts.append(re.escape(t))
    return re.compile("|".join(parts), re.IGNORECASE)


_DOCS = _compile(DOC_TERMS)
_ELECTRONICS = _compile(ELECTRONICS_TERMS)
_TOILETRIES = _compile(TOILETRY_TERMS)
_CLOTHING = _compile(CLOTHING_TERMS)
_SWIM = _compile(SWIM_TERMS)
_GEAR = _compile(GEAR_TERMS)
_CONTEXT = {flag: re.compile(p, re.IGNORECASE) for flag, p in CONTEXT_PATTERNS.items()}


@dataclass(frozen=True)
class FlatPacking:
    items: Tuple[str, ...]

    def all_items(self) -> List[str]:
        return list(self.items)


@dataclass(frozen=True)
class GroupedPacking:
    groups: Tuple[Tuple[str, Tuple[str, ...]], ...]

    def all_items(self) -> List[str]:
        return [item for _, items in self.groups for item in items]

    def canonical_groups(self):
        """Map canonical category -> items, or None if this isn't exactly the four categories."""
        if len(self.groups) != len(CATEGORIES):
            return None
        by_key = {c.casefold(): c for c in CATEGORIES}
        mapped = {}
        for name, items in self.groups:
            category = by_key.get(name.strip().casefold())
            if category is None or category in mapped:
                return None
            mapped[category] = list(items)
        return mapped


PackingInput = Union[FlatPacking, GroupedPacking]


def _split_text(text: str) -> List[str]:
    return [part for part in _SPLIT.split(text) if part.strip()]


def _items_from(value: Any, depth: int = 0) -> List[str]:
    """Collect raw item strings from a string, list or nested structure."""
    if depth > 5:
        return []
    if isinstance(value, str):
        parsed = _maybe_json(value)
        if parsed is not None:
            return _items_from(parsed, depth + 1)
        return _split_text(value)
    if isinstance(value, list):
        items: List[str] = []
        for element in value:
            items.extend(_items_from(element, depth + 1))
        return items
    if isinstance(value, dict):
        if "items" in value:
            return _items_from(value["items"], depth + 1)
        for key in ("name", "item", "title"):
            if isinstance(value.get(key), str):
                return _split_text(value[key])
    return []


def _maybe_json(text: str) -> Any:
    stripped = text.strip()
    if not stripped or stripped[0] not in "[{\"":
        return None
    try:
        return json.loads(stripped)
    except ValueError:
        return None


def coerce_packing(raw: Any, depth: int = 0) -> PackingInput:
    """Coerce any accepted packing-list shape into one of the two tagged forms."""
    if depth > 5 or raw is None:
        return FlatPacking(())

    if isinstance(raw, str):
        parsed = _maybe_json(raw)
        if parsed is not None:
            return coerce_packing(parsed, depth + 1)
        return FlatPacking(tuple(_split_text(raw)))

    if isinstance(raw, list):
        groups = []
        loose: List[str] = []
        for element in raw:
            if isinstance(element, dict) and ("items" in element or "category" in element):
                name = element.get("category") or element.get("name") or element.get("title") or ""
                groups.append((str(name), tuple(_items_from(element.get("items")))))
            else:
                loose.extend(_items_from(element, depth + 1))
        if not groups:
            return FlatPacking(tuple(loose))
        if loose:
            groups.append(("", tuple(loose)))
        return GroupedPacking(tuple(groups))

    if isinstance(raw, dict):
        for key in ("packing_list", "packingList", "packing"):
            if key in raw:
                return coerce_packing(raw[key], depth + 1)
        if set(raw) == {"items"}:
            return FlatPacking(tuple(_items_from(raw["items"])))
        groups = [
            (str(key), tuple(_items_from(value)))
            for key, value in raw.items()
            if isinstance(value, (list, str))
        ]
        return GroupedPacking(tuple(groups))

    return FlatPacking(())


def clean_item(value: str) -> str:
    """Collapse whitespace and strip bullet/numbering markers and trailing punctuation."""
    text = " ".join(value.split())
    while True:
        stripped = _LEADING_MARKER.sub("", text, count=1)
        if stripped == text:
            break
        text = stripped
    return _TRAILING_PUNCT.sub("", text).strip()


def is_noise(item: str) -> bool:
    return len(item) < 2 or item.casefold() in STOPLIST


def sanitize_items(items: Iterable[str]) -> List[str]:
    """Clean, drop noise and dedupe case-insensitively keeping first-seen order."""
    result: List[str] = []
    seen = set()
    for raw in items:
        if not isinstance(raw, str):
            continue
        item = clean_item(raw)
        key = item.casefold()
        if is_noise(item) or key in seen:
            continue
        seen.add(key)
        result.append(item)
    return result


def context_flags(context_text: str) -> Dict[str, bool]:
    text = context_text or ""
    return {flag: bool(pattern.search(text)) for flag, pattern in _CONTEXT.items()}


def classify_item(item: str, flags: Dict[str, bool]) -> str:
    if _DOCS.search(item):
        return "Annet"
    if _ELECTRONICS.search(item):
        return "Elektronikk"
    if _TOILETRIES.search(item):
        return "Toalettsaker"
    if _CLOTHING.search(item):
        if _SWIM.search(item) and not (flags.get("beach") or flags.get("hot")):
            return "Annet"
        return "Klær"
    return "Annet"


def filler_items(category: str, flags: Dict[str, bool]) -> List[str]:
    """Default items for a category, context-specific ones first."""
    fillers = {cat: list(items) for cat, items in DEFAULT_FILLERS.items()}
    if flags.get("rainy"):
        fillers["Klær"][:0] = ["Regnjakke"]
        fillers["Annet"][:0] = ["Vanntett pakkpose"]
    if flags.get("cold"):
        fillers["Klær"][:0] = ["Ullundertøy", "Lue og votter"]
    if flags.get("beach") or flags.get("hot"):
        fillers["Klær"][:0] = ["Badetøy"]
        fillers["Toalettsaker"][:0] = ["Solkrem"]
    if flags.get("hike"):
        fillers["Klær"][:0] = ["Gode tursko"]
        fillers["Annet"][:0] = ["Vannflaske"]
    return fillers[category]


def _fill(items: List[str], category: str, flags: Dict[str, bool]) -> List[str]:
    if len(items) >= MIN_ITEMS:
        return items
    present = {item.casefold() for item in items}
    for filler in filler_items(category, flags):
        if len(items) >= MIN_ITEMS:
            break
        if filler.casefold() not in present:
            items.append(filler)
            present.add(filler.casefold())
    return items


def classify_packing(raw: Any, context_text: str = "") -> List[Dict[str, Any]]:
    """Return exactly four {category, items} entries in fixed order.

    Input that already carries exactly the four categories is only sanitized
    and padded, never re-classified, so the function is idempotent on its own
    output.
    """
    packing = coerce_packing(raw)
    flags = context_flags(context_text)

    canonical = packing.canonical_groups() if isinstance(packing, GroupedPacking) else None
    if canonical is not None:
        buckets = {cat: sanitize_items(canonical[cat]) for cat in CATEGORIES}
    else:
        buckets = {cat: [] for cat in CATEGORIES}
        for item in sanitize_items(packing.all_items()):
            buckets[classify_item(item, flags)].append(item)

    return [
        {"category": cat, "items": _fill(buckets[cat], cat, flags)[:MAX_ITEMS]}
        for cat in CATEGORIES
    ]


def flatten_packing_items(packing_list: Any) -> List[str]:
    """All items of a normalized packing list in category order."""
    if not isinstance(packing_list, list):
        return []
    return [
        item
        for entry in packing_list
        if isinstance(entry, dict)
        for item in (entry.get("items") or [])
        if isinstance(item, str)
    ]
