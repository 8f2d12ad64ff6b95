"""Keyword detectors over free-text fishing reports."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple


@dataclass(frozen=True)
class IntelResult:
    detected: bool
    keywords: Tuple[str, ...]
    multiplier: float
    confidence: str
    recommendation: Optional[str] = None


NO_INTEL = IntelResult(False, (), 1.0, "no_intel")


def _find(text: str, keywords: Iterable[str]) -> Tuple[str, ...]:
    return tuple(k for k in keywords if k in text)


CHUM_KEYWORDS = ("chum", "chums", "dog salmon", "dogs", "staging", "river mouth")

ROCKFISH_PREY_KEYWORDS = (
    "rockfish", "rock fish", "sebastes",
    "yelloweye", "quillback", "copper rockfish", "china rockfish",
    "snapper", "red snapper",
    "greenling", "kelp greenling",
    "perch", "pile perch", "striped perch",
    "herring", "herring balls",
    "limiting on rockfish", "lots of rockfish", "rockfish bycatch",
    "small rockfish", "juvenile rockfish",
)
ROCKFISH_STRONG_PHRASES = ("limiting on rockfish", "lots of rockfish", "herring balls")

PINK_POSITIVE_KEYWORDS = (
    "pink", "pinks", "humpy", "humpies", "humpback salmon",
    "school", "schools", "schooling",
    "millions", "thick", "stacked", "loaded",
    "non-stop", "nonstop", "limiting", "limiting on pinks",
    "jumping", "rolling", "splashing",
)
PINK_NEGATIVE_KEYWORDS = ("slow", "quiet", "ghost town", "no fish", "dead", "few pinks", "scattered")
PINK_STRONG_KEYWORDS = ("millions", "thick", "limiting", "nonstop")

SOCKEYE_COMMERCIAL_KEYWORDS = (
    "commercial opening", "test set", "seine fleet",
    "dfo opening", "commission", "escapement goal",
)
SOCKEYE_SCHOOL_KEYWORDS = (
    "sockeye", "sox", "red salmon", "reds",
    "school", "schools", "jumper", "jumpers",
    "millions", "massive run", "strong run",
    "stacking", "holding",
)
SOCKEYE_STRONG_KEYWORDS = ("millions", "massive run", "stacking")


def detect_chum_activity(report_text: Optional[str]) -> IntelResult:
    if not report_text:
        return NO_INTEL
    found = _find(report_text.lower(), CHUM_KEYWORDS)
    if not found:
        return NO_INTEL
    return IntelResult(True, found, 1.0, "some_activity", "Recent reports mention chum activity")


def detect_rockfish_indicator(report_text: Optional[str]) -> IntelResult:
    """Prey presence for lingcod: rockfish and baitfish mentioned in reports."""
    if not report_text:
        return NO_INTEL
    found = _find(report_text.lower(), ROCKFISH_PREY_KEYWORDS)
    if not found:
        return NO_INTEL
    strong = any(s in k for k in found for s in ROCKFISH_STRONG_PHRASES)
    if strong or len(found) >= 3:
        return IntelResult(True, found, 1.25, "strong_prey", "STRONG PREY SIGNAL: Rockfish/baitfish reported - Lingcod will be stacked!")
    if len(found) >= 2:
        return IntelResult(True, found, 1.15, "good_prey", "Good prey presence - Lingcod likely hunting in area.")
    return IntelResult(True, found, 1.1, "some_prey", "Some prey activity - worth fishing for Lingcod.")


def detect_pink_schooling(report_text: Optional[str]) -> IntelResult:
    """Pink runs are all-or-nothing; slow reports override positive keywords."""
    if not report_text:
        return NO_INTEL
    text = report_text.lower()
    found = _find(text, PINK_POSITIVE_KEYWORDS)
    if _find(text, PINK_NEGATIVE_KEYWORDS):
        return IntelResult(bool(found), found, 0.7, "slow", "Reports say fishing is slow - schools not in")
    if len(found) >= 3 or any(k in PINK_STRONG_KEYWORDS for k in found):
        return IntelResult(True, found, 1.25, "strong_run", "Run confirmed - Pinks reported in numbers")
    if found:
        return IntelResult(True, found, 1.1, "some_activity", "Some Pink activity reported")
    return NO_INTEL


def detect_sockeye_intel(report_text: Optional[str]) -> IntelResult:
    """Commercial openings outrank angler chatter; either can confirm a run."""
    if not report_text:
        return NO_INTEL
    text = report_text.lower()
    commercial = _find(text, SOCKEYE_COMMERCIAL_KEYWORDS)
    found = commercial + _find(text, SOCKEYE_SCHOOL_KEYWORDS)
    if commercial:
        return IntelResult(True, found, 1.5, "massive_run", "Commercial/DFO activity confirms a massive run")
    if len(found) >= 3 or any(k in SOCKEYE_STRONG_KEYWORDS for k in found):
        return IntelResult(True, found, 1.3, "confirmed_schools", "Schools confirmed in recent reports")
    if found:
        return IntelResult(True, found, 1.15, "some_activity", "Some Sockeye activity reported")
    return NO_INTEL


# ---- bait presence (salmon and halibut) ----

BAIT_KEYWORDS = (
    "herring", "herring balls", "bait balls", "baitfish", "needle fish", "needlefish",
    "krill", "krill boils", "euphausiids", "anchovies", "sardines", "pilchards",
    "sandlance", "sand lance", "candlefish", "eulachon", "smelt",
    "bait", "feed", "feeding", "schools", "schooling", "marks", "marking",
)
BAIT_MASSIVE = ("massive", "huge", "incredible", "everywhere", "thick", "packed")
BAIT_HIGH = ("lots", "plenty", "good", "strong", "abundant")
BAIT_MODERATE = ("some", "moderate", "decent", "present")
BAIT_LOW = ("scattered", "sparse", "few", "limited", "occasional")
BAIT_HIGH_VALUE = ("herring balls", "bait balls", "krill boils", "needle fish")


@dataclass(frozen=True)
class BaitIntel:
    presence: str  # none | low | moderate | high | massive
    keywords: Tuple[str, ...]
    score: float
    is_override: bool
    recommendation: str


_BAIT_LEVELS = {
    "massive": (1.0, "MASSIVE BAIT: Predators stacked. Fish regardless of other conditions."),
    "high": (0.9, "Strong bait presence. Excellent fishing likely."),
    "moderate": (0.7, "Moderate bait in area. Good chances."),
    "low": (0.4, "Limited bait. May need to search for fish."),
    "none": (0.3, "No bait reported. Use attractants and cover more water."),
}


def bait_presence_level(text: str, keywords: Tuple[str, ...]) -> str:
    if not keywords:
        return "none"
    if _find(text, BAIT_MASSIVE):
        return "massive"
    if _find(text, BAIT_HIGH) or len(keywords) >= 3:
        return "high"
    if _find(text, BAIT_MODERATE) or len(keywords) >= 2:
        return "moderate"
    if _find(text, BAIT_LOW):
        return "low"
    return "moderate"


def detect_bait_presence(report_text: Optional[str], default: str = "none") -> BaitIntel:
    """Grade bait in the reports; ``default`` applies when there is no report at all.

    Massive bait sets ``is_override``: the caller floors the total.
    """
    if report_text:
        text = report_text.lower()
        found = _find(text, BAIT_KEYWORDS)
        presence = bait_presence_level(text, found)
    else:
        found, presence = (), default
    score, recommendation = _BAIT_LEVELS[presence]
    if score < 0.9 and any(hv in k for k in found for hv in BAIT_HIGH_VALUE):
        score = min(score + 0.15, 1.0)
    return BaitIntel(presence, found, score, presence == "massive", recommendation)


# ---- predator suppression (orca) ----

PREDATOR_KEYWORDS = (
    "orca", "orcas", "killer whale", "killer whales", "blackfish",
    "shut down", "shutdown", "locked up", "no bites", "went quiet",
    "whales pushed through", "whales came through", "pods",
    "t18", "t19", "t46", "t65", "t60",
    "biggs", "transient",
)
ORCA_KEYWORDS = ("orca", "orcas", "killer whale", "killer whales", "blackfish", "biggs", "transient")
SHUTDOWN_KEYWORDS = ("shut down", "shutdown", "locked up", "no bites", "went quiet")


def detect_predator_presence(report_text: Optional[str]) -> IntelResult:
    """Orca in the area puts salmon down; ``multiplier`` is the suppression."""
    if not report_text:
        return NO_INTEL
    found = _find(report_text.lower(), PREDATOR_KEYWORDS)
    if not found:
        return NO_INTEL
    orca = any(k in ORCA_KEYWORDS for k in found)
    shutdown = any(k in SHUTDOWN_KEYWORDS for k in found)
    if orca and shutdown:
        return IntelResult(True, found, 0.4, "orca_shutdown",
                           "ORCA ALERT: Killer whales reported causing shutdown. Expect very slow fishing.")
    if orca:
        return IntelResult(True, found, 0.5, "orca", "ORCA ALERT: Killer whales reported in area. Salmon may be suppressed.")
    if shutdown:
        return IntelResult(True, found, 0.6, "shutdown", "Fishing reportedly shut down. May be predator-related.")
    return IntelResult(True, found, 0.7, "possible_predator", "Possible predator activity mentioned in reports.")
