"""
Code word lists and helpers for generating, completing and parsing codes.

A code looks like ``7-crossover-clockwork``: a numeric nameplate followed by
password words drawn alternately from the two PGP word lists.
"""

from __future__ import annotations

import secrets
from typing import List, Optional, Sequence, Tuple

from .engine import InvalidCodeError

# Three-syllable PGP words.
EVEN_WORDS: Tuple[str, ...] = (
    "adroitness", "adviser", "aftermath", "aggregate", "alkali", "almighty", "amulet",
    "amusement", "antenna", "applicant", "apollo", "armistice", "article", "asteroid",
    "atlantic", "atmosphere", "autopsy", "babylon", "backwater", "barbecue",
    "belowground", "bifocals", "bodyguard", "bookseller", "borderline", "bottomless",
    "bradbury", "bravado", "brazilian", "breakaway", "burlington", "businessman",
    "butterfat", "camelot", "candidate", "cannonball", "capricorn", "caravan",
    "caretaker", "celebrate", "cellulose", "certify", "chambermaid", "cherokee",
    "chicago", "clergyman", "coherence", "combustion", "commando", "company",
    "component", "concurrent", "confidence", "conformist", "congregate", "consensus",
    "consulting", "corporate", "corrosion", "councilman", "crossover", "crucifix",
    "cumbersome", "customer", "dakota", "decadence", "december", "decimal", "designing",
    "detector", "detergent", "determine", "dictator", "dinosaur", "direction",
    "disable", "disbelief", "disruptive", "distortion", "document", "embezzle",
    "enchanting", "enrollment", "enterprise", "equation", "equipment", "escapade",
    "eskimo", "everyday", "examine", "existence", "exodus", "fascinate", "filament",
    "finicky", "forever", "fortitude", "frequency", "gadgetry", "galveston", "getaway",
    "glossary", "gossamer", "graduate", "gravity", "guitarist", "hamburger", "hamilton",
    "handiwork", "hazardous", "headwaters", "hemisphere", "hesitate", "hideaway",
    "holiness", "hurricane", "hydraulic", "impartial", "impetus", "inception", "indigo",
    "inertia", "infancy", "inferno", "informant", "insincere", "insurgent", "integrate",
    "intention", "inventive", "istanbul", "jamaica", "jupiter", "leprosy", "letterhead",
    "liberty", "maritime", "matchmaker", "maverick", "medusa", "megaton", "microscope",
    "microwave", "midsummer", "millionaire", "miracle", "misnomer", "molasses",
    "molecule", "montana", "monument", "mosquito", "narrative", "nebula", "newsletter",
    "norwegian", "october", "ohio", "onlooker", "opulent", "orlando", "outfielder",
    "pacific", "pandemic", "pandora", "paperweight", "paragon", "paragraph",
    "paramount", "passenger", "pedigree", "pegasus", "penetrate", "perceptive",
    "performance", "pharmacy", "phonetic", "photograph", "pioneer", "pocketful",
    "politeness", "positive", "potato", "processor", "provincial", "proximate",
    "puberty", "publisher", "pyramid", "quantity", "racketeer", "rebellion", "recipe",
    "recover", "repellent", "replica", "reproduce", "resistor", "responsive",
    "retraction", "retrieval", "retrospect", "revenue", "revival", "revolver",
    "sandalwood", "sardonic", "saturday", "savagery", "scavenger", "sensation",
    "sociable", "souvenir", "specialist", "speculate", "stethoscope", "stupendous",
    "supportive", "surrender", "suspicious", "sympathy", "tambourine", "telephone",
    "therapist", "tobacco", "tolerance", "tomorrow", "torpedo", "tradition", "travesty",
    "trombonist", "truncated", "typewriter", "ultimate", "undaunted", "underfoot",
    "unicorn", "unify", "universe", "unravel", "upcoming", "vacancy", "vagabond",
    "vertigo", "virginia", "visitor", "vocalist", "voyager", "warranty", "waterloo",
    "whimsical", "wichita", "wilmington", "wyoming", "yesteryear", "yucatan",
)

# Two-syllable PGP words.
ODD_WORDS: Tuple[str, ...] = (
    "aardvark", "absurd", "accrue", "acme", "adrift", "adult", "afflict", "ahead",
    "aimless", "algol", "allow", "alone", "ammo", "ancient", "apple", "artist",
    "assume", "athens", "atlas", "aztec", "baboon", "backfield", "backward", "banjo",
    "beaming", "bedlamp", "beehive", "beeswax", "befriend", "belfast", "berserk",
    "billiard", "bison", "blackjack", "blockade", "blowtorch", "bluebird", "bombast",
    "bookshelf", "brackish", "breadline", "breakup", "brickyard", "briefcase",
    "burbank", "button", "buzzard", "cement", "chairlift", "chatter", "checkup",
    "chisel", "choking", "chopper", "christmas", "clamshell", "classic", "classroom",
    "cleanup", "clockwork", "cobra", "commence", "concert", "cowbell", "crackdown",
    "cranky", "crowfoot", "crucial", "crumpled", "crusade", "cubic", "dashboard",
    "deadbolt", "deckhand", "dogsled", "dragnet", "drainage", "dreadful", "drifter",
    "dropper", "drumbeat", "drunken", "dupont", "dwelling", "eating", "edict",
    "egghead", "eightball", "endorse", "endow", "enlist", "erase", "escape", "exceed",
    "eyeglass", "eyetooth", "facial", "fallout", "flagpole", "flatfoot", "flytrap",
    "fracture", "framework", "freedom", "frighten", "gazelle", "geiger", "glitter",
    "glucose", "goggles", "goldfish", "gremlin", "guidance", "hamlet", "highchair",
    "hockey", "indoors", "indulge", "inverse", "involve", "island", "jawbone",
    "keyboard", "kickoff", "kiwi", "klaxon", "locale", "lockup", "merit", "minnow",
    "miser", "mohawk", "mural", "music", "necklace", "neptune", "newborn", "nightbird",
    "oakland", "obtuse", "offload", "optic", "orca", "payday", "peachy", "pheasant",
    "physique", "playhouse", "pluto", "preclude", "prefer", "preshrunk", "printer",
    "prowler", "pupil", "puppy", "python", "quadrant", "quiver", "quota", "ragtime",
    "ratchet", "rebirth", "reform", "regain", "reindeer", "rematch", "repay", "retouch",
    "revenge", "reward", "rhythm", "ribcage", "ringbolt", "robust", "rocker", "ruffled",
    "sailboat", "sawdust", "scallion", "scenic", "scorecard", "scotland", "seabird",
    "select", "sentence", "shadow", "shamrock", "showgirl", "skullcap", "skydive",
    "slingshot", "slowdown", "snapline", "snapshot", "snowcap", "snowslide", "solo",
    "southward", "soybean", "spaniel", "spearhead", "spellbind", "spheroid", "spigot",
    "spindle", "spyglass", "stagehand", "stagnate", "stairway", "standard", "stapler",
    "steamship", "sterling", "stockman", "stopwatch", "stormy", "sugar", "surmount",
    "suspense", "sweatband", "swelter", "tactics", "talon", "tapeworm", "tempest",
    "tiger", "tissue", "tonic", "topmost", "tracker", "transit", "trauma", "treadmill",
    "trojan", "trouble", "tumor", "tunnel", "tycoon", "uncut", "unearth", "unwind",
    "uproot", "upset", "upshot", "vapor", "village", "virus", "vulcan", "waffle",
    "wallet", "watchword", "wayside", "willow", "woodlark", "zulu",
)


class Wordlist:
    """Word source for code generation and interactive completion."""

    def __init__(self, num_words: int, words: Sequence[Sequence[str]]) -> None:
        if num_words < 1:
            raise ValueError("num_words must be at least 1")
        if not words or any(not group for group in words):
            raise ValueError("every word list must contain at least one word")
        self.num_words = num_words
        self.words: List[List[str]] = [list(group) for group in words]

    def __repr__(self) -> str:
        return f"Wordlist({self.num_words}, lots of words...)"

    def choose_words(self) -> str:
        """Return ``num_words`` random words joined by dashes, cycling through the lists."""

        components = [
            secrets.choice(self.words[index % len(self.words)]) for index in range(self.num_words)
        ]
        return "-".join(components)

    def get_wordlist(self, prefix: str, cursor_pos: Optional[int] = None) -> List[str]:
        """Return the list that applies to the component under the cursor."""

        limited = prefix
        if cursor_pos is not None and cursor_pos < len(prefix):
            limited = prefix[:cursor_pos]
        return self.words[limited.count("-") % len(self.words)]

    def get_completions(self, prefix: str, cursor_pos: Optional[int] = None) -> List[str]:
        """Complete the component ending at ``cursor_pos`` (default: end of ``prefix``).

        Each result is the text up to the cursor with that component finished;
        anything after the cursor is left for the caller to keep.
        """

        typed = prefix if cursor_pos is None else prefix[: max(0, cursor_pos)]
        partial = extract_partial_from_prefix(typed, len(typed))
        head = typed[: len(typed) - len(partial)]
        return [head + word for word in self.get_wordlist(prefix, cursor_pos) if word.startswith(partial)]


def default_wordlist(num_words: int) -> Wordlist:
    return Wordlist(num_words, [EVEN_WORDS, ODD_WORDS])


def extract_partial_from_prefix(prefix: str, pos: int) -> str:
    """Return the dash-delimited component of ``prefix`` surrounding ``pos``."""

    pos = max(0, min(pos, len(prefix)))
    start = prefix.rfind("-", 0, pos) + 1
    end = prefix.find("-", pos)
    if end == -1:
        end = len(prefix)
    return prefix[start:end]


def parse_code(code: str) -> Tuple[int, List[str]]:
    """Split ``code`` into its nameplate and password words.

    Raises InvalidCodeError when the code is empty, the nameplate is not a
    positive integer, or no password words follow it.
    """

    cleaned = (code or "").strip()
    if not cleaned:
        raise InvalidCodeError("code is empty")
    nameplate_raw, _, remainder = cleaned.partition("-")
    if not nameplate_raw.isdigit() or int(nameplate_raw) <= 0:
        raise InvalidCodeError(f"code must start with a numeric nameplate: {cleaned!r}")
    words = [word.lower() for word in remainder.split("-") if word]
    if not words:
        raise InvalidCodeError(f"code has no password words: {cleaned!r}")
    return int(nameplate_raw), words


def format_code(nameplate: int, words: str) -> str:
    return f"{nameplate}-{words}"


__all__ = [
    "EVEN_WORDS",
    "ODD_WORDS",
    "Wordlist",
    "default_wordlist",
    "extract_partial_from_prefix",
    "format_code",
    "parse_code",
]
