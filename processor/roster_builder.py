"""Extraction of the slot list of an event thread."""
import logging
import re
from enum import Enum
from typing import List, Optional

from processor.aliases import PlayerAliasResolver
from processor.diagnostics import report
from processor.field_extractors import THREAD_CONTENT_END, iter_body
from processor.models import Diagnostic, DiagnosticKind, Roster, SlotAssignment
from processor.normalizer import fix_encoding, normalize
from processor.role_classifier import RoleClassifier

logger = logging.getLogger(__name__)

HEADING_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"(Slotliste|Slotdatenbank|Slotlist|Teilnehmer|Anmeldungen|Wer kommt\?|Interessierte|"
        r"Dabei sind|Lernwillige Zöglinge|Die Auserwählten|lotliste|Zeitslots|Slotierliste|"
        r"Roster|Participants)[*:]?\s?(&lt;){0,3}</",
        r"<strong>Teilnehmer -",
        r"(Gruppe W - Die Herausforderer!|Slotliste - Server #1)[*:]?\s?(&lt;){0,3}</",
        r"Wo:</strong> Brigade2010<br />$",
        r"^Slot´s<br />$",
        r" zu vergeben:<br />$",
        r"^<strong>Gruppe DELTA:<br />$",
        r"wer dabei ist.<br />$",
        r"^1.0 Slotliste:<br />$",
        r"^<i><strong>Godfather v3</strong></i><br />$",
        r"^So, hier nun die freien Slots:<br />$",
        r"Slotliste der Mission anzupassen...<br />$",
        r"^Folgende Plätze sind verfügbar:<br />$",
        r"^Missionsstart pünktlich 2000h<br />$",
        r"Flughafen einnehmen, Team Rot verteidigt!</strong><br />$",
        r"<img src='http://i\.imgur\.com/zRMqnBu\.png'.*/>.*<br />$",
    )
)

KEY = r"#(?P<key>\d+)"
COLOR = r"<span style='color:#[a-fA-F0-9]{6}'>"
ROLE_CHARS = r"A-Za-zäöüÄÖÜß\s\+´\-\(\)/\.0-9\?,\*"
PLAYER_CHARS = r"A-Za-zäöüÄÖÜß\s´\-_0-9\?\.:"
ROLE = rf"(?P<role>[{ROLE_CHARS}]+)"
PLAYER = rf"(?P<player>[{PLAYER_CHARS}]+)"
ROLE_CLOSE = r"(</span>)?\s?(</strong></span>|</span></strong>)?\s{0,3}"
CLAN_TAG = rf"{COLOR}(<strong>)?\[?W\]?\s?</span>\s?(</strong>\s?<strong>)?"
UNCONFIRMED = r"(?P<unconfirmed> - nicht bestätigt)?"
END = rf"</strong>\s*{UNCONFIRMED}<br\s?/>"
OPEN_END = rf"(</strong>)?\s*{UNCONFIRMED}<br\s?/>"

# Slot lines with their original decoration, tried on the encoding-fixed line
MARKUP_SLOT_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        rf"{KEY}\s{{1,3}}-\s{{1,3}}({COLOR})?{ROLE}{ROLE_CLOSE}-\s{{0,3}}<strong>{CLAN_TAG}{PLAYER}{END}",
        rf"{KEY}\s{{1,3}}-\s{{1,3}}({COLOR})?{ROLE}{ROLE_CLOSE}-\s{{0,3}}<strong>\s?{PLAYER}{END}",
        rf"{KEY}\s{{1,3}}({COLOR})?{ROLE}{ROLE_CLOSE}-\s{{0,3}}<strong>{CLAN_TAG}{PLAYER}{END}",
        rf"{KEY}\s{{1,3}}({COLOR})?{ROLE}{ROLE_CLOSE}-\s{{0,3}}<strong>\s?{PLAYER}{END}",
        rf"{KEY}\s{{1,3}}({COLOR})?{ROLE}{ROLE_CLOSE}-?\s{{0,3}}<strong>\s?{CLAN_TAG}{PLAYER}{END}",
        rf"{KEY}\s{{1,3}}({COLOR})?{ROLE}{ROLE_CLOSE}-?\s{{0,3}}<strong>\s?{PLAYER}{END}",
        rf"{KEY}\s{{1,3}}-\s{{1,3}}({COLOR})?{ROLE}{ROLE_CLOSE}-?\s{{0,3}}<strong>\s?{PLAYER}{OPEN_END}",
        rf"{KEY}\s{{1,3}}({COLOR})?{ROLE}{ROLE_CLOSE}-?\s{{0,3}}<strong>\s?\[?{COLOR}(<strong>)?\[?W\]?</span>\]?"
        rf"\s?(</strong>\s?<strong>)?{PLAYER}{OPEN_END}",
        rf"{KEY}\s{{1,3}}({COLOR})?{ROLE}{ROLE_CLOSE}-?\s{{0,3}}<strong>\s?{PLAYER}{OPEN_END}",
        rf"{KEY}\s{{0,3}}-\s{{1,3}}({COLOR})?{ROLE}{ROLE_CLOSE}-?\s{{0,3}}{CLAN_TAG}(<strong>)?{PLAYER}{OPEN_END}",
        rf"({COLOR})?{KEY}\s{{0,3}}-?\s{{1,3}}{ROLE}{ROLE_CLOSE}-?\s{{0,3}}{CLAN_TAG}(<strong>)?{PLAYER}{OPEN_END}",
    )
)

# Undecorated slot lines, tried on the normalized line
PLAIN_SLOT_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        rf"^\s*{KEY}\s{{0,3}}-?\s{{1,3}}(?P<role>[{ROLE_CHARS}]+?)\s-\s(?P<player>[{PLAYER_CHARS}]+?)"
        rf"\s*(?P<unconfirmed>-\s*nicht bestätigt)?\s*<br\s?/>",
        rf"^\s*#?(?P<key>\d+)[.)]?\s+(?P<role>[{ROLE_CHARS}]+?)\s*:\s*(?P<player>[{PLAYER_CHARS}]+?)"
        rf"\s*(?P<unconfirmed>-\s*nicht bestätigt)?\s*<br\s?/>",
    )
)

DASHES = re.compile(r"^-+\s*|\s*-+$")


class ScanState(Enum):
    """Position of the roster scan within the thread body."""
    SEEKING_LIST_START = "SEEKING_LIST_START"
    IN_LIST = "IN_LIST"
    DONE = "DONE"


class RosterBuilder:
    """Builds the roster of an event from the body of its opening post."""

    def __init__(self, classifier: RoleClassifier, aliases: PlayerAliasResolver):
        self.classifier = classifier
        self.aliases = aliases

    def build(
        self,
        lines: List[str],
        creator_index: int,
        diagnostics: Optional[List[Diagnostic]] = None
    ) -> Optional[Roster]:
        """
        Scan the thread body for the slot list.

        The list starts on the line after a heading and runs to the end of
        the opening post. Lines that look like no slot are ignored.

        Args:
            lines: Lines of the thread page
            creator_index: Index of the creator line, the body follows it
            diagnostics: List receiving problems

        Returns:
            Roster with unreconciled slots, or None if no heading was found
        """
        state = ScanState.SEEKING_LIST_START
        roster = None
        body = iter_body(lines, creator_index)

        while state is not ScanState.DONE:
            entry = next(body, None)
            if entry is None:
                state = ScanState.DONE
                continue
            _, raw_line = entry
            line = fix_encoding(raw_line)
            if state is ScanState.IN_LIST:
                slot = self.parse_slot(line, diagnostics)
                if slot is not None:
                    roster.add_slot(slot)
            elif self.is_heading(line):
                state = ScanState.IN_LIST
                roster = Roster()
            if THREAD_CONTENT_END in raw_line:
                state = ScanState.DONE

        if roster is None:
            report(diagnostics, DiagnosticKind.STRUCTURAL_ANOMALY, 'roster',
                   "Can not find the slot list of the thread")
            return None
        if roster.slot_size() == 0:
            report(diagnostics, DiagnosticKind.STRUCTURAL_ANOMALY, 'roster',
                   "Can not find slots in the slot list of the thread")
        else:
            logger.debug(f"Found {roster.slot_size()} slots")
        return roster

    @staticmethod
    def is_heading(line: str) -> bool:
        return any(pattern.search(line) for pattern in HEADING_PATTERNS)

    def parse_slot(
        self,
        line: str,
        diagnostics: Optional[List[Diagnostic]] = None
    ) -> Optional[SlotAssignment]:
        """
        Parse one line of the slot list.

        Args:
            line: Encoding-fixed line
            diagnostics: List receiving problems

        Returns:
            SlotAssignment, or None if the line holds no filled slot
        """
        match = _search_any(MARKUP_SLOT_PATTERNS, line)
        if match is None:
            match = _search_any(PLAIN_SLOT_PATTERNS, normalize(line))
        if match is None:
            return None

        label = _strip_dashes(match.group('role'))
        player = _strip_dashes(match.group('player'))
        if not player:
            return None

        role = self.classifier.classify(label, diagnostics)
        return SlotAssignment(
            slot_key=int(match.group('key')),
            role=role,
            raw_role_label='' if label.lower() == role.value.lower() else label,
            player=self.aliases.resolve(player),
            unconfirmed=match.group('unconfirmed') is not None
        )


def _search_any(patterns, line: str) -> Optional[re.Match]:
    for pattern in patterns:
        match = pattern.search(line)
        if match is not None:
            return match
    return None


def _strip_dashes(text: str) -> str:
    return DASHES.sub('', text.strip()).strip()
