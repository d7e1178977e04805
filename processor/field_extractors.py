"""Extraction of scalar event attributes from a forum thread."""
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator, List, Optional, Tuple

from bs4 import BeautifulSoup

from processor.cascade import Rule, first_match, lookup_exception
from processor.diagnostics import report
from processor.models import (
    CREATOR_UNKNOWN,
    MAP_UNKNOWN,
    NO_ID,
    NO_SIZE,
    Diagnostic,
    DiagnosticKind,
    EventCategory,
)
from processor.normalizer import fix_encoding, normalize
from processor.reference_data import ReferenceData

logger = logging.getLogger(__name__)

THREAD_MASK_TITLE = "class='forum_thread_title'>"
THREAD_TITLE_START = "<strong>"
THREAD_TITLE_END = "</strong>"
THREAD_CREATOR_START = "<!--forum_thread_user_name-->"
THREAD_CREATOR_END = "</td>"
THREAD_CONTENT_END = "<!--sub_forum_post_message-->"
THREAD_TITLE_OFFSET_CREATOR = 5
THREAD_TITLE_OFFSET_DATE = 9
THREAD_POSTID_OFFSET_CREATOR = 3

CREATOR_REJECT = "Anonymer Benutzer"
MAP_REJECT = "JA"
DATE_FIRST_YEAR = 2012
DATE_YEAR_PRE = 20

LETTERS = "A-Za-zäöüÄÖÜß"
NAME_CHARS = LETTERS + r"\s\-/´',\.!:"

MONTHS = (
    ("Januar", 1), ("Februar", 2), ("März", 3), ("April", 4), ("Mai", 5),
    ("Juni", 6), ("Juli", 7), ("August", 8), ("September", 9),
    ("Oktober", 10), ("November", 11), ("Dezember", 12),
    ("Jan", 1), ("Feb", 2), ("Mär", 3), ("Apr", 4), ("Jun", 6), ("Jul", 7),
    ("Aug", 8), ("Sep", 9), ("Okt", 10), ("Nov", 11), ("Dez", 12),
)
MONTH_PATTERNS = tuple(
    (re.compile(rf"\s?\b{name}\b\.?"), f"{number:02d}") for name, number in MONTHS
)

POSTID_PATTERN = re.compile(r"id='post_(\d+)'>#1</a>")
THREAD_ID_PATTERN = re.compile(r"id=(\d+)")
MAP_PATTERN = re.compile(r"(?:Map|Karte)\s?:\s?(?P<map>.+)<", re.IGNORECASE)
TIME_PATTERN = re.compile(
    r"^\s*(<(strong|i)>)?(Eventbeginn|Beginn|Eventstart|Treffen im (Teamspeak|TS)|Start|"
    r"Treffen|Sammeln im Teamspeak|Trainingsbeginn)(</(strong|i)>)?:(</(strong|i)>)?"
    r"(\s|&gt;|-|ab)*(<strong>)?(?P<time>[0-9]{2}[.:]?[0-9]{2})\s*(Uhr|h)?(</strong>)?"
    r"(\s|&lt;)*<br\s?/>",
    re.IGNORECASE
)


def text_to_date(text: str) -> date:
    """
    Convert 'dd.mm.yyyy' to a date.

    Raises:
        ValueError: If the text is not a valid date
    """
    return datetime.strptime(text, '%d.%m.%Y').date()


def date_to_text(value: date) -> str:
    """Convert a date to 'dd.mm.yyyy'."""
    return f"{value.day:02d}.{value.month:02d}.{value.year:04d}"


def text_to_time(text: str) -> time:
    """
    Convert 'hh:mm:ss' to a time.

    Raises:
        ValueError: If the text is not a valid time
    """
    return datetime.strptime(text, '%H:%M:%S').time()


def time_to_text(value: time) -> str:
    """Convert a time to 'hh:mm:ss'."""
    return value.strftime('%H:%M:%S')


def iter_body(lines: List[str], start: int) -> Iterator[Tuple[int, str]]:
    """
    Iterate over the thread body following a line.

    Args:
        lines: Lines of the thread page
        start: Index of the line after which the body begins

    Yields:
        Tuples of (index, line) up to and including the content end marker
    """
    for index in range(start + 1, len(lines)):
        line = lines[index]
        yield index, line
        if THREAD_CONTENT_END in line:
            return


def find_title(lines: List[str]) -> Optional[Tuple[int, str]]:
    """
    Locate the thread title.

    Args:
        lines: Lines of the thread page

    Returns:
        Tuple of (line index, encoding-fixed title), or None if the page has no title
    """
    for index, line in enumerate(lines):
        if THREAD_MASK_TITLE not in line:
            continue
        begin = line.find(THREAD_TITLE_START, line.find(THREAD_MASK_TITLE))
        if begin < 0:
            return None
        begin += len(THREAD_TITLE_START)
        end = line.find(THREAD_TITLE_END, begin)
        title = line[begin:end] if end >= 0 else line[begin:]
        return index, fix_encoding(title)
    return None


@dataclass
class _DateContext:
    posted_at: Optional[str]
    diagnostics: Optional[List[Diagnostic]]


def _full_year(match: re.Match, context: _DateContext) -> Tuple[int, int, int]:
    return int(match.group('d')), int(match.group('m')), int(match.group('y'))


def _short_year(match: re.Match, context: _DateContext) -> Tuple[int, int, int]:
    year = int(f"{DATE_YEAR_PRE}{match.group('y')}")
    return int(match.group('d')), int(match.group('m')), year


def _posted_year(year_pattern: str):
    pattern = re.compile(year_pattern)

    def extract(match: re.Match, context: _DateContext) -> Optional[Tuple[int, int, int]]:
        year_match = pattern.search(context.posted_at or '')
        if year_match is None:
            report(
                context.diagnostics,
                DiagnosticKind.UNPARSEABLE_FIELD,
                'date',
                f"Can not read the posting year for '{match.group(0)}'"
            )
            return None
        return int(match.group('d')), int(match.group('m')), int(year_match.group('y'))

    return extract


YEAR = r"(?P<y>\d{4})"
DOT_YEAR = r"\.(?P<y>\d{4})"

DATE_RULES = (
    Rule.of(r"(?P<d>\d\d)\.(?P<m>\d\d)\.(?P<y>\d{4})", _full_year),
    Rule.of(r"[^\d](?P<d>\d)\.(?P<m>\d)\.(?P<y>\d{4})", _full_year),
    Rule.of(r"(?P<d>\d\d)\.(?P<m>\d\d)\.(?P<y>\d\d)", _short_year),
    Rule.of(r"(?P<d>\d)\.(?P<m>\d\d)\.(?P<y>\d{4})", _full_year),
    Rule.of(r"[^\d](?P<d>\d)\.(?P<m>\d\d)\.", _posted_year(YEAR)),
    Rule.of(r"[^\d.](?P<d>\d)\.(?P<m>\d\d)[^\d]", _posted_year(DOT_YEAR)),
    Rule.of(r"(?P<d>\d\d)\.(?P<m>\d\d)[^.]", _posted_year(DOT_YEAR)),
    Rule.of(r"[^.](?P<d>\d\d)\.(?P<m>\d\d)\.", _posted_year(YEAR)),
    Rule.of(r"(?P<d>\d\d)\.(?P<m>\d\d)\.[^\d]", _posted_year(YEAR)),
    Rule.of(r"(?P<d>\d\d)\.(?P<m>\d)[^\d.]", _posted_year(DOT_YEAR)),
    Rule.of(r"(?P<d>\d\d)\.(?P<m>\d)\.(?P<y>\d{4})", _full_year),
    Rule.of(r"(?P<d>\d\d)\.(?P<m>\d)\.", _posted_year(YEAR)),
    Rule.of(r"(?P<d>\d)\.(?P<m>\d)\.(?P<y>\d\d)", _short_year),
    Rule.of(r"(?P<d>\d)\.(?P<m>\d)[^\d.]", _posted_year(DOT_YEAR)),
    Rule.of(r"(?P<d>\d)\.(?P<m>\d)\.", _posted_year(YEAR)),
)


def _group_int(match: re.Match, context) -> int:
    return int(match.group(1))


SIZE_RULES = (
    Rule.of(r"[A-Za-z]+[\+\s]?(\d\d)[\s\]]", _group_int),
    Rule.of(r"[A-Za-z]{2}\+ (\d\d)\s", _group_int),
    Rule.of(r"\s[A-Za-z]{2}(\d\d)", _group_int),
    Rule.of(r"\s[A-Za-z]{4}\s?-\s?(\d\d)", _group_int),
    Rule.of(r"\s[A-Za-z]{2}(\d)\s", _group_int),
    Rule.of(r"\s[A-Za-z]{4}(\d)\s", _group_int),
    Rule.of(r"\s[A-Za-z]{2}\s(\d)\s", _group_int),
    Rule.of(r"\s[A-Za-z]{4}\s(\d\d)", _group_int),
    Rule.of(r"\s[A-Za-z]{3}(\d\d)\+", _group_int),
)


def _category(category: EventCategory):
    return lambda match, context: category


CATEGORY_RULES = tuple(
    Rule.of(pattern, _category(category), re.IGNORECASE)
    for pattern, category in (
        (r"(CO|COOP)\s?\d", EventCategory.COOP),
        (r"(CO|COOP)\+\s?\d", EventCategory.COOP_PLUS),
        (r"(TVT[\s\+]{0,2}\d)|(TVT-EVENT)|(TVT [A-Za-z])|(S-PVP)|(SKIRMISH)", EventCategory.TVT),
        (r"(BB|BLACKBOX)\s?\d", EventCategory.BLACKBOX),
        (r"COMP\s?\d", EventCategory.COMPETITION),
        (r"(MILSIM|MIL|MILSIM\+)\s?\d", EventCategory.MILSIM),
        (r"(ORG[A\s-]{0,4}[\dX])|(TRAINING)|(ÜBUNG)|(THEORIE)|(VORTRAG)", EventCategory.ORGA),
    )
)


def _stripped_group(match: re.Match, context) -> Optional[str]:
    return match.group(1).strip() or None


NAME_PREFIX = rf"[{LETTERS}\s\+´]+\d{{1,2}}\s+-?\s{{0,2}}"
NAME = rf"([{NAME_CHARS}]+)"

NAME_RULES = tuple(
    Rule.of(pattern, _stripped_group)
    for pattern in (
        rf"{NAME_PREFIX}{NAME}$",
        rf"[\"']{NAME}[\"']",
        rf"{NAME_PREFIX}{NAME}\d{{0,2}}[vV]\.?\d{{1,2}}$",
        rf"- {NAME}\s?[\[,]",
        rf"[{LETTERS}\s\+]+\d{{1,2}}\s+-?\s{{0,2}}{NAME}\d\.\d$",
        rf"[{LETTERS}\s\+]+\d{{1,2}}\s+-?\s{{0,2}}{NAME}\(",
        rf"- {NAME}$",
        rf"^{NAME}$",
        rf"[{LETTERS}\s\+\-]+\d{{1,2}}\s+-?\s{{0,2}}{NAME}\[",
        rf"\] {NAME}$",
        rf"- {NAME} - \d",
        rf"\d+\s+{NAME}$",
        rf"[{LETTERS}\s\+]+\d{{1,2}}\s+-?\s{{0,2}}{NAME}\d+$",
        rf"\d+ {NAME}$",
        rf"\d+\.? {NAME}\[",
        rf"\d+\.? {NAME} - \d",
        rf"\d+\.? {NAME}\d+",
        rf"\d+\.? {NAME}$",
        r".*(BB52 Was.*n da los\?)$",
    )
)


class FieldExtractor:
    """Extracts the scalar attributes of an event thread."""

    def __init__(self, reference: ReferenceData):
        """
        Initialize the extractor.

        Args:
            reference: Loaded reference data
        """
        self.reference = reference
        self.titles = reference.titles

    def is_ignored(self, title: str) -> bool:
        """Check whether a title belongs to a thread that is no event."""
        title = title.strip()
        return any(ignored in title for ignored in self.titles.ignored_titles)

    def extract_date(
        self,
        title: str,
        posted_at: Optional[str],
        diagnostics: Optional[List[Diagnostic]] = None
    ) -> Optional[date]:
        """
        Extract the event date from the title.

        German month names are replaced by their numbers first. Shapes
        without a year take it from the line telling when the thread was
        posted.

        Args:
            title: Thread title
            posted_at: Line holding the posting date of the thread
            diagnostics: List receiving problems

        Returns:
            Event date, or None if no shape matched
        """
        override = lookup_exception(self.titles.date, title)
        if override is not None:
            return override

        text = title
        for pattern, number in MONTH_PATTERNS:
            text = pattern.sub(number, text)

        parts = first_match(DATE_RULES, text, _DateContext(posted_at, diagnostics))
        if parts is None:
            report(diagnostics, DiagnosticKind.UNPARSEABLE_FIELD, 'date',
                   f"Can not parse date from title: {title}")
            return None

        day, month, year = parts
        if not (1 <= day <= 31 and 1 <= month <= 12
                and DATE_FIRST_YEAR <= year <= date.today().year):
            report(diagnostics, DiagnosticKind.UNPARSEABLE_FIELD, 'date',
                   f"No valid date: {day:02d}.{month:02d}.{year} ({title})")
        try:
            return _lenient_date(day, month, year)
        except (ValueError, OverflowError):
            report(diagnostics, DiagnosticKind.UNPARSEABLE_FIELD, 'date',
                   f"Date out of calendar range: {day:02d}.{month:02d}.{year}")
            return None

    def extract_start_time(
        self,
        title: str,
        lines: List[str],
        creator_index: int,
        diagnostics: Optional[List[Diagnostic]] = None
    ) -> Optional[time]:
        """
        Extract the start time from the body of the opening post.

        Args:
            title: Thread title
            lines: Lines of the thread page
            creator_index: Index of the creator line, the body follows it
            diagnostics: List receiving problems

        Returns:
            Start time, or None if no labelled time was found
        """
        override = lookup_exception(self.titles.start_time, title)
        if override is not None:
            return text_to_time(override)

        for _, line in iter_body(lines, creator_index):
            match = TIME_PATTERN.search(normalize(line))
            if match is None:
                continue
            digits = re.sub(r"[.:]", "", match.group('time'))
            hours, minutes = int(digits[:2]), int(digits[2:])
            if hours > 23 or minutes > 59:
                report(diagnostics, DiagnosticKind.UNPARSEABLE_FIELD, 'start_time',
                       f"No valid start time '{match.group('time')}' ({title})")
                return None
            return time(hours, minutes)

        report(diagnostics, DiagnosticKind.UNPARSEABLE_FIELD, 'start_time',
               f"Can not parse starting time of event: {title}")
        return None

    def extract_capacity(
        self,
        title: str,
        diagnostics: Optional[List[Diagnostic]] = None
    ) -> int:
        """Extract the number of slots from the title, or NO_SIZE."""
        override = lookup_exception(self.titles.size, title)
        if override is not None:
            return override

        size = first_match(SIZE_RULES, title)
        if size is None:
            report(diagnostics, DiagnosticKind.UNPARSEABLE_FIELD, 'capacity',
                   f"Can not parse event size from title: {title}")
            return NO_SIZE
        return size

    def extract_category(
        self,
        title: str,
        diagnostics: Optional[List[Diagnostic]] = None
    ) -> EventCategory:
        """Extract the event category from the title, or UNKNOWN."""
        override = lookup_exception(self.titles.category, title)
        if override is not None:
            return override

        category = first_match(CATEGORY_RULES, title)
        if category is None:
            report(diagnostics, DiagnosticKind.UNPARSEABLE_FIELD, 'category',
                   f"Can not parse event type from title: {title}")
            return EventCategory.UNKNOWN
        return category

    def extract_name(
        self,
        title: str,
        diagnostics: Optional[List[Diagnostic]] = None
    ) -> str:
        """
        Extract the event name from the title.

        Args:
            title: Thread title
            diagnostics: List receiving problems

        Returns:
            Event name, or the whole title if no shape matched
        """
        override = lookup_exception(self.titles.name, title)
        if override is not None:
            return override

        name = first_match(NAME_RULES, title)
        if name is None:
            report(diagnostics, DiagnosticKind.UNPARSEABLE_FIELD, 'name',
                   f"Can not parse thread name from title (using title instead): {title}")
            return title
        return name

    def extract_map(
        self,
        lines: List[str],
        creator_index: int,
        diagnostics: Optional[List[Diagnostic]] = None
    ) -> str:
        """
        Extract the map from the 'Map:' or 'Karte:' field of the body.

        Args:
            lines: Lines of the thread page
            creator_index: Index of the creator line, the body follows it
            diagnostics: List receiving problems

        Returns:
            Canonical map name, the raw name for unknown maps, or MAP_UNKNOWN
        """
        for _, line in iter_body(lines, creator_index):
            match = MAP_PATTERN.search(normalize(line))
            if match is None:
                continue
            value = BeautifulSoup(match.group('map'), 'html.parser').get_text().strip()
            if not value or value.upper() == MAP_REJECT:
                continue
            canonical = self.reference.maps.canonicalize(value)
            if canonical is None:
                report(diagnostics, DiagnosticKind.UNPARSEABLE_FIELD, 'map',
                       f"Unknown map '{value}'")
                return value
            return canonical
        return MAP_UNKNOWN

    def extract_creator(
        self,
        line: Optional[str],
        diagnostics: Optional[List[Diagnostic]] = None
    ) -> str:
        """
        Extract the thread creator from the user name line.

        Args:
            line: Line expected to hold the creator
            diagnostics: List receiving problems

        Returns:
            Canonical player name, or CREATOR_UNKNOWN
        """
        if line is None or THREAD_CREATOR_START not in line:
            report(diagnostics, DiagnosticKind.STRUCTURAL_ANOMALY, 'creator',
                   "Creator line not found")
            return CREATOR_UNKNOWN

        begin = line.index(THREAD_CREATOR_START) + len(THREAD_CREATOR_START)
        end = line.find(THREAD_CREATOR_END, begin)
        raw = line[begin:end] if end >= 0 else line[begin:]
        creator = BeautifulSoup(fix_encoding(raw), 'html.parser').get_text().strip()

        if not creator or CREATOR_REJECT in creator:
            return CREATOR_UNKNOWN
        return self.reference.aliases.resolve(creator)

    def extract_post_id(
        self,
        line: Optional[str],
        diagnostics: Optional[List[Diagnostic]] = None
    ) -> int:
        """Extract the id of the opening post, or NO_ID."""
        match = POSTID_PATTERN.search(line or '')
        if match is None:
            report(diagnostics, DiagnosticKind.UNPARSEABLE_FIELD, 'post_id',
                   "Can not parse id of the opening post")
            return NO_ID
        return int(match.group(1))

    def extract_thread_id(
        self,
        url: Optional[str],
        diagnostics: Optional[List[Diagnostic]] = None
    ) -> int:
        """Extract the thread id from the thread url, or NO_ID."""
        match = THREAD_ID_PATTERN.search(url or '')
        if match is None:
            report(diagnostics, DiagnosticKind.UNPARSEABLE_FIELD, 'thread_id',
                   f"Can not parse thread id from url: {url}")
            return NO_ID
        return int(match.group(1))


def _lenient_date(day: int, month: int, year: int) -> date:
    # Overflowing days and months roll over into the following ones
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return date(year, month, 1) + timedelta(days=day - 1)
