"""Role classification of free-text slot labels."""
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Mapping, Optional, Pattern, Sequence, Tuple

from processor.diagnostics import report
from processor.models import Diagnostic, DiagnosticKind, RoleCategory


@dataclass(frozen=True)
class RoleRule:
    """Pattern that must match a whole label to yield its category."""
    category: RoleCategory
    pattern: Pattern

    @classmethod
    def compile(cls, category: RoleCategory, pattern: str) -> 'RoleRule':
        return cls(category=category, pattern=re.compile(pattern, re.IGNORECASE))

    def matches(self, label: str) -> bool:
        return self.pattern.fullmatch(label) is not None


class RoleClassifier:
    """
    Three-tier classifier for role labels.

    Tiers are tried in order and the first hit wins: the ordered rule list,
    the category names themselves, then the table of historical labels.
    """

    def __init__(
        self,
        rules: Sequence[RoleRule],
        labels: Mapping[str, RoleCategory]
    ):
        """
        Initialize the classifier.

        Args:
            rules: Ordered rules, earlier rules take precedence
            labels: Historical label to category table, matched case-insensitively
        """
        self._rules: Tuple[RoleRule, ...] = tuple(rules)
        self._labels = MappingProxyType(
            {label.lower(): category for label, category in labels.items()}
        )
        self._qualifiers = tuple(
            (category, re.compile(rf"\({re.escape(category.value)}\)", re.IGNORECASE))
            for category in RoleCategory
            if category is not RoleCategory.UNKNOWN
        )

    def classify(
        self,
        label: str,
        diagnostics: Optional[List[Diagnostic]] = None
    ) -> RoleCategory:
        """
        Classify a role label.

        Args:
            label: Role label as written in the slot list
            diagnostics: Optional list that receives a diagnostic on a miss

        Returns:
            Matching RoleCategory, or RoleCategory.UNKNOWN
        """
        label = label.strip()

        for rule in self._rules:
            if rule.matches(label):
                return rule.category

        category = self._match_category_name(label)
        if category is not None:
            return category

        category = self._labels.get(label.lower())
        if category is not None:
            return category

        report(
            diagnostics,
            DiagnosticKind.CLASSIFICATION_MISS,
            'role',
            f"Can not classify role label '{label}'"
        )
        return RoleCategory.UNKNOWN

    def _match_category_name(self, label: str) -> Optional[RoleCategory]:
        lowered = label.lower()
        # Several qualifiers: the category declared first wins
        for category, qualifier in self._qualifiers:
            if lowered == category.value.lower() or qualifier.search(label):
                return category
        return None
