"""Unit tests for the first-match cascade."""
from processor.cascade import Rule, first_match, lookup_exception


class TestFirstMatch:
    """Test cases for first_match."""

    def test_first_rule_wins(self):
        """Test that earlier rules take precedence over later ones."""
        rules = [
            Rule.of(r'CO(\d+)', lambda m, ctx: ('coop', int(m.group(1)))),
            Rule.of(r'(\d+)', lambda m, ctx: ('number', int(m.group(1)))),
        ]

        assert first_match(rules, 'CO40 Example') == ('coop', 40)
        assert first_match(rules, 'TvT 20') == ('number', 20)

    def test_none_continues_cascade(self):
        """Test that an extractor returning None hands over to the next rule."""
        rules = [
            Rule.of(r'(\d+)', lambda m, ctx: None),
            Rule.of(r'(\w+)', lambda m, ctx: m.group(1)),
        ]

        assert first_match(rules, '12 Example') == '12'

    def test_no_match(self):
        """Test that None is returned when no rule matches."""
        rules = [Rule.of(r'\d+', lambda m, ctx: m.group(0))]

        assert first_match(rules, 'Example') is None
        assert first_match([], 'Example') is None

    def test_context_passed_to_extractor(self):
        """Test that the context reaches the extractor."""
        rules = [Rule.of(r'(\d+)', lambda m, ctx: int(m.group(1)) + ctx)]

        assert first_match(rules, 'CO40', 2) == 42

    def test_flags(self):
        """Test that compile flags are applied."""
        rules = [Rule.of(r'tvt', lambda m, ctx: 'tvt', flags=2)]

        assert first_match(rules, 'TvT 20') == 'tvt'


class TestLookupException:
    """Test cases for lookup_exception."""

    def test_first_contained_key_wins(self):
        """Test that the first key found in the title is used."""
        table = (('Close Air Support', 11), ('Air', 5))

        assert lookup_exception(table, '[16.04.] Close Air Support') == 11
        assert lookup_exception(table, 'Air Assault') == 5

    def test_title_is_stripped(self):
        """Test that surrounding whitespace of the title is ignored."""
        table = (('Brig2010 Event', 10),)

        assert lookup_exception(table, '  Brig2010 Event  ') == 10

    def test_no_entry(self):
        """Test that None is returned for titles without an override."""
        assert lookup_exception((('Brig2010 Event', 10),), 'CO40 Example') is None
