"""Message template rendering tests."""

from academy.campaigns.message_template import render


class TestRender:
    def test_replaces_known_placeholders(self):
        assert render("Hi {name}, due {date}", {"name": "Ravi", "date": "5 Mar"}) == "Hi Ravi, due 5 Mar"

    def test_unknown_placeholder_left_verbatim(self):
        assert render("Hi {name}, your {unknown} awaits", {"name": "Asha"}) == "Hi Asha, your {unknown} awaits"

    def test_replaces_every_occurrence(self):
        assert render("{n}-{n}-{n}", {"n": 7}) == "7-7-7"

    def test_non_string_values_are_stringified(self):
        assert render("Age {age}, paid {paid}", {"age": 12, "paid": True}) == "Age 12, paid True"

    def test_empty_variables_returns_template(self):
        assert render("Hello {studentName}", {}) == "Hello {studentName}"

    def test_value_containing_placeholder_is_not_expanded(self):
        assert render("{a} {b}", {"a": "{b}", "b": "x"}) == "{b} x"

    def test_regex_metacharacters_in_keys(self):
        assert render("Total {amount.total} ({a+b})", {"amount.total": 10, "a+b": 3}) == "Total 10 (3)"

    def test_partial_brace_is_not_a_placeholder(self):
        assert render("{name} {name", {"name": "Kiran"}) == "Kiran {name"
