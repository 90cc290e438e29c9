import unittest

from notation_utils.currency_guard import (
    CurrencyGuard, GuardedText, ProtectedSpan, SpanKind,
    contains_placeholder, make_placeholder, protect_currency, restore_currency, unescape_currency
)


class TestCurrencyGuard(unittest.TestCase):
    def setUp(self):
        self.guard = CurrencyGuard()

    def protected_texts(self, text):
        return [span.original_text for span in self.guard.protect(text).spans]

    # --- Pattern classes ---
    def test_plain_amounts(self):
        self.assertEqual(self.protected_texts("The dinner costs $200."), ["$200"])
        self.assertEqual(self.protected_texts("Wine was $35.50."), ["$35.50"])
        self.assertEqual(self.protected_texts("A $1,000 deposit"), ["$1,000"])

    def test_amount_with_unit(self):
        self.assertEqual(self.protected_texts("Pay $25 USD now"), ["$25 USD"])
        self.assertEqual(self.protected_texts("It is $3.50 dollars"), ["$3.50 dollars"])
        self.assertEqual(self.protected_texts("Only $5 bucks"), ["$5 bucks"])
        self.assertEqual(self.protected_texts("Only $5 Dollars"), ["$5 Dollars"])  # case-insensitive

    def test_amount_with_magnitude(self):
        self.assertEqual(self.protected_texts("Raised $5 million"), ["$5 million"])
        self.assertEqual(self.protected_texts("Paid $10k, then more"), ["$10k"])

    def test_unit_before_amount(self):
        self.assertEqual(self.protected_texts("Budget: USD $25 total"), ["USD $25"])

    def test_mixed_budget_line(self):
        text = "Budget: $5 million, $10k, USD $25 and $1,250.99 USD."
        self.assertEqual(self.protected_texts(text), ["$5 million", "$10k", "USD $25", "$1,250.99 USD"])

    def test_math_is_not_currency(self):
        self.assertEqual(self.protected_texts("$x^2$ and $$E = mc^2$$"), [])
        self.assertEqual(self.protected_texts("no dollars here"), [])

    def test_boundaries(self):
        self.assertEqual(self.protected_texts("$5x is a variable"), [])
        self.assertEqual(self.protected_texts("$$5$$"), [])
        self.assertEqual(self.protected_texts("Pay \\$200"), ["$200"])

    # --- Placeholders ---
    def test_placeholder_format(self):
        self.assertEqual(make_placeholder(3), "\ue0003\ue001")
        guarded = self.guard.protect("Costs $200")
        self.assertEqual(guarded.text, "Costs \ue0000\ue001")
        self.assertTrue(contains_placeholder(guarded.text))
        self.assertNotIn("$", guarded.text)

    def test_guarded_text_properties(self):
        guarded = self.guard.protect("$5 and $6 and a \ue000 marker")
        self.assertEqual(guarded.currency_count, 2)
        self.assertEqual(len(guarded.spans), 3)
        self.assertEqual(guarded.mapping[make_placeholder(1)], "$6")

    def test_empty_input(self):
        self.assertEqual(self.guard.protect(""), GuardedText(""))
        self.assertEqual(self.guard.protect(None), GuardedText(""))

    # --- Restore ---
    def test_round_trip(self):
        for text in [
            "The dinner costs $200 and the wine $35.50.",
            "Budget: $5 million, $10k, USD $25 and $1,250.99 USD.",
            "The pasta costs $25 but $U^{Veblen}$ shows preferences, with a $50 fee.",
            "nothing to protect",
        ]:
            with self.subTest(text=text):
                guarded = protect_currency(text)
                self.assertEqual(restore_currency(guarded.text, guarded.spans), text)

    def test_literal_sentinels_are_reserved(self):
        text = "odd \ue000 and forged \ue0000\ue001 text with $5"
        guarded = self.guard.protect(text)
        kinds = [span.kind for span in guarded.spans]
        self.assertEqual(kinds.count(SpanKind.RESERVED), 3)
        self.assertEqual(kinds.count(SpanKind.CURRENCY), 1)
        self.assertEqual(self.guard.restore(guarded.text, guarded.spans), text)

    def test_unknown_placeholder_left_in_place(self):
        spans = (ProtectedSpan(make_placeholder(0), "$5"),)
        text = f"{make_placeholder(0)} and {make_placeholder(9)}"
        with self.assertLogs('notation_utils.currency_guard', level='WARNING'):
            restored = self.guard.restore(text, spans)
        self.assertEqual(restored, f"$5 and {make_placeholder(9)}")

    def test_restore_without_spans(self):
        self.assertEqual(self.guard.restore("unchanged", ()), "unchanged")

    # --- Escaped currency ---
    def test_unescape_currency(self):
        self.assertEqual(unescape_currency("costs \\$200 today"), "costs $200 today")
        self.assertEqual(unescape_currency("a literal \\$x stays"), "a literal \\$x stays")
        self.assertEqual(unescape_currency(""), "")


if __name__ == '__main__':
    unittest.main()
