import random
import unittest
from unittest import mock

from notation_utils.currency_guard import SENTINEL_CLOSE, SENTINEL_OPEN
from notation_utils.delimiter_rewriter import LayoutThresholds
from notation_utils.normalizer import (
    NormalizationError, NotationNormalizer, inspect_normalization, normalize
)
from notation_utils.self_test import (
    SELF_TEST_CASES, DiffSpan, SelfTestCase, diff_span, run_self_tests
)

SAMPLES = [
    "The dinner costs $200 and the wine $35.50.",
    "The pasta costs $25 but $U^{Veblen}$ shows preferences, with a $50 fee.",
    "Let x^2 grow.",
    "Ratio: frac{a^{2}+b^{2}+c^{2}}{x^{2}+y^{2}+z^{2}} here.",
    "lim_{x->0} sin(x)/x",
    "int_{0}^{1} x^2 dx",
    "The alpha coefficient costs $5 million",
    "Area is r² and √2 ≈ 1.41",
    "Already \\(x^2\\) and \\[\\frac{a}{b}\\] with $$E = mc^2$$ and $50.",
    "\\begin{align} a &= b \\end{align} then $x^{2$",
    "p <=<= q and x <=-> y",
    "$x^2$$y^2$",
    "$x^2 +\n y^2$",
    "see https://example.com/a_b/x_1.html or contact j_d@mail.com",
]

# Building blocks for generated inputs: operators, dollars, currency, scripts, addresses
GENERATED_TOKENS = [
    "x^2", "a_{1}", "x_1", "H_2O", "my_var", "hello", "sin(x)", "=",
    "$", "$5", "$200", "$25 USD", "USD $5", "\\$5", "$x^2$", "$ y_{2} $", "$hello$",
    "->", "<=", ">=", "!=", "<=<=", "<=->", "-->", "infinity",
    "alpha", "beta", "α", "r²", "√2",
    "frac{a}{b}", "sqrt{2}", "sum_{i=1}^{n}", "lim_{x->0}", "int_{0}^{1}",
    "\\(y\\)", "{", "}",
    "https://example.com/a_b", "j_d@mail.com",
]
GENERATED_SEPARATORS = [" ", " ", "\n", ", "]
GENERATED_SEED = 20240611
GENERATED_COUNT = 400


def generated_inputs():
    rng = random.Random(GENERATED_SEED)
    for _ in range(GENERATED_COUNT):
        tokens = [rng.choice(GENERATED_TOKENS) for _ in range(rng.randint(1, 8))]
        text = tokens[0]
        for token in tokens[1:]:
            text += rng.choice(GENERATED_SEPARATORS) + token
        yield text


class TestNormalizationAccuracy(unittest.TestCase):
    def setUp(self):
        self.normalizer = NotationNormalizer()

    # --- Currency preservation ---
    def test_currency_unchanged(self):
        self.assertEqual(normalize("The dinner costs $200."), "The dinner costs $200.")
        self.assertEqual(normalize("Raised $5 million and $10k"), "Raised $5 million and $10k")

    def test_mixed_currency_and_math(self):
        self.assertEqual(
            normalize("The pasta costs $25 but $U^{Veblen}$ shows preferences, with a $50 fee."),
            "The pasta costs $25 but \\(U^{Veblen}\\) shows preferences, with a $50 fee."
        )

    # --- Layout ---
    def test_simple_inline_math(self):
        self.assertEqual(normalize("Let x^2 grow."), "Let \\(x^2\\) grow.")
        self.assertEqual(normalize("sqrt{2}"), "\\(\\sqrt{2}\\)")

    def test_nested_fraction_is_display(self):
        self.assertEqual(
            normalize("frac{a^{2}+b^{2}+c^{2}}{x^{2}+y^{2}+z^{2}}"),
            "\\[\\frac{a^{2}+b^{2}+c^{2}}{x^{2}+y^{2}+z^{2}}\\]"
        )

    def test_limits_and_integrals(self):
        self.assertEqual(normalize("lim_{x->0} sin(x)/x"), "\\(\\lim_{x \\to 0} sin(x)/x\\)")
        self.assertEqual(normalize("int_{0}^{1} x^2 dx"), "\\(\\int_{0}^{1} x^2 dx\\)")

    def test_long_sum_body_is_display(self):
        self.assertEqual(
            normalize("sum_{i=1}^{n} a_i+b_i+c_i+d_i+e_i+f_i"),
            "\\[\\sum_{i=1}^{n} a_i+b_i+c_i+d_i+e_i+f_i\\]"
        )

    def test_fraction_threshold_is_configurable(self):
        text = "frac{abcdefghijklm}{n}"
        self.assertEqual(normalize(text), "\\[\\frac{abcdefghijklm}{n}\\]")
        relaxed = NotationNormalizer(LayoutThresholds(frac_operand=20))
        self.assertEqual(relaxed.normalize(text), "\\(\\frac{abcdefghijklm}{n}\\)")

    # --- Things that must stay prose ---
    def test_avoid_wrapping_identifiers(self):
        self.assertEqual(normalize("my_variable_name = another_var;"), "my_variable_name = another_var;")
        self.assertEqual(normalize("sum_of_squares"), "sum_of_squares")
        self.assertEqual(normalize("This is a normal sentence."), "This is a normal sentence.")

    def test_greek_words(self):
        self.assertEqual(normalize("The alpha coefficient"), "The \\(\\alpha\\) coefficient")
        self.assertEqual(normalize("Pay $5 dollars for alpha."), "Pay $5 dollars for \\(\\alpha\\).")

    def test_existing_delimiters_preserved(self):
        text = "Already \\(x^2\\) and \\[\\frac{a}{b}\\] with $$E = mc^2$$ and $50."
        self.assertEqual(normalize(text), text)
        latex = "\\begin{align} a &= b \\\\ c &= d \\end{align}"
        self.assertEqual(normalize(latex), latex)

    def test_unbalanced_braces_left_alone(self):
        self.assertEqual(normalize("$x^{2$ is broken"), "$x^{2$ is broken")

    def test_operator_runs_stay_whole(self):
        self.assertEqual(normalize("p <=<= q"), "p <=<= q")
        self.assertEqual(normalize("x <=-> y"), "x <=-> y")
        self.assertEqual(normalize("p <= q"), "p \\(\\leq\\) q")

    def test_unmatched_dollars_left_alone(self):
        self.assertEqual(normalize("$x^2$$y^2$"), "$x^2$$y^2$")
        self.assertEqual(normalize("$x^2 +\n y^2$"), "$x^2 +\n y^2$")
        self.assertEqual(normalize("Costs $5 and x^2 $ more"), "Costs $5 and \\(x^2\\) $ more")

    def test_addresses_left_alone(self):
        for text in ["see https://example.com/a_b/x_1.html", "contact j_d@mail.com"]:
            with self.subTest(text=text):
                self.assertEqual(normalize(text), text)

    # --- Pipeline properties ---
    def test_idempotence(self):
        for text in SAMPLES:
            with self.subTest(text=text):
                once = normalize(text)
                self.assertEqual(normalize(once), once)

    def test_no_placeholder_leakage(self):
        for text in SAMPLES:
            with self.subTest(text=text):
                output = normalize(text)
                self.assertNotIn(SENTINEL_OPEN, output)
                self.assertNotIn(SENTINEL_CLOSE, output)

    def test_generated_inputs_are_stable(self):
        for text in generated_inputs():
            with self.subTest(text=text):
                once = normalize(text)
                self.assertEqual(normalize(once), once)
                self.assertNotIn(SENTINEL_OPEN, once)
                self.assertNotIn(SENTINEL_CLOSE, once)

    def test_literal_sentinels_survive(self):
        text = f"odd {SENTINEL_OPEN}0{SENTINEL_CLOSE} marker next to $5"
        self.assertEqual(normalize(text), text)

    def test_empty_and_non_string_input(self):
        self.assertEqual(normalize(""), "")
        self.assertEqual(normalize(None), "")

    def test_unescape_dollars(self):
        normalizer = NotationNormalizer(unescape_dollars=True)
        self.assertEqual(normalizer.normalize("It costs \\$200 today"), "It costs $200 today")
        self.assertEqual(normalize("It costs \\$200 today"), "It costs \\$200 today")

    def test_inspect(self):
        result = inspect_normalization("Costs $5 and x^2")
        self.assertTrue(result.changed)
        self.assertEqual(result.output, "Costs $5 and \\(x^2\\)")
        self.assertEqual([span.original_text for span in result.protected], ["$5"])
        self.assertEqual([span.raw_content for span in result.math_spans], ["x^2"])

    # --- Failure handling ---
    def test_strict_mode_raises(self):
        with mock.patch.object(self.normalizer.classifier, 'classify', side_effect=RuntimeError("boom")):
            with self.assertRaises(NormalizationError):
                self.normalizer.normalize_strict("x^2")

    def test_failure_returns_input(self):
        with mock.patch.object(self.normalizer.classifier, 'classify', side_effect=RuntimeError("boom")):
            with self.assertLogs('notation_utils.normalizer', level='ERROR'):
                self.assertEqual(self.normalizer.normalize("x^2 costs $5"), "x^2 costs $5")


class TestSelfTest(unittest.TestCase):
    def test_all_cases_pass(self):
        report = run_self_tests()
        self.assertTrue(report.passed, report.format())
        self.assertEqual(len(report.results), len(SELF_TEST_CASES))

    def test_each_case(self):
        normalizer = NotationNormalizer()
        for case in SELF_TEST_CASES:
            with self.subTest(case=case.name):
                self.assertEqual(normalizer.normalize(case.text), case.expected)

    def test_mismatch_is_reported_not_raised(self):
        cases = [SelfTestCase("wrong_expectation", "x^2", "x^2")]
        with self.assertLogs('notation_utils.self_test', level='ERROR'):
            report = run_self_tests(cases=cases)
        self.assertFalse(report.passed)
        self.assertEqual(report.summary(), "0/1 self-test case(s) passed")
        self.assertIn("wrong_expectation", report.format())

    def test_diff_span(self):
        self.assertIsNone(diff_span("same", "same"))
        self.assertEqual(diff_span("abcXdef", "abcYYdef"), DiffSpan(3, "X", "YY"))
        self.assertEqual(diff_span("abc", "abcd"), DiffSpan(3, "", "d"))


if __name__ == '__main__':
    unittest.main()
