"""Tests for structured-output extraction (framing, repairs, validation, fallback)."""

import pytest

from brandpulse.parsing import Provenance, StructuredOutputError, StructuredOutputExtractor, classify_payload
from brandpulse.parsing.framing import extract_balanced, strip_framing
from brandpulse.parsing.regex_fallback import extract_competitors_by_regex
from brandpulse.parsing.repair import (
    clean_json_text,
    evaluate_formulas,
    insert_missing_commas,
    normalize_quotes,
    remove_trailing_commas,
)
from brandpulse.parsing.shapes import (
    BrandMetricsShape,
    FlatArrayShape,
    MentionCountsShape,
    ScoresShape,
    UnrecognizedShape,
)
from brandpulse.parsing.types import ExtractionStage, StageFailure
from brandpulse.parsing.validation import (
    MentionCountsValidator,
    check_completeness,
    validate_competitor_list,
    validate_product_names,
)

GLOBEX = '{"name":"Globex","domain":"globex.com","industry":"Retail","relevance":"Direct Competitor"}'


@pytest.fixture
def competitor_extractor():
    return StructuredOutputExtractor(validate_competitor_list, regex_fallback=extract_competitors_by_regex)


# ---------------------------------------------------------------------------
# Framing
# ---------------------------------------------------------------------------


class TestStripFraming:
    def test_truncates_at_end_token(self):
        assert strip_framing('{"a": 1}<|endoftext|>garbage {"b": 2}') == '{"a": 1}'

    def test_each_end_token(self):
        for token in ("<|im_end|>", "<|end|>", "<|eot_id|>", "---END---"):
            assert strip_framing(f"[1]{token}tail") == "[1]"

    def test_unwraps_fenced_block(self):
        text = 'Here you go:\n```json\n{"a": 1}\n```\nHope that helps!'
        assert strip_framing(text) == '{"a": 1}'

    def test_strips_unterminated_leading_fence(self):
        assert strip_framing('```json\n{"a": 1}') == '{"a": 1}'

    def test_removes_think_block(self):
        assert strip_framing('<think>maybe {"x": 0}</think>{"a": 1}') == '{"a": 1}'


class TestExtractBalanced:
    def test_slices_first_object(self):
        assert extract_balanced('noise {"a": {"b": 1}} trailing }') == '{"a": {"b": 1}}'

    def test_braces_inside_strings_ignored(self):
        text = 'x {"a": "}{", "b": "{"} y'
        assert extract_balanced(text) == '{"a": "}{", "b": "{"}'

    def test_escaped_quote_inside_string(self):
        text = r'{"a": "say \"hi}\" now"} tail'
        assert extract_balanced(text) == r'{"a": "say \"hi}\" now"}'

    def test_array_container(self):
        assert extract_balanced('items: ["a", ["b"]] done', "[") == '["a", ["b"]]'

    def test_no_opener(self):
        with pytest.raises(StageFailure, match="no opening"):
            extract_balanced("plain text")

    def test_unbalanced(self):
        with pytest.raises(StageFailure, match="unbalanced"):
            extract_balanced('{"a": {"b": 1}')


# ---------------------------------------------------------------------------
# Repairs
# ---------------------------------------------------------------------------


class TestRepairs:
    def test_trailing_commas(self):
        assert remove_trailing_commas('{"a": [1, 2,], }') == '{"a": [1, 2]}'

    def test_single_quotes_in_structural_positions(self):
        assert normalize_quotes("{'name': 'Acme'}") == '{"name": "Acme"}'

    def test_apostrophes_inside_strings_untouched(self):
        assert normalize_quotes('{"name": "McDonald\'s"}') == '{"name": "McDonald\'s"}'

    def test_curly_quotes(self):
        assert normalize_quotes("{“name”: “Acme”}") == '{"name": "Acme"}'

    def test_adjacent_objects(self):
        assert insert_missing_commas('[{"a": 1} {"b": 2}]') == '[{"a": 1},{"b": 2}]'

    def test_simple_division(self):
        assert evaluate_formulas('{"share": 6 / 12}') == '{"share": 0.5}'

    def test_nested_formula(self):
        assert evaluate_formulas('{"x": 6 / ((1 + 10) / 187), "y": 1}') == '{"x": 102.0, "y": 1}'

    def test_plain_numbers_untouched(self):
        assert evaluate_formulas('{"a": -5, "b": 2.5}') == '{"a": -5, "b": 2.5}'

    def test_division_by_zero_left_as_is(self):
        assert evaluate_formulas('{"a": 1 / 0}') == '{"a": 1 / 0}'

    def test_clean_json_text_combines_repairs(self):
        messy = "{'competitors': [{'name': 'Globex',}\n{'name': 'Initech'},],}"
        assert clean_json_text(messy) == '{"competitors": [{"name": "Globex"},{"name": "Initech"}]}'


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestCompleteness:
    def test_accepts_balanced_object(self):
        check_completeness('{"a": ["}"]}')

    def test_rejects_trailing_text(self):
        with pytest.raises(StageFailure):
            check_completeness('{"a": 1} and more')


class TestMentionCountsValidator:
    def test_flat_counts(self):
        counts = MentionCountsValidator("Acme", ["Globex", "Initech"])({"ACME": 2, "globex": "1"})
        assert counts.brand == 2
        assert counts.competitors == {"Globex": 1, "Initech": 0}

    def test_missing_brand_fails(self):
        with pytest.raises(StageFailure, match="brand"):
            MentionCountsValidator("Acme", ["Globex"])({"Globex": 1})

    def test_negative_and_fractional_counts_coerced(self):
        counts = MentionCountsValidator("Acme", ["Globex"])({"Acme": 1.6, "Globex": -3})
        assert counts.brand == 2
        assert counts.competitors == {"Globex": 0}

    def test_brand_metrics_shape(self):
        payload = {
            "brand_metrics": {"mentions": 3},
            "competitors": [{"competitor_name": "Globex", "mentions": 1}, {"name": "Initech", "mentions": 2}],
        }
        counts = MentionCountsValidator("Acme", ["Globex", "Initech"])(payload)
        assert counts.brand == 3
        assert counts.competitors == {"Globex": 1, "Initech": 2}

    def test_unsupported_shape(self):
        with pytest.raises(StageFailure, match="shape"):
            MentionCountsValidator("Acme", ["Globex"])({"answer": "Acme twice"})

    @pytest.mark.parametrize("count", [float("nan"), float("inf"), float("-inf"), "NaN", "Infinity"])
    def test_non_finite_counts_rejected(self, count):
        with pytest.raises(StageFailure):
            MentionCountsValidator("Acme", ["Globex"])({"Acme": count, "Globex": 1})

    def test_non_finite_brand_metrics_rejected(self):
        payload = {"brand_metrics": {"mentions": float("nan")}, "competitors": []}
        with pytest.raises(StageFailure, match="finite"):
            MentionCountsValidator("Acme", ["Globex"])(payload)

    @pytest.mark.parametrize("text", ['{"Acme": NaN, "Globex": 1}', '{"Acme": 1e999, "Globex": 1}'])
    def test_extractor_rejects_non_finite_literals(self, text):
        extractor = StructuredOutputExtractor(MentionCountsValidator("Acme", ["Globex"]))
        with pytest.raises(StructuredOutputError):
            extractor.extract(text)


class TestClassifyPayload:
    def test_variants(self):
        assert isinstance(classify_payload({"Acme": 1}), MentionCountsShape)
        assert isinstance(classify_payload({"brand_metrics": {}, "competitors": []}), BrandMetricsShape)
        assert isinstance(classify_payload({"scores": {"visibility": 1}}), ScoresShape)
        assert isinstance(classify_payload([1, 2]), FlatArrayShape)
        assert isinstance(classify_payload({}), UnrecognizedShape)
        assert isinstance(classify_payload("text"), UnrecognizedShape)
        assert isinstance(classify_payload({"Acme": "lots"}), UnrecognizedShape)
        assert isinstance(classify_payload({"Acme": float("inf")}), UnrecognizedShape)


# ---------------------------------------------------------------------------
# Extractor pipeline
# ---------------------------------------------------------------------------


class TestCompetitorExtraction:
    def test_end_token_suffixed_payload(self, competitor_extractor):
        text = '{"competitors":[' + GLOBEX + ']}<|endoftext|>garbage'
        result = competitor_extractor.extract(text)
        assert result.provenance is Provenance.STRICT
        assert not result.low_confidence
        assert len(result.value.competitors) == 1
        assert result.value.competitors[0].name == "Globex"

    def test_fenced_payload_with_trailing_prose(self, competitor_extractor):
        text = '```json\n{"competitors": [' + GLOBEX + "]}\n```\nLet me know if you need more."
        assert competitor_extractor.extract(text).provenance is Provenance.STRICT

    def test_cleaning_parse(self, competitor_extractor):
        text = "{'competitors': [" + GLOBEX + ",],}"
        result = competitor_extractor.extract(text)
        assert result.provenance is Provenance.CLEANED
        assert [d.stage for d in result.diagnostics] == [ExtractionStage.STRICT_PARSE]

    def test_field_incomplete_payload_fails_without_partial_result(self, competitor_extractor):
        text = '{"competitors":[' + GLOBEX + ',{"name":"Initech","domain":"initech.com"}]}'
        with pytest.raises(StructuredOutputError) as exc_info:
            competitor_extractor.extract(text)
        stages = [d.stage for d in exc_info.value.diagnostics]
        assert ExtractionStage.VALIDATION in stages
        assert ExtractionStage.REGEX_FALLBACK not in stages

    def test_too_short_name_rejected(self, competitor_extractor):
        text = '{"competitors":[{"name":"G","domain":"g.com","industry":"Retail","relevance":"Direct Competitor"}]}'
        with pytest.raises(StructuredOutputError):
            competitor_extractor.extract(text)

    def test_truncated_payload_uses_regex_fallback(self, competitor_extractor):
        text = '{"competitors": [' + GLOBEX + ', {"name": "Initech", "domain": "init'
        result = competitor_extractor.extract(text)
        assert result.provenance is Provenance.REGEX_FALLBACK
        assert result.low_confidence
        names = [c.name for c in result.value.competitors]
        assert names == ["Globex", "Initech"]
        initech = result.value.competitors[1]
        assert initech.domain == "initech.com"
        assert initech.industry == "General"
        assert initech.relevance == "Direct Competitor"

    def test_truncated_payload_without_fallback_fails(self):
        extractor = StructuredOutputExtractor(validate_competitor_list)
        with pytest.raises(StructuredOutputError) as exc_info:
            extractor.extract('{"competitors": [' + GLOBEX)
        assert exc_info.value.diagnostics[0].stage is ExtractionStage.BRACE_MATCH

    def test_empty_text(self, competitor_extractor):
        with pytest.raises(StructuredOutputError, match="strip_framing"):
            competitor_extractor.extract("<|endoftext|>")


class TestProductNamesExtraction:
    def test_array_lowercased_and_deduplicated(self):
        extractor = StructuredOutputExtractor(validate_product_names, container="array")
        result = extractor.extract('```json\n["Road Runner", "road runner", "Anvil 3000"]\n```')
        assert result.value == ["road runner", "anvil 3000"]

    def test_rejects_non_array(self):
        with pytest.raises(StageFailure):
            validate_product_names({"name": "x"})
