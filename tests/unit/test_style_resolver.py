"""
Unit tests for the Style Resolver
"""
import pytest

from homequote.engines.quotation import StyleResolver
from homequote.engines.quotation.schemas import StyleWeight


@pytest.fixture
def resolver():
    return StyleResolver()


class TestResolve:
    """Tests for single-theme and keyword resolution"""

    @pytest.mark.unit
    def test_theme_profile(self, resolver):
        profile = resolver.resolve("modern")

        assert profile.styles == ["modern"]
        assert profile.weights["clean lines"] == 3
        assert profile.weights["sleek"] == 2
        assert profile.weights["low profile"] == 1
        assert profile.negatives == ["ornate", "distressed"]
        assert profile.hints_for("living") == ["low-profile", "neutral fabric"]
        assert profile.hints_for("bedroom 2") == ["upholstered", "handle-less"]

    @pytest.mark.unit
    def test_alias(self, resolver):
        assert resolver.resolve("scandi").styles == ["scandinavian"]

    @pytest.mark.unit
    def test_nothing_given(self, resolver):
        assert resolver.resolve() is None
        assert resolver.resolve("no-such-style") is None

    @pytest.mark.unit
    def test_keywords_only(self, resolver):
        profile = resolver.resolve(style_keywords=["Walnut"])

        assert profile.styles == []
        assert profile.weights == {"walnut": 1}


class TestBlend:
    """Tests for weighted style blends"""

    @pytest.mark.unit
    def test_blend_rescales_weights(self, resolver):
        profile = resolver.resolve(blend=[StyleWeight("modern", 60), StyleWeight("japandi", 40)])

        assert profile.styles == ["modern", "japandi"]
        assert profile.name == "Modern + Japandi"
        assert all(1 <= w <= 3 for w in profile.weights.values())
        assert profile.weights["clean lines"] == 3
        assert profile.weights["modern"] == 2
        assert profile.weights["zen"] == 1
        assert profile.negatives == ["ornate", "distressed", "glossy", "neon"]

    @pytest.mark.unit
    def test_blend_takes_precedence_over_theme(self, resolver):
        profile = resolver.resolve("industrial", blend=[StyleWeight("japandi", 1)])

        assert profile.styles == ["japandi"]

    @pytest.mark.unit
    def test_unknown_blend(self, resolver):
        assert resolver.blend([StyleWeight("unknownish", 50)]) is None


class TestScore:
    """Tests for catalog text scoring"""

    @pytest.mark.unit
    def test_bias_hints_and_negatives(self, resolver):
        profile = resolver.resolve("modern")

        assert resolver.score("Low-profile neutral fabric sofa", profile, "living") == 5
        assert resolver.score("Low-profile neutral fabric sofa", profile) == 3
        assert resolver.score("Ornate sofa", profile) == -2

    @pytest.mark.unit
    def test_no_profile_scores_zero(self, resolver):
        assert resolver.score("anything", None) == 0
