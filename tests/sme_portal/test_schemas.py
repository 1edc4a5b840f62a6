# tests/sme_portal/test_schemas.py
"""
Unit tests for SME portal Pydantic models.

Tests cover:
- SmeCandidate coercion of loosely typed model output
- Opportunity score clamping and defaults
- EmailDraft and DeployResult shapes
- SmeStatus enumeration
"""
from datetime import date

import pytest

from sme_portal.models import SmeStatus
from sme_portal.schemas import DeployResult, EmailDraft, SmeCandidate


class TestSmeStatusEnum:
    """Tests for the SmeStatus enumeration."""

    @pytest.mark.unit
    def test_status_values(self):
        """Test that SmeStatus has the pipeline stage values in order."""
        assert [s.value for s in SmeStatus] == [
            "discovered",
            "website_built",
            "deployed",
            "email_ready",
        ]

    @pytest.mark.unit
    def test_status_from_string(self):
        """Test that SmeStatus can be created from its string value."""
        assert SmeStatus("deployed") == SmeStatus.DEPLOYED


class TestSmeCandidate:
    """Tests for the SmeCandidate model."""

    @pytest.mark.unit
    def test_camel_case_aliases(self):
        """Test that camelCase keys from the model populate snake_case fields."""
        candidate = SmeCandidate.model_validate(
            {
                "name": "Anush's Jams & Co.",
                "productType": "Jam",
                "employeeCount": "2-3",
                "socialMedia": {"instagram": "https://instagram.com/anushjams"},
                "noWebsiteReason": "Sells through Instagram DMs",
            }
        )

        assert candidate.product_type == "Jam"
        assert candidate.employee_count == "2-3"
        assert candidate.social_media == {"instagram": "https://instagram.com/anushjams"}
        assert candidate.no_website_reason == "Sells through Instagram DMs"

    @pytest.mark.unit
    def test_minimal_candidate_defaults(self):
        """Test that a name-only candidate gets empty defaults."""
        candidate = SmeCandidate.model_validate({"name": "Gyumri Knits"})

        assert candidate.is_usable is True
        assert candidate.industry == ""
        assert candidate.founded_year is None
        assert candidate.opportunity_score == 75
        assert candidate.products == []
        assert candidate.followers == {}

    @pytest.mark.unit
    @pytest.mark.parametrize("name", [None, "", "   "])
    def test_nameless_candidate_unusable(self, name):
        """Test that a missing or blank name marks the candidate unusable."""
        assert SmeCandidate.model_validate({"name": name}).is_usable is False

    @pytest.mark.unit
    def test_malformed_values_coerced(self):
        """Test that wrongly typed values fall back instead of failing validation."""
        candidate = SmeCandidate.model_validate(
            {
                "name": "  Lori Honey  ",
                "foundedYear": "2019",
                "socialMedia": "instagram.com/lorihoney",
                "followers": ["1200"],
                "products": "Honey, Beeswax candles",
                "tags": None,
                "description": 42,
            }
        )

        assert candidate.name == "Lori Honey"
        assert candidate.founded_year == 2019
        assert candidate.social_media == {}
        assert candidate.followers == {}
        assert candidate.products == ["Honey", "Beeswax candles"]
        assert candidate.tags == []
        assert candidate.description == "42"

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "raw,expected",
        [(88, 88), ("91", 91), (140, 100), (-5, 0), ("high", 75), (None, 75), (True, 75), (72.6, 72)],
    )
    def test_opportunity_score(self, raw, expected):
        """Test clamping and fallback of the opportunity score."""
        assert SmeCandidate.model_validate({"name": "A", "opportunityScore": raw}).opportunity_score == expected

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "raw,expected",
        [
            (2019, 2019),
            ("1998", 1998),
            (1800, 1800),
            (date.today().year, date.today().year),
            (1799, None),
            (date.today().year + 1, None),
            ("1e20", None),
            (1e20, None),
            (-2019, None),
            ("founded long ago", None),
        ],
    )
    def test_founded_year_range(self, raw, expected):
        """Test that founding years outside 1800 to this year become unknown."""
        assert SmeCandidate.model_validate({"name": "A", "foundedYear": raw}).founded_year == expected

    @pytest.mark.unit
    def test_unknown_fields_ignored(self):
        """Test that extra keys from the model are dropped."""
        candidate = SmeCandidate.model_validate({"name": "A", "website": "none"})
        assert "website" not in candidate.model_dump()


class TestEmailDraft:
    """Tests for the EmailDraft model."""

    @pytest.mark.unit
    def test_strips_text(self):
        """Test that subject and body are stripped."""
        draft = EmailDraft.model_validate({"subject": " Hello ", "body": "Hi there\n"})
        assert draft.subject == "Hello"
        assert draft.body == "Hi there"

    @pytest.mark.unit
    def test_null_values_become_empty(self):
        """Test that null subject or body become empty strings."""
        draft = EmailDraft.model_validate({"subject": None, "body": None})
        assert draft.subject == ""
        assert draft.body == ""


class TestDeployResult:
    """Tests for the DeployResult model."""

    @pytest.mark.unit
    def test_dump_shape(self):
        """Test the response body of a deploy."""
        result = DeployResult(url="https://a.netlify.app", slug="a", note="Simulated")
        assert result.model_dump() == {
            "ok": True,
            "url": "https://a.netlify.app",
            "slug": "a",
            "note": "Simulated",
        }
