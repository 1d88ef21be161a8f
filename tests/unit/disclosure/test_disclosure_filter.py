from app.disclosure_service.access_level import AccessTier
from app.disclosure_service.disclosure_filter import (
    category_view,
    filter_preferences,
    visible_fields,
)
from app.preference_service.schemas import PreferenceRecord


def _record():
    return PreferenceRecord.model_validate(
        {
            "music": {"enabled": True, "genre": "jazz", "volume": "low"},
            "communication": {"style": "chatty", "small_talk": True, "language": "spanish"},
            "safety": {"emergency_contacts": ["+15550100"]},
            "comfort": {
                "temperature_preference_celsius": 20,
                "window_preference": "open",
                "phone_usage": "silent",
            },
            "special_needs": {"accessibility_needs": ["wheelchair"], "service_animal": True},
            "trip": {"route_preference": "scenic", "stops_allowed": True},
        }
    )


def test_full_tier_returns_whole_record():
    record = _record()
    assert filter_preferences(record, AccessTier.FULL) == record.model_dump(mode="json")


def test_moderate_tier_hides_sensitive_categories():
    view = filter_preferences(_record(), AccessTier.MODERATE)

    assert "safety" not in view
    assert "special_needs" not in view
    assert "access_policy" not in view
    assert view["music"] == {"enabled": True, "genre": "jazz", "volume": "low"}
    assert view["communication"] == {"style": "chatty", "small_talk": True}
    assert view["trip"] == {"route_preference": "scenic"}


def test_basic_tier_fields():
    view = filter_preferences(_record(), AccessTier.BASIC)

    assert view == {
        "music": {"enabled": True},
        "communication": {"style": "chatty"},
        "comfort": {"temperature_preference_celsius": 20, "phone_usage": "silent"},
    }


def test_minimal_tier_forces_neutral_style():
    view = filter_preferences(_record(), AccessTier.MINIMAL)

    assert view == {"communication": {"style": "neutral"}}


def test_hidden_fields_are_omitted_not_nulled():
    view = filter_preferences(_record(), AccessTier.BASIC)

    assert "language" not in view["communication"]
    assert None not in [v for fields in view.values() for v in fields.values()]


def test_filter_does_not_mutate_record():
    record = _record()
    before = record.model_dump()
    filter_preferences(record, AccessTier.MINIMAL)
    assert record.model_dump() == before


def test_visible_sets_are_nested():
    def pairs(tier):
        return {(c, f) for c, fields in visible_fields(tier).items() for f in fields}

    assert pairs(AccessTier.MINIMAL) <= pairs(AccessTier.BASIC)
    assert pairs(AccessTier.BASIC) <= pairs(AccessTier.MODERATE)
    assert pairs(AccessTier.MODERATE) <= pairs(AccessTier.FULL)


def test_category_view_returns_all_fields():
    assert category_view(_record(), "special_needs") == {
        "accessibility_needs": ["wheelchair"],
        "medical_conditions": [],
        "service_animal": True,
    }
