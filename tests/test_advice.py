import pytest

from lifewheel.domain.models import DEFAULT_ADMIN_SETTINGS, AdminSettings, Classification, ScoreBoard
from lifewheel.domain.services import AdviceResolver, classify

SETTINGS = AdminSettings(
    intro_text="intro",
    advice_template_low="low",
    advice_template_high="high",
    advice_template_unbalanced="unbalanced",
)


def board(**scores):
    return ScoreBoard.from_mapping(scores)


@pytest.mark.parametrize(
    "label, expected",
    [
        (Classification.LOW, "low"),
        (Classification.BALANCED_OR_HIGH, "high"),
        (Classification.UNBALANCED, "unbalanced"),
    ],
)
def test_status_line_maps_each_label(label, expected):
    assert AdviceResolver(SETTINGS).status_line(label) == expected


def test_narrative_is_primary_but_status_line_is_kept():
    b = board(health=9, work=9, family=9, social=9, personal=9, spirituality=9)
    advice = AdviceResolver(SETTINGS).resolve(b, external_narrative="  coach says hi  ")
    assert advice.status_line == "high"
    assert advice.narrative == "coach says hi"
    assert advice.primary == "coach says hi"


def test_blank_narrative_falls_back_to_status_line():
    b = board(health=2, work=2, family=2, social=2, personal=2, spirituality=2)
    advice = AdviceResolver(SETTINGS).resolve(b, classify(b), external_narrative="   ")
    assert advice.narrative is None
    assert advice.primary == "low"


def test_status_line_needs_no_narrative():
    b = board(health=10, work=10, family=1, social=1, personal=10, spirituality=10)
    advice = AdviceResolver(DEFAULT_ADMIN_SETTINGS).resolve(b)
    assert advice.status_line == DEFAULT_ADMIN_SETTINGS.advice_template_unbalanced
    assert advice.narrative is None
