from __future__ import annotations

import pytest

from questionnaire_builder.surveys.engine import (
    AnswerRequiredError,
    RunnerStateError,
    SurveyRunner,
    active_branches,
    is_answered,
    load_default_questions,
)
from questionnaire_builder.surveys.normalize import parse_questions


def required_checkbox_survey():
    return parse_questions(
        [
            {
                "id": "q1",
                "type": "checkbox",
                "isRequired": True,
                "options": [{"id": "a", "label": "A"}, {"id": "b", "label": "B"}],
            },
            {"id": "q2", "type": "text", "isRequired": True},
        ]
    )


def test_default_question_set_shape():
    defaults = load_default_questions()

    assert [q["id"] for q in defaults] == ["height_weight", "heart_disease", "past_history"]
    assert [q["type"] for q in defaults] == ["text", "binary", "checkbox"]
    assert list(defaults[1]["subQuestions"]) == ["yes"]
    nested = defaults[1]["subQuestions"]["yes"][0]
    assert nested["type"] == "radio"
    assert nested["subQuestions"]["other"][0]["type"] == "text"
    assert set(defaults[2]["subQuestions"]) == {"dm", "asthma"}


def test_default_question_set_is_a_fresh_copy():
    first = load_default_questions()
    first[0]["title"] = "changed"
    assert load_default_questions()[0]["title"] != "changed"


def test_required_checkbox_blocks_advance_until_selected():
    runner = SurveyRunner(required_checkbox_survey())

    assert runner.can_advance() is False
    with pytest.raises(AnswerRequiredError) as exc:
        runner.advance()
    assert exc.value.question_id == "q1"
    assert runner.index == 0

    runner.select(runner.current, "a")
    assert runner.can_advance() is True
    assert runner.advance() is True
    assert runner.current.id == "q2"


def test_checkbox_select_toggles_membership_in_order():
    runner = SurveyRunner(required_checkbox_survey())
    q = runner.current

    runner.select(q, "b")
    runner.select(q, "a")
    assert runner.answers["q1"] == ["b", "a"]

    runner.select(q, "b")
    assert runner.answers["q1"] == ["a"]

    runner.select(q, "a")
    assert runner.answers["q1"] == []
    assert runner.can_advance() is False


def test_radio_and_binary_select_replace_the_answer():
    runner = SurveyRunner.from_raw(load_default_questions())
    heart = runner.questions[1]

    runner.select(heart, "yes")
    runner.select(heart, "no")

    assert runner.answers["heart_disease"] == "no"


def test_select_on_text_question_is_rejected():
    runner = SurveyRunner.from_raw(load_default_questions())
    with pytest.raises(RunnerStateError):
        runner.select(runner.current, "anything")


def test_select_rejects_unknown_option_ids():
    runner = SurveyRunner.from_raw(load_default_questions())
    heart = runner.questions[1]
    with pytest.raises(RunnerStateError):
        runner.select(heart, "maybe")
    assert runner.answers == {}


def test_title_and_icon_are_coerced_to_text():
    runner = SurveyRunner.from_raw([{"id": "a", "title": 123, "type": "text", "icon": 5}])
    assert runner.current.title == "123"
    assert runner.current.icon == "5"


def test_answer_updates_replace_the_mapping():
    runner = SurveyRunner.from_raw(load_default_questions())
    before = runner.answers

    runner.answer("height_weight", "170 / 60")

    assert before == {}
    assert runner.answers == {"height_weight": "170 / 60"}


def test_retreat_is_a_no_op_on_the_first_question():
    runner = SurveyRunner(required_checkbox_survey())
    assert runner.retreat() is False
    assert runner.index == 0


def test_retreat_does_not_require_an_answer():
    runner = SurveyRunner(required_checkbox_survey())
    runner.select(runner.current, "a")
    runner.advance()

    assert runner.can_advance() is False
    assert runner.retreat() is True
    assert runner.index == 0


def test_advance_on_last_question_signals_submit_instead():
    runner = SurveyRunner(required_checkbox_survey())
    runner.select(runner.current, "a")
    runner.advance()

    assert runner.is_last is True
    assert runner.advance() is False
    assert runner.index == 1


def test_submit_validates_the_last_question():
    runner = SurveyRunner(required_checkbox_survey())
    with pytest.raises(RunnerStateError):
        runner.submit()

    runner.select(runner.current, "a")
    runner.advance()
    runner.answer("q2", "")
    with pytest.raises(AnswerRequiredError):
        runner.submit()

    runner.answer("q2", "done")
    assert runner.submit() == {"q1": ["a"], "q2": "done"}


def test_empty_survey_submits_nothing():
    runner = SurveyRunner([])
    assert runner.current is None
    assert runner.advance() is False
    assert runner.submit() == {}
    assert runner.progress == 100.0


def test_progress_tracks_cursor():
    runner = SurveyRunner.from_raw(load_default_questions())
    assert runner.progress == pytest.approx(100 / 3)
    runner.answer("height_weight", "170 / 60")
    runner.advance()
    assert runner.progress == pytest.approx(200 / 3)


def test_visible_questions_follow_the_selected_branch():
    runner = SurveyRunner.from_raw(load_default_questions())
    runner.answer("height_weight", "170 / 60")
    runner.advance()
    heart = runner.current

    assert runner.visible_questions() == [(0, heart)]

    runner.select(heart, "yes")
    kind = heart.branch("yes")[0]
    assert [(level, q.id) for level, q in runner.visible_questions()] == [
        (0, "heart_disease"),
        (1, "heart_disease_type"),
    ]

    runner.select(kind, "other")
    assert [q.id for _, q in runner.visible_questions()][-1] == "heart_other_desc"

    runner.select(heart, "no")
    assert runner.visible_questions() == [(0, heart)]


def test_checkbox_branches_follow_option_order():
    questions = parse_questions(load_default_questions())
    history = questions[2]

    answers = {"past_history": ["asthma", "dm"]}

    assert [q.id for q in active_branches(history, answers)] == ["dm_meds", "asthma_last"]


def test_nested_required_questions_do_not_gate_advance():
    runner = SurveyRunner.from_raw(load_default_questions())
    runner.answer("height_weight", "170 / 60")
    runner.advance()
    runner.select(runner.current, "yes")

    # heart_disease_type is required but only the top-level answer is checked
    assert runner.can_advance() is True


@pytest.mark.parametrize(
    "value, expected",
    [(None, False), ("", False), ([], False), ("x", True), (["a"], True), (0, True)],
)
def test_is_answered_for_required_questions(value, expected):
    q = parse_questions([{"id": "q", "type": "text", "isRequired": True}])[0]
    answers = {} if value is None else {"q": value}
    assert is_answered(q, answers) is expected


def test_optional_questions_are_always_answered():
    q = parse_questions([{"id": "q", "type": "text"}])[0]
    assert is_answered(q, {}) is True
