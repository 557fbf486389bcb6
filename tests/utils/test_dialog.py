# -*- coding: utf-8 -*-
"""Tests for utils.dialog: building dialogs and parsing their answers"""

from datetime import UTC, datetime

import pytest

from models.form import FieldStyle, Form, FormField
from utils.dialog import build_dialog, form_signature, parse_answers
from utils.errors import FormularEmptyFormError, FormularMismatchError, FormularValidationError

USER_ID = 42


def _feedback_form():
    form = Form.create(1, "Feedback", 2)
    form.Id = 7
    form.add_field(FormField.create("Name", max_length=50))
    form.add_field(FormField.create("Comments", FieldStyle.PARAGRAPH, required=False, max_length=500))
    return form


class TestBuildDialog:
    def test_inputs_follow_field_order(self):
        dialog = build_dialog(_feedback_form())
        assert dialog.form_id == 7
        assert dialog.title == "Feedback"
        assert dialog.field_count == 2
        assert [(i.position, i.label) for i in dialog.inputs] == [(0, "Name"), (1, "Comments")]

    def test_input_constraints(self):
        name, comments = build_dialog(_feedback_form()).inputs
        assert name.style == FieldStyle.SHORT
        assert name.required is True
        assert (name.min_length, name.max_length) == (1, 50)
        assert comments.style == FieldStyle.PARAGRAPH
        assert comments.required is False
        assert (comments.min_length, comments.max_length) == (0, 500)

    def test_custom_id_carries_form_and_shape(self):
        form = _feedback_form()
        dialog = build_dialog(form)
        assert dialog.custom_id == f"formular:submit:7:2:{form_signature(form)}"
        assert [i.custom_id for i in dialog.inputs] == ["0", "1"]

    def test_empty_form_rejected(self):
        with pytest.raises(FormularEmptyFormError):
            build_dialog(Form.create(1, "Empty", 2))

    def test_signature_changes_with_labels(self):
        form = _feedback_form()
        before = form_signature(form)
        form.rename_field(1, "Remarks")
        assert form_signature(form) != before


class TestParseAnswers:
    def test_feedback_scenario(self):
        form = _feedback_form()
        submitted_at = datetime(2024, 1, 1, tzinfo=UTC)
        submission = parse_answers(form, ["Ann", ""], user_id=USER_ID, submitted_at=submitted_at)
        assert submission.pairs() == [(0, "Ann"), (1, "")]
        assert submission.user_id == USER_ID
        assert submission.form_id == 7
        assert submission.guild_id == 1
        assert submission.submitted_at == submitted_at

    def test_optional_answer_over_limit(self):
        form = _feedback_form()
        with pytest.raises(FormularValidationError) as exc_info:
            parse_answers(form, ["Ann", "x" * 600], user_id=USER_ID)
        assert exc_info.value.label == "Comments"
        assert exc_info.value.reason == "max_length"
        assert exc_info.value.limit == 500
        assert str(exc_info.value) == "'Comments' must be at most 500 characters."

    def test_required_answer_blank(self):
        with pytest.raises(FormularValidationError) as exc_info:
            parse_answers(_feedback_form(), ["   ", ""], user_id=USER_ID)
        assert exc_info.value.label == "Name"
        assert exc_info.value.reason == "required"

    def test_min_length(self):
        form = Form.create(1, "Bio", 2)
        form.add_field(FormField.create("About you", min_length=10))
        with pytest.raises(FormularValidationError) as exc_info:
            parse_answers(form, ["short"], user_id=USER_ID)
        assert exc_info.value.reason == "min_length"
        assert exc_info.value.limit == 10

    def test_optional_empty_answer_skips_bounds(self):
        form = Form.create(1, "Bio", 2)
        form.add_field(FormField.create("About you", required=False, min_length=10))
        assert parse_answers(form, [""], user_id=USER_ID).pairs() == [(0, "")]

    def test_none_answer_is_empty(self):
        assert parse_answers(_feedback_form(), ["Ann", None], user_id=USER_ID).pairs() == [(0, "Ann"), (1, "")]

    def test_length_is_measured_on_raw_text(self):
        form = Form.create(1, "Code", 2)
        form.add_field(FormField.create("Code", max_length=4))
        with pytest.raises(FormularValidationError):
            parse_answers(form, [" abcd "], user_id=USER_ID)

    @pytest.mark.parametrize("answers", [["Ann"], ["Ann", "", "extra"], []])
    def test_answer_count_mismatch(self, answers):
        with pytest.raises(FormularMismatchError):
            parse_answers(_feedback_form(), answers, user_id=USER_ID)

    def test_stale_dialog_after_field_added(self):
        form = _feedback_form()
        dialog = build_dialog(form)
        form.add_field(FormField.create("Email"))
        with pytest.raises(FormularMismatchError):
            parse_answers(form, ["Ann", "", "a@b.c"], user_id=USER_ID, dialog=dialog)

    def test_stale_dialog_after_reorder(self):
        form = _feedback_form()
        dialog = build_dialog(form)
        form.reorder_fields([1, 0])
        with pytest.raises(FormularMismatchError):
            parse_answers(form, ["", "Ann"], user_id=USER_ID, dialog=dialog)

    def test_round_trip_preserves_positions(self):
        form = _feedback_form()
        dialog = build_dialog(form)
        raw = ["Ann", "Great bot"]
        submission = parse_answers(form, raw, user_id=USER_ID, dialog=dialog)
        assert submission.pairs() == [(spec.position, answer) for spec, answer in zip(dialog.inputs, raw)]
        assert [a.label for a in submission.answers] == ["Name", "Comments"]
