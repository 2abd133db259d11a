import pytest

from deskforms import forms
from deskforms.field_types import DEFAULT_OPTIONS, FieldType
from deskforms.forms import FormDefinition, GroupLink, OptionsBuffer, UserLink


def _form_with_field(field_type="text"):
    form, field = forms.add_field(FormDefinition(name="Chamados"))
    if field_type != "text":
        form = forms.set_field_type(form, field.id, field_type)
    return form, field.id


def test_add_field_defaults():
    form, field = forms.add_field(FormDefinition())
    assert field.type is FieldType.TEXT
    assert field.label == "Novo Campo"
    assert field.required is False
    assert form.fields == (field,)


def test_add_field_ids_are_unique():
    form = FormDefinition()
    for _ in range(20):
        form, _ = forms.add_field(form)
    assert len({item.id for item in form.fields}) == 20


@pytest.mark.parametrize("field_type", ["select", "radio"])
def test_switching_to_option_type_seeds_defaults(field_type):
    form, field_id = _form_with_field()
    form = forms.set_field_type(form, field_id, field_type)
    assert form.field(field_id).options == DEFAULT_OPTIONS


def test_switching_between_option_types_keeps_options():
    form, field_id = _form_with_field("select")
    form = forms.update_field(form, field_id, {"options": ["TI", "RH"]})
    form = forms.set_field_type(form, field_id, "radio")
    assert form.field(field_id).options == ("TI", "RH")


@pytest.mark.parametrize("field_type", ["text", "email", "checkbox", "file", "date"])
def test_switching_away_from_option_type_clears_options(field_type):
    form, field_id = _form_with_field("select")
    form = forms.set_field_type(form, field_id, field_type)
    assert form.field(field_id).options is None


def test_update_field_merges_patch():
    form, field_id = _form_with_field()
    form = forms.update_field(form, field_id, {"label": "Nome", "required": True, "placeholder": "Seu nome"})
    field = form.field(field_id)
    assert (field.label, field.required, field.placeholder) == ("Nome", True, "Seu nome")
    assert field.type is FieldType.TEXT


def test_update_field_type_and_options_together():
    form, field_id = _form_with_field()
    form = forms.update_field(form, field_id, {"type": "select", "options": ["TI", "RH"]})
    assert form.field(field_id).options == ("TI", "RH")


def test_update_field_drops_blank_options():
    form, field_id = _form_with_field("radio")
    form = forms.update_field(form, field_id, {"options": ["Sim", "", "  ", "Não"]})
    assert form.field(field_id).options == ("Sim", "Não")


def test_update_unknown_field_is_noop():
    form, _ = _form_with_field()
    assert forms.update_field(form, "missing", {"label": "x"}) is form


def test_update_field_rejects_unknown_attribute():
    form, field_id = _form_with_field()
    with pytest.raises(ValueError):
        forms.update_field(form, field_id, {"colour": "red"})


def test_validation_patch_accepts_mapping():
    form, field_id = _form_with_field("file")
    form = forms.update_field(form, field_id, {"validation": {"max_size": 2, "accept": ".pdf"}})
    field = form.field(field_id)
    assert field.max_size == 2
    assert field.validation.accept == ".pdf"


def test_remove_and_move_field():
    form = FormDefinition(name="x")
    form, first = forms.add_field(form)
    form, second = forms.add_field(form)
    form, third = forms.add_field(form)
    form = forms.move_field(form, third.id, 0)
    assert [item.id for item in form.fields] == [third.id, first.id, second.id]
    form = forms.remove_field(form, first.id)
    assert [item.id for item in form.fields] == [third.id, second.id]


def test_options_buffer_commit_drops_blank_lines():
    buffer = OptionsBuffer("TI\n\nRH\n   \nFinanceiro\n")
    assert buffer.commit() == ("TI", "RH", "Financeiro")


def test_options_buffer_round_trip_is_idempotent():
    options = OptionsBuffer("A\n\nB\nC").commit()
    again = OptionsBuffer.from_options(options).commit()
    assert again == options
    assert OptionsBuffer.from_options(again).commit() == again


def test_linkage_is_exclusive_for_any_sequence():
    form = FormDefinition(name="x")
    form = forms.link_user(form, 3)
    assert form.linkage == UserLink(3)
    form = forms.link_group(form, 7)
    assert form.linkage == GroupLink(7)
    assert form.linked_user_id is None
    form = forms.link_user(form, 4)
    assert (form.linked_user_id, form.linked_group_id) == (4, None)
    form = forms.unlink(form)
    assert form.linkage is None
    assert not form.approval_required


def test_link_with_none_clears():
    form = forms.link_group(FormDefinition(), 7)
    assert forms.link_group(form, None).linkage is None


def test_can_save_truth_table():
    _, field = forms.add_field(FormDefinition())
    assert not forms.can_save(FormDefinition(name="", fields=(field,)))
    assert not forms.can_save(FormDefinition(name="X", fields=()))
    assert forms.can_save(FormDefinition(name="X", fields=(field,)))


def test_save_problems_lists_every_reason():
    problems = forms.save_problems(FormDefinition())
    assert problems == ["O nome do formulário é obrigatório", "Adicione pelo menos um campo ao formulário"]


def test_form_from_dict_rejects_double_linkage():
    with pytest.raises(ValueError):
        forms.form_from_dict({"name": "x", "linked_user_id": 1, "linked_group_id": 2})


def test_form_dict_round_trip_keeps_linkage_and_fields():
    form = forms.form_from_dict(
        {
            "id": 5,
            "name": "Acesso",
            "public_url": "abc123",
            "linked_group_id": 7,
            "fields": [
                {"id": "a", "type": "select", "label": "Depto", "options": ["TI"]},
                {"id": "b", "type": "file", "label": "Anexo", "validation": {"max_size": 2}},
            ],
        }
    )
    data = forms.form_to_dict(form)
    assert data["linked_group_id"] == 7
    assert data["linked_user_id"] is None
    assert data["fields"][0]["options"] == ["TI"]
    assert data["fields"][1]["validation"] == {"max_size": 2.0}
    assert forms.form_from_dict(data) == form


def test_fields_from_list_assigns_missing_and_duplicate_ids():
    fields = forms.fields_from_list(
        [{"type": "text", "label": "A"}, {"id": "x", "type": "text", "label": "B"}, {"id": "x", "type": "text", "label": "C"}]
    )
    ids = [item.id for item in fields]
    assert ids[1] == "x"
    assert len(set(ids)) == 3
