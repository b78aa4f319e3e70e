from django import forms

from habits.models import Habit
from habits.services.ordering import sanitize_order


class HabitForm(forms.ModelForm):
    class Meta:
        model = Habit
        fields = ("title", "description", "frequency")

    def clean_title(self):
        title = self.cleaned_data["title"].strip()
        if not title:
            raise forms.ValidationError("Title is required")
        return title


class CompleteHabitForm(forms.Form):
    action = forms.ChoiceField(choices=[("complete", "complete")])
    habit_id = forms.IntegerField(min_value=1)


class OrderField(forms.Field):
    """
    A JSON array of habit ids. Missing or non-array values are rejected;
    array members are sanitized rather than validated one by one.
    """

    def __init__(self, **kwargs):
        kwargs.setdefault("required", False)
        super().__init__(**kwargs)

    def to_python(self, value):
        if value is None:
            raise forms.ValidationError("Missing order", code="required")
        if not isinstance(value, (list, tuple)):
            raise forms.ValidationError("Order must be an array", code="invalid")
        return sanitize_order(value)


class ReorderForm(forms.Form):
    order = OrderField()


class HistoryFilterForm(forms.Form):
    id = forms.IntegerField(min_value=1, required=False)
    date_from = forms.DateField(required=False, input_formats=["%Y-%m-%d"])
    date_to = forms.DateField(required=False, input_formats=["%Y-%m-%d"])
    page = forms.IntegerField(min_value=1, required=False)
    export = forms.ChoiceField(choices=[("", ""), ("csv", "csv")], required=False)

    @classmethod
    def from_query(cls, params):
        # "from" is a keyword, so the query names are mapped here
        return cls({
            "id": params.get("id"),
            "date_from": params.get("from"),
            "date_to": params.get("to"),
            "page": params.get("page"),
            "export": params.get("export", ""),
        })

    def clean(self):
        cleaned = super().clean()
        date_from, date_to = cleaned.get("date_from"), cleaned.get("date_to")
        if date_from and date_to and date_from > date_to:
            raise forms.ValidationError("'from' must not be after 'to'")
        return cleaned


class EntryActionForm(forms.Form):
    action = forms.ChoiceField(choices=[
        ("toggle", "toggle"),
        ("delete", "delete"),
        ("mark_today", "mark_today"),
    ])
    habit_id = forms.IntegerField(min_value=1)
    entry_id = forms.IntegerField(min_value=1, required=False)

    def clean(self):
        cleaned = super().clean()
        if cleaned.get("action") in ("toggle", "delete") and not cleaned.get("entry_id"):
            raise forms.ValidationError("Invalid entry id")
        return cleaned
