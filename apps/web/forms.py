from django import forms

FILTER_CHOICES = [
    ('all', 'All'),
    ('pending', 'Pending'),
    ('done', 'Completed'),
]


class TaskForm(forms.Form):
    title = forms.CharField(
        strip=True,
        error_messages={'required': 'Title is required'},
        widget=forms.TextInput(attrs={'placeholder': 'What needs doing?'}),
    )
    description = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 3}))
    completed = forms.BooleanField(required=False)


class TaskFilterForm(forms.Form):
    text = forms.CharField(required=False, strip=True)
    filter = forms.ChoiceField(choices=FILTER_CHOICES, required=False)
    page = forms.IntegerField(min_value=1, required=False)

    def cleaned_filters(self) -> dict:
        """Filters with "all" and blank text dropped; invalid input falls back to defaults."""
        data = self.cleaned_data if self.is_valid() else {}
        return {
            'text': data.get('text') or None,
            'filter': None if data.get('filter') in (None, '', 'all') else data['filter'],
            'page': data.get('page') or 1,
        }


class TokenLoginForm(forms.Form):
    token = forms.CharField(widget=forms.Textarea(attrs={'rows': 4}), strip=True)
