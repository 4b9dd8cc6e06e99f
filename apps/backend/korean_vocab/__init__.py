"""Korean vocabulary learning API: word lists, spaced review and AI generated vocabulary."""
