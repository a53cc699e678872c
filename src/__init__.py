"""vocab-srs: SM-2 spaced repetition for vocabulary learning."""
