"""Rule Zero enforcement: detect tests that mutate the application under test."""
