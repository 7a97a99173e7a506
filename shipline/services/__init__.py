"""Services: trigger evaluation and the release pipeline."""
