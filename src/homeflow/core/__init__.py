"""Project stage inference, plan templating and project planning."""
