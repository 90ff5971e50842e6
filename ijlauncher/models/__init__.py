"""Data models: configuration, job parameters, layer configurations and the task list."""
