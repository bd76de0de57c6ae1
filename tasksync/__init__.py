"""tasksync - keep task files, GitHub issues and the progress dashboard in step."""

# No imports at package level; import modules directly where needed
