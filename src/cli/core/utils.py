"""Exit codes shared by CLI commands."""

EXIT_SUCCESS = 0
EXIT_NOT_FOUND = 1
EXIT_ERROR = 2
