"""Git backend driven through the git CLI."""

from ghostvcs.adapters.git_cmd.git_adapter import GitBackend

__all__ = ["GitBackend"]
