"""Services for worktree-hub."""
