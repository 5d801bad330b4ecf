"""Textual screens and widgets for the worktree-hub TUI."""
