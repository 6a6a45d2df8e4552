"""Agent core: turn loop, history, commands, actions and self-prompting."""
