"""mindbot: a turn-taking control loop for a language-model agent in a simulated world."""

__version__ = "0.1.0"
