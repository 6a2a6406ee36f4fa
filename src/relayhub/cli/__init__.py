"""Command-line interface: ``relayhub serve`` and ``relayhub config``."""
