"""callcov subcommands."""
