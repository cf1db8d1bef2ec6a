"""Built-in CLI commands for apichain."""
