"""JSON-RPC tool binding and HTTP server for the task manager."""
