"""HTTP API for generating and inspecting planets."""
