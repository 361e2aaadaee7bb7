"""Backend service: process bridge, API layer and runtime."""
