"""Council-of-writers review pipeline over a local Ollama server."""
