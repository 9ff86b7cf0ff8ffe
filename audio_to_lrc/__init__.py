"""Audio to LRC relay backed by Gemini."""
