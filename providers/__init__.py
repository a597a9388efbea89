"""Wrappers around the external providers: Google Places, Google Directions, Gemini."""
