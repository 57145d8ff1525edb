"""Live2Text - live transcription client for the Gemini Live API."""

__version__ = "0.1.0"
