"""
MoodPet - the pet engagement engine of the Emotion Diary.

This package turns mood check-ins and pet interactions into a decaying
happiness value, throttles repeated interactions with cooldowns, and keeps
optimistic client-side updates in line with the server's authoritative state.
"""

__version__ = "0.1.0"
