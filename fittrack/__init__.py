"""FitTrack API."""
