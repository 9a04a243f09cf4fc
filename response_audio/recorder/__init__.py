"""Response recorder: capture, metering, analysis and WAV packaging."""
