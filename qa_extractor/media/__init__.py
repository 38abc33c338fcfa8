"""ffmpeg/ffprobe wrappers and transcript text helpers."""
