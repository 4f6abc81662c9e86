"""Chat vertical — per-task conversations with realtime fan-out."""
