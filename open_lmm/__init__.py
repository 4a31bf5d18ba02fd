"""LiDAR place-recognition descriptors (Scan Context, SOLiD), a k-d tree descriptor database and JSON configuration."""

__version__ = "1.0.0"