"""xhs-assist - AI copywriting assistant for Xiaohongshu creators."""

__version__ = "1.0.0"
