"""Document segmentation and topic/map synthesis engine."""
