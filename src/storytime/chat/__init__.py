"""Chat pipeline: theme detection, prompt composition, segmentation, streaming."""
