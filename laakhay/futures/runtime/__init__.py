"""Runtime layer: REST dispatch and streaming connections."""
