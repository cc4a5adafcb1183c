"""Console client for line-streaming terminal and story backends."""
